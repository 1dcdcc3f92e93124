from __future__ import annotations

import os
import uuid
from collections.abc import AsyncGenerator, Callable, Sequence

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from kwsearch.core.errors import ProviderError, StoreError
from kwsearch.core.providers.base import BaseEmbeddingProvider
from kwsearch.db import entity_store
from kwsearch.db.schema_utils import create_schema
from kwsearch.schemas.store import EntityKind, PendingItem

TEST_DATABASE_URL = os.environ.get("KWSEARCH_TEST_DATABASE_URL", "")


def vector_for(text: str) -> list[float]:
    """Deterministic 3-d stand-in for a real embedding."""
    return [float(len(text)), float(sum(map(ord, text)) % 97), 1.0]


def padded(head: Sequence[float], dimensions: int) -> list[float]:
    """Zero-extend a short vector to the column's dimensionality."""
    return list(head) + [0.0] * (dimensions - len(head))


class FakeProvider(BaseEmbeddingProvider):
    """Records every batch; optionally fails on the n-th call (1-based)."""

    def __init__(
        self,
        max_batch_size: int = 1000,
        dimensions: int = 3,
        fail_on_call: int | None = None,
        error: Exception | None = None,
    ) -> None:
        self.max_batch_size = max_batch_size
        self.dimensions = dimensions
        self.fail_on_call = fail_on_call
        self.error = error or ProviderError("provider unavailable")
        self.calls: list[list[str]] = []

    async def embed(self, text: str) -> list[float]:
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail_on_call == len(self.calls):
            raise self.error
        return [padded(vector_for(t), self.dimensions) for t in texts]


class FakeStore:
    """In-memory stand-in for the entity_store module functions."""

    def __init__(
        self,
        keywords: dict[int, str],
        students: dict[int, str] | None = None,
        relations: Sequence[tuple[int, int]] = (),
    ) -> None:
        self.keywords = dict(keywords)
        self.students = dict(students or {})
        self.relations = list(relations)
        self.vectors: dict[EntityKind, dict[int, list[float]]] = {
            EntityKind.KEYWORD: {},
            EntityKind.STUDENT: {},
        }
        self.writes: list[tuple[EntityKind, int, list[float]]] = []
        self.fail_write_ids: set[int] = set()

    def student_text(self, student_id: int) -> str:
        keyword_ids = sorted(k for s, k in self.relations if s == student_id)
        return " ".join(self.keywords[k] for k in keyword_ids)

    async def select_pending(
        self, session, kind: EntityKind, include_synced: bool = False
    ) -> list[PendingItem]:
        done = {} if include_synced else self.vectors[kind]
        if kind is EntityKind.KEYWORD:
            return [
                PendingItem(entity_id=i, text=t)
                for i, t in sorted(self.keywords.items())
                if i not in done
            ]
        items = []
        for student_id in sorted(self.students):
            text = self.student_text(student_id)
            if text and student_id not in done:
                items.append(PendingItem(entity_id=student_id, text=text))
        return items

    async def update_embedding(self, session, kind: EntityKind, entity_id: int, vector) -> bool:
        if entity_id in self.fail_write_ids:
            raise StoreError(f"write failed for {entity_id}", entity_id=entity_id)
        self.writes.append((kind, entity_id, list(vector)))
        self.vectors[kind][entity_id] = list(vector)
        return True

@pytest.fixture
def make_provider() -> Callable[..., FakeProvider]:
    return FakeProvider


@pytest.fixture
def fake_store(monkeypatch: pytest.MonkeyPatch) -> Callable[..., FakeStore]:
    def _install(**kwargs) -> FakeStore:
        store = FakeStore(**kwargs)
        for name in ("select_pending", "update_embedding"):
            monkeypatch.setattr(entity_store, name, getattr(store, name))
        return store

    return _install


@pytest.fixture
async def test_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Session on a real pgvector Postgres, isolated in a throwaway schema.

    Opt-in: set KWSEARCH_TEST_DATABASE_URL (postgresql+asyncpg://...) and run
    ``pytest -m pgvector``. Skipped otherwise.
    """
    if not TEST_DATABASE_URL:
        pytest.skip("KWSEARCH_TEST_DATABASE_URL not set")

    schema = f"kwsearch_test_{uuid.uuid4().hex[:12]}"
    admin = create_async_engine(TEST_DATABASE_URL)
    async with admin.begin() as conn:
        # Extension lives in the default schema so dropping ours leaves it alone.
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.execute(text(f"CREATE SCHEMA {schema}"))

    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"server_settings": {"search_path": f"{schema},public"}},
    )
    try:
        await create_schema(engine)
        async with async_sessionmaker(engine, expire_on_commit=False)() as session:
            yield session
    finally:
        await engine.dispose()
        async with admin.begin() as conn:
            await conn.execute(text(f"DROP SCHEMA {schema} CASCADE"))
        await admin.dispose()
