from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Header
from sqlalchemy.ext.asyncio import AsyncSession

from kwsearch.core.providers.base import BaseEmbeddingProvider
from kwsearch.core.providers.openai_provider import OpenAIProvider
from kwsearch.core.security import verify_admin_key
from kwsearch.db.session import AsyncSessionLocal


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an async DB session per request."""
    async with AsyncSessionLocal() as session:
        yield session


async def get_admin(
    x_admin_key: str = Header(..., alias="X-Admin-Key"),
) -> None:
    """Validate X-Admin-Key header (sync endpoints)."""
    verify_admin_key(x_admin_key)


def get_provider() -> BaseEmbeddingProvider:
    return OpenAIProvider()
