from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import Select, func, literal_column, select, text, update
from sqlalchemy.dialects.postgresql import aggregate_order_by
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kwsearch.core.errors import StoreError
from kwsearch.db.distance import DistanceMetric
from kwsearch.db.models import Keyword, Student, StudentKeyword
from kwsearch.schemas.store import EntityKind, KeywordDistanceRow, PendingItem

logger = logging.getLogger(__name__)


def _embedding_target(kind: EntityKind):  # type: ignore[no-untyped-def]
    """Return (model, id column, vector column) for an entity kind."""
    if kind is EntityKind.KEYWORD:
        return Keyword, Keyword.keyword_id, Keyword.embedding
    return Student, Student.student_id, Student.keyword_list_embedding


def _student_texts(pending_only: bool) -> Select:
    """Per student, the space-joined text of all related keywords (ordered by keyword_id).

    Inner joins drop students with no keywords; HAVING drops empty aggregates.
    """
    joined = func.string_agg(
        Keyword.keyword_text,
        aggregate_order_by(literal_column("' '"), Keyword.keyword_id),
    )
    stmt = (
        select(Student.student_id, joined.label("keywords_text"))
        .join(StudentKeyword, StudentKeyword.student_id == Student.student_id)
        .join(Keyword, Keyword.keyword_id == StudentKeyword.keyword_id)
    )
    if pending_only:
        stmt = stmt.where(Student.keyword_list_embedding.is_(None))
    return (
        stmt.group_by(Student.student_id)
        .having(joined.is_not(None), joined != "")
        .order_by(Student.student_id)
    )


def _pending_query(kind: EntityKind, include_synced: bool = False) -> Select:
    if kind is EntityKind.KEYWORD:
        stmt = select(Keyword.keyword_id, Keyword.keyword_text)
        if not include_synced:
            stmt = stmt.where(Keyword.embedding.is_(None))
        return stmt.order_by(Keyword.keyword_id)
    return _student_texts(pending_only=not include_synced)


async def select_pending(
    session: AsyncSession,
    kind: EntityKind,
    include_synced: bool = False,
) -> list[PendingItem]:
    """Return the (id, text) pairs whose vector is still NULL, ordered by id.

    ``include_synced`` drops the NULL filter and returns every embeddable row.
    """
    try:
        result = await session.execute(_pending_query(kind, include_synced))
    except SQLAlchemyError as exc:
        raise StoreError(f"failed to select pending {kind.value} rows: {exc}") from exc
    items = [PendingItem(entity_id=row[0], text=row[1]) for row in result.all()]
    logger.info(
        "entity_store.select_pending",
        extra={"kind": kind.value, "rows": len(items), "include_synced": include_synced},
    )
    return items


async def count_pending(session: AsyncSession, kind: EntityKind) -> int:
    stmt = select(func.count()).select_from(_pending_query(kind).subquery())
    try:
        result = await session.execute(stmt)
    except SQLAlchemyError as exc:
        raise StoreError(f"failed to count pending {kind.value} rows: {exc}") from exc
    return int(result.scalar_one())


async def update_embedding(
    session: AsyncSession,
    kind: EntityKind,
    entity_id: int,
    vector: Sequence[float],
) -> bool:
    """Write one vector and commit it on its own. Returns False if the id no longer exists."""
    model, id_col, vector_col = _embedding_target(kind)
    stmt = (
        update(model)
        .where(id_col == entity_id)
        .values({vector_col: list(vector)})
        .execution_options(synchronize_session=False)
    )
    try:
        result = await session.execute(stmt)
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StoreError(
            f"failed to write {kind.value} embedding for id {entity_id}: {exc}",
            entity_id=entity_id,
        ) from exc
    return result.rowcount == 1


async def composite_text_for_students(session: AsyncSession) -> dict[int, str]:
    """Map every student with at least one keyword to its space-joined keyword text."""
    try:
        result = await session.execute(_student_texts(pending_only=False))
    except SQLAlchemyError as exc:
        raise StoreError(f"failed to build student keyword text: {exc}") from exc
    return {row[0]: row[1] for row in result.all()}


async def fetch_keyword_distances(
    session: AsyncSession,
    query_vector: Sequence[float],
    top_k: int,
    metric: DistanceMetric,
) -> list[KeywordDistanceRow]:
    """Keyword-level distances for the students whose best keyword ranks in the top k.

    Returns flat rows, one per (student, synchronized keyword). Students are
    chosen by their minimum keyword distance, ties broken by student_id; every
    synchronized keyword of a chosen student is returned, not only the best.
    Row order is not significant; shaping happens in the search engine.
    """
    op = metric.operator
    sql = text(
        f"""
        WITH keyword_distances AS (
            SELECT
                skr.student_id,
                k.keyword_id,
                k.keyword_text,
                k.embedding {op} CAST(:query_vec AS vector) AS distance
            FROM student_keywords_relations skr
            JOIN keywords k ON k.keyword_id = skr.keyword_id
            WHERE k.embedding IS NOT NULL
        ),
        top_students AS (
            SELECT student_id, MIN(distance) AS best_distance
            FROM keyword_distances
            GROUP BY student_id
            ORDER BY best_distance, student_id
            LIMIT :top_k
        )
        SELECT
            s.student_id,
            s.student_name,
            kd.keyword_id,
            kd.keyword_text,
            kd.distance
        FROM top_students ts
        JOIN students s ON s.student_id = ts.student_id
        JOIN keyword_distances kd ON kd.student_id = ts.student_id
        """
    )
    params = {"query_vec": str(list(query_vector)), "top_k": top_k}

    try:
        result = await session.execute(sql, params)
    except SQLAlchemyError as exc:
        raise StoreError(f"similarity query failed: {exc}") from exc
    rows = result.mappings().all()

    logger.info(
        "entity_store.fetch_keyword_distances",
        extra={"top_k": top_k, "metric": metric.value, "rows_returned": len(rows)},
    )

    return [
        KeywordDistanceRow(
            student_id=int(row["student_id"]),
            student_name=row["student_name"],
            keyword_id=int(row["keyword_id"]),
            keyword_text=row["keyword_text"],
            distance=float(row["distance"]),
        )
        for row in rows
    ]
