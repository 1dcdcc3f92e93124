from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from kwsearch.config import settings
from kwsearch.core.errors import DataError
from kwsearch.core.providers.base import BaseEmbeddingProvider
from kwsearch.db import entity_store
from kwsearch.db.distance import DistanceMetric
from kwsearch.schemas.search import HitKeyword, StudentMatch
from kwsearch.schemas.store import KeywordDistanceRow

logger = logging.getLogger(__name__)


def shape_matches(rows: Iterable[KeywordDistanceRow], top_k: int) -> list[StudentMatch]:
    """Group flat keyword-distance rows into ranked, nested student matches.

    Keywords inside a match: ascending distance, then keyword_id.
    Matches: ascending best keyword distance, then student_id.
    """
    if top_k <= 0:
        return []

    matches: dict[int, StudentMatch] = {}
    for row in rows:
        match = matches.get(row.student_id)
        if match is None:
            match = matches[row.student_id] = StudentMatch(
                student_id=row.student_id, name=row.student_name
            )
        match.keywords.append(
            HitKeyword(keyword_id=row.keyword_id, text=row.keyword_text, distance=row.distance)
        )

    for match in matches.values():
        match.keywords.sort(key=lambda kw: (kw.distance, kw.keyword_id))

    ranked = sorted(matches.values(), key=lambda m: (m.best_distance, m.student_id))
    return ranked[:top_k]


async def search(
    query: str,
    top_k: int,
    session: AsyncSession,
    provider: BaseEmbeddingProvider,
    metric: DistanceMetric | None = None,
) -> list[StudentMatch]:
    """Rank students by their closest keyword to ``query``.

    Each match carries every synchronized keyword of that student with its
    distance, so callers can show which keywords drove the match. Provider and
    store failures propagate; no partial ranking is returned.
    """
    if top_k <= 0:
        return []
    if not query or not query.strip():
        raise DataError("search query must not be empty")

    metric = metric or DistanceMetric(settings.distance_metric)
    query_vector = await provider.embed(query)
    rows = await entity_store.fetch_keyword_distances(session, query_vector, top_k, metric)
    matches = shape_matches(rows, top_k)

    logger.info(
        "search.search",
        extra={
            "top_k": top_k,
            "metric": metric.value,
            "matches": len(matches),
            "best_distance": matches[0].best_distance if matches else None,
        },
    )
    return matches
