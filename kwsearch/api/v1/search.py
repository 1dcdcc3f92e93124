from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from kwsearch.core.providers.base import BaseEmbeddingProvider
from kwsearch.dependencies import get_db, get_provider
from kwsearch.schemas.search import (
    HitKeywordOut,
    SearchRequest,
    SearchResponse,
    StudentMatchOut,
)
from kwsearch.search.engine import search

router = APIRouter()


@router.post("", response_model=SearchResponse)
async def search_students(
    body: SearchRequest,
    session: AsyncSession = Depends(get_db),
    provider: BaseEmbeddingProvider = Depends(get_provider),
) -> SearchResponse:
    """Rank students by keyword similarity to the query.

    Each result lists all of the student's keywords, closest first.
    """
    matches = await search(body.query, body.top_k, session, provider)
    return SearchResponse(
        query=body.query,
        results=[
            StudentMatchOut(
                student_id=m.student_id,
                name=m.name,
                best_distance=m.best_distance,
                keywords=[
                    HitKeywordOut(keyword_id=k.keyword_id, text=k.text, distance=k.distance)
                    for k in m.keywords
                ],
            )
            for m in matches
        ],
    )
