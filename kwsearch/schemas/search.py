from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from kwsearch.config import settings


@dataclass
class HitKeyword:
    keyword_id: int
    text: str
    distance: float


@dataclass
class StudentMatch:
    student_id: int
    name: str
    keywords: list[HitKeyword] = field(default_factory=list)  # closest first

    @property
    def best_distance(self) -> float:
        return self.keywords[0].distance


class SearchRequest(BaseModel):
    query: str = Field(min_length=1, max_length=2000)
    top_k: int = Field(default=settings.default_search_k, ge=0, le=settings.max_search_k)


class HitKeywordOut(BaseModel):
    keyword_id: int
    text: str
    distance: float


class StudentMatchOut(BaseModel):
    student_id: int
    name: str
    best_distance: float
    keywords: list[HitKeywordOut]


class SearchResponse(BaseModel):
    query: str
    results: list[StudentMatchOut]
