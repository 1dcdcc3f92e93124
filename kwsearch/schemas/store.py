from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class EntityKind(str, Enum):
    KEYWORD = "keyword"
    STUDENT = "student"


@dataclass(frozen=True)
class PendingItem:
    """One row awaiting an embedding: the id and the exact text to embed."""

    entity_id: int
    text: str


@dataclass(frozen=True)
class KeywordDistanceRow:
    student_id: int
    student_name: str
    keyword_id: int
    keyword_text: str
    distance: float  # pgvector operator result, smaller = closer
