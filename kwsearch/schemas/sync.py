from __future__ import annotations

from pydantic import BaseModel

from kwsearch.schemas.store import EntityKind


class SyncResponse(BaseModel):
    kind: EntityKind
    selected: int
    written: int
    batches: int
    skipped_ids: list[int]
    missing_ids: list[int]


class SyncStatusResponse(BaseModel):
    pending: dict[EntityKind, int]
