from __future__ import annotations

from fastapi import APIRouter

from kwsearch.api.v1 import search, sync

router = APIRouter()
router.include_router(search.router, prefix="/search", tags=["search"])
router.include_router(sync.router, prefix="/sync", tags=["sync"])
