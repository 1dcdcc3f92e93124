from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from kwsearch.core.providers.base import BaseEmbeddingProvider
from kwsearch.db import entity_store
from kwsearch.dependencies import get_admin, get_db, get_provider
from kwsearch.schemas.store import EntityKind
from kwsearch.schemas.sync import SyncResponse, SyncStatusResponse
from kwsearch.sync.synchronizer import synchronize

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/status", response_model=SyncStatusResponse)
async def sync_status(
    _: None = Depends(get_admin),
    session: AsyncSession = Depends(get_db),
) -> SyncStatusResponse:
    """Number of rows per entity kind still waiting for an embedding."""
    return SyncStatusResponse(
        pending={kind: await entity_store.count_pending(session, kind) for kind in EntityKind}
    )


@router.post("/{kind}", response_model=SyncResponse)
async def sync_kind(
    kind: EntityKind,
    rebuild: bool = Query(
        False,
        description="Re-embed and overwrite every row in place, not only rows without a vector.",
    ),
    _: None = Depends(get_admin),
    session: AsyncSession = Depends(get_db),
    provider: BaseEmbeddingProvider = Depends(get_provider),
) -> SyncResponse:
    """Embed every pending row of ``kind``.

    With ``rebuild=true`` every row is re-embedded and overwritten in place;
    search keeps using the previous vectors until each row is rewritten. A
    failed rebuild leaves unreached rows on their old vectors; repeat the
    rebuild to finish.
    """
    report = await synchronize(kind, session, provider, rebuild=rebuild)
    logger.info("api.sync", extra={"kind": kind.value, "written": report.written})
    return SyncResponse(
        kind=report.kind,
        selected=report.selected,
        written=report.written,
        batches=report.batches,
        skipped_ids=report.skipped_ids,
        missing_ids=report.missing_ids,
    )
