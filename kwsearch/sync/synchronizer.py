from __future__ import annotations

import logging
import time
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from kwsearch.core.errors import DataError, ProviderError, StoreError, SyncError
from kwsearch.core.providers.base import BaseEmbeddingProvider
from kwsearch.db import entity_store
from kwsearch.schemas.store import EntityKind, PendingItem

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    kind: EntityKind
    selected: int = 0
    written: int = 0
    batches: int = 0
    skipped_ids: list[int] = field(default_factory=list)  # empty text, never sent
    missing_ids: list[int] = field(default_factory=list)  # row vanished before write-back


def iter_batches(items: Sequence[PendingItem], size: int) -> Iterator[list[PendingItem]]:
    """Yield consecutive groups of at most ``size`` items, preserving order."""
    if size < 1:
        raise DataError(f"batch size must be positive, got {size}")
    for i in range(0, len(items), size):
        yield list(items[i : i + size])


def _split_blank(items: list[PendingItem]) -> tuple[list[PendingItem], list[int]]:
    usable: list[PendingItem] = []
    blank: list[int] = []
    for item in items:
        if item.text and item.text.strip():
            usable.append(item)
        else:
            blank.append(item.entity_id)
    return usable, blank


async def synchronize(
    kind: EntityKind,
    session: AsyncSession,
    provider: BaseEmbeddingProvider,
    batch_size: int | None = None,
    rebuild: bool = False,
) -> SyncReport:
    """Embed every pending row of ``kind`` and write the vectors back by id.

    Batches run sequentially. Each successful write is committed on its own,
    so a failure leaves earlier batches in place and the run can simply be
    repeated: anything not written is still NULL and is selected again.

    ``rebuild`` re-embeds every row, not only the NULL ones. Vectors are
    overwritten in place batch by batch, so search keeps answering from the
    old vectors until each row is rewritten. If a rebuild fails, the rows it
    did not reach keep their previous vectors and a plain rerun will not pick
    them up; rerun with ``rebuild`` to finish.

    Raises SyncError (carrying the failing batch's ids and every id left
    unsynchronized) when the provider call or a write fails.
    """
    size = batch_size or provider.max_batch_size
    if size > provider.max_batch_size:
        raise DataError(
            f"batch size {size} exceeds provider limit of {provider.max_batch_size}"
        )

    pending = await entity_store.select_pending(session, kind, include_synced=rebuild)
    items, blank_ids = _split_blank(pending)
    report = SyncReport(kind=kind, selected=len(pending), skipped_ids=blank_ids)
    if blank_ids:
        logger.warning(
            "synchronizer.skip_blank",
            extra={"kind": kind.value, "ids": blank_ids},
        )

    batches = list(iter_batches(items, size))
    logger.info(
        "synchronizer.start",
        extra={
            "kind": kind.value,
            "pending": len(items),
            "batches": len(batches),
            "batch_size": size,
            "rebuild": rebuild,
        },
    )

    for index, batch in enumerate(batches):
        batch_ids = [item.entity_id for item in batch]
        start = time.monotonic()

        try:
            vectors = await provider.embed_batch([item.text for item in batch])
        except ProviderError as exc:
            unsynced = [i.entity_id for b in batches[index:] for i in b]
            logger.error(
                "synchronizer.batch_failed",
                extra={"kind": kind.value, "batch": index, "ids": batch_ids, "error": str(exc)},
            )
            raise SyncError(
                f"{kind.value} batch {index} failed at the provider: {exc}",
                kind=kind,
                batch_index=index,
                batch_ids=batch_ids,
                unsynchronized_ids=unsynced,
                report=report,
            ) from exc

        if len(vectors) != len(batch):
            unsynced = [i.entity_id for b in batches[index:] for i in b]
            raise SyncError(
                f"{kind.value} batch {index}: provider returned {len(vectors)} vectors "
                f"for {len(batch)} inputs",
                kind=kind,
                batch_index=index,
                batch_ids=batch_ids,
                unsynchronized_ids=unsynced,
                report=report,
            )

        for position, (item, vector) in enumerate(zip(batch, vectors)):
            try:
                found = await entity_store.update_embedding(session, kind, item.entity_id, vector)
            except StoreError as exc:
                unsynced = batch_ids[position:] + [i.entity_id for b in batches[index + 1 :] for i in b]
                logger.error(
                    "synchronizer.write_failed",
                    extra={"kind": kind.value, "batch": index, "id": item.entity_id},
                )
                raise SyncError(
                    f"{kind.value} batch {index}: write failed for id {item.entity_id}: {exc}",
                    kind=kind,
                    batch_index=index,
                    batch_ids=batch_ids,
                    unsynchronized_ids=unsynced,
                    report=report,
                ) from exc
            if found:
                report.written += 1
            else:
                report.missing_ids.append(item.entity_id)

        report.batches += 1
        logger.info(
            "synchronizer.batch",
            extra={
                "kind": kind.value,
                "batch": index,
                "size": len(batch),
                "first_id": batch_ids[0],
                "last_id": batch_ids[-1],
                "latency_ms": int((time.monotonic() - start) * 1000),
            },
        )

    logger.info(
        "synchronizer.done",
        extra={"kind": kind.value, "written": report.written, "batches": report.batches},
    )
    return report


async def synchronize_all(
    session: AsyncSession,
    provider: BaseEmbeddingProvider,
    batch_size: int | None = None,
    rebuild: bool = False,
) -> list[SyncReport]:
    """Keywords first, then students."""
    return [
        await synchronize(kind, session, provider, batch_size=batch_size, rebuild=rebuild)
        for kind in (EntityKind.KEYWORD, EntityKind.STUDENT)
    ]
