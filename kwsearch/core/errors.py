from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kwsearch.schemas.store import EntityKind
    from kwsearch.sync.synchronizer import SyncReport


class KwsearchError(Exception):
    """Base class for every error raised by the sync / search pipeline."""


class ConfigurationError(KwsearchError):
    """Missing credential or unreachable store. Fatal at startup."""


class ProviderError(KwsearchError):
    """Embedding provider failed (transport, auth, rate limit, bad response)."""


class ProviderTimeoutError(ProviderError):
    """Embedding provider did not answer within the configured timeout."""


class StoreError(KwsearchError):
    def __init__(self, message: str, entity_id: int | None = None) -> None:
        super().__init__(message)
        self.entity_id = entity_id


class DataError(KwsearchError):
    """Malformed or empty input row."""


class SyncError(KwsearchError):
    """A synchronize() run stopped before every pending id was written.

    Batches written before the failure stay committed; ``unsynchronized_ids``
    lists every id that still has a null embedding because of this run.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: EntityKind,
        batch_index: int,
        batch_ids: list[int],
        unsynchronized_ids: list[int],
        report: SyncReport,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.batch_index = batch_index
        self.batch_ids = batch_ids
        self.unsynchronized_ids = unsynchronized_ids
        self.report = report
