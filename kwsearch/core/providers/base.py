from __future__ import annotations

from abc import ABC, abstractmethod


class BaseEmbeddingProvider(ABC):
    """Abstract embedding provider.

    Contract relied on by the synchronizer and the search engine:
    ``embed_batch`` returns one vector per input text, in input order, each of
    length ``dimensions``. A call either returns every vector or raises; there
    are no partial results.
    """

    max_batch_size: int
    dimensions: int

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Return embedding vector for a single text."""
        ...

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Return embedding vectors for a batch of at most ``max_batch_size`` texts."""
        ...
