from __future__ import annotations

import logging
import time

import openai
from openai import AsyncOpenAI

from kwsearch.config import settings
from kwsearch.core.errors import (
    ConfigurationError,
    DataError,
    ProviderError,
    ProviderTimeoutError,
)
from kwsearch.core.providers.base import BaseEmbeddingProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseEmbeddingProvider):
    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str | None = None,
        dimensions: int | None = None,
        max_batch_size: int | None = None,
        timeout: float | None = None,
    ) -> None:
        api_key = settings.openai_api_key if api_key is None else api_key
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set")

        self.model = model or settings.openai_embedding_model
        self.dimensions = dimensions or settings.openai_embedding_dimensions
        self.max_batch_size = max_batch_size or settings.embedding_batch_size
        self._client = AsyncOpenAI(
            api_key=api_key,
            timeout=timeout or settings.embedding_timeout_seconds,
            max_retries=settings.embedding_max_retries,
        )

    async def embed(self, text: str) -> list[float]:
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        if len(texts) > self.max_batch_size:
            raise DataError(
                f"batch of {len(texts)} texts exceeds provider limit of {self.max_batch_size}"
            )

        # Only the text-embedding-3 family accepts a dimensions override.
        extra: dict[str, int] = {}
        if self.model.startswith("text-embedding-3"):
            extra["dimensions"] = self.dimensions

        start = time.monotonic()
        try:
            response = await self._client.embeddings.create(
                model=self.model,
                input=texts,
                **extra,
            )
        except openai.APITimeoutError as exc:
            raise ProviderTimeoutError(
                f"embedding request timed out after {time.monotonic() - start:.1f}s"
            ) from exc
        except openai.OpenAIError as exc:
            raise ProviderError(f"embedding request failed: {exc}") from exc
        latency_ms = int((time.monotonic() - start) * 1000)

        usage = response.usage
        logger.info(
            "OpenAI embed_batch",
            extra={
                "model": self.model,
                "batch_size": len(texts),
                "prompt_tokens": usage.prompt_tokens if usage else None,
                "latency_ms": latency_ms,
            },
        )

        # The API tags each item with its input index; never trust arrival order.
        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(texts):
            raise ProviderError(
                f"provider returned {len(data)} embeddings for {len(texts)} inputs"
            )
        vectors = [list(item.embedding) for item in data]
        for i, vector in enumerate(vectors):
            if len(vector) != self.dimensions:
                raise ProviderError(
                    f"embedding {i} has dimensionality {len(vector)}, expected {self.dimensions}"
                )
        return vectors
