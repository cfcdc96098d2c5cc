"""Embedding generation with a skip-on-failure policy for indexing."""
from __future__ import annotations

import logging
import time
from typing import List, Optional, Sequence

from coderag.errors import EmbeddingFailure, ServiceTimeout
from coderag.parsing.models import CodeUnit
from coderag.providers.base import EmbeddingProvider
from coderag.telemetry import emit_embeddings_event
from coderag.timeouts import with_timeout

LOGGER = logging.getLogger(__name__)


class EmbeddingGenerator:
    """Turn text into vectors through an injected :class:`EmbeddingProvider`."""

    def __init__(self, provider: EmbeddingProvider, *, timeout: float | None = 30.0) -> None:
        self.provider = provider
        self.timeout = timeout

    @property
    def model_name(self) -> str:
        return getattr(self.provider, "model_name", "unknown")

    async def embed_or_raise(self, text: str) -> List[float]:
        """Embed ``text``; raise :class:`EmbeddingFailure` or :class:`ServiceTimeout` on error."""

        started = time.perf_counter()
        try:
            vector = await with_timeout(self.provider.embed(text), service="embedding", timeout=self.timeout)
        except ServiceTimeout as error:
            self._emit(started, 1, [str(error)])
            raise
        except Exception as error:
            self._emit(started, 1, [str(error)])
            raise EmbeddingFailure("Embedding service call failed", cause=error) from error

        if not vector:
            self._emit(started, 1, ["empty vector"])
            raise EmbeddingFailure("Embedding service returned an empty vector")

        self._emit(started, 1)
        return [float(value) for value in vector]

    async def embed(self, text: str) -> Optional[List[float]]:
        """Embed ``text`` and report ``None`` instead of raising."""

        try:
            return await self.embed_or_raise(text)
        except (EmbeddingFailure, ServiceTimeout) as error:
            LOGGER.warning("Embedding skipped: %s", error)
            return None

    async def embed_units(self, units: Sequence[CodeUnit]) -> List[CodeUnit]:
        """Attach an embedding to every unit whose generation succeeded.

        Units are returned in their original order; failed ones keep
        ``embedding = None`` and must be filtered out before upsert.
        """

        for unit in units:
            unit.embedding = await self.embed(unit.source_text)
        return list(units)

    async def close(self) -> None:
        await self.provider.close()

    def _emit(self, started: float, count: int, errors: list[str] | None = None) -> None:
        emit_embeddings_event(
            model=self.model_name,
            count=count,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            errors=errors,
        )


__all__ = ["EmbeddingGenerator"]
