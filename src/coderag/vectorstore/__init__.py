"""Vector index backends selected through settings."""

from __future__ import annotations

from coderag.config import Settings

from .base import SimilarityMatch, VectorIndex, VectorRecord
from .memory_store import InMemoryVectorIndex


def create_vector_index(settings: Settings) -> VectorIndex:
    """Return an unconnected vector index for ``settings.vector_store``."""

    backend = settings.vector_store
    if backend in {"memory", "mock"}:
        return InMemoryVectorIndex(consistency_delay=settings.vector_consistency_delay)
    if backend == "chroma":
        from .chroma_store import ChromaVectorIndex

        return ChromaVectorIndex(
            index_name=settings.vector_index_name,
            persist_dir=settings.chroma_persist_dir,
            consistency_delay=settings.vector_consistency_delay,
        )
    raise ValueError(f"Unsupported VECTOR_STORE backend: {backend!r}")


__all__ = [
    "InMemoryVectorIndex",
    "SimilarityMatch",
    "VectorIndex",
    "VectorRecord",
    "create_vector_index",
]
