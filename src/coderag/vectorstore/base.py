"""Records, matches and the abstract namespace-partitioned vector index."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from coderag.parsing.models import CodeUnit


@dataclass(slots=True)
class VectorRecord:
    """One ``(id, vector, metadata)`` triple written to a namespace."""

    id: str
    vector: List[float]
    metadata: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_unit(cls, unit: CodeUnit, *, record_id: str | None = None) -> "VectorRecord":
        if not unit.embedding:
            raise ValueError(f"Unit {unit.id!r} has no embedding")
        return cls(id=record_id or unit.id, vector=list(unit.embedding), metadata=unit.metadata())


@dataclass(frozen=True)
class SimilarityMatch:
    """A query hit; ``score`` is cosine similarity clamped to ``[0, 1]``."""

    id: str
    score: float
    metadata: Dict[str, str]

    @property
    def name(self) -> str:
        return str(self.metadata.get("name") or self.id)

    @property
    def file_path(self) -> str:
        return str(self.metadata.get("file_path", ""))

    @property
    def kind(self) -> str:
        return str(self.metadata.get("kind", ""))


def clamp_score(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


class VectorIndex(ABC):
    """Namespace-partitioned similarity index.

    ``consistency_delay`` is the number of seconds a caller should wait after
    :meth:`upsert` before relying on queries to observe the write.
    """

    backend_name = "abstract"

    def __init__(self, *, consistency_delay: float = 0.0) -> None:
        self.consistency_delay = max(0.0, consistency_delay)

    async def connect(self) -> None:
        """Open backend connections. Local backends have nothing to do."""

    async def close(self) -> None:
        """Release backend connections."""

    @abstractmethod
    async def upsert(self, namespace: str, records: Sequence[VectorRecord]) -> int:
        """Insert or replace ``records`` in ``namespace``; return the count written."""

    @abstractmethod
    async def query(self, namespace: str, vector: Sequence[float], top_k: int) -> List[SimilarityMatch]:
        """Return up to ``top_k`` matches ordered by descending score."""

    @abstractmethod
    async def delete_namespace(self, namespace: str) -> None:
        """Drop every record in ``namespace``; a missing namespace is a no-op."""

    @abstractmethod
    async def delete_index(self) -> None:
        """Drop every namespace. Reserved for whole-system teardown."""

    @abstractmethod
    async def count(self, namespace: str) -> int:
        """Return the number of records stored under ``namespace``."""


__all__ = ["SimilarityMatch", "VectorIndex", "VectorRecord", "clamp_score"]
