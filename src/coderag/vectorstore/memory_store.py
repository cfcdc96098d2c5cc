"""In-process vector index used for tests and single-process development."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Sequence

import numpy as np

from coderag.errors import IndexReadFailure, IndexWriteFailure
from coderag.telemetry import emit_vectorstore_event

from .base import SimilarityMatch, VectorIndex, VectorRecord, clamp_score

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class _StoredVector:
    vector: np.ndarray
    norm: float
    metadata: Dict[str, str]


class InMemoryVectorIndex(VectorIndex):
    """Cosine-similarity index keeping one dictionary per namespace."""

    backend_name = "memory"

    def __init__(self, *, consistency_delay: float = 0.0) -> None:
        super().__init__(consistency_delay=consistency_delay)
        self._namespaces: Dict[str, Dict[str, _StoredVector]] = {}

    def namespaces(self) -> List[str]:
        return sorted(name for name, items in self._namespaces.items() if items)

    async def upsert(self, namespace: str, records: Sequence[VectorRecord]) -> int:
        if not records:
            return 0
        started = time.perf_counter()
        bucket = self._namespaces.get(namespace, {})
        dimension = _bucket_dimension(bucket)
        # The whole batch is validated before the namespace changes.
        staged: Dict[str, _StoredVector] = {}
        for record in records:
            try:
                vector = np.asarray(record.vector, dtype=np.float64)
            except (TypeError, ValueError) as exc:
                raise IndexWriteFailure(f"Record {record.id!r} has an invalid vector", cause=exc) from exc
            if vector.ndim != 1 or vector.size == 0:
                raise IndexWriteFailure(f"Record {record.id!r} has an invalid vector")
            if dimension is None:
                dimension = vector.size
            elif vector.size != dimension:
                raise IndexWriteFailure(
                    f"Record {record.id!r} has dimension {vector.size}, namespace expects {dimension}"
                )
            staged[record.id] = _StoredVector(
                vector=vector,
                norm=float(np.linalg.norm(vector)),
                metadata=dict(record.metadata),
            )
        self._namespaces.setdefault(namespace, {}).update(staged)
        emit_vectorstore_event(
            "vectorstore.upsert",
            backend=self.backend_name,
            namespace=namespace,
            count=len(records),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return len(records)

    async def query(self, namespace: str, vector: Sequence[float], top_k: int) -> List[SimilarityMatch]:
        bucket = self._namespaces.get(namespace)
        if not bucket or top_k <= 0 or vector is None or len(vector) == 0:
            return []

        started = time.perf_counter()
        query_vector = np.asarray(vector, dtype=np.float64)
        dimension = _bucket_dimension(bucket)
        if query_vector.size != dimension:
            raise IndexReadFailure(f"Query dimension {query_vector.size} does not match namespace dimension {dimension}")

        query_norm = float(np.linalg.norm(query_vector))
        scored: List[SimilarityMatch] = []
        for record_id, stored in bucket.items():
            if query_norm == 0.0 or stored.norm == 0.0:
                similarity = 0.0
            else:
                similarity = float(np.dot(query_vector, stored.vector) / (query_norm * stored.norm))
            scored.append(SimilarityMatch(id=record_id, score=clamp_score(similarity), metadata=dict(stored.metadata)))

        scored.sort(key=lambda match: match.score, reverse=True)
        results = scored[:top_k]
        emit_vectorstore_event(
            "vectorstore.query",
            backend=self.backend_name,
            namespace=namespace,
            count=len(results),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return results

    async def delete_namespace(self, namespace: str) -> None:
        removed = self._namespaces.pop(namespace, None)
        emit_vectorstore_event(
            "vectorstore.delete_namespace",
            backend=self.backend_name,
            namespace=namespace,
            count=len(removed or {}),
        )

    async def delete_index(self) -> None:
        total = sum(len(bucket) for bucket in self._namespaces.values())
        self._namespaces.clear()
        emit_vectorstore_event("vectorstore.delete_index", backend=self.backend_name, namespace=None, count=total)

    async def count(self, namespace: str) -> int:
        return len(self._namespaces.get(namespace, {}))


def _bucket_dimension(bucket: Dict[str, _StoredVector]) -> int | None:
    for stored in bucket.values():
        return int(stored.vector.size)
    return None


__all__ = ["InMemoryVectorIndex"]
