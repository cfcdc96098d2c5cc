"""Chroma-backed vector index with one collection per namespace."""
from __future__ import annotations

import asyncio
import hashlib
import logging
import re
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

import chromadb

from coderag.errors import CodeRagError, IndexReadFailure, IndexWriteFailure
from coderag.telemetry import emit_vectorstore_event

from .base import SimilarityMatch, VectorIndex, VectorRecord, clamp_score

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from chromadb.api import ClientAPI
    from chromadb.api.models.Collection import Collection

LOGGER = logging.getLogger(__name__)

DISTANCE_METRIC = "cosine"
_MAX_COLLECTION_NAME = 63
_INVALID_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


def collection_name_for(index_name: str, namespace: str) -> str:
    """Map ``namespace`` to a valid, collision-free Chroma collection name."""

    digest = hashlib.sha1(namespace.encode("utf-8")).hexdigest()[:8]
    readable = _INVALID_NAME_CHARS.sub("-", f"{index_name}-{namespace}").strip("-_")
    readable = readable[: _MAX_COLLECTION_NAME - len(digest) - 1].rstrip("-_") or "ns"
    return f"{readable}-{digest}"


class ChromaVectorIndex(VectorIndex):
    """Adapter around a Chroma client; blocking calls run in worker threads."""

    backend_name = "chroma"

    def __init__(
        self,
        *,
        index_name: str,
        persist_dir: str | Path | None = None,
        client: Optional["ClientAPI"] = None,
        consistency_delay: float = 0.0,
    ) -> None:
        super().__init__(consistency_delay=consistency_delay)
        self.index_name = index_name
        self.persist_dir = Path(persist_dir) if persist_dir is not None else None
        self._client = client
        self._collections: Dict[str, "Collection"] = {}

    async def connect(self) -> None:
        if self._client is not None:
            return
        try:
            self._client = await asyncio.to_thread(self._open_client)
        except Exception as exc:
            raise IndexWriteFailure("Failed to initialise Chroma client", cause=exc) from exc

    def _open_client(self) -> "ClientAPI":
        if self.persist_dir is None:
            return chromadb.EphemeralClient()
        self.persist_dir.mkdir(parents=True, exist_ok=True)
        return chromadb.PersistentClient(path=str(self.persist_dir))

    async def close(self) -> None:
        self._collections.clear()
        self._client = None

    @property
    def client(self) -> "ClientAPI":
        if self._client is None:
            raise CodeRagError("Chroma index used before connect()")
        return self._client

    def _existing_names(self) -> List[str]:
        # Newer clients return names, older ones return Collection objects.
        return [getattr(item, "name", item) for item in self.client.list_collections()]

    def _collection(self, namespace: str, *, create: bool) -> Optional["Collection"]:
        name = collection_name_for(self.index_name, namespace)
        collection = self._collections.get(name)
        if collection is not None:
            return collection
        if create:
            collection = self.client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": DISTANCE_METRIC, "index": self.index_name, "namespace": namespace},
            )
        elif name in self._existing_names():
            collection = self.client.get_collection(name=name)
        else:
            return None
        self._collections[name] = collection
        return collection

    def _forget(self, namespace: str) -> None:
        # A failed call may mean the cached handle points at a dropped collection.
        self._collections.pop(collection_name_for(self.index_name, namespace), None)

    def _upsert_sync(self, namespace: str, records: Sequence[VectorRecord]) -> None:
        collection = self._collection(namespace, create=True)
        collection.upsert(
            ids=[record.id for record in records],
            embeddings=[[float(value) for value in record.vector] for record in records],
            metadatas=[dict(record.metadata) for record in records],
        )

    async def upsert(self, namespace: str, records: Sequence[VectorRecord]) -> int:
        if not records:
            return 0
        started = time.perf_counter()
        try:
            await asyncio.to_thread(self._upsert_sync, namespace, list(records))
        except CodeRagError:
            raise
        except Exception as exc:
            self._forget(namespace)
            emit_vectorstore_event(
                "vectorstore.upsert", backend=self.backend_name, namespace=namespace, count=len(records), error=exc
            )
            raise IndexWriteFailure(f"Chroma upsert into {namespace!r} failed", cause=exc) from exc
        emit_vectorstore_event(
            "vectorstore.upsert",
            backend=self.backend_name,
            namespace=namespace,
            count=len(records),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return len(records)

    def _query_sync(self, namespace: str, vector: List[float], top_k: int) -> List[SimilarityMatch]:
        collection = self._collection(namespace, create=False)
        if collection is None:
            return []
        available = collection.count()
        if available == 0:
            return []
        result: Dict[str, Any] = collection.query(
            query_embeddings=[vector],
            n_results=min(top_k, available),
            include=["metadatas", "distances"],
        )
        ids = (result.get("ids") or [[]])[0]
        metadatas = (result.get("metadatas") or [[]])[0] or [None] * len(ids)
        distances = (result.get("distances") or [[]])[0] or [None] * len(ids)

        matches = [
            SimilarityMatch(
                id=str(record_id),
                score=clamp_score(1.0 - float(distance)) if distance is not None else 0.0,
                metadata={key: str(value) for key, value in (metadata or {}).items()},
            )
            for record_id, metadata, distance in zip(ids, metadatas, distances)
        ]
        matches.sort(key=lambda match: match.score, reverse=True)
        return matches

    async def query(self, namespace: str, vector: Sequence[float], top_k: int) -> List[SimilarityMatch]:
        if top_k <= 0 or vector is None or len(vector) == 0:
            return []
        started = time.perf_counter()
        try:
            matches = await asyncio.to_thread(self._query_sync, namespace, [float(v) for v in vector], top_k)
        except CodeRagError:
            raise
        except Exception as exc:
            self._forget(namespace)
            emit_vectorstore_event("vectorstore.query", backend=self.backend_name, namespace=namespace, count=0, error=exc)
            raise IndexReadFailure(f"Chroma query against {namespace!r} failed", cause=exc) from exc
        emit_vectorstore_event(
            "vectorstore.query",
            backend=self.backend_name,
            namespace=namespace,
            count=len(matches),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return matches

    def _delete_namespace_sync(self, namespace: str) -> None:
        name = collection_name_for(self.index_name, namespace)
        self._collections.pop(name, None)
        if name in self._existing_names():
            self.client.delete_collection(name=name)

    async def delete_namespace(self, namespace: str) -> None:
        try:
            await asyncio.to_thread(self._delete_namespace_sync, namespace)
        except CodeRagError:
            raise
        except Exception as exc:
            raise IndexWriteFailure(f"Failed to delete namespace {namespace!r}", cause=exc) from exc
        emit_vectorstore_event("vectorstore.delete_namespace", backend=self.backend_name, namespace=namespace, count=0)

    def _owned_names(self) -> List[str]:
        """Names of the collections whose metadata tags them with this index."""

        owned: List[str] = []
        for item in self.client.list_collections():
            name = getattr(item, "name", item)
            metadata = getattr(item, "metadata", None)
            if metadata is None:
                metadata = self.client.get_collection(name=name).metadata
            if (metadata or {}).get("index") == self.index_name:
                owned.append(name)
        return owned

    def _delete_index_sync(self) -> int:
        removed = 0
        for name in self._owned_names():
            self.client.delete_collection(name=name)
            removed += 1
        self._collections.clear()
        return removed

    async def delete_index(self) -> None:
        try:
            removed = await asyncio.to_thread(self._delete_index_sync)
        except CodeRagError:
            raise
        except Exception as exc:
            raise IndexWriteFailure("Failed to delete the vector index", cause=exc) from exc
        LOGGER.warning("Deleted %d Chroma collections for index %s", removed, self.index_name)
        emit_vectorstore_event("vectorstore.delete_index", backend=self.backend_name, namespace=None, count=removed)

    def _count_sync(self, namespace: str) -> int:
        collection = self._collection(namespace, create=False)
        return 0 if collection is None else int(collection.count())

    async def count(self, namespace: str) -> int:
        try:
            return await asyncio.to_thread(self._count_sync, namespace)
        except CodeRagError:
            raise
        except Exception as exc:
            self._forget(namespace)
            raise IndexReadFailure(f"Failed to count records in {namespace!r}", cause=exc) from exc


__all__ = ["ChromaVectorIndex", "collection_name_for"]
