"""Local embedding provider backed by Sentence Transformers."""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import List, Optional

from sentence_transformers import SentenceTransformer

from .base import EmbeddingProvider

LOGGER = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "sentence-transformers/all-MiniLM-L6-v2"


class SentenceTransformerEmbeddingProvider(EmbeddingProvider):
    """Lazy-loading wrapper around a ``SentenceTransformer`` model."""

    def __init__(self, model_name_or_path: str = DEFAULT_MODEL_NAME, *, device: str | None = None) -> None:
        self.model_name = model_name_or_path
        self._device = device
        self._model: Optional[SentenceTransformer] = None
        self._lock = threading.Lock()

    def _ensure_loaded(self) -> SentenceTransformer:
        if self._model is not None:
            return self._model
        with self._lock:
            if self._model is None:
                LOGGER.info("Loading sentence-transformers model %s", self.model_name)
                self._model = SentenceTransformer(self.model_name, device=self._device)
        return self._model

    @property
    def dimension(self) -> int:
        return int(self._ensure_loaded().get_sentence_embedding_dimension())

    def _encode(self, text: str) -> List[float]:
        model = self._ensure_loaded()
        embedding = model.encode(
            [text],
            convert_to_numpy=True,
            show_progress_bar=False,
            normalize_embeddings=False,
        )
        return embedding[0].tolist()

    async def embed(self, text: str) -> List[float]:
        return await asyncio.to_thread(self._encode, text)

    async def close(self) -> None:
        self._model = None
