"""Deterministic embedding provider for tests and offline development."""
from __future__ import annotations

import hashlib
import random
from typing import List

from .base import EmbeddingProvider


class DeterministicEmbeddingProvider(EmbeddingProvider):
    """Return reproducible vectors derived from a hash of each text."""

    model_name = "deterministic-fallback"

    def __init__(self, dimension: int = 384) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be a positive integer")
        self.dimension = dimension

    async def embed(self, text: str) -> List[float]:
        seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest(), "big")
        rng = random.Random(seed)
        return [rng.uniform(-1.0, 1.0) for _ in range(self.dimension)]
