"""Base provider interfaces for embeddings and chat completion."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

__all__ = ["ChatProvider", "EmbeddingProvider"]


class EmbeddingProvider(ABC):
    """Abstract interface for text embedding services."""

    model_name: str = "unknown"

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Return the embedding vector for ``text``."""

    async def close(self) -> None:
        """Release network clients or model handles."""


class ChatProvider(ABC):
    """Abstract interface for chat completion services."""

    model_name: str = "unknown"

    @abstractmethod
    async def complete(self, system_prompt: str, user_message: str) -> str:
        """Return the assistant reply for a system instruction and a user turn."""

    async def close(self) -> None:
        """Release network clients."""
