"""Embedding and chat providers plus settings-driven factories."""
from __future__ import annotations

import logging

from coderag.config import Settings

from .base import ChatProvider, EmbeddingProvider
from .deterministic import DeterministicEmbeddingProvider
from .stub_chat import StubChatProvider

LOGGER = logging.getLogger(__name__)


def create_embedding_provider(settings: Settings) -> EmbeddingProvider:
    """Instantiate the embedding backend named by ``settings.embedding_provider``."""

    backend = settings.embedding_provider
    if backend == "openai":
        from .openai_provider import OpenAIEmbeddingProvider

        return OpenAIEmbeddingProvider(api_key=settings.openai_api_key, model=settings.embedding_model)
    if backend in {"sentence-transformers", "sentence_transformers", "local"}:
        from .sentence_transformer import SentenceTransformerEmbeddingProvider

        return SentenceTransformerEmbeddingProvider(settings.embedding_model)
    if backend != "deterministic":
        LOGGER.warning("Unknown embedding provider %r; using deterministic embeddings", backend)
    return DeterministicEmbeddingProvider(settings.embedding_dimension)


def create_chat_provider(settings: Settings) -> ChatProvider:
    """Instantiate the chat backend named by ``settings.chat_provider``."""

    backend = settings.chat_provider
    if backend == "openai":
        from .openai_provider import OpenAIChatProvider

        return OpenAIChatProvider(
            api_key=settings.openai_api_key,
            model=settings.chat_model,
            max_tokens=settings.chat_max_tokens,
            temperature=settings.chat_temperature,
        )
    if backend != "stub":
        LOGGER.warning("Unknown chat provider %r; using the stub chat provider", backend)
    return StubChatProvider()


__all__ = [
    "ChatProvider",
    "DeterministicEmbeddingProvider",
    "EmbeddingProvider",
    "StubChatProvider",
    "create_chat_provider",
    "create_embedding_provider",
]
