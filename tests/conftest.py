"""Shared fixtures: deterministic providers and in-memory backends."""
from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

import pytest

from coderag.config import Settings
from coderag.embeddings import EmbeddingGenerator
from coderag.history import HistoryWindow, InMemoryListStore
from coderag.orchestrator import RetrievalOrchestrator
from coderag.parsing import SourceParser
from coderag.providers import ChatProvider, DeterministicEmbeddingProvider
from coderag.vectorstore import InMemoryVectorIndex
from coderag.workspace import CodebaseWorkspace

TEST_DIMENSION = 16


class RecordingChatProvider(ChatProvider):
    """Chat double that remembers every prompt it was sent."""

    model_name = "recording"

    def __init__(self, reply: str = "What do you think this function returns?") -> None:
        self.reply = reply
        self.calls: List[Tuple[str, str]] = []

    async def complete(self, system_prompt: str, user_message: str) -> str:
        self.calls.append((system_prompt, user_message))
        return self.reply


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        embedding_dimension=TEST_DIMENSION,
        codebase_dir=tmp_path / "codebases",
        chroma_persist_dir=tmp_path / "chroma",
        service_timeout=5.0,
    )


@pytest.fixture
def chat() -> RecordingChatProvider:
    return RecordingChatProvider()


@pytest.fixture
def workspace(settings: Settings) -> CodebaseWorkspace:
    return CodebaseWorkspace(settings.codebase_dir)


@pytest.fixture
def orchestrator(settings: Settings, chat: RecordingChatProvider, workspace: CodebaseWorkspace) -> RetrievalOrchestrator:
    return RetrievalOrchestrator(
        parser=SourceParser(),
        embeddings=EmbeddingGenerator(DeterministicEmbeddingProvider(TEST_DIMENSION), timeout=5.0),
        vector_index=InMemoryVectorIndex(),
        history=HistoryWindow(InMemoryListStore()),
        chat=chat,
        workspace=workspace,
        top_k=settings.retrieval_top_k,
        timeout=settings.service_timeout,
    )
