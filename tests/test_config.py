from __future__ import annotations

from pathlib import Path

import pytest

from coderag.config import Settings


def test_defaults_are_offline_and_local(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("EMBEDDING_PROVIDER", "CHAT_PROVIDER", "VECTOR_STORE", "HISTORY_STORE", "RETRIEVAL_TOP_K"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.embedding_provider == "deterministic"
    assert settings.chat_provider == "stub"
    assert settings.vector_store == "memory"
    assert settings.history_store == "memory"
    assert settings.retrieval_top_k == 3
    assert settings.history_max_turns == 6
    assert settings.parser_strict is True


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EMBEDDING_PROVIDER", "OpenAI")
    monkeypatch.setenv("VECTOR_STORE", "chroma")
    monkeypatch.setenv("CHROMA_PERSIST_DIR", "/tmp/chroma-test")
    monkeypatch.setenv("RETRIEVAL_TOP_K", "5")
    monkeypatch.setenv("CHAT_TEMPERATURE", "0.1")
    monkeypatch.setenv("PARSER_STRICT", "false")
    monkeypatch.setenv("INDEX_CONCURRENCY", "0")

    settings = Settings.from_env()

    assert settings.embedding_provider == "openai"
    assert settings.vector_store == "chroma"
    assert settings.chroma_persist_dir == Path("/tmp/chroma-test")
    assert settings.retrieval_top_k == 5
    assert settings.chat_temperature == pytest.approx(0.1)
    assert settings.parser_strict is False
    assert settings.index_concurrency == 1


def test_invalid_numbers_fall_back_to_defaults(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
    monkeypatch.setenv("RETRIEVAL_TOP_K", "three")
    monkeypatch.setenv("SERVICE_TIMEOUT_SECONDS", "soon")

    with caplog.at_level("WARNING"):
        settings = Settings.from_env()

    assert settings.retrieval_top_k == 3
    assert settings.service_timeout == 30.0
    assert "RETRIEVAL_TOP_K" in caplog.text
