"""Runtime settings resolved from environment variables."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

LOGGER = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-ada-002"
DEFAULT_EMBEDDING_DIMENSION = 1536
DEFAULT_CHAT_MODEL = "gpt-3.5-turbo"
DEFAULT_INDEX_NAME = "syntaxsorcerer"
DEFAULT_HISTORY_MAX_TURNS = 6
DEFAULT_TOP_K = 3


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_from_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _float_from_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


@dataclass(slots=True)
class Settings:
    """All knobs consumed by the pipeline factories."""

    embedding_provider: str = "deterministic"
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    embedding_dimension: int = DEFAULT_EMBEDDING_DIMENSION
    openai_api_key: Optional[str] = None
    chat_provider: str = "stub"
    chat_model: str = DEFAULT_CHAT_MODEL
    chat_max_tokens: int = 1500
    chat_temperature: float = 0.7
    vector_store: str = "memory"
    vector_index_name: str = DEFAULT_INDEX_NAME
    chroma_persist_dir: Path = field(default_factory=lambda: Path("chroma_db"))
    vector_consistency_delay: float = 0.0
    history_store: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    history_max_turns: int = DEFAULT_HISTORY_MAX_TURNS
    retrieval_top_k: int = DEFAULT_TOP_K
    service_timeout: float = 30.0
    index_concurrency: int = 4
    codebase_dir: Path = field(default_factory=lambda: Path("codebases"))
    parser_strict: bool = True
    unit_id_strategy: str = "name"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment."""

        return cls(
            embedding_provider=_env_str("EMBEDDING_PROVIDER", "deterministic").lower(),
            embedding_model=_env_str("EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL),
            embedding_dimension=_int_from_env("EMBEDDING_DIMENSION", DEFAULT_EMBEDDING_DIMENSION),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            chat_provider=_env_str("CHAT_PROVIDER", "stub").lower(),
            chat_model=_env_str("CHAT_MODEL", DEFAULT_CHAT_MODEL),
            chat_max_tokens=_int_from_env("CHAT_MAX_TOKENS", 1500),
            chat_temperature=_float_from_env("CHAT_TEMPERATURE", 0.7),
            vector_store=_env_str("VECTOR_STORE", "memory").lower(),
            vector_index_name=_env_str("VECTOR_INDEX_NAME", DEFAULT_INDEX_NAME),
            chroma_persist_dir=Path(_env_str("CHROMA_PERSIST_DIR", "chroma_db")),
            vector_consistency_delay=_float_from_env("VECTOR_CONSISTENCY_DELAY", 0.0),
            history_store=_env_str("HISTORY_STORE", "memory").lower(),
            redis_url=_env_str("REDIS_URL", "redis://localhost:6379/0"),
            history_max_turns=_int_from_env("HISTORY_MAX_TURNS", DEFAULT_HISTORY_MAX_TURNS),
            retrieval_top_k=_int_from_env("RETRIEVAL_TOP_K", DEFAULT_TOP_K),
            service_timeout=_float_from_env("SERVICE_TIMEOUT_SECONDS", 30.0),
            index_concurrency=max(1, _int_from_env("INDEX_CONCURRENCY", 4)),
            codebase_dir=Path(_env_str("CODEBASE_DIR", "codebases")),
            parser_strict=_env_flag("PARSER_STRICT", True),
            unit_id_strategy=_env_str("UNIT_ID_STRATEGY", "name").lower(),
        )


__all__ = ["Settings"]
