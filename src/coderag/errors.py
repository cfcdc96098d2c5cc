"""Exception hierarchy shared by the indexing and retrieval pipeline."""
from __future__ import annotations


class CodeRagError(RuntimeError):
    """Base class for all pipeline errors."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class ParseFailure(CodeRagError):
    """Raised when a source file cannot be read or turned into a syntax tree."""

    def __init__(self, message: str, *, file_path: str | None = None, cause: Exception | None = None) -> None:
        super().__init__(message, cause=cause)
        self.file_path = file_path


class EmbeddingFailure(CodeRagError):
    """Raised when the embedding service does not return a vector."""


class IndexWriteFailure(CodeRagError):
    """Raised when an upsert or delete against the vector index fails."""


class IndexReadFailure(CodeRagError):
    """Raised when a similarity query against the vector index fails."""


class HistoryStoreFailure(CodeRagError):
    """Raised when the list-store backing the history window fails."""


class ChatCompletionFailure(CodeRagError):
    """Raised when the chat completion service fails or returns nothing."""


class SessionNotFound(CodeRagError):
    """Raised when an operation requires a session id and none was supplied."""


class ServiceTimeout(CodeRagError):
    """Raised when an external service does not answer within the deadline."""

    def __init__(self, service: str, timeout: float, *, cause: Exception | None = None) -> None:
        super().__init__(f"{service} did not respond within {timeout:.1f}s", cause=cause)
        self.service = service
        self.timeout = timeout


__all__ = [
    "ChatCompletionFailure",
    "CodeRagError",
    "EmbeddingFailure",
    "HistoryStoreFailure",
    "IndexReadFailure",
    "IndexWriteFailure",
    "ParseFailure",
    "ServiceTimeout",
    "SessionNotFound",
]
