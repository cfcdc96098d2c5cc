"""Structured lifecycle events for the indexing and retrieval pipeline."""

from __future__ import annotations

import logging
import time
import traceback
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Optional

LOGGER = logging.getLogger("coderag.telemetry")


def _format_exception(error: BaseException) -> str:
    return "".join(traceback.format_exception(error.__class__, error, error.__traceback__))


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    req_id: str | None = None,
    session_id: str | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Emit a structured log event with the agreed-upon schema."""

    logger = logger or LOGGER
    event: dict[str, Any] = {"step": step, "module": logger.name}
    if req_id:
        event["req_id"] = req_id
    if session_id:
        event["session_id"] = session_id
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details
    event.update(payload)

    exc_info = None
    if exc is not None:
        if isinstance(exc, BaseException):
            event["exc"] = _format_exception(exc)
            exc_info = (exc.__class__, exc, exc.__traceback__)
        else:
            event["exc"] = str(exc)

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(event, exc_info=exc_info)


def emit_embeddings_event(
    *, model: str, count: int, duration_ms: float, errors: list[str] | None = None
) -> None:
    details = {
        "model": model,
        "count": count,
        "errors": errors or [],
        "per_item_ms": round(duration_ms / count, 3) if count else None,
    }
    level = "warning" if errors else "info"
    log_event(LOGGER, "embeddings.compute", level=level, duration_ms=duration_ms, details=details)


def emit_vectorstore_event(
    step: str,
    *,
    backend: str,
    namespace: str | None,
    count: int,
    duration_ms: float | None = None,
    error: BaseException | None = None,
) -> None:
    details = {"backend": backend, "namespace": namespace, "count": count}
    level = "error" if error else "info"
    log_event(LOGGER, step, level=level, duration_ms=duration_ms, details=details, exc=error)


def emit_retriever_event(
    *,
    session_id: str,
    query: str,
    top_k: int,
    results: list[dict[str, Any]],
    duration_ms: float,
) -> None:
    details = {
        "query_preview": query[:120],
        "top_k": top_k,
        "results": results,
    }
    log_event(LOGGER, "retriever.search", session_id=session_id, duration_ms=duration_ms, details=details)


def emit_prompt_event(
    *,
    session_id: str,
    sources: Iterable[str],
    context_chars: int,
    history_turns: int,
) -> None:
    details = {
        "sources": list(sources),
        "context_chars": context_chars,
        "history_turns": history_turns,
    }
    log_event(LOGGER, "prompt.compose", session_id=session_id, details=details)


def emit_chat_event(
    *,
    req_id: str,
    session_id: str,
    model: str,
    duration_ms: float,
    answer_preview: str | None = None,
    error: BaseException | None = None,
) -> None:
    details = {
        "model": model,
        "answer_preview": (answer_preview or "")[:200],
    }
    level = "error" if error else "info"
    log_event(
        LOGGER,
        "chat.completion",
        level=level,
        req_id=req_id,
        session_id=session_id,
        duration_ms=duration_ms,
        details=details,
        exc=error,
    )


def emit_index_event(
    step: str,
    *,
    session_id: str,
    file_path: str,
    extracted: int | None = None,
    embedded: int | None = None,
    upserted: int | None = None,
    duration_ms: float | None = None,
    error: BaseException | None = None,
) -> None:
    details = {
        "file": file_path,
        "extracted": extracted,
        "embedded": embedded,
        "upserted": upserted,
    }
    level = "error" if error else "info"
    log_event(LOGGER, step, level=level, session_id=session_id, duration_ms=duration_ms, details=details, exc=error)


def emit_history_event(step: str, *, session_id: str, length: int | None = None) -> None:
    log_event(LOGGER, step, level="debug", session_id=session_id, details={"length": length})


def emit_exception(
    *,
    module: str,
    error: BaseException,
    req_id: str | None = None,
    session_id: str | None = None,
) -> None:
    log_event(
        LOGGER,
        "exception",
        level="error",
        req_id=req_id,
        session_id=session_id,
        details={"module": module},
        exc=error,
    )


@contextmanager
def traced_duration(step: str, *, logger: Optional[logging.Logger] = None, **fields: Any) -> Iterator[None]:
    start = time.perf_counter()
    log_event(logger or LOGGER, f"{step}.start", details=fields)
    try:
        yield
    except Exception as error:
        log_event(logger or LOGGER, f"{step}.error", level="error", details=fields, exc=error)
        raise
    finally:
        end = time.perf_counter()
        log_event(
            logger or LOGGER,
            f"{step}.complete",
            duration_ms=(end - start) * 1000.0,
            details=fields,
        )


__all__ = [
    "emit_chat_event",
    "emit_embeddings_event",
    "emit_exception",
    "emit_history_event",
    "emit_index_event",
    "emit_prompt_event",
    "emit_retriever_event",
    "emit_vectorstore_event",
    "log_event",
    "traced_duration",
]
