"""Indexing and grounded question answering over a session's codebase."""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

from coderag.config import Settings
from coderag.embeddings import EmbeddingGenerator
from coderag.errors import (
    ChatCompletionFailure,
    CodeRagError,
    IndexReadFailure,
    IndexWriteFailure,
    SessionNotFound,
)
from coderag.history import HistoryWindow, create_list_store
from coderag.indexing import IndexingJob, IndexingTracker
from coderag.logging_config import AUDIT_LOGGER_NAME
from coderag.parsing import CodeUnit, SourceParser
from coderag.prompt_builder import (
    NO_MATCHES_MESSAGE,
    SourceFile,
    build_grounding,
    build_system_prompt,
    render_listing,
)
from coderag.providers import ChatProvider, create_chat_provider, create_embedding_provider
from coderag.telemetry import (
    emit_chat_event,
    emit_exception,
    emit_index_event,
    emit_prompt_event,
    emit_retriever_event,
)
from coderag.timeouts import with_timeout
from coderag.vectorstore import SimilarityMatch, VectorIndex, VectorRecord, create_vector_index
from coderag.workspace import CodebaseWorkspace, LocalFileReader, namespace_for

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)


class FileReader(Protocol):
    async def read(self, path: str | Path) -> str: ...


@dataclass(slots=True)
class IndexFileResult:
    file_path: str
    extracted: int
    embedded: int
    upserted: int


@dataclass(slots=True)
class IndexBatchResult:
    files: List[IndexFileResult] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def upserted(self) -> int:
        return sum(result.upserted for result in self.files)


@dataclass(slots=True)
class SearchResult:
    matches: List[SimilarityMatch]
    listing: str
    files: List[SourceFile]


@dataclass(slots=True)
class AnswerResult:
    """Outcome of :meth:`RetrievalOrchestrator.answer_query`."""

    session_id: str
    question: str
    answer: str
    listing: str
    files: List[str]
    matches: List[SimilarityMatch]

    @property
    def grounded(self) -> bool:
        return bool(self.matches)


@dataclass(slots=True)
class CodebaseStatus:
    session_id: str
    active: bool
    vectors: int
    indexing: Optional[Dict[str, Any]]


def _require_session(session_id: Optional[str]) -> str:
    if session_id is None or not str(session_id).strip():
        raise SessionNotFound("Session not found")
    return str(session_id).strip()


class RetrievalOrchestrator:
    """Compose extraction, embeddings, the vector index and the history window.

    Every collaborator is injected; :meth:`from_settings` wires the defaults.
    """

    def __init__(
        self,
        *,
        parser: SourceParser,
        embeddings: EmbeddingGenerator,
        vector_index: VectorIndex,
        history: HistoryWindow,
        chat: ChatProvider,
        file_reader: Optional[FileReader] = None,
        workspace: Optional[CodebaseWorkspace] = None,
        tracker: Optional[IndexingTracker] = None,
        top_k: int = 3,
        timeout: float | None = 30.0,
        concurrency: int = 4,
        unit_id_strategy: str = "name",
    ) -> None:
        if unit_id_strategy not in {"name", "qualified"}:
            raise ValueError(f"Unknown unit id strategy: {unit_id_strategy!r}")
        self.parser = parser
        self.embeddings = embeddings
        self.vector_index = vector_index
        self.history = history
        self.chat = chat
        self.file_reader = file_reader or LocalFileReader()
        self.workspace = workspace
        self.tracker = tracker or IndexingTracker()
        self.top_k = top_k
        self.timeout = timeout
        self.concurrency = max(1, concurrency)
        self.unit_id_strategy = unit_id_strategy

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "RetrievalOrchestrator":
        settings = settings or Settings.from_env()
        return cls(
            parser=SourceParser(strict=settings.parser_strict),
            embeddings=EmbeddingGenerator(create_embedding_provider(settings), timeout=settings.service_timeout),
            vector_index=create_vector_index(settings),
            history=HistoryWindow(
                create_list_store(settings),
                max_len=settings.history_max_turns,
                timeout=settings.service_timeout,
            ),
            chat=create_chat_provider(settings),
            workspace=CodebaseWorkspace(settings.codebase_dir),
            top_k=settings.retrieval_top_k,
            timeout=settings.service_timeout,
            concurrency=settings.index_concurrency,
            unit_id_strategy=settings.unit_id_strategy,
        )

    async def connect(self) -> None:
        await self.vector_index.connect()
        await self.history.connect()

    async def close(self) -> None:
        await self.tracker.close()
        await self.vector_index.close()
        await self.history.close()
        await self.embeddings.close()
        await self.chat.close()

    async def __aenter__(self) -> "RetrievalOrchestrator":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # Write path

    def _record_id(self, unit: CodeUnit) -> str:
        if self.unit_id_strategy == "qualified":
            return f"{unit.file_path}:{unit.id}"
        return unit.id

    def _records_for(self, units: Sequence[CodeUnit]) -> List[VectorRecord]:
        records: List[VectorRecord] = []
        for unit in units:
            if not unit.has_embedding:
                continue
            record = VectorRecord.from_unit(unit, record_id=self._record_id(unit))
            if self.unit_id_strategy == "qualified":
                record.metadata["name"] = unit.id
            records.append(record)
        return records

    async def _upsert(self, namespace: str, records: List[VectorRecord]) -> int:
        if not records:
            return 0
        try:
            written = await with_timeout(
                self.vector_index.upsert(namespace, records), service="vector index", timeout=self.timeout
            )
        except CodeRagError:
            raise
        except Exception as exc:
            raise IndexWriteFailure(f"Upsert into {namespace!r} failed", cause=exc) from exc
        if self.vector_index.consistency_delay:
            await asyncio.sleep(self.vector_index.consistency_delay)
        return written

    async def index_file(self, session_id: str, path: str | Path, root: str | Path) -> IndexFileResult:
        """Extract, embed and upsert the units of one file.

        Units whose embedding failed are skipped; parse and index errors propagate.
        """

        session_id = _require_session(session_id)
        namespace = namespace_for(session_id)
        started = time.perf_counter()

        units = await with_timeout(self.parser.parse_file(path, root), service="parser", timeout=self.timeout)
        file_path = units[0].file_path if units else Path(path).name
        await self.embeddings.embed_units(units)
        records = self._records_for(units)
        upserted = await self._upsert(namespace, records)

        result = IndexFileResult(file_path=file_path, extracted=len(units), embedded=len(records), upserted=upserted)
        emit_index_event(
            "index.file",
            session_id=session_id,
            file_path=file_path,
            extracted=result.extracted,
            embedded=result.embedded,
            upserted=result.upserted,
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        AUDIT_LOGGER.info(
            {
                "event": "index_file",
                "session_id": session_id,
                "namespace": namespace,
                "file": file_path,
                "units": result.upserted,
            }
        )
        return result

    async def index_files(
        self,
        session_id: str,
        paths: Sequence[str | Path],
        root: str | Path,
        *,
        job: Optional[IndexingJob] = None,
    ) -> IndexBatchResult:
        """Index ``paths`` concurrently; one file failing never stops the others."""

        session_id = _require_session(session_id)
        batch = IndexBatchResult()
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _one(path: str | Path) -> None:
            async with semaphore:
                try:
                    result = await self.index_file(session_id, path, root)
                except Exception as error:
                    display = str(getattr(error, "file_path", None) or path)
                    batch.failures[display] = str(error)
                    emit_index_event("index.file", session_id=session_id, file_path=display, error=error)
                    if job is not None:
                        job.files_failed += 1
                        job.errors.append(f"{display}: {error}")
                    return
                batch.files.append(result)
                if job is not None:
                    job.files_indexed += 1
                    job.units_upserted += result.upserted

        await asyncio.gather(*(_one(path) for path in paths))
        LOGGER.info(
            "Indexed %d/%d files for session %s (%d units, %d failures)",
            len(batch.files),
            len(paths),
            session_id,
            batch.upserted,
            len(batch.failures),
        )
        return batch

    def _require_workspace(self) -> CodebaseWorkspace:
        if self.workspace is None:
            raise CodeRagError("No codebase workspace configured")
        return self.workspace

    def submit_codebase(self, session_id: str) -> IndexingJob:
        """Start indexing the session's uploaded codebase and return at once."""

        session_id = _require_session(session_id)
        workspace = self._require_workspace()
        if not workspace.exists(session_id):
            raise CodeRagError(f"No codebase uploaded for session {session_id}")
        root = workspace.root_for(session_id)
        paths = list(workspace.iter_source_files(session_id))

        async def _body(job: IndexingJob) -> None:
            job.files_total = len(paths)
            await self.index_files(session_id, paths, root, job=job)

        return self.tracker.submit(namespace_for(session_id), _body)

    async def extract_codebase(self, session_id: str, *, embed: bool = True) -> List[CodeUnit]:
        """Return every unit in the session's codebase without touching the index."""

        session_id = _require_session(session_id)
        workspace = self._require_workspace()
        root = workspace.root_for(session_id)
        units: List[CodeUnit] = []
        for path in workspace.iter_source_files(session_id):
            try:
                units.extend(await self.parser.parse_file(path, root))
            except CodeRagError as error:
                LOGGER.warning("Skipping %s: %s", path, error)
        if embed:
            await self.embeddings.embed_units(units)
        return units

    # Read path

    async def _query(self, namespace: str, vector: List[float]) -> List[SimilarityMatch]:
        try:
            return await with_timeout(
                self.vector_index.query(namespace, vector, self.top_k), service="vector index", timeout=self.timeout
            )
        except CodeRagError:
            raise
        except Exception as exc:
            raise IndexReadFailure(f"Query against {namespace!r} failed", cause=exc) from exc

    async def _read_source(self, session_id: str, relative_path: str) -> Optional[str]:
        target: str | Path = relative_path
        if self.workspace is not None:
            target = self.workspace.resolve(session_id, relative_path)
        try:
            return await with_timeout(self.file_reader.read(target), service="file reader", timeout=self.timeout)
        except (OSError, UnicodeDecodeError, CodeRagError) as error:
            LOGGER.warning("Unable to read %s for session %s: %s", relative_path, session_id, error)
            return None

    async def search(self, session_id: str, question: str) -> SearchResult:
        """Embed ``question``, query the namespace and load the matched files."""

        session_id = _require_session(session_id)
        if not question or not question.strip():
            raise ValueError("question must not be empty")

        started = time.perf_counter()
        vector = await self.embeddings.embed_or_raise(question)
        matches = await self._query(namespace_for(session_id), vector)

        files: List[SourceFile] = []
        seen_paths: set[str] = set()
        seen_contents: set[str] = set()
        for match in matches:
            if match.file_path in seen_paths:
                continue
            seen_paths.add(match.file_path)
            content = await self._read_source(session_id, match.file_path)
            if content is None or content in seen_contents:
                continue
            seen_contents.add(content)
            files.append(SourceFile(path=match.file_path, content=content))

        emit_retriever_event(
            session_id=session_id,
            query=question,
            top_k=self.top_k,
            results=[{"id": match.id, "score": round(match.score, 4), "file": match.file_path} for match in matches],
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return SearchResult(matches=list(matches), listing=render_listing(matches), files=files)

    async def answer_query(
        self,
        session_id: str,
        question: str,
        *,
        use_history: bool = True,
        req_id: str | None = None,
    ) -> AnswerResult:
        """Answer ``question`` grounded in the session's indexed code."""

        session_id = _require_session(session_id)
        req_id = req_id or uuid.uuid4().hex
        search = await self.search(session_id, question)
        if not search.matches:
            return AnswerResult(
                session_id=session_id,
                question=question,
                answer=NO_MATCHES_MESSAGE,
                listing="",
                files=[],
                matches=[],
            )

        history = await self.history.chronological(session_id) if use_history else []
        grounding = build_grounding(search.listing, search.files)
        system_prompt = build_system_prompt(grounding, history)
        emit_prompt_event(
            session_id=session_id,
            sources=[source.path for source in search.files],
            context_chars=len(grounding),
            history_turns=len(history),
        )

        model = getattr(self.chat, "model_name", "unknown")
        started = time.perf_counter()
        try:
            answer = await with_timeout(
                self.chat.complete(system_prompt, question), service="chat completion", timeout=self.timeout
            )
        except Exception as error:
            emit_chat_event(
                req_id=req_id,
                session_id=session_id,
                model=model,
                duration_ms=(time.perf_counter() - started) * 1000.0,
                error=error,
            )
            if isinstance(error, CodeRagError):
                raise
            raise ChatCompletionFailure("Chat completion failed", cause=error) from error

        emit_chat_event(
            req_id=req_id,
            session_id=session_id,
            model=model,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            answer_preview=answer,
        )
        await self.history.record_exchange(session_id, question, answer)
        return AnswerResult(
            session_id=session_id,
            question=question,
            answer=answer,
            listing=search.listing,
            files=[source.path for source in search.files],
            matches=search.matches,
        )

    # Session lifecycle

    async def initialize_session(self, session_id: str) -> bool:
        """Make sure the session's history window exists; ``True`` if newly created."""

        return await self.history.ensure_exists(_require_session(session_id))

    async def codebase_status(self, session_id: str) -> CodebaseStatus:
        session_id = _require_session(session_id)
        namespace = namespace_for(session_id)
        job = self.tracker.status(namespace)
        active = self.workspace.exists(session_id) if self.workspace is not None else False
        try:
            vectors = await with_timeout(
                self.vector_index.count(namespace), service="vector index", timeout=self.timeout
            )
        except CodeRagError:
            raise
        except Exception as exc:
            raise IndexReadFailure(f"Count for {namespace!r} failed", cause=exc) from exc
        return CodebaseStatus(
            session_id=session_id,
            active=active,
            vectors=vectors,
            indexing=job.as_dict() if job is not None else None,
        )

    async def delete_codebase(self, session_id: str) -> bool:
        """Drop the namespace, the history and the uploaded files for a session."""

        session_id = _require_session(session_id)
        namespace = namespace_for(session_id)
        await self.tracker.forget(namespace)
        try:
            await with_timeout(
                self.vector_index.delete_namespace(namespace), service="vector index", timeout=self.timeout
            )
        except CodeRagError as error:
            emit_exception(module=__name__, error=error, session_id=session_id)
            raise
        await self.history.clear(session_id)
        removed = self.workspace.remove(session_id) if self.workspace is not None else False
        AUDIT_LOGGER.info({"event": "delete_codebase", "session_id": session_id, "namespace": namespace})
        return removed


__all__ = [
    "AnswerResult",
    "CodebaseStatus",
    "FileReader",
    "IndexBatchResult",
    "IndexFileResult",
    "RetrievalOrchestrator",
    "SearchResult",
]
