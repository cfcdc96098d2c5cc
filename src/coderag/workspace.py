"""On-disk layout of uploaded codebases and the file reader used for grounding."""
from __future__ import annotations

import asyncio
import logging
import re
import shutil
from pathlib import Path
from typing import Final, Iterator, List

from coderag.errors import CodeRagError
from coderag.parsing.parser import is_supported_source

LOGGER = logging.getLogger(__name__)

_SKIPPED_DIRECTORIES: Final[frozenset[str]] = frozenset({"node_modules"})
_SESSION_SAFE_CHARS_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9._-]+$")


def namespace_for(session_id: str) -> str:
    return f"codebase{session_id}"


class CodebaseWorkspace:
    """Directory tree holding one extracted codebase per session."""

    def __init__(self, base_dir: str | Path) -> None:
        self.base_dir = Path(base_dir)

    def root_for(self, session_id: str) -> Path:
        if not _SESSION_SAFE_CHARS_RE.match(session_id) or session_id in {".", ".."}:
            raise CodeRagError(f"Session id {session_id!r} is not a safe directory name")
        return self.base_dir / namespace_for(session_id)

    def exists(self, session_id: str) -> bool:
        return self.root_for(session_id).is_dir()

    def resolve(self, session_id: str, relative_path: str) -> Path:
        """Return the absolute path of ``relative_path`` inside the session root."""

        root = self.root_for(session_id).resolve()
        candidate = (root / relative_path).resolve()
        if candidate != root and root not in candidate.parents:
            raise CodeRagError(f"Path {relative_path!r} escapes the codebase root")
        return candidate

    def iter_source_files(self, session_id: str) -> Iterator[Path]:
        """Yield supported source files, skipping hidden entries and ``node_modules``."""

        root = self.root_for(session_id)
        if not root.is_dir():
            return
        pending: List[Path] = [root]
        while pending:
            directory = pending.pop()
            for entry in sorted(directory.iterdir()):
                if entry.name.startswith(".") or entry.name in _SKIPPED_DIRECTORIES:
                    continue
                if entry.is_dir():
                    pending.append(entry)
                elif entry.is_file() and is_supported_source(entry):
                    yield entry

    def remove(self, session_id: str) -> bool:
        root = self.root_for(session_id)
        if not root.exists():
            return False
        shutil.rmtree(root)
        LOGGER.info("Removed codebase directory %s", root)
        return True


class LocalFileReader:
    """Read UTF-8 files off the event loop."""

    async def read(self, path: str | Path) -> str:
        return await asyncio.to_thread(Path(path).read_text, encoding="utf-8")


__all__ = ["CodebaseWorkspace", "LocalFileReader", "namespace_for"]
