"""tree-sitter backed parsing of JavaScript and TypeScript sources."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path, PurePath
from typing import Dict, List

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Parser, Tree

from coderag.errors import ParseFailure

from .extractor import extract_units
from .models import CodeUnit

LOGGER = logging.getLogger(__name__)

_JAVASCRIPT = Language(tree_sitter_javascript.language())
_TYPESCRIPT = Language(tree_sitter_typescript.language_typescript())
_TSX = Language(tree_sitter_typescript.language_tsx())

LANGUAGE_BY_SUFFIX: Dict[str, Language] = {
    ".js": _JAVASCRIPT,
    ".jsx": _JAVASCRIPT,
    ".mjs": _JAVASCRIPT,
    ".cjs": _JAVASCRIPT,
    ".ts": _TYPESCRIPT,
    ".tsx": _TSX,
}

SUPPORTED_SUFFIXES = frozenset(LANGUAGE_BY_SUFFIX)


def is_supported_source(path: str | PurePath) -> bool:
    return PurePath(path).suffix.lower() in SUPPORTED_SUFFIXES


class SourceParser:
    """Turn source text into a syntax tree and the tree into code units."""

    def __init__(self, *, strict: bool = True) -> None:
        self.strict = strict
        self._parsers: Dict[str, Parser] = {}

    def _parser_for(self, suffix: str) -> Parser:
        language = LANGUAGE_BY_SUFFIX.get(suffix)
        if language is None:
            raise ParseFailure(f"Unsupported source extension: {suffix or '<none>'}")
        parser = self._parsers.get(suffix)
        if parser is None:
            parser = self._parsers[suffix] = Parser(language)
        return parser

    def parse(self, source_text: str, *, suffix: str = ".js") -> Tree:
        """Parse ``source_text`` with the grammar registered for ``suffix``."""

        parser = self._parser_for(suffix.lower())
        try:
            tree = parser.parse(source_text.encode("utf-8"))
        except Exception as error:
            raise ParseFailure("tree-sitter failed to build a syntax tree", cause=error) from error
        if self.strict and tree.root_node.has_error:
            raise ParseFailure("Source contains syntax errors")
        return tree

    def extract(self, source_text: str, file_path: str) -> List[CodeUnit]:
        """Parse ``source_text`` and return the named units it declares."""

        suffix = PurePath(file_path).suffix
        try:
            tree = self.parse(source_text, suffix=suffix)
        except ParseFailure as error:
            error.file_path = file_path
            raise
        return extract_units(tree.root_node, file_path)

    async def parse_file(self, path: str | Path, root: str | Path) -> List[CodeUnit]:
        """Read ``path`` from disk and extract its units.

        Unit paths are stored relative to ``root`` in POSIX form.
        """

        file_path = Path(path)
        try:
            relative = file_path.resolve().relative_to(Path(root).resolve()).as_posix()
        except ValueError:
            relative = file_path.as_posix()

        if not is_supported_source(file_path):
            raise ParseFailure(f"Unsupported source extension: {file_path.suffix}", file_path=relative)

        try:
            source_text = await asyncio.to_thread(file_path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as error:
            raise ParseFailure(f"Unable to read {relative}", file_path=relative, cause=error) from error

        units = self.extract(source_text, relative)
        LOGGER.debug("Extracted %d units from %s", len(units), relative)
        return units


__all__ = ["LANGUAGE_BY_SUFFIX", "SUPPORTED_SUFFIXES", "SourceParser", "is_supported_source"]
