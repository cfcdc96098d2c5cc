from __future__ import annotations

from pathlib import Path

import pytest

from coderag.errors import ParseFailure
from coderag.parsing import SourceParser, is_supported_source


@pytest.mark.anyio
async def test_parse_file_stores_paths_relative_to_root(tmp_path: Path) -> None:
    source = tmp_path / "src" / "math.js"
    source.parent.mkdir()
    source.write_text("export function add(a, b) { return a + b; }\n", encoding="utf-8")

    units = await SourceParser().parse_file(source, tmp_path)

    assert [unit.id for unit in units] == ["add"]
    assert units[0].file_path == "src/math.js"


@pytest.mark.anyio
async def test_missing_file_raises_parse_failure(tmp_path: Path) -> None:
    with pytest.raises(ParseFailure) as excinfo:
        await SourceParser().parse_file(tmp_path / "gone.js", tmp_path)

    assert excinfo.value.file_path == "gone.js"
    assert isinstance(excinfo.value.__cause__, OSError)


@pytest.mark.anyio
async def test_undecodable_file_raises_parse_failure(tmp_path: Path) -> None:
    source = tmp_path / "binary.js"
    source.write_bytes(b"\xff\xfe\x00function")

    with pytest.raises(ParseFailure):
        await SourceParser().parse_file(source, tmp_path)


@pytest.mark.anyio
async def test_unsupported_extension_is_rejected_before_reading(tmp_path: Path) -> None:
    with pytest.raises(ParseFailure):
        await SourceParser().parse_file(tmp_path / "README.md", tmp_path)


@pytest.mark.parametrize(
    ("name", "expected"),
    [("a.js", True), ("a.JSX", True), ("a.mjs", True), ("a.ts", True), ("a.tsx", True), ("a.py", False), ("Makefile", False)],
)
def test_is_supported_source(name: str, expected: bool) -> None:
    assert is_supported_source(name) is expected

