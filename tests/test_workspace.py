from __future__ import annotations

from pathlib import Path

import pytest

from coderag.errors import CodeRagError
from coderag.workspace import CodebaseWorkspace, LocalFileReader, namespace_for


def _populate(root: Path) -> None:
    (root / "src" / "lib").mkdir(parents=True)
    (root / "src" / "index.js").write_text("function main() {}\n", encoding="utf-8")
    (root / "src" / "lib" / "util.ts").write_text("export const id = (x: number) => x;\n", encoding="utf-8")
    (root / "README.md").write_text("# demo\n", encoding="utf-8")
    (root / "node_modules" / "dep").mkdir(parents=True)
    (root / "node_modules" / "dep" / "index.js").write_text("module.exports = 1;\n", encoding="utf-8")
    (root / ".cache").mkdir()
    (root / ".cache" / "hidden.js").write_text("function hidden() {}\n", encoding="utf-8")


def test_root_for_uses_the_codebase_namespace(tmp_path: Path) -> None:
    workspace = CodebaseWorkspace(tmp_path)

    assert workspace.root_for("42") == tmp_path / "codebase42"
    assert namespace_for("42") == "codebase42"


@pytest.mark.parametrize("session_id", ["../etc", "a/b", "", ".."])
def test_unsafe_session_ids_are_rejected(tmp_path: Path, session_id: str) -> None:
    with pytest.raises(CodeRagError):
        CodebaseWorkspace(tmp_path).root_for(session_id)


def test_iter_source_files_skips_hidden_and_vendored_entries(tmp_path: Path) -> None:
    workspace = CodebaseWorkspace(tmp_path)
    root = workspace.root_for("s1")
    _populate(root)

    found = sorted(path.relative_to(root).as_posix() for path in workspace.iter_source_files("s1"))

    assert found == ["src/index.js", "src/lib/util.ts"]


def test_iter_source_files_for_missing_codebase_is_empty(tmp_path: Path) -> None:
    assert list(CodebaseWorkspace(tmp_path).iter_source_files("missing")) == []


def test_resolve_refuses_paths_outside_the_root(tmp_path: Path) -> None:
    workspace = CodebaseWorkspace(tmp_path)
    root = workspace.root_for("s1")
    _populate(root)

    assert workspace.resolve("s1", "src/index.js") == (root / "src" / "index.js").resolve()
    with pytest.raises(CodeRagError):
        workspace.resolve("s1", "../../outside.js")


def test_exists_and_remove(tmp_path: Path) -> None:
    workspace = CodebaseWorkspace(tmp_path)
    _populate(workspace.root_for("s1"))

    assert workspace.exists("s1")
    assert workspace.remove("s1") is True
    assert not workspace.exists("s1")
    assert workspace.remove("s1") is False


@pytest.mark.anyio
async def test_local_file_reader_reads_utf8(tmp_path: Path) -> None:
    target = tmp_path / "a.js"
    target.write_text("const s = 'ünïcode';\n", encoding="utf-8")

    assert await LocalFileReader().read(target) == "const s = 'ünïcode';\n"
