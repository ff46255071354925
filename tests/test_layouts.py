from __future__ import annotations

import stat
from pathlib import Path

import pytest

from elmsite.errors import CompileError, ToolNotFoundError
from elmsite.layouts import ElmCompiler, required_layouts
from elmsite.models import LAYOUTS


class Layout:
    def __init__(self, layout: str) -> None:
        self.layout = layout


def fake_tool(path: Path, script: str) -> Path:
    path.write_text("#!/bin/sh\n" + script, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def test_required_layouts_follow_declared_order() -> None:
    configs = [Layout("Post"), Layout("Page"), Layout("Post")]
    assert required_layouts(configs, has_posts=False) == ("Page", "Post")


def test_tag_layout_is_required_whenever_posts_exist() -> None:
    assert required_layouts([Layout("Post")], has_posts=True) == ("Post", "Tag")
    assert required_layouts([], has_posts=False) == ()


def test_unknown_layout_is_a_compile_error() -> None:
    with pytest.raises(CompileError, match="Gallery"):
        required_layouts([Layout("Gallery")], has_posts=False)


def test_command_compiles_all_layouts_in_one_invocation(tmp_path: Path) -> None:
    args = ElmCompiler("elm").command([Path("_layouts/Page.elm"), Path("_layouts/Post.elm")], tmp_path / "out.js")

    assert args == [
        "elm",
        "make",
        "_layouts/Page.elm",
        "_layouts/Post.elm",
        "--optimize",
        "--output",
        str(tmp_path / "out.js"),
    ]


def test_missing_layout_file_is_reported(site, tmp_path: Path) -> None:
    (site.root / "_layouts" / "Tag.elm").unlink()
    work_dir = tmp_path / "work"
    work_dir.mkdir()

    with pytest.raises(CompileError, match="_layouts/Tag.elm"):
        ElmCompiler("elm").compile(site.root, LAYOUTS, work_dir)


def test_missing_compiler_executable(site, tmp_path: Path) -> None:
    with pytest.raises(ToolNotFoundError) as excinfo:
        ElmCompiler(str(tmp_path / "no-such-elm")).compile(site.root, ["Page"], tmp_path)
    assert excinfo.value.tool == str(tmp_path / "no-such-elm")


def test_failing_compiler_gives_empty_error(site, tmp_path: Path) -> None:
    elm = fake_tool(tmp_path / "elm", "echo 'TYPE MISMATCH' >&2\nexit 1\n")

    with pytest.raises(CompileError) as excinfo:
        ElmCompiler(str(elm)).compile(site.root, ["Page"], tmp_path)
    assert str(excinfo.value) == ""


def test_successful_compile_returns_script(site, tmp_path: Path) -> None:
    log = tmp_path / "args.txt"
    elm = fake_tool(
        tmp_path / "elm",
        f'echo "$@" > "{log}"\n'
        'while [ "$#" -gt 0 ]; do\n'
        '  if [ "$1" = "--output" ]; then echo "// elm" > "$2"; fi\n'
        "  shift\n"
        "done\n",
    )
    work_dir = tmp_path / "work"
    work_dir.mkdir()

    compiled = ElmCompiler(str(elm)).compile(site.root, ["Page", "Post"], work_dir)

    assert compiled.layouts == ("Page", "Post")
    assert compiled.script_path == work_dir / "layouts.js"
    assert compiled.script_path.read_text(encoding="utf-8").strip() == "// elm"
    assert log.read_text(encoding="utf-8").split()[:3] == ["make", "_layouts/Page.elm", "_layouts/Post.elm"]


def test_compiler_that_writes_nothing_fails(site, tmp_path: Path) -> None:
    elm = fake_tool(tmp_path / "elm", "exit 0\n")

    with pytest.raises(CompileError, match="wrote no"):
        ElmCompiler(str(elm)).compile(site.root, ["Page"], tmp_path)
