from __future__ import annotations

import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Protocol

from .errors import CompileError, ToolNotFoundError
from .log import get_logger
from .models import LAYOUTS, TAG_LAYOUT

LAYOUTS_DIR = "_layouts"
COMPILED_NAME = "layouts.js"

logger = get_logger("layouts")


@dataclass(frozen=True)
class CompiledLayouts:
    script_path: Path
    layouts: tuple[str, ...]


class LayoutCompiler(Protocol):
    def compile(self, root: Path, layouts: Iterable[str], work_dir: Path) -> CompiledLayouts:
        ...


def required_layouts(configs: Iterable[object], has_posts: bool) -> tuple[str, ...]:
    used = {getattr(config, "layout") for config in configs}
    if has_posts:
        used.add(TAG_LAYOUT)
    unknown = used.difference(LAYOUTS)
    if unknown:
        raise CompileError(f"Unknown layouts: {', '.join(sorted(unknown))}")
    return tuple(name for name in LAYOUTS if name in used)


def layout_file(name: str) -> Path:
    return Path(LAYOUTS_DIR) / f"{name}.elm"


class ElmCompiler:
    def __init__(self, elm: str = "elm") -> None:
        self.elm = elm

    def command(self, files: list[Path], output: Path) -> list[str]:
        return [
            self.elm,
            "make",
            *[path.as_posix() for path in files],
            "--optimize",
            "--output",
            str(output),
        ]

    def compile(self, root: Path, layouts: Iterable[str], work_dir: Path) -> CompiledLayouts:
        layouts = tuple(layouts)
        files = [layout_file(name) for name in layouts]
        missing = [path.as_posix() for path in files if not (root / path).is_file()]
        if missing:
            raise CompileError(f"Layout files not found: {', '.join(missing)}")

        output = work_dir / COMPILED_NAME
        args = self.command(files, output)
        logger.debug("  $ %s", shlex.join(args))
        try:
            result = subprocess.run(args, cwd=root)
        except FileNotFoundError as exc:
            raise ToolNotFoundError(self.elm) from exc
        if result.returncode != 0:
            # elm make has already printed its diagnostics
            raise CompileError("")
        if not output.is_file():
            raise CompileError(f"{self.elm} reported success but wrote no {output}")
        return CompiledLayouts(script_path=output, layouts=layouts)
