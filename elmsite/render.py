from __future__ import annotations

import json
import subprocess
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from .config import resolve_workers
from .errors import RenderError, ToolNotFoundError
from .layouts import CompiledLayouts
from .log import get_logger
from .models import AnyConfig

HARNESS = Path(__file__).parent / "harness" / "render.js"
ERROR_TITLE = "error"
DOCTYPE = "<!doctype html>"
ESCAPED_SCRIPT_TAG = "citatsmle-script"

logger = get_logger("render")


@dataclass(frozen=True)
class Html:
    text: str


@dataclass(frozen=True)
class RenderFailure:
    path: Path
    message: str


RenderResult = Union[Html, RenderFailure]
Renderer = Callable[[CompiledLayouts, AnyConfig], RenderResult]


def interpret_document(config: AnyConfig, document: dict) -> RenderResult:
    if document.get("title") == ERROR_TITLE:
        return RenderFailure(config.source_path, str(document.get("detail") or ""))
    body = str(document.get("body") or "").replace(ESCAPED_SCRIPT_TAG, "script")
    return Html(DOCTYPE + body)


class NodeRenderer:
    """Runs a compiled layout under Node and jsdom for one record."""

    def __init__(self, root: Path, node: str = "node", harness: Path = HARNESS) -> None:
        self.root = root
        self.node = node
        self.harness = harness

    def __call__(self, compiled: CompiledLayouts, config: AnyConfig) -> RenderResult:
        args = [self.node, str(self.harness), str(compiled.script_path), config.layout]
        try:
            result = subprocess.run(
                args,
                cwd=self.root,
                input=json.dumps(config.to_flags()),
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as exc:
            raise ToolNotFoundError(self.node) from exc
        if result.returncode != 0:
            message = result.stderr.strip() or f"{self.node} exited with status {result.returncode}"
            return RenderFailure(config.source_path, message)
        try:
            document = json.loads(result.stdout)
        except json.JSONDecodeError:
            return RenderFailure(config.source_path, f"Unreadable renderer output: {result.stdout[:200]}")
        return interpret_document(config, document)


class RenderPool:
    """Fixed-size worker pool shared by all render calls of one pass."""

    def __init__(self, renderer: Renderer, workers: int = 0) -> None:
        self.renderer = renderer
        self.workers = resolve_workers(workers)
        self._executor: Optional[ThreadPoolExecutor] = None

    def __enter__(self) -> "RenderPool":
        self._executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="render")
        return self

    def __exit__(self, *exc_info) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True, cancel_futures=True)
            self._executor = None

    def _render(self, compiled: CompiledLayouts, config: AnyConfig) -> RenderResult:
        logger.debug("    Generating %s", config.output_path)
        return self.renderer(compiled, config)

    def render_all(self, compiled: CompiledLayouts, configs: Sequence[AnyConfig]) -> list[AnyConfig]:
        if self._executor is None:
            raise RuntimeError("RenderPool must be entered before rendering")
        pending = {
            index: self._executor.submit(self._render, compiled, config)
            for index, config in enumerate(configs)
            if config.html is None
        }
        rendered = list(configs)
        failure: Optional[RenderFailure] = None
        for index, future in pending.items():
            result = future.result()
            if isinstance(result, RenderFailure):
                failure = failure or result
                continue
            rendered[index] = configs[index].with_html(result.text)
        if failure is not None:
            raise RenderError(failure.path, failure.message)
        return rendered
