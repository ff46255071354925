from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path

import pytest

from elmsite.layouts import CompiledLayouts
from elmsite.models import LAYOUTS
from elmsite.render import Html, RenderFailure


class SiteBuilder:
    """Lay out a site tree under a temporary directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def config(self, **values: object) -> Path:
        data = {"outputDir": "_site", "siteTitle": "Test Site", "tags": []}
        data.update(values)
        path = self.root / "config.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    def write(self, rel_path: str, text: str) -> Path:
        path = self.root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    def page(self, name: str, title: str = "A page", body: str = "Page body.\n") -> Path:
        return self.write(f"_pages/{name}", f"---\ntitle: {title}\n---\n{body}")

    def post(self, name: str, title: str = "A post", tags: str = "", body: str = "Post body.\n") -> Path:
        header = f"---\ntitle: {title}\n"
        if tags:
            header += f"tags: {tags}\n"
        return self.write(f"_posts/{name}", f"{header}---\n{body}")

    def layouts(self, names=LAYOUTS) -> None:
        for name in names:
            self.write(f"_layouts/{name}.elm", f"module {name} exposing (main)\n")

    def touch(self, rel_path: str, seconds: float = 10.0) -> None:
        path = self.root / rel_path
        stat = path.stat()
        os.utime(path, (stat.st_atime + seconds, stat.st_mtime + seconds))

    def output(self, rel_path: str) -> Path:
        return self.root / "_site" / rel_path


class FakeCompiler:
    def __init__(self) -> None:
        self.calls: list[tuple[str, ...]] = []

    def compile(self, root: Path, layouts, work_dir: Path) -> CompiledLayouts:
        layouts = tuple(layouts)
        self.calls.append(layouts)
        script = work_dir / "layouts.js"
        script.write_text("// compiled", encoding="utf-8")
        return CompiledLayouts(script_path=script, layouts=layouts)


class RecordingRenderer:
    """Deterministic renderer that records which records it rendered."""

    def __init__(self, fail_on: str | None = None) -> None:
        self.fail_on = fail_on
        self.rendered: list[str] = []
        self._lock = threading.Lock()

    def __call__(self, compiled: CompiledLayouts, config) -> Html | RenderFailure:
        key = config.source_path.as_posix()
        with self._lock:
            self.rendered.append(key)
        if self.fail_on is not None and key.endswith(self.fail_on):
            return RenderFailure(config.source_path, "layout blew up")
        flags = config.to_flags()
        members = ",".join(post["slug"] or post["section"] for post in flags.get("posts", []))
        return Html(f"<!doctype html><h1>{flags.get('title', '')}</h1><p>{config.layout}|{members}</p>")

    def reset(self) -> None:
        with self._lock:
            self.rendered.clear()


@pytest.fixture
def site(tmp_path: Path) -> SiteBuilder:
    builder = SiteBuilder(tmp_path)
    builder.config()
    builder.layouts()
    return builder


@pytest.fixture
def compiler() -> FakeCompiler:
    return FakeCompiler()


@pytest.fixture
def renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture(autouse=True)
def reset_logging():
    logger = logging.getLogger("elmsite")
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
