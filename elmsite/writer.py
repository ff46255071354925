from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import Iterable, Mapping

from pygments.formatters import HtmlFormatter
from pygments.util import ClassNotFound

from .errors import BuildError, ConfigError
from .log import get_logger
from .models import AnyConfig

PRESERVED_MARKER = ".git"
RESOURCES_DIR = "_resources"
HIGHLIGHT_CSS = "highlight.css"

logger = get_logger("writer")


def html_output_file(output_path: Path) -> Path:
    if output_path.name == "index":
        return output_path.with_name("index.html")
    return output_path / "index.html"


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def write_page(config: AnyConfig) -> Path:
    if config.html is None:
        raise BuildError(f"Nothing rendered for {config.output_path}")
    path = html_output_file(config.output_path)
    write_text(path, config.html)
    return path


def write_pages(configs: Iterable[AnyConfig]) -> list[Path]:
    return [write_page(config) for config in configs]


def empty_output_dir(output_dir: Path, project_root: Path) -> None:
    """Remove everything under ``output_dir`` except the VCS marker.

    A marker file is read first and rewritten byte for byte afterwards; a
    marker directory is left untouched.
    """
    if not output_dir.exists():
        output_dir.mkdir(parents=True)
        return
    output_resolved = output_dir.resolve()
    root_resolved = project_root.resolve()
    if output_resolved == root_resolved:
        raise BuildError("Refusing to clean the site root; set outputDir in config.json.")
    if not output_resolved.is_relative_to(root_resolved):
        raise BuildError(f"Refusing to clean output directory outside the site: {output_dir}")

    marker = output_dir / PRESERVED_MARKER
    marker_content = marker.read_bytes() if marker.is_file() else None

    for item in output_dir.iterdir():
        if item.name == PRESERVED_MARKER and item.is_dir() and not item.is_symlink():
            continue
        if item.is_dir() and not item.is_symlink():
            shutil.rmtree(item)
        else:
            item.unlink()

    if marker_content is not None:
        marker.write_bytes(marker_content)


def copy_path(source: Path, dest: Path) -> None:
    if source.is_dir():
        shutil.copytree(source, dest, dirs_exist_ok=True)
    else:
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, dest)


def duplicate_pages(copy: Mapping[str, str], output_dir: Path) -> None:
    for source, dest in copy.items():
        source_path = output_dir / source
        if not source_path.exists():
            raise BuildError(f'Can\'t copy "{source}": no such file in {output_dir}')
        logger.debug("    Copying %s to %s", source, dest)
        copy_path(source_path, output_dir / dest)


def copy_resources(root: Path, output_dir: Path) -> None:
    resources = root / RESOURCES_DIR
    if resources.is_dir():
        shutil.copytree(resources, output_dir, dirs_exist_ok=True)


def run_post_process(commands: Iterable[str], root: Path) -> None:
    for command in commands:
        logger.info("      %s", command)
        result = subprocess.run(command, shell=True, cwd=root)
        if result.returncode != 0:
            logger.warning("      exited with status %d", result.returncode)


def write_highlight_css(style: str, output_dir: Path) -> Path:
    try:
        formatter = HtmlFormatter(style=style, cssclass="codehilite")
    except ClassNotFound as exc:
        raise ConfigError(f'Unknown highlightStyle "{style}"') from exc
    path = output_dir / HIGHLIGHT_CSS
    write_text(path, formatter.get_style_defs(".codehilite"))
    return path
