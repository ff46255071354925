from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

try:
    import tomllib as toml
except ImportError:
    import tomli as toml

from .errors import ConfigError, ConfigMissingError

CONFIG_NAMES = ("config.json", "config.toml", "config.yaml", "config.yml")
DEFAULT_OUTPUT_DIR = "_site"
MAX_WORKERS = 32


@dataclass(frozen=True)
class SiteConfig:
    root: Path
    output_dir: Path
    site_title: str = ""
    allowed_tags: tuple[str, ...] = ()
    elm: str = "elm"
    node: str = "node"
    copy: dict[str, str] = field(default_factory=dict)
    feed: Optional[dict[str, Any]] = None
    post_process: tuple[str, ...] = ()
    workers: int = 0
    highlight_style: Optional[str] = None
    source: Optional[Path] = None


def find_config(root: Path) -> Path:
    for name in CONFIG_NAMES:
        path = root / name
        if path.is_file():
            return path
    raise ConfigMissingError(
        f"Couldn't find config.json in {root}. Is this a new project? "
        "Create config.json with at least outputDir and siteTitle."
    )


def load_config(path: Path) -> dict:
    suffix = path.suffix.lower()
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Can't read config file {path}: {exc}") from exc
    if suffix == ".toml":
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in config file {path}: {exc}") from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in config file {path}: {exc}") from exc
        if data is None:
            data = {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a mapping: {path}")
    return data


def parse_int(value: object, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def resolve_workers(value: int) -> int:
    if value <= 0:
        value = os.cpu_count() or 1
    return max(1, min(value, MAX_WORKERS))


def _str_list(data: dict, key: str, path: Path) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f'"{key}" must be a list of strings in {path}')
    return [str(item) for item in value]


def read_site_config(root: Path) -> SiteConfig:
    path = find_config(root)
    data = load_config(path)

    copy = data.get("copy") or {}
    if not isinstance(copy, dict):
        raise ConfigError(f'"copy" must map source paths to destination paths in {path}')
    feed = data.get("feed")
    if feed is not None and not isinstance(feed, dict):
        raise ConfigError(f'"feed" must be an object in {path}')

    allowed_tags = tuple(tag.lower() for tag in _str_list(data, "tags", path))
    highlight_style = data.get("highlightStyle")
    return SiteConfig(
        root=root,
        output_dir=root / str(data.get("outputDir") or DEFAULT_OUTPUT_DIR),
        site_title=str(data.get("siteTitle") or ""),
        allowed_tags=allowed_tags,
        elm=str(data.get("elm") or "elm"),
        node=str(data.get("node") or "node"),
        copy={str(source): str(dest) for source, dest in copy.items()},
        feed=feed,
        post_process=tuple(_str_list(data, "postProcess", path)),
        workers=parse_int(data.get("workers"), 0),
        highlight_style=str(highlight_style) if highlight_style else None,
        source=path,
    )
