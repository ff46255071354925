from __future__ import annotations

from pathlib import Path

import pytest

from elmsite.config import MAX_WORKERS, find_config, load_config, read_site_config, resolve_workers
from elmsite.errors import ConfigError, ConfigMissingError


def test_missing_config_names_the_site(tmp_path: Path) -> None:
    with pytest.raises(ConfigMissingError, match="config.json"):
        find_config(tmp_path)


def test_undecodable_config_is_a_config_error(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_bytes(b'{"siteTitle": "\xff"}')

    with pytest.raises(ConfigError, match="Can't read config file"):
        load_config(path)


def test_invalid_json_is_a_config_error(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text('{"siteTitle": ', encoding="utf-8")

    with pytest.raises(ConfigError, match="Invalid JSON"):
        load_config(path)


def test_yaml_config_with_defaults(tmp_path: Path) -> None:
    (tmp_path / "config.yaml").write_text("siteTitle: Notes\ntags: [Elm, Python]\n", encoding="utf-8")

    site = read_site_config(tmp_path)

    assert site.site_title == "Notes"
    assert site.allowed_tags == ("elm", "python")
    assert site.output_dir == tmp_path / "_site"
    assert site.elm == "elm"
    assert site.source == tmp_path / "config.yaml"


def test_toml_config(tmp_path: Path) -> None:
    (tmp_path / "config.toml").write_text('outputDir = "public"\npostProcess = ["echo hi"]\n', encoding="utf-8")

    site = read_site_config(tmp_path)

    assert site.output_dir == tmp_path / "public"
    assert site.post_process == ("echo hi",)


def test_worker_count_is_clamped() -> None:
    assert resolve_workers(1000) == MAX_WORKERS
    assert resolve_workers(3) == 3
    assert resolve_workers(0) >= 1
