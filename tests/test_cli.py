from __future__ import annotations

from pathlib import Path

from elmsite import cli


def test_missing_config_exits_nonzero(tmp_path: Path, capsys) -> None:
    assert cli.main(["build", "--site", str(tmp_path)]) == 1
    assert "Couldn't find config.json" in capsys.readouterr().err


def test_successful_build_reports_time(tmp_path: Path, capsys, monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(cli, "build_site", lambda root, **kwargs: calls.append((root, kwargs)))

    assert cli.main(["--drafts", "--site", str(tmp_path), "--workers", "3"]) == 0

    assert calls == [(tmp_path.resolve(), {"include_drafts": True, "workers": 3})]
    assert "Build completed in" in capsys.readouterr().out


def test_subcommand_options_do_not_reset_global_ones(tmp_path: Path) -> None:
    args = cli.build_parser().parse_args(["-d", "build", "--site", str(tmp_path)])

    assert args.drafts is True
    assert args.site == str(tmp_path)
    assert args.command == "build"
