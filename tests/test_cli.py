"""Tests for the command-line interface."""

from __future__ import annotations

from pathlib import Path

import pytest

from inbox_relay.cli import build_parser, execute
from inbox_relay.core.config import AppSettings, StorageSettings


def test_parser_defaults_to_info() -> None:
    args = build_parser().parse_args([])

    assert args.command == "info"
    assert args.port == 8000


def test_seed_categories_command(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    settings = AppSettings(storage=StorageSettings(db_path=tmp_path / "cli.db"))

    execute(build_parser().parse_args(["seed-categories"]), settings)

    out = capsys.readouterr().out
    assert "Seeded 5 categories: apps, banks, personal, promotions, work" in out


def test_digest_command_with_no_schedules(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    settings = AppSettings(storage=StorageSettings(db_path=tmp_path / "cli.db"))

    execute(build_parser().parse_args(["digest"]), settings)

    assert "Sent 0 digest(s)." in capsys.readouterr().out
