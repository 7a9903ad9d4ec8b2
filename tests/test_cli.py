"""
Tests for the command line interface.
"""

import json
import shutil
from pathlib import Path

import pytest
from typer.testing import CliRunner

from equislot import __version__
from equislot.cli import app as cli_module
from equislot.cli.app import app

ROOT = Path(__file__).resolve().parent.parent

runner = CliRunner()


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    monkeypatch.setattr(cli_module, "configure_logging", lambda level="INFO": None)
    shutil.copy(ROOT / "data.example.json", tmp_path / "data.json")
    path = tmp_path / "config.yaml"
    path.write_text('timezone: "Europe/Stockholm"\ndata_file: "data.json"\n', encoding="utf-8")
    return path


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_slots_shows_open_and_closed_days(config_path):
    result = runner.invoke(
        app,
        ["slots", "prov-1", "--config", str(config_path), "--service", "svc-trim", "--start", "2026-12-21", "--days", "4"],
    )

    assert result.exit_code == 0, result.stdout
    assert "08:00-09:00" in result.stdout
    assert "closed (Christmas Eve)" in result.stdout


def test_slots_rejects_bad_date(config_path):
    result = runner.invoke(app, ["slots", "prov-1", "--config", str(config_path), "--start", "21/12/2026"])

    assert result.exit_code != 0


def test_slots_unknown_service(config_path):
    result = runner.invoke(app, ["slots", "prov-1", "--config", str(config_path), "--service", "nope"])

    assert result.exit_code == 1
    assert "NOT_FOUND" in result.stdout


def test_due_for_customer(config_path):
    result = runner.invoke(app, ["due", "cust-1", "--config", str(config_path)])

    assert result.exit_code == 0, result.stdout
    assert "Blansen" in result.stdout
    assert "overdue" in result.stdout


def test_due_for_provider(config_path):
    result = runner.invoke(app, ["due", "--provider", "prov-1", "--config", str(config_path)])

    assert result.exit_code == 0, result.stdout
    assert "Blansen" in result.stdout
    assert "Stjärna" in result.stdout


def test_due_needs_a_target(config_path):
    result = runner.invoke(app, ["due", "--config", str(config_path)])

    assert result.exit_code == 1


def test_match_group_books_participants(config_path):
    result = runner.invoke(
        app,
        [
            "match-group", "grp-1",
            "--config", str(config_path),
            "--provider", "prov-1",
            "--service", "svc-trim",
            "--date", "2026-11-04",
            "--start", "10:00",
        ],
    )

    assert result.exit_code == 0, result.stdout
    assert "2 booking(s) created" in result.stdout

    saved = json.loads((config_path.parent / "data.json").read_text(encoding="utf-8"))
    group = saved["group_bookings"][0]
    assert group["status"] == "matched"
    assert group["provider_id"] == "prov-1"
    new_bookings = [b for b in saved["bookings"] if b["booking_date"] == "2026-11-04"]
    assert sorted(b["start_time"] for b in new_bookings) == ["10:00", "11:00"]


def test_missing_config_file(tmp_path):
    result = runner.invoke(app, ["due", "cust-1", "--config", str(tmp_path / "missing.yaml")])

    assert result.exit_code == 1
    assert "Config file not found" in result.stdout


def test_book_creates_pending_booking(config_path):
    args = [
        "book", "prov-1",
        "--config", str(config_path),
        "--customer", "cust-1",
        "--service", "svc-trim",
        "--date", "2026-11-05",
        "--start", "09:00",
        "--entity", "horse-1",
    ]

    first = runner.invoke(app, args)
    second = runner.invoke(app, args)

    assert first.exit_code == 0, first.stdout
    assert "09:00-10:00" in first.stdout
    assert "(pending)" in first.stdout
    assert second.exit_code == 1
    assert "OVERLAP" in second.stdout

    saved = json.loads((config_path.parent / "data.json").read_text(encoding="utf-8"))
    [booking] = [b for b in saved["bookings"] if b["booking_date"] == "2026-11-05"]
    assert booking["status"] == "pending"
    assert booking["entity_name"] == "Blansen"
