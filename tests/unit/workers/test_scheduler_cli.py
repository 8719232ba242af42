"""Tests for the solarwatch-scheduler command line entry point."""

from __future__ import annotations

import json
from datetime import date, datetime, time, timedelta, timezone

import pytest

from app.config import load_config
from app.services.container import ServiceContainer
from app.workers.scheduler_cli import main


@pytest.fixture()
def cli_env(monkeypatch, tmp_path):
    db_path = tmp_path / "solarwatch.db"
    monkeypatch.setenv("SOLARWATCH_DATABASE_PATH", str(db_path))
    monkeypatch.setenv("SOLARWATCH_LOG_FILE", "")
    monkeypatch.setenv("SOLARWATCH_AUDIT_LOG_PATH", "")
    monkeypatch.setenv("SOLARWATCH_SCHEDULER_ENABLED", "false")
    # Console logging goes to stdout; keep it out of the JSON under test
    monkeypatch.setattr("app.workers.scheduler_cli.setup_logging", lambda **kwargs: None)
    return db_path


def seed_failing_unit() -> int:
    container = ServiceContainer.build(load_config(), start_scheduler=False)
    try:
        unit_id = container.energy_repo.create_unit("SN-CLI-1", 5.0)
        start = date(2024, 1, 1)
        container.energy_repo.record_generation_batch(
            unit_id,
            [
                (datetime.combine(start + timedelta(days=i), time(12, 0), tzinfo=timezone.utc), kwh)
                for i, kwh in enumerate([10, 10, 10, 10, 0])
            ],
        )
        return unit_id
    finally:
        container.shutdown()


def test_detect_prints_summary(cli_env, capsys):
    unit_id = seed_failing_unit()

    assert main(["detect"]) == 0

    summary = json.loads(capsys.readouterr().out)
    assert summary["units_processed"] == 1
    assert summary["outcomes"][0]["unit_id"] == unit_id
    assert summary["total_created"] > 0


def test_detect_single_unknown_unit_exits_nonzero(cli_env, capsys):
    assert main(["detect", "--unit-id", "77"]) == 2

    summary = json.loads(capsys.readouterr().out)
    assert summary["outcomes"][0]["status"] == "data_unavailable"


def test_status_lists_nightly_job(cli_env, capsys):
    assert main(["status"]) == 0

    status = json.loads(capsys.readouterr().out)
    assert status["running"] is False
    assert [job["job_id"] for job in status["jobs"]] == ["solar_detect_anomalies_daily"]
