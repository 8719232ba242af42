"""
Tests for AppConfig.

Covers:
- Environment variable parsing
- Validation of the detection time and worker counts
- Production secret key guard
- Web process leaving the nightly job to solarwatch-scheduler
"""

from __future__ import annotations

import pytest

from app.config import AppConfig
from app.domain.exceptions import ConfigurationError
from app.services.container import ServiceContainer


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "SOLARWATCH_ENV",
        "SOLARWATCH_SECRET_KEY",
        "SOLARWATCH_DETECTION_TIME",
        "SOLARWATCH_DETECTOR_WORKERS",
        "SOLARWATCH_BATCH_UNIT_WORKERS",
        "SOLARWATCH_SCHEDULER_ENABLED",
        "SOLARWATCH_SCHEDULER_POLL_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = AppConfig()

    assert config.environment == "development"
    assert config.detection_time == "00:00"
    assert config.detector_workers == 4
    assert config.batch_unit_workers == 1
    assert config.scheduler_enabled is False


def test_env_parsing(monkeypatch):
    monkeypatch.setenv("SOLARWATCH_DETECTION_TIME", "02:15")
    monkeypatch.setenv("SOLARWATCH_DETECTOR_WORKERS", "2")
    monkeypatch.setenv("SOLARWATCH_SCHEDULER_ENABLED", "yes")
    monkeypatch.setenv("SOLARWATCH_SCHEDULER_POLL_SECONDS", "0.5")

    config = AppConfig()

    assert config.detection_time == "02:15"
    assert config.detector_workers == 2
    assert config.scheduler_enabled is True
    assert config.scheduler_poll_seconds == 0.5


def test_non_integer_workers_are_rejected(monkeypatch):
    monkeypatch.setenv("SOLARWATCH_DETECTOR_WORKERS", "many")

    with pytest.raises(ValueError, match="SOLARWATCH_DETECTOR_WORKERS"):
        AppConfig()


@pytest.mark.parametrize("value", ["25:00", "midnight", "7"])
def test_bad_detection_time(monkeypatch, value):
    monkeypatch.setenv("SOLARWATCH_DETECTION_TIME", value)

    with pytest.raises(ConfigurationError, match="HH:MM"):
        AppConfig()


def test_zero_workers_are_rejected(monkeypatch):
    monkeypatch.setenv("SOLARWATCH_BATCH_UNIT_WORKERS", "0")

    with pytest.raises(ConfigurationError, match="batch_unit_workers"):
        AppConfig()


def test_production_requires_secret(monkeypatch):
    monkeypatch.setenv("SOLARWATCH_ENV", "production")

    with pytest.raises(ConfigurationError, match="secret key"):
        AppConfig()

    monkeypatch.setenv("SOLARWATCH_SECRET_KEY", "f" * 64)
    assert AppConfig().environment == "production"


def test_flask_config():
    flask_config = AppConfig(database_path=":memory:").as_flask_config()

    assert flask_config["DATABASE_PATH"] == ":memory:"
    assert flask_config["SECRET_KEY"]


def test_web_container_does_not_run_nightly_job_by_default():
    container = ServiceContainer.build(AppConfig(database_path=":memory:", log_file="", audit_log_path=""))
    try:
        assert container.scheduler.is_running() is False
        assert [job.task_name for job in container.scheduler.get_jobs()] == ["solar.detect_anomalies"]
    finally:
        container.shutdown()


def test_web_container_runs_nightly_job_when_enabled(monkeypatch):
    monkeypatch.setenv("SOLARWATCH_SCHEDULER_ENABLED", "true")

    container = ServiceContainer.build(AppConfig(database_path=":memory:", log_file="", audit_log_path=""))
    try:
        assert container.scheduler.is_running() is True
    finally:
        container.shutdown()
