"""
Shared test fixtures for the SolarWatch backend test suite.

Provides:
- In-memory SQLite database with all tables created
- Repository instances wired to the test database
- Helper utilities for seeding solar units and generation history
- A Flask app/client with the scheduler and file logging disabled

Usage:
    def test_example(energy_repo, seed):
        unit_id = seed.create_unit(capacity_kw=5.0)
        seed.daily_series(unit_id, [10, 10, 10, 10, 0])
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import date, datetime, time, timedelta, timezone
from itertools import count
from typing import Iterable

# Ensure repository root is on sys.path so tests can import application modules
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import pytest

from app.enums import UnitStatus
from infrastructure.database.repositories.anomalies import SolarAnomalyRepository
from infrastructure.database.repositories.energy import EnergyRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

# ---------------------------------------------------------------------------
# Logging — keep test output clean
# ---------------------------------------------------------------------------
logging.getLogger("infrastructure").setLevel(logging.WARNING)
logging.getLogger("app").setLevel(logging.WARNING)

SERIES_START = date(2024, 1, 1)


# ========================== Database Fixtures ==============================


@pytest.fixture()
def db_handler():
    """In-memory SQLite database with all tables created.

    Each test gets a fresh database — no cross-test contamination.
    """
    handler = SQLiteDatabaseHandler(":memory:")
    handler.create_tables()
    yield handler
    handler.close()


@pytest.fixture()
def db_connection(db_handler):
    """Raw sqlite3 connection for direct SQL in tests."""
    with db_handler.connection() as conn:
        yield conn


# ========================== Repository Fixtures ============================


@pytest.fixture()
def energy_repo(db_handler):
    """EnergyRepository backed by the in-memory DB."""
    return EnergyRepository(db_handler)


@pytest.fixture()
def anomaly_repo(db_handler):
    """SolarAnomalyRepository backed by the in-memory DB."""
    return SolarAnomalyRepository(db_handler)


@pytest.fixture()
def detection_service(energy_repo, anomaly_repo):
    """AnomalyDetectionService wired to the real repositories."""
    from app.services.utilities.anomaly_detection_service import AnomalyDetectionService

    return AnomalyDetectionService(
        energy_repo,
        energy_repo,
        anomaly_repo,
        units=energy_repo,
        detector_workers=4,
    )


@pytest.fixture()
def anomaly_service(anomaly_repo, energy_repo):
    """AnomalyService with real repos and no audit logger."""
    from app.services.application.anomaly_service import AnomalyService

    return AnomalyService(anomaly_repo, energy_repo)


# ========================== Seed Data Helpers ==============================


class SeedData:
    """Helper to create commonly needed test data.

    Usage in tests::

        def test_something(seed):
            unit_id = seed.create_unit(capacity_kw=5.0, user_id=7)
            seed.daily_series(unit_id, [20, 20, 20, 4, 4])
    """

    def __init__(self, energy_repo: EnergyRepository):
        self._repo = energy_repo
        self._serials = count(1)

    def create_unit(
        self,
        capacity_kw: float = 5.0,
        *,
        user_id: int | None = None,
        status: UnitStatus = UnitStatus.ACTIVE,
    ) -> int:
        """Create a solar unit and return its ID."""
        return self._repo.create_unit(
            f"SN-TEST-{next(self._serials):04d}",
            capacity_kw,
            user_id=user_id,
            installation_date=date(2023, 6, 1),
            status=status,
        )

    def daily_series(
        self,
        unit_id: int,
        totals: Iterable[float],
        *,
        start: date = SERIES_START,
    ) -> list[date]:
        """Write one reading per day at noon UTC; returns the seeded days."""
        days: list[date] = []
        readings: list[tuple[datetime, float]] = []
        for offset, total in enumerate(totals):
            day = start + timedelta(days=offset)
            days.append(day)
            readings.append((datetime.combine(day, time(12, 0), tzinfo=timezone.utc), float(total)))
        self._repo.record_generation_batch(unit_id, readings)
        return days


@pytest.fixture()
def seed(energy_repo):
    """SeedData helper for quickly populating the test database."""
    return SeedData(energy_repo)


# ========================== Flask Fixtures =================================


@pytest.fixture()
def app():
    """Flask app on an in-memory database, scheduler off, no log files."""
    from app import create_app

    flask_app = create_app(
        {
            "database_path": ":memory:",
            "log_file": "",
            "audit_log_path": "",
            "scheduler_enabled": False,
        }
    )
    flask_app.config["TESTING"] = True
    yield flask_app
    flask_app.extensions["solarwatch_shutdown"]("test teardown")


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def container(app):
    return app.config["CONTAINER"]


@pytest.fixture()
def app_seed(container):
    """SeedData bound to the Flask app's database."""
    return SeedData(container.energy_repo)
