"""
Tests for the nightly detection job wiring and the UnifiedScheduler.

Covers:
- Task registration and the default daily job
- run_now executing detection through the container
- Daily next-run calculation with an injected clock
- Due-job processing, failure accounting and status
"""

from __future__ import annotations

import threading
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from app.domain.anomaly import BatchDetectionSummary, DetectionOutcome
from app.enums import DetectionStatus
from app.workers.scheduled_tasks import (
    DETECT_ANOMALIES_JOB_ID,
    DETECT_ANOMALIES_TASK,
    anomaly_detection_task,
    configure_scheduler,
)
from app.workers.unified_scheduler import UnifiedScheduler


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def fake_container(detection_time: str = "00:00"):
    service = MagicMock()
    service.detect_for_active_units.return_value = BatchDetectionSummary(
        outcomes=[
            DetectionOutcome(unit_id=1, status=DetectionStatus.COMPLETED, detected=2, created=2),
            DetectionOutcome(unit_id=2, status=DetectionStatus.DATA_UNAVAILABLE, error="locked"),
        ]
    )
    service.detect_for_units.return_value = BatchDetectionSummary(
        outcomes=[DetectionOutcome(unit_id=3, status=DetectionStatus.NO_DATA)]
    )
    return SimpleNamespace(
        anomaly_detection_service=service,
        config=SimpleNamespace(detection_time=detection_time),
    )


class TestDetectionTask:
    def test_runs_all_active_units(self):
        container = fake_container()

        result = anomaly_detection_task(container)

        container.anomaly_detection_service.detect_for_active_units.assert_called_once_with()
        assert result["units_processed"] == 2
        assert result["units_failed"] == 1
        assert result["total_created"] == 2

    def test_single_unit(self):
        container = fake_container()

        result = anomaly_detection_task(container, unit_id=3)

        container.anomaly_detection_service.detect_for_units.assert_called_once_with([3])
        assert result["outcomes"][0]["status"] == "no_data"


class TestConfigureScheduler:
    def test_registers_task_and_daily_job(self):
        scheduler = UnifiedScheduler(clock=FakeClock(datetime(2024, 6, 1, 12, 0)))

        configure_scheduler(scheduler, fake_container("01:30"), start=False)

        assert scheduler.get_status()["registered_tasks"] == [DETECT_ANOMALIES_TASK]
        (job,) = scheduler.get_jobs()
        assert job.job_id == DETECT_ANOMALIES_JOB_ID
        assert job.time_of_day == "01:30"
        assert job.namespace == "solar"
        assert job.next_run == datetime(2024, 6, 2, 1, 30)
        assert not scheduler.is_running()

    def test_run_now_goes_through_container(self):
        scheduler = UnifiedScheduler()
        container = fake_container()
        configure_scheduler(scheduler, container, start=False)

        result = scheduler.run_now(DETECT_ANOMALIES_TASK, kwargs={"unit_id": 3})

        assert result.success
        assert result.result["units_processed"] == 1
        status = scheduler.get_status()
        assert status["history_size"] == 1
        assert status["last_result"]["success"] is True

    def test_failing_task_is_recorded(self):
        scheduler = UnifiedScheduler()
        container = fake_container()
        container.anomaly_detection_service.detect_for_active_units.side_effect = RuntimeError("db gone")
        configure_scheduler(scheduler, container, start=False)

        result = scheduler.run_now(DETECT_ANOMALIES_TASK)

        assert result.success is False
        assert result.error == "db gone"
        assert scheduler.get_status()["recent_failures"] == 1

    def test_unknown_task_returns_none(self):
        assert UnifiedScheduler().run_now("solar.unknown") is None


@pytest.mark.parametrize(
    "now, time_of_day, expected",
    [
        (datetime(2024, 6, 1, 0, 15), "02:00", datetime(2024, 6, 1, 2, 0)),
        (datetime(2024, 6, 1, 23, 59), "00:00", datetime(2024, 6, 2, 0, 0)),
        # Exactly at the run time: next run is tomorrow
        (datetime(2024, 6, 1, 0, 0), "00:00", datetime(2024, 6, 2, 0, 0)),
    ],
)
def test_next_daily_run(now, time_of_day, expected):
    scheduler = UnifiedScheduler(clock=FakeClock(now))
    assert scheduler._calculate_next_daily(time_of_day) == expected


class TestDueJobs:
    def test_due_daily_job_runs_and_is_rescheduled(self):
        clock = FakeClock(datetime(2024, 6, 1, 23, 0))
        scheduler = UnifiedScheduler(clock=clock)
        ran = threading.Event()
        scheduler.register_task("solar.nightly", ran.set)
        job = scheduler.schedule_daily("solar.nightly", "23:30", job_id="nightly")

        scheduler.start()
        try:
            clock.now = datetime(2024, 6, 1, 23, 30)
            scheduler._process_due_jobs()
            assert ran.wait(timeout=2)
        finally:
            scheduler.stop()

        assert job.next_run == datetime(2024, 6, 2, 23, 30)
        assert job.run_count == 1
        assert job.success_count == 1

    def test_job_runs_once_per_day(self):
        clock = FakeClock(datetime(2024, 6, 1, 11, 0))
        scheduler = UnifiedScheduler(clock=clock)
        calls = []
        scheduler.register_task("solar.count", lambda: calls.append(1))
        scheduler.schedule_daily("solar.count", "12:00", job_id="count")

        scheduler.start()
        try:
            scheduler._process_due_jobs()
            clock.now = datetime(2024, 6, 1, 12, 0, 30)
            scheduler._process_due_jobs()
            scheduler._process_due_jobs()
        finally:
            scheduler.stop()

        assert calls == [1]

    def test_failing_job_updates_counters(self):
        clock = FakeClock(datetime(2024, 6, 1, 11, 0))
        scheduler = UnifiedScheduler(clock=clock)

        def boom():
            raise ValueError("bad")

        scheduler.register_task("solar.boom", boom)
        job = scheduler.schedule_daily("solar.boom", "12:00", job_id="boom")

        scheduler._execute_job(job, job.next_run)

        assert job.failure_count == 1
        assert job.last_error == "bad"
        status = scheduler.get_status()
        assert status["jobs"][0]["last_error"] == "bad"
        assert status["last_result"]["job_id"] == "boom"
        assert status["last_result"]["success"] is False

    def test_status_lists_tasks_and_jobs(self):
        scheduler = UnifiedScheduler(clock=FakeClock(datetime(2024, 6, 1, 12, 0)))
        configure_scheduler(scheduler, fake_container(), start=False)

        status = scheduler.get_status()

        assert status["running"] is False
        assert status["total_jobs"] == 1
        assert [j["job_id"] for j in status["jobs"]] == [DETECT_ANOMALIES_JOB_ID]
        assert status["jobs"][0]["next_run"] == "2024-06-02T00:00:00"
        assert status["last_result"] is None
