"""
Scheduled Tasks: background task definitions for the UnifiedScheduler.

Namespaces:
- solar.*: anomaly detection over solar units

Usage:
    from app.workers.scheduled_tasks import configure_scheduler

    configure_scheduler(container.scheduler, container)
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from app.services.container import ServiceContainer
    from app.workers.unified_scheduler import UnifiedScheduler

logger = logging.getLogger(__name__)

DETECT_ANOMALIES_TASK = "solar.detect_anomalies"
DETECT_ANOMALIES_JOB_ID = "solar_detect_anomalies_daily"


# ==================== Solar Namespace Tasks ====================


def anomaly_detection_task(container: "ServiceContainer", unit_id: int | None = None) -> dict[str, Any]:
    """
    Run anomaly detection over every ACTIVE solar unit (or a single unit).

    Runs nightly at the configured detection time. Per-unit failures are
    reported in the summary and never abort the batch.

    Task name: solar.detect_anomalies
    """
    service = container.anomaly_detection_service
    if unit_id is not None:
        summary = service.detect_for_units([unit_id])
    else:
        summary = service.detect_for_active_units()

    if summary.units_failed:
        failed = [o.unit_id for o in summary.outcomes if not o.succeeded]
        logger.warning("Anomaly detection could not complete for units %s", failed)

    return summary.to_dict()


# ==================== Registration ====================


def register_all_tasks(
    scheduler: "UnifiedScheduler",
    container: "ServiceContainer",
) -> None:
    """
    Register all tasks with the scheduler.

    Args:
        scheduler: UnifiedScheduler instance
        container: ServiceContainer with all services
    """

    def bind_container(task_fn):
        @wraps(task_fn)
        def bound_task(*args, **kwargs):
            try:
                return task_fn(container, *args, **kwargs)
            except Exception as e:
                logger.exception("Scheduled task %s raised: %s", task_fn.__name__, e)
                # Re-raise to let scheduler record failure in history as well
                raise

        return bound_task

    scheduler.register_task(DETECT_ANOMALIES_TASK, bind_container(anomaly_detection_task))
    logger.info("Registered scheduled tasks")


def schedule_default_jobs(scheduler: "UnifiedScheduler", detection_time: str = "00:00") -> None:
    """
    Schedule default jobs.

    Call this after register_all_tasks().

    Args:
        scheduler: UnifiedScheduler instance
        detection_time: Local ``HH:MM`` for the nightly detection run
    """
    scheduler.schedule_daily(
        DETECT_ANOMALIES_TASK,
        time_of_day=detection_time,
        job_id=DETECT_ANOMALIES_JOB_ID,
    )

    for job in scheduler.get_jobs():
        logger.debug("  - %s: daily at %s (%s)", job.job_id, job.time_of_day, job.namespace)


def configure_scheduler(
    scheduler: "UnifiedScheduler",
    container: "ServiceContainer",
    *,
    start: bool = True,
) -> None:
    """Register tasks, apply default schedules, and optionally start the scheduler."""
    register_all_tasks(scheduler, container)
    schedule_default_jobs(scheduler, container.config.detection_time)

    if start:
        scheduler.start()
