"""
Background scheduler for SolarWatch jobs.

One loop thread pops due jobs from a heap and hands them to a bounded
worker pool. Tasks are registered by name so the nightly detection pass
can also run on demand from the CLI.

Jobs run once a day at a local ``HH:MM`` wall-clock time.
"""

from __future__ import annotations

import heapq
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass
class JobResult:
    """Outcome of one task execution."""

    job_id: str
    success: bool
    started_at: datetime
    completed_at: datetime
    result: Any = None
    error: str | None = None

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()


@dataclass
class DailyJob:
    """A task bound to a daily run time, with its run counters."""

    job_id: str
    task_name: str
    namespace: str  # e.g. "solar"
    time_of_day: str  # "HH:MM", local time

    next_run: datetime | None = None
    last_run: datetime | None = None
    run_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "task_name": self.task_name,
            "namespace": self.namespace,
            "time_of_day": self.time_of_day,
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "run_count": self.run_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "last_error": self.last_error,
        }


class UnifiedScheduler:
    """
    Heap-driven daily scheduler with a bounded executor.

    Heap entries are ``(run_at_ts, seq, job_id)``. A job is advanced to its
    next day before it is submitted, so an entry whose timestamp no longer
    matches ``job.next_run`` is stale and skipped.
    """

    def __init__(
        self,
        check_interval_seconds: float = 1.0,
        max_history: int = 500,
        max_workers: int = 2,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            check_interval_seconds: How often the loop looks for due jobs
            max_history: Number of JobResults kept for status reporting
            max_workers: Maximum number of concurrent job executions
            clock: Local wall-clock time source
        """
        self._check_interval = float(check_interval_seconds)
        self._max_history = int(max_history)
        self._max_workers = int(max_workers)
        self._now = clock

        self._jobs: dict[str, DailyJob] = {}
        self._tasks: dict[str, Callable] = {}

        self._job_heap: list[tuple[float, int, str]] = []
        self._heap_seq = 0
        self._history: list[JobResult] = []

        self._running = False
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._job_lock = threading.RLock()
        self._executor: ThreadPoolExecutor | None = None

    def register_task(self, name: str, func: Callable) -> None:
        self._tasks[name] = func
        logger.debug("Registered task: %s", name)

    def schedule_daily(self, task_name: str, time_of_day: str, *, job_id: str | None = None) -> DailyJob:
        """Run *task_name* every day at ``HH:MM`` local time."""
        job = DailyJob(
            job_id=job_id or f"{task_name}_daily_{time_of_day.replace(':', '')}",
            task_name=task_name,
            namespace=task_name.split(".")[0] if "." in task_name else "default",
            time_of_day=time_of_day,
            next_run=self._calculate_next_daily(time_of_day),
        )
        with self._job_lock:
            self._jobs[job.job_id] = job
            self._push_heap(job)
        logger.info("Scheduled daily job: %s (at %s)", job.job_id, time_of_day)
        return job

    def run_now(self, task_name: str, *, kwargs: dict[str, Any] | None = None) -> JobResult | None:
        """Run a task in the calling thread; None when no such task is registered."""
        func = self._tasks.get(task_name)
        if func is None:
            logger.error("Task not found: %s", task_name)
            return None

        started_at = self._now()
        job_id = f"{task_name}_immediate_{int(started_at.timestamp())}"
        try:
            result = func(**(kwargs or {}))
        except Exception as e:
            logger.error("Immediate task %s failed: %s", task_name, e, exc_info=True)
            job_result = JobResult(job_id, False, started_at, self._now(), error=str(e))
        else:
            job_result = JobResult(job_id, True, started_at, self._now(), result=result)

        self._record_history(job_result)
        return job_result

    def get_jobs(self) -> list[DailyJob]:
        with self._job_lock:
            return list(self._jobs.values())

    # ==================== Scheduler Control ====================

    def start(self) -> None:
        """Start the loop thread and the worker pool."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="SchedulerJob")
        self._stop_event.clear()
        self._running = True
        self._thread = threading.Thread(target=self._run_loop, daemon=True, name="UnifiedScheduler")
        self._thread.start()
        logger.info("UnifiedScheduler started with %s job(s)", len(self._jobs))

    def stop(self, wait: bool = True, timeout: float = 5.0) -> None:
        if not self._running:
            return

        self._running = False
        self._stop_event.set()
        if wait and self._thread:
            self._thread.join(timeout=timeout)
        if self._executor:
            self._executor.shutdown(wait=wait)
            self._executor = None
        logger.info("UnifiedScheduler stopped")

    def shutdown(self, wait: bool = True, timeout: float = 5.0) -> None:
        """Alias for stop(), matching the container's shutdown() convention."""
        self.stop(wait=wait, timeout=timeout)

    def is_running(self) -> bool:
        return self._running

    def _run_loop(self) -> None:
        while self._running:
            try:
                self._process_due_jobs()
            except Exception as e:
                logger.error("Error in scheduler loop: %s", e, exc_info=True)
            self._stop_event.wait(self._check_interval)

    # ==================== Core Scheduling Logic ====================

    def _push_heap(self, job: DailyJob) -> None:
        if job.next_run is None:
            return
        self._heap_seq += 1
        heapq.heappush(self._job_heap, (job.next_run.timestamp(), self._heap_seq, job.job_id))

    def _process_due_jobs(self) -> None:
        """Submit every job whose heap entry is due."""
        now_ts = self._now().timestamp()

        with self._job_lock:
            while self._job_heap and self._job_heap[0][0] <= now_ts:
                run_at_ts, _seq, job_id = heapq.heappop(self._job_heap)
                job = self._jobs.get(job_id)
                if job is None or job.next_run is None:
                    continue
                if abs(job.next_run.timestamp() - run_at_ts) > 1e-6:
                    continue

                scheduled_for = job.next_run
                # Advance first so a run longer than a day cannot be submitted twice
                job.next_run = self._calculate_next_daily(job.time_of_day)
                self._push_heap(job)

                if not self._executor:
                    logger.warning("Executor unavailable; skipping job %s", job_id)
                    continue
                self._executor.submit(self._execute_job, job, scheduled_for)

    def _execute_job(self, job: DailyJob, scheduled_for: datetime) -> None:
        started_at = self._now()
        func = self._tasks.get(job.task_name)
        try:
            if func is None:
                raise LookupError(f"Task function not found: {job.task_name}")
            result = func()
        except Exception as e:
            with self._job_lock:
                job.last_run = started_at
                job.run_count += 1
                job.failure_count += 1
                job.last_error = str(e)
            self._record_history(JobResult(job.job_id, False, started_at, self._now(), error=str(e)))
            logger.error("Job %s failed: %s", job.job_id, e, exc_info=True)
            return

        with self._job_lock:
            job.last_run = started_at
            job.run_count += 1
            job.success_count += 1
            job.last_error = None
        job_result = JobResult(job.job_id, True, started_at, self._now(), result=result)
        self._record_history(job_result)
        logger.info(
            "Job %s completed in %.2fs (scheduled_for=%s)",
            job.job_id,
            job_result.duration_seconds,
            scheduled_for.isoformat(),
        )

    def _calculate_next_daily(self, time_of_day: str) -> datetime:
        """Next occurrence of ``HH:MM`` strictly after now."""
        now = self._now()
        hour, minute = map(int, time_of_day.split(":"))
        next_run = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
        if next_run <= now:
            next_run += timedelta(days=1)
        return next_run

    def _record_history(self, result: JobResult) -> None:
        with self._job_lock:
            self._history.append(result)
            if len(self._history) > self._max_history:
                self._history = self._history[-self._max_history :]

    def get_status(self) -> dict[str, Any]:
        with self._job_lock:
            last = self._history[-1] if self._history else None
            return {
                "running": self._running,
                "total_jobs": len(self._jobs),
                "registered_tasks": sorted(self._tasks),
                "jobs": [j.to_dict() for j in self._jobs.values()],
                "history_size": len(self._history),
                "recent_failures": sum(1 for r in self._history[-20:] if not r.success),
                "last_result": (
                    {
                        "job_id": last.job_id,
                        "success": last.success,
                        "started_at": last.started_at.isoformat(),
                        "error": last.error,
                    }
                    if last
                    else None
                ),
                "max_workers": self._max_workers,
            }
