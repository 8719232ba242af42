"""
Anomaly Detection Service
==========================
Runs the solar production detectors for a unit and persists new findings.

A run has two phases:

1. Detect: the daily series and unit profile are read once, then every
   detector in :data:`~app.services.utilities.anomaly_detectors.DETECTORS`
   runs concurrently over the same immutable inputs. Results are joined
   in detector order before anything is written.
2. Dedup/persist: findings are walked sequentially. A finding whose
   ``(unit, type, affected_start_date)`` already has an unresolved record is
   skipped; everything else is created.

Failures never escape a run. Each unit's result is a
:class:`~app.domain.anomaly.DetectionOutcome`, so batch callers keep going
when one unit cannot be processed.

Note: dedup is check-then-create without a transaction. Two concurrent runs
for the same unit can both create a record for one key; callers schedule at
most one run per unit at a time.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Iterable

from app.domain.anomaly import AnomalyFinding, AnomalyRecord, BatchDetectionSummary, DetectionOutcome
from app.domain.energy import DailyAggregate, UnitProfile
from app.domain.exceptions import ConfigurationError, DataUnavailableError, NotFoundError, PersistenceError
from app.enums import DetectionStatus
from app.services.utilities.anomaly_detectors import DETECTORS, DetectorFn
from app.utils.time import utc_now

if TYPE_CHECKING:
    from infrastructure.database.repositories.base import (
        AnomalyStore,
        DailyAggregateProvider,
        UnitDirectory,
        UnitProfileProvider,
    )

logger = logging.getLogger(__name__)


class AnomalyDetectionService:
    """
    Service for detecting production anomalies on solar units.

    Detection methods (see ``anomaly_detectors``):
    - Mechanical failure (day-over-day collapse)
    - Temperature derating (sustained low efficiency)
    - Shading/obstruction (persistent output below peak)
    - Sensor error (physical bounds and IQR outliers)
    """

    def __init__(
        self,
        aggregates: DailyAggregateProvider,
        profiles: UnitProfileProvider,
        anomaly_store: AnomalyStore,
        *,
        units: UnitDirectory | None = None,
        detector_workers: int = 4,
        unit_workers: int = 1,
        detectors: tuple[tuple[str, DetectorFn], ...] = DETECTORS,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize anomaly detection service.

        Args:
            aggregates: Source of per-day energy totals
            profiles: Source of unit profiles (capacity)
            anomaly_store: Persistence for detected anomalies
            units: Lists unit ids for the active-unit and per-user batches
            detector_workers: Threads used to run detectors for one unit
            unit_workers: Units processed in parallel by batch runs (1 = sequential)
            detectors: ``(name, fn)`` pairs, in persistence order
            clock: Returns the detection timestamp for new records
        """
        self._aggregates = aggregates
        self._profiles = profiles
        self._store = anomaly_store
        self._units = units
        self._detector_workers = max(1, detector_workers)
        self._unit_workers = max(1, unit_workers)
        self._detectors = detectors
        self._clock = clock

    # ------------------------------------------------------------------
    # Single unit
    # ------------------------------------------------------------------

    def detect_for_unit(self, unit_id: int) -> DetectionOutcome:
        """Run every detector for *unit_id* and persist new findings."""
        try:
            profile = self._profiles.get_unit_profile(unit_id)
            aggregates = tuple(self._aggregates.get_daily_aggregates(unit_id))
        except (NotFoundError, DataUnavailableError) as exc:
            logger.warning("Skipping anomaly detection for unit %s: %s", unit_id, exc)
            return DetectionOutcome(unit_id=unit_id, status=DetectionStatus.DATA_UNAVAILABLE, error=str(exc))

        if not aggregates:
            logger.info("No energy generation records for unit %s; nothing to analyze", unit_id)
            return DetectionOutcome(unit_id=unit_id, status=DetectionStatus.NO_DATA)

        logger.info("Running anomaly detection for unit %s over %s days", unit_id, len(aggregates))
        findings = self.run_detectors(aggregates, profile)
        outcome = self._persist_findings(unit_id, findings)

        logger.info(
            "Anomaly detection for unit %s finished: %s detected, %s created, %s skipped, %s failed",
            unit_id,
            outcome.detected,
            outcome.created,
            outcome.skipped,
            outcome.failed,
        )
        return outcome

    def run_detectors(
        self, aggregates: tuple[DailyAggregate, ...], profile: UnitProfile
    ) -> list[AnomalyFinding]:
        """Run all detectors concurrently and join their findings in detector order.

        A detector that raises is logged and contributes no findings.
        """
        if self._detector_workers == 1:
            results = [self._run_one(name, fn, aggregates, profile) for name, fn in self._detectors]
        else:
            with ThreadPoolExecutor(
                max_workers=min(self._detector_workers, len(self._detectors)),
                thread_name_prefix="anomaly-detector",
            ) as executor:
                futures = [
                    executor.submit(self._run_one, name, fn, aggregates, profile) for name, fn in self._detectors
                ]
                results = [future.result() for future in futures]

        findings: list[AnomalyFinding] = []
        for detector_findings in results:
            findings.extend(detector_findings)
        return findings

    @staticmethod
    def _run_one(
        name: str, fn: DetectorFn, aggregates: tuple[DailyAggregate, ...], profile: UnitProfile
    ) -> list[AnomalyFinding]:
        try:
            return list(fn(aggregates, profile))
        except Exception:
            logger.exception("Detector %s failed for unit %s", name, profile.unit_id)
            return []

    def _persist_findings(self, unit_id: int, findings: list[AnomalyFinding]) -> DetectionOutcome:
        detected_at = self._clock()
        created = skipped = failed = 0
        last_error: str | None = None

        for finding in findings:
            try:
                existing = self._store.find_unresolved(unit_id, finding.anomaly_type, finding.affected_start_date)
                if existing is not None:
                    skipped += 1
                    continue
                self._store.create(AnomalyRecord.from_finding(unit_id, finding, detected_at))
                created += 1
            except PersistenceError as exc:
                failed += 1
                last_error = str(exc)
                logger.error(
                    "Failed to persist %s anomaly for unit %s (start %s): %s",
                    finding.anomaly_type,
                    unit_id,
                    finding.affected_start_date,
                    exc,
                )

        return DetectionOutcome(
            unit_id=unit_id,
            status=DetectionStatus.PARTIAL if failed else DetectionStatus.COMPLETED,
            detected=len(findings),
            created=created,
            skipped=skipped,
            failed=failed,
            error=last_error,
        )

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def detect_for_units(self, unit_ids: Iterable[int]) -> BatchDetectionSummary:
        """Run detection for each unit, isolating failures per unit."""
        ids = list(unit_ids)
        if self._unit_workers == 1 or len(ids) <= 1:
            outcomes = [self._detect_isolated(unit_id) for unit_id in ids]
        else:
            with ThreadPoolExecutor(
                max_workers=min(self._unit_workers, len(ids)),
                thread_name_prefix="anomaly-unit",
            ) as executor:
                outcomes = list(executor.map(self._detect_isolated, ids))

        summary = BatchDetectionSummary(outcomes=outcomes)
        logger.info(
            "Anomaly detection batch finished: %s units (%s failed), %s created, %s skipped",
            summary.units_processed,
            summary.units_failed,
            summary.total_created,
            summary.total_skipped,
        )
        return summary

    def detect_for_active_units(self) -> BatchDetectionSummary:
        """Run detection for every unit with status ACTIVE.

        Raises DataUnavailableError when the unit list itself cannot be read.
        """
        return self.detect_for_units(self._unit_directory().list_active_unit_ids())

    def detect_for_user(self, user_id: int) -> BatchDetectionSummary:
        """Run detection for every unit owned by *user_id*."""
        return self.detect_for_units(self._unit_directory().list_unit_ids_for_user(user_id))

    def _unit_directory(self) -> UnitDirectory:
        if self._units is None:
            raise ConfigurationError("AnomalyDetectionService was built without a unit directory")
        return self._units

    def _detect_isolated(self, unit_id: int) -> DetectionOutcome:
        try:
            return self.detect_for_unit(unit_id)
        except Exception as exc:
            logger.exception("Anomaly detection crashed for unit %s", unit_id)
            return DetectionOutcome(unit_id=unit_id, status=DetectionStatus.DATA_UNAVAILABLE, error=str(exc))
