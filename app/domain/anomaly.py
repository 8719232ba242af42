"""
Anomaly Detection Domain Objects
=================================
Dataclasses for solar production anomalies: the detector-level finding,
the persisted record, and the per-unit / batch run outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from app.enums import AnomalySeverity, AnomalyType, DetectionStatus


@dataclass(frozen=True)
class AnomalyFinding:
    """Candidate anomaly produced by a detector, before dedup/persistence."""

    anomaly_type: AnomalyType
    severity: AnomalySeverity
    description: str
    affected_start_date: date
    affected_end_date: date
    metadata: dict[str, Any]

    def __post_init__(self) -> None:
        if not self.metadata:
            raise ValueError("Anomaly findings must carry quantitative metadata")
        if self.affected_end_date < self.affected_start_date:
            raise ValueError("affected_end_date precedes affected_start_date")


@dataclass
class AnomalyRecord:
    """Persisted anomaly for a solar unit."""

    unit_id: int
    anomaly_type: AnomalyType
    severity: AnomalySeverity
    detection_timestamp: datetime
    affected_start_date: date
    affected_end_date: date
    description: str
    metadata: dict[str, Any]
    resolved: bool = False
    resolved_at: datetime | None = None
    anomaly_id: int | None = None

    @classmethod
    def from_finding(cls, unit_id: int, finding: AnomalyFinding, detected_at: datetime) -> "AnomalyRecord":
        """Build a new unresolved record carrying over the finding's evidence."""
        return cls(
            unit_id=unit_id,
            anomaly_type=finding.anomaly_type,
            severity=finding.severity,
            detection_timestamp=detected_at,
            affected_start_date=finding.affected_start_date,
            affected_end_date=finding.affected_end_date,
            description=finding.description,
            metadata=dict(finding.metadata),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (for API responses)."""
        return {
            "anomaly_id": self.anomaly_id,
            "unit_id": self.unit_id,
            "anomaly_type": self.anomaly_type.value,
            "severity": self.severity.value,
            "detection_timestamp": self.detection_timestamp.isoformat(),
            "affected_start_date": self.affected_start_date.isoformat(),
            "affected_end_date": self.affected_end_date.isoformat(),
            "description": self.description,
            "resolved": self.resolved,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "metadata": self.metadata,
        }


@dataclass
class DetectionOutcome:
    """Result of one detection run for a single unit.

    Failures are reported here instead of raised so that batch callers can
    inspect each unit and carry on.
    """

    unit_id: int
    status: DetectionStatus
    detected: int = 0
    created: int = 0
    skipped: int = 0
    failed: int = 0
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status in (DetectionStatus.COMPLETED, DetectionStatus.NO_DATA)

    def to_dict(self) -> dict[str, Any]:
        return {
            "unit_id": self.unit_id,
            "status": self.status.value,
            "detected": self.detected,
            "created": self.created,
            "skipped": self.skipped,
            "failed": self.failed,
            "error": self.error,
        }


@dataclass
class BatchDetectionSummary:
    """Aggregated outcomes of a multi-unit detection run."""

    outcomes: list[DetectionOutcome] = field(default_factory=list)

    @property
    def units_processed(self) -> int:
        return len(self.outcomes)

    @property
    def units_failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.succeeded)

    @property
    def total_detected(self) -> int:
        return sum(o.detected for o in self.outcomes)

    @property
    def total_created(self) -> int:
        return sum(o.created for o in self.outcomes)

    @property
    def total_skipped(self) -> int:
        return sum(o.skipped for o in self.outcomes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "units_processed": self.units_processed,
            "units_failed": self.units_failed,
            "total_detected": self.total_detected,
            "total_created": self.total_created,
            "total_skipped": self.total_skipped,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
