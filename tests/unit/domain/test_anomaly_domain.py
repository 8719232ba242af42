"""Regression tests for the anomaly domain objects."""

from datetime import date, datetime, timezone

import pytest

from app.domain.anomaly import AnomalyFinding, AnomalyRecord, BatchDetectionSummary, DetectionOutcome
from app.domain.energy import UnitProfile
from app.enums import AnomalySeverity, AnomalyType, DetectionStatus


def _finding(**overrides):
    values = dict(
        anomaly_type=AnomalyType.SHADING,
        severity=AnomalySeverity.INFO,
        description="Possible shading",
        affected_start_date=date(2024, 1, 3),
        affected_end_date=date(2024, 1, 6),
        metadata={"affected_days": 3},
    )
    values.update(overrides)
    return AnomalyFinding(**values)


def test_finding_requires_metadata():
    with pytest.raises(ValueError, match="metadata"):
        _finding(metadata={})


def test_finding_range_must_not_be_reversed():
    with pytest.raises(ValueError):
        _finding(affected_start_date=date(2024, 1, 7))


def test_record_from_finding_copies_evidence():
    found = _finding()
    detected_at = datetime(2024, 2, 1, tzinfo=timezone.utc)

    record = AnomalyRecord.from_finding(9, found, detected_at)

    assert record.unit_id == 9
    assert record.resolved is False
    assert record.anomaly_id is None
    assert record.metadata == found.metadata
    assert record.metadata is not found.metadata
    assert record.to_dict()["affected_end_date"] == "2024-01-06"
    assert record.to_dict()["anomaly_type"] == "SHADING"


def test_profile_capacity_must_be_positive():
    with pytest.raises(ValueError):
        UnitProfile(unit_id=1, capacity_kw=0)


def test_summary_counts_failed_units():
    summary = BatchDetectionSummary(
        outcomes=[
            DetectionOutcome(unit_id=1, status=DetectionStatus.COMPLETED, detected=3, created=2, skipped=1),
            DetectionOutcome(unit_id=2, status=DetectionStatus.NO_DATA),
            DetectionOutcome(unit_id=3, status=DetectionStatus.PARTIAL, detected=2, created=1, failed=1),
        ]
    )

    assert summary.units_failed == 1
    assert summary.total_detected == 5
    assert summary.total_created == 3
    assert summary.total_skipped == 1
    assert summary.to_dict()["outcomes"][2]["status"] == "partial"


def test_severity_rank_orders_by_urgency():
    assert sorted(AnomalySeverity, key=lambda s: s.rank) == [
        AnomalySeverity.CRITICAL,
        AnomalySeverity.WARNING,
        AnomalySeverity.INFO,
    ]
    assert AnomalyType.SENSOR_ERROR.display_name == "Sensor Error"
