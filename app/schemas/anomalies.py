"""
Anomaly Schemas
===============

Query and response schemas for the anomalies API.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.domain.anomaly import AnomalyRecord
from app.enums import AnomalySeverity, AnomalyType

MAX_LIST_LIMIT = 500


class AnomalyListQuery(BaseModel):
    """Query-string filters for listing anomalies."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    anomaly_type: Optional[AnomalyType] = Field(default=None, alias="type")
    severity: Optional[AnomalySeverity] = None
    resolved: Optional[bool] = None
    unit_id: Optional[int] = Field(default=None, ge=1)
    limit: int = Field(default=100, ge=1, le=MAX_LIST_LIMIT)

    @field_validator("anomaly_type", "severity", mode="before")
    @classmethod
    def normalize_enum(cls, v):
        """Accept lower-case enum names (``?type=shading``)."""
        if isinstance(v, str):
            v = v.strip().upper()
            return v or None
        return v


class StatisticsQuery(BaseModel):
    """Query-string filters for anomaly statistics."""

    model_config = ConfigDict(extra="ignore")

    resolved: Optional[bool] = None


class AnomalyResponse(BaseModel):
    """Serialized anomaly record."""

    anomaly_id: int
    unit_id: int
    anomaly_type: AnomalyType
    severity: AnomalySeverity
    detection_timestamp: datetime
    affected_start_date: date
    affected_end_date: date
    description: str
    resolved: bool
    resolved_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_record(cls, record: AnomalyRecord) -> "AnomalyResponse":
        return cls(**record.to_dict())


class DetectionOutcomeResponse(BaseModel):
    """Per-unit result of a detection run."""

    unit_id: int
    status: str
    detected: int
    created: int
    skipped: int
    failed: int
    error: Optional[str] = None


class DetectionSummaryResponse(BaseModel):
    """Result of a multi-unit detection run."""

    units_processed: int
    units_failed: int
    total_detected: int
    total_created: int
    total_skipped: int
    outcomes: List[DetectionOutcomeResponse]
