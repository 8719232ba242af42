"""
Common Enumerations
====================

This module contains common enums used across multiple services.
These are application-wide enums for solar units and anomaly detection.
"""

from enum import Enum


class AnomalyType(str, Enum):
    """
    Solar production anomaly classifications.
    Used by: anomaly detectors, anomaly_detection_service, anomalies API
    """
    MECHANICAL = "MECHANICAL"
    TEMPERATURE = "TEMPERATURE"
    SHADING = "SHADING"
    SENSOR_ERROR = "SENSOR_ERROR"

    def __str__(self) -> str:
        return self.value

    @property
    def display_name(self) -> str:
        """Human-friendly label used by statistics/charts."""
        return self.value.replace("_", " ").title()


class AnomalySeverity(str, Enum):
    """
    Anomaly severity levels, ordered by operational urgency.
    Used by: anomaly detectors, anomaly statistics
    """
    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    INFO = "INFO"

    def __str__(self) -> str:
        return self.value

    @property
    def rank(self) -> int:
        """Urgency rank (0 = most urgent)."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    AnomalySeverity.CRITICAL: 0,
    AnomalySeverity.WARNING: 1,
    AnomalySeverity.INFO: 2,
}


class SensorErrorType(str, Enum):
    """
    Sub-classification carried in SENSOR_ERROR metadata.
    Used by: sensor error detector
    """
    NEGATIVE_VALUE = "NEGATIVE_VALUE"
    EXCEEDS_MAXIMUM = "EXCEEDS_MAXIMUM"
    STATISTICAL_OUTLIER = "STATISTICAL_OUTLIER"

    def __str__(self) -> str:
        return self.value


class UnitStatus(str, Enum):
    """
    Operational status of a solar unit.
    Used by: batch detection (only ACTIVE units are scanned)
    """
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    MAINTENANCE = "MAINTENANCE"

    def __str__(self) -> str:
        return self.value


class DetectionStatus(str, Enum):
    """
    Outcome of a detection run for one unit.
    Used by: anomaly_detection_service, scheduled tasks, API
    """
    COMPLETED = "completed"
    NO_DATA = "no_data"
    DATA_UNAVAILABLE = "data_unavailable"
    PARTIAL = "partial"

    def __str__(self) -> str:
        return self.value
