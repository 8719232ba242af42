"""
Enums Module
============

This module provides enumeration types for the SolarWatch application.
Enums ensure type safety and consistency across the codebase.
"""

from app.enums.common import (
    AnomalySeverity,
    AnomalyType,
    DetectionStatus,
    SensorErrorType,
    UnitStatus,
)

__all__ = [
    "AnomalySeverity",
    "AnomalyType",
    "DetectionStatus",
    "SensorErrorType",
    "UnitStatus",
]
