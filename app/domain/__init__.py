"""
Domain Value Objects Package
=============================
Contains the value objects of the solar anomaly domain.

Findings, aggregates and profiles are immutable. AnomalyRecord is the one
mutable entity: it gains an id on insert and flips to resolved later.
"""

from .anomaly import AnomalyFinding, AnomalyRecord, BatchDetectionSummary, DetectionOutcome
from .energy import DailyAggregate, UnitProfile

__all__ = [
    # Anomaly detection
    "AnomalyFinding",
    "AnomalyRecord",
    "BatchDetectionSummary",
    "DetectionOutcome",
    # Energy generation
    "DailyAggregate",
    "UnitProfile",
]
