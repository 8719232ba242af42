"""
Schemas Module
==============

This module provides Pydantic models for request/response validation.
Schemas ensure data integrity and provide automatic validation.
"""

from app.schemas.anomalies import (
    AnomalyListQuery,
    AnomalyResponse,
    DetectionOutcomeResponse,
    DetectionSummaryResponse,
    StatisticsQuery,
)
from app.schemas.common import ErrorResponse, SuccessResponse

__all__ = [
    # Common
    "SuccessResponse",
    "ErrorResponse",
    # Anomalies
    "AnomalyListQuery",
    "AnomalyResponse",
    "DetectionOutcomeResponse",
    "DetectionSummaryResponse",
    "StatisticsQuery",
]
