"""Solar Anomaly API
==================

Endpoints for browsing, resolving and detecting solar production anomalies.

Routes:
    GET   /api/v1/anomalies/                          - List anomalies (filterable)
    GET   /api/v1/anomalies/me                        - Current user's anomalies
    GET   /api/v1/anomalies/me/statistics             - Counts by type / severity
    POST  /api/v1/anomalies/me/run-detection          - Detect on the user's units
    POST  /api/v1/anomalies/units/<id>/run-detection  - Detect on one unit
    PATCH /api/v1/anomalies/<id>/resolve              - Mark an anomaly resolved
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, request

from app.blueprints.api._common import (
    get_actor,
    get_anomaly_service,
    get_container,
    get_detection_service,
    get_user_id,
)
from app.schemas.anomalies import (
    AnomalyListQuery,
    AnomalyResponse,
    DetectionSummaryResponse,
    StatisticsQuery,
)
from app.utils.http import error_response, safe_route, success_response

logger = logging.getLogger(__name__)

anomalies_api = Blueprint("anomalies_api", __name__)


def _serialize(records) -> list[dict]:
    return [AnomalyResponse.from_record(r).model_dump(mode="json") for r in records]


def _list(query: AnomalyListQuery, user_id: int | None) -> Response:
    anomalies = get_anomaly_service().list_anomalies(
        anomaly_type=query.anomaly_type,
        severity=query.severity,
        resolved=query.resolved,
        unit_id=query.unit_id,
        user_id=user_id,
        limit=query.limit,
    )
    return success_response({"anomalies": _serialize(anomalies), "total": len(anomalies)})


@anomalies_api.get("/")
@safe_route("Failed to list anomalies")
def list_anomalies() -> Response:
    """List anomalies across all units, newest detection first.

    Query parameters:
        type      (str, optional)  - MECHANICAL | TEMPERATURE | SHADING | SENSOR_ERROR
        severity  (str, optional)  - CRITICAL | WARNING | INFO
        resolved  (bool, optional) - filter on resolution state
        unit_id   (int, optional)  - filter by solar unit
        limit     (int, optional)  - max rows (default 100, max 500)
    """
    query = AnomalyListQuery.model_validate(request.args.to_dict())
    return _list(query, user_id=None)


@anomalies_api.get("/me")
@safe_route("Failed to list anomalies")
def list_my_anomalies() -> Response:
    """List anomalies on the signed-in user's units (same filters as ``/``)."""
    user_id = get_user_id()
    if user_id is None:
        return error_response("Authentication required", 401)
    query = AnomalyListQuery.model_validate(request.args.to_dict())
    return _list(query, user_id=user_id)


@anomalies_api.get("/me/statistics")
@safe_route("Failed to compute anomaly statistics")
def my_anomaly_statistics() -> Response:
    user_id = get_user_id()
    if user_id is None:
        return error_response("Authentication required", 401)
    query = StatisticsQuery.model_validate(request.args.to_dict())
    stats = get_anomaly_service().get_statistics(user_id=user_id, resolved=query.resolved)
    return success_response(stats)


@anomalies_api.post("/me/run-detection")
@safe_route("Failed to run anomaly detection")
def run_detection_for_me() -> Response:
    """Run detection over every unit the signed-in user owns."""
    user_id = get_user_id()
    if user_id is None:
        return error_response("Authentication required", 401)

    summary = get_detection_service().detect_for_user(user_id)
    payload = DetectionSummaryResponse(**summary.to_dict()).model_dump()
    get_container().audit_logger.detection_requested(get_actor(), f"user:{user_id}", payload)

    if not summary.outcomes:
        return success_response(payload, message="No solar units for this user")
    return success_response(payload, message="Anomaly detection run successfully")


@anomalies_api.post("/units/<int:unit_id>/run-detection")
@safe_route("Failed to run anomaly detection")
def run_detection_for_unit(unit_id: int) -> Response:
    """Run detection for one unit; 404 when the unit does not exist."""
    get_container().energy_repo.get_unit_profile(unit_id)

    summary = get_detection_service().detect_for_units([unit_id])
    payload = DetectionSummaryResponse(**summary.to_dict()).model_dump()
    get_container().audit_logger.detection_requested(get_actor(), f"unit:{unit_id}", payload)
    return success_response(payload)


@anomalies_api.patch("/<int:anomaly_id>/resolve")
@safe_route("Failed to resolve anomaly")
def resolve_anomaly(anomaly_id: int) -> Response:
    anomaly = get_anomaly_service().resolve(anomaly_id, actor=get_actor())
    return success_response(AnomalyResponse.from_record(anomaly).model_dump(mode="json"))
