"""
Blueprint Common Utilities
==========================

Shared helper functions for all API blueprints.
Import these instead of duplicating helper code in each blueprint.

Usage:
    from app.blueprints.api._common import (
        get_container, get_user_id, get_anomaly_service,
    )
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from flask import current_app, session

if TYPE_CHECKING:
    from app.services.application.anomaly_service import AnomalyService
    from app.services.container import ServiceContainer
    from app.services.utilities.anomaly_detection_service import AnomalyDetectionService

logger = logging.getLogger("api._common")

# ============================================================================
# User Session Utilities
# ============================================================================


def get_user_id() -> Optional[int]:
    """Get current user ID from session; None when nobody is signed in."""
    user_id = session.get("user_id")
    return int(user_id) if user_id is not None else None


def get_actor() -> str:
    """Audit actor string for the current request."""
    user_id = get_user_id()
    return f"user:{user_id}" if user_id is not None else "anonymous"


# ============================================================================
# CONTAINER ACCESS
# ============================================================================


def get_container() -> "ServiceContainer":
    """
    Get the service container from Flask app config.

    Returns:
        ServiceContainer: The application service container

    Raises:
        RuntimeError: If container is not configured
    """
    container = current_app.config.get("CONTAINER")
    if not container:
        raise RuntimeError("ServiceContainer not found in app config")
    return container


def get_anomaly_service() -> "AnomalyService":
    return get_container().anomaly_service


def get_detection_service() -> "AnomalyDetectionService":
    return get_container().anomaly_detection_service
