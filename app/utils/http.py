"""JSON envelope helpers for the anomalies API.

Every response body has the shape ``{"ok": bool, "data": ..., "error": ...}``.
Failures carry a message and timestamp under ``error``; 5xx messages are
generic so SQL and file paths stay in the server log.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable

from flask import Response, jsonify

from app.utils.time import iso_now

_log = logging.getLogger(__name__)

_GENERIC_MESSAGES: dict[int, str] = {
    400: "Invalid request",
    401: "Authentication required",
    404: "Resource not found",
    500: "An internal error occurred",
    503: "Service temporarily unavailable",
}


def safe_error(
    exc: BaseException,
    status: int = 500,
    *,
    context: str = "",
) -> Response:
    """Log *exc* with *context* and answer with the generic message for *status*."""
    _log.error("API error [%s] %s: %s", status, context, exc, exc_info=exc)
    message = _GENERIC_MESSAGES.get(status, _GENERIC_MESSAGES[500])
    return error_response(message, status)


def success_response(
    data: dict | list | None = None,
    status: int = 200,
    *,
    message: str | None = None,
) -> Response:
    payload: dict[str, Any] = {"ok": True, "data": data, "error": None}
    if message is not None:
        payload["message"] = message
    response = jsonify(payload)
    response.status_code = status
    return response


def error_response(
    message: str,
    status: int = 500,
    *,
    details: dict | None = None,
) -> Response:
    payload: dict[str, Any] = {"message": message, "timestamp": iso_now()}
    if details:
        payload.update(details)
    response_body: dict[str, Any] = {
        "ok": False,
        "data": None,
        "error": payload,
        "message": message,
    }
    if details:
        response_body["details"] = details
    response = jsonify(response_body)
    response.status_code = status
    return response


def safe_route(
    error_message: str = "An internal error occurred",
    *,
    error_status: int = 500,
) -> Callable:
    """Wrap an anomalies route so failures come back in the JSON envelope.

    - pydantic query validation errors: 400 with the field errors under ``details``
    - ``SolarWatchError`` below 500 (unknown unit or anomaly):
      its own status and message
    - ``SolarWatchError`` from 500 up (storage failures, unreadable readings):
      its status with a generic message
    - anything else: ``error_status`` with a generic message

    Args:
        error_message: Logged with unexpected failures, and the fallback text
            for a client error raised without a message
        error_status: Status for exceptions outside the SolarWatch hierarchy
    """
    from pydantic import ValidationError as PydanticValidationError

    from app.domain.exceptions import SolarWatchError

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Response:
            try:
                return fn(*args, **kwargs)
            except PydanticValidationError as ve:
                return error_response(
                    _GENERIC_MESSAGES[400],
                    400,
                    details={"errors": ve.errors(include_url=False, include_context=False)},
                )
            except SolarWatchError as exc:
                status = exc.http_status
                if status >= 500:
                    return safe_error(exc, status, context=error_message)
                return error_response(str(exc) or error_message, status)
            except Exception as exc:
                return safe_error(exc, error_status, context=error_message)

        return wrapper

    return decorator
