"""Centralized exception hierarchy for SolarWatch.

All domain and service exceptions inherit from :class:`SolarWatchError` so that
callers can catch a single base class when they need a broad safety net, yet
still match on specific subclasses where narrower handling is appropriate.

Blueprint-level error handling (see ``app/utils/http.safe_route``) maps these
to the correct HTTP status codes automatically.

Hierarchy
---------
::

    SolarWatchError (base, 500)
    ├── NotFoundError            (404, unit or anomaly does not exist)
    ├── ServiceError             (500, business-logic failure)
    │   └── RepositoryError      (500, database / persistence)
    │       └── PersistenceError (500, anomaly find/create failed)
    ├── DataUnavailableError     (503, time-series / profile read failed)
    └── ConfigurationError       (500, missing / invalid config)
"""

from __future__ import annotations


class SolarWatchError(Exception):
    """Base exception for all SolarWatch application errors.

    Parameters
    ----------
    message:
        Human-readable description (logged server-side, **not** leaked to
        the HTTP client unless the exception class opts in).
    detail:
        Optional machine-readable context dict attached to the error for
        structured logging.
    """

    http_status: int = 500

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


# ── Client errors (4xx) ──────────────────────────────────────────────


class NotFoundError(SolarWatchError):
    """Requested entity does not exist (HTTP 404)."""

    http_status: int = 404


# ── Server errors (5xx) ──────────────────────────────────────────────


class ServiceError(SolarWatchError):
    """Business-logic failure in a service method (HTTP 500)."""

    http_status: int = 500


class RepositoryError(ServiceError):
    """Database / persistence layer failure (HTTP 500)."""

    http_status: int = 500


class PersistenceError(RepositoryError):
    """Anomaly lookup or insert failed; only the current finding is lost."""

    http_status: int = 500


class DataUnavailableError(SolarWatchError):
    """Daily aggregates or unit profile could not be read (HTTP 503)."""

    http_status: int = 503


class ConfigurationError(SolarWatchError):
    """Missing or invalid application configuration (HTTP 500)."""

    http_status: int = 500
