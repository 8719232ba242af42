from __future__ import annotations

import atexit
import logging
import threading
from typing import Any

from flask import Flask, request
from werkzeug.exceptions import HTTPException

from app.blueprints.api.anomalies import anomalies_api
from app.config import load_config, setup_logging


def create_app(config_overrides: dict[str, Any] | None = None) -> Flask:
    config = load_config()
    if config_overrides:
        for key, value in config_overrides.items():
            setattr(config, key if hasattr(config, key) else key.lower(), value)
        config.validate()

    # Configure logging early so container startup is visible in the terminal and solarwatch.log.
    setup_logging(debug=config.DEBUG, log_file=config.log_file or None)

    flask_app = Flask(__name__)
    flask_app.config.update(config.as_flask_config())
    flask_app.config["SESSION_COOKIE_HTTPONLY"] = True
    flask_app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    flask_app.config["SESSION_COOKIE_SECURE"] = config.environment == "production"
    flask_app.json.sort_keys = False

    from app.services.container import ServiceContainer

    container = ServiceContainer.build(config)
    flask_app.config["CONTAINER"] = container

    # ── Graceful shutdown ───────────────────────────────────────────
    _shutdown_lock = threading.Lock()
    _shutdown_done = False

    def _graceful_shutdown(reason: str = "unknown") -> None:
        nonlocal _shutdown_done
        with _shutdown_lock:
            if _shutdown_done:
                return
            _shutdown_done = True
        logging.info("Graceful shutdown initiated (%s)", reason)
        try:
            container.shutdown()
        except Exception as exc:
            logging.warning("Error during graceful shutdown: %s", exc)

    atexit.register(_graceful_shutdown, "atexit")
    flask_app.extensions["solarwatch_shutdown"] = _graceful_shutdown

    # Global JSON error handler for /api/ routes; domain exceptions carry
    # their own ``http_status``.
    @flask_app.errorhandler(Exception)
    def _handle_unhandled(exc):
        from app.domain.exceptions import SolarWatchError
        from app.utils.http import error_response, safe_error

        if not request.path.startswith("/api/"):
            if isinstance(exc, HTTPException):
                return exc
            raise exc

        if isinstance(exc, HTTPException):
            status = int(exc.code or 500)
            if status >= 500:
                return safe_error(exc, status, context="http-exception")
            return error_response(exc.description or "Request failed", status)

        if isinstance(exc, SolarWatchError):
            status = exc.http_status
            if status >= 500:
                return safe_error(exc, status, context=type(exc).__name__)
            return error_response(str(exc) or "Request failed", status)

        return safe_error(exc, 500, context="unhandled")

    # ── API version prefix ──────────────────────────────────────────
    V1 = "/api/v1"
    flask_app.register_blueprint(anomalies_api, url_prefix=f"{V1}/anomalies")

    logging.getLogger(__name__).info("SolarWatch application initialized successfully.")
    return flask_app


__all__ = ["create_app"]
