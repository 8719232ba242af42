"""
Configuration for SolarWatch
============================
Runtime settings for the API server, the nightly detection scheduler and
the detection engine, loaded from ``SOLARWATCH_*`` environment variables.
Sets up the logging configuration as well.
"""

import os
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from app.domain.exceptions import ConfigurationError


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer.") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number.") from None


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("SOLARWATCH_ENV", "development"))
    secret_key: str = field(default_factory=lambda: os.getenv("SOLARWATCH_SECRET_KEY", "SolarWatchDevSecretKey"))
    database_path: str = field(
        default_factory=lambda: os.getenv("SOLARWATCH_DATABASE_PATH", "database/solarwatch.db")
    )

    DEBUG: bool = field(default_factory=lambda: _env_bool("SOLARWATCH_DEBUG", False))
    log_level: str = field(default_factory=lambda: os.getenv("SOLARWATCH_LOG_LEVEL", "INFO"))
    # Empty string disables the rotating file handler
    log_file: str = field(default_factory=lambda: os.getenv("SOLARWATCH_LOG_FILE", "logs/solarwatch.log"))
    audit_log_path: str = field(default_factory=lambda: os.getenv("SOLARWATCH_AUDIT_LOG_PATH", "logs/audit.log"))

    # Nightly detection
    # Web process only; solarwatch-scheduler always runs its loop. One runner per database.
    scheduler_enabled: bool = field(default_factory=lambda: _env_bool("SOLARWATCH_SCHEDULER_ENABLED", False))
    scheduler_max_workers: int = field(default_factory=lambda: _env_int("SOLARWATCH_SCHEDULER_MAX_WORKERS", 2))
    scheduler_poll_seconds: float = field(
        default_factory=lambda: _env_float("SOLARWATCH_SCHEDULER_POLL_SECONDS", 1.0)
    )
    detection_time: str = field(default_factory=lambda: os.getenv("SOLARWATCH_DETECTION_TIME", "00:00"))

    # Detection engine
    detector_workers: int = field(default_factory=lambda: _env_int("SOLARWATCH_DETECTOR_WORKERS", 4))
    batch_unit_workers: int = field(default_factory=lambda: _env_int("SOLARWATCH_BATCH_UNIT_WORKERS", 1))

    # Default insecure secret key - used only for detection
    _DEFAULT_SECRET_KEY: str = field(default="SolarWatchDevSecretKey", init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        # SECURITY: Fail fast if using default secret key in production
        if self.environment == "production" and self.secret_key == self._DEFAULT_SECRET_KEY:
            raise ConfigurationError(
                "SECURITY ERROR: Cannot use default secret key in production!\n"
                "Set SOLARWATCH_SECRET_KEY environment variable to a secure random value.\n"
                'Generate one with: python -c "import secrets; print(secrets.token_hex(32))"'
            )
        self.validate()

    def validate(self) -> None:
        """Check the scheduler and worker settings; raises ConfigurationError."""
        try:
            datetime.strptime(self.detection_time, "%H:%M")
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"SOLARWATCH_DETECTION_TIME must be HH:MM, got {self.detection_time!r}"
            ) from None

        for name in ("detector_workers", "batch_unit_workers", "scheduler_max_workers"):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be >= 1, got {getattr(self, name)}")

    def as_flask_config(self) -> dict[str, Any]:
        """Render configuration values for Flask application."""
        secret = self.secret_key or os.getenv("FLASK_SECRET_KEY", "")
        if not secret:
            raise ConfigurationError(
                "Missing SOLARWATCH_SECRET_KEY or FLASK_SECRET_KEY environment variable. "
                "Production systems must set an explicit secret key."
            )

        return {
            "ENV": self.environment,
            "SECRET_KEY": secret,
            "DATABASE_PATH": self.database_path,
            "AUDIT_LOG_PATH": self.audit_log_path,
            "DEBUG": self.DEBUG,
        }


def setup_logging(debug: bool = False, log_file: str | None = "logs/solarwatch.log") -> None:
    """Setup logging configuration."""
    import logging
    import sys
    from logging.handlers import RotatingFileHandler

    log_level = logging.DEBUG if debug else logging.INFO

    # Root logger
    root = logging.getLogger()
    root.setLevel(log_level)

    # Keep existing handlers but avoid adding duplicates when create_app is called multiple times
    has_console = any(getattr(h, "name", "") == "solarwatch_console" for h in root.handlers)
    has_file = any(getattr(h, "name", "") == "solarwatch_file" for h in root.handlers)
    added_handler = False

    # Console handler (force UTF-8 to avoid UnicodeEncodeError on Windows terminals)
    stream = sys.stdout
    with suppress(AttributeError, ValueError):
        stream.reconfigure(encoding="utf-8", errors="replace")
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not has_console:
        console_handler = logging.StreamHandler(stream=stream)
        console_handler.name = "solarwatch_console"
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    if log_file and not has_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = "solarwatch_file"
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    # Ensure handler levels follow the desired log level
    for handler in root.handlers:
        if getattr(handler, "name", "") in {"solarwatch_console", "solarwatch_file"}:
            handler.setLevel(log_level)

    if added_handler:
        root.info("Logging initialized at level: %s", logging.getLevelName(log_level))

    if _env_bool("SOLARWATCH_SILENCE_WERKZEUG", True):
        logging.getLogger("werkzeug").setLevel(logging.WARNING)


def load_config() -> AppConfig:
    """Helper for callers to load and validate configuration."""
    return AppConfig()
