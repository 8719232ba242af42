import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

AUDIT_LOGGER_NAME = "solarwatch.audit"


class AuditLogger:
    """Structured audit logger that writes append-only JSON records.

    Records operator actions on anomalies (resolution, on-demand detection
    runs). Pass ``log_path=None`` to keep records in-process only, which is
    what the tests do.
    """

    def __init__(self, log_path: Optional[str], level: str = "INFO") -> None:
        self.log_path = Path(log_path) if log_path else None

        self.logger = logging.getLogger(AUDIT_LOGGER_NAME)
        self.logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        self.logger.propagate = False

        if self.log_path is not None and not any(
            isinstance(handler, RotatingFileHandler) for handler in self.logger.handlers
        ):
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                filename=str(self.log_path),
                maxBytes=5 * 1024 * 1024,  # 5 MB
                backupCount=10,
                encoding="utf-8",
                delay=True,
            )
            handler.setFormatter(
                logging.Formatter(
                    fmt="%(asctime)sZ | %(levelname)s | %(message)s",
                    datefmt="%Y-%m-%dT%H:%M:%S",
                )
            )
            self.logger.addHandler(handler)

    def log_event(self, actor: str, action: str, resource: str, outcome: str, **metadata: Any) -> None:
        payload: Dict[str, Any] = {
            "actor": actor,
            "action": action,
            "resource": resource,
            "outcome": outcome,
        }
        if metadata:
            payload["meta"] = metadata

        self.logger.info(json.dumps(payload, default=str))

    def anomaly_resolved(self, actor: str, anomaly_id: int, *, already_resolved: bool) -> None:
        self.log_event(
            actor,
            "anomaly.resolve",
            f"anomaly:{anomaly_id}",
            "noop" if already_resolved else "resolved",
        )

    def detection_requested(self, actor: str, scope: str, summary: Dict[str, Any]) -> None:
        outcome = "partial" if summary.get("units_failed") else "completed"
        self.log_event(
            actor,
            "anomaly.detect",
            scope,
            outcome,
            units_processed=summary.get("units_processed"),
            total_created=summary.get("total_created"),
        )
