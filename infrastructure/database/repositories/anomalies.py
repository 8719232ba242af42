from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any

from app.domain.anomaly import AnomalyRecord
from app.domain.exceptions import PersistenceError
from app.enums import AnomalySeverity, AnomalyType
from app.utils.time import coerce_date, coerce_datetime, to_utc_iso
from infrastructure.database.ops.anomalies import AnomalyOperations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SolarAnomalyRepository:
    """Repository facade for the ``SolarAnomaly`` table.

    Every sqlite failure surfaces as :class:`PersistenceError` so the
    detection run can drop the affected finding and keep going.
    """

    _backend: AnomalyOperations

    # --- Detection-time access ---------------------------------------------

    def find_unresolved(
        self, unit_id: int, anomaly_type: AnomalyType, affected_start_date: date
    ) -> AnomalyRecord | None:
        try:
            row = self._backend.find_unresolved_anomaly(
                unit_id, AnomalyType(anomaly_type).value, affected_start_date.isoformat()
            )
        except sqlite3.Error as exc:
            raise PersistenceError(
                "Anomaly lookup failed",
                detail={"unit_id": unit_id, "anomaly_type": str(anomaly_type), "error": str(exc)},
            ) from exc
        return _row_to_record(row) if row else None

    def create(self, record: AnomalyRecord) -> AnomalyRecord:
        try:
            anomaly_id = self._backend.insert_anomaly(
                unit_id=record.unit_id,
                anomaly_type=record.anomaly_type.value,
                severity=record.severity.value,
                detection_timestamp=to_utc_iso(record.detection_timestamp),
                affected_start_date=record.affected_start_date.isoformat(),
                affected_end_date=record.affected_end_date.isoformat(),
                description=record.description,
                metadata_json=json.dumps(record.metadata),
            )
        except (sqlite3.Error, TypeError, ValueError) as exc:
            raise PersistenceError(
                "Anomaly insert failed",
                detail={"unit_id": record.unit_id, "anomaly_type": record.anomaly_type.value, "error": str(exc)},
            ) from exc
        return replace(record, anomaly_id=anomaly_id)

    # --- Management ----------------------------------------------------------

    def get(self, anomaly_id: int) -> AnomalyRecord | None:
        try:
            row = self._backend.get_anomaly_by_id(anomaly_id)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not read anomaly {anomaly_id}", detail={"error": str(exc)}) from exc
        return _row_to_record(row) if row else None

    def mark_resolved(self, anomaly_id: int, resolved_at: datetime) -> bool:
        try:
            return self._backend.mark_anomaly_resolved(anomaly_id, to_utc_iso(resolved_at))
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not resolve anomaly {anomaly_id}", detail={"error": str(exc)}) from exc

    def list_anomalies(
        self,
        *,
        unit_ids: list[int] | None = None,
        anomaly_type: AnomalyType | None = None,
        severity: AnomalySeverity | None = None,
        resolved: bool | None = None,
        limit: int = 100,
    ) -> list[AnomalyRecord]:
        try:
            rows = self._backend.list_anomalies(
                unit_ids=unit_ids,
                anomaly_type=anomaly_type.value if anomaly_type else None,
                severity=severity.value if severity else None,
                resolved=resolved,
                limit=limit,
            )
        except sqlite3.Error as exc:
            raise PersistenceError("Could not list anomalies", detail={"error": str(exc)}) from exc
        return [_row_to_record(row) for row in rows]

    def count(
        self,
        *,
        unit_ids: list[int] | None = None,
        anomaly_type: AnomalyType | None = None,
        resolved: bool | None = None,
    ) -> int:
        try:
            return self._backend.count_anomalies(
                unit_ids=unit_ids,
                anomaly_type=anomaly_type.value if anomaly_type else None,
                resolved=resolved,
            )
        except sqlite3.Error as exc:
            raise PersistenceError("Could not count anomalies", detail={"error": str(exc)}) from exc

    def counts_by_type(self, *, unit_ids: list[int] | None = None, resolved: bool | None = None) -> dict[str, int]:
        return self._grouped("anomaly_type", unit_ids=unit_ids, resolved=resolved)

    def counts_by_severity(
        self, *, unit_ids: list[int] | None = None, resolved: bool | None = None
    ) -> dict[str, int]:
        return self._grouped("severity", unit_ids=unit_ids, resolved=resolved)

    def _grouped(self, column: str, **filters: Any) -> dict[str, int]:
        try:
            return self._backend.count_anomalies_grouped(column, **filters)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not group anomalies by {column}", detail={"error": str(exc)}) from exc


def _row_to_record(row: sqlite3.Row) -> AnomalyRecord:
    try:
        metadata = json.loads(row["metadata"] or "{}")
    except (TypeError, json.JSONDecodeError):
        logger.warning("Anomaly %s has unreadable metadata", row["anomaly_id"])
        metadata = {}
    return AnomalyRecord(
        anomaly_id=int(row["anomaly_id"]),
        unit_id=int(row["unit_id"]),
        anomaly_type=AnomalyType(row["anomaly_type"]),
        severity=AnomalySeverity(row["severity"]),
        detection_timestamp=coerce_datetime(row["detection_timestamp"]),
        affected_start_date=coerce_date(row["affected_start_date"]),
        affected_end_date=coerce_date(row["affected_end_date"]),
        description=row["description"],
        metadata=metadata,
        resolved=bool(row["resolved"]),
        resolved_at=coerce_datetime(row["resolved_at"]),
    )
