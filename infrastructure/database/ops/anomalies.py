from __future__ import annotations

import logging
import sqlite3
from typing import Any

logger = logging.getLogger(__name__)


class AnomalyOperations:
    """Database operations for the SolarAnomaly entity.

    Methods raise ``sqlite3.Error``; the repository layer decides how a
    failure is reported.
    """

    def find_unresolved_anomaly(
        self,
        unit_id: int,
        anomaly_type: str,
        affected_start_date: str,
    ) -> sqlite3.Row | None:
        with self.connection() as db:
            cur = db.execute(
                """
                SELECT * FROM SolarAnomaly
                WHERE unit_id = ? AND anomaly_type = ? AND affected_start_date = ? AND resolved = 0
                ORDER BY anomaly_id DESC
                LIMIT 1
                """,
                (unit_id, anomaly_type, affected_start_date),
            )
            return cur.fetchone()

    def insert_anomaly(
        self,
        unit_id: int,
        anomaly_type: str,
        severity: str,
        detection_timestamp: str,
        affected_start_date: str,
        affected_end_date: str,
        description: str,
        metadata_json: str,
    ) -> int | None:
        with self.connection() as db:
            cur = db.execute(
                """
                INSERT INTO SolarAnomaly (
                    unit_id, anomaly_type, severity, detection_timestamp,
                    affected_start_date, affected_end_date, description, metadata
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    unit_id,
                    anomaly_type,
                    severity,
                    detection_timestamp,
                    affected_start_date,
                    affected_end_date,
                    description,
                    metadata_json,
                ),
            )
            return cur.lastrowid

    def get_anomaly_by_id(self, anomaly_id: int) -> sqlite3.Row | None:
        with self.connection() as db:
            cur = db.execute("SELECT * FROM SolarAnomaly WHERE anomaly_id = ?", (anomaly_id,))
            return cur.fetchone()

    def mark_anomaly_resolved(self, anomaly_id: int, resolved_at: str) -> bool:
        with self.connection() as db:
            cur = db.execute(
                "UPDATE SolarAnomaly SET resolved = 1, resolved_at = ? WHERE anomaly_id = ? AND resolved = 0",
                (resolved_at, anomaly_id),
            )
            return cur.rowcount > 0

    def _anomaly_filters(
        self,
        *,
        unit_ids: list[int] | None,
        anomaly_type: str | None,
        severity: str | None,
        resolved: bool | None,
    ) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []

        if unit_ids is not None:
            if not unit_ids:
                # Caller owns no units: match nothing
                clauses.append("0 = 1")
            else:
                clauses.append(f"unit_id IN ({', '.join('?' for _ in unit_ids)})")
                params.extend(unit_ids)

        if anomaly_type:
            clauses.append("anomaly_type = ?")
            params.append(anomaly_type)

        if severity:
            clauses.append("severity = ?")
            params.append(severity)

        if resolved is not None:
            clauses.append("resolved = ?")
            params.append(1 if resolved else 0)

        where = (" WHERE " + " AND ".join(clauses)) if clauses else ""
        return where, params

    def list_anomalies(
        self,
        *,
        unit_ids: list[int] | None = None,
        anomaly_type: str | None = None,
        severity: str | None = None,
        resolved: bool | None = None,
        limit: int = 100,
    ) -> list[sqlite3.Row]:
        where, params = self._anomaly_filters(
            unit_ids=unit_ids, anomaly_type=anomaly_type, severity=severity, resolved=resolved
        )
        sql = f"SELECT * FROM SolarAnomaly{where} ORDER BY detection_timestamp DESC, anomaly_id DESC LIMIT ?"
        params.append(limit)
        with self.connection() as db:
            return db.execute(sql, params).fetchall()

    def count_anomalies(
        self,
        *,
        unit_ids: list[int] | None = None,
        anomaly_type: str | None = None,
        resolved: bool | None = None,
    ) -> int:
        where, params = self._anomaly_filters(
            unit_ids=unit_ids, anomaly_type=anomaly_type, severity=None, resolved=resolved
        )
        with self.connection() as db:
            row = db.execute(f"SELECT COUNT(*) FROM SolarAnomaly{where}", params).fetchone()
            return int(row[0]) if row else 0

    def count_anomalies_grouped(
        self,
        column: str,
        *,
        unit_ids: list[int] | None = None,
        resolved: bool | None = None,
    ) -> dict[str, int]:
        if column not in {"anomaly_type", "severity"}:
            raise ValueError(f"Cannot group anomalies by {column!r}")
        where, params = self._anomaly_filters(
            unit_ids=unit_ids, anomaly_type=None, severity=None, resolved=resolved
        )
        sql = f"SELECT {column} AS bucket, COUNT(*) AS total FROM SolarAnomaly{where} GROUP BY {column}"
        with self.connection() as db:
            return {row["bucket"]: int(row["total"]) for row in db.execute(sql, params).fetchall()}
