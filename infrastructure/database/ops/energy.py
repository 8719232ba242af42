from __future__ import annotations

import logging
import sqlite3
from typing import Any, Iterable

logger = logging.getLogger(__name__)


class EnergyOperations:
    """Database operations for solar units and their generation records.

    Methods raise ``sqlite3.Error``; the repository layer decides how a
    failure is reported.
    """

    # --- Solar units -----------------------------------------------------------

    def insert_solar_unit(
        self,
        serial_number: str,
        capacity_kw: float,
        user_id: int | None = None,
        installation_date: str | None = None,
        status: str = "ACTIVE",
    ) -> int | None:
        with self.connection() as db:
            cur = db.execute(
                """
                INSERT INTO SolarUnits (serial_number, capacity_kw, user_id, installation_date, status)
                VALUES (?, ?, ?, ?, ?)
                """,
                (serial_number, capacity_kw, user_id, installation_date, status),
            )
            return cur.lastrowid

    def get_solar_unit(self, unit_id: int) -> sqlite3.Row | None:
        with self.connection() as db:
            cur = db.execute("SELECT * FROM SolarUnits WHERE unit_id = ?", (unit_id,))
            return cur.fetchone()

    def update_solar_unit_status(self, unit_id: int, status: str) -> bool:
        with self.connection() as db:
            cur = db.execute("UPDATE SolarUnits SET status = ? WHERE unit_id = ?", (status, unit_id))
            return cur.rowcount > 0

    def get_unit_ids_by_status(self, status: str) -> list[int]:
        with self.connection() as db:
            cur = db.execute("SELECT unit_id FROM SolarUnits WHERE status = ? ORDER BY unit_id", (status,))
            return [row["unit_id"] for row in cur.fetchall()]

    def get_unit_ids_for_user(self, user_id: int) -> list[int]:
        with self.connection() as db:
            cur = db.execute("SELECT unit_id FROM SolarUnits WHERE user_id = ? ORDER BY unit_id", (user_id,))
            return [row["unit_id"] for row in cur.fetchall()]

    # --- Generation records ---------------------------------------------------

    def insert_generation_records(self, unit_id: int, rows: Iterable[tuple[str, float]]) -> int:
        """Insert ``(timestamp_iso, energy_kwh)`` rows; returns the number inserted."""
        payload = [(unit_id, ts, energy) for ts, energy in rows]
        if not payload:
            return 0
        with self.connection() as db:
            db.executemany(
                "INSERT INTO EnergyGenerationRecords (unit_id, timestamp, energy_generated) VALUES (?, ?, ?)",
                payload,
            )
        logger.debug("Inserted %s generation records for unit %s", len(payload), unit_id)
        return len(payload)

    def get_daily_energy_totals(self, unit_id: int) -> list[dict[str, Any]]:
        """Sum generation per UTC calendar day, ascending; days without readings are absent."""
        with self.connection() as db:
            cur = db.execute(
                """
                SELECT date(timestamp) AS day, SUM(energy_generated) AS total_energy
                FROM EnergyGenerationRecords
                WHERE unit_id = ?
                GROUP BY date(timestamp)
                ORDER BY day ASC
                """,
                (unit_id,),
            )
            return [dict(row) for row in cur.fetchall()]
