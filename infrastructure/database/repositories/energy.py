from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

from app.domain.energy import DailyAggregate, UnitProfile
from app.domain.exceptions import DataUnavailableError, NotFoundError, RepositoryError
from app.enums import UnitStatus
from app.utils.time import coerce_date, to_utc_iso
from infrastructure.database.ops.energy import EnergyOperations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnergyRepository:
    """Repository facade for solar units and their generation history."""

    _backend: EnergyOperations

    # --- Reads used by detection -------------------------------------------

    def get_daily_aggregates(self, unit_id: int) -> tuple[DailyAggregate, ...]:
        try:
            rows = self._backend.get_daily_energy_totals(unit_id)
        except sqlite3.Error as exc:
            raise DataUnavailableError(
                f"Could not read daily energy totals for unit {unit_id}",
                detail={"unit_id": unit_id, "error": str(exc)},
            ) from exc

        aggregates: list[DailyAggregate] = []
        for row in rows:
            day = coerce_date(row.get("day"))
            if day is None:
                # date() returns NULL for unparseable timestamps
                logger.warning("Skipping generation rows with unparseable timestamp for unit %s", unit_id)
                continue
            aggregates.append(DailyAggregate(day=day, total_energy=float(row.get("total_energy") or 0.0)))
        return tuple(aggregates)

    def get_unit_profile(self, unit_id: int) -> UnitProfile:
        try:
            row = self._backend.get_solar_unit(unit_id)
        except sqlite3.Error as exc:
            raise DataUnavailableError(
                f"Could not read solar unit {unit_id}",
                detail={"unit_id": unit_id, "error": str(exc)},
            ) from exc
        if row is None:
            raise NotFoundError(f"Solar unit {unit_id} not found", detail={"unit_id": unit_id})
        return UnitProfile(unit_id=int(row["unit_id"]), capacity_kw=float(row["capacity_kw"]))

    def list_active_unit_ids(self) -> list[int]:
        return self._read_ids(lambda: self._backend.get_unit_ids_by_status(UnitStatus.ACTIVE.value), "active units")

    def list_unit_ids_for_user(self, user_id: int) -> list[int]:
        return self._read_ids(lambda: self._backend.get_unit_ids_for_user(user_id), f"units of user {user_id}")

    def _read_ids(self, fetch, what: str) -> list[int]:
        try:
            return [int(unit_id) for unit_id in fetch()]
        except sqlite3.Error as exc:
            raise DataUnavailableError(f"Could not list {what}", detail={"error": str(exc)}) from exc

    # --- Writes (ingestion, seeding) ---------------------------------------

    def create_unit(
        self,
        serial_number: str,
        capacity_kw: float,
        *,
        user_id: int | None = None,
        installation_date: date | None = None,
        status: UnitStatus = UnitStatus.ACTIVE,
    ) -> int:
        try:
            unit_id = self._backend.insert_solar_unit(
                serial_number=serial_number,
                capacity_kw=capacity_kw,
                user_id=user_id,
                installation_date=installation_date.isoformat() if installation_date else None,
                status=UnitStatus(status).value,
            )
        except sqlite3.Error as exc:
            raise RepositoryError(
                f"Could not create solar unit {serial_number}", detail={"error": str(exc)}
            ) from exc
        logger.info("Created solar unit %s (serial %s, %.2f kW)", unit_id, serial_number, capacity_kw)
        return int(unit_id)

    def set_unit_status(self, unit_id: int, status: UnitStatus) -> bool:
        try:
            return self._backend.update_solar_unit_status(unit_id, UnitStatus(status).value)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Could not update solar unit {unit_id}", detail={"error": str(exc)}) from exc

    def record_generation(self, unit_id: int, timestamp: datetime, energy_kwh: float) -> None:
        self.record_generation_batch(unit_id, [(timestamp, energy_kwh)])

    def record_generation_batch(self, unit_id: int, readings: Iterable[tuple[datetime, float]]) -> int:
        rows = [(to_utc_iso(ts), float(energy)) for ts, energy in readings]
        try:
            return self._backend.insert_generation_records(unit_id, rows)
        except sqlite3.Error as exc:
            raise RepositoryError(
                f"Could not store generation records for unit {unit_id}", detail={"error": str(exc)}
            ) from exc
