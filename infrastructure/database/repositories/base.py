"""
Repository Protocols
====================

Contracts the detection services depend on. Uses ``typing.Protocol``
(structural subtyping) so the SQLite repositories satisfy them without
inheritance, and tests can pass in small stubs instead.

Usage in service type hints::

    from infrastructure.database.repositories.base import AnomalyStore


    class MyService:
        def __init__(self, store: AnomalyStore) -> None: ...
"""

from __future__ import annotations

from datetime import date
from typing import Protocol, runtime_checkable

from app.domain.anomaly import AnomalyRecord
from app.domain.energy import DailyAggregate, UnitProfile
from app.enums import AnomalyType


@runtime_checkable
class DailyAggregateProvider(Protocol):
    """Source of a unit's per-day energy totals."""

    def get_daily_aggregates(self, unit_id: int) -> tuple[DailyAggregate, ...]:
        """Return the unit's daily totals, ascending by day.

        Days without readings are absent. Raises
        :class:`~app.domain.exceptions.DataUnavailableError` when the
        series cannot be read.
        """
        ...


@runtime_checkable
class UnitProfileProvider(Protocol):
    """Source of a unit's static profile."""

    def get_unit_profile(self, unit_id: int) -> UnitProfile:
        """Return the unit profile.

        Raises :class:`~app.domain.exceptions.NotFoundError` for an unknown
        unit and :class:`~app.domain.exceptions.DataUnavailableError` when
        the read fails.
        """
        ...


@runtime_checkable
class AnomalyStore(Protocol):
    """Persistence contract for detected anomalies."""

    def find_unresolved(
        self, unit_id: int, anomaly_type: AnomalyType, affected_start_date: date
    ) -> AnomalyRecord | None:
        """Return an unresolved anomaly matching the dedup key, if any."""
        ...

    def create(self, record: AnomalyRecord) -> AnomalyRecord:
        """Persist *record* and return it with its generated id."""
        ...


@runtime_checkable
class UnitDirectory(Protocol):
    """Lists the units a batch detection run covers."""

    def list_active_unit_ids(self) -> list[int]: ...

    def list_unit_ids_for_user(self, user_id: int) -> list[int]: ...
