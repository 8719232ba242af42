"""
Energy Generation Domain Objects
=================================
Dataclasses for per-day solar production and the unit profile used to
bound it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any


@dataclass(frozen=True)
class DailyAggregate:
    """Sum of a unit's energy readings within one calendar day (UTC)."""

    day: date
    total_energy: float  # kWh

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"date": self.day.isoformat(), "total_energy": self.total_energy}


@dataclass(frozen=True)
class UnitProfile:
    """Static profile of a solar unit, immutable for a detection run."""

    unit_id: int
    capacity_kw: float

    def __post_init__(self) -> None:
        if self.capacity_kw <= 0:
            raise ValueError(f"capacity_kw must be positive, got {self.capacity_kw}")

    @property
    def expected_daily_energy(self) -> float:
        """Baseline daily production assuming 8 daylight hours at rated power."""
        return self.capacity_kw * 8

    @property
    def theoretical_max_daily_energy(self) -> float:
        """Upper bound on daily production (10 hours at 100% output)."""
        return self.capacity_kw * 10


def energy_totals(aggregates: tuple[DailyAggregate, ...]) -> list[float]:
    """Return the daily totals of *aggregates* in date order."""
    return [a.total_energy for a in aggregates]


def mean(values: list[float]) -> float:
    """Arithmetic mean; 0.0 for an empty list."""
    if not values:
        return 0.0
    return sum(values) / len(values)
