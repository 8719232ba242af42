"""Repository facades exposing typed accessors over low-level mixins.

Protocols are available for type-checking and dependency injection::

    from infrastructure.database.repositories.base import AnomalyStore
"""

from infrastructure.database.repositories.anomalies import SolarAnomalyRepository
from infrastructure.database.repositories.base import (
    AnomalyStore,
    DailyAggregateProvider,
    UnitDirectory,
    UnitProfileProvider,
)
from infrastructure.database.repositories.energy import EnergyRepository

__all__ = [
    "AnomalyStore",
    "DailyAggregateProvider",
    "EnergyRepository",
    "SolarAnomalyRepository",
    "UnitDirectory",
    "UnitProfileProvider",
]
