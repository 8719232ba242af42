"""Anomaly query, statistics and resolution service."""

import logging
from typing import Any, Callable, Dict, List, Optional
from datetime import datetime

from app.domain.anomaly import AnomalyRecord
from app.domain.exceptions import NotFoundError
from app.enums import AnomalySeverity, AnomalyType
from app.utils.time import utc_now
from infrastructure.database.repositories.anomalies import SolarAnomalyRepository
from infrastructure.database.repositories.energy import EnergyRepository
from infrastructure.logging.audit import AuditLogger

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 100


class AnomalyService:
    """Service for browsing and resolving detected solar anomalies."""

    def __init__(
        self,
        anomaly_repo: SolarAnomalyRepository,
        energy_repo: EnergyRepository,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the anomaly service.

        Args:
            anomaly_repo: SolarAnomalyRepository instance
            energy_repo: EnergyRepository, used to resolve a user's units
            audit_logger: Optional audit trail for operator actions
            clock: Returns the resolution timestamp
        """
        self.anomaly_repo = anomaly_repo
        self.energy_repo = energy_repo
        self.audit_logger = audit_logger
        self._clock = clock

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_anomalies(
        self,
        *,
        anomaly_type: Optional[AnomalyType] = None,
        severity: Optional[AnomalySeverity] = None,
        resolved: Optional[bool] = None,
        unit_id: Optional[int] = None,
        user_id: Optional[int] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> List[AnomalyRecord]:
        """Return anomalies matching the filters, newest detection first.

        ``user_id`` narrows the result to that user's units; combined with
        ``unit_id`` it only returns the unit's anomalies if the user owns it.
        """
        unit_ids = self._scope_unit_ids(unit_id=unit_id, user_id=user_id)
        return self.anomaly_repo.list_anomalies(
            unit_ids=unit_ids,
            anomaly_type=anomaly_type,
            severity=severity,
            resolved=resolved,
            limit=limit,
        )

    def get_statistics(self, user_id: Optional[int] = None, resolved: Optional[bool] = None) -> Dict[str, Any]:
        """Count anomalies by type and severity.

        ``pie_chart_data`` lists one entry per type present, with its display
        name and share of the total rounded to one decimal.
        """
        unit_ids = self._scope_unit_ids(user_id=user_id)
        by_type = self.anomaly_repo.counts_by_type(unit_ids=unit_ids, resolved=resolved)
        by_severity = self.anomaly_repo.counts_by_severity(unit_ids=unit_ids, resolved=resolved)
        total = sum(by_type.values())

        pie_chart_data = []
        for anomaly_type in AnomalyType:
            count = by_type.get(anomaly_type.value, 0)
            if not count:
                continue
            pie_chart_data.append(
                {
                    "type": anomaly_type.value,
                    "name": anomaly_type.display_name,
                    "value": count,
                    "percentage": round(count / total * 100, 1) if total else 0.0,
                }
            )

        return {
            "total": total,
            "by_type": by_type,
            "by_severity": {
                severity.value: by_severity.get(severity.value, 0)
                for severity in sorted(AnomalySeverity, key=lambda s: s.rank)
            },
            "pie_chart_data": pie_chart_data,
        }

    def count_for_unit(self, unit_id: int, resolved: Optional[bool] = None) -> int:
        return self.anomaly_repo.count(unit_ids=[unit_id], resolved=resolved)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, anomaly_id: int, actor: str = "system") -> AnomalyRecord:
        """Mark an anomaly resolved; resolving twice keeps the first ``resolved_at``.

        Raises:
            NotFoundError: No anomaly with that id
        """
        anomaly = self.anomaly_repo.get(anomaly_id)
        if anomaly is None:
            raise NotFoundError(f"Anomaly {anomaly_id} not found", detail={"anomaly_id": anomaly_id})

        already_resolved = anomaly.resolved
        if not already_resolved:
            self.anomaly_repo.mark_resolved(anomaly_id, self._clock())
            anomaly = self.anomaly_repo.get(anomaly_id) or anomaly
            logger.info("Anomaly %s (%s, unit %s) resolved by %s", anomaly_id, anomaly.anomaly_type, anomaly.unit_id, actor)

        if self.audit_logger:
            self.audit_logger.anomaly_resolved(actor, anomaly_id, already_resolved=already_resolved)
        return anomaly

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _scope_unit_ids(self, *, unit_id: Optional[int] = None, user_id: Optional[int] = None) -> Optional[List[int]]:
        if user_id is None:
            return [unit_id] if unit_id is not None else None
        owned = self.energy_repo.list_unit_ids_for_user(user_id)
        if unit_id is not None:
            return [unit_id] if unit_id in owned else []
        return owned
