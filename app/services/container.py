from __future__ import annotations

import logging
from dataclasses import dataclass

from app.config import AppConfig
from app.services.application.anomaly_service import AnomalyService
from app.services.utilities.anomaly_detection_service import AnomalyDetectionService
from app.workers.unified_scheduler import UnifiedScheduler
from infrastructure.database.repositories.anomalies import SolarAnomalyRepository
from infrastructure.database.repositories.energy import EnergyRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler
from infrastructure.logging.audit import AuditLogger

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Aggregate and manage core backend services."""

    config: AppConfig
    database: SQLiteDatabaseHandler
    energy_repo: EnergyRepository
    anomaly_repo: SolarAnomalyRepository
    audit_logger: AuditLogger
    anomaly_detection_service: AnomalyDetectionService
    anomaly_service: AnomalyService
    scheduler: UnifiedScheduler

    @classmethod
    def build(cls, config: AppConfig, *, start_scheduler: bool | None = None) -> "ServiceContainer":
        """Construct the service container with all dependencies.

        Args:
            config: Application configuration
            start_scheduler: Start the nightly scheduler; defaults to
                ``config.scheduler_enabled``
        """
        logger.info("Building ServiceContainer...")
        database = SQLiteDatabaseHandler(config.database_path)
        database.create_tables()

        energy_repo = EnergyRepository(database)
        anomaly_repo = SolarAnomalyRepository(database)
        audit_logger = AuditLogger(config.audit_log_path or None, level=config.log_level)

        detection_service = AnomalyDetectionService(
            energy_repo,
            energy_repo,
            anomaly_repo,
            units=energy_repo,
            detector_workers=config.detector_workers,
            unit_workers=config.batch_unit_workers,
        )
        anomaly_service = AnomalyService(anomaly_repo, energy_repo, audit_logger=audit_logger)
        scheduler = UnifiedScheduler(
            check_interval_seconds=config.scheduler_poll_seconds,
            max_workers=config.scheduler_max_workers,
        )

        container = cls(
            config=config,
            database=database,
            energy_repo=energy_repo,
            anomaly_repo=anomaly_repo,
            audit_logger=audit_logger,
            anomaly_detection_service=detection_service,
            anomaly_service=anomaly_service,
            scheduler=scheduler,
        )

        # Tasks need the full container, so the scheduler is configured last.
        from app.workers.scheduled_tasks import configure_scheduler

        if start_scheduler is None:
            start_scheduler = config.scheduler_enabled
        try:
            configure_scheduler(scheduler, container, start=start_scheduler)
        except Exception as e:
            raise RuntimeError("Failed to initialize UnifiedScheduler") from e

        logger.info("ServiceContainer built successfully.")
        return container

    def shutdown(self) -> None:
        """Release external resources before process exit."""
        try:
            self.scheduler.shutdown()
        except RuntimeError as e:
            logger.warning("Failed to stop UnifiedScheduler: %s", e)

        self.database.close()
        logger.info("ServiceContainer shutdown complete.")
