import logging
import shutil
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from flask import Flask

from infrastructure.database.ops.anomalies import AnomalyOperations
from infrastructure.database.ops.energy import EnergyOperations

logger = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"


class SQLiteDatabaseHandler(
    EnergyOperations,
    AnomalyOperations,
):
    """Thread-safe SQLite handler decoupled from Flask globals."""

    def __init__(self, database_path: str) -> None:
        self._database_path = database_path
        self._local = threading.local()
        # An in-memory database only exists on the connection that created it,
        # so every thread has to share that one connection.
        self._shared_connection: Optional[sqlite3.Connection] = None
        self._shared_lock = threading.RLock()

        if database_path != MEMORY_DATABASE:
            # Ensure the directory for the database file exists
            db_path = Path(database_path)
            if not db_path.parent.exists():
                db_path.parent.mkdir(parents=True, exist_ok=True)
                logger.info("Created database directory: %s", db_path.parent)

    # --- Lifecycle ------------------------------------------------------------
    def init_app(self, app: Flask | None = None) -> None:
        if app is not None:
            app.teardown_appcontext(self.close_db)
        self.create_tables()

    def get_db(self) -> sqlite3.Connection:
        if self._database_path == MEMORY_DATABASE:
            with self._shared_lock:
                if self._shared_connection is None:
                    self._shared_connection = self._open_connection()
                return self._shared_connection

        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is None:
            try:
                connection = self._open_connection()
            except sqlite3.DatabaseError as exc:
                if self._is_corruption_error(exc):
                    logger.error("Database appears corrupt (%s). Recreating a fresh database.", exc)
                    self._quarantine_corrupt_db()
                    connection = self._open_connection()
                else:
                    raise
            self._local.connection = connection
        return connection

    def _open_connection(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._database_path, check_same_thread=False)
        try:
            connection.row_factory = sqlite3.Row
            self._configure_connection(connection)
            return connection
        except Exception:
            connection.close()
            raise

    def _is_corruption_error(self, exc: sqlite3.Error) -> bool:
        message = str(exc).lower()
        return (
            "database disk image is malformed" in message
            or "file is not a database" in message
            or "file is encrypted or is not a database" in message
            or "malformed" in message
        )

    def _quarantine_corrupt_db(self) -> Optional[Path]:
        db_path = Path(self._database_path)
        if not db_path.exists():
            return None

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        quarantine_dir = db_path.parent / "corrupt"
        quarantine_dir.mkdir(parents=True, exist_ok=True)

        suffix = db_path.suffix or ".db"
        quarantined = quarantine_dir / f"{db_path.stem}_corrupt_{timestamp}{suffix}"
        try:
            shutil.move(str(db_path), str(quarantined))
            for sidecar_suffix in ("-wal", "-shm"):
                sidecar = Path(f"{db_path}{sidecar_suffix}")
                if sidecar.exists():
                    sidecar_target = quarantine_dir / f"{sidecar.name}_{timestamp}"
                    shutil.move(str(sidecar), str(sidecar_target))
            logger.warning("Quarantined corrupt database to %s", quarantined)
            return quarantined
        except OSError as exc:
            logger.error("Failed to quarantine corrupt database %s: %s", db_path, exc)
            return None

    def _configure_connection(self, connection: sqlite3.Connection) -> None:
        """Configure SQLite connection.

        - WAL mode: concurrent readers while the nightly run writes anomalies
        - NORMAL synchronous: still safe with WAL
        - Foreign keys enforced
        """
        if self._database_path != MEMORY_DATABASE:
            connection.execute("PRAGMA journal_mode=WAL")
            connection.execute("PRAGMA synchronous=NORMAL")
        connection.execute("PRAGMA foreign_keys=ON")
        connection.execute("PRAGMA temp_store=MEMORY")
        connection.commit()

    def close_db(self, _e: Optional[BaseException] = None) -> None:
        if self._database_path == MEMORY_DATABASE:
            # Closing would discard the whole database; keep it for the handler's lifetime.
            return
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            delattr(self._local, "connection")

    def close(self) -> None:
        """Close every connection owned by the calling thread, including the shared one."""
        with self._shared_lock:
            if self._shared_connection is not None:
                self._shared_connection.close()
                self._shared_connection = None
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            delattr(self._local, "connection")

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self.get_db()
        if self._database_path == MEMORY_DATABASE:
            with self._shared_lock:
                try:
                    yield conn
                finally:
                    conn.commit()
            return
        try:
            yield conn
        finally:
            conn.commit()

    # --- Schema ----------------------------------------------------------------
    def create_tables(self) -> None:
        """Creates the necessary tables in the database if they do not already exist."""
        with self.connection() as db:
            # Solar Units Table
            db.execute(
                """
                CREATE TABLE IF NOT EXISTS SolarUnits (
                    unit_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER,
                    serial_number TEXT UNIQUE NOT NULL,
                    capacity_kw REAL NOT NULL CHECK (capacity_kw > 0),
                    installation_date TEXT,
                    status TEXT NOT NULL DEFAULT 'ACTIVE'
                        CHECK (status IN ('ACTIVE', 'INACTIVE', 'MAINTENANCE')),
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            db.execute("CREATE INDEX IF NOT EXISTS idx_solar_units_user ON SolarUnits(user_id)")
            db.execute("CREATE INDEX IF NOT EXISTS idx_solar_units_status ON SolarUnits(status)")

            # Raw interval readings, summed per UTC day for detection
            db.execute(
                """
                CREATE TABLE IF NOT EXISTS EnergyGenerationRecords (
                    record_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    unit_id INTEGER NOT NULL,
                    timestamp TEXT NOT NULL,
                    energy_generated REAL NOT NULL,
                    FOREIGN KEY (unit_id) REFERENCES SolarUnits(unit_id) ON DELETE CASCADE
                )
                """
            )
            db.execute(
                "CREATE INDEX IF NOT EXISTS idx_energy_records_unit_time "
                "ON EnergyGenerationRecords(unit_id, timestamp)"
            )

            # Detected anomalies
            db.execute(
                """
                CREATE TABLE IF NOT EXISTS SolarAnomaly (
                    anomaly_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    unit_id INTEGER NOT NULL,
                    anomaly_type TEXT NOT NULL
                        CHECK (anomaly_type IN ('MECHANICAL', 'TEMPERATURE', 'SHADING', 'SENSOR_ERROR')),
                    severity TEXT NOT NULL DEFAULT 'WARNING'
                        CHECK (severity IN ('CRITICAL', 'WARNING', 'INFO')),
                    detection_timestamp TEXT NOT NULL,
                    affected_start_date TEXT NOT NULL,
                    affected_end_date TEXT NOT NULL,
                    description TEXT NOT NULL,
                    resolved INTEGER NOT NULL DEFAULT 0,
                    resolved_at TEXT,
                    metadata TEXT NOT NULL DEFAULT '{}',
                    FOREIGN KEY (unit_id) REFERENCES SolarUnits(unit_id) ON DELETE CASCADE
                )
                """
            )
            db.execute(
                "CREATE INDEX IF NOT EXISTS idx_solar_anomaly_unit_detected "
                "ON SolarAnomaly(unit_id, detection_timestamp DESC)"
            )
            db.execute("CREATE INDEX IF NOT EXISTS idx_solar_anomaly_resolved ON SolarAnomaly(resolved)")
            db.execute("CREATE INDEX IF NOT EXISTS idx_solar_anomaly_severity ON SolarAnomaly(severity)")
            db.execute("CREATE INDEX IF NOT EXISTS idx_solar_anomaly_type ON SolarAnomaly(anomaly_type)")
            db.execute(
                "CREATE INDEX IF NOT EXISTS idx_solar_anomaly_dedup "
                "ON SolarAnomaly(unit_id, anomaly_type, affected_start_date, resolved)"
            )
        logger.info("Database tables ensured at %s", self._database_path)
