"""SQLite device directory: devices, screens and ingested logs."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from .errors import PersistenceWriteFailure
from .models import Device, Screen

logger = logging.getLogger(__name__)

DEVICE_COLUMNS = (
    "mac_address",
    "api_key",
    "friendly_id",
    "name",
    "screen",
    "timezone",
    "refresh_schedule",
    "firmware_version",
    "battery_voltage",
    "rssi",
    "last_seen_at",
    "updated_at",
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS devices (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    mac_address TEXT NOT NULL UNIQUE,
    api_key TEXT NOT NULL UNIQUE,
    friendly_id TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    screen TEXT NOT NULL DEFAULT 'default',
    timezone TEXT NOT NULL DEFAULT 'UTC',
    refresh_schedule TEXT NOT NULL DEFAULT '300',
    firmware_version TEXT,
    battery_voltage REAL,
    rssi INTEGER,
    last_seen_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS screens (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    device_id INTEGER NOT NULL REFERENCES devices(id),
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    config TEXT NOT NULL DEFAULT '{}',
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    device_id INTEGER,
    friendly_id TEXT,
    level TEXT NOT NULL,
    message TEXT NOT NULL,
    log_data TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS system_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    level TEXT NOT NULL,
    message TEXT NOT NULL,
    source TEXT,
    metadata TEXT,
    trace TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_screens_device_active ON screens(device_id, is_active);
CREATE INDEX IF NOT EXISTS idx_logs_friendly_id ON logs(friendly_id);
"""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeviceDatabase:
    """SQLite database for TRMNL devices."""

    def __init__(self, db_path: str = "data/devices.db"):
        """Initialize database."""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_db(self):
        """Create database tables if they don't exist."""
        with self._connect() as conn:
            conn.executescript(SCHEMA)
        logger.info(f"Database initialized at {self.db_path}")

    # Devices

    def _row_to_device(self, row: Optional[sqlite3.Row]) -> Optional[Device]:
        if not row:
            return None
        return Device(**dict(row))

    def _fetch_device(self, where: str, params: tuple) -> Optional[Device]:
        with self._connect() as conn:
            row = conn.execute(f"SELECT * FROM devices WHERE {where}", params).fetchone()
        return self._row_to_device(row)

    def get_device(self, device_id: int) -> Optional[Device]:
        """Get device by internal ID."""
        return self._fetch_device("id = ?", (device_id,))

    def get_device_by_mac(self, mac_address: str) -> Optional[Device]:
        """Get device by normalized MAC address."""
        return self._fetch_device("mac_address = ?", (mac_address,))

    def get_device_by_api_key(self, api_key: str) -> Optional[Device]:
        """Get device by API key."""
        return self._fetch_device("api_key = ?", (api_key,))

    def get_device_by_mac_and_key(self, mac_address: str, api_key: str) -> Optional[Device]:
        """Get device matching both MAC address and API key."""
        return self._fetch_device(
            "mac_address = ? AND api_key = ?", (mac_address, api_key)
        )

    def count_devices(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM devices").fetchone()[0]

    def create_device(
        self,
        mac_address: str,
        api_key: str,
        friendly_id: str,
        name: str,
        screen: str = "default",
        timezone: str = "UTC",
        refresh_schedule: str = "300",
        firmware_version: Optional[str] = None,
        last_seen_at: Optional[datetime] = None,
    ) -> Device:
        """
        Create new device.

        Raises:
            sqlite3.IntegrityError: If the MAC, API key or friendly ID is taken
        """
        now = utcnow().isoformat()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO devices (
                    mac_address, api_key, friendly_id, name, screen, timezone,
                    refresh_schedule, firmware_version, last_seen_at,
                    created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    mac_address,
                    api_key,
                    friendly_id,
                    name,
                    screen,
                    timezone,
                    refresh_schedule,
                    firmware_version,
                    last_seen_at.isoformat() if last_seen_at else None,
                    now,
                    now,
                ),
            )
            device_id = cursor.lastrowid
        logger.info(f"Created device: {friendly_id} ({mac_address})")
        return self.get_device(device_id)

    def update_device(self, device_id: int, **fields: Any):
        """
        Update the given device columns.

        Raises:
            PersistenceWriteFailure: If the write fails, e.g. on a uniqueness clash
        """
        unknown = set(fields) - set(DEVICE_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown device columns: {sorted(unknown)}")

        fields.setdefault("updated_at", utcnow())
        updates = []
        params = []
        for column, value in fields.items():
            updates.append(f"{column} = ?")
            params.append(value.isoformat() if isinstance(value, datetime) else value)
        params.append(device_id)

        try:
            with self._connect() as conn:
                conn.execute(
                    f"UPDATE devices SET {', '.join(updates)} WHERE id = ?",
                    params,
                )
        except sqlite3.Error as e:
            raise PersistenceWriteFailure(f"Updating device {device_id} failed: {e}") from e

    def update_device_status(
        self,
        device_id: int,
        last_seen_at: Optional[datetime] = None,
        firmware_version: Optional[str] = None,
        battery_voltage: Optional[float] = None,
        rssi: Optional[int] = None,
    ):
        """Update device status. Only supplied values are written."""
        updates = {}

        if last_seen_at is not None:
            updates["last_seen_at"] = last_seen_at

        if firmware_version is not None:
            updates["firmware_version"] = firmware_version

        if battery_voltage is not None:
            updates["battery_voltage"] = battery_voltage

        if rssi is not None:
            updates["rssi"] = rssi

        if not updates:
            return

        self.update_device(device_id, **updates)

    # Screens

    def _row_to_screen(self, row: Optional[sqlite3.Row]) -> Optional[Screen]:
        if not row:
            return None
        data = dict(row)
        data["config"] = json.loads(data["config"] or "{}")
        data["is_active"] = bool(data["is_active"])
        return Screen(**data)

    def create_screen(
        self,
        device_id: int,
        name: str,
        type: str,
        config: Optional[dict] = None,
        is_active: bool = True,
        created_at: Optional[datetime] = None,
    ) -> Screen:
        """Create a screen for a device."""
        created = (created_at or utcnow()).isoformat()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO screens (device_id, name, type, config, is_active, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (device_id, name, type, json.dumps(config or {}), int(is_active), created, created),
            )
            screen_id = cursor.lastrowid
        return self.get_screen(screen_id)

    def get_screen(self, screen_id: int) -> Optional[Screen]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM screens WHERE id = ?", (screen_id,)).fetchone()
        return self._row_to_screen(row)

    def get_active_screen(self, device_id: int) -> Optional[Screen]:
        """Get the current screen: the most recently created active one."""
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT * FROM screens
                WHERE device_id = ? AND is_active = 1
                ORDER BY created_at DESC, id DESC
                LIMIT 1
                """,
                (device_id,),
            ).fetchone()
        return self._row_to_screen(row)

    # Logs

    def insert_log(
        self,
        device_id: Optional[int],
        friendly_id: Optional[str],
        level: str,
        message: str,
        log_data: Optional[dict] = None,
    ):
        """
        Store a log entry sent by a device.

        Raises:
            PersistenceWriteFailure: If the insert fails
        """
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO logs (device_id, friendly_id, level, message, log_data, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        device_id,
                        friendly_id,
                        level,
                        message,
                        json.dumps(log_data or {}, default=str),
                        utcnow().isoformat(),
                    ),
                )
        except sqlite3.Error as e:
            raise PersistenceWriteFailure(f"Storing log for {friendly_id} failed: {e}") from e

    def get_logs(self, friendly_id: str) -> list[dict]:
        """Get stored device logs, oldest first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM logs WHERE friendly_id = ? ORDER BY id", (friendly_id,)
            ).fetchall()
        logs = []
        for row in rows:
            entry = dict(row)
            entry["log_data"] = json.loads(entry["log_data"])
            logs.append(entry)
        return logs

    def insert_system_log(
        self,
        level: str,
        message: str,
        source: str = "api",
        metadata: Optional[dict] = None,
        trace: Optional[str] = None,
    ):
        """Store a server log record."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO system_logs (level, message, source, metadata, trace, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    level,
                    message,
                    source,
                    json.dumps(metadata, default=str) if metadata else None,
                    trace,
                    utcnow().isoformat(),
                ),
            )

    def get_system_logs(self) -> list[dict]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM system_logs ORDER BY id").fetchall()
        return [dict(row) for row in rows]
