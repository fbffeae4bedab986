"""Heartbeat persistence backed by a MySQL database."""
from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, Iterator, List, Sequence, Tuple
from urllib.parse import urlparse, unquote

import pymysql
from pymysql.connections import Connection

from .data import parse_heartbeats
from .heartbeats import HeartbeatRecord

logger = logging.getLogger(__name__)

DB_URL_ENV = "TABLET_UPTIME_DB_URL"


@dataclass
class MySQLConfig:
    """Connection details for the heartbeat database."""

    host: str
    port: int
    user: str
    password: str | None
    database: str

    @classmethod
    def from_env(cls) -> "MySQLConfig":
        url = os.getenv(DB_URL_ENV)
        if not url:
            raise RuntimeError(f"{DB_URL_ENV} environment variable is required")
        return cls.from_url(url)

    @classmethod
    def from_url(cls, url: str) -> "MySQLConfig":
        parsed = urlparse(url)
        if parsed.scheme not in {"mysql", "mysql+pymysql"}:
            raise ValueError(f"Unsupported MySQL URL scheme: {parsed.scheme}")
        if parsed.username is None:
            raise ValueError("MySQL URL must include a username")
        if parsed.hostname is None:
            raise ValueError("MySQL URL must include a hostname")
        database = parsed.path.lstrip("/")
        if not database:
            raise ValueError("MySQL URL must include a database name")
        password = unquote(parsed.password) if parsed.password else None
        return cls(
            host=parsed.hostname,
            port=parsed.port or 3306,
            user=parsed.username,
            password=password,
            database=database,
        )


SCHEMA_STATEMENTS: Sequence[str] = (
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        id TINYINT PRIMARY KEY,
        version INT NOT NULL
    ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4
    """,
    """
    CREATE TABLE IF NOT EXISTS device_heartbeats (
        id BIGINT AUTO_INCREMENT PRIMARY KEY,
        device_id VARCHAR(128) NOT NULL,
        device_name VARCHAR(128) NULL,
        ts VARCHAR(40) NOT NULL,
        battery_level DOUBLE NULL,
        cpu_usage DOUBLE NULL,
        INDEX idx_device_ts (device_id, ts),
        INDEX idx_name_ts (device_name, ts)
    ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4
    """,
)

CURRENT_SCHEMA_VERSION = 2

# Statements that bring a database at version ``key - 1`` up to ``key``
MIGRATIONS: Dict[int, Sequence[str]] = {
    2: (
        "ALTER TABLE device_heartbeats ADD COLUMN device_name VARCHAR(128) NULL AFTER device_id",
        "ALTER TABLE device_heartbeats ADD INDEX idx_name_ts (device_name, ts)",
    ),
}


def _ts_key(ts: datetime) -> str:
    """Fixed-width UTC text so string order matches time order."""
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


@contextmanager
def _with_cursor(conn: Connection) -> Iterator[pymysql.cursors.Cursor]:
    cursor = conn.cursor()
    try:
        yield cursor
    finally:
        cursor.close()


def _ensure_schema(conn: Connection) -> None:
    for statement in SCHEMA_STATEMENTS:
        with _with_cursor(conn) as cur:
            cur.execute(statement)
    with _with_cursor(conn) as cur:
        cur.execute("SELECT version FROM schema_version WHERE id = 1")
        row = cur.fetchone()
        if row is None:
            cur.execute(
                "INSERT INTO schema_version (id, version) VALUES (1, %s)",
                (CURRENT_SCHEMA_VERSION,),
            )
            conn.commit()
        elif row[0] < CURRENT_SCHEMA_VERSION:
            for version in range(row[0] + 1, CURRENT_SCHEMA_VERSION + 1):
                logger.info("Migrating heartbeat schema to version %d", version)
                for statement in MIGRATIONS.get(version, ()):
                    cur.execute(statement)
            cur.execute(
                "UPDATE schema_version SET version = %s WHERE id = 1",
                (CURRENT_SCHEMA_VERSION,),
            )
            conn.commit()


def connect(config: MySQLConfig | str | None = None) -> Connection:
    if config is None:
        config = MySQLConfig.from_env()
    if isinstance(config, str):
        config = MySQLConfig.from_url(config)
    conn = pymysql.connect(
        host=config.host,
        port=config.port,
        user=config.user,
        password=config.password,
        database=config.database,
        autocommit=False,
        charset="utf8mb4",
        cursorclass=pymysql.cursors.Cursor,
    )
    _ensure_schema(conn)
    return conn


def save_heartbeats(conn: Connection, records: Iterable[HeartbeatRecord]) -> int:
    rows: List[Tuple[str, str | None, str, float | None, float | None]] = [
        (r.device_id, r.device_name, _ts_key(r.timestamp), r.battery_level, r.cpu_usage)
        for r in records
    ]
    if rows:
        with _with_cursor(conn) as cur:
            cur.executemany(
                """
                INSERT INTO device_heartbeats
                    (device_id, device_name, ts, battery_level, cpu_usage)
                VALUES (%s, %s, %s, %s, %s)
                """,
                rows,
            )
        conn.commit()
    logger.debug("Stored %d heartbeats", len(rows))
    return len(rows)


def fetch_heartbeats(
    conn: Connection,
    device_id: str,
    start: datetime,
    end: datetime,
) -> List[HeartbeatRecord]:
    """Return heartbeats with ``start <= ts < end`` for a device id or name, oldest first."""
    with _with_cursor(conn) as cur:
        cur.execute(
            """
            SELECT device_id, device_name, ts, battery_level, cpu_usage
            FROM device_heartbeats
            WHERE (device_id = %s OR device_name = %s) AND ts >= %s AND ts < %s
            ORDER BY ts, id
            """,
            (device_id, device_id, _ts_key(start), _ts_key(end)),
        )
        rows = cur.fetchall()
    return parse_heartbeats(
        {
            "device_id": dev,
            "device_name": name,
            "timestamp": ts,
            "battery_level": battery,
            "cpu_usage": cpu,
        }
        for dev, name, ts, battery, cpu in rows
    )


def db_stats(conn: Connection) -> Dict[str, int]:
    with _with_cursor(conn) as cur:
        cur.execute("SELECT COUNT(*), COUNT(DISTINCT device_id) FROM device_heartbeats")
        rows, devices = cur.fetchone()
    with _with_cursor(conn) as cur:
        cur.execute(
            """
            SELECT COALESCE(SUM(data_length + index_length), 0)
            FROM information_schema.tables
            WHERE table_schema = DATABASE() AND table_name = 'device_heartbeats'
            """
        )
        size_bytes = int(cur.fetchone()[0] or 0)
    stats = {
        "rows": int(rows),
        "devices": int(devices),
        "size_bytes": size_bytes,
    }
    logger.debug("Database stats: %s", stats)
    return stats
