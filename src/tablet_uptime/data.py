import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List
import requests

from .errors import MalformedHeartbeat
from .heartbeats import HeartbeatRecord
from .tzcalendar import ensure_utc

logger = logging.getLogger(__name__)

# Timestamp fields in order of preference; exports carry the device clock
# reading in location_timestamp and the server receive time in last_seen.
_TIMESTAMP_KEYS = ("location_timestamp", "last_seen", "timestamp", "ts")
_DEVICE_KEYS = ("device_id", "deviceId")
_NAME_KEYS = ("device_name", "deviceName")
_BATTERY_KEYS = ("battery_level", "batteryLevel", "battery")
_CPU_KEYS = ("cpu_usage", "cpuUsage", "cpu")


def fetch_heartbeats(path: Path | None = None, url: str | None = None) -> List[Dict[str, Any]]:
    """Load raw heartbeat rows from a local export file or a remote endpoint."""
    if path:
        logger.debug("Loading heartbeats from %s", path)
        with path.open() as f:
            data = json.load(f)
    elif url:
        logger.debug("Fetching heartbeats from %s", url)
        resp = requests.get(url, timeout=30)
        resp.raise_for_status()
        logger.debug("Fetched %d bytes from remote", len(resp.content))
        data = resp.json()
    else:
        raise ValueError("Either a heartbeat file or URL is required")
    return _rows(data)


def _rows(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, dict):
        items = data.get("heartbeats") or data.get("rows") or data.get("data") or []
    elif isinstance(data, list):
        items = data
    else:
        items = []
    return [it for it in items if isinstance(it, dict)]


def _first(row: Dict[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = row.get(key)
        if value is not None and value != "":
            return value
    return None


def parse_timestamp(value: Any) -> datetime:
    """Return an aware UTC datetime for a raw timestamp value."""
    if isinstance(value, dict):
        # BigQuery JSON wraps TIMESTAMP columns as {"value": "..."}
        value = value.get("value")
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, bool):
        raise MalformedHeartbeat(f"Invalid timestamp {value!r}")
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise MalformedHeartbeat(f"Invalid epoch timestamp {value!r}") from exc
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(" UTC"):
            text = text[:-4]
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except ValueError as exc:
            raise MalformedHeartbeat(f"Invalid timestamp {value!r}") from exc
    raise MalformedHeartbeat(f"Missing or unsupported timestamp {value!r}")


def _percentage(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not 0 <= number <= 100:
        return None
    return number


def parse_heartbeat(row: Dict[str, Any], device_id: str | None = None) -> HeartbeatRecord:
    """Convert one raw row into a :class:`HeartbeatRecord`."""
    raw_ts = _first(row, _TIMESTAMP_KEYS)
    if raw_ts is None:
        raise MalformedHeartbeat("Heartbeat has no timestamp")
    name = _first(row, _NAME_KEYS)
    # Rows keyed only by name use it as the id too
    device = _first(row, _DEVICE_KEYS) or name or device_id
    if device is None:
        raise MalformedHeartbeat("Heartbeat has no device id")
    return HeartbeatRecord(
        device_id=str(device),
        timestamp=parse_timestamp(raw_ts),
        battery_level=_percentage(_first(row, _BATTERY_KEYS)),
        cpu_usage=_percentage(_first(row, _CPU_KEYS)),
        device_name=str(name) if name is not None else None,
    )


def parse_heartbeats(
    rows: Iterable[Dict[str, Any]], device_id: str | None = None
) -> List[HeartbeatRecord]:
    """Parse rows, dropping any that cannot be parsed."""
    results: List[HeartbeatRecord] = []
    dropped = 0
    for row in rows:
        try:
            results.append(parse_heartbeat(row, device_id))
        except MalformedHeartbeat as exc:
            dropped += 1
            logger.debug("Skipping malformed heartbeat %s: %s", row, exc)
    logger.debug("Parsed %d heartbeats, dropped %d", len(results), dropped)
    return results


def select_heartbeats(
    records: Iterable[HeartbeatRecord],
    device_id: str,
    start: datetime | None = None,
    end: datetime | None = None,
) -> List[HeartbeatRecord]:
    """Return heartbeats within ``[start, end)`` whose id or name is *device_id*."""
    return [
        r
        for r in records
        if r.matches(device_id)
        and (start is None or r.timestamp >= start)
        and (end is None or r.timestamp < end)
    ]
