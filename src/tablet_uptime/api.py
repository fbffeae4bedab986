"""FastAPI backend exposing device uptime views."""
from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pymysql.err import OperationalError

from . import analyze, buckets, data, rollup, storage
from .errors import InvalidWindow, WindowTooLarge
from .heartbeats import HeartbeatRecord
from .logging_utils import setup_logging
from .options import Options
from .tzcalendar import TimeZoneCalendar

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Runtime configuration for the backend service."""

    db_url: str | None
    data_file: Path | None
    data_url: str | None
    options: Options
    extent_days: int
    cors_origins: list[str]
    debug: bool

    @property
    def source(self) -> str:
        if self.db_url:
            return "mysql"
        if self.data_file:
            return "file"
        return "url"


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def load_settings() -> Settings:
    """Load backend configuration from environment variables."""

    db_url = os.getenv("TABLET_UPTIME_DB_URL") or None
    data_file_env = os.getenv("TABLET_UPTIME_DATA_FILE")
    data_file = Path(data_file_env) if data_file_env else None
    data_url = os.getenv("TABLET_UPTIME_DATA_URL") or None
    if not (db_url or data_file or data_url):
        raise RuntimeError(
            "One of TABLET_UPTIME_DB_URL, TABLET_UPTIME_DATA_FILE or "
            "TABLET_UPTIME_DATA_URL must be configured"
        )

    defaults = Options()
    options = Options(
        timezone=os.getenv("TABLET_UPTIME_TIMEZONE", defaults.timezone),
        grace_minutes=int(
            os.getenv("TABLET_UPTIME_GRACE_MINUTES", str(defaults.grace_minutes))
        ),
        max_buckets=int(
            os.getenv("TABLET_UPTIME_MAX_BUCKETS", str(defaults.max_buckets))
        ),
        calendar_interval=int(
            os.getenv(
                "TABLET_UPTIME_CALENDAR_INTERVAL", str(defaults.calendar_interval)
            )
        ),
        default_interval=int(
            os.getenv("TABLET_UPTIME_DEFAULT_INTERVAL", str(defaults.default_interval))
        ),
    )
    # Fail at startup rather than on the first request
    TimeZoneCalendar(options.timezone)

    cors_env = os.getenv("TABLET_UPTIME_CORS_ORIGINS", "*")
    cors_origins = [origin.strip() for origin in cors_env.split(",") if origin.strip()]

    return Settings(
        db_url=db_url,
        data_file=data_file,
        data_url=data_url,
        options=options,
        extent_days=int(os.getenv("TABLET_UPTIME_EXTENT_DAYS", "30")),
        cors_origins=cors_origins or ["*"],
        debug=_parse_bool(os.getenv("TABLET_UPTIME_DEBUG"), False),
    )

_INITIAL_SETTINGS = load_settings()

app = FastAPI(title="Tablet Uptime API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=_INITIAL_SETTINGS.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)


def _connect_db(settings: Settings):
    try:
        return storage.connect(settings.db_url)
    except OperationalError as exc:
        logger.exception("Failed to connect to MySQL")
        raise HTTPException(
            status_code=503,
            detail=(
                "Unable to connect to the heartbeat database. "
                "Verify that the MySQL service is reachable and credentials are valid."
            ),
        ) from exc


def _load_heartbeats(
    settings: Settings, device_id: str, start: datetime, end: datetime
) -> List[HeartbeatRecord]:
    if settings.db_url:
        conn = _connect_db(settings)
        try:
            return storage.fetch_heartbeats(conn, device_id, start, end)
        except OperationalError as exc:
            logger.exception("Heartbeat query failed")
            raise HTTPException(status_code=503, detail="Heartbeat query failed") from exc
        finally:
            conn.close()
    try:
        rows = data.fetch_heartbeats(settings.data_file, settings.data_url)
    except (OSError, ValueError, requests.RequestException) as exc:
        logger.exception("Failed to load heartbeat export")
        raise HTTPException(
            status_code=503, detail="Unable to load heartbeat data"
        ) from exc
    records = data.parse_heartbeats(rows)
    return data.select_heartbeats(records, device_id, start, end)


def _grace(settings: Settings) -> timedelta:
    return timedelta(minutes=settings.options.grace_minutes)


def _timeline_range(
    settings: Settings,
    now: datetime,
    mode: str,
    interval: int,
    start_date: date | None,
    end_date: date | None,
    preset: str | None,
) -> Tuple[datetime, datetime]:
    calendar = TimeZoneCalendar(settings.options.timezone)
    window = analyze.resolve_window(
        mode,
        interval,
        calendar,
        now=now,
        start_date=start_date,
        end_date=end_date,
        preset=preset,
    )
    if window is None:
        # Data-extent windows look back a fixed number of days
        return now - timedelta(days=settings.extent_days), now
    start, end = window
    return start - _grace(settings), end


async def _run(build: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    try:
        return await asyncio.to_thread(build)
    except (InvalidWindow, WindowTooLarge) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@app.on_event("startup")
async def on_startup() -> None:
    settings = load_settings()
    setup_logging(settings.debug)
    logger.debug("Loaded settings: %s", settings)
    app.state.settings = settings
    if settings.cors_origins != _INITIAL_SETTINGS.cors_origins:
        logger.warning(
            "CORS origin configuration changed to %s after startup; restart required for changes to apply.",
            settings.cors_origins,
        )
    logger.info(
        "Serving uptime views from %s source in %s",
        settings.source,
        settings.options.timezone,
    )


def _require_settings() -> Settings:
    settings = getattr(app.state, "settings", None)
    if settings is None:  # pragma: no cover - startup should populate
        raise HTTPException(status_code=503, detail="Service not initialised")
    return settings


@app.get("/healthz")
async def healthz() -> Dict[str, Any]:
    settings = _require_settings()
    payload: Dict[str, Any] = {
        "status": "ok",
        "source": settings.source,
        "timezone": settings.options.timezone,
    }
    if settings.db_url:

        def _stats() -> Dict[str, int]:
            conn = _connect_db(settings)
            try:
                return storage.db_stats(conn)
            finally:
                conn.close()

        payload["database"] = await asyncio.to_thread(_stats)
    return payload


@app.get("/api/devices/{device_id}/heartbeats")
async def device_heartbeats(
    device_id: str,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
) -> Dict[str, Any]:
    """Raw heartbeats for a device over whole local days (default: today)."""
    settings = _require_settings()

    def _build() -> Dict[str, Any]:
        calendar = TimeZoneCalendar(settings.options.timezone)
        today = calendar.today()
        first = start_date or end_date or today
        last = end_date or start_date or today
        start, end = buckets.date_window(first, last, calendar)
        heartbeats = _load_heartbeats(settings, device_id, start, end)
        return {
            "device_id": device_id,
            "start_date": first.isoformat(),
            "end_date": last.isoformat(),
            "window_start": start.isoformat(),
            "window_end": end.isoformat(),
            "count": len(heartbeats),
            "heartbeats": [hb.to_dict() for hb in heartbeats],
        }

    return await _run(_build)


@app.get("/api/devices/{device_id}/uptime")
async def device_uptime(
    device_id: str,
    mode: str = Query("rolling24h"),
    interval: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    preset: Optional[str] = Query(None),
) -> Dict[str, Any]:
    settings = _require_settings()
    interval_minutes = (
        interval if interval is not None else settings.options.default_interval
    )

    def _build() -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        start, end = _timeline_range(
            settings, now, mode, interval_minutes, start_date, end_date, preset
        )
        heartbeats = _load_heartbeats(settings, device_id, start, end)
        result = analyze.timeline(
            heartbeats,
            mode=mode,
            interval_minutes=interval_minutes,
            options=settings.options,
            now=now,
            start_date=start_date,
            end_date=end_date,
            preset=preset,
        )
        payload = {"device_id": device_id, "heartbeat_count": len(heartbeats)}
        payload.update(result.to_dict())
        return payload

    return await _run(_build)


@app.get("/api/devices/{device_id}/uptime/week")
async def device_week(device_id: str) -> Dict[str, Any]:
    settings = _require_settings()

    def _build() -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        calendar = TimeZoneCalendar(settings.options.timezone)
        first_day = calendar.today(now) - timedelta(days=rollup.WEEK_DAYS - 1)
        start = calendar.start_of_date(first_day) - _grace(settings)
        heartbeats = _load_heartbeats(settings, device_id, start, now)
        result = analyze.week_view(heartbeats, options=settings.options, now=now)
        payload: Dict[str, Any] = {"device_id": device_id}
        payload.update(result.to_dict())
        return payload

    return await _run(_build)


@app.get("/api/devices/{device_id}/uptime/month")
async def device_month(
    device_id: str,
    year: Optional[int] = Query(None, ge=1970, le=9998),
    month: Optional[int] = Query(None, ge=1, le=12),
) -> Dict[str, Any]:
    settings = _require_settings()

    def _build() -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        calendar = TimeZoneCalendar(settings.options.timezone)
        today = calendar.today(now)
        first_day = rollup.grid_start(year or today.year, month or today.month)
        start = calendar.start_of_date(first_day) - _grace(settings)
        end = min(
            calendar.start_of_date(first_day + timedelta(days=rollup.GRID_CELLS)), now
        )
        heartbeats = _load_heartbeats(settings, device_id, start, max(start, end))
        result = analyze.month_view(
            heartbeats, year, month, options=settings.options, now=now
        )
        payload: Dict[str, Any] = {"device_id": device_id}
        payload.update(result.to_dict())
        return payload

    return await _run(_build)


if __name__ == "__main__":  # pragma: no cover - manual execution helper
    import uvicorn

    uvicorn.run(
        "tablet_uptime.api:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
    )
