import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from tablet_uptime import storage
from tablet_uptime.heartbeats import HeartbeatRecord

TEST_DB_URL = os.getenv("TABLET_UPTIME_TEST_DB_URL")


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def hb(ts: datetime, battery=None, cpu=None, device="D1") -> HeartbeatRecord:
    return HeartbeatRecord(device_id=device, timestamp=ts, battery_level=battery, cpu_usage=cpu)


@pytest.fixture(scope="module")
def db_url():
    if not TEST_DB_URL:
        pytest.skip("TABLET_UPTIME_TEST_DB_URL not configured", allow_module_level=True)
    return TEST_DB_URL


@pytest.fixture
def conn(db_url):
    connection = storage.connect(db_url)
    with connection.cursor() as cur:
        cur.execute("DELETE FROM device_heartbeats")
    connection.commit()
    yield connection
    connection.close()
