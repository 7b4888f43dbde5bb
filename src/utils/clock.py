"""Time helpers shared by the managers."""

from datetime import date, datetime

import pytz

from config import APP_TIMEZONE


def utc_now_iso() -> str:
    return datetime.now(pytz.utc).isoformat()


def local_today(tz_name: str = APP_TIMEZONE) -> date:
    """Calendar date in the configured local timezone."""
    return datetime.now(pytz.timezone(tz_name)).date()


def epoch_millis() -> int:
    return int(datetime.now(pytz.utc).timestamp() * 1000)
