"""Timezone utilities for the user's local market time."""

from datetime import datetime
from typing import Optional

import pytz
from dateutil import parser as date_parser

from tradefolio.config.settings import get_settings

LOCAL_TZ = pytz.timezone(get_settings().local_timezone)


def now_local() -> datetime:
    """Return current time in the local timezone."""
    return datetime.now(LOCAL_TZ)


def to_local(dt: datetime) -> datetime:
    """Convert a datetime to the local timezone."""
    if dt.tzinfo is None:
        # Assume naive datetime is already local
        return LOCAL_TZ.localize(dt)
    return dt.astimezone(LOCAL_TZ)


def from_timestamp(ts: float) -> datetime:
    """Convert a unix timestamp (seconds) to a local datetime."""
    return datetime.fromtimestamp(ts, tz=pytz.utc).astimezone(LOCAL_TZ)


def parse_datetime_local(value: str, default_tz: Optional[pytz.BaseTzInfo] = None) -> datetime:
    """
    Parse a datetime string and return it in the local timezone.

    If no timezone is provided in the string, assumes the local timezone.
    """
    dt = date_parser.parse(value)
    if dt.tzinfo is None:
        tz = default_tz or LOCAL_TZ
        dt = tz.localize(dt)
    return to_local(dt)


def start_of_month(dt: Optional[datetime] = None) -> datetime:
    """Return midnight on the first day of dt's month (local time)."""
    dt = to_local(dt or now_local())
    return LOCAL_TZ.localize(datetime(dt.year, dt.month, 1))
