from datetime import datetime, date
from typing import Union

import pytz

from habito.config import config

TimestampLike = Union[datetime, date, str]

def get_timezone(tz=None):
    if tz is None:
        return config.tracking.tzinfo
    if isinstance(tz, str):
        return pytz.timezone(tz)
    return tz

def now_local(tz=None) -> datetime:
    return datetime.now(get_timezone(tz))

def today_local(tz=None) -> date:
    return now_local(tz).date()

def parse_timestamp(value: TimestampLike) -> datetime:
    """Parse an ISO timestamp; naive values are treated as UTC. Raises ValueError."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("empty timestamp")
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f"unsupported timestamp type: {type(value).__name__}")
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt

def to_local_date(value: TimestampLike, tz=None) -> date:
    """Calendar date of a timestamp in the given zone. Plain dates pass through."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    return parse_timestamp(value).astimezone(get_timezone(tz)).date()

