"""Timestamp helpers shared by the database layer and commands.

All timestamps are stored as ISO-8601 strings in UTC so that plain string
ordering in SQL matches chronological ordering.
"""

import datetime
import re
import time
from email.utils import parsedate_to_datetime
from typing import Any, Optional

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utc_now() -> datetime.datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


def to_iso(value: datetime.datetime) -> str:
    """Format *value* as an ISO string in UTC (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc).isoformat(timespec="seconds")


def now_iso() -> str:
    return to_iso(utc_now())


def parse_timestamp(value: Any) -> Optional[datetime.datetime]:
    """Best-effort conversion of *value* to an aware UTC datetime.

    Accepts datetimes, ``time.struct_time`` (as produced by feedparser), ISO
    strings (with or without offset, ``Z`` suffix or date only) and RFC 822
    dates as found in RSS ``pubDate``. Returns None when nothing matches.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        dt = value
    elif isinstance(value, time.struct_time):
        dt = datetime.datetime(*value[:6], tzinfo=datetime.timezone.utc)
    else:
        text = str(value).strip()
        if not text:
            return None
        if _DATE_ONLY.match(text):
            text += "T00:00:00"
        try:
            dt = datetime.datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            try:
                dt = parsedate_to_datetime(text)
            except (TypeError, ValueError, IndexError):
                return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt.astimezone(datetime.timezone.utc)


def normalize_timestamp(value: Any) -> Optional[str]:
    """Parse *value* and return it as a stored ISO string (None if unparseable)."""
    dt = parse_timestamp(value)
    return to_iso(dt) if dt else None
