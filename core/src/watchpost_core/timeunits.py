"""Time unit helpers shared by the token and action screens."""

from __future__ import annotations

import re
from datetime import datetime, tzinfo

SEC_PER_MIN = 60
SEC_PER_HOUR = 3600
SEC_PER_DAY = 86400
SEC_PER_WEEK = 604800

_UNIT_SECONDS = {
    "s": 1,
    "m": SEC_PER_MIN,
    "h": SEC_PER_HOUR,
    "d": SEC_PER_DAY,
    "w": SEC_PER_WEEK,
}

_SIMPLE_INTERVAL_RE = re.compile(r"^(\d+)([smhdw]?)$")

RANGE_TIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
)


def parse_simple_interval(value: str | int | None) -> int | None:
    """Convert a simple interval such as "90", "30m" or "1h" into seconds.

    Returns None when the value is not a simple interval (macros included).
    """

    if value is None:
        return None
    m = _SIMPLE_INTERVAL_RE.match(str(value).strip())
    if m is None:
        return None
    number, suffix = m.groups()
    return int(number) * _UNIT_SECONDS[suffix or "s"]


def convert_units_uptime(seconds: float) -> str:
    """Format a duration as "[N day(s), ]HH:MM:SS"."""

    secs = round(seconds)
    sign = ""
    if secs < 0:
        sign = "-"
        secs = -secs

    days, secs = divmod(secs, SEC_PER_DAY)
    hours, secs = divmod(secs, SEC_PER_HOUR)
    mins, secs = divmod(secs, SEC_PER_MIN)

    out = sign
    if days:
        out += f"{days} day, " if days == 1 else f"{days} days, "
    return out + f"{hours:02d}:{mins:02d}:{secs:02d}"


def parse_range_time(value: str, tz: tzinfo) -> int:
    """Parse an absolute date-time in `tz` into a Unix timestamp.

    Raises ValueError when `value` matches none of RANGE_TIME_FORMATS.
    """

    text = (value or "").strip()
    for fmt in RANGE_TIME_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return int(parsed.replace(tzinfo=tz).timestamp())
    raise ValueError(f"not a date-time: {value!r}")


def format_timestamp(ts: int, tz: tzinfo, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
    return datetime.fromtimestamp(ts, tz).strftime(fmt)
