from __future__ import annotations

import datetime as dt
import math
from contextlib import suppress
from typing import Any


def as_text(value: object | None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def parse_float(value: object | None) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
        return number if math.isfinite(number) else None
    text = str(value).strip().replace(",", "")
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    # "NaN", "Infinity" and overflowing literals like "1e400"
    return number if math.isfinite(number) else None


def parse_int(value: object | None) -> int | None:
    """Parse Socrata numerics, which arrive as strings like ``"12"`` or ``"12.0"``."""
    number = parse_float(value)
    if number is None:
        return None
    return int(number)


def parse_datetime(value: Any) -> dt.datetime | None:
    """Coerce Socrata floating timestamps to timezone-aware UTC datetimes."""
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value if value.tzinfo else value.replace(tzinfo=dt.UTC)
    if isinstance(value, dt.date):
        return dt.datetime.combine(value, dt.datetime.min.time(), tzinfo=dt.UTC)
    raw = str(value).strip()
    if not raw:
        return None
    with suppress(ValueError):
        parsed = dt.datetime.fromisoformat(raw)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=dt.UTC)
    for fmt in ("%m/%d/%Y", "%m/%d/%Y %H:%M:%S", "%Y%m%d"):
        with suppress(ValueError):
            return dt.datetime.strptime(raw, fmt).replace(tzinfo=dt.UTC)
    return None


def now_utc() -> dt.datetime:
    return dt.datetime.now(tz=dt.UTC)
