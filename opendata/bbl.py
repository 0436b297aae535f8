"""
Borough-Block-Lot (BBL) helpers.

The BBL is the join key shared by every NYC property dataset:
1-digit borough code + 5-digit block + 4-digit lot, e.g. ``1001230045``.
Sources disagree on how they spell the borough (``"1"``, ``"MN"``,
``"MANHATTAN"``), and some ship the BBL pre-built as a float-ish string,
so everything funnels through this module before it is used as a key.
"""

from __future__ import annotations

import re
from typing import Any

BOROUGH_CODES = {
    "1": "1",
    "2": "2",
    "3": "3",
    "4": "4",
    "5": "5",
    "MN": "1",
    "BX": "2",
    "BK": "3",
    "QN": "4",
    "SI": "5",
    "MANHATTAN": "1",
    "BRONX": "2",
    "BROOKLYN": "3",
    "QUEENS": "4",
    "STATEN ISLAND": "5",
}

BOROUGH_NAMES = {
    "1": "Manhattan",
    "2": "Bronx",
    "3": "Brooklyn",
    "4": "Queens",
    "5": "Staten Island",
    "MN": "Manhattan",
    "BX": "Bronx",
    "BK": "Brooklyn",
    "QN": "Queens",
    "SI": "Staten Island",
}

BOROUGH_TO_COUNTY = {
    "Manhattan": "New York",
    "Bronx": "Bronx",
    "Brooklyn": "Kings",
    "Queens": "Queens",
    "Staten Island": "Richmond",
}

BBL_LENGTH = 10
_DECIMAL_SUFFIX_RE = re.compile(r"\.0*$")


def _token(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def create_bbl(borough: Any, block: Any, lot: Any) -> str:
    """Build a 10-character BBL; unresolvable parts degrade instead of raising."""
    raw_borough = _token(borough)
    borough_code = BOROUGH_CODES.get(raw_borough.upper()) or raw_borough.rjust(1, "0") or "0"
    block_part = (_token(block) or "0").rjust(5, "0")
    lot_part = (_token(lot) or "0").rjust(4, "0")
    return f"{borough_code}{block_part}{lot_part}"


def normalize_bbl(value: Any) -> str | None:
    """Clean a source-supplied BBL such as ``"1001230045.00000000"``."""
    raw = _token(value)
    if not raw:
        return None
    raw = _DECIMAL_SUFFIX_RE.sub("", raw)
    if not raw.isdigit():
        return None
    return raw.rjust(BBL_LENGTH, "0")


def borough_name(code: Any) -> str | None:
    raw = _token(code)
    if not raw:
        return None
    return BOROUGH_NAMES.get(raw.upper())


def county_for(borough: str | None) -> str:
    return BOROUGH_TO_COUNTY.get(borough or "", "New York")
