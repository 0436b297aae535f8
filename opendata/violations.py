"""Roll HPD violation records up into per-building counts for hpd_raw rows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from opendata.bbl import normalize_bbl
from opendata.parsing import as_text

OPEN_VIOLATION_STATUS = "Open"
OPEN_CURRENT_STATUS = "VIOLATION OPEN"


@dataclass(slots=True)
class ViolationCounts:
    total: int = 0
    open: int = 0
    bbl: str | None = None


def is_open_violation(record: dict[str, Any]) -> bool:
    return (
        record.get("violationstatus") == OPEN_VIOLATION_STATUS
        or record.get("currentstatus") == OPEN_CURRENT_STATUS
    )


def summarize_violations(records: list[dict[str, Any]]) -> dict[str, ViolationCounts]:
    """Count total/open violations per HPD building id; records without one are ignored."""
    by_building: dict[str, ViolationCounts] = {}
    for record in records:
        building_id = as_text(record.get("buildingid"))
        if not building_id:
            continue
        counts = by_building.get(building_id)
        if counts is None:
            counts = ViolationCounts(bbl=normalize_bbl(record.get("bbl")))
            by_building[building_id] = counts
        counts.total += 1
        if is_open_violation(record):
            counts.open += 1
    return by_building


def apply_violation_counts(
    rows: list[dict[str, Any]], summary: dict[str, ViolationCounts]
) -> int:
    """Fill violation counts on staging rows in place; returns rows touched."""
    if not summary:
        return 0
    by_bbl = {counts.bbl: counts for counts in summary.values() if counts.bbl}
    touched = 0
    for row in rows:
        counts = summary.get(row.get("building_id") or "")
        if counts is None and row.get("bbl"):
            counts = by_bbl.get(row["bbl"])
        if counts is None:
            continue
        row["total_violations"] = counts.total
        row["open_violations"] = counts.open
        touched += 1
    return touched
