"""Upstream dataset endpoints and their catalog metadata."""

from __future__ import annotations

import datetime as dt
import os
from dataclasses import dataclass
from typing import Any

SOCRATA_BASE = "https://data.cityofnewyork.us/resource"
OPEN_DATA_LICENSE = "NYC Open Data - free for public use"


@dataclass(frozen=True)
class SourceDefinition:
    key: str
    url: str
    catalog_name: str
    description: str
    refresh_cadence: str

    def query(self, today: dt.date | None = None) -> dict[str, Any]:
        return build_query(self.key, today)


def _url(env_key: str, dataset_id: str) -> str:
    return os.getenv(env_key, f"{SOCRATA_BASE}/{dataset_id}.json")


PLUTO = SourceDefinition(
    key="pluto",
    url=_url("NYC_PLUTO_URL", "64uk-42ks"),
    catalog_name="NYC PLUTO (Full)",
    description="Complete Primary Land Use Tax Lot Output - all NYC tax lots",
    refresh_cadence="monthly",
)
VALUATIONS = SourceDefinition(
    key="valuations",
    url=_url("NYC_VALUATIONS_URL", "yjxr-fw8i"),
    catalog_name="NYC Property Valuations",
    description="Department of Finance property tax assessments",
    refresh_cadence="annually",
)
ACRIS = SourceDefinition(
    key="acris",
    url=_url("NYC_ACRIS_MASTER_URL", "bnx9-e6tj"),
    catalog_name="ACRIS Real Property",
    description="Automated City Register Information System - deed and mortgage records",
    refresh_cadence="daily",
)
HPD = SourceDefinition(
    key="hpd",
    url=_url("NYC_HPD_BUILDINGS_URL", "tesw-yqqr"),
    catalog_name="HPD Buildings",
    description="Housing Preservation & Development building registrations",
    refresh_cadence="monthly",
)
HPD_VIOLATIONS_URL = _url("NYC_HPD_VIOLATIONS_URL", "wvxf-dwi5")

SOURCES = (PLUTO, VALUATIONS, ACRIS, HPD)

ACRIS_DOC_TYPES = ("DEED", "DEEDO", "MTGE", "ASST", "AGMT")
ACRIS_LOOKBACK_YEARS = 5
VIOLATION_LOOKBACK_MONTHS = 6


def _years_ago(today: dt.date, years: int) -> dt.date:
    try:
        return today.replace(year=today.year - years)
    except ValueError:  # Feb 29
        return today.replace(year=today.year - years, day=28)


def _months_ago(today: dt.date, months: int) -> dt.date:
    month_index = today.year * 12 + today.month - 1 - months
    year, month = divmod(month_index, 12)
    return today.replace(year=year, month=month + 1, day=min(today.day, 28))


def build_query(source_key: str, today: dt.date | None = None) -> dict[str, Any]:
    """SoQL parameters (without paging) for a source."""
    today = today or dt.datetime.now(dt.UTC).date()
    if source_key == ACRIS.key:
        since = _years_ago(today, ACRIS_LOOKBACK_YEARS).isoformat()
        doc_types = ",".join(f"'{code}'" for code in ACRIS_DOC_TYPES)
        return {
            "$where": f"recorded_datetime > '{since}' AND doc_type in ({doc_types})",
            "$order": "recorded_datetime DESC",
        }
    if source_key == "hpd_violations":
        since = _months_ago(today, VIOLATION_LOOKBACK_MONTHS).isoformat()
        return {
            "$where": f"inspectiondate>='{since}'",
            "$order": "inspectiondate DESC",
        }
    return {"$order": "bbl"}


def catalog_entry(source: SourceDefinition, record_count: int, refreshed_at: dt.datetime) -> dict[str, Any]:
    return {
        "name": source.catalog_name,
        "type": "public",
        "description": source.description,
        "refresh_cadence": source.refresh_cadence,
        "last_refresh": refreshed_at,
        "record_count": record_count,
        "licensing_notes": OPEN_DATA_LICENSE,
        "is_active": True,
    }
