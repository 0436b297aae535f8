"""
Normalize PLUTO staging rows into canonical ``properties``.

Estimated value is assessed value x3 when an assessment exists, otherwise
a flat $400/sqft.  ``opportunity_score`` is a placeholder drawn from the
run RNG (50-79); only its range and the confidence buckets derived from it
are contractual.
"""

from __future__ import annotations

import random
import uuid
from typing import Any

from loguru import logger
from sqlalchemy import select

from opendata.batches import summarize_outcomes, write_batches
from opendata.bbl import BOROUGH_NAMES, county_for
from opendata.models import PlutoRaw, Property

from propetl import config
from propetl.state import RunContext, StepResult
from propetl.steps.base import timed_step

STEP_NAME = "normalize"

DEFAULT_PROPERTY_TYPE = "SFH"

# Building-class code prefix -> property type
PROPERTY_TYPE_MAP = {
    "01": "SFH", "02": "SFH", "03": "SFH",
    "04": "Multi-family 2-4", "05": "Multi-family 2-4", "06": "Multi-family 2-4",
    "07": "Multi-family 5+", "08": "Multi-family 5+", "09": "Condo",
    "10": "Condo", "11": "Multi-family 5+", "12": "Condo", "13": "Condo",
    "R1": "SFH", "R2": "SFH", "R3": "Multi-family 2-4", "R4": "Multi-family 2-4",
    "R5": "Multi-family 5+", "R6": "Multi-family 5+", "R7": "Multi-family 5+",
    "C0": "Condo", "C1": "Condo", "C2": "Condo", "C4": "Condo", "C6": "Condo",
    "S0": "SFH", "S1": "SFH", "S2": "SFH", "S3": "SFH", "S4": "SFH",
    "A0": "SFH", "A1": "SFH", "A2": "SFH", "A3": "SFH", "A4": "SFH", "A5": "SFH",
    "B1": "SFH", "B2": "SFH", "B3": "SFH", "B9": "SFH",
    "D0": "Multi-family 5+", "D1": "Multi-family 5+", "D3": "Multi-family 5+",
    "H1": "Mixed-Use", "H2": "Mixed-Use", "H3": "Mixed-Use", "H4": "Mixed-Use",
    "K1": "Commercial", "K2": "Commercial", "K3": "Commercial", "K4": "Commercial",
    "O1": "Commercial", "O2": "Commercial", "O3": "Commercial", "O4": "Commercial",
    "V0": "Vacant Land", "V1": "Vacant Land", "V2": "Vacant Land", "V3": "Vacant Land",
}

_PLUTO_COLUMNS = (
    PlutoRaw.bbl,
    PlutoRaw.borough,
    PlutoRaw.address,
    PlutoRaw.zip_code,
    PlutoRaw.bldg_class,
    PlutoRaw.units_res,
    PlutoRaw.lot_area,
    PlutoRaw.bldg_area,
    PlutoRaw.res_area,
    PlutoRaw.year_built,
    PlutoRaw.latitude,
    PlutoRaw.longitude,
    PlutoRaw.community_district,
    PlutoRaw.assess_tot,
)


def classify_property_type(bldg_class: str | None) -> str:
    return PROPERTY_TYPE_MAP.get((bldg_class or "")[:2], DEFAULT_PROPERTY_TYPE)


def beds_baths(units_res: int | None) -> tuple[int | None, float | None]:
    units = units_res or 1
    if units <= 1:
        return 3, 2
    if units <= 4:
        return units + 1, units
    return None, None


def estimate_value(assess_tot: int | None, sqft: int) -> int:
    assessed = assess_tot or 0
    if assessed > 0:
        return int(min(assessed * config.ASSESSMENT_MULTIPLIER, config.MAX_ASSESSED_ESTIMATE))
    return int(min(sqft * config.DEFAULT_PRICE_PER_SQFT, config.MAX_SQFT_ESTIMATE))


def confidence_for_score(score: int | float) -> str:
    if score > 70:
        return "High"
    if score > 50:
        return "Medium"
    return "Low"


def placeholder_opportunity_score(rng: random.Random) -> int:
    return config.OPPORTUNITY_SCORE_MIN + rng.randrange(config.OPPORTUNITY_SCORE_SPAN)


def build_property(row: Any, rng: random.Random) -> dict[str, Any] | None:
    if not row.bbl:
        return None
    borough = BOROUGH_NAMES.get((row.borough or "").upper()) or row.borough or "Unknown"
    sqft = row.res_area or row.bldg_area or config.DEFAULT_SQFT
    beds, baths = beds_baths(row.units_res)
    estimated_value = estimate_value(row.assess_tot, sqft)
    price_per_sqft = round(estimated_value / sqft) if sqft > 0 else config.DEFAULT_PRICE_PER_SQFT
    score = placeholder_opportunity_score(rng)

    return {
        "id": str(uuid.uuid4()),
        "bbl": row.bbl,
        "address": row.address or "Unknown Address",
        "city": borough,
        "state": "NY",
        "zip_code": row.zip_code or "00000",
        "county": county_for(borough),
        "neighborhood": f"CD {row.community_district}" if row.community_district else borough,
        "latitude": row.latitude,
        "longitude": row.longitude,
        "property_type": classify_property_type(row.bldg_class),
        "beds": beds,
        "baths": baths,
        "sqft": sqft,
        "lot_size": row.lot_area,
        "year_built": row.year_built,
        "estimated_value": estimated_value,
        "price_per_sqft": price_per_sqft,
        "opportunity_score": score,
        "confidence_level": confidence_for_score(score),
        "data_sources": ["PLUTO"],
    }


def run(context: RunContext) -> StepResult:
    with timed_step(STEP_NAME) as elapsed_ms:
        with context.session_factory() as session:
            pluto_rows = session.execute(select(*_PLUTO_COLUMNS).order_by(PlutoRaw.id)).all()
        logger.info(f"Processing {len(pluto_rows)} PLUTO records...")

        values: list[dict[str, Any]] = []
        missing_bbl = 0
        for row in pluto_rows:
            prop = build_property(row, context.rng)
            if prop is None:
                missing_bbl += 1
                continue
            values.append(prop)

        outcomes = write_batches(
            context.session_factory,
            Property,
            values,
            batch_size=config.PROPERTY_BATCH_SIZE,
            label="properties",
            ignore_conflicts=True,
        )
        summary = summarize_outcomes(outcomes)
        created = summary["rows_written"]
        failed_rows = sum(o.attempted for o in outcomes if not o.succeeded)
        duplicates = len(values) - created - failed_rows
        context.counts["properties"] = created
        logger.info(f"Created {created} normalized properties ({duplicates} duplicate BBLs ignored)")

        return StepResult(
            step=STEP_NAME,
            duration_ms=elapsed_ms(),
            processed=len(pluto_rows),
            succeeded=created,
            failed=failed_rows,
            skipped=missing_bbl + duplicates,
            batches=outcomes,
            artifacts={"missing_bbl": missing_bbl, "duplicate_bbl": duplicates, **summary},
        )
