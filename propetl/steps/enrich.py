"""
Link valuation, transaction and compliance staging rows to canonical properties.

The BBL -> property id index is built in memory from ``properties``.  That
assumes the canonical set fits in process memory; past that point the join
belongs in SQL (INSERT ... SELECT joining staging to properties on bbl)
rather than here.

Staging rows whose BBL has no canonical property are dropped without a
satellite row; they only show up in the ``unlinked`` counts.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable

from loguru import logger
from sqlalchemy import select

from opendata.batches import BatchOutcome, write_batches
from opendata.models import (
    AcrisRaw,
    HpdRaw,
    Property,
    PropertyCompliance,
    PropertyTransaction,
    PropertyValuation,
    ValuationRaw,
)
from opendata.parsing import now_utc

from propetl import config
from propetl.state import RunContext, StepResult
from propetl.steps.base import timed_step

STEP_NAME = "enrich"

TRANSACTION_TYPES = {
    "DEED": "sale",
    "DEEDO": "sale",
    "MTGE": "mortgage",
    "ASST": "assignment",
}
DEFAULT_TRANSACTION_TYPE = "transfer"


def transaction_type(doc_type: str | None) -> str:
    return TRANSACTION_TYPES.get((doc_type or "").upper(), DEFAULT_TRANSACTION_TYPE)


def compliance_score(open_violations: int | None) -> int:
    return 100 - min(100, (open_violations or 0) * 10)


def risk_level(open_violations: int | None) -> str:
    count = open_violations or 0
    if count > 5:
        return "high"
    if count > 0:
        return "medium"
    return "low"


def load_property_index(context: RunContext) -> dict[str, str]:
    with context.session_factory() as session:
        rows = session.execute(
            select(Property.bbl, Property.id).where(Property.bbl.is_not(None))
        ).all()
    return {bbl: prop_id for bbl, prop_id in rows}


def valuation_row(val: Any, property_id: str) -> dict[str, Any]:
    return {
        "property_id": property_id,
        "bbl": val.bbl,
        "assess_year": val.assess_year or now_utc().year,
        "tax_class": val.tax_class,
        "land_value": val.land_value,
        "total_value": val.total_value,
    }


def transaction_row(tx: Any, property_id: str) -> dict[str, Any] | None:
    when = tx.recorded_at or tx.doc_date
    if when is None:
        return None
    return {
        "property_id": property_id,
        "bbl": tx.bbl,
        "document_id": tx.document_id,
        "transaction_type": transaction_type(tx.doc_type),
        "transaction_date": when,
        "amount": tx.doc_amount,
    }


def compliance_row(hpd: Any, property_id: str) -> dict[str, Any]:
    open_violations = hpd.open_violations or 0
    return {
        "property_id": property_id,
        "bbl": hpd.bbl,
        "registration_status": hpd.registration_status,
        "total_violations": hpd.total_violations or 0,
        "open_violations": open_violations,
        "total_complaints": hpd.total_complaints or 0,
        "open_complaints": hpd.open_complaints or 0,
        "compliance_score": compliance_score(open_violations),
        "risk_level": risk_level(open_violations),
    }


def link_rows(
    staged: Iterable[Any],
    index: dict[str, str],
    build: Callable[[Any, str], dict[str, Any] | None],
) -> tuple[list[dict[str, Any]], int, int]:
    """Returns (satellite rows, unlinked count, incomplete count)."""
    linked: list[dict[str, Any]] = []
    unlinked = 0
    incomplete = 0
    for row in staged:
        property_id = index.get(row.bbl) if row.bbl else None
        if property_id is None:
            unlinked += 1
            continue
        satellite = build(row, property_id)
        if satellite is None:
            incomplete += 1
            continue
        linked.append(satellite)
    return linked, unlinked, incomplete


_PASSES = (
    (
        "valuations",
        PropertyValuation,
        (
            ValuationRaw.bbl,
            ValuationRaw.assess_year,
            ValuationRaw.tax_class,
            ValuationRaw.land_value,
            ValuationRaw.total_value,
        ),
        ValuationRaw.id,
        valuation_row,
    ),
    (
        "transactions",
        PropertyTransaction,
        (
            AcrisRaw.bbl,
            AcrisRaw.document_id,
            AcrisRaw.doc_type,
            AcrisRaw.doc_date,
            AcrisRaw.recorded_at,
            AcrisRaw.doc_amount,
        ),
        AcrisRaw.id,
        transaction_row,
    ),
    (
        "compliance",
        PropertyCompliance,
        (
            HpdRaw.bbl,
            HpdRaw.registration_status,
            HpdRaw.total_violations,
            HpdRaw.open_violations,
            HpdRaw.total_complaints,
            HpdRaw.open_complaints,
        ),
        HpdRaw.id,
        compliance_row,
    ),
)


def run(context: RunContext) -> StepResult:
    with timed_step(STEP_NAME) as elapsed_ms:
        index = load_property_index(context)
        logger.info(f"Found {len(index)} properties to enrich")

        processed = 0
        linked_total = 0
        skipped = 0
        batches: list[BatchOutcome] = []
        per_pass: dict[str, dict[str, int]] = {}

        for name, model, columns, order_by, build in _PASSES:
            with context.session_factory() as session:
                staged = session.execute(select(*columns).order_by(order_by)).all()
            rows, unlinked, incomplete = link_rows(staged, index, build)
            outcomes = write_batches(
                context.session_factory,
                model,
                rows,
                batch_size=config.ENRICH_BATCH_SIZE,
                label=model.__tablename__,
                ignore_conflicts=True,
            )
            written = sum(o.written for o in outcomes)
            logger.info(f"Linked {written} {name} ({unlinked} unmatched BBLs)")

            processed += len(staged)
            linked_total += written
            skipped += unlinked + incomplete
            batches.extend(outcomes)
            context.counts[f"linked_{name}"] = written
            per_pass[name] = {
                "staged": len(staged),
                "linked": written,
                "unlinked": unlinked,
                "incomplete": incomplete,
            }

        return StepResult(
            step=STEP_NAME,
            duration_ms=elapsed_ms(),
            processed=processed,
            succeeded=linked_total,
            failed=sum(b.attempted for b in batches if not b.succeeded),
            skipped=skipped,
            batches=batches,
            artifacts={"index_size": len(index), "passes": per_pass},
        )
