from __future__ import annotations

from loguru import logger
from sqlalchemy import func, select

from opendata.db import insert_ignore
from opendata.models import AcrisRaw, DataSource, HpdRaw, PlutoRaw, ValuationRaw
from opendata.parsing import now_utc
from opendata.sources import catalog_entry

from propetl.state import RunContext, StepResult
from propetl.steps.base import timed_step

STEP_NAME = "catalog"

STAGING_BY_SOURCE = {
    "pluto": PlutoRaw,
    "valuations": ValuationRaw,
    "acris": AcrisRaw,
    "hpd": HpdRaw,
}


def run(context: RunContext) -> StepResult:
    """Insert-or-ignore one catalog row per source; existing names are left untouched."""
    with timed_step(STEP_NAME) as elapsed_ms:
        refreshed_at = now_utc()
        inserted = 0
        record_counts: dict[str, int] = {}
        with context.session_factory() as session:
            for source in context.sources:
                model = STAGING_BY_SOURCE[source.key]
                count = session.execute(select(func.count()).select_from(model)).scalar_one()
                record_counts[source.catalog_name] = int(count)
                stmt = insert_ignore(
                    session,
                    DataSource,
                    [catalog_entry(source, int(count), refreshed_at)],
                    index_elements=["name"],
                )
                inserted += max(session.execute(stmt).rowcount or 0, 0)
            session.commit()
        logger.info(f"Data sources updated ({inserted} new catalog entries)")

        return StepResult(
            step=STEP_NAME,
            duration_ms=elapsed_ms(),
            processed=len(record_counts),
            succeeded=inserted,
            skipped=len(record_counts) - inserted,
            artifacts={"record_counts": record_counts},
        )
