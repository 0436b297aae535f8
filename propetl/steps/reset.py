from __future__ import annotations

from loguru import logger
from sqlalchemy import delete

from opendata.models import DERIVED_MODELS, STAGING_MODELS

from propetl.state import RunContext, StepResult
from propetl.steps.base import timed_step

STEP_NAME = "reset"


def run(context: RunContext) -> StepResult:
    """Full reset: empty staging and every derived table before reloading."""
    with timed_step(STEP_NAME) as elapsed_ms:
        cleared: dict[str, int] = {}
        with context.session_factory() as session:
            for model in (*DERIVED_MODELS, *STAGING_MODELS):
                result = session.execute(delete(model))
                cleared[model.__tablename__] = max(result.rowcount or 0, 0)
            session.commit()
        logger.info(f"Cleared {sum(cleared.values())} rows from staging and derived tables")

        return StepResult(
            step=STEP_NAME,
            duration_ms=elapsed_ms(),
            processed=len(cleared),
            succeeded=len(cleared),
            artifacts={"rows_deleted": cleared},
        )
