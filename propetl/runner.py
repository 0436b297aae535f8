"""Sequences the full-reset import: reset, four source ingests, normalize, enrich, comps, catalog.

Runs are strictly sequential and assume exclusivity: two overlapping runs
would race on the staging truncate-then-reload.
"""

from __future__ import annotations

import random
import time
import uuid
from typing import List

from loguru import logger

from opendata.db import get_session_factory, resolve_dsn
from opendata.socrata import SocrataClient

from propetl import config, steps
from propetl.logging import step_finished, step_started
from propetl.state import RunContext, RunReport, SourceLimits, StageFailure, StepResult


def _default_run_id() -> str:
    return uuid.uuid4().hex[:8]


def build_context(
    *,
    dsn: str | None = None,
    session_factory=None,
    fetcher: SocrataClient | None = None,
    parcel_limit: int = config.DEFAULT_PARCEL_LIMIT,
    valuation_limit: int = config.DEFAULT_VALUATION_LIMIT,
    transaction_limit: int = config.DEFAULT_TRANSACTION_LIMIT,
    compliance_limit: int = config.DEFAULT_COMPLIANCE_LIMIT,
    violation_limit: int = config.DEFAULT_VIOLATION_LIMIT,
    page_size: int = config.FETCH_PAGE_SIZE,
    seed: int | None = None,
    run_id: str | None = None,
) -> RunContext:
    return RunContext(
        session_factory=session_factory or get_session_factory(resolve_dsn(dsn)),
        fetcher=fetcher
        or SocrataClient(
            page_delay=config.FETCH_PAGE_DELAY_SECONDS,
            timeout=config.FETCH_TIMEOUT_SECONDS,
            app_token=config.SOCRATA_APP_TOKEN,
        ),
        limits=SourceLimits(
            parcels=parcel_limit,
            valuations=valuation_limit,
            transactions=transaction_limit,
            compliance=compliance_limit,
            violations=violation_limit,
        ),
        rng=random.Random(seed),
        page_size=page_size,
        run_id=run_id or _default_run_id(),
    )


def step_sequence(context: RunContext) -> List[steps.StepModule]:
    """Return ordered steps; one ingest step per configured source."""
    seq: List[steps.StepModule] = [steps.reset]
    seq.extend(steps.IngestStep(source) for source in context.sources)
    seq.extend([steps.normalize, steps.enrich, steps.comparables, steps.catalog])
    return seq


def run_full_import(context: RunContext) -> RunReport:
    """Execute every step in order; the first step that raises aborts the run."""
    report = RunReport(run_id=context.run_id)
    started = time.perf_counter()

    logger.info(
        f"pipeline_run_start run_id={context.run_id} parcels={context.limits.parcels} "
        f"valuations={context.limits.valuations} transactions={context.limits.transactions} "
        f"compliance={context.limits.compliance}"
    )

    for module in step_sequence(context):
        step_started(module.STEP_NAME, context.run_id)
        try:
            result: StepResult = module.run(context)
        except Exception as exc:
            report.elapsed_seconds = time.perf_counter() - started
            logger.exception(f"Step {module.STEP_NAME} failed; aborting run {context.run_id}")
            raise StageFailure(module.STEP_NAME, report.results, exc) from exc
        step_finished(module.STEP_NAME, result.summary(), context.run_id)
        report.results.append(result)

    report.elapsed_seconds = time.perf_counter() - started
    report.counts = dict(context.counts)
    logger.info(f"pipeline_run_end run_id={context.run_id} elapsed={report.elapsed_seconds:.1f}s")
    return report


__all__ = ["build_context", "run_full_import", "step_sequence"]
