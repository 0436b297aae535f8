"""Fetch + stage one upstream source.

A short or failed fetch is not an error here: whatever was downloaded is
staged, and the gap shows up as ``downloaded`` < requested in the artifacts.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from opendata.sources import HPD, HPD_VIOLATIONS_URL, SourceDefinition, build_query
from opendata.staging import INGESTORS
from opendata.violations import apply_violation_counts, summarize_violations

from propetl import config
from propetl.logging import fetch_log
from propetl.state import RunContext, StepResult
from propetl.steps.base import timed_step


class IngestStep:
    def __init__(self, source: SourceDefinition):
        self.source = source
        self.STEP_NAME = f"ingest_{source.key}"

    def _violation_counts(self, context: RunContext) -> dict[str, Any] | None:
        limit = context.limits.violations
        if limit <= 0:
            return None
        fetched = context.fetcher.fetch_all(
            HPD_VIOLATIONS_URL,
            build_query("hpd_violations"),
            total_limit=limit,
            batch_size=min(context.page_size, 5000),
        )
        fetch_log(
            "hpd_violations",
            fetched.url,
            len(fetched.records),
            fetched.pages,
            fetched.stop_reason,
            error=fetched.error,
        )
        summary = summarize_violations(fetched.records)
        logger.info(
            f"Processed {len(fetched.records)} violations for {len(summary)} buildings"
        )
        return summary

    def run(self, context: RunContext) -> StepResult:
        with timed_step(self.STEP_NAME) as elapsed_ms:
            source = self.source
            ingestor = INGESTORS[source.key]
            limit = context.limits.for_source(source.key)

            fetched = context.fetcher.fetch_all(
                source.url,
                source.query(),
                total_limit=limit,
                batch_size=context.page_size,
            )
            fetch_log(
                source.key,
                fetched.url,
                len(fetched.records),
                fetched.pages,
                fetched.stop_reason,
                error=fetched.error,
            )

            prepare = None
            if source.key == HPD.key:
                summary = self._violation_counts(context)
                if summary:
                    prepare = lambda rows: apply_violation_counts(rows, summary)  # noqa: E731

            result = ingestor.ingest(
                context.session_factory,
                fetched.records,
                batch_size=config.STAGING_BATCH_SIZE,
                prepare=prepare,
            )
            context.counts[f"{source.key}_records"] = result.written

            return StepResult(
                step=self.STEP_NAME,
                duration_ms=elapsed_ms(),
                processed=result.downloaded,
                succeeded=result.written,
                failed=sum(o.attempted for o in result.outcomes if not o.succeeded),
                skipped=result.filtered,
                batches=result.outcomes,
                artifacts={
                    "requested": limit,
                    "downloaded": result.downloaded,
                    "pages": fetched.pages,
                    "stop_reason": fetched.stop_reason,
                    "fetch_error": fetched.error,
                    "filtered_missing_key": result.filtered,
                },
            )
