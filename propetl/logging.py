"""Lightweight logging helpers for pipeline steps."""

from __future__ import annotations

from typing import Any
from loguru import logger


def bind_context(**kwargs: Any):
    """Return a logger with bound contextual fields (step/run/source)."""
    return logger.bind(**{k: v for k, v in kwargs.items() if v is not None})


def step_started(step: str, run_id: str | None = None):
    bind_context(step=step, run_id=run_id).info("step_start {}", step)


def step_finished(step: str, summary: dict[str, Any], run_id: str | None = None):
    bind_context(step=step, run_id=run_id, **summary).info("step_end {} {}", step, summary)


def fetch_log(source: str, url: str, downloaded: int, pages: int, stop_reason: str, **ctx: Any):
    payload = {
        "source": source,
        "url": url,
        "downloaded": downloaded,
        "pages": pages,
        "stop_reason": stop_reason,
    }
    payload.update({k: v for k, v in ctx.items() if v is not None})
    bind_context(**payload).info("fetch {} downloaded={} stop={}", source, downloaded, stop_reason)
