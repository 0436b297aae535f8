"""Common helpers for pipeline steps."""

from __future__ import annotations

import time
from contextlib import contextmanager


@contextmanager
def timed_step(step: str):
    start = time.perf_counter()
    yield lambda: (time.perf_counter() - start) * 1000
