"""Shared state objects for a pipeline run."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Dict, List

from sqlalchemy.orm import Session, sessionmaker

from opendata.batches import BatchOutcome
from opendata.socrata import SocrataClient
from opendata.sources import SOURCES, SourceDefinition


@dataclass(slots=True)
class StepResult:
    step: str
    duration_ms: float = 0.0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    artifacts: Dict[str, Any] = field(default_factory=dict)
    batches: List[BatchOutcome] = field(default_factory=list)

    def summary(self) -> dict[str, Any]:
        return {
            "duration_ms": round(self.duration_ms, 1),
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "failed_batches": sum(1 for b in self.batches if not b.succeeded),
        }


@dataclass(slots=True)
class SourceLimits:
    parcels: int
    valuations: int
    transactions: int
    compliance: int
    violations: int = 0

    def for_source(self, key: str) -> int:
        return {
            "pluto": self.parcels,
            "valuations": self.valuations,
            "acris": self.transactions,
            "hpd": self.compliance,
        }[key]


@dataclass(slots=True)
class RunContext:
    """Everything a run touches; the reset step clears the tables it owns."""

    session_factory: sessionmaker[Session]
    fetcher: SocrataClient
    limits: SourceLimits
    rng: random.Random = field(default_factory=random.Random)
    sources: tuple[SourceDefinition, ...] = SOURCES
    page_size: int = 10_000
    run_id: str = ""
    counts: Dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class RunReport:
    run_id: str
    elapsed_seconds: float = 0.0
    results: List[StepResult] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=dict)

    @property
    def batches(self) -> List[BatchOutcome]:
        return [batch for result in self.results for batch in result.batches]

    @property
    def failed_batches(self) -> List[BatchOutcome]:
        return [batch for batch in self.batches if not batch.succeeded]


class StageFailure(RuntimeError):
    """A stage raised; earlier stages' writes are left in place."""

    def __init__(self, step: str, results: List[StepResult], cause: BaseException):
        super().__init__(f"stage '{step}' failed: {cause}")
        self.step = step
        self.results = results
