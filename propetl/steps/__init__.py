"""Step registry for the property ETL pipeline."""

from importlib import import_module
from typing import Protocol

from propetl.state import RunContext, StepResult


class StepModule(Protocol):
    STEP_NAME: str

    def run(self, context: RunContext) -> StepResult: ...


reset = import_module("propetl.steps.reset")
normalize = import_module("propetl.steps.normalize")
enrich = import_module("propetl.steps.enrich")
comparables = import_module("propetl.steps.comparables")
catalog = import_module("propetl.steps.catalog")

from propetl.steps.ingest import IngestStep  # noqa: E402

__all__ = [
    "StepModule",
    "IngestStep",
    "reset",
    "normalize",
    "enrich",
    "comparables",
    "catalog",
]
