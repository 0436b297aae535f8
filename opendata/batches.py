from __future__ import annotations

from dataclasses import dataclass
from itertools import islice
from typing import Any
from typing import Iterable
from typing import Iterator

from loguru import logger
from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm import sessionmaker

from opendata.db import insert_ignore

DEFAULT_BATCH_SIZE = 500
DEFAULT_PROGRESS_EVERY = 10_000


@dataclass(slots=True)
class BatchOutcome:
    label: str
    index: int
    offset: int
    attempted: int
    written: int = 0
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def chunked(values: Iterable[Any], size: int) -> Iterator[list[Any]]:
    iterator = iter(values)
    while True:
        chunk = list(islice(iterator, size))
        if not chunk:
            return
        yield chunk


def summarize_outcomes(outcomes: list[BatchOutcome]) -> dict[str, int]:
    return {
        "batches": len(outcomes),
        "failed_batches": sum(1 for o in outcomes if not o.succeeded),
        "rows_attempted": sum(o.attempted for o in outcomes),
        "rows_written": sum(o.written for o in outcomes),
    }


def write_batches(
    session_factory: sessionmaker[Session],
    model: type,
    rows: Iterable[dict[str, Any]],
    batch_size: int = DEFAULT_BATCH_SIZE,
    label: str | None = None,
    ignore_conflicts: bool = False,
    tolerate_errors: bool = True,
    progress_every: int = DEFAULT_PROGRESS_EVERY,
) -> list[BatchOutcome]:
    """
    Insert ``rows`` into ``model`` one batch per transaction.

    ``rows`` may be a generator; only one batch is held in memory at a time.

    A batch that fails is rolled back and recorded as a failed outcome;
    the remaining batches still run.  With ``tolerate_errors=False`` the
    first failure propagates instead.
    """
    label = label or model.__tablename__
    outcomes: list[BatchOutcome] = []
    written_total = 0

    for index, chunk in enumerate(chunked(rows, batch_size)):
        offset = index * batch_size
        outcome = BatchOutcome(label=label, index=index, offset=offset, attempted=len(chunk))
        with session_factory() as session:
            try:
                if ignore_conflicts:
                    stmt = insert_ignore(session, model, chunk)
                else:
                    stmt = insert(model).values(chunk)
                result = session.execute(stmt)
                session.commit()
                outcome.written = result.rowcount if result.rowcount >= 0 else len(chunk)
            except SQLAlchemyError as exc:
                session.rollback()
                if not tolerate_errors:
                    raise
                outcome.error = f"{type(exc).__name__}: {exc}".splitlines()[0]
                logger.error(f"Error inserting {label} batch at {offset}: {outcome.error}")
        outcomes.append(outcome)
        written_total += outcome.written

        processed = offset + len(chunk)
        if progress_every and processed // progress_every > offset // progress_every:
            logger.info(f"Imported {written_total} {label} records...")

    return outcomes
