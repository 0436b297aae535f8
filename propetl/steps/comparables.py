"""
Comparable-sales graph over canonical properties.

Peers are same ZIP + same property type; up to five are sampled per
subject with no distance weighting.  Similarity and the three adjustment
fractions are placeholders drawn from the run RNG within fixed ranges.
Write errors here are fatal for the run.
"""

from __future__ import annotations

import random
from collections import defaultdict
from typing import Any, Iterator, Sequence

from loguru import logger
from sqlalchemy import select

from opendata.batches import write_batches
from opendata.models import Comparable, Property

from propetl import config
from propetl.state import RunContext, StepResult
from propetl.steps.base import timed_step

STEP_NAME = "comparables"


def group_peers(props: Sequence[Any]) -> dict[tuple[str, str], list[Any]]:
    groups: dict[tuple[str, str], list[Any]] = defaultdict(list)
    for prop in props:
        groups[(prop.zip_code, prop.property_type)].append(prop)
    return groups


def adjusted_price(peer_price_per_sqft: float | None, rng: random.Random) -> int:
    price_per_sqft = min(peer_price_per_sqft or config.DEFAULT_PRICE_PER_SQFT, config.COMP_MAX_PRICE_PER_SQFT)
    jitter = 1 + (rng.random() - 0.5) * 0.1
    return min(config.COMP_MAX_ADJUSTED_PRICE, round(price_per_sqft * config.COMP_AVERAGE_SQFT * jitter))


def build_comp(subject: Any, peer: Any, rng: random.Random) -> dict[str, Any]:
    return {
        "subject_property_id": subject.id,
        "comp_property_id": peer.id,
        "similarity_score": 0.7 + rng.random() * 0.25,
        "sqft_adjustment": -0.1 + rng.random() * 0.2,
        "age_adjustment": -0.05 + rng.random() * 0.1,
        "beds_adjustment": -0.05 + rng.random() * 0.1,
        "adjusted_price": adjusted_price(peer.price_per_sqft, rng),
    }


def generate_comps(
    props: Sequence[Any],
    rng: random.Random,
    groups: dict[tuple[str, str], list[Any]] | None = None,
) -> Iterator[dict[str, Any]]:
    """Yield comp rows subject by subject so callers can write them in batches."""
    groups = group_peers(props) if groups is None else groups
    for subject in props:
        peers = [p for p in groups[(subject.zip_code, subject.property_type)] if p.id != subject.id]
        count = min(len(peers), config.MAX_COMPS_PER_PROPERTY)
        for peer in rng.sample(peers, count):
            yield build_comp(subject, peer, rng)


def run(context: RunContext) -> StepResult:
    with timed_step(STEP_NAME) as elapsed_ms:
        with context.session_factory() as session:
            props = session.execute(
                select(
                    Property.id,
                    Property.zip_code,
                    Property.property_type,
                    Property.price_per_sqft,
                ).order_by(Property.id)
            ).all()
        logger.info(f"Found {len(props)} properties")

        groups = group_peers(props)
        outcomes = write_batches(
            context.session_factory,
            Comparable,
            generate_comps(props, context.rng, groups),
            batch_size=config.COMPS_BATCH_SIZE,
            label="comps",
            tolerate_errors=False,
        )
        created = sum(o.written for o in outcomes)
        context.counts["comps"] = created
        logger.info(f"Created {created} comparable relationships")

        with_peers = sum(1 for p in props if len(groups[(p.zip_code, p.property_type)]) > 1)

        return StepResult(
            step=STEP_NAME,
            duration_ms=elapsed_ms(),
            processed=len(props),
            succeeded=created,
            skipped=len(props) - with_peers,
            batches=outcomes,
            artifacts={"subjects_with_comps": with_peers},
        )
