from __future__ import annotations

import random
from collections import Counter
from types import SimpleNamespace
from typing import Any, Iterator

from sqlalchemy import select

from opendata.models import Comparable, Property
from propetl import config
from propetl.runner import build_context
from propetl.steps import comparables


def _prop(pid: str, zip_code: str = "10001", property_type: str = "SFH", ppsf: float | None = 500) -> SimpleNamespace:
    return SimpleNamespace(id=pid, zip_code=zip_code, property_type=property_type, price_per_sqft=ppsf)


def test_generate_comps_caps_peers_and_never_self_matches() -> None:
    props = [_prop(f"p{i}") for i in range(8)]

    comps = list(comparables.generate_comps(props, random.Random(5)))

    per_subject = Counter(c["subject_property_id"] for c in comps)
    assert set(per_subject.values()) == {5}
    for comp in comps:
        assert comp["subject_property_id"] != comp["comp_property_id"]


def test_generate_comps_only_pairs_same_zip_and_type() -> None:
    props = [
        _prop("a", "10001", "SFH"),
        _prop("b", "10001", "SFH"),
        _prop("c", "10001", "Condo"),
        _prop("d", "11201", "SFH"),
    ]

    comps = list(comparables.generate_comps(props, random.Random(5)))

    pairs = {(c["subject_property_id"], c["comp_property_id"]) for c in comps}
    assert pairs == {("a", "b"), ("b", "a")}


def test_build_comp_values_stay_in_placeholder_ranges() -> None:
    rng = random.Random(9)
    for _ in range(200):
        comp = comparables.build_comp(_prop("s"), _prop("p", ppsf=50_000), rng)
        assert 0.7 <= comp["similarity_score"] <= 0.95
        assert -0.1 <= comp["sqft_adjustment"] <= 0.1
        assert -0.05 <= comp["age_adjustment"] <= 0.05
        assert -0.05 <= comp["beds_adjustment"] <= 0.05
        # Peer price per sqft is clamped before adjustment
        assert comp["adjusted_price"] <= round(10_000 * 1500 * 1.05)


def test_adjusted_price_defaults_missing_peer_price() -> None:
    price = comparables.adjusted_price(None, random.Random(1))

    assert round(400 * 1500 * 0.95) <= price <= round(400 * 1500 * 1.05)


def test_generate_comps_is_repeatable_for_a_seed() -> None:
    props = [_prop(f"p{i}") for i in range(7)]

    first = list(comparables.generate_comps(props, random.Random(42)))
    second = list(comparables.generate_comps(props, random.Random(42)))

    assert first == second


def test_run_writes_comps_for_properties_with_peers(session_factory: Any, fake_fetcher: Any) -> None:
    with session_factory() as session:
        for bbl, zip_code in (("1000010001", "10001"), ("1000010002", "10001"), ("1000010003", "10002")):
            session.add(
                Property(
                    bbl=bbl,
                    address="x",
                    city="Manhattan",
                    state="NY",
                    zip_code=zip_code,
                    property_type="SFH",
                    price_per_sqft=400,
                )
            )
        session.commit()
    context = build_context(session_factory=session_factory, fetcher=fake_fetcher, seed=3)

    result = comparables.run(context)

    with session_factory() as session:
        rows = session.execute(select(Comparable)).scalars().all()
    assert len(rows) == 2
    assert Counter(r.subject_property_id for r in rows).most_common(1)[0][1] == 1
    assert result.succeeded == 2
    assert result.skipped == 1
    assert context.counts["comps"] == 2


def test_generate_comps_yields_lazily() -> None:
    props = [_prop(f"p{i}") for i in range(3)]

    comps = comparables.generate_comps(props, random.Random(1))

    assert isinstance(comps, Iterator)
    assert next(comps)["subject_property_id"] == "p0"


def test_run_writes_each_batch_before_generating_the_next(
    session_factory: Any, fake_fetcher: Any, monkeypatch: Any
) -> None:
    with session_factory() as session:
        for i in range(4):
            session.add(
                Property(
                    bbl=f"100001000{i}",
                    address="x",
                    city="Manhattan",
                    state="NY",
                    zip_code="10001",
                    property_type="SFH",
                )
            )
        session.commit()

    stored_when_built: list[int] = []
    build_comp = comparables.build_comp

    def _counting_build(subject: Any, peer: Any, rng: random.Random) -> dict[str, Any]:
        with session_factory() as session:
            stored_when_built.append(len(session.execute(select(Comparable.id)).all()))
        return build_comp(subject, peer, rng)

    monkeypatch.setattr(config, "COMPS_BATCH_SIZE", 2)
    monkeypatch.setattr(comparables, "build_comp", _counting_build)
    context = build_context(session_factory=session_factory, fetcher=fake_fetcher, seed=3)

    result = comparables.run(context)

    assert result.succeeded == 12
    assert len(result.batches) == 6
    assert stored_when_built == [0, 0, 2, 2, 4, 4, 6, 6, 8, 8, 10, 10]
