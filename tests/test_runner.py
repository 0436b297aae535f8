from __future__ import annotations

from typing import Any

import pytest
from sqlalchemy import func, select

from opendata.models import (
    Comparable,
    DataSource,
    PlutoRaw,
    Property,
    PropertyCompliance,
    PropertyTransaction,
    PropertyValuation,
)
from opendata.sources import ACRIS, HPD, HPD_VIOLATIONS_URL, PLUTO, VALUATIONS
from propetl import steps
from propetl.runner import build_context, run_full_import, step_sequence
from propetl.state import StageFailure

PLUTO_RECORDS = [
    {"bbl": "1001230045.00000000", "borough": "MN", "block": "123", "lot": "45", "zipcode": "10001", "bldgclass": "A1", "assesstot": "100000", "resarea": "1000"},
    {"borough": "MN", "block": "123", "lot": "46", "zipcode": "10001", "bldgclass": "A5"},
    {"borough": "BK", "block": "1", "lot": "1", "zipcode": "11201", "bldgclass": "D1", "unitsres": "40"},
    {"zipcode": "10001"},
]
VALUATION_RECORDS = [
    {"boro": "1", "block": "123", "lot": "45", "curavl_tot": "120000", "year": "2024"},
    {"boro": "4", "block": "9", "lot": "9", "curavl_tot": "5"},
]
ACRIS_RECORDS = [
    {"document_id": "D1", "borough": "1", "block": "123", "lot": "45", "doc_type": "DEED", "recorded_datetime": "2024-05-01T00:00:00.000", "document_amt": "1000000"},
    {"document_id": "D2", "borough": "3", "block": "1", "lot": "1", "doc_type": "MTGE", "document_date": "2023-01-15T00:00:00.000"},
    {"borough": "1", "block": "123", "lot": "45", "doc_type": "DEED"},
]
HPD_RECORDS = [
    {"buildingid": "500", "boroid": "1", "block": "123", "lot": "46", "registrationenddate": "2026-01-01T00:00:00.000"},
]
VIOLATION_RECORDS = [
    {"buildingid": "500", "violationstatus": "Open"},
    {"buildingid": "500", "violationstatus": "Close"},
]


UPSTREAM = {
    PLUTO.url: PLUTO_RECORDS,
    VALUATIONS.url: VALUATION_RECORDS,
    ACRIS.url: ACRIS_RECORDS,
    HPD.url: HPD_RECORDS,
    HPD_VIOLATIONS_URL: VIOLATION_RECORDS,
}


@pytest.fixture()
def upstream(fake_fetcher: Any) -> Any:
    fake_fetcher.records_by_url.update(UPSTREAM)
    return fake_fetcher


def _context(session_factory: Any, fetcher: Any, **overrides: Any):
    options = {
        "parcel_limit": 100,
        "valuation_limit": 100,
        "transaction_limit": 100,
        "compliance_limit": 100,
        "violation_limit": 100,
        "seed": 7,
        "run_id": "test-run",
    }
    options.update(overrides)
    return build_context(session_factory=session_factory, fetcher=fetcher, **options)


def _count(session_factory: Any, model: type) -> int:
    with session_factory() as session:
        return session.execute(select(func.count()).select_from(model)).scalar_one()


def test_step_sequence_orders_stages(session_factory: Any, upstream: Any) -> None:
    names = [module.STEP_NAME for module in step_sequence(_context(session_factory, upstream))]

    assert names == [
        "reset",
        "ingest_pluto",
        "ingest_valuations",
        "ingest_acris",
        "ingest_hpd",
        "normalize",
        "enrich",
        "comparables",
        "catalog",
    ]


def test_full_import_end_to_end(session_factory: Any, upstream: Any) -> None:
    report = run_full_import(_context(session_factory, upstream))

    assert report.run_id == "test-run"
    assert report.failed_batches == []
    assert report.counts["pluto_records"] == 3
    assert report.counts["properties"] == 3
    assert report.counts["linked_valuations"] == 1
    assert report.counts["linked_transactions"] == 2
    assert report.counts["linked_compliance"] == 1
    # Two SFH lots share 10001; the Brooklyn lot has no peer
    assert report.counts["comps"] == 2

    with session_factory() as session:
        compliance = session.execute(select(PropertyCompliance)).scalar_one()
        catalog_names = set(session.execute(select(DataSource.name)).scalars())
    assert compliance.bbl == "1001230046"
    assert compliance.open_violations == 1
    assert compliance.total_violations == 2
    assert catalog_names == {source.catalog_name for source in (PLUTO, VALUATIONS, ACRIS, HPD)}


def test_fetch_limits_are_passed_per_source(session_factory: Any, upstream: Any) -> None:
    run_full_import(_context(session_factory, upstream, parcel_limit=2, violation_limit=0))

    limits = {url: limit for url, _query, limit in upstream.calls}
    assert limits[PLUTO.url] == 2
    assert limits[ACRIS.url] == 100
    assert HPD_VIOLATIONS_URL not in limits


def test_rerun_is_a_full_reset(session_factory: Any, upstream: Any) -> None:
    tables = (PlutoRaw, Property, PropertyValuation, PropertyTransaction, Comparable, DataSource)
    run_full_import(_context(session_factory, upstream))
    first = {model: _count(session_factory, model) for model in tables}

    report = run_full_import(_context(session_factory, upstream, seed=8))
    second = {model: _count(session_factory, model) for model in tables}

    assert first == second
    catalog = next(r for r in report.results if r.step == "catalog")
    # Existing catalog entries are left as they were
    assert catalog.succeeded == 0
    assert catalog.skipped == 4


def test_empty_upstream_still_completes(session_factory: Any, fake_fetcher: Any) -> None:
    report = run_full_import(_context(session_factory, fake_fetcher))

    assert report.counts["properties"] == 0
    assert report.counts["comps"] == 0
    assert _count(session_factory, DataSource) == 4


def test_stage_failure_keeps_earlier_results(session_factory: Any, upstream: Any, monkeypatch: Any) -> None:
    def _boom(context: Any) -> Any:
        raise RuntimeError("enrich exploded")

    monkeypatch.setattr(steps.enrich, "run", _boom)

    with pytest.raises(StageFailure) as exc:
        run_full_import(_context(session_factory, upstream))

    assert exc.value.step == "enrich"
    assert [r.step for r in exc.value.results][-1] == "normalize"
    assert isinstance(exc.value.__cause__, RuntimeError)
    # Normalize had already committed
    assert _count(session_factory, Property) == 3
    assert _count(session_factory, PropertyValuation) == 0


def test_duplicate_parcels_yield_two_properties_with_one_comp_each(
    session_factory: Any, fake_fetcher: Any
) -> None:
    fake_fetcher.records_by_url[PLUTO.url] = [
        {"bbl": "1001230001", "zipcode": "10001", "bldgclass": "A1"},
        {"bbl": "1001230002", "zipcode": "10001", "bldgclass": "A1"},
        {"bbl": "1001230001", "zipcode": "10001", "bldgclass": "A1"},
    ]

    report = run_full_import(_context(session_factory, fake_fetcher))

    assert report.counts["pluto_records"] == 3
    assert report.counts["properties"] == 2
    with session_factory() as session:
        subjects = list(session.execute(select(Comparable.subject_property_id)).scalars())
        pairs = session.execute(select(Comparable.subject_property_id, Comparable.comp_property_id)).all()
    assert len(subjects) == len(set(subjects)) == 2
    assert all(subject != comp for subject, comp in pairs)
