from __future__ import annotations

from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from opendata.models import Base
from opendata.socrata import FetchResult


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    finally:
        engine.dispose()


class FakeFetcher:
    """Stands in for SocrataClient.fetch_all; serves canned records per URL."""

    def __init__(self, records_by_url: dict[str, list[dict[str, Any]]] | None = None):
        self.records_by_url = records_by_url or {}
        self.calls: list[tuple[str, dict[str, Any], int]] = []

    def fetch_all(
        self,
        base_url: str,
        query: dict[str, Any] | None,
        total_limit: int,
        batch_size: int = 10_000,
    ) -> FetchResult:
        self.calls.append((base_url, dict(query or {}), total_limit))
        records = list(self.records_by_url.get(base_url, []))[:total_limit]
        return FetchResult(url=base_url, records=records, pages=1 if records else 0, stop_reason="short_page")


@pytest.fixture()
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()
