from __future__ import annotations

from typing import Any

import pytest
import requests

from opendata.socrata import FetchError, SocrataClient

URL = "https://data.example.test/resource/abcd-1234.json"


class _FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, bad_json: bool = False):
        self.status_code = status_code
        self._payload = payload
        self._bad_json = bad_json

    def json(self) -> Any:
        if self._bad_json:
            raise ValueError("Expecting value")
        return self._payload


class _FakeSession:
    def __init__(self, responses: list[Any]):
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def get(self, url: str, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": dict(params or {}), "headers": headers})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _rows(n: int, start: int = 0) -> list[dict[str, Any]]:
    return [{"bbl": str(1000000000 + start + i)} for i in range(n)]


def _client(responses: list[Any], sleeps: list[float] | None = None, **kwargs: Any) -> SocrataClient:
    recorder = sleeps if sleeps is not None else []
    return SocrataClient(session=_FakeSession(responses), sleep=recorder.append, **kwargs)


def test_fetch_page_adds_paging_to_query() -> None:
    client = _client([_FakeResponse(payload=_rows(2))])

    page = client.fetch_page(URL, {"$order": "bbl"}, offset=20, batch_size=10)

    assert len(page) == 2
    params = client.session.calls[0]["params"]
    assert params == {"$order": "bbl", "$limit": 10, "$offset": 20}


def test_fetch_page_raises_on_non_success_status() -> None:
    client = _client([_FakeResponse(status_code=503)])

    with pytest.raises(FetchError) as exc:
        client.fetch_page(URL, {}, offset=0, batch_size=10)

    assert exc.value.status_code == 503


def test_fetch_page_wraps_transport_errors() -> None:
    client = _client([requests.ConnectionError("reset by peer")])

    with pytest.raises(FetchError, match="reset by peer"):
        client.fetch_page(URL, {}, offset=0, batch_size=10)


def test_app_token_is_sent_as_header() -> None:
    client = _client([_FakeResponse(payload=[])], app_token="tok-123")

    client.fetch_page(URL, {}, offset=0, batch_size=1)

    assert client.session.calls[0]["headers"]["X-App-Token"] == "tok-123"


def test_fetch_all_stops_on_short_page_and_throttles_between_pages() -> None:
    sleeps: list[float] = []
    client = _client(
        [_FakeResponse(payload=_rows(3)), _FakeResponse(payload=_rows(1, start=3))],
        sleeps=sleeps,
        page_delay=0.3,
    )

    result = client.fetch_all(URL, {"$order": "bbl"}, total_limit=100, batch_size=3)

    assert len(result.records) == 4
    assert result.pages == 2
    assert result.stop_reason == "short_page"
    assert sleeps == [0.3]
    offsets = [call["params"]["$offset"] for call in client.session.calls]
    assert offsets == [0, 3]


def test_fetch_all_stops_on_empty_page() -> None:
    client = _client([_FakeResponse(payload=_rows(2)), _FakeResponse(payload=[])])

    result = client.fetch_all(URL, {}, total_limit=10, batch_size=2)

    assert len(result.records) == 2
    assert result.stop_reason == "empty_page"


def test_fetch_all_respects_total_limit() -> None:
    client = _client([_FakeResponse(payload=_rows(2)), _FakeResponse(payload=_rows(1, start=2))])

    result = client.fetch_all(URL, {}, total_limit=3, batch_size=2)

    assert len(result.records) == 3
    assert result.stop_reason == "limit_reached"
    # Last page only asks for what is left under the ceiling
    assert client.session.calls[1]["params"]["$limit"] == 1


def test_fetch_all_keeps_partial_results_when_a_page_fails() -> None:
    client = _client(
        [
            _FakeResponse(payload=_rows(2)),
            _FakeResponse(status_code=500),
            _FakeResponse(payload=_rows(2, start=4)),
        ]
    )

    result = client.fetch_all(URL, {}, total_limit=10, batch_size=2)

    assert len(result.records) == 2
    assert result.partial is True
    assert result.stop_reason == "error"
    assert "HTTP 500" in (result.error or "")
    # Third page never requested
    assert len(client.session.calls) == 2


def test_fetch_all_treats_invalid_json_as_error() -> None:
    client = _client([_FakeResponse(bad_json=True)])

    result = client.fetch_all(URL, {}, total_limit=10, batch_size=5)

    assert result.records == []
    assert result.stop_reason == "error"
