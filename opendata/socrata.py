"""
Paginated reader for NYC Open Data (Socrata SODA) JSON endpoints.

Pages are requested with ``$limit``/``$offset`` on top of the caller's
``$where``/``$order`` parameters and pulled one after another with a fixed
delay in between to stay under upstream rate limits.  A failed page ends
the pull early: ``fetch_all`` keeps whatever it already has and reports the
stop reason instead of raising.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Callable

import requests
from loguru import logger

DEFAULT_PAGE_SIZE = 10_000
DEFAULT_PAGE_DELAY_SECONDS = 0.3
DEFAULT_TIMEOUT_SECONDS = 60
DEFAULT_USER_AGENT = "PropertyIntel-ETL/1.0"

STOP_LIMIT_REACHED = "limit_reached"
STOP_EMPTY_PAGE = "empty_page"
STOP_SHORT_PAGE = "short_page"
STOP_ERROR = "error"


class FetchError(RuntimeError):
    """A single page could not be fetched (transport error, non-2xx, bad JSON)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class FetchResult:
    url: str
    records: list[dict[str, Any]] = field(default_factory=list)
    pages: int = 0
    stop_reason: str = STOP_LIMIT_REACHED
    error: str | None = None

    @property
    def partial(self) -> bool:
        return self.stop_reason == STOP_ERROR


class SocrataClient:
    def __init__(
        self,
        session: requests.Session | None = None,
        page_delay: float = DEFAULT_PAGE_DELAY_SECONDS,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        app_token: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session = session or requests.Session()
        self.page_delay = page_delay
        self.timeout = timeout
        self._sleep = sleep
        self.headers = {"Accept": "application/json", "User-Agent": DEFAULT_USER_AGENT}
        if app_token:
            self.headers["X-App-Token"] = app_token

    def fetch_page(
        self,
        base_url: str,
        query: dict[str, Any] | None,
        offset: int,
        batch_size: int,
    ) -> list[dict[str, Any]]:
        params = dict(query or {})
        params["$limit"] = batch_size
        params["$offset"] = offset
        try:
            response = self.session.get(
                base_url, params=params, headers=self.headers, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise FetchError(f"request to {base_url} failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise FetchError(
                f"HTTP {response.status_code} from {base_url}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise FetchError(f"invalid JSON from {base_url}") from exc
        if not isinstance(data, list):
            return []
        return data

    def fetch_all(
        self,
        base_url: str,
        query: dict[str, Any] | None,
        total_limit: int,
        batch_size: int = DEFAULT_PAGE_SIZE,
    ) -> FetchResult:
        result = FetchResult(url=base_url)
        offset = 0

        while offset < total_limit:
            current_batch = min(batch_size, total_limit - offset)
            logger.debug(f"Fetching {base_url}: offset={offset}, limit={current_batch}")
            try:
                page = self.fetch_page(base_url, query, offset, current_batch)
            except FetchError as exc:
                logger.error(f"Fetch error at offset {offset}: {exc}")
                result.stop_reason = STOP_ERROR
                result.error = str(exc)
                return result

            if not page:
                logger.info(f"No more records at offset {offset}")
                result.stop_reason = STOP_EMPTY_PAGE
                return result

            result.records.extend(page)
            result.pages += 1
            logger.info(f"Fetched {len(page)}. Total: {len(result.records)}")

            if len(page) < current_batch:
                result.stop_reason = STOP_SHORT_PAGE
                return result

            offset += batch_size
            if offset < total_limit:
                self._sleep(self.page_delay)

        result.stop_reason = STOP_LIMIT_REACHED
        return result
