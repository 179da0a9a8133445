"""
Async client for the Gripp JSON-RPC API.

Every request goes through the rate limiter and the retry policy. Pages are
fetched with ``fetch_page``; ``fetch_all`` walks a whole collection and
tolerates individual page failures up to a ceiling.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from gripp_mirror.config import Settings
from gripp_mirror.errors import (
    NetworkError,
    RateLimitError,
    UpstreamError,
    UpstreamTimeoutError,
)
from gripp_mirror.upstream.rate_limiter import RateLimiter
from gripp_mirror.upstream.responses import normalize_response
from gripp_mirror.upstream.retry import RetryPolicy

logger = logging.getLogger(__name__)


class Filter:
    """Builders for Gripp filter clauses."""

    @staticmethod
    def equals(field_name: str, value: Any) -> dict[str, Any]:
        return {"field": field_name, "operator": "equals", "value": value}

    @staticmethod
    def greater_equals(field_name: str, value: Any) -> dict[str, Any]:
        return {"field": field_name, "operator": "greaterequals", "value": value}

    @staticmethod
    def between(field_name: str, start: Any, end: Any) -> dict[str, Any]:
        return {"field": field_name, "operator": "between", "value": start, "value2": end}

    @staticmethod
    def in_(field_name: str, values: list[Any]) -> dict[str, Any]:
        return {"field": field_name, "operator": "in", "value": list(values)}


@dataclass
class PageSet:
    """Concatenated rows of a multi-page fetch."""

    rows: list[dict] = field(default_factory=list)
    pages: int = 0
    failed_pages: list[int] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        """True when no page was skipped."""
        return not self.failed_pages


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class UpstreamClient:
    """
    Async client for the Gripp API.

    Authenticates with a bearer API token and sends one JSON-RPC call per
    HTTP request.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        """
        Initialize the client.

        Args:
            settings: Application settings
            http_client: Optional pre-built httpx client (tests pass one
                with a MockTransport)
            retry_policy: Retry policy, built from settings when omitted
            rate_limiter: Rate limiter, built from settings when omitted
        """
        self.settings = settings
        self._http_client = http_client
        self.retry_policy = retry_policy or RetryPolicy.from_settings(settings)
        self.rate_limiter = rate_limiter or RateLimiter(
            settings.upstream_rate_limit_requests,
            settings.upstream_rate_limit_window,
        )
        self._ids = itertools.count(1)

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the authenticated HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.settings.upstream_timeout)
        return self._http_client

    @property
    def headers(self) -> dict[str, str]:
        token = self.settings.upstream_api_key.get_secret_value()
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def close(self):
        """Close the HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    def build_call(
        self,
        method: str,
        filters: list[dict],
        first_result: int,
        page_size: int,
        orderings: Optional[list[dict]] = None,
    ) -> list[dict[str, Any]]:
        """Build the JSON-RPC batch body for one paged call."""
        options: dict[str, Any] = {
            "paging": {"firstresult": first_result, "maxresults": page_size},
        }
        if orderings:
            options["orderings"] = orderings
        return [{"method": method, "params": [filters, options], "id": next(self._ids)}]

    async def _send(self, body: list[dict[str, Any]]) -> list[dict]:
        """Send one call and return its rows, mapping failures to typed errors."""
        client = await self._get_http_client()
        await self.rate_limiter.acquire()

        try:
            response = await client.post(
                self.settings.upstream_url, json=body, headers=self.headers
            )
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"Request timed out: {e}") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Network error: {e}") from e

        if response.status_code == 429:
            raise RateLimitError(retry_after=_retry_after(response))
        if response.status_code >= 500:
            raise NetworkError(f"Upstream returned HTTP {response.status_code}")
        if response.status_code >= 400:
            raise UpstreamError(
                f"Upstream returned HTTP {response.status_code}",
                code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError("Upstream returned a non-JSON body") from e

        result = normalize_response(payload)
        if not result.is_success:
            if result.error_code == 429:
                raise RateLimitError(result.error_message or "Rate limit exceeded")
            raise UpstreamError(
                result.error_message or "Unknown API error",
                code=result.error_code,
            )
        return result.rows

    async def _send_with_deadline(
        self, body: list[dict[str, Any]], deadline: Optional[float]
    ) -> list[dict]:
        if deadline is None:
            return await self._send(body)
        try:
            return await asyncio.wait_for(self._send(body), timeout=deadline)
        except asyncio.TimeoutError as e:
            raise UpstreamTimeoutError(f"Deadline of {deadline}s exceeded") from e

    async def fetch_page(
        self,
        method: str,
        filters: list[dict],
        first_result: int,
        page_size: int,
        *,
        orderings: Optional[list[dict]] = None,
        deadline: Optional[float] = None,
    ) -> list[dict]:
        """
        Fetch one page of a collection.

        Args:
            method: Gripp method, e.g. "employee.get"
            filters: Filter clauses (see Filter)
            first_result: Offset of the first row
            page_size: Maximum rows to return
            orderings: Optional ordering clauses
            deadline: Optional per-attempt deadline in seconds

        Returns:
            list: Rows of the page

        Raises:
            NetworkError: Transient failure that survived every retry
            UpstreamError: Structured error from the upstream
        """
        body = self.build_call(method, filters, first_result, page_size, orderings)
        logger.debug(f"Upstream {method}: firstresult={first_result} maxresults={page_size}")
        return await self.retry_policy.call(self._send_with_deadline, body, deadline)

    async def fetch_all(
        self,
        method: str,
        filters: list[dict],
        *,
        orderings: Optional[list[dict]] = None,
        page_size: Optional[int] = None,
        deadline: Optional[float] = None,
    ) -> PageSet:
        """
        Fetch every page of a collection.

        Paging stops at the first page shorter than the page size. A failed
        page is recorded and skipped; too many consecutive failures abort.

        Args:
            method: Gripp method, e.g. "hour.get"
            filters: Filter clauses
            orderings: Optional ordering clauses (defaults to id ascending)
            page_size: Rows per page (defaults to the configured size)
            deadline: Optional per-attempt deadline in seconds for every page

        Returns:
            PageSet: All rows plus the offsets of skipped pages

        Raises:
            NetworkError or UpstreamError: After too many consecutive page failures
        """
        size = page_size or self.settings.upstream_page_size
        order = orderings or [{"field": f"{method.split('.')[0]}.id", "direction": "asc"}]
        result = PageSet()
        offset = 0
        consecutive_failures = 0

        while True:
            try:
                rows = await self.fetch_page(
                    method, filters, offset, size, orderings=order, deadline=deadline
                )
            except (NetworkError, UpstreamError) as e:
                consecutive_failures += 1
                result.failed_pages.append(offset)
                logger.error(
                    f"Page at offset {offset} of {method} failed "
                    f"({consecutive_failures} in a row): {e}"
                )
                if consecutive_failures >= self.settings.upstream_max_page_failures:
                    raise
                offset += size
                continue

            consecutive_failures = 0
            result.pages += 1
            result.rows.extend(rows)
            if len(rows) < size:
                break
            offset += size

        logger.info(
            f"Fetched {len(result.rows)} rows of {method} in {result.pages} page(s), "
            f"{len(result.failed_pages)} failed"
        )
        return result
