"""
Product catalog search client.

Wraps the provider's product-search endpoint with the two protections the
provider requires: bounded retries with linear backoff, and a minimum pause
after every call. Pauses are spent through an injectable Clock so tests can
run the retry schedule without real delays.

Search never raises for transport or HTTP status problems. Exhausted retries
come back as a FetchFailed value; callers skip the set and move on.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Literal, Protocol

import httpx

from catalogsync.config import Settings
from catalogsync.models.catalog import ExternalProduct

logger = logging.getLogger(__name__)

QueryFormat = Literal["phrase", "dashed"]

# Query string parameter names used by the provider
QUERY_PARAM = "q"
AUTH_PARAM = "t"
PLATFORM_PARAM = "platform"


class Clock(Protocol):
    """Spends the pauses required by rate limiting and backoff."""

    async def sleep(self, seconds: float) -> None: ...


class AsyncioClock:
    """Real clock backed by asyncio.sleep."""

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)


@dataclass(frozen=True, slots=True)
class FetchSucceeded:
    """Products returned for one search."""

    query: str
    products: list[ExternalProduct] = field(default_factory=list)
    attempts: int = 1


@dataclass(frozen=True, slots=True)
class FetchFailed:
    """Every attempt of one search failed."""

    query: str
    attempts: int
    reason: str


FetchResult = FetchSucceeded | FetchFailed


def build_query(set_name: str, query_format: QueryFormat = "phrase") -> str:
    """
    Build the search string for a set name.

    Both historical formats are accepted by the provider:
        phrase: "1992 SkyBox Marvel Masterpieces" (literal, trimmed)
        dashed: "1992-skybox-marvel-masterpieces"

    Raises:
        ValueError: If query_format is unknown
    """
    if query_format == "phrase":
        return " ".join(set_name.split())
    if query_format == "dashed":
        dashed = re.sub(r"\s+", "-", set_name.strip().lower())
        dashed = re.sub(r"[^a-z0-9-]", "", dashed)
        return re.sub(r"-+", "-", dashed).strip("-")
    raise ValueError(f"Invalid query format: {query_format}. Must be 'phrase' or 'dashed'")


def build_http_client(config: Settings) -> httpx.AsyncClient:
    """
    Shared HTTP client for catalog searches.

    Redirects are followed so a moved endpoint is not mistaken for a failed
    attempt.
    """
    return httpx.AsyncClient(
        headers={"User-Agent": f"{config.app_name}/1.0"},
        follow_redirects=True,
        timeout=config.request_timeout_seconds,
    )


def parse_search_response(payload: object) -> list[ExternalProduct]:
    """
    Extract products from a search response body.

    Raises:
        ValueError: If the body is not a search response
    """
    if not isinstance(payload, dict):
        raise ValueError("Search response is not a JSON object")
    if payload.get("status") not in (None, "success"):
        raise ValueError(f"Provider returned status {payload.get('status')!r}")

    products = payload.get("products") or []
    if not isinstance(products, list):
        raise ValueError("Search response 'products' is not a list")

    return [ExternalProduct.from_api(item) for item in products if isinstance(item, dict)]


class CatalogSearchClient:
    """
    Rate-limited, retrying product search.

    Args:
        http: Shared async HTTP client
        endpoint: Search URL
        api_token: Provider token, sent as a query parameter
        platform: Provider category filter ("" to omit)
        query_format: Which query string format to send
        request_delay: Seconds to pause after every search call
        max_attempts: Total attempts per search
        backoff_seconds: Base of the linear backoff (n x base after attempt n)
        clock: Time source for sleeps
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        endpoint: str,
        api_token: str,
        *,
        platform: str = "trading-card",
        query_format: QueryFormat = "phrase",
        request_delay: float = 2.0,
        max_attempts: int = 3,
        backoff_seconds: float = 5.0,
        clock: Clock | None = None,
    ) -> None:
        self.http = http
        self.endpoint = endpoint
        self.api_token = api_token
        self.platform = platform
        self.query_format = query_format
        self.request_delay = request_delay
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self.clock = clock or AsyncioClock()

    @classmethod
    def from_settings(
        cls,
        config: Settings,
        http: httpx.AsyncClient,
        *,
        clock: Clock | None = None,
        request_delay_ms: int | None = None,
        query_format: QueryFormat | None = None,
    ) -> "CatalogSearchClient":
        """Create a client from application settings, with optional overrides."""
        delay_ms = config.request_delay_ms if request_delay_ms is None else request_delay_ms
        return cls(
            http,
            config.catalog_search_url,
            config.catalog_api_token,
            platform=config.catalog_platform,
            query_format=query_format or config.query_format,
            request_delay=delay_ms / 1000.0,
            max_attempts=config.max_attempts,
            backoff_seconds=config.retry_backoff_seconds,
            clock=clock,
        )

    async def search(self, set_name: str) -> FetchResult:
        """
        Search the catalog for a set.

        Args:
            set_name: Internal set name

        Returns:
            FetchSucceeded with parsed products, or FetchFailed after the
            last attempt
        """
        query = build_query(set_name, self.query_format)
        try:
            return await self._search_with_retries(query)
        finally:
            await self.clock.sleep(self.request_delay)

    async def _search_with_retries(self, query: str) -> FetchResult:
        params = {QUERY_PARAM: query, AUTH_PARAM: self.api_token}
        if self.platform:
            params[PLATFORM_PARAM] = self.platform

        reason = "no attempt made"
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self.http.get(self.endpoint, params=params)
                response.raise_for_status()
                products = parse_search_response(response.json())
                logger.debug("Search %r returned %d products", query, len(products))
                return FetchSucceeded(query=query, products=products, attempts=attempt)
            except httpx.HTTPStatusError as e:
                reason = f"HTTP {e.response.status_code}"
            except httpx.RequestError as e:
                reason = f"{type(e).__name__}: {e}"
            except ValueError as e:
                # Covers undecodable JSON bodies as well as malformed payloads
                reason = f"Invalid response: {e}"

            logger.warning(
                "Search %r failed (attempt %d/%d): %s", query, attempt, self.max_attempts, reason
            )
            if attempt < self.max_attempts:
                await self.clock.sleep(attempt * self.backoff_seconds)

        return FetchFailed(query=query, attempts=self.max_attempts, reason=reason)
