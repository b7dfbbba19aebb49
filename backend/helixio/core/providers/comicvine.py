"""ComicVine metadata provider: rate-limited httpx client plus payload normalization."""

from __future__ import annotations

import asyncio
import random
from typing import Any

import httpx
import structlog

from .base import MetadataProvider
from .models import (
    AvailabilityResult,
    Credit,
    IssueListResult,
    IssueMetadata,
    SearchQuery,
    SeriesMetadata,
    SeriesSearchResult,
)
from .rate_limit import RateLimiter

logger = structlog.get_logger("helixio.providers.comicvine")

DEFAULT_BASE_URL = "https://comicvine.gamespot.com/api"
USER_AGENT = "Helixio/0.1"

VOLUME_FIELDS = (
    "id,name,aliases,description,count_of_issues,start_year,publisher,"
    "site_detail_url,people,characters"
)
ISSUE_FIELDS = "id,name,issue_number,cover_date,store_date,description,volume,person_credits"


def _parse_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _split_aliases(value: str | None) -> list[str]:
    if not value:
        return []
    return [alias.strip() for alias in value.split("\n") if alias.strip()]


def _credits(entries: list[dict[str, Any]] | None) -> list[Credit]:
    if not entries:
        return []
    return [
        Credit(id=entry.get("id"), name=entry["name"], count=_parse_int(entry.get("count")))
        for entry in entries
        if entry.get("name")
    ]


def volume_to_series(volume: dict[str, Any]) -> SeriesMetadata:
    """Normalize a ComicVine volume payload into SeriesMetadata."""
    publisher = volume.get("publisher") or {}
    return SeriesMetadata(
        source="comicvine",
        source_id=str(volume["id"]),
        name=volume.get("name") or "",
        publisher=publisher.get("name"),
        start_year=_parse_int(volume.get("start_year")),
        issue_count=_parse_int(volume.get("count_of_issues")),
        description=volume.get("description"),
        url=volume.get("site_detail_url"),
        aliases=_split_aliases(volume.get("aliases")),
        creators=_credits(volume.get("people")),
        characters=_credits(volume.get("characters")),
    )


def issue_to_metadata(issue: dict[str, Any]) -> IssueMetadata:
    """Normalize a ComicVine issue payload into IssueMetadata."""
    volume = issue.get("volume") or {}
    people = issue.get("person_credits") or []

    def _role(role: str) -> str | None:
        names = [p["name"] for p in people if role in (p.get("role") or "").lower()]
        return ", ".join(names) or None

    return IssueMetadata(
        source="comicvine",
        source_id=str(issue["id"]),
        series_id=str(volume.get("id", "")),
        series_name=volume.get("name") or "",
        number=issue.get("issue_number"),
        title=issue.get("name"),
        cover_date=issue.get("cover_date"),
        store_date=issue.get("store_date"),
        description=issue.get("description"),
        writer=_role("writer"),
        penciller=_role("penciler") or _role("penciller"),
    )


class ComicVineProvider(MetadataProvider):
    """MetadataProvider backed by the ComicVine REST API.

    Features:
    - Sliding-window rate limiting through an injected RateLimiter
    - Exponential backoff retry on rate limit errors (HTTP 420, 429)
    - Retry on network errors
    """

    name = "comicvine"
    display_name = "ComicVine"

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        rate_limiter: RateLimiter | None = None,
        max_retries: int = 3,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__()
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.rate_limiter = rate_limiter or RateLimiter(max_requests=40, period=60, min_gap=1.0)
        self.max_retries = max_retries
        self.timeout = timeout
        self._transport = transport

    async def fetch(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        """Fetch one ComicVine endpoint with rate limiting and retry.

        Raises:
            httpx.HTTPStatusError: For HTTP errors (after retries)
            httpx.RequestError: For network errors (after retries)
        """
        url = f"{self.base_url}/{endpoint.strip('/')}/"
        request_params = {"format": "json", **params, "api_key": self.api_key}

        for attempt in range(self.max_retries + 1):
            await self.rate_limiter.acquire()
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.get(
                        url,
                        params=request_params,
                        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
                    )
                    response.raise_for_status()
                    self.rate_limiter.record_success()
                    return response.json()

            except httpx.HTTPStatusError as e:
                self.rate_limiter.record_error()
                if e.response.status_code in (420, 429) and attempt < self.max_retries:
                    base_wait = 2**attempt
                    wait_time = base_wait + random.uniform(0, base_wait * 0.5)
                    logger.warning(
                        "Rate limited by ComicVine, retrying",
                        status_code=e.response.status_code,
                        attempt=attempt + 1,
                        wait_seconds=round(wait_time, 2),
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise

            except httpx.RequestError as e:
                self.rate_limiter.record_error()
                if attempt < self.max_retries:
                    wait_time = 2**attempt
                    logger.warning(
                        "Network error, retrying",
                        error=str(e),
                        attempt=attempt + 1,
                        wait_seconds=wait_time,
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise

        raise RuntimeError("Unexpected error in ComicVine provider")

    async def check_availability(self) -> AvailabilityResult:
        if not self.api_key:
            return AvailabilityResult(available=False, configured=False, error="API key not configured")
        try:
            await self.fetch("search", {"query": "test", "resources": "volume", "limit": 1})
        except (httpx.HTTPError, ValueError) as e:
            return AvailabilityResult(available=False, configured=True, error=str(e))
        return AvailabilityResult(available=True, configured=True)

    async def search_series(
        self,
        query: SearchQuery,
        limit: int = 10,
        session_id: str | None = None,
    ) -> SeriesSearchResult:
        if not query.series:
            return SeriesSearchResult()

        logger.debug("Searching ComicVine volumes", series=query.series, session_id=session_id)
        data = await self.fetch(
            "volumes",
            {
                "filter": f"name:{query.series}",
                "limit": limit,
                "sort": "count_of_issues:desc",
                "field_list": VOLUME_FIELDS,
            },
        )
        results = [volume_to_series(v) for v in data.get("results") or []]
        total = _parse_int(data.get("number_of_total_results")) or len(results)
        return SeriesSearchResult(results=results, total=total, has_more=total > len(results))

    async def get_series_issues(
        self,
        source_id: str,
        limit: int = 200,
        session_id: str | None = None,
    ) -> IssueListResult:
        logger.debug("Listing ComicVine issues", volume_id=source_id, session_id=session_id)
        # ComicVine caps page size at 100
        issues: list[IssueMetadata] = []
        total = 0
        offset = 0
        while len(issues) < limit:
            page_size = min(100, limit - len(issues))
            data = await self.fetch(
                "issues",
                {
                    "filter": f"volume:{source_id}",
                    "sort": "issue_number:asc",
                    "limit": page_size,
                    "offset": offset,
                    "field_list": ISSUE_FIELDS,
                },
            )
            page = data.get("results") or []
            total = _parse_int(data.get("number_of_total_results")) or 0
            issues.extend(issue_to_metadata(i) for i in page)
            offset += len(page)
            if not page or offset >= total:
                break

        return IssueListResult(results=issues, total=total or len(issues), has_more=total > len(issues))
