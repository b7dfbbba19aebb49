"""Base abstract class for metadata providers."""

from __future__ import annotations

from abc import ABC, abstractmethod

import structlog

from .models import (
    AvailabilityResult,
    IssueListResult,
    MetadataSource,
    SearchQuery,
    SeriesSearchResult,
)


class MetadataProvider(ABC):
    """Abstract base class for metadata sources consumed by the matcher.

    Any source implementing this interface can be registered in the
    ProviderRegistry and searched by the cross-source matcher.
    """

    name: MetadataSource
    display_name: str

    def __init__(self) -> None:
        self.logger = structlog.get_logger(f"helixio.providers.{self.name}")

    @abstractmethod
    async def check_availability(self) -> AvailabilityResult:
        """Check whether this provider is configured and reachable."""

    @abstractmethod
    async def search_series(
        self,
        query: SearchQuery,
        limit: int = 10,
        session_id: str | None = None,
    ) -> SeriesSearchResult:
        """Search for series matching the query.

        Args:
            query: Series name, year and publisher to search for
            limit: Maximum number of results
            session_id: Optional caller session for request tracking

        Returns:
            Normalized search results
        """

    @abstractmethod
    async def get_series_issues(
        self,
        source_id: str,
        limit: int = 200,
        session_id: str | None = None,
    ) -> IssueListResult:
        """List the issues of a series in this source."""
