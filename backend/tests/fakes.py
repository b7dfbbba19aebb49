"""In-memory metadata providers for matcher tests."""

from __future__ import annotations

from helixio.core.providers import (
    AvailabilityResult,
    IssueListResult,
    IssueMetadata,
    MetadataProvider,
    SearchQuery,
    SeriesMetadata,
    SeriesSearchResult,
)


class FakeProvider(MetadataProvider):
    """Provider returning canned series and issues."""

    display_name = "Fake"

    def __init__(
        self,
        name: str,
        series: list[SeriesMetadata] | None = None,
        issues: list[IssueMetadata] | None = None,
        available: bool = True,
        error: Exception | None = None,
    ) -> None:
        self.name = name  # type: ignore[assignment]
        super().__init__()
        self.series = series or []
        self.issues = issues or []
        self.available = available
        self.error = error
        self.queries: list[SearchQuery] = []
        self.search_limits: list[int] = []
        self.issue_requests: list[tuple[str, int]] = []

    async def check_availability(self) -> AvailabilityResult:
        if self.available:
            return AvailabilityResult(available=True)
        return AvailabilityResult(available=False, error="offline")

    async def search_series(
        self,
        query: SearchQuery,
        limit: int = 10,
        session_id: str | None = None,
    ) -> SeriesSearchResult:
        self.queries.append(query)
        self.search_limits.append(limit)
        if self.error:
            raise self.error
        return SeriesSearchResult(results=self.series, total=len(self.series))

    async def get_series_issues(
        self,
        source_id: str,
        limit: int = 200,
        session_id: str | None = None,
    ) -> IssueListResult:
        self.issue_requests.append((source_id, limit))
        if self.error:
            raise self.error
        return IssueListResult(results=self.issues, total=len(self.issues))


def make_series(source: str, source_id: str, name: str, **fields) -> SeriesMetadata:
    return SeriesMetadata(source=source, source_id=source_id, name=name, **fields)  # type: ignore[arg-type]


def make_issue(source: str, source_id: str, number: str | None, **fields) -> IssueMetadata:
    fields.setdefault("series_id", "s1")
    fields.setdefault("series_name", "Saga")
    return IssueMetadata(source=source, source_id=source_id, number=number, **fields)  # type: ignore[arg-type]
