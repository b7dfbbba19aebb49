"""Pydantic models for normalized metadata provider output."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

MetadataSource = Literal["comicvine", "metron", "gcd", "anilist", "mal"]


class Credit(BaseModel):
    """A person or entity credited on a series (creator, character, ...)."""

    id: int | str | None = Field(default=None, description="Source-specific credit ID")
    name: str = Field(..., description="Display name")
    count: int | None = Field(default=None, description="Number of appearances, if known")


class SeriesMetadata(BaseModel):
    """A series record as returned by one metadata source."""

    source: MetadataSource
    source_id: str
    name: str
    publisher: str | None = None
    start_year: int | None = None
    end_year: int | None = None
    issue_count: int | None = None
    description: str | None = None
    url: str | None = None
    aliases: list[str] = Field(default_factory=list)
    creators: list[Credit] = Field(default_factory=list)
    characters: list[Credit] = Field(default_factory=list)


class IssueMetadata(BaseModel):
    """An issue record as returned by one metadata source."""

    source: MetadataSource
    source_id: str
    series_id: str
    series_name: str
    number: str | None = None
    title: str | None = None
    cover_date: str | None = Field(default=None, description="YYYY-MM, YYYY-MM-DD or 'Month YYYY'")
    store_date: str | None = None
    description: str | None = None
    writer: str | None = None
    penciller: str | None = None


class SearchQuery(BaseModel):
    """Series search parameters passed to providers."""

    series: str | None = None
    issue_number: str | None = None
    publisher: str | None = None
    year: int | None = None


class AvailabilityResult(BaseModel):
    """Whether a provider can currently serve requests."""

    available: bool
    configured: bool = True
    error: str | None = None


class SeriesSearchResult(BaseModel):
    results: list[SeriesMetadata] = Field(default_factory=list)
    total: int = 0
    has_more: bool = False


class IssueListResult(BaseModel):
    results: list[IssueMetadata] = Field(default_factory=list)
    total: int = 0
    has_more: bool = False
