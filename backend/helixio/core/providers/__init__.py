"""Metadata provider interface, registry and reference adapters."""

from .base import MetadataProvider
from .comicvine import ComicVineProvider
from .models import (
    AvailabilityResult,
    Credit,
    IssueListResult,
    IssueMetadata,
    MetadataSource,
    SearchQuery,
    SeriesMetadata,
    SeriesSearchResult,
)
from .rate_limit import RateLimiter
from .registry import ProviderRegistry, get_provider_registry

__all__ = [
    "MetadataProvider",
    "ComicVineProvider",
    "MetadataSource",
    "Credit",
    "SeriesMetadata",
    "IssueMetadata",
    "SearchQuery",
    "AvailabilityResult",
    "SeriesSearchResult",
    "IssueListResult",
    "RateLimiter",
    "ProviderRegistry",
    "get_provider_registry",
]
