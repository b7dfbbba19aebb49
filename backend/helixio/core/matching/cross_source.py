"""Cross-source matching of series and issues between metadata sources.

Given a series from one source, every other enabled source is searched
concurrently and its best candidate is scored with the weighted confidence
from the evaluator. Accepted matches are cached as CrossSourceMapping rows.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Literal

import structlog
from pydantic import BaseModel, Field
from sqlalchemy import delete
from sqlmodel import and_, or_, select
from sqlmodel.ext.asyncio.session import AsyncSession

from helixio.core.metrics import cross_source_search_duration_seconds, cross_source_searches_total
from helixio.core.providers.models import (
    IssueMetadata,
    MetadataSource,
    SearchQuery,
    SeriesMetadata,
)
from helixio.core.providers.registry import ProviderRegistry, get_provider_registry
from helixio.core.settings_persistence import get_metadata_settings
from helixio.db.models import CrossSourceMapping

from .config import DEFAULT_CONFIG, MatchingConfig
from .evaluator import (
    CrossMatchFactors,
    IssueMatchFactors,
    calculate_issue_match_confidence,
    calculate_match_confidence,
)

logger = structlog.get_logger("helixio.matching.cross_source")

SourceStatus = Literal["matched", "no_match", "searching", "error", "skipped"]
MatchMethod = Literal["auto", "user", "api_link"]


class CrossMatchOptions(BaseModel):
    target_sources: list[MetadataSource] | None = None
    auto_match_threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    session_id: str | None = None


class CrossSourceMatch(BaseModel):
    """Best candidate found in one target source."""

    source: MetadataSource
    source_id: str
    series_data: SeriesMetadata
    confidence: float
    match_factors: CrossMatchFactors
    is_auto_match_candidate: bool


class CrossSourceResult(BaseModel):
    primary_source: MetadataSource
    primary_source_id: str
    matches: list[CrossSourceMatch] = Field(default_factory=list)
    status: dict[MetadataSource, SourceStatus] = Field(default_factory=dict)


class CachedMapping(BaseModel):
    """A stored mapping seen from the queried source's side."""

    matched_source: MetadataSource
    matched_source_id: str
    confidence: float


class SeriesSourceRef(BaseModel):
    source: MetadataSource
    source_id: str


class IssueCrossMatch(BaseModel):
    source: MetadataSource
    issue: IssueMetadata
    confidence: float
    match_factors: IssueMatchFactors


async def _search_source(
    source: MetadataSource,
    primary: SeriesMetadata,
    threshold: float,
    registry: ProviderRegistry,
    status: dict[MetadataSource, SourceStatus],
    session_id: str | None,
    config: MatchingConfig,
) -> CrossSourceMatch | None:
    """Search one source and return its best candidate, recording the outcome in status."""
    start = time.perf_counter()
    try:
        provider = registry.get(source)
        if provider is None:
            logger.warning("No provider registered for source", source=source)
            status[source] = "error"
            return None

        availability = await provider.check_availability()
        if not availability.available:
            logger.info("Provider unavailable", source=source, error=availability.error)
            status[source] = "error"
            return None

        search = await provider.search_series(
            SearchQuery(series=primary.name, year=primary.start_year, publisher=primary.publisher),
            limit=config.series_search_limit,
            session_id=session_id,
        )
        if not search.results:
            status[source] = "no_match"
            return None

        best_match: CrossSourceMatch | None = None
        best_confidence = 0.0
        for candidate in search.results:
            confidence, factors = calculate_match_confidence(primary, candidate, config)

            # Same-named series from a different era (reboots) are rejected outright
            if factors.year_match == "none" and primary.start_year and candidate.start_year:
                if abs(primary.start_year - candidate.start_year) > config.max_year_gap:
                    continue

            if confidence > best_confidence:
                best_confidence = confidence
                best_match = CrossSourceMatch(
                    source=source,
                    source_id=candidate.source_id,
                    series_data=candidate,
                    confidence=confidence,
                    match_factors=factors,
                    is_auto_match_candidate=confidence >= threshold,
                )

        status[source] = "matched" if best_match else "no_match"
        return best_match

    except Exception as e:
        logger.error(
            "Cross-source search failed",
            source=source,
            series=primary.name,
            error=str(e),
            exc_info=True,
        )
        status[source] = "error"
        return None

    finally:
        cross_source_search_duration_seconds.labels(source=source).observe(time.perf_counter() - start)
        cross_source_searches_total.labels(source=source, status=status.get(source, "error")).inc()


async def find_cross_source_matches(
    primary: SeriesMetadata,
    options: CrossMatchOptions | None = None,
    registry: ProviderRegistry | None = None,
    config: MatchingConfig = DEFAULT_CONFIG,
) -> CrossSourceResult:
    """Find the same series in other metadata sources.

    Target sources are searched concurrently; a failure in one source marks
    it ``error`` and never aborts the others. Nothing is persisted.

    Args:
        primary: Series to look up
        options: Target sources, auto-match threshold and session id
        registry: Provider registry (defaults to the process-wide one)
        config: Weights and thresholds

    Returns:
        CrossSourceResult with matches sorted by descending confidence and
        a status entry for every enabled source
    """
    options = options or CrossMatchOptions()
    registry = registry or get_provider_registry()
    settings = get_metadata_settings()

    threshold = options.auto_match_threshold
    if threshold is None:
        threshold = settings.auto_match_threshold
    if threshold is None:
        threshold = config.auto_match_threshold

    enabled_sources = list(settings.enabled_sources)
    if options.target_sources is not None:
        target_sources = list(options.target_sources)
    else:
        target_sources = [s for s in enabled_sources if s != primary.source]

    status: dict[MetadataSource, SourceStatus] = {}
    for source in enabled_sources:
        if source == primary.source or source not in target_sources:
            status[source] = "skipped"
        else:
            status[source] = "searching"
    for source in target_sources:
        status.setdefault(source, "searching")

    logger.info(
        "Searching for cross-source matches",
        primary_source=primary.source,
        primary_source_id=primary.source_id,
        series=primary.name,
        target_sources=target_sources,
    )

    found = await asyncio.gather(
        *(
            _search_source(source, primary, threshold, registry, status, options.session_id, config)
            for source in target_sources
        )
    )
    matches = sorted((m for m in found if m is not None), key=lambda m: m.confidence, reverse=True)

    logger.info(
        "Cross-source search complete",
        primary_source=primary.source,
        primary_source_id=primary.source_id,
        matches=len(matches),
        status=status,
    )

    return CrossSourceResult(
        primary_source=primary.source,
        primary_source_id=primary.source_id,
        matches=matches,
        status=status,
    )


def _either_side(source: str, source_id: str):  # noqa: ANN202
    return or_(
        and_(
            CrossSourceMapping.primary_source == source,
            CrossSourceMapping.primary_source_id == source_id,
        ),
        and_(
            CrossSourceMapping.matched_source == source,
            CrossSourceMapping.matched_source_id == source_id,
        ),
    )


async def get_cached_mappings(
    session: AsyncSession,
    source: MetadataSource,
    source_id: str,
) -> list[CachedMapping]:
    """Get stored mappings for a series, always returning the other side.

    Mappings are symmetric but stored with whichever source initiated the
    search as primary, so both columns are queried.
    """
    result = await session.exec(select(CrossSourceMapping).where(_either_side(source, source_id)))

    cached: list[CachedMapping] = []
    for mapping in result.all():
        if mapping.primary_source == source and mapping.primary_source_id == source_id:
            other_source, other_id = mapping.matched_source, mapping.matched_source_id
        else:
            other_source, other_id = mapping.primary_source, mapping.primary_source_id
        cached.append(
            CachedMapping(
                matched_source=other_source,  # type: ignore[arg-type]
                matched_source_id=other_id,
                confidence=mapping.confidence,
            )
        )
    return cached


async def save_cross_source_mapping(
    session: AsyncSession,
    primary_source: MetadataSource,
    primary_source_id: str,
    matched_source: MetadataSource,
    matched_source_id: str,
    confidence: float,
    match_method: MatchMethod,
    match_factors: CrossMatchFactors | None = None,
) -> CrossSourceMapping:
    """Create or update the mapping for (primary_source, primary_source_id, matched_source).

    A user-confirmed mapping is marked verified. Later automatic updates
    never clear the verified flag.
    """
    factors_json = json.dumps(match_factors.model_dump()) if match_factors else None

    result = await session.exec(
        select(CrossSourceMapping).where(
            CrossSourceMapping.primary_source == primary_source,
            CrossSourceMapping.primary_source_id == primary_source_id,
            CrossSourceMapping.matched_source == matched_source,
        )
    )
    mapping = result.first()

    if mapping is None:
        mapping = CrossSourceMapping(
            primary_source=primary_source,
            primary_source_id=primary_source_id,
            matched_source=matched_source,
            matched_source_id=matched_source_id,
            confidence=confidence,
            match_method=match_method,
            match_factors=factors_json,
            verified=match_method == "user",
        )
        session.add(mapping)
        action = "created"
    else:
        mapping.matched_source_id = matched_source_id
        mapping.confidence = confidence
        mapping.match_method = match_method
        mapping.match_factors = factors_json
        if match_method == "user":
            mapping.verified = True
        mapping.updated_at = int(time.time())
        session.add(mapping)
        action = "updated"

    await session.commit()
    await session.refresh(mapping)

    logger.info(
        "Cross-source mapping saved",
        action=action,
        primary_source=primary_source,
        primary_source_id=primary_source_id,
        matched_source=matched_source,
        matched_source_id=matched_source_id,
        confidence=round(confidence, 4),
        match_method=match_method,
    )
    return mapping


async def invalidate_cross_source_mappings(
    session: AsyncSession,
    source: MetadataSource,
    source_id: str,
) -> int:
    """Delete every mapping that references the series on either side."""
    result = await session.exec(delete(CrossSourceMapping).where(_either_side(source, source_id)))  # type: ignore[call-overload]
    await session.commit()
    deleted = result.rowcount or 0
    logger.info("Cross-source mappings invalidated", source=source, source_id=source_id, deleted=deleted)
    return deleted


async def has_cached_mappings_for_all_sources(
    session: AsyncSession,
    source: MetadataSource,
    source_id: str,
) -> bool:
    """Whether every other enabled source already has a stored mapping."""
    other_sources = [s for s in get_metadata_settings().enabled_sources if s != source]
    if not other_sources:
        return True

    mapped = {m.matched_source for m in await get_cached_mappings(session, source, source_id)}
    return all(s in mapped for s in other_sources)


def find_matching_issue(
    primary: IssueMetadata,
    candidates: list[IssueMetadata],
    threshold: float = DEFAULT_CONFIG.issue_match_threshold,
    config: MatchingConfig = DEFAULT_CONFIG,
) -> IssueCrossMatch | None:
    """Best candidate issue with a matching number at or above threshold."""
    best_match: IssueCrossMatch | None = None
    best_confidence = 0.0

    for candidate in candidates:
        confidence, factors = calculate_issue_match_confidence(primary, candidate, config)
        if not factors.number_match:
            continue
        if confidence > best_confidence and confidence >= threshold:
            best_confidence = confidence
            best_match = IssueCrossMatch(
                source=candidate.source,
                issue=candidate,
                confidence=confidence,
                match_factors=factors,
            )

    return best_match


async def find_issue_cross_matches(
    primary: IssueMetadata,
    series_mappings: list[SeriesSourceRef],
    threshold: float = DEFAULT_CONFIG.issue_match_threshold,
    session_id: str | None = None,
    registry: ProviderRegistry | None = None,
    config: MatchingConfig = DEFAULT_CONFIG,
) -> list[IssueCrossMatch]:
    """Find the primary issue within each mapped series of other sources.

    Sources are queried one at a time. Provider errors are logged and that
    source is skipped.
    """
    registry = registry or get_provider_registry()
    matches: list[IssueCrossMatch] = []

    for mapping in series_mappings:
        if mapping.source == primary.source:
            continue

        provider = registry.get(mapping.source)
        if provider is None:
            continue

        try:
            issues = await provider.get_series_issues(
                mapping.source_id,
                limit=config.issue_fetch_limit,
                session_id=session_id,
            )
        except Exception as e:
            logger.error(
                "Failed to fetch issues for cross-source match",
                source=mapping.source,
                source_id=mapping.source_id,
                error=str(e),
                exc_info=True,
            )
            continue

        match = find_matching_issue(primary, issues.results, threshold, config)
        if match:
            matches.append(match)

    matches.sort(key=lambda m: m.confidence, reverse=True)
    return matches
