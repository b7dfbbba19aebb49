"""Match evaluator - combines criteria into weighted confidence scores.

Series candidates are scored on title, publisher, year, issue count,
creators and aliases. Issue candidates are scored on number, cover date,
title and page count.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from helixio.core.providers.models import IssueMetadata, SeriesMetadata

from .config import DEFAULT_CONFIG, MatchingConfig
from .criteria import (
    YearMatch,
    aliases_match,
    calculate_title_similarity,
    calculate_year_match,
    find_creator_overlap,
    issue_counts_match,
    normalize_issue_number,
    parse_cover_date,
    publishers_match,
)


class CrossMatchFactors(BaseModel):
    """Per-factor breakdown of a series match."""

    title_similarity: float = Field(..., ge=0.0, le=1.0)
    publisher_match: bool
    year_match: YearMatch
    issue_count_match: bool
    creator_overlap: list[str] = Field(default_factory=list)
    alias_match: bool


class IssueMatchFactors(BaseModel):
    """Per-factor breakdown of an issue match."""

    number_match: bool
    cover_date_match: Literal["exact", "close", "none"]
    title_similarity: float = Field(..., ge=0.0, le=1.0)
    page_count_match: bool = False


def calculate_match_confidence(
    primary: SeriesMetadata,
    candidate: SeriesMetadata,
    config: MatchingConfig = DEFAULT_CONFIG,
) -> tuple[float, CrossMatchFactors]:
    """Score a candidate series against the primary series.

    Returns:
        Tuple of (confidence clamped to at most 1.0, factor breakdown)
    """
    confidence = 0.0

    title_similarity = calculate_title_similarity(primary.name, candidate.name)
    confidence += title_similarity * config.title_weight

    publisher_match = publishers_match(primary.publisher, candidate.publisher)
    if publisher_match:
        confidence += config.publisher_weight

    year_match = calculate_year_match(primary.start_year, candidate.start_year)
    if year_match == "exact":
        confidence += config.year_weight
    elif year_match == "close":
        confidence += config.year_weight * 0.5

    issue_count_match = issue_counts_match(primary.issue_count, candidate.issue_count, config)
    if issue_count_match:
        confidence += config.issue_count_weight

    creator_overlap = find_creator_overlap(primary.creators, candidate.creators)
    if creator_overlap:
        creator_score = min(len(creator_overlap) / config.creator_saturation, 1.0)
        confidence += creator_score * config.creators_weight

    alias_match = aliases_match(candidate.aliases, primary.name) or aliases_match(
        primary.aliases, candidate.name
    )
    if alias_match:
        confidence += config.alias_weight

    factors = CrossMatchFactors(
        title_similarity=title_similarity,
        publisher_match=publisher_match,
        year_match=year_match,
        issue_count_match=issue_count_match,
        creator_overlap=creator_overlap,
        alias_match=alias_match,
    )
    return min(confidence, 1.0), factors


def calculate_issue_match_confidence(
    primary: IssueMetadata,
    candidate: IssueMetadata,
    config: MatchingConfig = DEFAULT_CONFIG,
) -> tuple[float, IssueMatchFactors]:
    """Score a candidate issue against the primary issue.

    Page count is never compared because IssueMetadata carries no page count.
    """
    confidence = 0.0

    primary_number = normalize_issue_number(primary.number)
    candidate_number = normalize_issue_number(candidate.number)
    number_match = primary_number is not None and primary_number == candidate_number
    if number_match:
        confidence += config.issue_number_weight

    cover_date_match: Literal["exact", "close", "none"] = "none"
    primary_date = parse_cover_date(primary.cover_date)
    candidate_date = parse_cover_date(candidate.cover_date)
    if primary_date and candidate_date and primary_date.year == candidate_date.year:
        if primary_date.month == candidate_date.month:
            cover_date_match = "exact"
            confidence += config.cover_date_weight
        elif abs(primary_date.month - candidate_date.month) <= 1:
            cover_date_match = "close"
            confidence += config.cover_date_weight * 0.5

    title_similarity = 0.0
    if primary.title and candidate.title:
        title_similarity = calculate_title_similarity(primary.title, candidate.title)
        confidence += title_similarity * config.issue_title_weight
    elif not primary.title and not candidate.title:
        # Neutral: neither side has a story title
        title_similarity = 0.5
        confidence += config.issue_title_weight * 0.5

    factors = IssueMatchFactors(
        number_match=number_match,
        cover_date_match=cover_date_match,
        title_similarity=title_similarity,
        page_count_match=False,
    )
    return min(confidence, 1.0), factors

