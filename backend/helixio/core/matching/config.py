"""Matching configuration - scoring weights and thresholds."""

from dataclasses import dataclass


@dataclass(frozen=True)
class MatchingConfig:
    """Configuration for cross-source series and issue matching.

    This class centralizes all scoring weights and thresholds. The series
    weights sum to 1.0, as do the issue weights.
    """

    # Series scoring weights
    title_weight: float = 0.35
    publisher_weight: float = 0.20
    year_weight: float = 0.20
    issue_count_weight: float = 0.10
    creators_weight: float = 0.10
    alias_weight: float = 0.05

    # Issue scoring weights
    issue_number_weight: float = 0.50
    cover_date_weight: float = 0.25
    issue_title_weight: float = 0.15
    page_count_weight: float = 0.10

    # Thresholds
    auto_match_threshold: float = 0.95
    issue_match_threshold: float = 0.7
    max_year_gap: int = 2  # Candidates further apart are rejected when neither year is missing
    creator_saturation: int = 3  # Shared creators needed for full creator credit
    issue_count_tolerance: float = 0.1  # Fraction of the larger count

    # Search limits
    series_search_limit: int = 10
    issue_fetch_limit: int = 200


# Default config instance
DEFAULT_CONFIG = MatchingConfig()
