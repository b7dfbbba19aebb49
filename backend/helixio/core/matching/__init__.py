"""Cross-source matching of series and issues.

Scores candidates from other metadata sources against a primary record
with configurable weights, and caches accepted mappings.
"""

from .config import DEFAULT_CONFIG, MatchingConfig
from .criteria import (
    CoverDate,
    aliases_match,
    calculate_title_similarity,
    calculate_year_match,
    extract_creator_names,
    find_creator_overlap,
    issue_counts_match,
    levenshtein_distance,
    normalize_issue_number,
    normalize_publisher,
    normalize_series_name,
    parse_cover_date,
    publishers_match,
)
from .cross_source import (
    CachedMapping,
    CrossMatchOptions,
    CrossSourceMatch,
    CrossSourceResult,
    IssueCrossMatch,
    SeriesSourceRef,
    find_cross_source_matches,
    find_issue_cross_matches,
    find_matching_issue,
    get_cached_mappings,
    has_cached_mappings_for_all_sources,
    invalidate_cross_source_mappings,
    save_cross_source_mapping,
)
from .evaluator import (
    CrossMatchFactors,
    IssueMatchFactors,
    calculate_issue_match_confidence,
    calculate_match_confidence,
)

__all__ = [
    "MatchingConfig",
    "DEFAULT_CONFIG",
    "CoverDate",
    "levenshtein_distance",
    "normalize_series_name",
    "calculate_title_similarity",
    "normalize_publisher",
    "publishers_match",
    "calculate_year_match",
    "issue_counts_match",
    "extract_creator_names",
    "find_creator_overlap",
    "aliases_match",
    "normalize_issue_number",
    "parse_cover_date",
    "CrossMatchFactors",
    "IssueMatchFactors",
    "calculate_match_confidence",
    "calculate_issue_match_confidence",
    "CachedMapping",
    "CrossMatchOptions",
    "CrossSourceMatch",
    "CrossSourceResult",
    "IssueCrossMatch",
    "SeriesSourceRef",
    "find_cross_source_matches",
    "find_issue_cross_matches",
    "find_matching_issue",
    "get_cached_mappings",
    "has_cached_mappings_for_all_sources",
    "invalidate_cross_source_mappings",
    "save_cross_source_mapping",
]
