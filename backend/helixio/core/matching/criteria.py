"""Individual match criteria evaluators.

Each function evaluates a single aspect of a match (title, publisher, year,
issue count, creators, aliases, issue number, cover date) and is pure, so
criteria can be tested independently and recombined by the evaluator.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Literal, NamedTuple

from helixio.core.providers.models import Credit

from .config import DEFAULT_CONFIG, MatchingConfig

YearMatch = Literal["exact", "close", "none"]

PUBLISHER_ALIASES: dict[str, str] = {
    "dc": "dc comics",
    "dc comics": "dc comics",
    "dc comics, inc.": "dc comics",
    "marvel": "marvel comics",
    "marvel comics": "marvel comics",
    "marvel comics group": "marvel comics",
    "image": "image comics",
    "image comics": "image comics",
    "dark horse": "dark horse comics",
    "dark horse comics": "dark horse comics",
    "idw": "idw publishing",
    "idw publishing": "idw publishing",
    "boom": "boom! studios",
    "boom!": "boom! studios",
    "boom! studios": "boom! studios",
    "boom studios": "boom! studios",
    "dynamite": "dynamite entertainment",
    "dynamite entertainment": "dynamite entertainment",
    "valiant": "valiant entertainment",
    "valiant entertainment": "valiant entertainment",
    "oni": "oni press",
    "oni press": "oni press",
}

MONTHS: dict[str, int] = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sep": 9, "sept": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}  # fmt: skip

_YEAR_IN_PARENS = re.compile(r"\s*\(\d{4}\)")
_VOL = re.compile(r"\s*vol\.?\s*\d+", re.IGNORECASE)
_VOLUME = re.compile(r"\s*volume\s*\d+", re.IGNORECASE)
_LEADING_THE = re.compile(r"^the\s+", re.IGNORECASE)
_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

_ISSUE_NUMBER = re.compile(r"^(-?)(\d+)((?:\.\d+)?)")
_NUMERIC_DATE = re.compile(r"^(\d{4})-(\d{2})(?:-\d{2})?")
_MONTH_NAME_DATE = re.compile(r"^([a-z]+)\.?\s+(\d{4})", re.IGNORECASE)


class CoverDate(NamedTuple):
    year: int
    month: int  # 0 when unknown


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between two strings (insert, delete, substitute)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(a) + 1))
    for i, char_b in enumerate(b, start=1):
        current = [i]
        for j, char_a in enumerate(a, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def normalize_series_name(name: str) -> str:
    """Normalize a series name for comparison.

    Lowercases and strips parenthesized years, volume markers, a leading
    "The", punctuation and extra whitespace.
    """
    value = name.lower()
    value = _YEAR_IN_PARENS.sub("", value)
    value = _VOL.sub("", value)
    value = _VOLUME.sub("", value)
    value = _LEADING_THE.sub("", value)
    value = _NON_WORD.sub("", value)
    value = _WHITESPACE.sub(" ", value)
    return value.strip()


def calculate_title_similarity(name1: str, name2: str) -> float:
    """Similarity of two series titles in [0, 1].

    Equal normalized names score 1.0. Containment scores between 0.7 and 1.0
    by length ratio. Otherwise the better of token overlap and normalized
    Levenshtein similarity is used.
    """
    norm1 = normalize_series_name(name1)
    norm2 = normalize_series_name(name2)

    if norm1 == norm2:
        return 1.0
    if not norm1 or not norm2:
        return 0.0

    if norm1 in norm2 or norm2 in norm1:
        shorter, longer = sorted((len(norm1), len(norm2)))
        return 0.7 + 0.3 * (shorter / longer)

    tokens1 = norm1.split()
    tokens2 = set(norm2.split())
    matching = sum(1 for token in tokens1 if token in tokens2)
    token_score = matching / max(len(tokens1), len(tokens2))

    max_len = max(len(norm1), len(norm2))
    lev_score = 1 - levenshtein_distance(norm1, norm2) / max_len

    return max(token_score, lev_score)


def normalize_publisher(publisher: str) -> str:
    value = publisher.lower().strip()
    return PUBLISHER_ALIASES.get(value, value)


def publishers_match(pub1: str | None, pub2: str | None) -> bool:
    """Compare publishers through the alias table. Missing on either side is no match."""
    if not pub1 or not pub2:
        return False
    return normalize_publisher(pub1) == normalize_publisher(pub2)


def calculate_year_match(year1: int | None, year2: int | None) -> YearMatch:
    if not year1 or not year2:
        return "none"
    if year1 == year2:
        return "exact"
    if abs(year1 - year2) <= 1:
        return "close"
    return "none"


def issue_counts_match(
    count1: int | None,
    count2: int | None,
    config: MatchingConfig = DEFAULT_CONFIG,
) -> bool:
    """Whether two issue counts are within tolerance of the larger count."""
    if not count1 or not count2:
        return False
    return abs(count1 - count2) <= max(count1, count2) * config.issue_count_tolerance


def extract_creator_names(credits: Iterable[Credit] | None) -> list[str]:
    if not credits:
        return []
    return [credit.name.lower().strip() for credit in credits if credit.name and credit.name.strip()]


def find_creator_overlap(
    primary_creators: Iterable[Credit] | None,
    candidate_creators: Iterable[Credit] | None,
) -> list[str]:
    """Normalized candidate creator names that also credit the primary series."""
    primary = set(extract_creator_names(primary_creators))
    return [name for name in extract_creator_names(candidate_creators) if name in primary]


def aliases_match(aliases: Iterable[str] | None, target_name: str) -> bool:
    if not aliases:
        return False
    target = normalize_series_name(target_name)
    return any(normalize_series_name(alias) == target for alias in aliases)


def normalize_issue_number(value: str | None) -> str | None:
    """Normalize an issue number for exact comparison.

    Examples:
        "½", "1/2", "0.5" -> "0.5"
        "001" -> "1", "12.1" -> "12.1", "5AU" -> "5"
        "Annual" -> "annual"
    """
    if value is None:
        return None
    text = str(value).lower().strip()
    if not text:
        return None

    if text in ("½", "1/2", "0.5"):
        return "0.5"

    match = _ISSUE_NUMBER.match(text)
    if match:
        sign, digits, fraction = match.groups()
        return f"{sign}{digits.lstrip('0') or '0'}{fraction}"

    return text


def parse_cover_date(value: str | None) -> CoverDate | None:
    """Parse a cover date into (year, month).

    Accepts YYYY-MM, YYYY-MM-DD and "Month YYYY" (full or abbreviated
    month). Years outside 1901..2099 are rejected.
    """
    if not value:
        return None
    text = value.strip()

    numeric = _NUMERIC_DATE.match(text)
    if numeric:
        year, month = int(numeric.group(1)), int(numeric.group(2))
        if not 1 <= month <= 12:
            month = 0
    else:
        named = _MONTH_NAME_DATE.match(text)
        if not named:
            return None
        month = MONTHS.get(named.group(1).lower(), 0)
        year = int(named.group(2))

    if 1900 < year < 2100:
        return CoverDate(year=year, month=month)
    return None
