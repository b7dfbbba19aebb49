"""Content similarity scoring between series.

Series are compared on:
- Genres, tags, characters, teams, creators (Jaccard similarity)
- Publisher (case-insensitive exact match)
- Summary keywords (Jaccard similarity on extracted keywords)
"""

from __future__ import annotations

import re
from collections import Counter

from pydantic import BaseModel, ConfigDict

# All weights sum to 1.0
SIMILARITY_WEIGHTS: dict[str, float] = {
    "genres": 0.20,
    "characters": 0.25,
    "creators": 0.15,
    "tags": 0.15,
    "teams": 0.10,
    "keywords": 0.10,
    "publisher": 0.05,
}

# Pairs scoring below this are not stored
MINIMUM_SIMILARITY_THRESHOLD = 0.1

MAX_KEYWORDS = 20

STOPWORDS: frozenset[str] = frozenset(
    {
        # Articles
        "the", "a", "an",
        # Conjunctions
        "and", "or", "but", "nor", "yet", "so",
        # Prepositions
        "in", "on", "at", "to", "for", "of", "with", "by", "from", "as", "into",
        "through", "during", "before", "after", "above", "below", "between", "under",
        "again", "further", "then", "once",
        # Common verbs
        "is", "was", "are", "were", "been", "be", "being",
        "have", "has", "had", "having",
        "do", "does", "did", "doing",
        "will", "would", "could", "should", "may", "might", "must", "shall", "can",
        # Pronouns
        "i", "me", "my", "myself", "we", "our", "ours", "ourselves",
        "you", "your", "yours", "yourself", "yourselves",
        "he", "him", "his", "himself", "she", "her", "hers", "herself",
        "it", "its", "itself", "they", "them", "their", "theirs", "themselves",
        "this", "that", "these", "those", "who", "whom", "which", "what", "whose",
        "when", "where", "why", "how",
        # Determiners
        "all", "each", "every", "both", "few", "more", "most", "other", "some",
        "such", "no", "not", "only", "own", "same", "than", "too", "very",
        # Adverbs
        "just", "also", "now", "here", "there", "about", "out", "up", "down",
        # Common in comic descriptions
        "comic", "comics", "series", "issue", "issues", "story", "stories",
        "volume", "part", "chapter", "book", "new", "first", "one", "two",
        "three", "four", "five", "many", "much", "find", "finds", "found",
        "take", "takes", "taken", "make", "makes", "made", "become",
        "becomes", "get", "gets", "got", "goes", "come", "comes", "came",
    }
)  # fmt: skip

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


class SeriesData(BaseModel):
    """Fields of a series that feed the similarity computation."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    genres: str | None = None
    tags: str | None = None
    characters: str | None = None
    teams: str | None = None
    creators: str | None = None
    writer: str | None = None
    penciller: str | None = None
    publisher: str | None = None
    summary: str | None = None


class SimilarityScores(BaseModel):
    similarity_score: float
    genre_score: float = 0.0
    tag_score: float = 0.0
    character_score: float = 0.0
    team_score: float = 0.0
    creator_score: float = 0.0
    publisher_score: float = 0.0
    keyword_score: float = 0.0


class MatchReason(BaseModel):
    type: str
    score: float
    weight: float
    contribution: float


def tokenize(value: str | None) -> set[str]:
    """Split a comma-separated field into a set of lowercase tokens."""
    if not value:
        return set()
    return {token.strip().lower() for token in value.split(",") if token.strip()}


def tokenize_multiple(*values: str | None) -> set[str]:
    tokens: set[str] = set()
    for value in values:
        tokens |= tokenize(value)
    return tokens


def extract_keywords(text: str | None, max_keywords: int = MAX_KEYWORDS) -> set[str]:
    """Most frequent meaningful words of a free-text summary.

    Words shorter than four characters and stopwords are ignored. Ties in
    frequency keep first-occurrence order.
    """
    if not text:
        return set()

    words = _NON_ALNUM.sub(" ", text.lower()).split()
    counts = Counter(word for word in words if len(word) >= 4 and word not in STOPWORDS)
    return {word for word, _ in counts.most_common(max_keywords)}


def jaccard_similarity(set_a: set[str], set_b: set[str]) -> float:
    """|A ∩ B| / |A ∪ B|, or 0.0 when either set is empty."""
    if not set_a or not set_b:
        return 0.0
    intersection = len(set_a & set_b)
    return intersection / (len(set_a) + len(set_b) - intersection)


def compute_series_similarity(series_a: SeriesData, series_b: SeriesData) -> SimilarityScores:
    """Compute component and weighted overall similarity for two series."""
    genre_score = jaccard_similarity(tokenize(series_a.genres), tokenize(series_b.genres))
    tag_score = jaccard_similarity(tokenize(series_a.tags), tokenize(series_b.tags))
    character_score = jaccard_similarity(
        tokenize(series_a.characters), tokenize(series_b.characters)
    )
    team_score = jaccard_similarity(tokenize(series_a.teams), tokenize(series_b.teams))
    creator_score = jaccard_similarity(
        tokenize_multiple(series_a.creators, series_a.writer, series_a.penciller),
        tokenize_multiple(series_b.creators, series_b.writer, series_b.penciller),
    )

    publisher_score = (
        1.0
        if series_a.publisher
        and series_b.publisher
        and series_a.publisher.lower() == series_b.publisher.lower()
        else 0.0
    )

    keyword_score = jaccard_similarity(
        extract_keywords(series_a.summary), extract_keywords(series_b.summary)
    )

    similarity_score = (
        genre_score * SIMILARITY_WEIGHTS["genres"]
        + tag_score * SIMILARITY_WEIGHTS["tags"]
        + character_score * SIMILARITY_WEIGHTS["characters"]
        + team_score * SIMILARITY_WEIGHTS["teams"]
        + creator_score * SIMILARITY_WEIGHTS["creators"]
        + publisher_score * SIMILARITY_WEIGHTS["publisher"]
        + keyword_score * SIMILARITY_WEIGHTS["keywords"]
    )

    return SimilarityScores(
        similarity_score=similarity_score,
        genre_score=genre_score,
        tag_score=tag_score,
        character_score=character_score,
        team_score=team_score,
        creator_score=creator_score,
        publisher_score=publisher_score,
        keyword_score=keyword_score,
    )


def compute_and_filter_similarity(
    series_a: SeriesData, series_b: SeriesData
) -> SimilarityScores | None:
    """Scores for the pair if they clear MINIMUM_SIMILARITY_THRESHOLD, else None."""
    scores = compute_series_similarity(series_a, series_b)
    if scores.similarity_score >= MINIMUM_SIMILARITY_THRESHOLD:
        return scores
    return None


def get_match_reasons(scores: SimilarityScores) -> list[MatchReason]:
    """Dimensions contributing to a similarity, largest contribution first."""
    components = [
        ("genres", scores.genre_score),
        ("characters", scores.character_score),
        ("creators", scores.creator_score),
        ("tags", scores.tag_score),
        ("teams", scores.team_score),
        ("keywords", scores.keyword_score),
        ("publisher", scores.publisher_score),
    ]
    reasons = [
        MatchReason(
            type=name,
            score=score,
            weight=SIMILARITY_WEIGHTS[name],
            contribution=score * SIMILARITY_WEIGHTS[name],
        )
        for name, score in components
    ]
    return sorted(
        (r for r in reasons if r.contribution > 0),
        key=lambda r: r.contribution,
        reverse=True,
    )
