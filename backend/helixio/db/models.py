"""Database models for Helixio.

All SQLModel models should be defined here and imported in db/__init__.py.

Models follow these patterns:
- Use singular nouns: Series, SeriesSimilarity
- Table names use plural, snake_case: series_similarities
- Use uuid.uuid4().hex for IDs (32 character hex strings)
- Timestamps are integer epoch seconds
"""

from __future__ import annotations

import time
import uuid

from sqlalchemy import Column, Index, Text, UniqueConstraint
from sqlmodel import Field, SQLModel

# SQLModel metadata - all models with table=True are registered here automatically
metadata = SQLModel.metadata


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> int:
    return int(time.time())


class Series(SQLModel, table=True):
    """A locally known series.

    Free-text content fields (genres, tags, characters, teams, creators) are
    comma-joined lists, as written by the metadata editor.
    """

    __tablename__ = "series"  # type: ignore[assignment]

    id: str = Field(default_factory=_new_id, primary_key=True)
    name: str = Field(index=True)
    publisher: str | None = Field(default=None)
    start_year: int | None = Field(default=None)

    genres: str | None = Field(default=None, sa_column=Column(Text))
    tags: str | None = Field(default=None, sa_column=Column(Text))
    characters: str | None = Field(default=None, sa_column=Column(Text))
    teams: str | None = Field(default=None, sa_column=Column(Text))
    creators: str | None = Field(default=None, sa_column=Column(Text))
    writer: str | None = Field(default=None)
    penciller: str | None = Field(default=None)
    summary: str | None = Field(default=None, sa_column=Column(Text))

    created_at: int = Field(default_factory=_now)
    updated_at: int = Field(default_factory=_now, index=True)
    deleted_at: int | None = Field(default=None, index=True)  # Soft delete marker


class CrossSourceMapping(SQLModel, table=True):
    """Accepted mapping between the same series in two metadata sources.

    The relation is symmetric; which side is "primary" depends on which
    source initiated the search. Readers normalise the direction.
    """

    __tablename__ = "cross_source_mappings"  # type: ignore[assignment]

    id: str = Field(default_factory=_new_id, primary_key=True)
    primary_source: str
    primary_source_id: str
    matched_source: str
    matched_source_id: str
    confidence: float = Field(default=0.0)  # 0.0-1.0
    match_method: str = Field(default="auto")  # auto, user, api_link
    match_factors: str | None = Field(default=None, sa_column=Column(Text))  # JSON
    verified: bool = Field(default=False)
    created_at: int = Field(default_factory=_now)
    updated_at: int = Field(default_factory=_now)

    __table_args__ = (
        UniqueConstraint(
            "primary_source",
            "primary_source_id",
            "matched_source",
            name="uq_cross_source_mappings_primary_matched_source",
        ),
        Index("idx_cross_source_mappings_primary", "primary_source", "primary_source_id"),
        Index("idx_cross_source_mappings_matched", "matched_source", "matched_source_id"),
    )


class SeriesSimilarity(SQLModel, table=True):
    """Content similarity between two series.

    Stored once per unordered pair with source_series_id < target_series_id.
    """

    __tablename__ = "series_similarities"  # type: ignore[assignment]

    id: str = Field(default_factory=_new_id, primary_key=True)
    source_series_id: str = Field(index=True)
    target_series_id: str = Field(index=True)
    similarity_score: float
    genre_score: float = Field(default=0.0)
    tag_score: float = Field(default=0.0)
    character_score: float = Field(default=0.0)
    team_score: float = Field(default=0.0)
    creator_score: float = Field(default=0.0)
    publisher_score: float = Field(default=0.0)
    keyword_score: float = Field(default=0.0)
    created_at: int = Field(default_factory=_now)

    __table_args__ = (
        UniqueConstraint(
            "source_series_id",
            "target_series_id",
            name="uq_series_similarities_pair",
        ),
        Index("idx_series_similarities_score", "similarity_score"),
    )


class SimilarityJob(SQLModel, table=True):
    """One invocation of the similarity computation (never reused)."""

    __tablename__ = "similarity_jobs"  # type: ignore[assignment]

    id: str = Field(default_factory=_new_id, primary_key=True)
    type: str = Field(index=True)  # full, incremental
    status: str = Field(default="pending", index=True)  # pending, running, completed, failed
    total_pairs: int = Field(default=0)
    processed_pairs: int = Field(default=0)
    stored_pairs: int = Field(default=0)
    last_processed_id: str | None = Field(default=None)
    error: str | None = Field(default=None, sa_column=Column(Text))
    created_at: int = Field(default_factory=_now)
    started_at: int | None = Field(default=None)
    completed_at: int | None = Field(default=None, index=True)

    __table_args__ = (Index("idx_similarity_jobs_status_completed", "status", "completed_at"),)
