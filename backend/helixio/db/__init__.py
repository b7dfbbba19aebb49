"""Database models and utilities.

This module exports all database models.
"""

from __future__ import annotations

from helixio.db.models import (
    CrossSourceMapping,
    Series,
    SeriesSimilarity,
    SimilarityJob,
    metadata,
)

__all__ = [
    "metadata",
    "Series",
    "CrossSourceMapping",
    "SeriesSimilarity",
    "SimilarityJob",
]
