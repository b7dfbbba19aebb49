"""Series similarity scoring, background jobs and scheduling."""

from .jobs import (
    JobProgress,
    JobResult,
    SimilarSeries,
    SimilarityStats,
    cancel_running_jobs,
    delete_series_similarities,
    get_active_series,
    get_job_progress,
    get_last_completed_job,
    get_recent_jobs,
    get_similar_series,
    get_similarity_stats,
    has_similarity_data,
    is_job_running,
    run_full_rebuild,
    run_incremental_update,
    run_similarity_job,
    start_similarity_job,
    update_series_similarities,
)
from .scheduler import SimilarityScheduler
from .scoring import (
    MINIMUM_SIMILARITY_THRESHOLD,
    SIMILARITY_WEIGHTS,
    STOPWORDS,
    MatchReason,
    SeriesData,
    SimilarityScores,
    compute_and_filter_similarity,
    compute_series_similarity,
    extract_keywords,
    get_match_reasons,
    jaccard_similarity,
    tokenize,
    tokenize_multiple,
)

__all__ = [
    "SIMILARITY_WEIGHTS",
    "MINIMUM_SIMILARITY_THRESHOLD",
    "STOPWORDS",
    "SeriesData",
    "SimilarityScores",
    "MatchReason",
    "tokenize",
    "tokenize_multiple",
    "extract_keywords",
    "jaccard_similarity",
    "compute_series_similarity",
    "compute_and_filter_similarity",
    "get_match_reasons",
    "JobProgress",
    "JobResult",
    "SimilarSeries",
    "SimilarityStats",
    "run_similarity_job",
    "start_similarity_job",
    "cancel_running_jobs",
    "run_full_rebuild",
    "run_incremental_update",
    "update_series_similarities",
    "delete_series_similarities",
    "get_active_series",
    "get_job_progress",
    "get_last_completed_job",
    "get_recent_jobs",
    "get_similar_series",
    "has_similarity_data",
    "get_similarity_stats",
    "is_job_running",
    "SimilarityScheduler",
]
