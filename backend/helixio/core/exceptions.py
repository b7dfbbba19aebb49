"""Domain exceptions for Helixio."""

from __future__ import annotations


class HelixioError(Exception):
    """Base class for application errors."""


class ProviderNotFoundError(HelixioError):
    """No metadata provider is registered for a source."""

    def __init__(self, source: str) -> None:
        super().__init__(f"No metadata provider registered for source '{source}'")
        self.source = source


class SimilarityJobBusyError(HelixioError):
    """A similarity job is already running in this process."""

    def __init__(self, running_job_id: str | None = None) -> None:
        super().__init__("A similarity job is already running")
        self.running_job_id = running_job_id


class SeriesNotFoundError(HelixioError):
    """The requested series does not exist or was deleted."""

    def __init__(self, series_id: str) -> None:
        super().__init__(f"Series '{series_id}' not found")
        self.series_id = series_id
