from __future__ import annotations

from core.models import Report


class PulseError(Exception):
    """Base class for errors surfaced to callers of the pulse service."""


class InvalidQueryError(PulseError):
    pass


class RateLimitExceeded(PulseError):
    def __init__(self, retry_after: int) -> None:
        super().__init__(f"Too many requests. Retry in {retry_after}s.")
        self.retry_after = retry_after


class NoResultsError(PulseError):
    """Every source came back empty (or nothing survived filtering)."""

    def __init__(self, query: str, report: Report | None = None) -> None:
        super().__init__(f"No results found for '{query}'. Try a different keyword.")
        self.query = query
        self.report = report


class EmbeddingUnavailable(PulseError):
    """The sentence-embedding model could not be loaded."""
