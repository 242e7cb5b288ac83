"""Report service: validation, throttling and the 24h report cache around the pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

from config.settings import settings
from core.errors import InvalidQueryError, NoResultsError, RateLimitExceeded
from core.models import Report
from core.slug import is_valid_slug, query_to_slug
from core.throttle import RequestThrottle
from pipeline.orchestrator import PulsePipeline

log = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
MAX_QUERY_LENGTH = 100


class ReportStore(Protocol):
    async def get(self, slug: str) -> Report | None: ...

    async def put(self, report: Report) -> None: ...


@dataclass
class PulseResult:
    report: Report
    cached: bool


def validate_query(query: str) -> tuple[str, str]:
    """Return the trimmed query and its slug, or raise InvalidQueryError."""
    query = (query or "").strip()
    if len(query) < MIN_QUERY_LENGTH or len(query) > MAX_QUERY_LENGTH:
        raise InvalidQueryError(
            f"Query must be between {MIN_QUERY_LENGTH} and {MAX_QUERY_LENGTH} characters"
        )
    slug = query_to_slug(query)
    if not is_valid_slug(slug):
        raise InvalidQueryError("Query must contain letters or numbers")
    return query, slug


class PulseService:
    def __init__(
        self,
        pipeline: PulsePipeline,
        store: ReportStore,
        throttle: RequestThrottle | None = None,
        ttl_hours: float | None = None,
    ) -> None:
        self.pipeline = pipeline
        self.store = store
        self.throttle = throttle or RequestThrottle()
        self.ttl = timedelta(hours=settings.CACHE_TTL_HOURS if ttl_hours is None else ttl_hours)

    def is_stale(self, report: Report, now: datetime) -> bool:
        return now - report.updated_at >= self.ttl

    async def get_or_create(
        self, query: str, client_id: str, now: datetime | None = None
    ) -> PulseResult:
        now = now or datetime.now(timezone.utc)
        query, slug = validate_query(query)

        decision = self.throttle.check(client_id, now.timestamp())
        if not decision.allowed:
            log.info("Throttled client %s (retry in %ds)", client_id, decision.retry_after)
            raise RateLimitExceeded(decision.retry_after)

        existing = await self.store.get(slug)
        if existing is not None and not self.is_stale(existing, now):
            log.info("Serving cached report '%s'", slug)
            return PulseResult(report=existing, cached=True)

        log.info("Generating report '%s'%s", slug, " (stale)" if existing else "")
        outcome = await self.pipeline.run(query, now=now)
        if not outcome.ok:
            raise NoResultsError(query, outcome.report)

        report = outcome.report
        if existing is not None:
            report.created_at = existing.created_at
        await self.store.put(report)
        return PulseResult(report=report, cached=False)

    async def get(self, slug: str) -> Report | None:
        if not is_valid_slug(slug):
            raise InvalidQueryError(f"Invalid report slug '{slug}'")
        return await self.store.get(slug)
