from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import httpx

from analysis.dedupe import dedupe
from config.settings import settings
from core.models import (
    BreakdownItem,
    CallResult,
    FailureKind,
    FetchOutcome,
    RawItem,
    SourceFailure,
    SourceKind,
)

log = logging.getLogger(__name__)

# Statuses that mean "stop asking this API for now".
_THROTTLE_STATUSES = frozenset({403, 429})


class RateLimiter:
    """Simple token-bucket style rate limiter."""

    def __init__(self, delay_seconds: float = 0.3) -> None:
        self._delay = delay_seconds
        self._lock = asyncio.Lock()
        self._last_request: float | None = None

    async def wait(self) -> None:
        async with self._lock:
            now = asyncio.get_running_loop().time()
            if self._last_request is not None:
                elapsed = now - self._last_request
                if elapsed < self._delay:
                    await asyncio.sleep(self._delay - elapsed)
            self._last_request = asyncio.get_running_loop().time()


def from_unix(value: Any) -> datetime:
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


def from_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class BaseConnector(ABC):
    """One external search service.

    Subclasses describe the service (templates, filters, endpoints); the base
    class owns the sequential, rate-limited template loop, per-connector
    dedupe, quality filtering and the concurrent deep scan.
    """

    source_name: str
    source_kind: SourceKind
    display_name: str
    breakdown_title: str

    intent_templates: tuple[str, ...] = ()
    max_templates: int = 4
    min_title_length: int = 15
    min_content_length: int = 0
    exclude_keywords: tuple[str, ...] = ()
    supports_deep_scan: bool = False

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        delay_seconds: float | None = None,
        deep_scan_limit: int | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._client = client
        self._limiter = RateLimiter(
            settings.SOURCE_REQUEST_DELAY if delay_seconds is None else delay_seconds
        )
        self._deep_scan_limit = (
            settings.DEEP_SCAN_LIMIT if deep_scan_limit is None else deep_scan_limit
        )
        self._timeout = timeout_seconds or settings.HTTP_TIMEOUT_SECONDS

    # ── public contract ──────────────────────────────────────────────

    async def fetch(self, query: str) -> list[RawItem]:
        """Fetch items for *query*. Never raises; failures yield an empty list."""
        try:
            outcome = await self.collect(query)
        except Exception as exc:
            log.warning("%s fetch crashed: %s", self.source_name, exc)
            return []
        return outcome.items

    @abstractmethod
    def breakdown(self, items: list[RawItem]) -> list[BreakdownItem]:
        ...

    def expand_query(self, query: str) -> list[str]:
        templates = self.intent_templates[: self.max_templates]
        return [t.replace("{q}", query) for t in templates]

    async def collect(self, query: str) -> FetchOutcome:
        t0 = time.monotonic()
        items: list[RawItem] = []
        failures: list[SourceFailure] = []
        seen_ids: set[str] = set()
        rate_limited = False

        async with self._session() as client:
            for phrase in self.expand_query(query):
                await self._limiter.wait()
                result = await self._call(client, phrase)
                if not result.ok:
                    failures.append(result.failure)
                    log.warning("%s search '%s' failed: %s", self.source_name, phrase, result.failure)
                    if result.failure.kind is FailureKind.RATE_LIMITED:
                        rate_limited = True
                        break
                    continue

                new = 0
                for item in result.items:
                    if item.id in seen_ids:
                        continue
                    seen_ids.add(item.id)
                    items.append(item)
                    new += 1
                log.info(
                    "%s '%s': %d results (%d new)",
                    self.source_name, phrase, len(result.items), new,
                )

            kept = dedupe([item for item in items if self.passes_quality(item)])

            if self.supports_deep_scan and not rate_limited and self._deep_scan_limit > 0:
                await self._deep_scan(client, kept)

        elapsed = time.monotonic() - t0
        log.info(
            "%s: raw %d → filtered %d | %d failures | %.1fs",
            self.source_name, len(items), len(kept), len(failures), elapsed,
        )
        return FetchOutcome(
            source=self.source_name,
            items=kept,
            failures=failures,
            duration_seconds=elapsed,
        )

    def passes_quality(self, item: RawItem) -> bool:
        if len(item.title.strip()) < self.min_title_length:
            return False
        if len(item.title) + len(item.body) < self.min_content_length:
            return False
        if self.exclude_keywords:
            text = f"{item.title} {item.body} {item.community or ''}".lower()
            if any(keyword in text for keyword in self.exclude_keywords):
                return False
        return True

    # ── subclass hooks ───────────────────────────────────────────────

    @abstractmethod
    async def _request(self, client: httpx.AsyncClient, phrase: str) -> httpx.Response:
        """Issue the search call for one expanded template."""

    @abstractmethod
    def _entries(self, payload: Any) -> list[Any]:
        """Pull the list of raw result entries out of a decoded payload."""

    @abstractmethod
    def _to_item(self, entry: Any) -> RawItem | None:
        ...

    async def _fetch_comments(self, client: httpx.AsyncClient, item: RawItem) -> list[str]:
        return []

    # ── internals ────────────────────────────────────────────────────

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(
            headers={"User-Agent": settings.USER_AGENT},
            follow_redirects=True,
            timeout=self._timeout,
        ) as client:
            yield client

    def _failure(
        self, kind: FailureKind, detail: str = "", status_code: int | None = None
    ) -> CallResult:
        return CallResult(
            failure=SourceFailure(
                source=self.source_name, kind=kind, detail=detail, status_code=status_code
            )
        )

    async def _call(self, client: httpx.AsyncClient, phrase: str) -> CallResult:
        try:
            response = await self._request(client, phrase)
        except httpx.HTTPError as exc:
            return self._failure(FailureKind.NETWORK, str(exc) or type(exc).__name__)

        if response.status_code in _THROTTLE_STATUSES:
            return self._failure(FailureKind.RATE_LIMITED, status_code=response.status_code)
        if not response.is_success:
            return self._failure(FailureKind.HTTP, status_code=response.status_code)

        try:
            entries = self._entries(response.json())
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            return self._failure(FailureKind.PARSE, str(exc))

        items: list[RawItem] = []
        for entry in entries:
            try:
                item = self._to_item(entry)
            except (ValueError, KeyError, TypeError, AttributeError) as exc:
                log.debug("%s: skipping malformed entry: %s", self.source_name, exc)
                continue
            if item is not None:
                items.append(item)
        return CallResult(items=items)

    async def _deep_scan(self, client: httpx.AsyncClient, items: list[RawItem]) -> None:
        targets = sorted(items, key=lambda i: i.engagement_rank, reverse=True)
        targets = targets[: self._deep_scan_limit]
        if not targets:
            return
        results = await asyncio.gather(*(self._safe_comments(client, item) for item in targets))
        scanned = 0
        for item, comments in zip(targets, results):
            item.top_comments = comments
            scanned += bool(comments)
        log.info("%s: deep scan filled comments for %d/%d items", self.source_name, scanned, len(targets))

    async def _safe_comments(self, client: httpx.AsyncClient, item: RawItem) -> list[str]:
        try:
            return await self._fetch_comments(client, item)
        except Exception as exc:
            log.debug("%s: deep scan failed for %s: %s", self.source_name, item.id, exc)
            return []

    async def _get_json(self, client: httpx.AsyncClient, url: str, **kwargs: Any) -> Any:
        resp = await client.get(url, **kwargs)
        resp.raise_for_status()
        return resp.json()

    def _own(self, items: list[RawItem]) -> list[RawItem]:
        return [item for item in items if item.source_name == self.source_name]

    def _community_breakdown(
        self,
        items: list[RawItem],
        limit: int,
        label: Callable[[str], str],
        url: Callable[[str], str],
    ) -> list[BreakdownItem]:
        counts = Counter(item.community for item in self._own(items) if item.community)
        return [
            BreakdownItem(label=label(name), url=url(name), count=count)
            for name, count in counts.most_common(limit)
        ]
