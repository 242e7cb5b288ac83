"""Generic web search connector backed by the Serper.dev Google SERP API."""

from __future__ import annotations

import hashlib
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlparse

import httpx

from config.settings import settings
from core.models import BreakdownItem, FailureKind, FetchOutcome, RawItem, SourceFailure, SourceKind
from sources.base import BaseConnector

log = logging.getLogger(__name__)

SERPER_URL = "https://google.serper.dev/search"

_RELATIVE_DATE_RE = re.compile(r"(\d+)\s+(minute|hour|day|week|month|year)s?\s+ago", re.I)
_UNIT_DAYS = {
    "minute": 1 / 1440,
    "hour": 1 / 24,
    "day": 1,
    "week": 7,
    "month": 30,
    "year": 365,
}


def parse_serp_date(value: str | None, now: datetime | None = None) -> datetime:
    """Best-effort parse of SERP dates ("3 days ago", "Jan 5, 2024")."""
    now = now or datetime.now(timezone.utc)
    if not value:
        return now
    match = _RELATIVE_DATE_RE.search(value)
    if match:
        amount, unit = int(match.group(1)), match.group(2).lower()
        return now - timedelta(days=amount * _UNIT_DAYS[unit])
    for fmt in ("%b %d, %Y", "%d %b %Y", "%Y-%m-%d"):
        try:
            return datetime.strptime(value.strip(), fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return now


def _domain(url: str) -> str:
    hostname = urlparse(url).hostname or ""
    return hostname.removeprefix("www.") or "unknown"


class SerperConnector(BaseConnector):
    source_name = "serper"
    source_kind = SourceKind.WEB_SEARCH
    display_name = "Google SERP"
    breakdown_title = "Top Domains"

    intent_templates = ("{q}", "{q} problem", "{q} issue", '"{q}" frustrating')
    max_templates = 3
    min_title_length = 15

    def __init__(self, client: httpx.AsyncClient | None = None, *, api_key: str | None = None, **kwargs: Any) -> None:
        super().__init__(client, **kwargs)
        self._api_key = settings.SERPER_API_KEY if api_key is None else api_key

    async def collect(self, query: str) -> FetchOutcome:
        if not self._api_key:
            log.warning("Serper: SERPER_API_KEY not set, skipping web search")
            return FetchOutcome(
                source=self.source_name,
                items=[],
                failures=[
                    SourceFailure(
                        source=self.source_name,
                        kind=FailureKind.NOT_CONFIGURED,
                        detail="SERPER_API_KEY not set",
                    )
                ],
                duration_seconds=0.0,
            )
        return await super().collect(query)

    async def _request(self, client: httpx.AsyncClient, phrase: str) -> httpx.Response:
        return await client.post(
            SERPER_URL,
            json={"q": phrase, "num": 30},
            headers={"X-API-KEY": self._api_key, "Content-Type": "application/json"},
        )

    def _entries(self, payload: Any) -> list[Any]:
        return payload.get("organic") or []

    def _to_item(self, entry: Any) -> RawItem | None:
        link = entry["link"]
        position = int(entry.get("position") or 30)
        return RawItem(
            id="serp-" + hashlib.md5(link.encode()).hexdigest()[:16],
            title=(entry.get("title") or "").strip(),
            body=(entry.get("snippet") or "").strip(),
            url=link,
            source=self.source_kind,
            source_name=self.source_name,
            # SERP has no votes; higher-ranked results stand in for engagement.
            engagement_score=max(30 - position, 1),
            comment_count=0,
            created_at=parse_serp_date(entry.get("date")),
            community=_domain(link),
            extra={"native_id": link, "position": position},
        )

    def breakdown(self, items: list[RawItem]) -> list[BreakdownItem]:
        return self._community_breakdown(
            items,
            limit=8,
            label=lambda domain: domain,
            url=lambda domain: f"https://{domain}",
        )
