"""Hacker News connector (Q&A aggregator) via the Algolia search API."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from analysis.text import clean_markup
from config.settings import settings
from core.models import BreakdownItem, RawItem, SourceKind
from sources.base import BaseConnector, from_unix

ALGOLIA_URL = "https://hn.algolia.com/api/v1"


class HackerNewsConnector(BaseConnector):
    source_name = "hackernews"
    source_kind = SourceKind.QA
    display_name = "Hacker News"
    breakdown_title = "Top Discussions"

    intent_templates = (
        "best {q}",
        "{q} alternative",
        "alternative to {q}",
        "{q} pricing",
        "recommend {q}",
        "problem with {q}",
        "looking for {q}",
    )
    max_templates = 4
    min_title_length = 20
    supports_deep_scan = True

    def __init__(self, client: httpx.AsyncClient | None = None, *, window_days: int | None = None, **kwargs: Any) -> None:
        super().__init__(client, **kwargs)
        self._window_days = window_days or settings.HN_WINDOW_DAYS

    def passes_quality(self, item: RawItem) -> bool:
        if item.engagement_score < 2 and item.comment_count < 2:
            return False
        return super().passes_quality(item)

    async def _request(self, client: httpx.AsyncClient, phrase: str) -> httpx.Response:
        since = datetime.now(timezone.utc) - timedelta(days=self._window_days)
        return await client.get(
            f"{ALGOLIA_URL}/search",
            params={
                "query": phrase,
                "tags": "story",
                "hitsPerPage": 50,
                "numericFilters": f"created_at_i>{int(since.timestamp())}",
            },
        )

    def _entries(self, payload: Any) -> list[Any]:
        return payload["hits"]

    def _to_item(self, entry: Any) -> RawItem | None:
        object_id = entry["objectID"]
        return RawItem(
            id=f"hn-{object_id}",
            title=(entry.get("title") or "").strip(),
            body=clean_markup(entry.get("story_text") or ""),
            url=entry.get("url") or f"https://news.ycombinator.com/item?id={object_id}",
            source=self.source_kind,
            source_name=self.source_name,
            engagement_score=max(int(entry.get("points") or 0), 0),
            comment_count=max(int(entry.get("num_comments") or 0), 0),
            created_at=from_unix(entry["created_at_i"]),
            author=entry.get("author"),
            extra={"native_id": object_id},
        )

    async def _fetch_comments(self, client: httpx.AsyncClient, item: RawItem) -> list[str]:
        native_id = item.extra.get("native_id") or item.id.removeprefix("hn-")
        data = await self._get_json(client, f"{ALGOLIA_URL}/items/{native_id}")
        comments: list[str] = []
        for child in data.get("children", [])[:15]:
            text = clean_markup(child.get("text") or "")
            if text:
                comments.append(text)
        return comments

    def breakdown(self, items: list[RawItem]) -> list[BreakdownItem]:
        threads = sorted(self._own(items), key=lambda i: i.engagement_score, reverse=True)[:10]
        return [
            BreakdownItem(
                label=item.title if len(item.title) <= 50 else item.title[:47] + "...",
                url=item.url,
                count=item.engagement_score,
            )
            for item in threads
        ]
