"""Dev.to connector (article feed).

Dev.to has no free-text search, so the query is expanded into tag lists
instead of intent phrases: all query words together, then the first word
alone for broader coverage.
"""

from __future__ import annotations

import re
from typing import Any

import httpx

from analysis.text import clean_markup
from core.models import BreakdownItem, RawItem, SourceKind
from sources.base import BaseConnector, from_iso

DEVTO_URL = "https://dev.to/api"

_NON_TAG_RE = re.compile(r"[^a-z0-9]")


class DevToConnector(BaseConnector):
    source_name = "devto"
    source_kind = SourceKind.ARTICLE_FEED
    display_name = "Dev.to"
    breakdown_title = "Top Tags"

    min_title_length = 15
    supports_deep_scan = True

    def expand_query(self, query: str) -> list[str]:
        words = [_NON_TAG_RE.sub("", w) for w in query.lower().split()]
        tags = [w for w in words if len(w) > 2]
        if not tags:
            return []
        expansions = [",".join(tags)]
        if len(tags) > 1:
            expansions.append(tags[0])
        return expansions

    async def _request(self, client: httpx.AsyncClient, phrase: str) -> httpx.Response:
        return await client.get(
            f"{DEVTO_URL}/articles",
            params={"per_page": 30, "tag": phrase},
            headers={"Accept": "application/json"},
        )

    def _entries(self, payload: Any) -> list[Any]:
        if not isinstance(payload, list):
            raise TypeError("expected a list of articles")
        return payload

    def _to_item(self, entry: Any) -> RawItem | None:
        tags = entry.get("tag_list") or []
        if isinstance(tags, str):
            tags = [t.strip() for t in tags.split(",") if t.strip()]
        return RawItem(
            id=f"devto-{entry['id']}",
            title=(entry.get("title") or "").strip(),
            body=(entry.get("description") or "").strip(),
            url=entry["url"],
            source=self.source_kind,
            source_name=self.source_name,
            engagement_score=max(int(entry.get("positive_reactions_count") or 0), 0),
            comment_count=max(int(entry.get("comments_count") or 0), 0),
            created_at=from_iso(entry["published_at"]),
            community=tags[0] if tags else "general",
            author=(entry.get("user") or {}).get("username"),
            extra={"native_id": entry["id"]},
        )

    async def _fetch_comments(self, client: httpx.AsyncClient, item: RawItem) -> list[str]:
        if item.comment_count == 0:
            return []
        native_id = item.extra.get("native_id") or item.id.removeprefix("devto-")
        data = await self._get_json(client, f"{DEVTO_URL}/comments", params={"a_id": native_id})
        comments: list[str] = []
        for comment in data[:15]:
            text = clean_markup(comment.get("body_html") or "")
            if text:
                comments.append(text)
        return comments

    def breakdown(self, items: list[RawItem]) -> list[BreakdownItem]:
        return self._community_breakdown(
            items,
            limit=5,
            label=lambda tag: f"#{tag}",
            url=lambda tag: f"https://dev.to/t/{tag}",
        )
