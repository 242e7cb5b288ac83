"""Reddit search connector (forum) using httpx against the public JSON API."""

from __future__ import annotations

from typing import Any

import httpx

from analysis.text import clean_markup
from config.settings import settings
from core.models import BreakdownItem, RawItem, SourceKind
from sources.base import BaseConnector, from_unix

_REMOVED_BODIES = frozenset({"[deleted]", "[removed]"})


class RedditConnector(BaseConnector):
    source_name = "reddit"
    source_kind = SourceKind.FORUM
    display_name = "Reddit"
    breakdown_title = "Top Subreddits"

    intent_templates = (
        "best {q}",
        "{q} alternative",
        "alternative to {q}",
        "{q} pricing",
        "{q} too expensive",
        "looking for {q}",
        "recommend {q}",
        "tool for {q}",
        "how do you {q}",
    )
    max_templates = 6
    min_title_length = 10
    exclude_keywords = (
        "lol",
        "lmao",
        "meme",
        "shitpost",
        "circlejerk",
        "copypasta",
        "satire",
        "joke",
        "funny",
        "haha",
    )
    supports_deep_scan = True

    def __init__(self, client: httpx.AsyncClient | None = None, *, time_filter: str | None = None, **kwargs: Any) -> None:
        super().__init__(client, **kwargs)
        self._time_filter = time_filter or settings.REDDIT_TIME_FILTER

    def passes_quality(self, item: RawItem) -> bool:
        if not super().passes_quality(item):
            return False
        # Title-only link posts need a substantial title to carry any signal.
        if len(item.title) + len(item.body) < 80 and len(item.body) < 20:
            return False
        return True

    async def _request(self, client: httpx.AsyncClient, phrase: str) -> httpx.Response:
        return await client.get(
            "https://www.reddit.com/search.json",
            params={
                "q": phrase,
                "sort": "relevance",
                "t": self._time_filter,
                "limit": 50,
                "raw_json": 1,
            },
        )

    def _entries(self, payload: Any) -> list[Any]:
        return payload["data"]["children"]

    def _to_item(self, entry: Any) -> RawItem | None:
        post = entry["data"]
        native_id = post.get("id")
        if not native_id or not post.get("title"):
            return None
        return RawItem(
            id=f"reddit-{native_id}",
            title=post["title"].strip(),
            body=(post.get("selftext") or "").strip()[:4000],
            url=f"https://reddit.com{post.get('permalink', '')}",
            source=self.source_kind,
            source_name=self.source_name,
            engagement_score=max(int(post.get("score", 0)), 0),
            comment_count=max(int(post.get("num_comments", 0)), 0),
            created_at=from_unix(post.get("created_utc", 0)),
            community=post.get("subreddit"),
            author=post.get("author", "[deleted]"),
            extra={"native_id": native_id, "is_self": bool(post.get("is_self", False))},
        )

    async def _fetch_comments(self, client: httpx.AsyncClient, item: RawItem) -> list[str]:
        native_id = item.extra.get("native_id") or item.id.removeprefix("reddit-")
        data = await self._get_json(
            client,
            f"https://www.reddit.com/comments/{native_id}.json",
            params={"limit": 15, "sort": "top", "raw_json": 1},
        )
        # Listing 0 is the post itself, listing 1 holds the comment tree.
        if not isinstance(data, list) or len(data) < 2:
            return []
        comments: list[str] = []
        for child in data[1].get("data", {}).get("children", []):
            body = (child.get("data", {}).get("body") or "").strip()
            if not body or body in _REMOVED_BODIES:
                continue
            comments.append(clean_markup(body))
        return comments

    def breakdown(self, items: list[RawItem]) -> list[BreakdownItem]:
        return self._community_breakdown(
            items,
            limit=10,
            label=lambda sub: f"r/{sub}",
            url=lambda sub: f"https://reddit.com/r/{sub}",
        )
