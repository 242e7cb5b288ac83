"""GitHub Issues connector (issue tracker) via the REST search API."""

from __future__ import annotations

from typing import Any

import httpx

from analysis.text import clean_markup
from config.settings import settings
from core.models import BreakdownItem, RawItem, SourceKind
from sources.base import BaseConnector, from_iso


class GitHubConnector(BaseConnector):
    source_name = "github"
    source_kind = SourceKind.ISSUE_TRACKER
    display_name = "GitHub Issues"
    breakdown_title = "Top Repositories"

    # Pain-focused: explicit frustration language in issue titles.
    intent_templates = (
        "{q} bug",
        "{q} broken",
        "{q} not working",
        "{q} error",
        "{q} crash",
        "{q} issue",
        "{q} problem",
        "{q} fails",
    )
    max_templates = 4
    min_title_length = 15
    supports_deep_scan = True

    def __init__(self, client: httpx.AsyncClient | None = None, *, token: str | None = None, **kwargs: Any) -> None:
        super().__init__(client, **kwargs)
        self._token = settings.GITHUB_TOKEN if token is None else token

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github.v3+json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def passes_quality(self, item: RawItem) -> bool:
        if item.engagement_score == 0 and item.comment_count == 0:
            return False
        return super().passes_quality(item)

    async def _request(self, client: httpx.AsyncClient, phrase: str) -> httpx.Response:
        return await client.get(
            "https://api.github.com/search/issues",
            params={"q": f"{phrase} in:title type:issue state:open", "per_page": 20},
            headers=self._headers(),
        )

    def _entries(self, payload: Any) -> list[Any]:
        return payload["items"]

    def _to_item(self, entry: Any) -> RawItem | None:
        # "https://api.github.com/repos/owner/repo" -> "owner/repo"
        repo_url = entry.get("repository_url", "")
        repo = repo_url.split("/repos/", 1)[1] if "/repos/" in repo_url else None
        user = entry.get("user") or {}
        return RawItem(
            id=f"gh-{entry['id']}",
            title=(entry.get("title") or "").strip(),
            body=(entry.get("body") or "").strip()[:4000],
            url=entry["html_url"],
            source=self.source_kind,
            source_name=self.source_name,
            engagement_score=max(int((entry.get("reactions") or {}).get("total_count", 0)), 0),
            comment_count=max(int(entry.get("comments") or 0), 0),
            created_at=from_iso(entry["created_at"]),
            community=repo,
            author=user.get("login"),
            extra={"native_id": entry["id"], "comments_url": entry.get("comments_url")},
        )

    async def _fetch_comments(self, client: httpx.AsyncClient, item: RawItem) -> list[str]:
        comments_url = item.extra.get("comments_url")
        if not comments_url or item.comment_count == 0:
            return []
        data = await self._get_json(
            client, comments_url, params={"per_page": 10}, headers=self._headers()
        )
        return [clean_markup(c.get("body") or "") for c in data if c.get("body")]

    def breakdown(self, items: list[RawItem]) -> list[BreakdownItem]:
        return self._community_breakdown(
            items,
            limit=5,
            label=lambda repo: repo,
            url=lambda repo: f"https://github.com/{repo}",
        )
