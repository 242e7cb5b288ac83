from __future__ import annotations

import json
import unittest

import httpx

from core.models import FailureKind
from sources.devto import DevToConnector
from sources.github import GitHubConnector
from sources.hackernews import HackerNewsConnector
from sources.reddit import RedditConnector
from sources.registry import build_connectors
from sources.serper import SerperConnector, parse_serp_date
from fakes import NOW

LONG_BODY = "We have been using it for a year and the export keeps timing out on large boards."


def reddit_post(native_id: str, title: str, body: str = LONG_BODY, *, score: int = 12, comments: int = 4, sub: str = "saas") -> dict:
    return {
        "kind": "t3",
        "data": {
            "id": native_id,
            "title": title,
            "selftext": body,
            "permalink": f"/r/{sub}/comments/{native_id}/x/",
            "score": score,
            "num_comments": comments,
            "created_utc": 1767225600,
            "subreddit": sub,
            "author": "someone",
            "is_self": True,
        },
    }


def reddit_listing(*posts: dict) -> dict:
    return {"kind": "Listing", "data": {"children": list(posts)}}


def client_for(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class RedditConnectorTests(unittest.IsolatedAsyncioTestCase):
    async def test_rate_limit_aborts_remaining_templates(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/search.json":
                calls.append(request.url.params["q"])
                if len(calls) == 2:
                    return httpx.Response(429)
                return httpx.Response(
                    200, json=reddit_listing(reddit_post("p1", "Best CRM for a two person agency"))
                )
            self.fail(f"deep scan should be skipped, got {request.url}")

        async with client_for(handler) as client:
            connector = RedditConnector(client, delay_seconds=0)
            outcome = await connector.collect("crm")

        self.assertEqual(calls, ["best crm", "crm alternative"])
        self.assertEqual([i.id for i in outcome.items], ["reddit-p1"])
        self.assertEqual(outcome.status, "partial")
        self.assertEqual(outcome.failures[0].kind, FailureKind.RATE_LIMITED)
        self.assertEqual(outcome.failures[0].status_code, 429)

    async def test_merges_filters_and_deep_scans(self) -> None:
        listing = reddit_listing(
            reddit_post("p1", "Best CRM for a two person agency", sub="smallbusiness"),
            reddit_post("p2", "CRM pricing is out of control", sub="saas", score=40),
            reddit_post("p3", "crm lol", body="", sub="saas"),
            reddit_post("p4", "This CRM meme made my day", sub="saas"),
        )

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/search.json":
                return httpx.Response(200, json=listing)
            if request.url.path.startswith("/comments/"):
                return httpx.Response(
                    200,
                    json=[
                        reddit_listing(),
                        reddit_listing(
                            {"kind": "t1", "data": {"body": "The **per seat** pricing killed it for us"}},
                            {"kind": "t1", "data": {"body": "[deleted]"}},
                        ),
                    ],
                )
            return httpx.Response(404)

        async with client_for(handler) as client:
            connector = RedditConnector(client, delay_seconds=0)
            outcome = await connector.collect("crm")

        self.assertEqual(outcome.status, "success")
        self.assertEqual([i.id for i in outcome.items], ["reddit-p1", "reddit-p2"])
        for item in outcome.items:
            self.assertEqual(item.top_comments, ["The per seat pricing killed it for us"])
            self.assertEqual(item.source_name, "reddit")

        breakdown = connector.breakdown(outcome.items)
        self.assertEqual([b.label for b in breakdown], ["r/smallbusiness", "r/saas"])
        self.assertEqual(breakdown[0].url, "https://reddit.com/r/smallbusiness")

    async def test_failed_deep_scan_leaves_comments_empty(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/search.json":
                return httpx.Response(
                    200, json=reddit_listing(reddit_post("p1", "Best CRM for a two person agency"))
                )
            return httpx.Response(500)

        async with client_for(handler) as client:
            outcome = await RedditConnector(client, delay_seconds=0).collect("crm")

        self.assertEqual(len(outcome.items), 1)
        self.assertEqual(outcome.items[0].top_comments, [])

    async def test_network_and_parse_failures_are_contained(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.params.get("q"))
            if len(calls) == 1:
                raise httpx.ConnectError("boom", request=request)
            if len(calls) == 2:
                return httpx.Response(200, content=b"<html>not json</html>")
            if len(calls) == 3:
                return httpx.Response(200, json={"unexpected": True})
            if len(calls) == 4:
                return httpx.Response(502)
            return httpx.Response(200, json=reddit_listing())

        async with client_for(handler) as client:
            outcome = await RedditConnector(client, delay_seconds=0, deep_scan_limit=0).collect("crm")

        kinds = [f.kind for f in outcome.failures]
        self.assertEqual(
            kinds, [FailureKind.NETWORK, FailureKind.PARSE, FailureKind.PARSE, FailureKind.HTTP]
        )
        self.assertEqual(len(calls), 6)
        self.assertEqual(outcome.status, "failed")

    async def test_fetch_never_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise RuntimeError("unexpected")

        async with client_for(handler) as client:
            items = await RedditConnector(client, delay_seconds=0).fetch("crm")

        self.assertEqual(items, [])


class HackerNewsConnectorTests(unittest.IsolatedAsyncioTestCase):
    async def test_quality_filters_and_breakdown(self) -> None:
        hits = [
            {
                "objectID": "1",
                "title": "Ask HN: What CRM do you actually enjoy using?",
                "points": 80,
                "num_comments": 40,
                "created_at_i": 1767225600,
                "url": None,
                "story_text": "<p>Our team outgrew spreadsheets &amp; email.</p>",
            },
            {
                "objectID": "2",
                "title": "Show HN: Yet another tiny CRM side project",
                "points": 1,
                "num_comments": 0,
                "created_at_i": 1767225600,
            },
            {"objectID": "3", "title": "CRM?", "points": 50, "num_comments": 10, "created_at_i": 1767225600},
        ]
        seen_params = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/v1/search":
                seen_params.append(dict(request.url.params))
                return httpx.Response(200, json={"hits": hits})
            if request.url.path == "/api/v1/items/1":
                return httpx.Response(
                    200, json={"children": [{"text": "<i>Pipedrive</i> was fine until pricing changed"}, {"text": None}]}
                )
            return httpx.Response(404)

        async with client_for(handler) as client:
            connector = HackerNewsConnector(client, delay_seconds=0)
            outcome = await connector.collect("crm")

        self.assertEqual(len(seen_params), 4)
        self.assertEqual(seen_params[0]["tags"], "story")
        self.assertTrue(seen_params[0]["numericFilters"].startswith("created_at_i>"))

        [item] = outcome.items
        self.assertEqual(item.id, "hn-1")
        self.assertEqual(item.url, "https://news.ycombinator.com/item?id=1")
        self.assertEqual(item.body, "Our team outgrew spreadsheets & email.")
        self.assertEqual(item.top_comments, ["Pipedrive was fine until pricing changed"])

        [entry] = connector.breakdown(outcome.items)
        self.assertEqual(entry.count, 80)
        self.assertEqual(entry.label, "Ask HN: What CRM do you actually enjoy using?")


class GitHubConnectorTests(unittest.IsolatedAsyncioTestCase):
    async def test_issue_search(self) -> None:
        def issue(issue_id: int, title: str, reactions: int, comments: int) -> dict:
            return {
                "id": issue_id,
                "title": title,
                "body": "Steps to reproduce...",
                "html_url": f"https://github.com/acme/crm/issues/{issue_id}",
                "repository_url": "https://api.github.com/repos/acme/crm",
                "comments_url": f"https://api.github.com/repos/acme/crm/issues/{issue_id}/comments",
                "reactions": {"total_count": reactions},
                "comments": comments,
                "created_at": "2026-02-20T10:00:00Z",
                "user": {"login": "dev"},
            }

        headers_seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            headers_seen.append(request.headers.get("authorization"))
            if request.url.path == "/search/issues":
                self.assertIn("in:title type:issue state:open", request.url.params["q"])
                return httpx.Response(
                    200,
                    json={"items": [issue(1, "Sync bug drops contacts on import", 5, 2), issue(2, "Import is broken for CSV", 0, 0)]},
                )
            if request.url.path.endswith("/comments"):
                return httpx.Response(200, json=[{"body": "Same here, **still** broken"}])
            return httpx.Response(404)

        async with client_for(handler) as client:
            connector = GitHubConnector(client, delay_seconds=0, token="secret")
            outcome = await connector.collect("crm")

        self.assertEqual([i.id for i in outcome.items], ["gh-1"])
        item = outcome.items[0]
        self.assertEqual(item.community, "acme/crm")
        self.assertEqual(item.top_comments, ["Same here, still broken"])
        self.assertIsNotNone(item.created_at.tzinfo)
        self.assertTrue(all(h == "Bearer secret" for h in headers_seen))
        self.assertEqual(connector.breakdown(outcome.items)[0].url, "https://github.com/acme/crm")

    async def test_forbidden_aborts_remaining_templates(self) -> None:
        calls = []
        other = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/search/issues":
                calls.append(request.url.params["q"].split(" in:title")[0])
                if len(calls) == 2:
                    return httpx.Response(403, json={"message": "API rate limit exceeded"})
                return httpx.Response(
                    200,
                    json={
                        "items": [
                            {
                                "id": 9,
                                "title": "Sync bug drops contacts on import",
                                "body": "Steps to reproduce...",
                                "html_url": "https://github.com/acme/crm/issues/9",
                                "repository_url": "https://api.github.com/repos/acme/crm",
                                "comments_url": "https://api.github.com/repos/acme/crm/issues/9/comments",
                                "reactions": {"total_count": 3},
                                "comments": 4,
                                "created_at": "2026-02-20T10:00:00Z",
                            }
                        ]
                    },
                )
            other.append(str(request.url))
            return httpx.Response(200, json=[{"body": "me too"}])

        async with client_for(handler) as client:
            outcome = await GitHubConnector(client, delay_seconds=0, token="").collect("crm")

        self.assertEqual(calls, ["crm bug", "crm broken"])
        self.assertEqual(other, [])
        self.assertEqual(outcome.status, "partial")
        self.assertEqual([i.id for i in outcome.items], ["gh-9"])
        self.assertEqual(outcome.items[0].top_comments, [])
        self.assertEqual(len(outcome.failures), 1)
        self.assertIs(outcome.failures[0].kind, FailureKind.RATE_LIMITED)
        self.assertEqual(outcome.failures[0].status_code, 403)


class DevToConnectorTests(unittest.IsolatedAsyncioTestCase):
    def test_query_becomes_tag_lists(self) -> None:
        connector = DevToConnector()
        self.assertEqual(connector.expand_query("Note taking app"), ["note,taking,app", "note"])
        self.assertEqual(connector.expand_query("CI"), [])

    async def test_articles_and_comments(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/articles":
                return httpx.Response(
                    200,
                    json=[
                        {
                            "id": 7,
                            "title": "Why I stopped using note taking apps",
                            "description": "A tale of sync conflicts",
                            "url": "https://dev.to/x/why-7",
                            "positive_reactions_count": 30,
                            "comments_count": 2,
                            "published_at": "2026-02-25T08:00:00Z",
                            "tag_list": ["productivity", "notes"],
                        }
                    ],
                )
            if request.url.path == "/api/comments":
                self.assertEqual(request.url.params["a_id"], "7")
                return httpx.Response(200, json=[{"body_html": "<p>Same, Obsidian sync ate my notes</p>"}])
            return httpx.Response(404)

        async with client_for(handler) as client:
            connector = DevToConnector(client, delay_seconds=0)
            outcome = await connector.collect("note taking")

        [item] = outcome.items
        self.assertEqual(item.community, "productivity")
        self.assertEqual(item.top_comments, ["Same, Obsidian sync ate my notes"])
        self.assertEqual(connector.breakdown(outcome.items)[0].label, "#productivity")


class SerperConnectorTests(unittest.IsolatedAsyncioTestCase):
    async def test_missing_key_is_not_configured(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            self.fail("no request expected without an API key")

        async with client_for(handler) as client:
            outcome = await SerperConnector(client, api_key="").collect("crm")

        self.assertEqual(outcome.items, [])
        self.assertEqual(outcome.failures[0].kind, FailureKind.NOT_CONFIGURED)
        self.assertEqual(outcome.status, "failed")

    async def test_search_results(self) -> None:
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual(request.method, "POST")
            self.assertEqual(request.headers["x-api-key"], "k")
            bodies.append(json.loads(request.content))
            return httpx.Response(
                200,
                json={
                    "organic": [
                        {
                            "title": "The 7 biggest CRM complaints in 2026",
                            "link": "https://www.example.com/crm-complaints",
                            "snippet": "Users hate the pricing.",
                            "position": 1,
                            "date": "3 days ago",
                        }
                    ]
                },
            )

        async with client_for(handler) as client:
            connector = SerperConnector(client, api_key="k", delay_seconds=0)
            outcome = await connector.collect("crm")

        self.assertEqual([b["q"] for b in bodies], ["crm", "crm problem", "crm issue"])
        [item] = outcome.items
        self.assertTrue(item.id.startswith("serp-"))
        self.assertEqual(item.community, "example.com")
        self.assertEqual(item.engagement_score, 29)
        self.assertEqual(connector.breakdown(outcome.items)[0].label, "example.com")

    def test_parse_serp_date(self) -> None:
        self.assertEqual((NOW - parse_serp_date("2 weeks ago", NOW)).days, 14)
        self.assertEqual(parse_serp_date("Jan 5, 2026", NOW).day, 5)
        self.assertEqual(parse_serp_date("sometime", NOW), NOW)
        self.assertEqual(parse_serp_date(None, NOW), NOW)


class RegistryTests(unittest.TestCase):
    def test_unknown_sources_ignored(self) -> None:
        connectors = build_connectors(["reddit", "myspace", "serper"])
        self.assertEqual([c.source_name for c in connectors], ["reddit", "serper"])


if __name__ == "__main__":
    unittest.main()
