"""Static keyword buckets: the deterministic theming strategy."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from analysis.phrases import extract_top_phrases, representative_quotes, source_links
from core.models import RawItem, Theme


@dataclass(frozen=True)
class Bucket:
    title: str
    keywords: tuple[str, ...]


BUCKETS = (
    Bucket(
        "Alternatives & Competitors",
        ("alternative", "competitor", " vs ", "versus", "switch from", "replace", "similar to", "better than"),
    ),
    Bucket(
        "Pricing & Cost",
        (
            "pricing", "cost", "price", "expensive", "cheap", "free plan", "subscription",
            "lifetime", "payment", "billing", "afford",
        ),
    ),
    Bucket(
        "Setup & How-To",
        (
            "how to", "how do", "setup", "set up", "install", "configure", "tutorial",
            "guide", "documentation", "api", "sdk", "integration",
        ),
    ),
)
CATCH_ALL = "Discussions & Opinions"


def _passes_engagement_bar(item: RawItem) -> bool:
    try:
        return item.engagement_score >= 2 or item.comment_count >= 2
    except TypeError:
        return False


def assign_buckets(items: Sequence[RawItem]) -> dict[str, list[RawItem]]:
    """First matching bucket wins; unmatched low-engagement items are left out."""
    assigned: dict[str, list[RawItem]] = {b.title: [] for b in BUCKETS}
    assigned[CATCH_ALL] = []
    for item in items:
        text = f" {item.text.lower()} "
        for bucket in BUCKETS:
            if any(keyword in text for keyword in bucket.keywords):
                assigned[bucket.title].append(item)
                break
        else:
            if _passes_engagement_bar(item):
                assigned[CATCH_ALL].append(item)
    return assigned


def bucket_themes(items: Sequence[RawItem]) -> list[Theme]:
    if not items:
        return []
    total = len(items)
    themes = []
    for title, members in assign_buckets(items).items():
        if not members:
            continue
        themes.append(
            Theme(
                title=title,
                share=round(len(members) / total * 100),
                quotes=representative_quotes(members),
                sources=source_links(members),
                keywords=[p.phrase for p in extract_top_phrases(members, limit=5)],
                member_ids=[m.id for m in members],
            )
        )
    themes.sort(key=lambda t: t.share, reverse=True)
    return themes
