from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any


class SourceKind(str, Enum):
    FORUM = "forum"
    QA = "qa"
    ISSUE_TRACKER = "issue-tracker"
    ARTICLE_FEED = "article-feed"
    WEB_SEARCH = "web-search"


@dataclass
class RawItem:
    """A single piece of external content normalised from any connector."""

    id: str  # source-prefixed, e.g. "reddit-abc123"
    title: str
    body: str
    url: str
    source: SourceKind
    source_name: str  # connector name: "reddit", "hackernews", ...
    engagement_score: int
    comment_count: int
    created_at: datetime | None
    community: str | None = None  # subreddit / repo / tag / domain
    author: str | None = None
    top_comments: list[str] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return f"{self.title} {self.body}"

    @property
    def engagement_rank(self) -> int:
        return self.engagement_score + 2 * self.comment_count


@dataclass
class ScoredItem(RawItem):
    pain_score: float = 0.0
    buyer_score: float = 0.0
    engagement_weight: float = 0.0
    semantic_relevance: float | None = None

    @classmethod
    def from_raw(cls, item: RawItem, **scores: Any) -> ScoredItem:
        values = {f.name: getattr(item, f.name) for f in fields(RawItem)}
        values.update(scores)
        return cls(**values)


class FailureKind(str, Enum):
    NETWORK = "network"
    HTTP = "http"
    RATE_LIMITED = "rate_limited"
    PARSE = "parse"
    NOT_CONFIGURED = "not_configured"
    CRASH = "crash"  # connector raised instead of returning an outcome


@dataclass
class SourceFailure:
    source: str
    kind: FailureKind
    detail: str = ""
    status_code: int | None = None

    def __str__(self) -> str:
        status = f" HTTP {self.status_code}" if self.status_code else ""
        return f"{self.source}: {self.kind.value}{status} {self.detail}".strip()


@dataclass
class CallResult:
    """Outcome of one external call: items or a failure, never both."""

    items: list[RawItem] = field(default_factory=list)
    failure: SourceFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass
class FetchOutcome:
    """Outcome of a full connector fetch for one query."""

    source: str
    items: list[RawItem]
    failures: list[SourceFailure]
    duration_seconds: float

    @property
    def status(self) -> str:
        if not self.failures:
            return "success"
        if self.items:
            return "partial"
        return "failed"


@dataclass
class BreakdownItem:
    label: str
    url: str
    count: int

    def to_dict(self) -> dict:
        return {"label": self.label, "url": self.url, "count": self.count}


@dataclass
class SourceLink:
    title: str
    url: str
    source: str

    def to_dict(self) -> dict:
        return {"title": self.title, "url": self.url, "source": self.source}


@dataclass
class Theme:
    title: str
    share: int
    quotes: list[str]
    sources: list[SourceLink]
    keywords: list[str] = field(default_factory=list)
    member_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "share": self.share,
            "quotes": list(self.quotes),
            "sources": [s.to_dict() for s in self.sources],
            "keywords": list(self.keywords),
        }


@dataclass
class TopPhrase:
    phrase: str
    count: int


@dataclass
class PainSpike:
    weekly_volume: int
    monthly_volume: int
    delta_percent: int


@dataclass
class PulseStats:
    pain_index: int
    opportunity_score: int
    volume: int


@dataclass
class BuildIdea:
    name: str
    value_prop: str
    target_user: str


@dataclass
class Report:
    """Terminal artifact of one pipeline run."""

    query: str
    slug: str
    created_at: datetime
    updated_at: datetime
    window_days: int
    stats: PulseStats
    pain_spike: PainSpike
    top_phrases: list[TopPhrase] = field(default_factory=list)
    themes: list[Theme] = field(default_factory=list)
    source_breakdown: dict[str, list[BreakdownItem]] = field(default_factory=dict)
    build_ideas: list[BuildIdea] = field(default_factory=list)
    frictions: list[str] = field(default_factory=list)
    pain_receipts: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "slug": self.slug,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "window_days": self.window_days,
            "stats": {
                "pain_index": self.stats.pain_index,
                "opportunity_score": self.stats.opportunity_score,
                "volume": self.stats.volume,
            },
            "pain_spike": {
                "weekly_volume": self.pain_spike.weekly_volume,
                "monthly_volume": self.pain_spike.monthly_volume,
                "delta_percent": self.pain_spike.delta_percent,
            },
            "top_phrases": [{"phrase": p.phrase, "count": p.count} for p in self.top_phrases],
            "themes": [t.to_dict() for t in self.themes],
            "source_breakdown": {
                name: [b.to_dict() for b in items]
                for name, items in self.source_breakdown.items()
            },
            "build_ideas": [
                {"name": i.name, "value_prop": i.value_prop, "target_user": i.target_user}
                for i in self.build_ideas
            ],
            "frictions": list(self.frictions),
            "pain_receipts": list(self.pain_receipts),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Report:
        return cls(
            query=data["query"],
            slug=data["slug"],
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            window_days=int(data.get("window_days", 7)),
            stats=PulseStats(**data["stats"]),
            pain_spike=PainSpike(**data["pain_spike"]),
            top_phrases=[TopPhrase(**p) for p in data.get("top_phrases", [])],
            themes=[
                Theme(
                    title=t["title"],
                    share=int(t["share"]),
                    quotes=list(t.get("quotes", [])),
                    sources=[SourceLink(**s) for s in t.get("sources", [])],
                    keywords=list(t.get("keywords", [])),
                )
                for t in data.get("themes", [])
            ],
            source_breakdown={
                name: [BreakdownItem(**b) for b in items]
                for name, items in data.get("source_breakdown", {}).items()
            },
            build_ideas=[BuildIdea(**i) for i in data.get("build_ideas", [])],
            frictions=list(data.get("frictions", [])),
            pain_receipts=list(data.get("pain_receipts", [])),
        )
