"""Two-gate relevance filter: lexical blacklist, then semantic similarity."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from analysis.embeddings import EmbeddingModel
from config.settings import settings
from core.errors import EmbeddingUnavailable
from core.models import RawItem

log = logging.getLogger(__name__)

T = TypeVar("T", bound=RawItem)

ACADEMIC_PHRASES = (
    "take my exam", "take my online exam", "do my homework", "do my assignment",
    "write my essay", "take my class", "take my online class", "pay someone to take",
    "exam help", "assignment help",
)
MARKETPLACE_PHRASES = (
    "raffle", "escrow", "giveaway", "[wts]", "[wtb]", "[h]", "for sale",
    "selling my", "promo code", "referral code", "karma farm",
)
META_PHRASES = (
    "megathread", "daily thread", "weekly thread", "monthly thread",
    "automoderator", "shitpost", "circlejerk",
)
HIRING_PHRASES = ("[hiring]", "[for hire]", "we're hiring", "we are hiring", "for hire", "looking for work")

BLACKLIST = ACADEMIC_PHRASES + MARKETPLACE_PHRASES + META_PHRASES + HIRING_PHRASES


@dataclass(frozen=True)
class QueryCategory:
    name: str
    expansions: tuple[str, ...] = ()
    exclusions: tuple[str, ...] = ()


CATEGORIES = (
    QueryCategory(
        "note",
        expansions=(
            "note taking", "note-taking", "notetaking", "notes app", "onenote",
            "goodnotes", "obsidian", "notion", "evernote", "apple notes",
            "markdown notes", "second brain", "zettelkasten", "roam research",
            "logseq", "bear app", "joplin", "simplenote", "org-mode", "pkm",
            "personal knowledge",
        ),
    ),
    QueryCategory(
        "project",
        expansions=(
            "project management", "task management", "kanban", "gantt", "jira",
            "asana", "monday.com", "clickup", "trello", "basecamp", "linear",
            "shortcut", "teamwork", "wrike", "scrum", "agile", "sprint planning",
            "backlog",
        ),
    ),
    QueryCategory(
        "email",
        expansions=(
            "email automation", "email marketing", "newsletter", "mailchimp",
            "convertkit", "beehiiv", "substack", "buttondown", "smtp",
            "transactional email", "cold email", "email outreach", "sendgrid",
            "postmark", "mailgun", "resend",
        ),
    ),
    QueryCategory(
        "analytics",
        expansions=(
            "web analytics", "product analytics", "google analytics", "ga4",
            "plausible", "fathom", "umami", "mixpanel", "amplitude", "posthog",
            "heap", "segment", "tracking", "events", "funnels", "attribution",
            "user behavior", "session recording", "heatmap",
        ),
        exclusions=("mba", "iim", "admission", "degree"),
    ),
    QueryCategory(
        "password",
        expansions=(
            "password manager", "1password", "bitwarden", "lastpass", "dashlane",
            "keepass", "nordpass", "proton pass", "passkey", "2fa", "mfa",
            "authenticator",
        ),
    ),
    QueryCategory(
        "time",
        expansions=(
            "time tracking", "time tracker", "toggl", "clockify", "harvest",
            "timesheet", "pomodoro", "rescuetime", "timely", "billable hours",
            "freelancer time",
        ),
    ),
)

DEFAULT_CATEGORY = QueryCategory("default")


def find_category(query: str) -> QueryCategory:
    """Match a category by key word first, then by any of its expansion terms."""
    lowered = query.lower().strip()
    for category in CATEGORIES:
        if category.name in lowered:
            return category
    for category in CATEGORIES:
        for term in category.expansions:
            if term in lowered or lowered in term:
                return category
    return DEFAULT_CATEGORY


def calculate_relevance_score(item: RawItem, query: str, expansions: Sequence[str] = ()) -> int:
    text = item.text.lower()
    title = item.title.lower()
    query_lower = query.lower().strip()
    query_words = [w for w in query_lower.split() if len(w) > 2]

    score = 0
    if query_lower and query_lower in text:
        score += 5
    score += sum(1 for w in query_words if w in text)
    for term in expansions:
        if term in text:
            score += 3 if " " in term else 1
    if query_lower and query_lower in title:
        score += 3
    score += sum(1 for w in query_words if w in title)
    return score


@dataclass
class RelevanceResult:
    items: list
    similarities: dict[str, float] = field(default_factory=dict)
    semantic: bool = True


class RelevanceFilter:
    def __init__(
        self,
        model: EmbeddingModel,
        threshold: float | None = None,
        blacklist: Sequence[str] = BLACKLIST,
    ) -> None:
        self.model = model
        self.threshold = settings.RELEVANCE_THRESHOLD if threshold is None else threshold
        self.blacklist = tuple(term.lower() for term in blacklist)

    def lexical_gate(self, items: Sequence[T], query: str) -> list[T]:
        """Drop items whose title or body contains any blacklisted phrase."""
        terms = self.blacklist + tuple(t.lower() for t in find_category(query).exclusions)
        kept = []
        for item in items:
            text = item.text.lower()
            if any(term in text for term in terms):
                continue
            kept.append(item)
        return kept

    async def filter(self, items: Sequence[T], query: str) -> RelevanceResult:
        survivors = self.lexical_gate(items, query)
        log.info("Relevance gate 1: %d → %d items", len(items), len(survivors))
        if not survivors:
            return RelevanceResult(items=[], semantic=self.model.available)

        texts = [f"{item.title}. {item.body}"[:512] for item in survivors]
        try:
            sims = await self.model.similarity(query, texts)
        except EmbeddingUnavailable as exc:
            log.warning("Semantic relevance unavailable (%s), using lexical ordering", exc)
            return RelevanceResult(items=self._lexical_order(survivors, query), semantic=False)

        scored = [(item, sim) for item, sim in zip(survivors, sims) if sim >= self.threshold]
        scored.sort(key=lambda pair: pair[1], reverse=True)
        log.info(
            "Relevance gate 2: %d → %d items (threshold %.2f)",
            len(survivors), len(scored), self.threshold,
        )
        return RelevanceResult(
            items=[item for item, _ in scored],
            similarities={item.id: float(sim) for item, sim in scored},
            semantic=True,
        )

    def _lexical_order(self, items: list[T], query: str) -> list[T]:
        expansions = find_category(query).expansions
        return sorted(
            items,
            key=lambda item: calculate_relevance_score(item, query, expansions),
            reverse=True,
        )
