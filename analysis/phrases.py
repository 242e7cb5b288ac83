"""Corpus phrases, theme quotes and sentence-level pain extraction."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

from analysis.signals import CONSTRAINT_MARKERS, NARRATIVE_MARKERS, PainScorer
from analysis.text import clean_markup, content_tokens, split_sentences, truncate
from config.settings import settings
from core.errors import EmbeddingUnavailable
from core.models import RawItem, SourceLink, TopPhrase

log = logging.getLogger(__name__)

# A phrase must mention at least one of these (singular form) to be reported.
ANCHOR_TOKENS = frozenset(
    "tool app pricing price cost alternative bug feature integration api plugin "
    "extension software platform service subscription plan support setup "
    "workflow dashboard template automation sync export import editor manager "
    "tracker analytic report database client server account login password "
    "notification performance crash error update migration license seat "
    "interface mobile desktop browser".split()
)

MIN_NGRAM = 2
MAX_NGRAM = 5


def singularize(token: str) -> str:
    if len(token) > 3 and token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


def _interactions(item: RawItem) -> int:
    """Score plus comments; zero for an item whose counts are unusable."""
    try:
        return max(int(item.engagement_score), 0) + max(int(item.comment_count), 0)
    except (AttributeError, TypeError, ValueError):
        return 0


def _engagement(item: RawItem) -> float:
    return math.log1p(_interactions(item))


@dataclass
class _PhraseStats:
    surface: str
    count: int = 0
    engagement: float = 0.0


def _contained(inner: str, outer: str) -> bool:
    return f" {inner} " in f" {outer} "


def extract_top_phrases(items: Sequence[RawItem], limit: int | None = None) -> list[TopPhrase]:
    """Most frequent 2-5 word phrases that mention a domain anchor.

    Plurals are folded together for counting and the shorter surface form is
    shown. A phrase occurring once is never returned, and a phrase contained
    in an already selected one with the same count is suppressed.
    """
    limit = settings.TOP_PHRASES_LIMIT if limit is None else limit
    stats: dict[str, _PhraseStats] = {}

    for item in items:
        if not isinstance(item.title, str) or not isinstance(item.body, str):
            log.debug("Skipping malformed item %r", getattr(item, "id", None))
            continue
        words = content_tokens(item.text)
        keys = [singularize(w) for w in words]
        engagement = _engagement(item)
        for n in range(MIN_NGRAM, MAX_NGRAM + 1):
            for i in range(len(words) - n + 1):
                window = keys[i : i + n]
                if not any(token in ANCHOR_TOKENS for token in window):
                    continue
                key = " ".join(window)
                surface = " ".join(words[i : i + n])
                entry = stats.get(key)
                if entry is None:
                    entry = stats[key] = _PhraseStats(surface=surface)
                elif len(surface) < len(entry.surface):
                    entry.surface = surface
                entry.count += 1
                entry.engagement += engagement

    ranked = sorted(
        ((key, s) for key, s in stats.items() if s.count > 1),
        key=lambda pair: (-pair[1].count, -pair[1].engagement, -len(pair[0].split())),
    )

    selected: list[tuple[str, _PhraseStats]] = []
    for key, entry in ranked:
        if any(entry.count == kept.count and _contained(key, kept_key) for kept_key, kept in selected):
            continue
        selected.append((key, entry))
        if len(selected) >= limit:
            break
    return [TopPhrase(phrase=entry.surface, count=entry.count) for _, entry in selected]


def by_engagement(items: Sequence[RawItem]) -> list[RawItem]:
    return sorted(items, key=_interactions, reverse=True)


def representative_quotes(items: Sequence[RawItem], limit: int = 3) -> list[str]:
    """One quote per high-engagement item: a descriptive title, else the body."""
    quotes: list[str] = []
    seen: set[str] = set()
    for item in by_engagement(items):
        if not isinstance(item.title, str) or not isinstance(item.body, str):
            log.debug("Skipping malformed item %r", getattr(item, "id", None))
            continue
        title = " ".join(item.title.split())
        if len(title.split()) >= 5:
            quote = title
        elif item.body.strip():
            quote = truncate(clean_markup(item.body), 200)
        else:
            quote = title
        if not quote or quote.lower() in seen:
            continue
        seen.add(quote.lower())
        quotes.append(quote)
        if len(quotes) >= limit:
            break
    return quotes


def source_links(items: Sequence[RawItem], limit: int = 3) -> list[SourceLink]:
    return [
        SourceLink(title=item.title, url=item.url, source=item.source_name)
        for item in by_engagement(items)[:limit]
    ]


def _marker_bonus(sentence: str) -> float:
    lowered = sentence.lower()
    narrative = sum(1 for m in NARRATIVE_MARKERS if m in lowered)
    constraint = sum(1 for m in CONSTRAINT_MARKERS if m in lowered)
    return min(0.3, 0.1 * narrative + 0.1 * constraint)


def _candidates(items: Sequence[RawItem], min_words: int, max_words: int) -> list[tuple[str, float]]:
    found: list[tuple[str, float]] = []
    for item in items:
        try:
            texts = [item.title, item.body, *item.top_comments]
            bonus = min(0.25, 0.05 * math.log1p(item.engagement_score + item.comment_count))
        except (AttributeError, TypeError, ValueError) as exc:
            log.debug("Skipping malformed item %r: %s", getattr(item, "id", None), exc)
            continue
        for text in texts:
            if not isinstance(text, str):
                continue
            for sentence in split_sentences(clean_markup(text, keep_newlines=True)):
                if min_words <= len(sentence.split()) <= max_words:
                    found.append((sentence, bonus))
    return found


async def _extract_pain_sentences(
    items: Sequence[RawItem],
    scorer: PainScorer,
    *,
    min_words: int,
    max_words: int,
    limit: int,
    threshold: float | None = None,
) -> list[str]:
    threshold = settings.PAIN_THRESHOLD if threshold is None else threshold
    candidates = _candidates(items, min_words, max_words)
    if not candidates:
        return []

    sentences = [s for s, _ in candidates]
    try:
        base_scores = await scorer.score(sentences)
    except EmbeddingUnavailable:
        log.debug("Semantic pain scoring unavailable, using vocabulary hits")
        base_scores = [scorer.lexical_score(s) for s in sentences]

    ranked = []
    for (sentence, engagement_bonus), base in zip(candidates, base_scores):
        if base < threshold:
            continue
        ranked.append((base + _marker_bonus(sentence) + engagement_bonus, sentence))
    ranked.sort(key=lambda pair: pair[0], reverse=True)

    results: list[str] = []
    seen: set[str] = set()
    for _, sentence in ranked:
        key = sentence.lower()[:50]
        if key in seen:
            continue
        seen.add(key)
        results.append(sentence)
        if len(results) >= limit:
            break
    return results


async def extract_frictions(
    items: Sequence[RawItem], scorer: PainScorer, limit: int | None = None
) -> list[str]:
    """Short complaint sentences (5-25 words)."""
    return await _extract_pain_sentences(
        items,
        scorer,
        min_words=5,
        max_words=25,
        limit=settings.FRICTIONS_LIMIT if limit is None else limit,
    )


async def extract_pain_receipts(
    items: Sequence[RawItem], scorer: PainScorer, limit: int | None = None
) -> list[str]:
    """Longer first-hand complaint sentences (8-45 words)."""
    return await _extract_pain_sentences(
        items,
        scorer,
        min_words=8,
        max_words=45,
        limit=settings.RECEIPTS_LIMIT if limit is None else limit,
    )
