from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TypeVar

from analysis.text import normalize_title
from config.settings import settings
from core.models import RawItem

log = logging.getLogger(__name__)

T = TypeVar("T", bound=RawItem)


def title_similarity(a: str, b: str) -> float:
    """Jaccard overlap of normalised title token sets."""
    tokens_a = set(a.split())
    tokens_b = set(b.split())
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


def dedupe(items: Iterable[T], similarity_threshold: float | None = None) -> list[T]:
    """Drop duplicates, keeping the first occurrence in input order.

    Two items are duplicates if they share an id, share a non-empty normalised
    title, or (when *similarity_threshold* > 0) their normalised titles overlap
    at least that much. Later items are only compared against kept ones, so
    the result is stable under re-application.
    """
    threshold = (
        settings.DEDUPE_TITLE_SIMILARITY if similarity_threshold is None else similarity_threshold
    )
    seen_ids: set[str] = set()
    seen_titles: set[str] = set()
    kept_titles: list[str] = []
    kept: list[T] = []
    total = 0

    for item in items:
        total += 1
        if item.id in seen_ids:
            continue
        title = normalize_title(item.title)
        if title and title in seen_titles:
            continue
        if title and threshold > 0 and any(
            title_similarity(title, other) >= threshold for other in kept_titles
        ):
            continue

        seen_ids.add(item.id)
        if title:
            seen_titles.add(title)
            kept_titles.append(title)
        kept.append(item)

    if total != len(kept):
        log.debug("dedupe: %d → %d items", total, len(kept))
    return kept
