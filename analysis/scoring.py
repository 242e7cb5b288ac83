"""Aggregate market-pain metrics.

All functions are pure: given the same items and the same ``now`` they return
the same numbers.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from datetime import datetime, timedelta

from analysis.signals import SignalDetector
from core.models import PainSpike, PulseStats, RawItem, ScoredItem

log = logging.getLogger(__name__)

SCORE_CAP = 8.0


def sigmoid(x: float) -> float:
    return 1.0 / (1.0 + math.exp(-x))


def _age_hours(item: RawItem, now: datetime) -> float | None:
    created = item.created_at
    if not isinstance(created, datetime) or created.tzinfo is None:
        return None
    return max(0.0, (now - created).total_seconds() / 3600)


def item_weight(item: RawItem, now: datetime) -> float:
    """engagement × (0.6 + 0.4 × recency); 0 for items without a usable timestamp."""
    hours = _age_hours(item, now)
    if hours is None:
        return 0.0
    try:
        engagement = math.log1p(max(item.engagement_score, 0)) + 0.8 * math.log1p(
            max(item.comment_count, 0)
        )
    except TypeError:
        return 0.0
    recency = math.exp(-hours / 72)
    return engagement * (0.6 + 0.4 * recency)


def score_items(
    items: Sequence[RawItem],
    now: datetime,
    detector: SignalDetector | None = None,
    similarities: dict[str, float] | None = None,
) -> list[ScoredItem]:
    detector = detector or SignalDetector()
    similarities = similarities or {}
    scored = []
    for item in items:
        text = item.text
        scored.append(
            ScoredItem.from_raw(
                item,
                pain_score=detector.pain_score(text),
                buyer_score=detector.buyer_score(text),
                engagement_weight=item_weight(item, now),
                semantic_relevance=similarities.get(item.id),
            )
        )
    return scored


def _clamp(value: int) -> int:
    return max(0, min(100, value))


def calculate_pain_index(items: Sequence[ScoredItem]) -> int:
    total_weight = sum(item.engagement_weight for item in items)
    if not items or total_weight <= 0:
        return 0
    weighted = sum(
        item.engagement_weight * sigmoid(min(item.pain_score, SCORE_CAP) - 2) for item in items
    )
    return _clamp(round(weighted / total_weight * 100))


def calculate_opportunity_score(items: Sequence[ScoredItem]) -> int:
    total_weight = sum(item.engagement_weight for item in items)
    if not items or total_weight <= 0:
        return 0
    weighted = 0.0
    with_intent = 0
    for item in items:
        pain_sig = sigmoid(min(item.pain_score, SCORE_CAP) - 2)
        buyer_sig = sigmoid(min(item.buyer_score, SCORE_CAP) - 2)
        weighted += item.engagement_weight * pain_sig * buyer_sig
        if item.buyer_score > 0:
            with_intent += 1

    avg_opportunity = weighted / total_weight
    intent_density = with_intent / len(items)
    return _clamp(round(min(100.0, avg_opportunity * 70 + intent_density * 30)))


def calculate_pain_spike_from_counts(weekly_volume: int, monthly_volume: int) -> PainSpike:
    ratio = (weekly_volume + 1) / (monthly_volume / 4 + 1)
    return PainSpike(
        weekly_volume=weekly_volume,
        monthly_volume=monthly_volume,
        delta_percent=round((ratio - 1) * 100),
    )


def calculate_pain_spike(items: Sequence[RawItem], now: datetime) -> PainSpike:
    week_ago = now - timedelta(days=7)
    month_ago = now - timedelta(days=30)
    weekly = monthly = 0
    for item in items:
        if _age_hours(item, now) is None:
            continue
        if item.created_at > week_ago:
            weekly += 1
        if item.created_at > month_ago:
            monthly += 1
    return calculate_pain_spike_from_counts(weekly, monthly)


def calculate_stats(items: Sequence[ScoredItem]) -> PulseStats:
    return PulseStats(
        pain_index=calculate_pain_index(items),
        opportunity_score=calculate_opportunity_score(items),
        volume=len(items),
    )
