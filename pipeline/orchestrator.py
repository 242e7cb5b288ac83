from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from analysis.clustering import ThemeClusterer
from analysis.dedupe import dedupe
from analysis.embeddings import EmbeddingModel
from analysis.ideas import generate_build_ideas
from analysis.phrases import extract_frictions, extract_pain_receipts, extract_top_phrases
from analysis.relevance import RelevanceFilter
from analysis.scoring import calculate_pain_spike, calculate_stats, score_items
from analysis.signals import PainScorer, SignalDetector
from config.settings import settings
from core.models import (
    FailureKind,
    FetchOutcome,
    PainSpike,
    PulseStats,
    RawItem,
    Report,
    SourceFailure,
)
from core.slug import query_to_slug
from sources.base import BaseConnector

log = logging.getLogger(__name__)


@dataclass
class PipelineOutcome:
    status: str  # "ok" | "no_results"
    report: Report
    outcomes: list[FetchOutcome]

    @property
    def ok(self) -> bool:
        return self.status == "ok"


def empty_report(query: str, now: datetime, window_days: int | None = None) -> Report:
    return Report(
        query=query,
        slug=query_to_slug(query),
        created_at=now,
        updated_at=now,
        window_days=settings.REPORT_WINDOW_DAYS if window_days is None else window_days,
        stats=PulseStats(pain_index=0, opportunity_score=0, volume=0),
        pain_spike=PainSpike(weekly_volume=0, monthly_volume=0, delta_percent=0),
    )


class PulsePipeline:
    """Fetch → dedupe → relevance → score / cluster / extract → Report."""

    def __init__(
        self,
        connectors: Sequence[BaseConnector],
        model: EmbeddingModel,
        *,
        detector: SignalDetector | None = None,
        relevance: RelevanceFilter | None = None,
        clusterer: ThemeClusterer | None = None,
        pain_scorer: PainScorer | None = None,
        window_days: int | None = None,
    ) -> None:
        self.connectors = list(connectors)
        self.model = model
        self.detector = detector or SignalDetector()
        self.relevance = relevance or RelevanceFilter(model)
        self.clusterer = clusterer or ThemeClusterer(model, detector=self.detector)
        self.pain_scorer = pain_scorer or PainScorer(model, detector=self.detector)
        self.window_days = settings.REPORT_WINDOW_DAYS if window_days is None else window_days

    async def run(self, query: str, now: datetime | None = None) -> PipelineOutcome:
        now = now or datetime.now(timezone.utc)
        t0 = time.monotonic()
        log.info("Pulse run started for '%s' across %d sources", query, len(self.connectors))

        outcomes = await asyncio.gather(*(self._safe_collect(c, query) for c in self.connectors))
        merged = [item for outcome in outcomes for item in outcome.items]
        for outcome in outcomes:
            log.info(
                "  %s: %s, %d items, %d failures, %.1fs",
                outcome.source,
                outcome.status,
                len(outcome.items),
                len(outcome.failures),
                outcome.duration_seconds,
            )

        if not merged:
            log.info("No items from any source for '%s'", query)
            return PipelineOutcome("no_results", empty_report(query, now, self.window_days), outcomes)

        unique = dedupe(merged)
        result = await self.relevance.filter(unique, query)
        relevant = result.items
        log.info(
            "Corpus for '%s': %d raw → %d deduped → %d relevant (semantic=%s)",
            query, len(merged), len(unique), len(relevant), result.semantic,
        )
        if not relevant:
            return PipelineOutcome("no_results", empty_report(query, now, self.window_days), outcomes)

        scored = score_items(relevant, now, self.detector, result.similarities)
        themes = await self.clusterer.cluster(scored)
        frictions = await extract_frictions(relevant, self.pain_scorer)
        receipts = await extract_pain_receipts(relevant, self.pain_scorer)

        report = Report(
            query=query,
            slug=query_to_slug(query),
            created_at=now,
            updated_at=now,
            window_days=self.window_days,
            stats=calculate_stats(scored),
            pain_spike=calculate_pain_spike(relevant, now),
            top_phrases=extract_top_phrases(relevant),
            themes=themes,
            source_breakdown=self._breakdown(relevant),
            build_ideas=generate_build_ideas(themes, query),
            frictions=frictions,
            pain_receipts=receipts,
        )
        log.info(
            "Pulse run for '%s' done in %.1fs: pain=%d opportunity=%d themes=%d",
            query,
            time.monotonic() - t0,
            report.stats.pain_index,
            report.stats.opportunity_score,
            len(themes),
        )
        return PipelineOutcome("ok", report, outcomes)

    async def _safe_collect(self, connector: BaseConnector, query: str) -> FetchOutcome:
        try:
            return await connector.collect(query)
        except Exception as e:
            log.error("Source %s crashed: %s", connector.source_name, e)
            failure = SourceFailure(
                source=connector.source_name,
                kind=FailureKind.CRASH,
                detail=str(e) or type(e).__name__,
            )
            return FetchOutcome(
                source=connector.source_name, items=[], failures=[failure], duration_seconds=0.0
            )

    def _breakdown(self, items: list[RawItem]) -> dict:
        breakdown = {}
        for connector in self.connectors:
            entries = connector.breakdown(items)
            if entries:
                breakdown[connector.source_name] = entries
        return breakdown
