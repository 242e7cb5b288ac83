"""Pain and buyer-intent signals, lexical and semantic."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np

from analysis.embeddings import EmbeddingModel, cosine_similarity

log = logging.getLogger(__name__)

PAIN_KEYWORDS = (
    "hate", "annoying", "broken", "issue", "problem", "frustrated", "sucks",
    "terrible", "worst", "awful", "useless", "waste", "disappointed", "bug",
    "slow", "expensive", "hard", "difficult", "nightmare", "fail", "doesn't work",
)

INTENT_KEYWORDS = (
    "alternative", "recommend", "suggestion", "looking for", "switch", "replace",
    "pricing", "cost", "buy", "purchase", "subscription", "tool", "app", "help",
)

# Single tokens that make an n-gram worth treating as a theme candidate.
CONTEXT_WORDS = frozenset(
    "hate annoying broken issue issues problem problems frustrated frustrating "
    "sucks terrible worst awful useless waste disappointed bug bugs slow "
    "expensive hard difficult nightmare fail fails failing crash crashes "
    "alternative alternatives recommend recommendation suggestion switch "
    "switching replace replacement pricing price cost costs buy purchase "
    "subscription tool tools app apps looking".split()
)

PAIN_ARCHETYPES = (
    "this is so frustrating and keeps breaking",
    "I hate how slow and buggy this is",
    "it is way too expensive for what it does",
    "we wasted hours trying to get it to work",
    "the setup is confusing and the documentation is terrible",
    "it doesn't work and support never answers",
    "I'm looking for an alternative because this is a nightmare",
    "constant problems and issues that never get fixed",
    "I gave up and switched to something else",
    "the learning curve is painful and it's hard to use",
)

NARRATIVE_MARKERS = (
    "we tried", "i tried", "ended up", "gave up", "switched to", "moved to",
    "spent hours", "spent days", "after months", "we had to", "i had to",
)

CONSTRAINT_MARKERS = (
    "small team", "at scale", "learning curve", "budget", "per seat",
    "per user", "self-host", "compliance", "legacy", "migration", "on a deadline",
)


def _count_present(text: str, vocabulary: Sequence[str]) -> int:
    lowered = text.lower()
    return sum(1 for word in vocabulary if word in lowered)


class SignalDetector:
    """Vocabulary-based pain / buyer-intent detector.

    Each distinct vocabulary entry present in the text (case-insensitive
    substring) adds 2 to the corresponding score.
    """

    def __init__(
        self,
        pain_keywords: Sequence[str] = PAIN_KEYWORDS,
        intent_keywords: Sequence[str] = INTENT_KEYWORDS,
        context_words: frozenset[str] = CONTEXT_WORDS,
    ) -> None:
        self.pain_keywords = tuple(pain_keywords)
        self.intent_keywords = tuple(intent_keywords)
        self.context_words = context_words

    def pain_hits(self, text: str) -> int:
        return _count_present(text, self.pain_keywords)

    def pain_score(self, text: str) -> float:
        return 2.0 * self.pain_hits(text)

    def buyer_score(self, text: str) -> float:
        return 2.0 * _count_present(text, self.intent_keywords)

    def is_context_word(self, token: str) -> bool:
        return token in self.context_words


class PainScorer:
    """Scores sentences by how much they read like a complaint."""

    def __init__(
        self,
        model: EmbeddingModel,
        archetypes: Sequence[str] = PAIN_ARCHETYPES,
        detector: SignalDetector | None = None,
    ) -> None:
        self.model = model
        self.archetypes = tuple(archetypes)
        self.detector = detector or SignalDetector()
        self._archetype_vectors: np.ndarray | None = None

    async def score(self, sentences: Sequence[str]) -> list[float]:
        """Max cosine similarity against the archetypes, clipped to [0, 1].

        Raises EmbeddingUnavailable when the model cannot be loaded.
        """
        if not sentences:
            return []
        if self._archetype_vectors is None:
            self._archetype_vectors = await self.model.embed(self.archetypes)
        vectors = await self.model.embed(sentences)
        sims = cosine_similarity(vectors, self._archetype_vectors)
        return np.clip(sims.max(axis=1), 0.0, 1.0).tolist()

    def lexical_score(self, sentence: str) -> float:
        return min(1.0, 0.25 * self.detector.pain_hits(sentence))
