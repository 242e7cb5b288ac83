"""Theme clustering.

Dynamic themes come from recurring 2-3 word phrases around pain and buyer
vocabulary; each item belongs to at most one theme. When that does not yield
enough themes the items are grouped by k-means over their embeddings and
titled from topic patterns or distinctive words. The static keyword buckets
are the last resort, and the only strategy when no embedding model loads.
"""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from analysis.bucketing import bucket_themes
from analysis.embeddings import EmbeddingModel, cosine_similarity
from analysis.phrases import extract_top_phrases, representative_quotes, source_links
from analysis.signals import SignalDetector
from analysis.text import STOP_WORDS, normalize_title, tokenize
from config.settings import settings
from core.errors import EmbeddingUnavailable
from core.models import ScoredItem, Theme

log = logging.getLogger(__name__)

MIN_THEME_SUPPORT = 3
MIN_UNCLAIMED = 2
LABEL_SIMILARITY = 0.85
KMEANS_MAX_ITERATIONS = 20

TOPIC_PATTERNS = (
    (re.compile(r"\b(pric|cost|expensive|cheap|free|subscription|pay)"), "Pricing & Cost"),
    (re.compile(r"\b(alternative|vs|versus|compare|comparison|switch)"), "Alternatives & Comparison"),
    (re.compile(r"\b(setup|install|config|integration|api|sdk)"), "Setup & Integration"),
    (re.compile(r"\b(beginner|learn|tutorial|guide|start|getting started)"), "Getting Started"),
    (re.compile(r"\b(enterprise|team|collaboration|agency|business)"), "Teams & Enterprise"),
    (re.compile(r"\b(bug|issue|error|problem|broken|fix)"), "Issues & Problems"),
    (re.compile(r"\b(feature|missing|request|wishlist)"), "Feature Requests"),
    (re.compile(r"\b(mobile|ios|android|phone)"), "Mobile Experience"),
    (re.compile(r"\b(self.?host|open.?source|privacy)"), "Self-Hosted & Open Source"),
)

# Generic words that say nothing about what sets a cluster apart.
TITLE_NOISE = STOP_WORDS | frozenset(
    "best looking want using anyone going good make help trying find found "
    "work working works thing recommend recommendations suggest suggestions "
    "questions thoughts opinion opinions advice experience experiences second "
    "last year years app apps tool tools software platform system service".split()
)

_PATTERN_RE = re.compile(
    r"\b(alternative to|looking for|problem with|issue with|frustrated with|hate)\s+"
    r"(?:(?:a|an|the|my|this|your|our)\s+)?([a-z0-9][a-z0-9-]*)"
)


@dataclass
class Candidate:
    label: str
    members: list[ScoredItem] = field(default_factory=list)
    pain_sum: float = 0.0
    buyer_sum: float = 0.0

    @property
    def rank(self) -> float:
        return len(self.members) * (self.pain_sum + self.buyer_sum)


def _title(label: str) -> str:
    return " ".join(word.capitalize() for word in label.split())


def _stop_count(label: str) -> int:
    return sum(1 for word in label.split() if word in STOP_WORDS)


def item_ngrams(text: str, detector: SignalDetector) -> set[str]:
    """Context-bearing 2-3 grams plus the fixed complaint/intent patterns."""
    tokens = tokenize(text)
    grams: set[str] = set()
    for n in (2, 3):
        for i in range(len(tokens) - n + 1):
            window = tokens[i : i + n]
            if all(t in STOP_WORDS for t in window):
                continue
            if not any(detector.is_context_word(t) for t in window):
                continue
            grams.add(" ".join(window))
    for lead, target in _PATTERN_RE.findall(text.lower()):
        if target not in STOP_WORDS:
            grams.add(f"{lead} {target}")
    return grams


def build_candidates(items: Sequence[ScoredItem], detector: SignalDetector) -> list[Candidate]:
    candidates: dict[str, Candidate] = {}
    for item in items:
        if item.pain_score <= 0 and item.buyer_score <= 0:
            continue
        for gram in item_ngrams(item.text, detector):
            cand = candidates.setdefault(gram, Candidate(label=gram))
            cand.members.append(item)
            cand.pain_sum += item.pain_score
            cand.buyer_sum += item.buyer_score

    ranked = [c for c in candidates.values() if len(c.members) >= MIN_THEME_SUPPORT]
    # equal rank: fewer stop-words, then the longer phrase
    ranked.sort(key=lambda c: (-c.rank, _stop_count(c.label), -len(c.label.split()), c.label))
    return ranked


def kmeans(vectors: np.ndarray, k: int, max_iterations: int = KMEANS_MAX_ITERATIONS) -> list[int]:
    """Spherical k-means; returns a cluster index per row.

    Seeds are picked farthest-point first starting from row 0, so the result
    is deterministic. Stops once an assignment pass changes nothing.
    """
    n = len(vectors)
    if n == 0:
        return []
    if n <= k:
        return list(range(n))

    unit = np.asarray(vectors, dtype=np.float32)
    norms = np.linalg.norm(unit, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    unit = unit / norms

    seeds = [0]
    nearest = 1.0 - unit @ unit[0]
    for _ in range(1, k):
        distance = nearest.copy()
        distance[seeds] = -np.inf
        seed = int(np.argmax(distance))
        seeds.append(seed)
        nearest = np.minimum(nearest, 1.0 - unit @ unit[seed])
    centroids = unit[seeds].copy()

    assignments = np.full(n, -1)
    for iteration in range(max_iterations):
        updated = np.argmax(unit @ centroids.T, axis=1)
        if np.array_equal(updated, assignments):
            log.debug("k-means converged after %d iterations", iteration)
            break
        assignments = updated
        for c in range(k):
            members = unit[assignments == c]
            if not len(members):
                continue
            centroid = members.mean(axis=0)
            norm = np.linalg.norm(centroid)
            centroids[c] = centroid / norm if norm > 0 else centroid
    return [int(a) for a in assignments]


def _title_words(title: str) -> set[str]:
    return {w for w in normalize_title(title).split() if len(w) > 3 and w not in TITLE_NOISE}


def cluster_title(items: Sequence[ScoredItem], corpus: Sequence[ScoredItem] | None = None) -> str:
    """Name a cluster after a topic its titles keep hitting, else its most distinctive words."""
    text = " ".join(item.title for item in items).lower()
    for pattern, title in TOPIC_PATTERNS:
        if len(pattern.findall(text)) >= max(2, len(items) * 0.3):
            return title

    counts = Counter(word for item in items for word in _title_words(item.title))
    background: Counter[str] = Counter()
    if corpus is not None and len(corpus) > len(items):
        background = Counter(word for item in corpus for word in _title_words(item.title))

    scored = []
    for word, count in counts.items():
        idf = math.log(len(corpus) / (background[word] or 1)) if background else 1.0
        boost = 1.5 if count >= 2 else 1.0
        scored.append((count / len(items) * idf * boost, word))
    scored.sort(key=lambda pair: (-pair[0], pair[1]))
    top = [word.capitalize() for _, word in scored[:2]]

    if not top:
        return "General Discussion"
    if len(top) == 1:
        return f"{top[0]} Discussion"
    return " & ".join(top)


class ThemeClusterer:
    def __init__(
        self,
        model: EmbeddingModel,
        detector: SignalDetector | None = None,
        max_themes: int | None = None,
        min_dynamic_themes: int | None = None,
        label_similarity: float = LABEL_SIMILARITY,
        num_clusters: int | None = None,
    ) -> None:
        self.model = model
        self.detector = detector or SignalDetector()
        self.max_themes = settings.MAX_THEMES if max_themes is None else max_themes
        self.min_dynamic_themes = (
            settings.MIN_DYNAMIC_THEMES if min_dynamic_themes is None else min_dynamic_themes
        )
        self.label_similarity = label_similarity
        self.num_clusters = settings.EMBEDDING_CLUSTERS if num_clusters is None else num_clusters

    async def cluster(self, items: Sequence[ScoredItem]) -> list[Theme]:
        if not items:
            return []
        try:
            await self.model.load()
        except EmbeddingUnavailable:
            log.info("Embedding model unavailable, using static buckets")
            return bucket_themes(items)

        themes = await self.dynamic_themes(items)
        if len(themes) >= self.min_dynamic_themes:
            log.info("Dynamic clustering produced %d themes", len(themes))
            return themes

        log.info("Dynamic clustering produced %d themes, trying embedding clusters", len(themes))
        themes = await self.embedding_themes(items)
        if len(themes) >= self.min_dynamic_themes:
            log.info("Embedding clustering produced %d themes", len(themes))
            return themes

        log.info("Embedding clustering produced %d themes, using static buckets", len(themes))
        return bucket_themes(items)

    async def dynamic_themes(self, items: Sequence[ScoredItem]) -> list[Theme]:
        total = len(items)
        claimed: set[str] = set()
        accepted_labels: list[np.ndarray] = []
        themes: list[Theme] = []

        for cand in build_candidates(items, self.detector):
            if len(themes) >= self.max_themes:
                break
            unclaimed = [m for m in cand.members if m.id not in claimed]
            if len(unclaimed) < MIN_UNCLAIMED:
                continue
            label_vector = await self._label_vector(cand.label)
            if label_vector is not None:
                if any(
                    cosine_similarity(label_vector, other)[0, 0] >= self.label_similarity
                    for other in accepted_labels
                ):
                    log.debug("Skipping redundant theme label '%s'", cand.label)
                    continue
                accepted_labels.append(label_vector)

            claimed.update(m.id for m in unclaimed)
            themes.append(_theme(_title(cand.label), unclaimed, total))
        return themes

    async def embedding_themes(self, items: Sequence[ScoredItem]) -> list[Theme]:
        """Group items by k-means over their text embeddings.

        Clusters with a single member are dropped. A cluster whose title is
        already taken by a larger cluster is dropped too, so titles stay unique.
        """
        texts = [f"{item.title}. {item.body}"[:512] for item in items]
        try:
            vectors = await self.model.embed(texts)
        except EmbeddingUnavailable:
            return []

        groups: dict[int, list[ScoredItem]] = {}
        for item, cluster in zip(items, kmeans(vectors, self.num_clusters)):
            groups.setdefault(cluster, []).append(item)
        ranked = sorted(groups.values(), key=len, reverse=True)
        log.debug("k-means cluster sizes: %s", [len(g) for g in ranked])

        themes: list[Theme] = []
        for members in ranked:
            if len(themes) >= self.max_themes or len(members) < MIN_UNCLAIMED:
                break
            title = cluster_title(members, items)
            if any(t.title == title for t in themes):
                log.debug("Skipping cluster with duplicate title '%s'", title)
                continue
            themes.append(_theme(title, members, len(items)))
        return themes

    async def _label_vector(self, label: str) -> np.ndarray | None:
        try:
            return (await self.model.embed([label]))[0]
        except EmbeddingUnavailable:
            return None


def _theme(title: str, members: list[ScoredItem], total: int) -> Theme:
    return Theme(
        title=title,
        share=round(len(members) / total * 100),
        quotes=representative_quotes(members),
        sources=source_links(members),
        keywords=[p.phrase for p in extract_top_phrases(members, limit=5)],
        member_ids=[m.id for m in members],
    )
