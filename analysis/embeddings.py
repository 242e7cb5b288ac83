"""Shared sentence-embedding model.

One instance is built at startup and injected into every component that
needs semantic similarity. Weights are loaded lazily on first use; concurrent
first callers all await the same in-flight load.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any

import numpy as np

from config.settings import settings
from core.errors import EmbeddingUnavailable

log = logging.getLogger(__name__)


def load_sentence_transformer(model_name: str) -> Any:
    from sentence_transformers import SentenceTransformer

    return SentenceTransformer(model_name)


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Pairwise cosine similarity between the rows of *a* and the rows of *b*."""
    a = np.atleast_2d(np.asarray(a, dtype=np.float32))
    b = np.atleast_2d(np.asarray(b, dtype=np.float32))
    a_norm = np.linalg.norm(a, axis=1, keepdims=True)
    b_norm = np.linalg.norm(b, axis=1, keepdims=True)
    a_norm[a_norm == 0] = 1.0
    b_norm[b_norm == 0] = 1.0
    return (a / a_norm) @ (b / b_norm).T


class EmbeddingModel:
    def __init__(
        self,
        model_name: str | None = None,
        *,
        loader: Callable[[str], Any] | None = None,
        enabled: bool | None = None,
        batch_size: int = 32,
    ) -> None:
        self.model_name = model_name or settings.EMBEDDING_MODEL_NAME
        self._loader = loader or load_sentence_transformer
        self._enabled = settings.EMBEDDING_ENABLED if enabled is None else enabled
        self._batch_size = batch_size
        self._future: asyncio.Future | None = None

    @property
    def available(self) -> bool:
        """True once the model has loaded successfully."""
        return (
            self._future is not None
            and self._future.done()
            and not self._future.cancelled()
            and self._future.exception() is None
        )

    async def load(self) -> Any:
        if not self._enabled:
            raise EmbeddingUnavailable("embedding model disabled by configuration")

        if self._future is None:
            future = self._future = asyncio.get_running_loop().create_future()
            try:
                log.info("Loading embedding model %s…", self.model_name)
                model = await asyncio.to_thread(self._loader, self.model_name)
            except asyncio.CancelledError:
                # the next caller starts a fresh load; current waiters degrade
                log.info("Loading embedding model %s was cancelled", self.model_name)
                self._future = None
                future.set_exception(
                    EmbeddingUnavailable(f"loading {self.model_name} was cancelled")
                )
                future.exception()  # marks it retrieved when nobody else awaits it
                raise
            except Exception as exc:
                log.warning("Embedding model %s unavailable: %s", self.model_name, exc)
                future.set_exception(
                    EmbeddingUnavailable(f"could not load {self.model_name}: {exc}")
                )
            else:
                log.info("Embedding model loaded.")
                future.set_result(model)

        return await asyncio.shield(self._future)

    async def embed(self, texts: Sequence[str]) -> np.ndarray:
        """Mean-pooled, L2-normalised embeddings, one row per text."""
        model = await self.load()
        if not texts:
            return np.zeros((0, 0), dtype=np.float32)
        vectors = await asyncio.to_thread(
            model.encode,
            list(texts),
            batch_size=self._batch_size,
            convert_to_numpy=True,
            normalize_embeddings=True,
            show_progress_bar=False,
        )
        return np.asarray(vectors, dtype=np.float32)

    async def similarity(self, query: str, texts: Sequence[str]) -> list[float]:
        """Cosine similarity of *query* against each of *texts*."""
        if not texts:
            return []
        vectors = await self.embed([query, *texts])
        return cosine_similarity(vectors[:1], vectors[1:])[0].tolist()
