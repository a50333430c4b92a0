"""
Embedding Reranker

Reorders the lexical candidates by a blend of lexical score and
embedding cosine similarity:

    blended = lexical * lexical_weight + cosine * vector_weight

Only the query and the already-narrowed candidates are embedded. A
missing, failing or timed-out embedding capability is a degrade signal:
the capability is marked unavailable, the failure is logged once per
process, and every reranker sharing it returns the lexical order
unchanged from then on.
"""

import concurrent.futures
from typing import List, Optional

import numpy as np

from ..context_exceptions import EmbeddingUnavailableError
from ..logging_config import configure_logger_for_debug_trace
from .embedding_service import EmbeddingCapability
from .index_types import ScoredChunk

logger = configure_logger_for_debug_trace(__name__)

# Absence of a capability is reported once per process
_missing_capability_logged = False


class EmbeddingReranker:
    """
    Blends lexical and semantic relevance over a small candidate set.

    Attributes:
        is_available: False when the capability is missing or has failed
    """

    def __init__(
        self,
        capability: Optional[EmbeddingCapability],
        lexical_weight: float = 0.2,
        vector_weight: float = 0.8,
        batch_size: int = 24,
        timeout_seconds: float = 10.0,
    ):
        self._capability = capability
        self.lexical_weight = lexical_weight
        self.vector_weight = vector_weight
        self.batch_size = max(1, batch_size)
        self.timeout_seconds = timeout_seconds
        self._warmed_up = False
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None

        if capability is None:
            _log_missing_capability()

    @property
    def capability(self) -> Optional[EmbeddingCapability]:
        return self._capability

    @property
    def is_available(self) -> bool:
        return self._capability is not None and self._capability.is_available

    def rerank(self, query: str, candidates: List[ScoredChunk]) -> List[ScoredChunk]:
        """
        Rerank lexical candidates.

        Args:
            query: Free-text query
            candidates: Lexical survivors, best first

        Returns:
            Candidates sorted by blended score, or the input list unchanged
            when embeddings are unavailable.
        """
        if not candidates or not self.is_available:
            return candidates
        if not self._warm_up():
            return candidates

        texts = [query] + [candidate.chunk.text for candidate in candidates]
        vectors = self._embed_with_timeout(texts)
        if vectors is None or len(vectors) != len(texts):
            return candidates

        query_vector = vectors[0]
        reranked = []
        for candidate, vector in zip(candidates, vectors[1:]):
            cosine = _dot(query_vector, vector)
            reranked.append(ScoredChunk(
                chunk=candidate.chunk,
                score=candidate.score * self.lexical_weight + cosine * self.vector_weight,
            ))

        reranked.sort(key=lambda entry: entry.score, reverse=True)
        return reranked

    def _warm_up(self) -> bool:
        """
        Load the capability before the first timed call.

        Model loading may take far longer than one embedding call, so it is
        not bounded by timeout_seconds.
        """
        if self._warmed_up:
            return True
        try:
            self._capability.warm_up()
        except Exception as e:
            self._mark_unavailable(f"embedding warm-up failed: {e}")
            return False
        self._warmed_up = True
        return True

    def _embed_with_timeout(self, texts: List[str]) -> Optional[np.ndarray]:
        """
        Embed texts in batches on the worker thread, bounded by the timeout.

        A timed-out call keeps running in the worker; its result is discarded.
        """
        if self._executor is None:
            self._executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="RepoContextEmbedding"
            )

        future = self._executor.submit(self._embed_batched, texts)
        try:
            return future.result(timeout=self.timeout_seconds)
        except concurrent.futures.TimeoutError:
            self._mark_unavailable(f"embedding call exceeded {self.timeout_seconds}s")
        except EmbeddingUnavailableError as e:
            self._mark_unavailable(str(e))
        except Exception as e:
            self._mark_unavailable(f"embedding call failed: {e}")
        return None

    def _embed_batched(self, texts: List[str]) -> np.ndarray:
        parts = []
        for i in range(0, len(texts), self.batch_size):
            batch = np.asarray(self._capability.embed(texts[i:i + self.batch_size]), dtype=np.float32)
            if batch.ndim == 1:
                batch = batch.reshape(1, -1)
            parts.append(batch)
        return np.vstack(parts)

    def _mark_unavailable(self, reason: str) -> None:
        if self._capability.mark_unavailable(reason):
            logger.warning(f"Embedding reranking disabled, using lexical ranking only: {reason}")


def _log_missing_capability() -> None:
    global _missing_capability_logged
    if _missing_capability_logged:
        return
    _missing_capability_logged = True
    logger.info("No embedding capability configured, using lexical ranking only")


def _dot(left: np.ndarray, right: np.ndarray) -> float:
    """Cosine of two unit vectors; 0.0 when dimensions differ."""
    if left.shape != right.shape or left.size == 0:
        return 0.0
    return float(np.dot(left, right))
