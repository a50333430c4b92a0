"""
Embedding generation service for query-time reranking.

The retrieval engine only depends on EmbeddingCapability.embed(); how
vectors are produced is up to the implementation:
- EmbeddingService: local sentence-transformers model (optional extra,
  loaded lazily on first use)
- LightweightEmbeddingService: hash-based vectors for tests and offline runs

Vectors are always unit-normalized, so cosine similarity is a dot product.
"""

import hashlib
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..context_exceptions import EmbeddingUnavailableError
from ..logging_config import configure_logger_for_debug_trace

logger = configure_logger_for_debug_trace(__name__)

_SENTENCE_TRANSFORMERS_AVAILABLE: Optional[bool] = None


def _check_sentence_transformers() -> bool:
    """Lazy check for sentence-transformers availability."""
    global _SENTENCE_TRANSFORMERS_AVAILABLE
    if _SENTENCE_TRANSFORMERS_AVAILABLE is None:
        try:
            import sentence_transformers  # noqa: F401
            _SENTENCE_TRANSFORMERS_AVAILABLE = True
        except ImportError:
            _SENTENCE_TRANSFORMERS_AVAILABLE = False
    return _SENTENCE_TRANSFORMERS_AVAILABLE


def normalize_rows(vectors: np.ndarray) -> np.ndarray:
    """Scale each row to unit length; zero rows stay zero."""
    vectors = np.asarray(vectors, dtype=np.float32)
    if vectors.ndim == 1:
        vectors = vectors.reshape(1, -1)
    norms = np.linalg.norm(vectors, axis=1)
    norms[norms == 0] = 1.0
    return vectors / norms[:, np.newaxis]


_availability_lock = threading.Lock()


class EmbeddingCapability(ABC):
    """
    The "embed a batch of strings" capability consumed by the reranker.

    Implementations return an array of shape (len(texts), dim) whose rows
    are unit length, and raise EmbeddingUnavailableError when they cannot.

    A capability is usually shared by every retriever of a process, so its
    unavailability is recorded here rather than per caller: once marked,
    it stays unavailable for the lifetime of the object.
    """

    model_name: str = ""
    unavailable_reason: Optional[str] = None

    @abstractmethod
    def embed(self, texts: Sequence[str]) -> np.ndarray:
        """Embed a batch of strings."""

    def warm_up(self) -> None:
        """Prepare for embed() (load models, open clients). No-op by default."""

    @property
    def is_available(self) -> bool:
        return self.unavailable_reason is None

    def mark_unavailable(self, reason: str) -> bool:
        """
        Record that this capability must not be used again.

        Returns:
            True for the first caller only, so the failure is reported once.
        """
        with _availability_lock:
            if self.unavailable_reason is not None:
                return False
            self.unavailable_reason = reason
            return True


class EmbeddingService(EmbeddingCapability):
    """
    Local sentence-transformers embeddings with an LRU cache.

    Attributes:
        model_name: Name of the sentence-transformers model
        embedding_dim: Dimension of embeddings produced (known after initialize())
    """

    def __init__(
        self,
        model_name: str = "sentence-transformers/all-MiniLM-L6-v2",
        cache_size: int = 1000,
        cache_folder: Optional[str] = None,
    ):
        self.model_name = model_name
        self.cache_size = cache_size
        self.embedding_dim: Optional[int] = None
        self._cache_folder = cache_folder
        self._model = None
        self._init_lock = threading.Lock()
        self._initialized = False
        self._load_error: Optional[EmbeddingUnavailableError] = None

        # Use OrderedDict for LRU-like cache; shared by every caller thread
        self._embedding_cache: "OrderedDict[str, np.ndarray]" = OrderedDict()
        self._cache_lock = threading.Lock()

    def initialize(self) -> None:
        """
        Load the model on first use.

        Raises:
            EmbeddingUnavailableError: sentence-transformers is not installed
                or the model cannot be loaded. A failed load is remembered and
                re-raised without retrying.
        """
        if self._initialized:
            return

        with self._init_lock:
            if self._initialized:
                return
            if self._load_error is not None:
                raise self._load_error

            if not _check_sentence_transformers():
                self._load_error = EmbeddingUnavailableError(
                    "sentence-transformers package is required for local embeddings. "
                    "Install with: pip install 'repo-context[embeddings]'"
                )
                raise self._load_error

            from sentence_transformers import SentenceTransformer

            st_model_name = self.model_name
            if st_model_name.startswith("sentence-transformers/"):
                st_model_name = st_model_name.replace("sentence-transformers/", "")

            logger.info(f"Initializing embedding service: {self.model_name}")
            try:
                self._model = SentenceTransformer(st_model_name, cache_folder=self._cache_folder)
                self.embedding_dim = self._model.get_sentence_embedding_dimension()
            except Exception as e:
                self._load_error = EmbeddingUnavailableError(f"cannot load embedding model {self.model_name}: {e}")
                raise self._load_error from e

            self._initialized = True
            logger.info(f"Embedding service ready. Dimension: {self.embedding_dim}")

    def warm_up(self) -> None:
        self.initialize()

    def embed(self, texts: Sequence[str]) -> np.ndarray:
        """
        Embed texts, serving repeated strings from the cache.

        Returns:
            Array of shape (len(texts), embedding_dim) with unit rows.
        """
        self.initialize()

        if not texts:
            return np.zeros((0, self.embedding_dim or 0), dtype=np.float32)

        results: Dict[int, np.ndarray] = {}
        uncached_texts: List[str] = []
        uncached_indices: List[int] = []

        for i, text in enumerate(texts):
            cached = self._cache_get(self._get_cache_key(text))
            if cached is not None:
                results[i] = cached
            else:
                uncached_texts.append(text)
                uncached_indices.append(i)

        if uncached_texts:
            logger.debug(
                f"Generating embeddings for {len(uncached_texts)} texts "
                f"({len(texts) - len(uncached_texts)} from cache)"
            )
            encoded = self._model.encode(
                uncached_texts,
                convert_to_numpy=True,
                show_progress_bar=False,
                normalize_embeddings=True,
            )
            for text, idx, embedding in zip(uncached_texts, uncached_indices, normalize_rows(encoded)):
                self._cache_put(self._get_cache_key(text), embedding)
                results[idx] = embedding

        return np.array([results[i] for i in range(len(texts))], dtype=np.float32)

    def _get_cache_key(self, text: str) -> str:
        """Generate cache key for text."""
        return hashlib.sha256(text.encode('utf-8')).hexdigest()

    def _cache_get(self, key: str) -> Optional[np.ndarray]:
        """Get from cache and move to end (LRU)."""
        with self._cache_lock:
            embedding = self._embedding_cache.get(key)
            if embedding is not None:
                self._embedding_cache.move_to_end(key)
            return embedding

    def _cache_put(self, key: str, embedding: np.ndarray) -> None:
        """Put in cache with LRU eviction."""
        with self._cache_lock:
            self._embedding_cache[key] = embedding
            self._embedding_cache.move_to_end(key)
            while len(self._embedding_cache) > self.cache_size:
                self._embedding_cache.popitem(last=False)

    def get_info(self) -> Dict[str, Any]:
        """Service information for status output."""
        return {
            'model': self.model_name,
            'dimension': self.embedding_dim,
            'initialized': self._initialized,
            'available': self.is_available,
            'cache_size': len(self._embedding_cache),
            'max_cache_size': self.cache_size,
        }


class LightweightEmbeddingService(EmbeddingService):
    """
    Lightweight embedding service for testing without heavy dependencies.

    Uses hash-based embeddings that maintain some semantic properties
    (same text = same embedding) but are NOT suitable for production.
    """

    def __init__(self, embedding_dim: int = 384, cache_size: int = 1000):
        super().__init__(model_name="lightweight-test", cache_size=cache_size)
        self.embedding_dim = embedding_dim
        self._initialized = True

    def initialize(self) -> None:
        """No initialization needed for lightweight service."""
        pass

    def embed(self, texts: Sequence[str]) -> np.ndarray:
        """Generate hash-based embeddings (testing only)."""
        if not texts:
            return np.zeros((0, self.embedding_dim), dtype=np.float32)
        return np.array([self._embed_one(text) for text in texts], dtype=np.float32)

    def _embed_one(self, text: str) -> np.ndarray:
        cache_key = self._get_cache_key(text)
        cached = self._cache_get(cache_key)
        if cached is not None:
            return cached

        text_hash = hashlib.sha256(text.encode('utf-8')).digest()

        # Center byte values so unrelated texts are close to orthogonal
        values = [float(b) / 255.0 - 0.5 for b in text_hash]
        while len(values) < self.embedding_dim:
            extended_hash = hashlib.sha256(
                text_hash + len(values).to_bytes(4, 'little')
            ).digest()
            values.extend(float(b) / 255.0 - 0.5 for b in extended_hash)

        embedding = normalize_rows(np.array(values[:self.embedding_dim], dtype=np.float32))[0]
        self._cache_put(cache_key, embedding)
        return embedding


def get_embedding_service(model_name: str, use_lightweight: bool = False) -> EmbeddingService:
    """
    Factory function for the embedding capability.

    Args:
        model_name: sentence-transformers model name
        use_lightweight: Return the hash-based service instead

    Returns:
        EmbeddingService instance (model loads lazily on first embed()).
    """
    if use_lightweight:
        logger.warning("Using lightweight embedding service (testing only)")
        return LightweightEmbeddingService()
    return EmbeddingService(model_name=model_name)
