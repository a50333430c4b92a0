"""
Retriever Registry Service

Hands out one ContextRetriever per indexed root so that repeated queries
against the same root share its snapshot, rebuild thread and embedding
service.
"""

import threading
from pathlib import Path
from typing import Dict, Optional, Union

from ..logging_config import configure_logger_for_debug_trace
from .config_loader import load_config
from .context_retriever import ContextRetriever
from .embedding_service import EmbeddingCapability, get_embedding_service

logger = configure_logger_for_debug_trace(__name__)


class RetrieverRegistry:
    """
    Creates and caches retrievers keyed by resolved root path.

    Responsibilities:
    - Resolve the root, falling back to the working directory
    - Share a single embedding capability across all retrievers
    - Create each retriever at most once
    """

    def __init__(self, embedding: Optional[EmbeddingCapability] = None, use_embeddings: bool = True):
        """
        Args:
            embedding: Capability shared by every retriever. When omitted and
                use_embeddings is True, a sentence-transformers service is
                created lazily from the first root's configuration.
            use_embeddings: False forces lexical-only ranking.
        """
        self._embedding = embedding
        self._use_embeddings = use_embeddings
        self._retrievers: Dict[Path, ContextRetriever] = {}
        self._lock = threading.Lock()

    def get(self, root: Optional[Union[str, Path]] = None) -> ContextRetriever:
        """
        Get the retriever for a root, creating it on first use.

        Args:
            root: Directory to index; the current working directory when omitted.

        Returns:
            ContextRetriever bound to the resolved root.
        """
        if root is None:
            root = Path.cwd()
            logger.warning(f"No workspace root supplied, indexing current directory {root}")

        resolved = Path(root).resolve()
        with self._lock:
            retriever = self._retrievers.get(resolved)
            if retriever is None:
                config = load_config(resolved)
                retriever = ContextRetriever(
                    resolved,
                    embedding=self._embedding_for(config.embedding_model),
                    config=config,
                )
                self._retrievers[resolved] = retriever
                logger.debug(f"[Registry] Created retriever for {resolved}")
            return retriever

    def _embedding_for(self, model_name: str) -> Optional[EmbeddingCapability]:
        if not self._use_embeddings:
            return None
        if self._embedding is None:
            self._embedding = get_embedding_service(model_name)
        return self._embedding

    def __len__(self) -> int:
        return len(self._retrievers)
