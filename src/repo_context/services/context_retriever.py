"""
Context Retriever

Query facade for one indexed root:

    retriever = ContextRetriever(Path("/work/repo"), embedding=service)
    context = retriever.get_context("fix the login redirect", active_file="src/auth.ts")

get_context() never raises for engine failures and never waits for a
rebuild: it ranks against the currently published snapshot and returns
None when there is no context to offer.
"""

import os
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional

from ..logging_config import configure_logger_for_debug_trace
from .chunker import CodeChunker
from .config_loader import RetrieverConfig, load_config
from .context_formatter import ContextFormatter
from .embedding_service import EmbeddingCapability, EmbeddingService
from .file_discovery import FileDiscovery
from .fingerprint_cache import IndexCache
from .index_coordinator import IndexCoordinator
from .index_types import Chunk, ScoredChunk
from .lexical_index import LexicalIndex
from .reranker import EmbeddingReranker

logger = configure_logger_for_debug_trace(__name__)

ACTIVE_FILE_CHUNK_LIMIT = 2


def normalize_file_path(file_path: Optional[str], root: Path) -> Optional[str]:
    """
    Normalize a caller-supplied active file path.

    Backslashes become forward slashes and a leading "./" is stripped.
    Absolute paths inside the root become root-relative; absolute paths
    outside it are returned as given and will match no indexed chunk.
    """
    if file_path is None or not file_path.strip():
        return None

    normalized = file_path.strip().replace("\\", "/")
    if normalized.startswith("./"):
        normalized = normalized[2:]

    if os.path.isabs(normalized) or PurePosixPath(normalized).is_absolute():
        try:
            relative = os.path.relpath(normalized, str(root)).replace("\\", "/")
        except ValueError:
            # Different drive on Windows
            return normalized
        if not relative.startswith("..") and not os.path.isabs(relative):
            return relative

    return normalized


def is_same_file(left: str, right: str) -> bool:
    """Case-insensitive, separator-normalized path comparison."""
    return left.replace("\\", "/").lower() == right.replace("\\", "/").lower()


class ContextRetriever:
    """
    Retrieval engine for one root: coordinator, ranking and formatting.

    Attributes:
        root: Directory being indexed
        config: Resolved retriever configuration
        coordinator: Owner of the published index snapshot
    """

    def __init__(
        self,
        root: Path,
        embedding: Optional[EmbeddingCapability] = None,
        config: Optional[RetrieverConfig] = None,
    ):
        self.root = Path(root).resolve()
        self.config = config or load_config(self.root)

        rag_dir = self.root / self.config.rag_dir
        if embedding is not None and not self.config.embeddings_enabled:
            logger.info("Embedding reranking disabled via configuration")
            embedding = None

        self.coordinator = IndexCoordinator(
            root=self.root,
            rag_dir=rag_dir,
            discovery=FileDiscovery(
                self.root,
                extensions=self.config.extensions,
                max_files=self.config.max_files,
                rag_dir_name=self.config.rag_dir,
            ),
            chunker=CodeChunker(
                max_chunk_lines=self.config.max_chunk_lines,
                overlap_lines=self.config.chunk_overlap_lines,
                boundary_slack_lines=self.config.boundary_slack_lines,
            ),
            cache=IndexCache(
                rag_dir,
                max_chunk_lines=self.config.max_chunk_lines,
                chunk_overlap_lines=self.config.chunk_overlap_lines,
                model_id=getattr(embedding, "model_name", "") or self.config.embedding_model,
            ),
            refresh_interval_seconds=self.config.refresh_interval_seconds,
        )
        self._lexical = LexicalIndex()
        self._reranker = EmbeddingReranker(
            embedding,
            lexical_weight=self.config.lexical_score_weight,
            vector_weight=self.config.vector_score_weight,
            batch_size=self.config.embed_batch_size,
            timeout_seconds=self.config.embedding_timeout_seconds,
        )
        self._formatter = ContextFormatter()

    def get_context(self, prompt: str, active_file: Optional[str] = None) -> Optional[str]:
        """
        Build repository context for a prompt.

        Args:
            prompt: Free-text query
            active_file: Path of the file the caller is focused on (optional)

        Returns:
            Formatted context, or None when nothing relevant is indexed.
        """
        if not prompt or not prompt.strip():
            return None

        try:
            return self._build_context(prompt, active_file)
        except Exception:
            logger.exception(f"Context retrieval failed for {self.root}")
            return None

    def _build_context(self, prompt: str, active_file: Optional[str]) -> Optional[str]:
        self.coordinator.ensure_started()
        self.coordinator.maybe_refresh()

        snapshot = self.coordinator.snapshot
        if not snapshot.chunks:
            return None

        ranked = self.rank(prompt, snapshot.chunks)
        selected = [entry.chunk for entry in ranked[:self.config.top_k]]

        normalized_active = normalize_file_path(active_file, self.root)
        active_chunks: List[Chunk] = []
        if normalized_active:
            active_chunks = [
                chunk for chunk in snapshot.chunks
                if is_same_file(chunk.file_path, normalized_active)
            ][:ACTIVE_FILE_CHUNK_LIMIT]

        return self._formatter.format(selected, normalized_active, active_chunks)

    def rank(self, prompt: str, chunks) -> List[ScoredChunk]:
        """Lexical narrowing followed by embedding reranking."""
        candidates = self._lexical.rank(prompt, chunks, limit=self.config.lexical_candidate_limit)
        if not candidates:
            return []
        return self._reranker.rerank(prompt, candidates)

    @property
    def embeddings_available(self) -> bool:
        return self._reranker.is_available

    def status(self) -> Dict[str, Any]:
        """Index status plus embedding availability and service details."""
        status = self.coordinator.status()
        status["embeddings_available"] = self._reranker.is_available
        capability = self._reranker.capability
        status["embedding"] = capability.get_info() if isinstance(capability, EmbeddingService) else None
        return status
