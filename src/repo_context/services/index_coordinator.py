"""
Index Coordinator Service

Owns the published index snapshot for one root and keeps it fresh in a
background thread.

- ensure_started() performs a best-effort warm read of the persisted index
  so the first query has something to rank, then starts an authoritative
  reconcile in the background.
- At most one rebuild thread runs at a time. Queries never wait for it:
  they are served from whatever snapshot is currently published.
- The rebuild does discovery, fingerprinting and chunking without holding
  the lock; only the final publish swaps the snapshot reference under it.
"""

import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..logging_config import configure_logger_for_debug_trace
from .chunker import CodeChunker
from .exclusion_policy import ExclusionPolicy
from .file_discovery import FileDiscovery
from .fingerprint_cache import IndexCache, collect_fingerprint_entries, compute_fingerprint
from .index_types import CandidateFile, Chunk, IndexSnapshot, RebuildStats

logger = configure_logger_for_debug_trace(__name__)


class IndexCoordinator:
    """
    Single-flight, stale-while-revalidate owner of the index snapshot.

    Attributes:
        root: Directory being indexed
        rag_dir: Reserved engine directory holding the exclusion and index files
        snapshot: Currently published snapshot (never partially populated)
        last_stats: Statistics of the last completed reconcile
        last_error: Message of the last failed reconcile, if any
    """

    def __init__(
        self,
        root: Path,
        rag_dir: Path,
        discovery: FileDiscovery,
        chunker: CodeChunker,
        cache: IndexCache,
        refresh_interval_seconds: float = 30.0,
    ):
        self.root = Path(root)
        self.rag_dir = Path(rag_dir)
        self._discovery = discovery
        self._chunker = chunker
        self._cache = cache
        self._refresh_interval = refresh_interval_seconds

        self._lock = threading.Lock()
        self._snapshot = IndexSnapshot.empty()
        self._rebuild_thread: Optional[threading.Thread] = None
        self._started = False
        self._last_completed_at: Optional[float] = None

        self.last_stats: Optional[RebuildStats] = None
        self.last_error: Optional[str] = None

    @property
    def snapshot(self) -> IndexSnapshot:
        return self._snapshot

    @property
    def is_rebuilding(self) -> bool:
        """Check if a rebuild is currently running."""
        thread = self._rebuild_thread
        return thread is not None and thread.is_alive()

    def ensure_started(self) -> None:
        """
        Start indexing once: warm read, then background reconcile.

        Later calls return immediately.
        """
        with self._lock:
            if self._started:
                return
            self._started = True

        warm = self._cache.load_unchecked()
        if warm is not None:
            with self._lock:
                # Only fills an empty slot; a reconcile may already have published
                if not self._snapshot.chunks:
                    self._snapshot = warm

        self.request_rebuild()

    def maybe_refresh(self) -> bool:
        """
        Start a background reconcile when the last one is old enough.

        Returns:
            True if a rebuild was started.
        """
        if not self._started or self.is_rebuilding:
            return False
        completed_at = self._last_completed_at
        if completed_at is not None and time.monotonic() - completed_at < self._refresh_interval:
            return False
        return self.request_rebuild()

    def request_rebuild(self, blocking: bool = False) -> bool:
        """
        Start a reconcile unless one is already in flight.

        Args:
            blocking: If True, wait for the started rebuild to finish.

        Returns:
            True if this call started a rebuild, False if one was already running.
        """
        with self._lock:
            if self._rebuild_thread is not None and self._rebuild_thread.is_alive():
                logger.debug("[Coordinator] Rebuild already running, skipping")
                return False
            self._started = True
            thread = threading.Thread(
                target=self._run_rebuild,
                name="RepoContextIndexRebuild",
                daemon=True,
            )
            self._rebuild_thread = thread
            thread.start()

        if blocking:
            thread.join()
        return True

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the in-flight rebuild, if any.

        Returns:
            True when no rebuild is running afterwards.
        """
        thread = self._rebuild_thread
        if thread is not None:
            thread.join(timeout)
        return not self.is_rebuilding

    def status(self) -> Dict[str, Any]:
        """Snapshot and rebuild information for operators."""
        snapshot = self._snapshot
        return {
            "root": str(self.root),
            "origin": snapshot.origin,
            "fingerprint": snapshot.fingerprint[:12],
            "chunks": len(snapshot),
            "rebuilding": self.is_rebuilding,
            "last_rebuild": self.last_stats.to_dict() if self.last_stats else None,
            "last_error": self.last_error,
        }

    def _publish(self, snapshot: IndexSnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot

    def _run_rebuild(self) -> None:
        """Rebuild entry point (runs in background thread)."""
        try:
            self.last_stats = self._rebuild_if_needed()
            self.last_error = None
        except Exception as e:
            logger.exception(f"Background indexing failed for {self.root}")
            self.last_error = str(e)
        finally:
            self._last_completed_at = time.monotonic()

    def _rebuild_if_needed(self) -> RebuildStats:
        started = time.monotonic()
        stats = RebuildStats()

        policy = ExclusionPolicy.load(self.rag_dir)
        files = self._discovery.discover()
        admitted = [f for f in files if not policy.excludes_path(f.relative_path)]
        stats.files_discovered = len(files)
        stats.files_admitted = len(admitted)

        fingerprint = compute_fingerprint(collect_fingerprint_entries(admitted))
        stats.fingerprint = fingerprint

        current = self._snapshot
        if current.is_authoritative and current.fingerprint == fingerprint and len(current) > 0:
            stats.skipped = True
            stats.chunks_indexed = len(current)
            stats.duration_ms = _elapsed_ms(started)
            logger.debug("[Coordinator] Fingerprint unchanged, keeping current snapshot")
            return stats

        cached = self._cache.load(fingerprint)
        if cached is not None:
            self._publish(cached)
            stats.cache_hit = True
            stats.chunks_indexed = len(cached)
            stats.duration_ms = _elapsed_ms(started)
            logger.info(f"Adopted cached index with {len(cached)} chunks")
            return stats

        chunks = self._chunk_files(admitted, policy, stats)
        snapshot = IndexSnapshot(fingerprint=fingerprint, chunks=tuple(chunks), origin="scan")
        self._publish(snapshot)
        stats.chunks_indexed = len(snapshot)
        logger.info(f"Indexed {len(snapshot)} chunks from {len(files)} files (background)")

        self._cache.save(snapshot)
        stats.duration_ms = _elapsed_ms(started)
        return stats

    def _chunk_files(
        self,
        files: List[CandidateFile],
        policy: ExclusionPolicy,
        stats: RebuildStats,
    ) -> List[Chunk]:
        chunks: List[Chunk] = []
        for candidate in files:
            try:
                content = candidate.absolute_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.debug(f"[Coordinator] Skipping unreadable file {candidate.relative_path}: {e}")
                continue
            if not content:
                continue

            stats.files_chunked += 1
            for chunk in self._chunker.chunk_file(candidate.relative_path, content):
                if policy.excludes_chunk(chunk):
                    continue
                chunks.append(chunk)
        return chunks


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
