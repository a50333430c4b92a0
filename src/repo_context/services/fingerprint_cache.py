"""
Fingerprint Cache Service

Computes the content fingerprint of the admitted file set and
loads/saves the persisted index keyed by that fingerprint.

Persisted file (<root>/<rag_dir>/code-index-v1.json):
{
    "version": 1,
    "modelId": "sentence-transformers/all-MiniLM-L6-v2",
    "fingerprint": "3f2a...",
    "maxChunkLines": 48,
    "chunkOverlapLines": 8,
    "chunks": [
        {"filePath": "src/a.ts", "startLine": 1, "endLine": 40,
         "text": "[Function: foo]\\n...", "lexicalTerms": ["foo", "function"]}
    ]
}

The cache may always be discarded: every authoritative load re-validates
version, fingerprint and chunking parameters, and any failure is a miss.
"""

import hashlib
import json
import os
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Union

from pydantic import ValidationError

from ..context_exceptions import IndexLoadError, IndexPersistError
from ..logging_config import configure_logger_for_debug_trace
from ..models import PERSISTED_INDEX_VERSION, PersistedChunk, PersistedIndex
from .index_types import CandidateFile, Chunk, FingerprintEntry, IndexSnapshot

logger = configure_logger_for_debug_trace(__name__)

INDEX_FILE_NAME = "code-index-v1.json"


def collect_fingerprint_entries(files: Iterable[CandidateFile]) -> List[FingerprintEntry]:
    """
    Stat every file; files that cannot be stat'ed are left out.

    Args:
        files: Admitted candidate files

    Returns:
        One entry per readable file, in input order.
    """
    entries = []
    for candidate in files:
        try:
            stat_result = os.stat(candidate.absolute_path)
        except OSError as e:
            logger.debug(f"[Fingerprint] Cannot stat {candidate.relative_path}: {e}")
            continue
        entries.append(FingerprintEntry(
            relative_path=candidate.relative_path,
            byte_size=stat_result.st_size,
            modified_time_millis=stat_result.st_mtime_ns // 1_000_000,
        ))
    return entries


def compute_fingerprint(entries: Iterable[FingerprintEntry]) -> str:
    """
    Deterministic digest of (path, size, mtime) triples.

    Entries are sorted by path first, so discovery order never changes
    the result.
    """
    ordered = sorted(entries, key=lambda entry: entry.relative_path)
    joined = "|".join(entry.render() for entry in ordered)
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()


def _to_chunk(persisted: PersistedChunk) -> Chunk:
    return Chunk(
        file_path=persisted.filePath,
        start_line=persisted.startLine,
        end_line=persisted.endLine,
        text=persisted.text,
        lexical_terms=frozenset(persisted.lexicalTerms),
    )


class IndexCache:
    """
    Reads and writes the persisted index for one root.

    Attributes:
        index_path: Location of the JSON file
        max_chunk_lines: Chunking parameter the cache must have been written with
        chunk_overlap_lines: Chunking parameter the cache must have been written with
        model_id: Embedding model recorded in the file (informational)
    """

    def __init__(
        self,
        rag_dir: Union[str, Path],
        max_chunk_lines: int,
        chunk_overlap_lines: int,
        model_id: str = "",
    ):
        self.index_path = Path(rag_dir) / INDEX_FILE_NAME
        self.max_chunk_lines = max_chunk_lines
        self.chunk_overlap_lines = chunk_overlap_lines
        self.model_id = model_id

    def load(self, fingerprint: str) -> Optional[IndexSnapshot]:
        """
        Load the persisted index if it exactly matches the running configuration.

        Args:
            fingerprint: Freshly computed fingerprint of the file tree

        Returns:
            Snapshot with origin "cache", or None on any mismatch or failure.
        """
        try:
            persisted = self._read()
            self._validate(persisted, fingerprint)
        except IndexLoadError as e:
            logger.debug(f"[IndexCache] Cache miss: {e}")
            return None

        snapshot = IndexSnapshot(
            fingerprint=persisted.fingerprint,
            chunks=tuple(_to_chunk(c) for c in persisted.chunks),
            origin="cache",
        )
        logger.debug(f"[IndexCache] Cache hit: {len(snapshot)} chunks")
        return snapshot

    def load_unchecked(self) -> Optional[IndexSnapshot]:
        """
        Best-effort warm read used before the first query.

        Only the file's shape and version are checked; fingerprint and
        chunking parameters are not. Every error is ignored.

        Returns:
            Snapshot with origin "warm", or None.
        """
        try:
            persisted = self._read()
            if persisted.version != PERSISTED_INDEX_VERSION:
                return None
            snapshot = IndexSnapshot(
                fingerprint=persisted.fingerprint,
                chunks=tuple(_to_chunk(c) for c in persisted.chunks),
                origin="warm",
            )
        except Exception as e:
            logger.debug(f"[IndexCache] Warm read skipped: {e}")
            return None

        logger.info(f"Loaded {len(snapshot)} chunks from cache for immediate use")
        return snapshot

    def save(self, snapshot: IndexSnapshot) -> bool:
        """
        Persist a snapshot. Failures are logged, never raised.

        Returns:
            True when the file was written.
        """
        try:
            self._write(snapshot)
        except IndexPersistError as e:
            logger.warning(f"Failed to persist retrieval index: {e}")
            return False
        logger.debug(f"[IndexCache] Saved {len(snapshot)} chunks to {self.index_path}")
        return True

    def _read(self) -> PersistedIndex:
        try:
            raw = self.index_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise IndexLoadError(f"cannot read {self.index_path}: {e}") from e

        try:
            return PersistedIndex.model_validate(json.loads(raw))
        except json.JSONDecodeError as e:
            raise IndexLoadError(f"invalid JSON in {self.index_path}: {e}") from e
        except ValidationError as e:
            raise IndexLoadError(f"schema mismatch in {self.index_path}: {e.error_count()} errors") from e

    def _validate(self, persisted: PersistedIndex, fingerprint: str) -> None:
        if persisted.version != PERSISTED_INDEX_VERSION:
            raise IndexLoadError(f"version {persisted.version} != {PERSISTED_INDEX_VERSION}")
        if persisted.fingerprint != fingerprint:
            raise IndexLoadError("fingerprint changed")
        if persisted.maxChunkLines != self.max_chunk_lines or \
                persisted.chunkOverlapLines != self.chunk_overlap_lines:
            raise IndexLoadError(
                f"chunking parameters {persisted.maxChunkLines}/{persisted.chunkOverlapLines} "
                f"!= {self.max_chunk_lines}/{self.chunk_overlap_lines}"
            )

    def _write(self, snapshot: IndexSnapshot) -> None:
        payload = {
            "version": PERSISTED_INDEX_VERSION,
            "modelId": self.model_id,
            "fingerprint": snapshot.fingerprint,
            "maxChunkLines": self.max_chunk_lines,
            "chunkOverlapLines": self.chunk_overlap_lines,
            "chunks": [chunk.to_dict() for chunk in snapshot.chunks],
        }

        tmp_path = None
        try:
            self.index_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=".code-index-", suffix=".tmp", dir=str(self.index_path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f)
            os.replace(tmp_path, self.index_path)
            tmp_path = None
        except OSError as e:
            raise IndexPersistError(f"cannot write {self.index_path}: {e}") from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
