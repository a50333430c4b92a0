"""
Index Types - Data classes for retrieval index operations.

Contains value objects shared by the chunker, the lexical index,
the fingerprint cache and the index coordinator.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Tuple


@dataclass(frozen=True)
class Chunk:
    """
    A contiguous slice of one file's lines, the unit of retrieval.

    Lines are 1-indexed and inclusive. ``text`` carries the structural
    tag line when one was detected.
    """
    file_path: str
    start_line: int
    end_line: int
    text: str
    lexical_terms: FrozenSet[str] = field(default_factory=frozenset, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted chunk layout (no embedding)."""
        return {
            "filePath": self.file_path,
            "startLine": self.start_line,
            "endLine": self.end_line,
            "text": self.text,
            "lexicalTerms": sorted(self.lexical_terms),
        }


@dataclass(frozen=True)
class CandidateFile:
    """A discovered file that may be chunked."""
    absolute_path: Path
    relative_path: str


@dataclass(frozen=True)
class FingerprintEntry:
    """Size and modification time of one admitted file."""
    relative_path: str
    byte_size: int
    modified_time_millis: int

    def render(self) -> str:
        return f"{self.relative_path}:{self.byte_size}:{self.modified_time_millis}"


@dataclass(frozen=True)
class IndexSnapshot:
    """
    An immutable, published view of the index.

    ``origin`` records how the snapshot was produced:
    "empty" (nothing loaded yet), "warm" (best-effort read of the cache file,
    not fingerprint-validated), "cache" (validated cache hit) or
    "scan" (fresh chunking of every admitted file).
    """
    fingerprint: str
    chunks: Tuple[Chunk, ...]
    origin: str = "scan"

    @classmethod
    def empty(cls) -> "IndexSnapshot":
        return cls(fingerprint="", chunks=(), origin="empty")

    @property
    def is_authoritative(self) -> bool:
        """True when the fingerprint was validated against the file tree."""
        return self.origin in ("cache", "scan")

    def __len__(self) -> int:
        return len(self.chunks)


@dataclass(frozen=True)
class ScoredChunk:
    """A chunk with its lexical or blended relevance score."""
    chunk: Chunk
    score: float


@dataclass
class RebuildStats:
    """Outcome of one reconcile pass, kept for status reporting."""
    fingerprint: str = ""
    files_discovered: int = 0
    files_admitted: int = 0
    files_chunked: int = 0
    chunks_indexed: int = 0
    cache_hit: bool = False
    skipped: bool = False
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for display."""
        return {
            "fingerprint": self.fingerprint[:12],
            "files_discovered": self.files_discovered,
            "files_admitted": self.files_admitted,
            "files_chunked": self.files_chunked,
            "chunks_indexed": self.chunks_indexed,
            "cache_hit": self.cache_hit,
            "skipped": self.skipped,
            "duration_ms": self.duration_ms,
        }
