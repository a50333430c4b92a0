"""
Code Chunker

Splits one file's text into overlapping, boundary-aligned chunks.

A window of max_chunk_lines slides across the file at
step = max(1, max_chunk_lines - overlap_lines). Lines that open a
function, method, class, interface, type or enum are recorded as
boundaries; a window may be extended to end right before a boundary
found within boundary_slack_lines past its nominal end, as long as the
chunk stays within max_chunk_lines. Each chunk whose body contains a
structural declaration is prefixed with a tag line such as
"[Function: foo]" or "[Class: Bar]".
"""

import re
from typing import List, Optional, Pattern, Sequence, Set, Tuple

from .index_types import Chunk
from .lexical_index import tokenize

# Line-anchored patterns used to find structural boundaries.
FUNCTION_BOUNDARY_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"^\s*(export\s+)?(async\s+)?function\s+\w+"),
    re.compile(r"^\s*(export\s+)?(const|let|var)\s+\w+\s*=\s*(async\s+)?\("),
    re.compile(r"^\s*(public|private|protected|static)\s+(async\s+)?\w+\s*\("),
    re.compile(r"^\s*\w+\s*\([^)]*\)\s*\{"),
    re.compile(r"^\s*(async\s+)?def\s+\w+"),
)

CLASS_BOUNDARY_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"^\s*(export\s+)?(abstract\s+)?class\s+\w+"),
    re.compile(r"^\s*(export\s+)?interface\s+\w+"),
    re.compile(r"^\s*(export\s+)?type\s+\w+\s*="),
    re.compile(r"^\s*(export\s+)?enum\s+\w+"),
)

# (kind, pattern) pairs for tag extraction; group 1 is the declared name.
# Order breaks ties between matches at the same offset.
TAG_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("Function", re.compile(r"\bfunction\s+(\w+)")),
    ("Function", re.compile(r"\b(?:const|let|var)\s+(\w+)\s*=\s*(?:async\s+)?\(")),
    ("Function", re.compile(r"\b(?:public|private|protected|static)\s+(?:async\s+)?(\w+)\s*\(")),
    ("Function", re.compile(r"\bdef\s+(\w+)")),
    ("Class", re.compile(r"\bclass\s+(\w+)")),
    ("Interface", re.compile(r"\binterface\s+(\w+)")),
    ("Type", re.compile(r"\btype\s+(\w+)\s*=")),
)

_LINE_SPLIT = re.compile(r"\r?\n")


def split_lines(content: str) -> List[str]:
    """Split text on \\n or \\r\\n; a final newline does not add an empty line."""
    lines = _LINE_SPLIT.split(content)
    if len(lines) > 1 and lines[-1] == "":
        lines.pop()
    return lines


def identify_boundaries(lines: Sequence[str]) -> Set[int]:
    """Return 0-based indices of lines that open a structural declaration."""
    boundaries = set()
    for index, line in enumerate(lines):
        if any(p.search(line) for p in FUNCTION_BOUNDARY_PATTERNS) or \
                any(p.search(line) for p in CLASS_BOUNDARY_PATTERNS):
            boundaries.add(index)
    return boundaries


def extract_tag(text: str) -> Optional[str]:
    """
    Describe the earliest structural declaration in a chunk body.

    Returns:
        "Function: name", "Class: name", "Interface: name", "Type: name",
        or None when the text declares nothing.
    """
    best: Optional[Tuple[int, int, str, str]] = None
    for order, (kind, pattern) in enumerate(TAG_PATTERNS):
        match = pattern.search(text)
        if match is None:
            continue
        candidate = (match.start(), order, kind, match.group(1))
        if best is None or candidate < best:
            best = candidate

    if best is None:
        return None
    return f"{best[2]}: {best[3]}"


class CodeChunker:
    """
    Sliding-window chunker with structural boundary alignment.

    Attributes:
        max_chunk_lines: Hard upper bound on lines per chunk
        overlap_lines: Lines shared by consecutive windows
        boundary_slack_lines: How far past a window's nominal end a boundary is looked for
    """

    def __init__(self, max_chunk_lines: int = 48, overlap_lines: int = 8, boundary_slack_lines: int = 5):
        if max_chunk_lines < 1:
            raise ValueError("max_chunk_lines must be at least 1")
        self.max_chunk_lines = max_chunk_lines
        self.overlap_lines = max(0, overlap_lines)
        self.boundary_slack_lines = max(0, boundary_slack_lines)

    @property
    def step(self) -> int:
        return max(1, self.max_chunk_lines - self.overlap_lines)

    def chunk_file(self, relative_path: str, content: str) -> List[Chunk]:
        """
        Chunk one file.

        Args:
            relative_path: POSIX path relative to the indexed root
            content: Full file text

        Returns:
            Chunks in file order; blank windows are dropped.
        """
        lines = split_lines(content)
        total = len(lines)
        boundaries = identify_boundaries(lines)
        chunks: List[Chunk] = []

        start = 0
        while start < total:
            end = min(total, start + self.max_chunk_lines)
            aligned_end = self._align_to_boundary(start, end, total, boundaries)

            body = "\n".join(lines[start:aligned_end])
            if body.strip():
                tag = extract_tag(body)
                text = f"[{tag}]\n{body}" if tag else body
                chunks.append(Chunk(
                    file_path=relative_path,
                    start_line=start + 1,
                    end_line=aligned_end,
                    text=text,
                    lexical_terms=tokenize(text),
                ))

            if end >= total:
                break
            start += self.step

        return chunks

    def _align_to_boundary(self, start: int, end: int, total: int, boundaries: Set[int]) -> int:
        """
        End the window right before a nearby boundary line.

        The search never lets the chunk grow past max_chunk_lines.
        """
        limit = min(end + self.boundary_slack_lines, start + self.max_chunk_lines, total)
        for index in range(end, limit):
            if index in boundaries:
                return index
        return end
