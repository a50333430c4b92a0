"""
Context Formatter

Renders retrieval results as one text payload with at most two sections:
the active file (always first when supplied) and reference context.
"""

import re
from typing import List, Optional, Sequence

from .index_types import Chunk

ACTIVE_SECTION_HEADER = "=== ACTIVE FILE (PRIMARY TARGET) ==="
REFERENCE_SECTION_HEADER = "=== REFERENCE CONTEXT (for patterns/conventions only) ==="
NO_EXCERPT_SUMMARY = "No indexed excerpt available."
NO_CONTENT_SUMMARY = "No readable content available."
SUMMARY_MAX_CHARS = 180

_WHITESPACE = re.compile(r"\s+")


def summarize_chunk(text: str) -> str:
    """First non-blank line, whitespace collapsed, at most 180 characters."""
    for line in text.splitlines():
        stripped = line.strip()
        if stripped:
            compact = _WHITESPACE.sub(" ", stripped)
            if len(compact) > SUMMARY_MAX_CHARS:
                return compact[:SUMMARY_MAX_CHARS - 3] + "..."
            return compact
    return NO_CONTENT_SUMMARY


def _fence(text: str) -> str:
    return f"```\n{text}\n```"


class ContextFormatter:
    """Partitions results into active-file and reference sections."""

    def format(
        self,
        reference_chunks: Sequence[Chunk],
        active_file: Optional[str] = None,
        active_chunks: Sequence[Chunk] = (),
    ) -> Optional[str]:
        """
        Build the context payload.

        Args:
            reference_chunks: Top ranked chunks from the whole index
            active_file: Normalized active file path, if the caller gave one
            active_chunks: Chunks of the active file (at most two are expected)

        Returns:
            The rendered text, or None when there is nothing to show.
        """
        if not reference_chunks and not active_chunks:
            return None

        sections: List[str] = []
        if active_file:
            sections.append(self._format_active(active_file, active_chunks))
        if reference_chunks:
            sections.append(self._format_reference(reference_chunks))
        return "\n\n".join(sections)

    def _format_active(self, active_file: str, active_chunks: Sequence[Chunk]) -> str:
        summary = summarize_chunk(active_chunks[0].text) if active_chunks else NO_EXCERPT_SUMMARY
        parts = [
            ACTIVE_SECTION_HEADER,
            f"File path: {active_file}",
            f"Summary: {summary}",
            "",
        ]
        if active_chunks:
            excerpts = "\n\n".join(
                f"Lines {chunk.start_line}-{chunk.end_line}:\n{_fence(chunk.text)}"
                for chunk in active_chunks
            )
            parts.append(f"Code excerpts from active file:\n{excerpts}")
        return "\n".join(parts)

    def _format_reference(self, chunks: Sequence[Chunk]) -> str:
        body = "\n\n".join(
            f"File: {chunk.file_path} (lines {chunk.start_line}-{chunk.end_line})\n{_fence(chunk.text)}"
            for chunk in chunks
        )
        return f"{REFERENCE_SECTION_HEADER}\n{body}"
