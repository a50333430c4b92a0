"""
Lexical Index

Token-presence scoring of a query against every chunk of a snapshot.

score = overlap / sqrt(max(1, |query terms| * |chunk terms|))

Chunks sharing no term with the query are dropped. This stage is cheap
enough to run over the whole index and narrows the set handed to the
embedding reranker.
"""

import math
import re
from typing import FrozenSet, Iterable, List

from .index_types import Chunk, ScoredChunk

_TOKEN_PATTERN = re.compile(r"[a-z0-9_]{3,}")


def tokenize(text: str) -> FrozenSet[str]:
    """Lowercase and extract runs of [a-z0-9_] at least 3 characters long."""
    return frozenset(_TOKEN_PATTERN.findall(text.lower()))


def lexical_score(query_terms: FrozenSet[str], chunk_terms: FrozenSet[str]) -> float:
    """Normalized overlap between two term sets (0.0 when nothing is shared)."""
    overlap = len(query_terms & chunk_terms)
    if overlap == 0:
        return 0.0
    return overlap / math.sqrt(max(1, len(query_terms) * len(chunk_terms)))


class LexicalIndex:
    """Ranks chunks by normalized term overlap with a query."""

    def rank(self, query: str, chunks: Iterable[Chunk], limit: int) -> List[ScoredChunk]:
        """
        Score every chunk and keep the best ones.

        Args:
            query: Free-text query
            chunks: Chunks of the published snapshot
            limit: Maximum number of candidates returned

        Returns:
            Candidates with a positive score, best first. Equal scores keep
            snapshot order.
        """
        query_terms = tokenize(query)
        if not query_terms or limit <= 0:
            return []

        scored = []
        for chunk in chunks:
            score = lexical_score(query_terms, chunk.lexical_terms)
            if score > 0:
                scored.append(ScoredChunk(chunk=chunk, score=score))

        scored.sort(key=lambda entry: entry.score, reverse=True)
        return scored[:limit]
