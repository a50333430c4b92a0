"""
Tests for embedding reranking and its degrade paths.
"""

import math
import threading
import time

import numpy as np
import pytest

from repo_context.context_exceptions import EmbeddingUnavailableError
from repo_context.services import reranker as reranker_module
from repo_context.services.embedding_service import EmbeddingCapability
from repo_context.services.index_types import Chunk, ScoredChunk
from repo_context.services.reranker import EmbeddingReranker


class KeywordCapability(EmbeddingCapability):
    """Maps texts to one of two orthogonal directions by keyword."""

    model_name = "keyword-stub"

    def __init__(self, keyword: str):
        self.keyword = keyword
        self.calls = []

    def embed(self, texts):
        self.calls.append(list(texts))
        rows = [[1.0, 0.0] if self.keyword in text else [0.0, 1.0] for text in texts]
        return np.array(rows, dtype=np.float32)


class FailingCapability(EmbeddingCapability):
    def __init__(self, error):
        self.error = error
        self.calls = 0

    def embed(self, texts):
        self.calls += 1
        raise self.error


class SlowCapability(EmbeddingCapability):
    def __init__(self):
        self.release = threading.Event()

    def embed(self, texts):
        self.release.wait(timeout=10)
        return np.ones((len(texts), 2), dtype=np.float32)


def candidates(*specs):
    return [
        ScoredChunk(Chunk(file_path=path, start_line=1, end_line=1, text=text), score)
        for path, text, score in specs
    ]


@pytest.fixture
def warnings(monkeypatch):
    messages = []
    monkeypatch.setattr(reranker_module.logger, "warning", lambda message: messages.append(message))
    return messages


class TestEmbeddingReranker:
    """Test blending and degradation."""

    def test_blends_lexical_and_cosine(self):
        capability = KeywordCapability("upload")
        reranker = EmbeddingReranker(capability, lexical_weight=0.2, vector_weight=0.8)
        items = candidates(
            ("a.ts", "render header", 0.5),
            ("b.ts", "upload retry", 0.4),
        )

        ranked = reranker.rerank("upload flow", items)

        assert [entry.chunk.file_path for entry in ranked] == ["b.ts", "a.ts"]
        assert math.isclose(ranked[0].score, 0.4 * 0.2 + 1.0 * 0.8, rel_tol=1e-6)
        assert math.isclose(ranked[1].score, 0.5 * 0.2, rel_tol=1e-6)

    def test_only_query_and_candidates_are_embedded(self):
        capability = KeywordCapability("x")
        reranker = EmbeddingReranker(capability)
        items = candidates(("a.ts", "first", 0.3), ("b.ts", "second", 0.2))

        reranker.rerank("query text", items)

        assert capability.calls == [["query text", "first", "second"]]

    def test_batches(self):
        capability = KeywordCapability("x")
        reranker = EmbeddingReranker(capability, batch_size=2)
        items = candidates(*[(f"f{i}.ts", f"text {i}", 0.1) for i in range(5)])

        reranker.rerank("query", items)

        assert [len(batch) for batch in capability.calls] == [2, 2, 2]

    def test_missing_capability_returns_lexical_order(self, warnings, monkeypatch):
        infos = []
        monkeypatch.setattr(reranker_module, "_missing_capability_logged", False)
        monkeypatch.setattr(reranker_module.logger, "info", lambda message: infos.append(message))

        reranker = EmbeddingReranker(None)
        EmbeddingReranker(None)
        items = candidates(("a.ts", "x", 0.5), ("b.ts", "y", 0.4))

        assert not reranker.is_available
        assert reranker.rerank("query", items) is items
        assert len(infos) == 1
        assert warnings == []

    def test_failure_disables_permanently(self, warnings):
        capability = FailingCapability(RuntimeError("model crashed"))
        reranker = EmbeddingReranker(capability)
        items = candidates(("a.ts", "x", 0.5), ("b.ts", "y", 0.4))

        assert reranker.rerank("query", items) is items
        assert reranker.rerank("query", items) is items

        assert capability.calls == 1
        assert not reranker.is_available
        assert len(warnings) == 1
        assert "model crashed" in warnings[0]

    def test_failure_is_shared_by_rerankers_of_one_capability(self, warnings):
        capability = FailingCapability(RuntimeError("model crashed"))
        first = EmbeddingReranker(capability)
        second = EmbeddingReranker(capability)
        items = candidates(("a.ts", "x", 0.5))

        assert first.rerank("query", items) is items
        assert second.rerank("query", items) is items

        assert capability.calls == 1
        assert not first.is_available and not second.is_available
        assert capability.unavailable_reason is not None
        assert len(warnings) == 1

    def test_unavailable_error_disables(self, warnings):
        capability = FailingCapability(EmbeddingUnavailableError("not installed"))
        reranker = EmbeddingReranker(capability)

        reranker.rerank("query", candidates(("a.ts", "x", 0.5)))

        assert not reranker.is_available
        assert "not installed" in warnings[0]

    def test_timeout_disables(self, warnings):
        capability = SlowCapability()
        reranker = EmbeddingReranker(capability, timeout_seconds=0.05)
        items = candidates(("a.ts", "x", 0.5))

        try:
            assert reranker.rerank("query", items) is items
            assert not reranker.is_available
            assert "exceeded" in warnings[0]
        finally:
            capability.release.set()

    def test_warm_up_is_not_bounded_by_timeout(self, warnings):
        class SlowLoadingCapability(KeywordCapability):
            def warm_up(self):
                time.sleep(0.2)

        capability = SlowLoadingCapability("upload")
        reranker = EmbeddingReranker(capability, timeout_seconds=0.1)
        items = candidates(("a.ts", "render header", 0.5), ("b.ts", "upload retry", 0.4))

        ranked = reranker.rerank("upload flow", items)

        assert [entry.chunk.file_path for entry in ranked] == ["b.ts", "a.ts"]
        assert reranker.is_available
        assert warnings == []

    def test_warm_up_failure_disables(self, warnings):
        class BrokenLoadCapability(KeywordCapability):
            def warm_up(self):
                raise EmbeddingUnavailableError("cannot load model")

        capability = BrokenLoadCapability("x")
        reranker = EmbeddingReranker(capability)
        items = candidates(("a.ts", "x", 0.5))

        assert reranker.rerank("query", items) is items
        assert reranker.rerank("query", items) is items

        assert capability.calls == []
        assert not reranker.is_available
        assert len(warnings) == 1
        assert "cannot load model" in warnings[0]

    def test_wrong_row_count_keeps_lexical_order(self):
        class ShortCapability(EmbeddingCapability):
            def embed(self, texts):
                return np.ones((1, 2), dtype=np.float32)

        reranker = EmbeddingReranker(ShortCapability(), batch_size=100)
        items = candidates(("a.ts", "x", 0.5), ("b.ts", "y", 0.4))

        assert reranker.rerank("query", items) is items

    def test_empty_candidates(self):
        reranker = EmbeddingReranker(KeywordCapability("x"))
        assert reranker.rerank("query", []) == []

    def test_with_lightweight_service(self, lightweight_embedding):
        reranker = EmbeddingReranker(lightweight_embedding)
        items = candidates(("a.ts", "same text", 0.1), ("b.ts", "other text", 0.1))

        ranked = reranker.rerank("same text", items)

        assert ranked[0].chunk.file_path == "a.ts"
        assert math.isclose(ranked[0].score, 0.1 * 0.2 + 0.8, rel_tol=1e-5)
