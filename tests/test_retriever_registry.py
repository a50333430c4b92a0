"""
Tests for the per-root retriever registry.
"""

from repo_context.services import reranker, retriever_registry
from repo_context.services.embedding_service import EmbeddingCapability, EmbeddingService
from repo_context.services.retriever_registry import RetrieverRegistry


class CountingFailingCapability(EmbeddingCapability):
    def __init__(self):
        self.calls = 0

    def embed(self, texts):
        self.calls += 1
        raise RuntimeError("backend offline")


class TestRetrieverRegistry:
    """Test retriever creation and sharing."""

    def test_same_root_returns_same_retriever(self, make_repo):
        root = make_repo({"a.ts": "export function a() {}\n"})
        registry = RetrieverRegistry(use_embeddings=False)

        first = registry.get(root)
        second = registry.get(str(root / "." / ""))

        assert first is second
        assert len(registry) == 1

    def test_different_roots(self, tmp_path):
        (tmp_path / "one").mkdir()
        (tmp_path / "two").mkdir()
        registry = RetrieverRegistry(use_embeddings=False)

        assert registry.get(tmp_path / "one") is not registry.get(tmp_path / "two")
        assert len(registry) == 2

    def test_falls_back_to_working_directory(self, tmp_path, monkeypatch):
        warnings = []
        monkeypatch.setattr(retriever_registry.logger, "warning", lambda message: warnings.append(message))
        monkeypatch.chdir(tmp_path)

        retriever = RetrieverRegistry(use_embeddings=False).get()

        assert retriever.root == tmp_path.resolve()
        assert len(warnings) == 1

    def test_embedding_capability_is_shared(self, tmp_path, lightweight_embedding):
        (tmp_path / "one").mkdir()
        (tmp_path / "two").mkdir()
        registry = RetrieverRegistry(embedding=lightweight_embedding)

        one = registry.get(tmp_path / "one")
        two = registry.get(tmp_path / "two")

        assert one.embeddings_available and two.embeddings_available
        assert one._reranker._capability is two._reranker._capability is lightweight_embedding

    def test_default_capability_is_created_from_config(self, tmp_path):
        (tmp_path / "repo_context.json").write_text('{"embedding_model": "custom/model"}', encoding="utf-8")
        registry = RetrieverRegistry()

        retriever = registry.get(tmp_path)
        capability = retriever._reranker._capability

        assert isinstance(capability, EmbeddingService)
        assert capability.model_name == "custom/model"

    def test_lexical_only(self, tmp_path):
        retriever = RetrieverRegistry(use_embeddings=False).get(tmp_path)
        assert not retriever.embeddings_available

    def test_failing_capability_is_tried_once_across_roots(self, tmp_path, monkeypatch):
        warnings = []
        monkeypatch.setattr(reranker.logger, "warning", lambda message: warnings.append(message))
        capability = CountingFailingCapability()
        registry = RetrieverRegistry(embedding=capability)

        for name in ("one", "two", "three"):
            root = tmp_path / name
            root.mkdir()
            (root / "a.ts").write_text("export function foo() {\n  // foo implementation\n}\n", encoding="utf-8")
            retriever = registry.get(root)
            retriever.coordinator.ensure_started()
            assert retriever.coordinator.wait_until_idle(timeout=10)

            context = retriever.get_context("foo implementation")

            assert "File: a.ts" in context
            assert not retriever.embeddings_available

        assert capability.calls == 1
        assert len(warnings) == 1
