"""
Shared pytest fixtures for repo-context tests.

Provides a temporary repository builder, a lightweight embedding
service and an environment scrubbed of REPO_CONTEXT_* settings.
"""

from pathlib import Path
from typing import Callable, Dict

import pytest

from repo_context.services.config_loader import ConfigLoader
from repo_context.services.embedding_service import LightweightEmbeddingService


FOO_SOURCE = "\n".join(
    [
        "export function foo(value) {",
        "  // foo implementation doubles the value",
        "  const doubled = value * 2;",
        "  return doubled;",
        "}",
    ]
    + [f"// padding line {i}" for i in range(35)]
) + "\n"

BAR_SOURCE = "\n".join(
    [
        "export function bar(items) {",
        "  // implementation note: fix bug when items is empty",
        "  const count = items.length;",
        "  return count;",
        "}",
    ]
    + [f"// filler row {i}" for i in range(35)]
) + "\n"


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Make sure developer settings never leak into tests."""
    for env_var in ConfigLoader.CONFIG_KEY_TO_ENV.values():
        monkeypatch.delenv(env_var, raising=False)


@pytest.fixture
def make_repo(tmp_path) -> Callable[[Dict[str, str]], Path]:
    """
    Build a repository under tmp_path.

    Usage:
        root = make_repo({"src/a.ts": "export function a() {}\\n"})
    """
    def _make(files: Dict[str, str]) -> Path:
        root = tmp_path / "repo"
        root.mkdir(exist_ok=True)
        for relative_path, content in files.items():
            path = root / relative_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root

    return _make


@pytest.fixture
def foo_bar_repo(make_repo) -> Path:
    """Two 40-line files, each declaring one function."""
    return make_repo({"a.ts": FOO_SOURCE, "b.ts": BAR_SOURCE})


@pytest.fixture
def lightweight_embedding():
    """Hash-based embedding service (no model download)."""
    return LightweightEmbeddingService(embedding_dim=64)
