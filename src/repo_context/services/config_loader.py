"""
Configuration Loader Service

Loads retriever configuration from repo_context.json in the indexed root.
Environment variables always take precedence over config file values.

Supported settings in repo_context.json:
{
    "top_k": 6,                             // -> REPO_CONTEXT_TOP_K
    "max_files": 1000,                      // -> REPO_CONTEXT_MAX_FILES
    "max_chunk_lines": 48,                  // -> REPO_CONTEXT_MAX_CHUNK_LINES
    "chunk_overlap_lines": 8,               // -> REPO_CONTEXT_CHUNK_OVERLAP_LINES
    "embeddings_enabled": true,             // -> REPO_CONTEXT_EMBEDDINGS_ENABLED
    "embedding_model": "sentence-transformers/all-MiniLM-L6-v2",  // -> REPO_CONTEXT_EMBEDDING_MODEL
    "embed_batch_size": 24,                 // -> REPO_CONTEXT_EMBED_BATCH_SIZE
    "embedding_timeout_seconds": 10.0,      // -> REPO_CONTEXT_EMBEDDING_TIMEOUT
    "refresh_interval_seconds": 30.0,       // -> REPO_CONTEXT_REFRESH_INTERVAL
    "rag_dir": ".rag",                      // -> REPO_CONTEXT_RAG_DIR
    "extensions": [".ts", ".py", ".md"]     // -> REPO_CONTEXT_EXTENSIONS (comma separated)
}
"""

import json
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from ..logging_config import configure_logger_for_debug_trace

logger = configure_logger_for_debug_trace(__name__)

CONFIG_FILE_NAME = "repo_context.json"

DEFAULT_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".md", ".json", ".py")


@dataclass(frozen=True)
class RetrieverConfig:
    """
    Typed retriever settings.

    Chunking parameters take part in persisted index validation: a cache
    written with different max_chunk_lines or chunk_overlap_lines is ignored.
    """
    top_k: int = 6
    max_files: int = 1000
    max_chunk_lines: int = 48
    chunk_overlap_lines: int = 8
    boundary_slack_lines: int = 5
    lexical_candidate_multiplier: int = 12
    lexical_score_weight: float = 0.2
    vector_score_weight: float = 0.8
    embeddings_enabled: bool = True
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embed_batch_size: int = 24
    embedding_timeout_seconds: float = 10.0
    refresh_interval_seconds: float = 30.0
    rag_dir: str = ".rag"
    extensions: Tuple[str, ...] = field(default=DEFAULT_EXTENSIONS)

    @property
    def lexical_candidate_limit(self) -> int:
        return self.top_k * self.lexical_candidate_multiplier


class ConfigLoader:
    """
    Loads configuration from repo_context.json.

    Priority: Environment variables > repo_context.json > defaults
    """

    # Mapping from repo_context.json keys to environment variable names
    CONFIG_KEY_TO_ENV = {
        "top_k": "REPO_CONTEXT_TOP_K",
        "max_files": "REPO_CONTEXT_MAX_FILES",
        "max_chunk_lines": "REPO_CONTEXT_MAX_CHUNK_LINES",
        "chunk_overlap_lines": "REPO_CONTEXT_CHUNK_OVERLAP_LINES",
        "embeddings_enabled": "REPO_CONTEXT_EMBEDDINGS_ENABLED",
        "embedding_model": "REPO_CONTEXT_EMBEDDING_MODEL",
        "embed_batch_size": "REPO_CONTEXT_EMBED_BATCH_SIZE",
        "embedding_timeout_seconds": "REPO_CONTEXT_EMBEDDING_TIMEOUT",
        "refresh_interval_seconds": "REPO_CONTEXT_REFRESH_INTERVAL",
        "rag_dir": "REPO_CONTEXT_RAG_DIR",
        "extensions": "REPO_CONTEXT_EXTENSIONS",
    }

    def __init__(self):
        self._config: Dict[str, Any] = {}
        self._config_path: Optional[Path] = None
        self._loaded = False

    def load(self, project_root: Path) -> bool:
        """
        Load configuration from repo_context.json.

        Args:
            project_root: Root directory being indexed.

        Returns:
            True if a config file was found and loaded, False otherwise.
        """
        if self._loaded:
            return self._config_path is not None

        config_path = Path(project_root) / CONFIG_FILE_NAME
        if config_path.exists():
            try:
                with open(config_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    self._config = data
                    self._config_path = config_path
                    logger.info(f"Loaded config from: {config_path}")
                else:
                    logger.warning(f"Ignoring {config_path}: top-level value is not an object")
            except json.JSONDecodeError as e:
                logger.warning(f"Invalid JSON in {config_path}: {e}")
            except OSError as e:
                logger.warning(f"Error loading {config_path}: {e}")

        self._loaded = True
        return self._config_path is not None

    def get_retriever_config(self, **overrides: Any) -> RetrieverConfig:
        """
        Get retriever configuration with defaults applied.

        Args:
            **overrides: Explicit values from the caller; they win over
                environment variables and the config file.

        Returns:
            RetrieverConfig with every setting resolved.
        """
        defaults = RetrieverConfig()
        resolved: Dict[str, Any] = {}

        for spec in fields(RetrieverConfig):
            key = spec.name
            default_value = getattr(defaults, key)

            env_var = self.CONFIG_KEY_TO_ENV.get(key)
            env_value = os.getenv(env_var) if env_var else None
            if env_value is not None:
                resolved[key] = _coerce(env_value, default_value)
            elif key in self._config:
                resolved[key] = _coerce(self._config[key], default_value)

        resolved.update({k: v for k, v in overrides.items() if v is not None})
        return replace(defaults, **resolved)

    @property
    def config_path(self) -> Optional[Path]:
        """Path to the loaded config file, or None if not loaded."""
        return self._config_path


def _coerce(value: Any, default_value: Any) -> Any:
    """Convert an env or JSON value to the type of its default."""
    try:
        if isinstance(default_value, bool):
            if isinstance(value, bool):
                return value
            return str(value).strip().lower() in ('true', '1', 'yes')
        if isinstance(default_value, int):
            return int(value)
        if isinstance(default_value, float):
            return float(value)
        if isinstance(default_value, tuple):
            if isinstance(value, str):
                items = value.split(",")
            else:
                items = list(value)
            return tuple(str(item).strip() for item in items if str(item).strip())
        return str(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid config value {value!r}, using default {default_value!r}")
        return default_value


def load_config(project_root: Path, **overrides: Any) -> RetrieverConfig:
    """
    Resolve the retriever configuration for one indexed root.

    Args:
        project_root: Root directory being indexed.
        **overrides: Explicit caller values.

    Returns:
        RetrieverConfig for that root.
    """
    loader = ConfigLoader()
    loader.load(project_root)
    return loader.get_retriever_config(**overrides)
