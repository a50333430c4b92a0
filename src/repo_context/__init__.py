"""
repo-context - local repository context retrieval

Indexes one repository root into overlapping, structure-aware chunks,
ranks them for a prompt (lexical narrowing, then optional embedding
reranking) and renders the best ones as a context payload.
"""

__version__ = "0.1.0"

from .context_exceptions import (
    ContextRetrievalError,
    EmbeddingUnavailableError,
    IndexCacheError,
    IndexLoadError,
    IndexPersistError,
    SecretLeakageDetectedError,
)
from .services.config_loader import RetrieverConfig, load_config
from .services.context_retriever import ContextRetriever
from .services.retriever_registry import RetrieverRegistry

__all__ = [
    "ContextRetriever",
    "RetrieverRegistry",
    "RetrieverConfig",
    "load_config",
    "ContextRetrievalError",
    "IndexCacheError",
    "IndexLoadError",
    "IndexPersistError",
    "EmbeddingUnavailableError",
    "SecretLeakageDetectedError",
]
