"""
Service classes for the repo-context retrieval engine.

Each service has a single responsibility: exclusion, discovery,
chunking, lexical ranking, persistence, coordination, reranking,
formatting, or composition of these into a retriever.
"""

from .config_loader import ConfigLoader, RetrieverConfig, load_config
from .context_formatter import ContextFormatter
from .context_retriever import ContextRetriever
from .embedding_service import EmbeddingCapability, EmbeddingService, LightweightEmbeddingService
from .prompt_enhancer import PromptEnhancer
from .retriever_registry import RetrieverRegistry

__all__ = [
    "ConfigLoader",
    "RetrieverConfig",
    "load_config",
    "ContextFormatter",
    "ContextRetriever",
    "EmbeddingCapability",
    "EmbeddingService",
    "LightweightEmbeddingService",
    "PromptEnhancer",
    "RetrieverRegistry",
]
