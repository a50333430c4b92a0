"""
Data models for the persisted retrieval index.

Pydantic models describing the on-disk JSON layout of
<root>/<rag_dir>/code-index-v1.json. Embedding vectors are never part of it.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field

PERSISTED_INDEX_VERSION = 1


class PersistedChunk(BaseModel):
    """One chunk as stored on disk"""
    model_config = ConfigDict(extra="ignore")

    filePath: str
    startLine: int = Field(ge=1)
    endLine: int = Field(ge=1)
    text: str
    lexicalTerms: List[str] = Field(default_factory=list)


class PersistedIndex(BaseModel):
    """Whole persisted index: header fields plus chunks"""
    model_config = ConfigDict(extra="ignore")

    version: int
    modelId: str = ""
    fingerprint: str
    maxChunkLines: int
    chunkOverlapLines: int
    chunks: List[PersistedChunk]
