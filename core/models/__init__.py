"""
Core data models for workspace-indexer

Document, block, storage, embedding and configuration models.
"""

from .entities import (
    BlockRange,
    CodeElementType,
    ContentChange,
    DocumentChangeEvent,
    NamedElementBlock,
    Position,
    SourceDocument,
)
from .storage import VectorRecord, SearchHit
from .config import ProjectConfig, QdrantConfig, EmbeddingModelConfig, IndexingConfig, GlobalSettings
from .embeddings import Embedding, EmbeddingStats

__all__ = [
    # Entities
    "BlockRange",
    "CodeElementType",
    "ContentChange",
    "DocumentChangeEvent",
    "NamedElementBlock",
    "Position",
    "SourceDocument",

    # Storage
    "VectorRecord",
    "SearchHit",

    # Configuration
    "ProjectConfig",
    "QdrantConfig",
    "EmbeddingModelConfig",
    "IndexingConfig",
    "GlobalSettings",

    # Embeddings
    "Embedding",
    "EmbeddingStats"
]
