"""
Embedding providers for workspace-indexer.
"""

from .base import (
    BaseEmbedder,
    EmbedderState,
    EmbeddingError,
    EmbeddingProviderError,
    InitError,
    ProviderNotReady,
)
from .local import LocalEmbeddingProvider
from .pooling import l2_normalize, mean_pooling

__all__ = [
    "BaseEmbedder",
    "EmbedderState",
    "EmbeddingError",
    "EmbeddingProviderError",
    "InitError",
    "ProviderNotReady",
    "LocalEmbeddingProvider",
    "l2_normalize",
    "mean_pooling"
]
