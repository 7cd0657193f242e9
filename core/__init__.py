"""
workspace-indexer core package

Incremental syntax trees, structural block extraction, local embeddings
and cancellable workspace indexing.
"""

__version__ = "1.0.0"

from .models import (
    CodeElementType,
    NamedElementBlock,
    ProjectConfig,
    SourceDocument,
    VectorRecord,
)

__all__ = [
    "CodeElementType",
    "NamedElementBlock",
    "ProjectConfig",
    "SourceDocument",
    "VectorRecord"
]
