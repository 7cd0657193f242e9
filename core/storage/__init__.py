"""
Storage package for workspace-indexer.

Provides the vector store interface, an in-memory sink and a Qdrant sink.
"""

from .base import PersistenceFailure, VectorStore
from .memory import InMemoryVectorStore
from .qdrant import QdrantVectorStore
from .utils import record_point_id

__all__ = [
    "PersistenceFailure",
    "VectorStore",
    "InMemoryVectorStore",
    "QdrantVectorStore",
    "record_point_id"
]
