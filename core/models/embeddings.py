"""
Embedding data models for workspace-indexer.
"""

from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class Embedding:
    """Fixed-length vector plus the identifier of the text it represents"""
    vector: List[float]
    source_id: str = ""

    @property
    def dimensions(self) -> int:
        return len(self.vector)


@dataclass
class EmbeddingStats:
    """Statistics for embedding operations"""
    total_chunks: int = 0
    total_calls: int = 0
    total_processing_time_ms: float = 0.0
    failed_calls: int = 0

    @property
    def average_chunk_time_ms(self) -> float:
        """Average time per embedded chunk"""
        if self.total_chunks == 0:
            return 0.0
        return self.total_processing_time_ms / self.total_chunks
