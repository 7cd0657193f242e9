"""
Process-local vector store.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from ..models.storage import SearchHit, VectorRecord

logger = logging.getLogger(__name__)


class InMemoryVectorStore:
    """Dict-backed store with brute-force cosine similarity search"""

    def __init__(self):
        self._records: Dict[Tuple[str, str], VectorRecord] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def documents(self) -> List[str]:
        return sorted({identity for identity, _ in self._records})

    async def put(self, records: List[VectorRecord]) -> None:
        async with self._lock:
            for record in records:
                self._records[record.key] = record
        logger.debug(f"Stored {len(records)} records ({len(self._records)} total)")

    async def get(self, document_identity: str, block_identifier: str) -> Optional[VectorRecord]:
        return self._records.get((document_identity, block_identifier))

    async def nearest(self, vector: List[float], limit: int = 10) -> List[SearchHit]:
        if not self._records or limit <= 0:
            return []

        records = list(self._records.values())
        matrix = np.asarray([record.vector for record in records], dtype=np.float32)
        query = np.asarray(vector, dtype=np.float32)

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        scores = matrix @ query / np.clip(norms, 1e-12, None)

        order = np.argsort(-scores, kind="stable")[:limit]
        return [
            SearchHit(record=records[index], score=float(scores[index]), rank=rank)
            for rank, index in enumerate(order, start=1)
        ]

    async def delete_document(
        self,
        document_identity: str,
        keep: Optional[Iterable[str]] = None
    ) -> int:
        kept = set(keep or ())
        async with self._lock:
            keys = [
                key for key in self._records
                if key[0] == document_identity and key[1] not in kept
            ]
            for key in keys:
                del self._records[key]
        return len(keys)
