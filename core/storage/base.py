"""
Vector store interface.

The indexer only depends on this protocol; concrete sinks live in
memory.py (process-local) and qdrant.py (Qdrant collection).
"""

from typing import Iterable, List, Optional, Protocol, runtime_checkable

from ..models.storage import SearchHit, VectorRecord


class PersistenceFailure(Exception):
    """Raised when a vector store read or write fails"""
    pass


@runtime_checkable
class VectorStore(Protocol):
    """Key -> vector sink keyed by (document identity, block identifier)"""

    async def put(self, records: List[VectorRecord]) -> None:
        """Write records, overwriting any with the same key"""
        ...

    async def get(self, document_identity: str, block_identifier: str) -> Optional[VectorRecord]:
        """Read one record by key"""
        ...

    async def nearest(self, vector: List[float], limit: int = 10) -> List[SearchHit]:
        """Records closest to a query vector, best first"""
        ...

    async def delete_document(
        self,
        document_identity: str,
        keep: Optional[Iterable[str]] = None
    ) -> int:
        """
        Drop the records of a document, except blocks named in keep.

        Returns the number removed when the store knows it.
        """
        ...
