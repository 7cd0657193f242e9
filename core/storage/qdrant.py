"""
Qdrant-backed vector store for block embeddings.

Blocking qdrant_client calls run in a worker thread. The collection is
created on first use with the configured vector size and distance.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Iterable, List, Optional

from qdrant_client import QdrantClient
from qdrant_client.models import (
    Distance, FieldCondition, Filter, FilterSelector, MatchAny, MatchValue,
    PayloadSchemaType, PointStruct, VectorParams
)

from .base import PersistenceFailure
from .utils import record_point_id
from ..models.config import QdrantConfig
from ..models.storage import SearchHit, VectorRecord

logger = logging.getLogger(__name__)

DISTANCE_MAPPING = {
    "cosine": Distance.COSINE,
    "euclidean": Distance.EUCLID,
    "dot": Distance.DOT
}


class QdrantVectorStore:
    """
    Vector store writing one point per (document, block) key.

    Point IDs come from record_point_id, so rewriting a block overwrites
    its previous point.
    """

    def __init__(self, config: Optional[QdrantConfig] = None, client: Optional[QdrantClient] = None):
        self.config = config or QdrantConfig()
        self._client = client
        self._collection_ready = False
        self._collection_lock = asyncio.Lock()

        # Performance tracking
        self._total_requests = 0
        self._total_request_time = 0.0
        self._failed_requests = 0

        logger.info(f"Initialized QdrantVectorStore: {self.config.url}/{self.collection_name}")

    @property
    def collection_name(self) -> str:
        return self.config.collection_name

    @property
    def client(self) -> QdrantClient:
        """Get Qdrant client instance"""
        if self._client is None:
            self._client = QdrantClient(
                url=self.config.url,
                api_key=self.config.api_key,
                timeout=int(self.config.timeout)
            )
        return self._client

    async def health_check(self) -> Dict[str, Any]:
        """Check Qdrant server health"""
        try:
            start_time = time.time()
            collections = await asyncio.to_thread(self.client.get_collections)
            elapsed = time.time() - start_time

            return {
                "status": "healthy",
                "response_time_ms": elapsed * 1000,
                "collections_count": len(collections.collections),
                "url": self.config.url
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "error": str(e),
                "url": self.config.url
            }

    async def ensure_collection(self) -> None:
        """
        Create the collection and its document index if missing.

        Raises:
            PersistenceFailure: the collection could not be listed or created
        """
        async with self._collection_lock:
            if self._collection_ready:
                return

            try:
                collections = await asyncio.to_thread(self.client.get_collections)
                names = [c.name for c in collections.collections]

                if self.collection_name not in names:
                    await asyncio.to_thread(
                        self.client.create_collection,
                        collection_name=self.collection_name,
                        vectors_config=VectorParams(
                            size=self.config.vector_size,
                            distance=DISTANCE_MAPPING[self.config.distance_metric]
                        )
                    )
                    await asyncio.to_thread(
                        self.client.create_payload_index,
                        collection_name=self.collection_name,
                        field_name="document_identity",
                        field_schema=PayloadSchemaType.KEYWORD
                    )
                    logger.info(
                        f"Created collection '{self.collection_name}' "
                        f"(size={self.config.vector_size}, distance={self.config.distance_metric})"
                    )
            except Exception as e:
                raise PersistenceFailure(
                    f"Failed to prepare collection {self.collection_name}: {e}"
                ) from e

            self._collection_ready = True

    async def put(self, records: List[VectorRecord]) -> None:
        if not records:
            return
        await self.ensure_collection()

        start_time = time.time()
        batch_size = self.config.batch_size
        try:
            for i in range(0, len(records), batch_size):
                batch = records[i:i + batch_size]
                points = [
                    PointStruct(
                        id=record_point_id(record.document_identity, record.block_identifier),
                        vector=record.vector,
                        payload=record.to_payload()
                    )
                    for record in batch
                ]
                await asyncio.to_thread(
                    self.client.upsert,
                    collection_name=self.collection_name,
                    points=points
                )
                logger.debug(
                    f"Upserted batch {i//batch_size + 1}: "
                    f"{len(batch)} points to {self.collection_name}"
                )
        except Exception as e:
            self._record_request(start_time, failed=True)
            raise PersistenceFailure(
                f"Failed to upsert {len(records)} points to {self.collection_name}: {e}"
            ) from e

        self._record_request(start_time)

    async def get(self, document_identity: str, block_identifier: str) -> Optional[VectorRecord]:
        await self.ensure_collection()

        start_time = time.time()
        try:
            points = await asyncio.to_thread(
                self.client.retrieve,
                collection_name=self.collection_name,
                ids=[record_point_id(document_identity, block_identifier)],
                with_payload=True,
                with_vectors=True
            )
        except Exception as e:
            self._record_request(start_time, failed=True)
            raise PersistenceFailure(f"Failed to read point from {self.collection_name}: {e}") from e

        self._record_request(start_time)
        if not points:
            return None
        return VectorRecord.from_payload(points[0].payload or {}, list(points[0].vector))

    async def nearest(self, vector: List[float], limit: int = 10) -> List[SearchHit]:
        await self.ensure_collection()

        start_time = time.time()
        try:
            response = await asyncio.to_thread(
                self.client.query_points,
                collection_name=self.collection_name,
                query=vector,
                limit=limit,
                with_payload=True,
                with_vectors=True
            )
        except Exception as e:
            self._record_request(start_time, failed=True)
            raise PersistenceFailure(f"Semantic search in {self.collection_name} failed: {e}") from e

        self._record_request(start_time)
        hits = []
        for rank, scored_point in enumerate(response.points, start=1):
            record = VectorRecord.from_payload(scored_point.payload or {}, list(scored_point.vector))
            hits.append(SearchHit(record=record, score=scored_point.score, rank=rank))

        logger.debug(f"Semantic search in {self.collection_name}: {len(hits)} results")
        return hits

    async def delete_document(
        self,
        document_identity: str,
        keep: Optional[Iterable[str]] = None
    ) -> int:
        """Delete the points of a document outside keep; the count is not reported by Qdrant"""
        await self.ensure_collection()

        kept = sorted(set(keep or ()))
        must_not = [
            FieldCondition(key="block_identifier", match=MatchAny(any=kept))
        ] if kept else None

        start_time = time.time()
        try:
            await asyncio.to_thread(
                self.client.delete,
                collection_name=self.collection_name,
                points_selector=FilterSelector(filter=Filter(
                    must=[
                        FieldCondition(
                            key="document_identity",
                            match=MatchValue(value=document_identity)
                        )
                    ],
                    must_not=must_not
                ))
            )
        except Exception as e:
            self._record_request(start_time, failed=True)
            raise PersistenceFailure(
                f"Failed to delete points of {document_identity} from {self.collection_name}: {e}"
            ) from e

        self._record_request(start_time)
        return 0

    async def close(self) -> None:
        if self._client is not None:
            await asyncio.to_thread(self._client.close)
            self._client = None
            self._collection_ready = False

    def get_performance_metrics(self) -> Dict[str, Any]:
        average = self._total_request_time / self._total_requests if self._total_requests else 0.0
        return {
            "total_requests": self._total_requests,
            "failed_requests": self._failed_requests,
            "average_request_time_ms": average * 1000
        }

    def _record_request(self, start_time: float, failed: bool = False) -> None:
        self._total_requests += 1
        self._total_request_time += time.time() - start_time
        if failed:
            self._failed_requests += 1
