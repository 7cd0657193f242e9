"""
Unit tests for vector stores.

Covers the in-memory store, point ID derivation and the Qdrant store
against a mocked client.
"""

from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from core.models.config import QdrantConfig
from core.models.entities import BlockRange, CodeElementType, Position
from core.models.storage import VectorRecord
from core.storage.base import PersistenceFailure, VectorStore
from core.storage.memory import InMemoryVectorStore
from core.storage.qdrant import QdrantVectorStore
from core.storage.utils import record_point_id


def make_record(document: str, block: str, vector, kind=CodeElementType.METHOD) -> VectorRecord:
    return VectorRecord(
        document_identity=document,
        block_identifier=block,
        kind=kind,
        vector=list(vector),
        source_range=BlockRange(Position(1, 0), Position(3, 4), 10, 42)
    )


class TestRecordPointId:
    """Test point ID derivation"""

    def test_stable(self):
        """Test the same key always maps to the same ID"""
        assert record_point_id("a.py", "method:f:1:4") == record_point_id("a.py", "method:f:1:4")

    def test_distinct_keys(self):
        """Test different keys map to different IDs"""
        ids = {
            record_point_id("a.py", "method:f:1:4"),
            record_point_id("b.py", "method:f:1:4"),
            record_point_id("a.py", "method:g:1:4"),
        }
        assert len(ids) == 3

    def test_unsigned_64_bit(self):
        """Test IDs fit an unsigned 64-bit integer"""
        point_id = record_point_id("a.py", "structure:A:0:6")
        assert 0 <= point_id < 2 ** 64


class TestVectorRecord:
    """Test record payload conversion"""

    def test_payload_round_trip(self):
        """Test a record rebuilt from its payload equals the original"""
        record = make_record("a.py", "method:f:1:4", [0.1, 0.2])

        payload = record.to_payload()

        assert "vector" not in payload
        assert payload["kind"] == "method"
        assert VectorRecord.from_payload(payload, [0.1, 0.2]) == record

    def test_empty_vector_rejected(self):
        """Test validation of empty vectors"""
        with pytest.raises(ValueError):
            make_record("a.py", "method:f:1:4", [])

    def test_empty_key_rejected(self):
        """Test validation of key parts"""
        with pytest.raises(ValueError):
            make_record(" ", "method:f:1:4", [1.0])


class TestInMemoryVectorStore:
    """Test InMemoryVectorStore behaviour"""

    def setup_method(self):
        """Setup test environment"""
        self.store = InMemoryVectorStore()

    def test_satisfies_protocol(self):
        """Test the store implements VectorStore"""
        assert isinstance(self.store, VectorStore)

    @pytest.mark.asyncio
    async def test_put_and_get(self):
        """Test records are retrievable by key"""
        record = make_record("a.py", "method:f:1:4", [1.0, 0.0])

        await self.store.put([record])

        assert await self.store.get("a.py", "method:f:1:4") == record
        assert await self.store.get("a.py", "method:missing:0:0") is None

    @pytest.mark.asyncio
    async def test_put_overwrites_same_key(self):
        """Test rewriting a key replaces its vector"""
        await self.store.put([make_record("a.py", "method:f:1:4", [1.0, 0.0])])
        await self.store.put([make_record("a.py", "method:f:1:4", [0.0, 1.0])])

        stored = await self.store.get("a.py", "method:f:1:4")
        assert stored.vector == [0.0, 1.0]
        assert len(self.store) == 1

    @pytest.mark.asyncio
    async def test_nearest_orders_by_cosine(self):
        """Test nearest returns hits best first with ranks"""
        await self.store.put([
            make_record("a.py", "method:x:0:4", [1.0, 0.0]),
            make_record("a.py", "method:y:5:4", [0.0, 1.0]),
            make_record("b.py", "method:xy:0:4", [1.0, 1.0]),
        ])

        hits = await self.store.nearest([1.0, 0.1], limit=2)

        assert [hit.record.block_identifier for hit in hits] == ["method:x:0:4", "method:xy:0:4"]
        assert [hit.rank for hit in hits] == [1, 2]
        assert hits[0].score > hits[1].score

    @pytest.mark.asyncio
    async def test_nearest_empty_store(self):
        """Test search on an empty store"""
        assert await self.store.nearest([1.0, 0.0]) == []

    @pytest.mark.asyncio
    async def test_delete_document(self):
        """Test deleting a document removes only its records"""
        await self.store.put([
            make_record("a.py", "method:f:1:4", [1.0]),
            make_record("a.py", "method:g:5:4", [1.0]),
            make_record("b.py", "method:f:1:4", [1.0]),
        ])

        removed = await self.store.delete_document("a.py")

        assert removed == 2
        assert self.store.documents() == ["b.py"]

    @pytest.mark.asyncio
    async def test_delete_document_keeps_named_blocks(self):
        """Test delete spares the blocks listed in keep"""
        await self.store.put([
            make_record("a.py", "method:f:1:4", [1.0]),
            make_record("a.py", "method:g:5:4", [1.0]),
            make_record("b.py", "method:g:5:4", [1.0]),
        ])

        removed = await self.store.delete_document("a.py", keep=["method:f:1:4"])

        assert removed == 1
        assert await self.store.get("a.py", "method:f:1:4") is not None
        assert await self.store.get("a.py", "method:g:5:4") is None
        assert await self.store.get("b.py", "method:g:5:4") is not None


class TestQdrantVectorStore:
    """Test QdrantVectorStore against a mocked client"""

    def setup_method(self):
        """Setup test environment"""
        self.client = Mock()
        self.client.get_collections.return_value = SimpleNamespace(collections=[])
        self.config = QdrantConfig(collection_name="demo-blocks", vector_size=2, batch_size=2)
        self.store = QdrantVectorStore(self.config, client=self.client)

    def test_satisfies_protocol(self):
        """Test the store implements VectorStore"""
        assert isinstance(self.store, VectorStore)

    @pytest.mark.asyncio
    async def test_ensure_collection_creates_once(self):
        """Test collection and payload index are created on first use"""
        await self.store.ensure_collection()
        await self.store.ensure_collection()

        self.client.create_collection.assert_called_once()
        kwargs = self.client.create_collection.call_args.kwargs
        assert kwargs["collection_name"] == "demo-blocks"
        assert kwargs["vectors_config"].size == 2
        self.client.create_payload_index.assert_called_once()
        assert self.client.get_collections.call_count == 1

    @pytest.mark.asyncio
    async def test_existing_collection_not_recreated(self):
        """Test an existing collection is reused"""
        self.client.get_collections.return_value = SimpleNamespace(
            collections=[SimpleNamespace(name="demo-blocks")]
        )

        await self.store.ensure_collection()

        self.client.create_collection.assert_not_called()

    @pytest.mark.asyncio
    async def test_put_upserts_in_batches(self):
        """Test records are upserted with stable point IDs"""
        records = [make_record("a.py", f"method:f{i}:{i}:4", [1.0, 0.0]) for i in range(3)]

        await self.store.put(records)

        assert self.client.upsert.call_count == 2
        points = [
            point
            for call in self.client.upsert.call_args_list
            for point in call.kwargs["points"]
        ]
        assert [point.id for point in points] == [
            record_point_id("a.py", record.block_identifier) for record in records
        ]
        assert points[0].payload["document_identity"] == "a.py"

    @pytest.mark.asyncio
    async def test_put_failure(self):
        """Test client errors surface as PersistenceFailure"""
        self.client.upsert.side_effect = RuntimeError("connection refused")

        with pytest.raises(PersistenceFailure, match="connection refused"):
            await self.store.put([make_record("a.py", "method:f:1:4", [1.0, 0.0])])

        assert self.store.get_performance_metrics()["failed_requests"] == 1

    @pytest.mark.asyncio
    async def test_collection_failure(self):
        """Test collection setup errors surface as PersistenceFailure"""
        self.client.get_collections.side_effect = RuntimeError("unreachable")

        with pytest.raises(PersistenceFailure):
            await self.store.ensure_collection()

    @pytest.mark.asyncio
    async def test_get_reads_point(self):
        """Test get rebuilds a record from payload and vector"""
        record = make_record("a.py", "method:f:1:4", [0.5, 0.5])
        self.client.retrieve.return_value = [
            SimpleNamespace(payload=record.to_payload(), vector=[0.5, 0.5])
        ]

        assert await self.store.get("a.py", "method:f:1:4") == record
        assert self.client.retrieve.call_args.kwargs["ids"] == [
            record_point_id("a.py", "method:f:1:4")
        ]

    @pytest.mark.asyncio
    async def test_get_missing(self):
        """Test get for an absent key"""
        self.client.retrieve.return_value = []

        assert await self.store.get("a.py", "method:f:1:4") is None

    @pytest.mark.asyncio
    async def test_nearest(self):
        """Test nearest maps scored points to ranked hits"""
        first = make_record("a.py", "method:f:1:4", [1.0, 0.0])
        second = make_record("b.py", "method:g:1:4", [0.0, 1.0])
        self.client.query_points.return_value = SimpleNamespace(points=[
            SimpleNamespace(payload=first.to_payload(), vector=[1.0, 0.0], score=0.9),
            SimpleNamespace(payload=second.to_payload(), vector=[0.0, 1.0], score=0.2),
        ])

        hits = await self.store.nearest([1.0, 0.0], limit=5)

        assert [hit.record for hit in hits] == [first, second]
        assert [hit.rank for hit in hits] == [1, 2]
        assert self.client.query_points.call_args.kwargs["limit"] == 5

    @pytest.mark.asyncio
    async def test_delete_document_filters_by_identity(self):
        """Test delete uses a document_identity filter"""
        await self.store.delete_document("a.py")

        selector = self.client.delete.call_args.kwargs["points_selector"]
        condition = selector.filter.must[0]
        assert condition.key == "document_identity"
        assert condition.match.value == "a.py"
        assert selector.filter.must_not is None

    @pytest.mark.asyncio
    async def test_delete_document_excludes_kept_blocks(self):
        """Test kept block identifiers become a must_not condition"""
        await self.store.delete_document("a.py", keep=["method:g:1:4", "method:f:1:4"])

        selector = self.client.delete.call_args.kwargs["points_selector"]
        excluded = selector.filter.must_not[0]
        assert excluded.key == "block_identifier"
        assert excluded.match.any == ["method:f:1:4", "method:g:1:4"]

    @pytest.mark.asyncio
    async def test_health_check(self):
        """Test health check reports status without raising"""
        healthy = await self.store.health_check()
        self.client.get_collections.side_effect = RuntimeError("down")
        unhealthy = await self.store.health_check()

        assert healthy["status"] == "healthy"
        assert healthy["collections_count"] == 0
        assert unhealthy["status"] == "unhealthy"
