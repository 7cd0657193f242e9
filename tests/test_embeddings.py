"""
Unit tests for the local embedding provider.

The tokenizer and inference session are replaced with small deterministic
fakes so no model files or onnxruntime session are needed.
"""

import asyncio
import tempfile
from pathlib import Path
from types import SimpleNamespace

import numpy as np
import pytest

from core.embeddings.base import (
    EmbedderState, EmbeddingError, InitError, ProviderNotReady
)
from core.embeddings.local import LocalEmbeddingProvider
from core.embeddings.pooling import l2_normalize, mean_pooling
from core.models.config import EmbeddingModelConfig


DIMENSIONS = 4


class FakeTokenizer:
    """Character-level tokenizer returning numpy tensors"""

    def __init__(self, with_token_types: bool = False):
        self.with_token_types = with_token_types
        self.calls = []

    def __call__(self, text, truncation=True, max_length=256, return_tensors="np"):
        self.calls.append(text)
        ids = [ord(char) % 97 + 1 for char in text][:max_length] or [1]
        encoded = {
            "input_ids": np.array([ids], dtype=np.int64),
            "attention_mask": np.ones((1, len(ids)), dtype=np.int64),
        }
        if self.with_token_types:
            encoded["token_type_ids"] = np.ones((1, len(ids)), dtype=np.int64)
        return encoded


class FakeSession:
    """Inference session producing a (1, tokens, hidden) last hidden state"""

    def __init__(self, hidden_size: int = DIMENSIONS, fail: bool = False):
        self.hidden_size = hidden_size
        self.fail = fail
        self.feeds = []

    def get_inputs(self):
        return [SimpleNamespace(name=name) for name in ("input_ids", "attention_mask", "token_type_ids")]

    def get_outputs(self):
        return [SimpleNamespace(name="last_hidden_state")]

    def run(self, output_names, feeds):
        self.feeds.append(feeds)
        if self.fail:
            raise RuntimeError("inference exploded")
        ids = feeds["input_ids"].astype(np.float32)
        columns = [ids * (i + 1) for i in range(self.hidden_size)]
        return [np.stack(columns, axis=-1)]


def touch_model_files(base: Path, model_name: str = "all-MiniLM-L6-v2") -> None:
    model_file = base / "models" / model_name / "onnx" / "model_quantized.onnx"
    model_file.parent.mkdir(parents=True, exist_ok=True)
    model_file.write_bytes(b"onnx")


class TestPooling:
    """Test pooling helpers"""

    def test_mean_pooling_respects_mask(self):
        """Test padded tokens are excluded from the average"""
        hidden = np.array([[[1.0, 2.0], [3.0, 4.0], [100.0, 100.0]]])
        mask = np.array([[1, 1, 0]])

        pooled = mean_pooling(hidden, mask)

        np.testing.assert_allclose(pooled, [[2.0, 3.0]])

    def test_mean_pooling_empty_mask(self):
        """Test an all-zero mask yields zeros instead of NaN"""
        pooled = mean_pooling(np.ones((1, 2, 3)), np.zeros((1, 2)))

        assert not np.isnan(pooled).any()
        np.testing.assert_allclose(pooled, np.zeros((1, 3)))

    def test_l2_normalize(self):
        """Test rows are scaled to unit length and zero rows stay zero"""
        vectors = np.array([[3.0, 4.0], [0.0, 0.0]])

        normalized = l2_normalize(vectors)

        np.testing.assert_allclose(normalized[0], [0.6, 0.8])
        np.testing.assert_allclose(normalized[1], [0.0, 0.0])


class TestLocalEmbeddingProvider:
    """Test LocalEmbeddingProvider lifecycle and embedding"""

    def setup_method(self):
        """Setup test environment"""
        self.temp_dir = tempfile.TemporaryDirectory()
        self.base = Path(self.temp_dir.name)
        touch_model_files(self.base)
        self.tokenizer = FakeTokenizer()
        self.session = FakeSession()
        self.tokenizer_loads = 0
        self.session_loads = 0

    def teardown_method(self):
        """Cleanup test environment"""
        self.temp_dir.cleanup()

    def _tokenizer_factory(self, model_dir):
        self.tokenizer_loads += 1
        return self.tokenizer

    def _session_factory(self, model_path, config):
        self.session_loads += 1
        return self.session

    def make_provider(self, **overrides) -> LocalEmbeddingProvider:
        settings = {"dimensions": DIMENSIONS, "model_base_path": self.base}
        settings.update(overrides)
        return LocalEmbeddingProvider(
            EmbeddingModelConfig(**settings),
            tokenizer_factory=self._tokenizer_factory,
            session_factory=self._session_factory
        )

    def test_properties(self):
        """Test provider metadata"""
        provider = self.make_provider()

        assert provider.model_name == "all-MiniLM-L6-v2"
        assert provider.dimensions == DIMENSIONS
        assert provider.max_sequence_length == 256
        assert provider.state == EmbedderState.UNINITIALIZED
        assert not provider.is_ready

    @pytest.mark.asyncio
    async def test_embed_before_init(self):
        """Test embed raises ProviderNotReady before init"""
        provider = self.make_provider()

        with pytest.raises(ProviderNotReady) as exc_info:
            await provider.embed(["def f(): pass"])

        assert exc_info.value.state == EmbedderState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_init_moves_to_ready(self):
        """Test successful initialization"""
        provider = self.make_provider()

        await provider.init()

        assert provider.state == EmbedderState.READY
        assert provider.get_model_info()["state"] == "ready"

    @pytest.mark.asyncio
    async def test_init_missing_model_file(self):
        """Test missing files fail init and a later init can succeed"""
        empty = Path(self.temp_dir.name) / "empty"
        provider = self.make_provider(model_base_path=empty)

        with pytest.raises(InitError):
            await provider.init()
        assert provider.state == EmbedderState.FAILED

        with pytest.raises(ProviderNotReady):
            await provider.embed(["x"])

        touch_model_files(empty)
        await provider.init()
        assert provider.is_ready

    @pytest.mark.asyncio
    async def test_init_base_path_override(self):
        """Test model_base_path argument overrides the configured base"""
        provider = self.make_provider(model_base_path=Path(self.temp_dir.name) / "nowhere")

        await provider.init(self.base)

        assert provider.is_ready
        assert provider.model_config.model_base_path == self.base

    @pytest.mark.asyncio
    async def test_init_is_idempotent(self):
        """Test a second init does not reload resources"""
        provider = self.make_provider()

        await provider.init()
        await provider.init()

        assert self.tokenizer_loads == 1
        assert self.session_loads == 1

    @pytest.mark.asyncio
    async def test_concurrent_init_shares_load(self):
        """Test concurrent callers await a single initialization"""
        provider = self.make_provider()

        await asyncio.gather(provider.init(), provider.init(), provider.init())

        assert provider.is_ready
        assert self.session_loads == 1

    @pytest.mark.asyncio
    async def test_session_factory_failure(self):
        """Test a failing session factory surfaces as InitError"""
        def broken_session(model_path, config):
            raise RuntimeError("corrupt model")

        provider = LocalEmbeddingProvider(
            EmbeddingModelConfig(dimensions=DIMENSIONS, model_base_path=self.base),
            tokenizer_factory=self._tokenizer_factory,
            session_factory=broken_session
        )

        with pytest.raises(InitError, match="corrupt model"):
            await provider.init()
        assert provider.state == EmbedderState.FAILED

    @pytest.mark.asyncio
    async def test_embed_empty_input(self):
        """Test an empty chunk list returns an empty list"""
        provider = self.make_provider()
        await provider.init()

        assert await provider.embed([]) == []
        assert self.session.feeds == []

    @pytest.mark.asyncio
    async def test_embed_one_vector_per_chunk_in_order(self):
        """Test output is 1:1 with input and keeps order"""
        provider = self.make_provider()
        await provider.init()

        embeddings = await provider.embed(["alpha", "beta", "gamma"])

        assert len(embeddings) == 3
        assert [e.source_id for e in embeddings] == ["alpha", "beta", "gamma"]
        assert all(e.dimensions == DIMENSIONS for e in embeddings)
        assert self.tokenizer.calls == ["alpha", "beta", "gamma"]

    @pytest.mark.asyncio
    async def test_embed_tags_caller_source_ids(self):
        """Test embeddings carry the caller's provenance identifiers"""
        provider = self.make_provider()
        await provider.init()

        embeddings = await provider.embed(["alpha", "beta"], ["a.py", "method:beta:3:4"])
        single = await provider.embed_single("gamma", "query")

        assert [e.source_id for e in embeddings] == ["a.py", "method:beta:3:4"]
        assert single.source_id == "query"

    @pytest.mark.asyncio
    async def test_embed_rejects_mismatched_source_ids(self):
        """Test source ids must match the chunks one to one"""
        provider = self.make_provider()
        await provider.init()

        with pytest.raises(ValueError):
            await provider.embed(["alpha", "beta"], ["a.py"])

    @pytest.mark.asyncio
    async def test_chunks_embedded_independently(self):
        """Test a chunk's vector does not depend on its neighbours"""
        provider = self.make_provider()
        await provider.init()

        batch = await provider.embed(["first chunk", "second chunk"])
        alone = await provider.embed(["first chunk"])

        assert batch[0].vector == alone[0].vector
        assert batch[0].vector != batch[1].vector

    @pytest.mark.asyncio
    async def test_embedding_is_deterministic(self):
        """Test the same text yields the same vector"""
        provider = self.make_provider()
        await provider.init()

        first = await provider.embed_single("class A: pass")
        second = await provider.embed_single("class A: pass")

        assert first.vector == second.vector

    @pytest.mark.asyncio
    async def test_missing_token_type_ids_are_zero(self):
        """Test token_type_ids default to zeros when the tokenizer omits them"""
        provider = self.make_provider()
        await provider.init()

        await provider.embed(["abc"])

        feeds = self.session.feeds[0]
        assert set(feeds) == {"input_ids", "attention_mask", "token_type_ids"}
        assert feeds["token_type_ids"].dtype == np.int64
        assert not feeds["token_type_ids"].any()

    @pytest.mark.asyncio
    async def test_tokenizer_token_type_ids_passed_through(self):
        """Test tokenizer-provided token_type_ids are fed as-is"""
        self.tokenizer = FakeTokenizer(with_token_types=True)
        provider = self.make_provider()
        await provider.init()

        await provider.embed(["abc"])

        assert self.session.feeds[0]["token_type_ids"].all()

    @pytest.mark.asyncio
    async def test_mean_pooled_vector(self):
        """Test the vector is the mean of token hidden states"""
        provider = self.make_provider()
        await provider.init()

        embedding = await provider.embed_single("ab")

        mean_id = ((ord("a") % 97 + 1) + (ord("b") % 97 + 1)) / 2
        np.testing.assert_allclose(
            embedding.vector,
            [mean_id * (i + 1) for i in range(DIMENSIONS)],
            rtol=1e-6
        )

    @pytest.mark.asyncio
    async def test_normalization_option(self):
        """Test normalize_embeddings yields unit vectors"""
        provider = self.make_provider(normalize_embeddings=True)
        await provider.init()

        embedding = await provider.embed_single("normalize me")

        assert np.linalg.norm(embedding.vector) == pytest.approx(1.0, rel=1e-5)

    @pytest.mark.asyncio
    async def test_inference_failure(self):
        """Test a failing session raises EmbeddingError"""
        self.session = FakeSession(fail=True)
        provider = self.make_provider()
        await provider.init()

        with pytest.raises(EmbeddingError, match="inference exploded"):
            await provider.embed(["ok", "fails"])

        assert provider.stats.failed_calls == 1
        assert provider.is_ready

    @pytest.mark.asyncio
    async def test_dimension_mismatch(self):
        """Test output width different from the configured dimensions"""
        self.session = FakeSession(hidden_size=DIMENSIONS + 2)
        provider = self.make_provider()
        await provider.init()

        with pytest.raises(EmbeddingError, match="dimensions"):
            await provider.embed(["x"])

    @pytest.mark.asyncio
    async def test_stats_recorded(self):
        """Test statistics are updated after successful calls"""
        provider = self.make_provider()
        await provider.init()

        await provider.embed(["a", "b"])

        assert provider.stats.total_calls == 1
        assert provider.stats.total_chunks == 2
