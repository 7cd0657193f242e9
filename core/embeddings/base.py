"""
Base embedding interface for workspace-indexer.

Defines the provider lifecycle (uninitialized -> initializing -> ready or
failed), the error types providers raise, and the shared embed/embed_single
plumbing concrete providers build on.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models.embeddings import Embedding, EmbeddingStats

logger = logging.getLogger(__name__)


class EmbedderState(Enum):
    """Lifecycle of an embedding provider"""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


# Error types for embedding exceptions
class EmbeddingProviderError(Exception):
    """Base class for embedding provider errors"""
    pass


class ProviderNotReady(EmbeddingProviderError):
    """Raised when embed is called before initialization completed"""

    def __init__(self, state: EmbedderState):
        self.state = state
        super().__init__(f"Embedding provider is not ready (state: {state.value})")


class InitError(EmbeddingProviderError):
    """Raised when model or tokenizer files cannot be loaded"""
    pass


class EmbeddingError(EmbeddingProviderError):
    """Raised when tokenization or inference fails for a chunk"""
    pass


class BaseEmbedder(ABC):
    """Abstract base class for embedding providers"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self._state = EmbedderState.UNINITIALIZED
        self._init_task: Optional[asyncio.Task] = None
        self._init_error: Optional[BaseException] = None
        self._load_time: Optional[datetime] = None
        self._stats = EmbeddingStats()

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the name of the embedding model"""
        pass

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Get the dimensionality of the embeddings"""
        pass

    @property
    @abstractmethod
    def max_sequence_length(self) -> int:
        """Get the maximum sequence length supported"""
        pass

    @property
    def state(self) -> EmbedderState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == EmbedderState.READY

    @property
    def stats(self) -> EmbeddingStats:
        return self._stats

    async def init(self, model_base_path: Optional[Path] = None) -> None:
        """
        Load model resources and move to READY.

        Idempotent once READY. Concurrent callers await the same in-flight
        initialization. A FAILED provider may be initialized again.

        Raises:
            InitError: resources could not be loaded; state becomes FAILED
        """
        if self._state == EmbedderState.READY:
            return

        if self._init_task is None or self._init_task.done():
            self._init_task = asyncio.ensure_future(self._run_init(model_base_path))

        # shield keeps one caller's cancellation from aborting the shared load
        await asyncio.shield(self._init_task)

    async def _run_init(self, model_base_path: Optional[Path]) -> None:
        self._state = EmbedderState.INITIALIZING
        start_time = time.time()
        try:
            await self._load(model_base_path)
        except InitError as e:
            self._state = EmbedderState.FAILED
            self._init_error = e
            logger.error(f"Failed to initialize {self.model_name}: {e}")
            raise
        except Exception as e:
            self._state = EmbedderState.FAILED
            self._init_error = e
            logger.error(f"Failed to initialize {self.model_name}: {e}")
            raise InitError(f"Failed to initialize {self.model_name}: {e}") from e

        self._state = EmbedderState.READY
        self._init_error = None
        self._load_time = datetime.now()
        logger.info(
            f"Embedding provider {self.model_name} initialized in "
            f"{time.time() - start_time:.2f}s"
        )

    @abstractmethod
    async def _load(self, model_base_path: Optional[Path]) -> None:
        """Load model resources; raise InitError on missing files"""
        pass

    @abstractmethod
    async def _generate_embeddings(self, chunks: List[str]) -> List[List[float]]:
        """Embed chunks sequentially, in order; raise EmbeddingError on failure"""
        pass

    async def embed(
        self,
        chunks: List[str],
        source_ids: Optional[List[str]] = None
    ) -> List[Embedding]:
        """
        Embed each chunk into a fixed-length vector.

        Output is 1:1 with input and in the same order. Any per-chunk failure
        fails the whole call. Each embedding carries the matching entry of
        source_ids, or the chunk text itself when no ids are given.

        Raises:
            ProviderNotReady: called before init completed
            EmbeddingError: tokenization or inference failed
        """
        if self._state != EmbedderState.READY:
            raise ProviderNotReady(self._state)

        if not chunks:
            return []

        if source_ids is None:
            source_ids = list(chunks)
        elif len(source_ids) != len(chunks):
            raise ValueError(
                f"Got {len(source_ids)} source ids for {len(chunks)} chunks"
            )

        start_time = time.perf_counter()
        self._stats.total_calls += 1
        try:
            vectors = await self._generate_embeddings(list(chunks))
        except EmbeddingError:
            self._stats.failed_calls += 1
            raise
        except Exception as e:
            self._stats.failed_calls += 1
            raise EmbeddingError(f"Embedding generation failed: {e}") from e

        if len(vectors) != len(chunks):
            self._stats.failed_calls += 1
            raise EmbeddingError(
                f"Provider returned {len(vectors)} vectors for {len(chunks)} chunks"
            )

        self._stats.total_chunks += len(chunks)
        self._stats.total_processing_time_ms += (time.perf_counter() - start_time) * 1000

        return [
            Embedding(vector=vector, source_id=source_id)
            for vector, source_id in zip(vectors, source_ids)
        ]

    async def embed_single(self, text: str, source_id: Optional[str] = None) -> Embedding:
        """Embed one chunk"""
        embeddings = await self.embed([text], None if source_id is None else [source_id])
        return embeddings[0]

    def get_model_info(self) -> Dict[str, Any]:
        """Get information about the model"""
        return {
            "model_name": self.model_name,
            "dimensions": self.dimensions,
            "max_sequence_length": self.max_sequence_length,
            "state": self._state.value,
            "load_time": self._load_time.isoformat() if self._load_time else None,
            "last_error": str(self._init_error) if self._init_error else None,
            "total_chunks": self._stats.total_chunks,
            "average_chunk_time_ms": self._stats.average_chunk_time_ms,
            "config": self.config
        }
