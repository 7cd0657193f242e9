"""
Local ONNX embedding provider.

Runs a quantized sentence-transformer (all-MiniLM-L6-v2 by default) with
onnxruntime on CPU, tokenizing with a locally stored Hugging Face tokenizer
and mean-pooling the last hidden state.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from .base import BaseEmbedder, EmbeddingError, InitError
from .pooling import l2_normalize, mean_pooling
from ..models.config import EmbeddingModelConfig

logger = logging.getLogger(__name__)

TokenizerFactory = Callable[[Path], Any]
SessionFactory = Callable[[Path, EmbeddingModelConfig], Any]

MODEL_INPUTS = ("input_ids", "attention_mask", "token_type_ids")


def load_tokenizer(model_dir: Path) -> Any:
    """Load a tokenizer from local files only"""
    from transformers import AutoTokenizer

    return AutoTokenizer.from_pretrained(str(model_dir), local_files_only=True)


def create_session(model_path: Path, config: EmbeddingModelConfig) -> Any:
    """Create a CPU inference session for the ONNX model"""
    import onnxruntime as ort

    options = ort.SessionOptions()
    if config.intra_op_num_threads:
        options.intra_op_num_threads = config.intra_op_num_threads
    return ort.InferenceSession(
        str(model_path),
        sess_options=options,
        providers=["CPUExecutionProvider"]
    )


class LocalEmbeddingProvider(BaseEmbedder):
    """
    Embedding provider backed by a local ONNX model.

    Model files are expected at
    ``<base>/models/<model_name>/onnx/model_quantized.onnx`` with tokenizer
    files in ``<base>/models/<model_name>/``.
    """

    def __init__(
        self,
        config: Optional[EmbeddingModelConfig] = None,
        tokenizer_factory: TokenizerFactory = load_tokenizer,
        session_factory: SessionFactory = create_session
    ):
        self.model_config = config or EmbeddingModelConfig()
        super().__init__(self.model_config.model_dump(mode="json"))

        self._tokenizer_factory = tokenizer_factory
        self._session_factory = session_factory
        self._tokenizer: Any = None
        self._session: Any = None
        self._input_names: List[str] = []
        self._output_names: List[str] = []

    @property
    def model_name(self) -> str:
        return self.model_config.model_name

    @property
    def dimensions(self) -> int:
        return self.model_config.dimensions

    @property
    def max_sequence_length(self) -> int:
        return self.model_config.max_length

    async def _load(self, model_base_path: Optional[Path]) -> None:
        if model_base_path is not None:
            self.model_config = self.model_config.model_copy(
                update={"model_base_path": Path(model_base_path)}
            )
            self.config = self.model_config.model_dump(mode="json")

        model_dir = self.model_config.model_dir
        model_path = self.model_config.model_path

        if not model_dir.is_dir():
            raise InitError(f"Tokenizer directory not found: {model_dir}")
        if not model_path.is_file():
            raise InitError(f"Model file not found: {model_path}")

        logger.info(f"Loading {self.model_name} from {model_path}")
        await asyncio.to_thread(self._load_resources, model_dir, model_path)

    def _load_resources(self, model_dir: Path, model_path: Path) -> None:
        try:
            tokenizer = self._tokenizer_factory(model_dir)
        except Exception as e:
            raise InitError(f"Failed to load tokenizer from {model_dir}: {e}") from e

        try:
            session = self._session_factory(model_path, self.model_config)
        except Exception as e:
            raise InitError(f"Failed to create inference session for {model_path}: {e}") from e

        self._tokenizer = tokenizer
        self._session = session
        self._input_names = [model_input.name for model_input in session.get_inputs()]
        self._output_names = [model_output.name for model_output in session.get_outputs()]
        logger.debug(f"Model inputs: {self._input_names}, outputs: {self._output_names}")

    async def _generate_embeddings(self, chunks: List[str]) -> List[List[float]]:
        return await asyncio.to_thread(self._embed_chunks, chunks)

    def _embed_chunks(self, chunks: List[str]) -> List[List[float]]:
        """Embed one chunk at a time, in input order"""
        return [self._embed_chunk(chunk, index) for index, chunk in enumerate(chunks)]

    def _embed_chunk(self, chunk: str, index: int) -> List[float]:
        try:
            encoded = self._tokenizer(
                chunk,
                truncation=True,
                max_length=self.max_sequence_length,
                return_tensors="np"
            )
            feeds = self._build_feeds(encoded)
            outputs = self._session.run(None, feeds)
        except Exception as e:
            raise EmbeddingError(f"Failed to embed chunk {index}: {e}") from e

        hidden = self._select_output(outputs)
        if hidden.ndim == 3:
            if "attention_mask" in encoded:
                mask = np.asarray(encoded["attention_mask"])
            else:
                mask = np.ones(hidden.shape[:2], dtype=np.int64)
            pooled = mean_pooling(hidden, mask)
        else:
            pooled = hidden.astype(np.float32)

        if self.model_config.normalize_embeddings:
            pooled = l2_normalize(pooled)

        vector = pooled.reshape(-1)
        if vector.shape[0] != self.dimensions:
            raise EmbeddingError(
                f"Model produced {vector.shape[0]} dimensions, expected {self.dimensions}"
            )
        return vector.tolist()

    def _build_feeds(self, encoded: Any) -> Dict[str, np.ndarray]:
        input_ids = np.asarray(encoded["input_ids"], dtype=np.int64)
        feeds = {}
        for name in self._input_names:
            if name not in MODEL_INPUTS:
                continue
            if name in encoded:
                feeds[name] = np.asarray(encoded[name], dtype=np.int64)
            elif name == "token_type_ids":
                feeds[name] = np.zeros_like(input_ids)
            elif name == "attention_mask":
                feeds[name] = np.ones_like(input_ids)
        feeds.setdefault("input_ids", input_ids)
        return feeds

    def _select_output(self, outputs: List[np.ndarray]) -> np.ndarray:
        """last_hidden_state, else logits, else the first output"""
        named = dict(zip(self._output_names, outputs))
        for name in ("last_hidden_state", "logits"):
            if name in named:
                return np.asarray(named[name])
        return np.asarray(outputs[0])

    def get_model_info(self) -> Dict[str, Any]:
        info = super().get_model_info()
        info.update({
            "model_path": str(self.model_config.model_path),
            "model_available": self.model_config.is_model_available,
            "normalize_embeddings": self.model_config.normalize_embeddings,
            "inputs": self._input_names,
        })
        return info
