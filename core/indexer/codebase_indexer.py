"""
Codebase indexer orchestrating parsing, block extraction, embedding and storage.

A refresh walks the target directories and, file by file, obtains a syntax
tree, extracts methods and classes, embeds their text and replaces the
document's records in the vector store, yielding a ProgressUpdate after
each file. Runs are single-flight: starting one cancels the previous run.
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, Iterable, List, Optional

import aiofiles

from .run import CancellationToken, IndexingFailed, IndexingRun, ProgressUpdate
from .scanner import WorkspaceScanner
from ..embeddings.base import BaseEmbedder, EmbeddingError, ProviderNotReady
from ..models.config import IndexingConfig
from ..models.embeddings import Embedding
from ..models.entities import NamedElementBlock, SourceDocument
from ..models.storage import SearchHit, VectorRecord
from ..parser.base import GrammarUnavailable, ParsedFile, QueryError
from ..parser.block_builder import extract_blocks
from ..parser.languages import language_for_path
from ..parser.tree_cache import SyntaxTreeCache
from ..storage.base import PersistenceFailure, VectorStore

logger = logging.getLogger(__name__)


class CodebaseIndexer:
    """
    Indexes source files into a vector store.

    The embedding provider is shared with other callers (search), so every
    use of it goes through one lock.
    """

    def __init__(
        self,
        embedder: BaseEmbedder,
        store: VectorStore,
        tree_cache: Optional[SyntaxTreeCache] = None,
        config: Optional[IndexingConfig] = None
    ):
        self.embedder = embedder
        self.store = store
        self.tree_cache = tree_cache or SyntaxTreeCache()
        self.config = config or IndexingConfig()
        self.scanner = WorkspaceScanner(self.config)

        self._current_run: Optional[IndexingRun] = None
        self._embed_lock = asyncio.Lock()

    @property
    def current_run(self) -> Optional[IndexingRun]:
        """
        The live run, if any.

        A run is current from the refresh that created it until its sequence
        finishes or it is cancelled. A sequence that is never iterated keeps
        its run current until the next refresh supersedes it.
        """
        run = self._current_run
        if run is None or run.is_cancelled:
            return None
        return run

    def is_supported(self, file_path: Path) -> bool:
        """Whether a file has a grammar and passes the language filter"""
        language_id = language_for_path(file_path)
        if language_id is None:
            return False
        return not self.config.languages or language_id in self.config.languages

    def refresh(
        self,
        directories: Iterable[Path],
        cancellation_token: Optional[CancellationToken] = None
    ) -> AsyncIterator[ProgressUpdate]:
        """
        Start a new indexing run and return its progress sequence.

        Any run already in progress is cancelled immediately, before the new
        sequence is iterated. The returned generator is single-pass.

        Raises (through the sequence):
            IndexingFailed: provider not ready or directory enumeration failed
        """
        if self._current_run is not None:
            logger.info("Cancelling previous indexing run")
            self._current_run.token.cancel()

        run = IndexingRun(
            directories=[Path(directory) for directory in directories],
            token=cancellation_token or CancellationToken()
        )
        self._current_run = run
        return self._run(run)

    async def _run(self, run: IndexingRun) -> AsyncIterator[ProgressUpdate]:
        try:
            if not self.embedder.is_ready:
                raise IndexingFailed(
                    "Embedding provider is not ready"
                ) from ProviderNotReady(self.embedder.state)

            files = await asyncio.to_thread(
                self.scanner.list_files, run.directories, self.is_supported
            )
            run.total_count = len(files)
            logger.info(
                f"Indexing {run.total_count} files under "
                f"{', '.join(str(d) for d in run.directories)}"
            )

            for file_path in files:
                if run.is_cancelled:
                    logger.info(f"Indexing cancelled after {run.processed_count} files")
                    return

                try:
                    description = await self._index_file(run, file_path)
                except ProviderNotReady as e:
                    raise IndexingFailed(str(e)) from e

                if description is None or run.is_cancelled:
                    logger.info(f"Indexing cancelled after {run.processed_count} files")
                    return

                yield run.advance(description)

            logger.info(
                f"Indexing completed: {run.files_indexed} files indexed, "
                f"{run.files_skipped} skipped, {run.blocks_indexed} blocks "
                f"in {run.duration_seconds:.2f}s"
            )
        finally:
            run.end_time = run.end_time or datetime.now()
            if self._current_run is run:
                self._current_run = None

    async def _index_file(self, run: IndexingRun, file_path: Path) -> Optional[str]:
        """
        Index one file.

        Returns:
            Progress description, or None when cancellation was observed
            before anything was written
        """
        identity = str(file_path)

        try:
            parsed = await self._obtain_tree(identity, file_path)
            blocks = extract_blocks(parsed)
            chunks = [self.build_chunk(parsed, block) for block in blocks]
            embeddings = await self._embed(
                chunks, run.token, [block.block_identifier for block in blocks]
            )
        except (GrammarUnavailable, QueryError, EmbeddingError, OSError, UnicodeDecodeError) as e:
            logger.warning(f"Skipping {identity}: {e}")
            run.files_skipped += 1
            return f"Skipped {file_path.name}: {e}"

        if embeddings is None or run.is_cancelled:
            return None

        records = [
            VectorRecord(
                document_identity=identity,
                block_identifier=block.block_identifier,
                kind=block.kind,
                vector=embedding.vector,
                source_range=block.block_range
            )
            for block, embedding in zip(blocks, embeddings)
        ]

        try:
            # new records first; a failed write leaves the previous index intact
            await self.store.put(records)
            await self.store.delete_document(
                identity, keep=[record.block_identifier for record in records]
            )
        except PersistenceFailure as e:
            logger.warning(f"Skipping {identity}: {e}")
            run.files_skipped += 1
            return f"Skipped {file_path.name}: {e}"

        run.files_indexed += 1
        run.blocks_indexed += len(records)
        logger.debug(f"Indexed {identity}: {len(records)} blocks")
        return f"Indexed {file_path.name} ({len(records)} blocks)"

    async def _obtain_tree(self, identity: str, file_path: Path) -> ParsedFile:
        """Cached tree for open documents, otherwise a transient parse of the file"""
        cached = self.tree_cache.get(identity)
        if cached is not None:
            return cached

        language_id = language_for_path(file_path)
        if language_id is None:
            raise GrammarUnavailable(file_path.suffix, "no language for extension")

        async with aiofiles.open(file_path, 'r', encoding='utf-8') as f:
            text = await f.read()

        document = SourceDocument(identity=identity, text=text, language_id=language_id)
        return await asyncio.to_thread(self.tree_cache.parse, document)

    async def _embed(
        self,
        chunks: List[str],
        token: CancellationToken,
        source_ids: Optional[List[str]] = None
    ) -> Optional[List[Embedding]]:
        """Embed in batches; None if cancelled between batches"""
        embeddings: List[Embedding] = []
        batch_size = self.config.embed_batch_size

        async with self._embed_lock:
            for i in range(0, len(chunks), batch_size):
                if token.is_cancelled:
                    return None
                batch_ids = source_ids[i:i + batch_size] if source_ids is not None else None
                embeddings.extend(
                    await self.embedder.embed(chunks[i:i + batch_size], batch_ids)
                )

        return embeddings

    def build_chunk(self, parsed: ParsedFile, block: NamedElementBlock) -> str:
        """Embedding input for a block: optional header and comment, then the body"""
        parts = []
        if self.config.include_signature:
            parts.append(f"{parsed.language_id} {block.kind.value} {block.identifier}")
        if self.config.include_comments and block.comment_range is not None:
            parts.append(parsed.slice(block.comment_range.start_byte, block.comment_range.end_byte))
        parts.append(block.text)
        return "\n".join(parts)

    async def search(self, text: str, limit: int = 10) -> List[SearchHit]:
        """
        Nearest stored blocks for a free-text query.

        Raises:
            ProviderNotReady: the embedding provider is not initialized
            PersistenceFailure: the store could not be queried
        """
        async with self._embed_lock:
            embedding = await self.embedder.embed_single(text)
        return await self.store.nearest(embedding.vector, limit)
