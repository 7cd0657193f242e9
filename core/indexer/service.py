"""
Host-facing indexing service.

Initializes the shared embedding provider once, owns the single live
cancellation token and renders progress as log lines (plus an optional
callback for a UI surface). Provider initialization failures disable
indexing instead of propagating to the host.
"""

import inspect
import logging
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from .codebase_indexer import CodebaseIndexer
from .run import CancellationToken, IndexingFailed, IndexingRun, ProgressUpdate
from ..embeddings.base import BaseEmbedder, InitError
from ..models.config import IndexingConfig
from ..parser.tree_cache import SyntaxTreeCache
from ..storage.base import VectorStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressUpdate], Any]


def format_progress(update: ProgressUpdate) -> str:
    """Render one textual progress line"""
    return (
        f"indexing progress: {update.progress:.0%} "
        f"({update.processed_count}/{update.total_count}) - {update.description}"
    )


class IndexingService:
    """Glue between a host process and the CodebaseIndexer"""

    def __init__(
        self,
        embedder: BaseEmbedder,
        store: VectorStore,
        tree_cache: Optional[SyntaxTreeCache] = None,
        config: Optional[IndexingConfig] = None,
        model_base_path: Optional[Path] = None,
        progress_callback: Optional[ProgressCallback] = None
    ):
        self.embedder = embedder
        self.store = store
        self.tree_cache = tree_cache or SyntaxTreeCache()
        self.config = config or IndexingConfig()
        self.model_base_path = model_base_path
        self.progress_callback = progress_callback

        self.indexer: Optional[CodebaseIndexer] = None
        self.last_error: Optional[Exception] = None
        self._token: Optional[CancellationToken] = None

    @property
    def enabled(self) -> bool:
        """Indexing is available once the provider initialized"""
        return self.indexer is not None

    async def start(self) -> bool:
        """
        Initialize the embedding provider and create the indexer.

        Returns:
            True if indexing is enabled, False if initialization failed
        """
        if self.indexer is not None:
            return True

        try:
            await self.embedder.init(self.model_base_path)
        except InitError as e:
            self.last_error = e
            logger.error(f"Embedding provider unavailable, indexing disabled: {e}")
            return False

        self.indexer = CodebaseIndexer(
            self.embedder, self.store, self.tree_cache, self.config
        )
        logger.info("embedding provider initialized")
        return True

    def cancel(self) -> None:
        """Cancel the live run, if any"""
        if self._token is not None:
            self._token.cancel()

    async def index(self, directories: Iterable[Path]) -> Optional[IndexingRun]:
        """
        Run one indexing sweep, cancelling any sweep still in progress.

        Returns:
            The finished (or cancelled) run; None when indexing is disabled or
            the run failed, with the failure kept in ``last_error``
        """
        if self.indexer is None:
            logger.warning("Indexing is disabled; skipping refresh")
            return None

        directories = [Path(directory) for directory in directories]
        self.cancel()
        token = CancellationToken()
        self._token = token

        logger.info(f"start indexing dirs: {', '.join(str(d) for d in directories)}")
        updates = self.indexer.refresh(directories, token)
        run = self.indexer.current_run

        try:
            async for update in updates:
                logger.info(format_progress(update))
                if self.progress_callback is not None:
                    result = self.progress_callback(update)
                    if inspect.isawaitable(result):
                        await result
        except IndexingFailed as e:
            self.last_error = e
            logger.error(f"Indexing failed: {e}")
            return None
        finally:
            if self._token is token:
                self._token = None

        return run
