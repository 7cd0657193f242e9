"""
Indexing pipeline for workspace-indexer.

Walks directories, extracts structural blocks, embeds them and writes them
to a vector store while reporting progress.
"""

from .codebase_indexer import CodebaseIndexer
from .run import (
    CancellationToken,
    DirectoryEnumerationError,
    IndexingFailed,
    IndexingRun,
    ProgressUpdate,
)
from .scanner import WorkspaceScanner
from .service import IndexingService, format_progress

__all__ = [
    "CodebaseIndexer",
    "CancellationToken",
    "DirectoryEnumerationError",
    "IndexingFailed",
    "IndexingRun",
    "ProgressUpdate",
    "WorkspaceScanner",
    "IndexingService",
    "format_progress"
]
