"""
Indexing run state: progress updates, cancellation and run-level errors.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


class IndexingFailed(Exception):
    """Raised through the progress sequence when a run cannot proceed"""
    pass


class DirectoryEnumerationError(IndexingFailed):
    """Raised when a root directory cannot be listed"""

    def __init__(self, directory: Path, reason: str = ""):
        self.directory = directory
        self.reason = reason
        message = f"Cannot enumerate directory {directory}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class CancellationToken:
    """Shared flag polled by a run at fixed checkpoints"""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancelled})"


@dataclass(frozen=True)
class ProgressUpdate:
    """One step of an indexing run"""
    processed_count: int
    total_count: int
    description: str

    @property
    def progress(self) -> float:
        """Fraction of files processed"""
        if self.total_count == 0:
            return 1.0
        return self.processed_count / self.total_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed_count": self.processed_count,
            "total_count": self.total_count,
            "progress": self.progress,
            "description": self.description
        }


@dataclass
class IndexingRun:
    """One indexing sweep over a set of root directories"""
    directories: List[Path]
    token: CancellationToken = field(default_factory=CancellationToken)
    processed_count: int = 0
    total_count: int = 0

    # Outcome tracking
    files_indexed: int = 0
    files_skipped: int = 0
    blocks_indexed: int = 0
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None

    @property
    def is_cancelled(self) -> bool:
        return self.token.is_cancelled

    @property
    def duration_seconds(self) -> float:
        end = self.end_time or datetime.now()
        return (end - self.start_time).total_seconds()

    def advance(self, description: str) -> ProgressUpdate:
        """Count one more processed file and describe it"""
        self.processed_count += 1
        return ProgressUpdate(
            processed_count=self.processed_count,
            total_count=self.total_count,
            description=description
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "directories": [str(directory) for directory in self.directories],
            "processed_count": self.processed_count,
            "total_count": self.total_count,
            "files_indexed": self.files_indexed,
            "files_skipped": self.files_skipped,
            "blocks_indexed": self.blocks_indexed,
            "cancelled": self.is_cancelled,
            "duration_seconds": self.duration_seconds
        }
