"""
Parsed-file state and parser error types.

A ParsedFile owns one tree-sitter tree together with the exact source bytes
it was produced from. Only the SyntaxTreeCache mutates it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

import tree_sitter


@dataclass
class ParsedFile:
    """
    One syntax tree plus the grammar and document identity it belongs to.

    ``source`` always holds the bytes the current tree was parsed from, so a
    reader never sees a tree with edits that have not been reparsed.
    """
    identity: str
    language_id: str
    language: tree_sitter.Language
    tree: tree_sitter.Tree
    source: bytes

    # Bookkeeping
    version: int = 0
    parse_time: float = 0.0  # Seconds spent in the last parse
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def text(self) -> str:
        """Source text the tree currently reflects"""
        return self.source.decode('utf-8')

    @property
    def root_node(self) -> tree_sitter.Node:
        return self.tree.root_node

    @property
    def has_errors(self) -> bool:
        """Whether the tree contains ERROR or missing nodes"""
        return self.tree.root_node.has_error

    def slice(self, start_byte: int, end_byte: int) -> str:
        """Decode a byte span of the current source"""
        return self.source[start_byte:end_byte].decode('utf-8', errors='replace')

    def to_dict(self) -> Dict[str, Any]:
        """Summary for logging and status output"""
        return {
            "identity": self.identity,
            "language": self.language_id,
            "version": self.version,
            "bytes": len(self.source),
            "has_errors": self.has_errors,
            "parse_time_ms": self.parse_time * 1000,
            "updated_at": self.updated_at.isoformat()
        }


# Error types for parser exceptions
class ParseError(Exception):
    """Base class for parsing errors"""
    pass


class GrammarUnavailable(ParseError):
    """Raised when no tree-sitter grammar can be loaded for a language"""

    def __init__(self, language_id: str, reason: str = ""):
        self.language_id = language_id
        self.reason = reason
        message = f"No grammar available for language '{language_id}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class QueryError(ParseError):
    """Raised when a structural query cannot be compiled or executed"""
    pass
