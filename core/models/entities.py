"""
Core document and block models for structural extraction.

Defines the documents the editing surface hands to the core, the edit deltas
it delivers, and the immutable block values produced by query extraction.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CodeElementType(Enum):
    """Kinds of named elements extracted from a tree"""
    METHOD = "method"
    STRUCTURE = "structure"
    OTHER = "other"


@dataclass(frozen=True)
class Position:
    """Zero-based line and column (column counted in bytes, like tree-sitter points)"""
    line: int
    column: int

    @classmethod
    def from_point(cls, point) -> 'Position':
        """Build from a tree-sitter Point or (row, column) tuple"""
        return cls(line=point[0], column=point[1])


@dataclass(frozen=True)
class BlockRange:
    """Start/end position and byte offsets of a source span"""
    start: Position
    end: Position
    start_byte: int
    end_byte: int

    def __post_init__(self):
        if self.start_byte > self.end_byte:
            raise ValueError("start_byte cannot be greater than end_byte")

    @classmethod
    def from_node(cls, node) -> 'BlockRange':
        """Copy a node's positions into a plain value"""
        return cls(
            start=Position.from_point(node.start_point),
            end=Position.from_point(node.end_point),
            start_byte=node.start_byte,
            end_byte=node.end_byte
        )

    def contains_line(self, line: int) -> bool:
        return self.start.line <= line <= self.end.line

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_line": self.start.line,
            "start_column": self.start.column,
            "end_line": self.end.line,
            "end_column": self.end.column,
            "start_byte": self.start_byte,
            "end_byte": self.end_byte
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BlockRange':
        return cls(
            start=Position(data["start_line"], data["start_column"]),
            end=Position(data["end_line"], data["end_column"]),
            start_byte=data["start_byte"],
            end_byte=data["end_byte"]
        )


@dataclass(frozen=True)
class NamedElementBlock:
    """
    A named construct (method, class) extracted from a syntax tree.

    Ranges are plain values; the block holds no reference back into the tree
    it was built from.
    """
    identifier_range: BlockRange
    block_range: BlockRange
    kind: CodeElementType
    text: str
    identifier: str
    comment_range: Optional[BlockRange] = None

    @property
    def block_identifier(self) -> str:
        """Key of this block inside its document"""
        start = self.identifier_range.start
        return f"{self.kind.value}:{self.identifier}:{start.line}:{start.column}"

    def is_within(self, start_line: int, end_line: int) -> bool:
        """Check whether a selection of lines falls inside the block"""
        return (
            self.block_range.start.line <= start_line
            and end_line <= self.block_range.end.line
        )


@dataclass(frozen=True)
class SourceDocument:
    """Document owned by the editing surface; the core only reads it"""
    identity: str
    text: str
    language_id: str


class ContentChange(BaseModel):
    """
    One edit delta: replace ``range_length`` characters at ``range_offset``
    with ``new_text``. Offsets count characters of the text the change
    applies to.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    range_offset: int = Field(alias="rangeOffset", ge=0)
    range_length: int = Field(alias="rangeLength", ge=0)
    new_text: str = Field(default="", alias="newText")

    def apply_to(self, text: str) -> str:
        """Apply this delta to a plain string"""
        end = self.range_offset + self.range_length
        if end > len(text):
            raise ValueError(
                f"Change range {self.range_offset}:{end} exceeds text length {len(text)}"
            )
        return text[:self.range_offset] + self.new_text + text[end:]


class DocumentChangeEvent(BaseModel):
    """
    Text change event delivered by the editing surface.

    ``full_text`` is the document text after every change was applied.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    identity: str
    language_id: str = Field(alias="languageId")
    content_changes: List[ContentChange] = Field(default_factory=list, alias="contentChanges")
    full_text: str = Field(alias="fullText")

    @field_validator('identity')
    @classmethod
    def validate_identity(cls, v: str) -> str:
        if not v.strip():
            raise ValueError('Document identity cannot be empty')
        return v

    @property
    def document(self) -> SourceDocument:
        """Document snapshot after the change"""
        return SourceDocument(
            identity=self.identity,
            text=self.full_text,
            language_id=self.language_id
        )
