"""
Conversion of character-offset edit deltas into tree-sitter edit parameters.

Editors report changes as (offset, removed length, inserted text) in
characters; tree-sitter wants UTF-8 byte offsets and (row, byte column)
points for the start, the old end and the new end of the edited span.
"""

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from ..models.entities import ContentChange

Point = Tuple[int, int]


@dataclass(frozen=True)
class TreeEdit:
    """Arguments for tree_sitter.Tree.edit"""
    start_byte: int
    old_end_byte: int
    new_end_byte: int
    start_point: Point
    old_end_point: Point
    new_end_point: Point

    def as_kwargs(self) -> Dict[str, Any]:
        return {
            "start_byte": self.start_byte,
            "old_end_byte": self.old_end_byte,
            "new_end_byte": self.new_end_byte,
            "start_point": self.start_point,
            "old_end_point": self.old_end_point,
            "new_end_point": self.new_end_point,
        }


def byte_offset(text: str, char_offset: int) -> int:
    """UTF-8 byte offset of a character offset"""
    return len(text[:char_offset].encode('utf-8'))


def point_at(text: str, char_offset: int) -> Point:
    """(row, byte column) of a character offset"""
    row = text.count('\n', 0, char_offset)
    line_start = text.rfind('\n', 0, char_offset) + 1
    column = len(text[line_start:char_offset].encode('utf-8'))
    return (row, column)


def compute_edit(old_text: str, change: ContentChange) -> Tuple[TreeEdit, str]:
    """
    Build the tree edit for one change and return it with the edited text.

    Raises:
        ValueError: the change range falls outside ``old_text``
    """
    new_text = change.apply_to(old_text)

    start = change.range_offset
    old_end = start + change.range_length
    new_end = start + len(change.new_text)

    start_byte = byte_offset(old_text, start)
    edit = TreeEdit(
        start_byte=start_byte,
        old_end_byte=byte_offset(old_text, old_end),
        new_end_byte=start_byte + len(change.new_text.encode('utf-8')),
        start_point=point_at(old_text, start),
        old_end_point=point_at(old_text, old_end),
        new_end_point=point_at(new_text, new_end),
    )
    return edit, new_text
