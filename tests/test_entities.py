"""
Unit tests for core entity models.

Tests block ranges, named element blocks, edit deltas and change events.
"""

import pytest

from core.models.entities import (
    BlockRange, CodeElementType, ContentChange, DocumentChangeEvent,
    NamedElementBlock, Position, SourceDocument
)


def make_range(start_line, end_line, start_byte=0, end_byte=10) -> BlockRange:
    return BlockRange(
        start=Position(start_line, 0),
        end=Position(end_line, 4),
        start_byte=start_byte,
        end_byte=end_byte
    )


class TestBlockRange:
    """Test BlockRange value object"""

    def test_invalid_byte_range(self):
        """Test start byte after end byte is rejected"""
        with pytest.raises(ValueError):
            make_range(0, 1, start_byte=20, end_byte=10)

    def test_contains_line(self):
        """Test inclusive line containment"""
        block_range = make_range(3, 7)

        assert block_range.contains_line(3)
        assert block_range.contains_line(7)
        assert not block_range.contains_line(8)

    def test_dict_round_trip(self):
        """Test dictionary conversion"""
        block_range = make_range(2, 4, 5, 50)

        assert BlockRange.from_dict(block_range.to_dict()) == block_range

    def test_from_point_tuple(self):
        """Test Position from a (row, column) pair"""
        assert Position.from_point((3, 9)) == Position(3, 9)


class TestNamedElementBlock:
    """Test NamedElementBlock"""

    def setup_method(self):
        """Setup test environment"""
        self.block = NamedElementBlock(
            identifier_range=BlockRange(Position(4, 6), Position(4, 11), 40, 45),
            block_range=make_range(4, 9, 36, 120),
            kind=CodeElementType.STRUCTURE,
            text="class Shape:\n    pass",
            identifier="Shape"
        )

    def test_block_identifier(self):
        """Test identifier combines kind, name and name position"""
        assert self.block.block_identifier == "structure:Shape:4:6"

    def test_is_within(self):
        """Test selection containment"""
        assert self.block.is_within(5, 8)
        assert not self.block.is_within(2, 5)

    def test_immutable(self):
        """Test blocks cannot be modified"""
        with pytest.raises(AttributeError):
            self.block.identifier = "Other"

    def test_no_comment_by_default(self):
        """Test comment range is optional"""
        assert self.block.comment_range is None


class TestContentChange:
    """Test ContentChange deltas"""

    def test_apply_insertion(self):
        """Test inserting text"""
        change = ContentChange(range_offset=3, range_length=0, new_text="XY")
        assert change.apply_to("abcdef") == "abcXYdef"

    def test_apply_replacement(self):
        """Test replacing a span"""
        change = ContentChange(range_offset=1, range_length=3, new_text="-")
        assert change.apply_to("abcdef") == "a-ef"

    def test_apply_deletion_at_end(self):
        """Test deleting up to the end of the text"""
        change = ContentChange(range_offset=4, range_length=2)
        assert change.apply_to("abcdef") == "abcd"

    def test_out_of_range(self):
        """Test a range beyond the text is rejected"""
        change = ContentChange(range_offset=5, range_length=3, new_text="")
        with pytest.raises(ValueError):
            change.apply_to("abcdef")

    def test_negative_offset_rejected(self):
        """Test validation of negative offsets"""
        with pytest.raises(ValueError):
            ContentChange(range_offset=-1, range_length=0, new_text="")

    def test_camel_case_aliases(self):
        """Test editor-style field names are accepted"""
        change = ContentChange.model_validate(
            {"rangeOffset": 2, "rangeLength": 1, "newText": "z"}
        )

        assert change.range_offset == 2
        assert change.new_text == "z"


class TestDocumentChangeEvent:
    """Test DocumentChangeEvent"""

    def test_document_snapshot(self):
        """Test the post-change document view"""
        event = DocumentChangeEvent.model_validate({
            "identity": "file:///w/a.py",
            "languageId": "python",
            "contentChanges": [{"rangeOffset": 0, "rangeLength": 0, "newText": "x"}],
            "fullText": "x = 1\n"
        })

        assert event.document == SourceDocument("file:///w/a.py", "x = 1\n", "python")
        assert len(event.content_changes) == 1

    def test_empty_identity_rejected(self):
        """Test validation of the document identity"""
        with pytest.raises(ValueError):
            DocumentChangeEvent(identity=" ", language_id="python", full_text="")
