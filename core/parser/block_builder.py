"""
Structural block extraction over a parsed syntax tree.

Runs tree-sitter queries against the root node of a ParsedFile and turns
each (identifier, body) capture pair into an immutable NamedElementBlock,
optionally linked to the comment that directly precedes the body.
"""

import logging
import threading
from typing import Dict, List, Optional, Tuple

import tree_sitter

from .base import ParsedFile, QueryError
from .languages import LanguageConfig, get_language_config
from ..models.entities import BlockRange, CodeElementType, NamedElementBlock

logger = logging.getLogger(__name__)

_query_cache: Dict[Tuple[str, str], tree_sitter.Query] = {}
_query_lock = threading.Lock()


def compile_query(parsed_file: ParsedFile, query_pattern: str) -> tree_sitter.Query:
    """
    Compile (once per language and pattern) a query for a file's grammar.

    Raises:
        QueryError: the pattern does not compile against the grammar
    """
    cache_key = (parsed_file.language_id, query_pattern)
    cached = _query_cache.get(cache_key)
    if cached is not None:
        return cached

    with _query_lock:
        try:
            query = tree_sitter.Query(parsed_file.language, query_pattern)
        except Exception as e:
            raise QueryError(
                f"Failed to compile query for {parsed_file.language_id}: {e}"
            ) from e
        _query_cache[cache_key] = query
        logger.debug(f"Compiled query for {parsed_file.language_id}")
        return query


class BlockExtractor:
    """Extracts methods and classes from one parsed file"""

    def __init__(self, parsed_file: ParsedFile):
        self.parsed_file = parsed_file
        self.config: Optional[LanguageConfig] = get_language_config(parsed_file.language_id)

    def extract_methods(self) -> List[NamedElementBlock]:
        if self.config is None or not self.config.method_query.strip():
            raise QueryError(f"No method query configured for {self.parsed_file.language_id}")
        return self.extract_by_query(self.config.method_query, CodeElementType.METHOD)

    def extract_classes(self) -> List[NamedElementBlock]:
        if self.config is None or not self.config.class_query.strip():
            raise QueryError(f"No class query configured for {self.parsed_file.language_id}")
        return self.extract_by_query(self.config.class_query, CodeElementType.STRUCTURE)

    def extract_by_query(
        self,
        query_pattern: str,
        kind: CodeElementType
    ) -> List[NamedElementBlock]:
        """
        Run a query and build one block per match.

        The first capture of the query names the identifier node, the second
        names the enclosing body. Matches lacking either are skipped.

        Raises:
            QueryError: compile or execution failure; no partial results
        """
        query = compile_query(self.parsed_file, query_pattern)
        if query.capture_count < 2:
            logger.debug(f"Query for {kind.value} declares fewer than two captures")
            return []

        identifier_capture = query.capture_name(0)
        body_capture = query.capture_name(1)

        try:
            matches = tree_sitter.QueryCursor(query).matches(self.parsed_file.root_node)
        except Exception as e:
            raise QueryError(
                f"Query execution failed on {self.parsed_file.identity}: {e}"
            ) from e

        blocks = []
        for _pattern_index, captures in matches:
            identifier_nodes = captures.get(identifier_capture)
            body_nodes = captures.get(body_capture)
            if not identifier_nodes or not body_nodes:
                continue
            blocks.append(self._build_block(identifier_nodes[0], body_nodes[0], kind))

        return blocks

    def _build_block(
        self,
        identifier_node: tree_sitter.Node,
        body_node: tree_sitter.Node,
        kind: CodeElementType
    ) -> NamedElementBlock:
        comment_node = self._find_leading_comment(body_node)
        return NamedElementBlock(
            identifier_range=BlockRange.from_node(identifier_node),
            block_range=BlockRange.from_node(body_node),
            kind=kind,
            text=self.parsed_file.slice(body_node.start_byte, body_node.end_byte),
            identifier=self.parsed_file.slice(identifier_node.start_byte, identifier_node.end_byte),
            comment_range=BlockRange.from_node(comment_node) if comment_node else None
        )

    def _find_leading_comment(self, body_node: tree_sitter.Node) -> Optional[tree_sitter.Node]:
        """
        Nearest comment directly above a declaration.

        Only a comment that ends on the line above (or the same line as) the
        declaration's first line counts; a blank line breaks the link.
        """
        comment_types = self.config.comment_types if self.config else ("comment",)
        wrapper_types = self.config.wrapper_types if self.config else ()

        anchor = body_node
        while anchor.parent is not None and anchor.parent.type in wrapper_types:
            anchor = anchor.parent

        previous = anchor.prev_sibling
        # python blocks start at their first statement, so a comment right
        # after the header belongs to the enclosing node
        parent = anchor.parent
        if previous is None and parent is not None and parent.start_byte == anchor.start_byte:
            previous = parent.prev_sibling
        if previous is None or previous.type not in comment_types:
            return None
        if previous.end_point[0] < anchor.start_point[0] - 1:
            return None
        return previous


def extract_blocks(parsed_file: ParsedFile) -> List[NamedElementBlock]:
    """Methods followed by classes, in query match order"""
    extractor = BlockExtractor(parsed_file)
    return extractor.extract_methods() + extractor.extract_classes()
