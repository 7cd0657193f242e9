"""
Identity-keyed cache of incrementally parsed syntax trees.

Holds one ParsedFile per open document. Edit deltas are applied to the
cached tree (tree-sitter edit bookkeeping) followed by a single incremental
reparse, instead of parsing the whole document again.
"""

import logging
import threading
import time
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import tree_sitter

from .base import GrammarUnavailable, ParsedFile
from .languages import load_language
from .positions import compute_edit
from ..models.entities import ContentChange, SourceDocument

logger = logging.getLogger(__name__)


class SyntaxTreeCache:
    """
    Single owner and writer of the identity -> ParsedFile mapping.

    Edit application is serialized with a lock so deltas for one document
    are never interleaved.
    """

    def __init__(self):
        self._cache: Dict[str, ParsedFile] = {}
        self._parsers: Dict[str, tree_sitter.Parser] = {}
        self._lock = threading.RLock()

        # Statistics
        self._full_parses = 0
        self._incremental_parses = 0

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, identity: str) -> bool:
        return identity in self._cache

    def identities(self) -> List[str]:
        return list(self._cache.keys())

    def get(self, identity: str) -> Optional[ParsedFile]:
        """Look up a cached ParsedFile without creating one"""
        return self._cache.get(identity)

    def create_or_get(self, document: SourceDocument) -> ParsedFile:
        """
        Return the cached entry for a document, parsing and caching it if absent.

        Raises:
            GrammarUnavailable: no grammar for the document's language; nothing is cached
        """
        with self._lock:
            cached = self._cache.get(document.identity)
            if cached is not None:
                return cached

            parsed = self.parse(document)
            self._cache[document.identity] = parsed
            return parsed

    def parse(self, document: SourceDocument) -> ParsedFile:
        """
        Parse a document from scratch without caching the result.

        Raises:
            GrammarUnavailable: no grammar for the document's language
        """
        language = load_language(document.language_id)
        parser = self._get_parser(document.language_id, language)

        source = document.text.encode('utf-8')
        start_time = time.perf_counter()
        tree = parser.parse(source)
        if tree is None:
            raise GrammarUnavailable(document.language_id, "parser returned no tree")

        self._full_parses += 1
        parsed = ParsedFile(
            identity=document.identity,
            language_id=document.language_id,
            language=language,
            tree=tree,
            source=source,
            parse_time=time.perf_counter() - start_time
        )
        logger.debug(
            f"Parsed {document.identity} ({document.language_id}) "
            f"in {parsed.parse_time*1000:.1f}ms"
        )
        return parsed

    def apply_edit(self, identity: str, change: ContentChange) -> Optional[ParsedFile]:
        """
        Apply one edit delta to a cached tree and reparse incrementally.

        Returns:
            The updated ParsedFile, or None when nothing is cached for the identity
        """
        with self._lock:
            parsed = self._cache.get(identity)
            if parsed is None:
                return None
            self._reparse(parsed, [change])
            return parsed

    def apply_changes(
        self,
        document: SourceDocument,
        changes: Iterable[ContentChange]
    ) -> ParsedFile:
        """
        Bring the cached tree for a document up to date with a change event.

        With no cached tree the document is parsed from scratch and the
        changes are ignored. Otherwise every change is applied to the tree in
        delivery order before a single incremental reparse. ``document.text``
        is the post-change text; if the deltas do not reproduce it the tree
        is rebuilt from that text.
        """
        with self._lock:
            parsed = self._cache.get(document.identity)
            if parsed is None:
                return self.create_or_get(document)

            changes = list(changes)
            if changes:
                try:
                    self._reparse(parsed, changes)
                except ValueError as e:
                    logger.warning(f"Could not apply changes to {document.identity}: {e}")

            if parsed.text != document.text:
                logger.warning(
                    f"Tree for {document.identity} diverged from document text, "
                    f"reparsing from scratch"
                )
                replacement = self.parse(document)
                replacement.version = parsed.version + 1
                self._cache[document.identity] = replacement
                return replacement

            return parsed

    def replace(self, document: SourceDocument) -> ParsedFile:
        """Reparse a document from scratch and replace any cached entry"""
        with self._lock:
            previous = self._cache.get(document.identity)
            parsed = self.parse(document)
            if previous is not None:
                parsed.version = previous.version + 1
            self._cache[document.identity] = parsed
            return parsed

    def evict(self, identity: str) -> bool:
        """Drop the entry for a closed document"""
        with self._lock:
            return self._cache.pop(identity, None) is not None

    def clear(self) -> None:
        """Tear down the cache"""
        with self._lock:
            self._cache.clear()
            logger.debug("Syntax tree cache cleared")

    def get_cache_stats(self) -> Dict[str, int]:
        return {
            "entries": len(self._cache),
            "full_parses": self._full_parses,
            "incremental_parses": self._incremental_parses
        }

    def _reparse(self, parsed: ParsedFile, changes: List[ContentChange]) -> None:
        """
        Edit a copy of the tree for each change, then reparse once.

        The cached tree is only swapped after the reparse succeeds, so a bad
        delta (ValueError) leaves the entry untouched.
        """
        text = parsed.text
        tree = parsed.tree.copy()

        for change in changes:
            edit, text = compute_edit(text, change)
            tree.edit(**edit.as_kwargs())

        source = text.encode('utf-8')
        parser = self._get_parser(parsed.language_id, parsed.language)

        start_time = time.perf_counter()
        new_tree = parser.parse(source, old_tree=tree)
        if new_tree is None:
            raise GrammarUnavailable(parsed.language_id, "incremental parse returned no tree")

        parsed.tree = new_tree
        parsed.source = source
        parsed.version += 1
        parsed.parse_time = time.perf_counter() - start_time
        parsed.updated_at = datetime.now()
        self._incremental_parses += 1

        logger.debug(
            f"Applied {len(changes)} change(s) to {parsed.identity} "
            f"(v{parsed.version}) in {parsed.parse_time*1000:.1f}ms"
        )

    def _get_parser(self, language_id: str, language: tree_sitter.Language) -> tree_sitter.Parser:
        parser = self._parsers.get(language_id)
        if parser is None:
            parser = tree_sitter.Parser()
            parser.language = language
            self._parsers[language_id] = parser
        return parser
