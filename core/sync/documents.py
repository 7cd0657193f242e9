"""
Editor document synchronization.

Feeds open/change/close events from the editing surface into the syntax
tree cache so open documents always have an up-to-date tree.
"""

import asyncio
import logging
from typing import Dict, Optional, Set

from ..models.entities import DocumentChangeEvent, SourceDocument
from ..parser.base import GrammarUnavailable, ParsedFile
from ..parser.languages import is_supported_language
from ..parser.tree_cache import SyntaxTreeCache

logger = logging.getLogger(__name__)


class DocumentSync:
    """
    Routes document events to a SyntaxTreeCache.

    Changes for one identity are applied strictly in arrival order; events
    for different documents do not wait on each other.
    """

    def __init__(self, cache: SyntaxTreeCache):
        self.cache = cache
        self._locks: Dict[str, asyncio.Lock] = {}
        self._unsupported: Set[str] = set()

        # Statistics
        self.events_processed = 0
        self.events_ignored = 0

    def is_unsupported(self, identity: str) -> bool:
        """Whether a grammar failure was recorded for the document"""
        return identity in self._unsupported

    async def handle_open(self, document: SourceDocument) -> Optional[ParsedFile]:
        """Parse and cache a newly opened document"""
        if not self._accepts(document.identity, document.language_id):
            return None

        async with self._lock_for(document.identity):
            try:
                return self.cache.create_or_get(document)
            except GrammarUnavailable as e:
                self._mark_unsupported(document.identity, e)
                return None
            finally:
                self.events_processed += 1

    async def handle_change(self, event: DocumentChangeEvent) -> Optional[ParsedFile]:
        """
        Apply a change event to the cached tree.

        Returns:
            The updated ParsedFile, or None when the language is unsupported
        """
        if not self._accepts(event.identity, event.language_id):
            return None

        async with self._lock_for(event.identity):
            try:
                return self.cache.apply_changes(event.document, event.content_changes)
            except GrammarUnavailable as e:
                self._mark_unsupported(event.identity, e)
                return None
            finally:
                self.events_processed += 1

    async def handle_close(self, identity: str) -> bool:
        """Drop the cached tree of a closed document"""
        async with self._lock_for(identity):
            evicted = self.cache.evict(identity)
        self._locks.pop(identity, None)
        self._unsupported.discard(identity)
        if evicted:
            logger.debug(f"Evicted tree for closed document {identity}")
        return evicted

    def get_stats(self) -> Dict[str, int]:
        return {
            "open_documents": len(self.cache),
            "unsupported_documents": len(self._unsupported),
            "events_processed": self.events_processed,
            "events_ignored": self.events_ignored
        }

    def _accepts(self, identity: str, language_id: str) -> bool:
        if not is_supported_language(language_id) or identity in self._unsupported:
            self.events_ignored += 1
            return False
        return True

    def _lock_for(self, identity: str) -> asyncio.Lock:
        lock = self._locks.get(identity)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[identity] = lock
        return lock

    def _mark_unsupported(self, identity: str, error: GrammarUnavailable) -> None:
        logger.warning(f"Marking {identity} as unsupported: {error}")
        self._unsupported.add(identity)
