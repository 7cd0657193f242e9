"""
Tree-sitter parsing for workspace-indexer.

Key Components:
- SyntaxTreeCache: identity-keyed, incrementally updated syntax trees
- BlockExtractor: query-based extraction of methods and classes
- Language registry: grammars, queries and extension mapping

Example:
    from core.models import SourceDocument
    from core.parser import SyntaxTreeCache, extract_blocks

    cache = SyntaxTreeCache()
    parsed = cache.create_or_get(SourceDocument("a.py", "def f():\\n    pass\\n", "python"))
    for block in extract_blocks(parsed):
        print(block.kind.value, block.identifier)
"""

from .base import GrammarUnavailable, ParsedFile, ParseError, QueryError
from .block_builder import BlockExtractor, extract_blocks
from .languages import (
    LANGUAGE_CONFIGS,
    LanguageConfig,
    get_language_config,
    get_supported_languages,
    is_supported_language,
    language_for_path,
    load_language,
)
from .tree_cache import SyntaxTreeCache

__all__ = [
    "GrammarUnavailable",
    "ParsedFile",
    "ParseError",
    "QueryError",
    "BlockExtractor",
    "extract_blocks",
    "LANGUAGE_CONFIGS",
    "LanguageConfig",
    "get_language_config",
    "get_supported_languages",
    "is_supported_language",
    "language_for_path",
    "load_language",
    "SyntaxTreeCache"
]
