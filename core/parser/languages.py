"""
Language registry: tree-sitter grammars, structural queries and file mapping.

Every query captures the identifier node first and the enclosing body node
second; the block extractor relies on that capture order.
"""

import importlib
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import tree_sitter

from .base import GrammarUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LanguageConfig:
    """Grammar, queries and comment kinds for one language"""
    language_id: str
    grammar_module: str
    grammar_function: str
    extensions: Tuple[str, ...]
    method_query: str
    class_query: str
    comment_types: Tuple[str, ...] = ("comment",)
    # Nodes that wrap a declaration (decorators, export) and own its leading comment
    wrapper_types: Tuple[str, ...] = ()


LANGUAGE_CONFIGS: Dict[str, LanguageConfig] = {
    "python": LanguageConfig(
        language_id="python",
        grammar_module="tree_sitter_python",
        grammar_function="language",
        extensions=(".py", ".pyi"),
        method_query="""
            (function_definition name: (identifier) @name) @body
        """,
        class_query="""
            (class_definition name: (identifier) @name) @body
        """,
        wrapper_types=("decorated_definition",)
    ),
    "java": LanguageConfig(
        language_id="java",
        grammar_module="tree_sitter_java",
        grammar_function="language",
        extensions=(".java",),
        method_query="""
            (method_declaration name: (identifier) @name) @body
            (constructor_declaration name: (identifier) @name) @body
        """,
        class_query="""
            (class_declaration name: (identifier) @name) @body
            (interface_declaration name: (identifier) @name) @body
            (enum_declaration name: (identifier) @name) @body
        """,
        comment_types=("block_comment", "line_comment")
    ),
    "javascript": LanguageConfig(
        language_id="javascript",
        grammar_module="tree_sitter_javascript",
        grammar_function="language",
        extensions=(".js", ".jsx", ".mjs", ".cjs"),
        method_query="""
            (method_definition name: (property_identifier) @name) @body
            (function_declaration name: (identifier) @name) @body
        """,
        class_query="""
            (class_declaration name: (identifier) @name) @body
        """,
        wrapper_types=("export_statement",)
    ),
    "typescript": LanguageConfig(
        language_id="typescript",
        grammar_module="tree_sitter_typescript",
        grammar_function="language_typescript",
        extensions=(".ts", ".mts", ".cts"),
        method_query="""
            (method_definition name: (property_identifier) @name) @body
            (function_declaration name: (identifier) @name) @body
        """,
        class_query="""
            (class_declaration name: (type_identifier) @name) @body
            (abstract_class_declaration name: (type_identifier) @name) @body
            (interface_declaration name: (type_identifier) @name) @body
        """,
        wrapper_types=("export_statement",)
    ),
    "go": LanguageConfig(
        language_id="go",
        grammar_module="tree_sitter_go",
        grammar_function="language",
        extensions=(".go",),
        method_query="""
            (method_declaration name: (field_identifier) @name) @body
            (function_declaration name: (identifier) @name) @body
        """,
        class_query="""
            (type_declaration (type_spec name: (type_identifier) @name)) @body
        """
    ),
    "rust": LanguageConfig(
        language_id="rust",
        grammar_module="tree_sitter_rust",
        grammar_function="language",
        extensions=(".rs",),
        method_query="""
            (function_item name: (identifier) @name) @body
        """,
        class_query="""
            (struct_item name: (type_identifier) @name) @body
            (enum_item name: (type_identifier) @name) @body
            (trait_item name: (type_identifier) @name) @body
        """,
        comment_types=("block_comment", "line_comment")
    ),
}

_language_cache: Dict[str, tree_sitter.Language] = {}
_language_lock = threading.Lock()


def get_language_config(language_id: str) -> Optional[LanguageConfig]:
    """Get configuration for a language identifier"""
    return LANGUAGE_CONFIGS.get(language_id)


def is_supported_language(language_id: str) -> bool:
    """Check whether a language identifier has a configured grammar"""
    return language_id in LANGUAGE_CONFIGS


def get_supported_languages() -> List[str]:
    return list(LANGUAGE_CONFIGS.keys())


def get_extension_mapping() -> Dict[str, str]:
    """Map file extensions to language identifiers"""
    mapping = {}
    for config in LANGUAGE_CONFIGS.values():
        for extension in config.extensions:
            mapping[extension] = config.language_id
    return mapping


def language_for_path(file_path: Path) -> Optional[str]:
    """Get the language identifier for a file by extension"""
    return get_extension_mapping().get(Path(file_path).suffix.lower())


def load_language(language_id: str) -> tree_sitter.Language:
    """
    Load (once) the tree-sitter Language for an identifier.

    Raises:
        GrammarUnavailable: unknown identifier or grammar package missing/broken
    """
    cached = _language_cache.get(language_id)
    if cached is not None:
        return cached

    config = get_language_config(language_id)
    if config is None:
        raise GrammarUnavailable(language_id, "unsupported language")

    with _language_lock:
        if language_id in _language_cache:
            return _language_cache[language_id]

        try:
            language_module = importlib.import_module(config.grammar_module)
            language_factory = getattr(language_module, config.grammar_function)
            language = tree_sitter.Language(language_factory())
        except ImportError as e:
            raise GrammarUnavailable(
                language_id,
                f"grammar module '{config.grammar_module}' not installed"
            ) from e
        except Exception as e:
            raise GrammarUnavailable(language_id, str(e)) from e

        _language_cache[language_id] = language
        logger.debug(f"Loaded {language_id} tree-sitter grammar")
        return language
