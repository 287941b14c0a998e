import importlib
import threading
from typing import Dict, Tuple

from tree_sitter import Language, Parser, Tree

from semedit.exceptions import UnsupportedLanguage
from semedit.logging_config import logger

# language tag -> (grammar module, factory function, distribution name)
GRAMMARS: Dict[str, Tuple[str, str, str]] = {
    "python": ("tree_sitter_python", "language", "tree-sitter-python"),
    "rust": ("tree_sitter_rust", "language", "tree-sitter-rust"),
    "javascript": ("tree_sitter_javascript", "language", "tree-sitter-javascript"),
    "typescript": ("tree_sitter_typescript", "language_typescript", "tree-sitter-typescript"),
    "tsx": ("tree_sitter_typescript", "language_tsx", "tree-sitter-typescript"),
    "json": ("tree_sitter_json", "language", "tree-sitter-json"),
    "go": ("tree_sitter_go", "language", "tree-sitter-go"),
    "java": ("tree_sitter_java", "language", "tree-sitter-java"),
    "c": ("tree_sitter_c", "language", "tree-sitter-c"),
    "cpp": ("tree_sitter_cpp", "language", "tree-sitter-cpp"),
    "csharp": ("tree_sitter_c_sharp", "language", "tree-sitter-c-sharp"),
    "ruby": ("tree_sitter_ruby", "language", "tree-sitter-ruby"),
    "php": ("tree_sitter_php", "language_php", "tree-sitter-php"),
}

# Global cache for loaded languages to avoid repeated loading
_language_cache: Dict[str, Language] = {}
_cache_lock = threading.Lock()


def get_language(language_name: str) -> Language:
    """
    Loads a tree-sitter language from its grammar wheel.

    Caches the loaded language object for efficiency.

    Raises:
        UnsupportedLanguage: If the tag is unknown or its grammar is not installed
    """
    with _cache_lock:
        if language_name in _language_cache:
            return _language_cache[language_name]

    entry = GRAMMARS.get(language_name)
    if entry is None:
        raise UnsupportedLanguage(language_name)

    module_name, factory, distribution = entry
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        logger.error(f"Grammar for '{language_name}' is not installed: {e}")
        raise UnsupportedLanguage(language_name, install_hint=f"pip install {distribution}") from e

    lang = Language(getattr(module, factory)())
    with _cache_lock:
        _language_cache[language_name] = lang
    logger.debug(f"Successfully loaded language '{language_name}'")
    return lang


def is_supported(language_name: str) -> bool:
    """True when a grammar for the tag can be loaded."""
    try:
        get_language(language_name)
    except UnsupportedLanguage:
        return False
    return True


def get_parser(language_name: str) -> Parser:
    """
    Return a fresh parser for a language.

    Parsers hold mutable state, so one is created per call instead of being
    shared between threads.
    """
    return Parser(get_language(language_name))


def parse(source: bytes, language_name: str) -> Tree:
    """Parse a UTF-8 buffer into a concrete syntax tree."""
    return get_parser(language_name).parse(source)
