"""
Parse tree provider: grammar loading and tree helpers.
"""

from .language_manager import (
    GRAMMARS,
    get_language,
    get_parser,
    is_supported,
    parse,
)
from .tree import (
    ancestor_kinds,
    error_nodes,
    iter_named,
    line_excerpt,
    node_name,
    node_text,
)

__all__ = [
    "GRAMMARS",
    "get_language",
    "get_parser",
    "is_supported",
    "parse",
    "ancestor_kinds",
    "error_nodes",
    "iter_named",
    "line_excerpt",
    "node_name",
    "node_text",
]
