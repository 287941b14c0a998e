"""
Per-language capability records.

A capability bundles a formatter and context rules for one language tag.
Tags without a record fall back to DEFAULT_CAPABILITY: no formatting and
no context checks, syntax validation still applies.
"""

from .capability import (
    DEFAULT_CAPABILITY,
    ContextProbe,
    LanguageCapability,
    LanguageRegistry,
    no_context_rules,
    no_format,
)
from .extras import C, CPP, CSHARP, GO, JAVA, PHP, RUBY
from .json_support import JSON
from .python import PYTHON
from .rust import RUST
from .web import JAVASCRIPT, TSX, TYPESCRIPT

BUILTIN_CAPABILITIES = (
    PYTHON, RUST, JAVASCRIPT, TYPESCRIPT, TSX, JSON,
    GO, JAVA, C, CPP, CSHARP, RUBY, PHP,
)


def default_registry() -> LanguageRegistry:
    """Registry holding every shipped capability."""
    return LanguageRegistry(BUILTIN_CAPABILITIES)


__all__ = [
    "BUILTIN_CAPABILITIES",
    "DEFAULT_CAPABILITY",
    "ContextProbe",
    "LanguageCapability",
    "LanguageRegistry",
    "default_registry",
    "no_context_rules",
    "no_format",
    "JSON",
    "PYTHON",
    "RUST",
    "JAVASCRIPT",
    "TYPESCRIPT",
    "TSX",
    "GO",
    "JAVA",
    "C",
    "CPP",
    "CSHARP",
    "RUBY",
    "PHP",
]
