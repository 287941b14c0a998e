"""JavaScript and TypeScript: prettier formatting, no context rules."""

from functools import partial

from semedit.mutation.formatter import CodeFormatter
from .capability import LanguageCapability


def format_with_prettier(text: str, language: str) -> str:
    return CodeFormatter().format_text(text, language)


JAVASCRIPT = LanguageCapability(
    name="javascript",
    extensions=frozenset({".js", ".jsx", ".mjs", ".cjs"}),
    format=partial(format_with_prettier, language="javascript"),
)

TYPESCRIPT = LanguageCapability(
    name="typescript",
    extensions=frozenset({".ts", ".mts", ".cts"}),
    format=partial(format_with_prettier, language="typescript"),
)

TSX = LanguageCapability(
    name="tsx",
    extensions=frozenset({".tsx"}),
    format=partial(format_with_prettier, language="tsx"),
)
