"""JSON: indentation-preserving re-format, no context rules."""

from semedit.mutation.formatter import CodeFormatter
from .capability import LanguageCapability


def format_json(text: str) -> str:
    return CodeFormatter().format_json(text)


JSON = LanguageCapability(
    name="json",
    extensions=frozenset({".json"}),
    format=format_json,
)
