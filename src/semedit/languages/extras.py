"""
Languages with a grammar but no structural rules.

Edits in these languages get syntax validation only. Go is the one with a
formatter (gofmt). Their grammar wheels ship in the `languages` extra.
"""

from semedit.mutation.formatter import CodeFormatter
from .capability import LanguageCapability


def format_go(text: str) -> str:
    return CodeFormatter().format_text(text, "go")


GO = LanguageCapability(name="go", extensions=frozenset({".go"}), format=format_go)

JAVA = LanguageCapability(name="java", extensions=frozenset({".java"}))

C = LanguageCapability(name="c", extensions=frozenset({".c", ".h"}))

CPP = LanguageCapability(
    name="cpp",
    extensions=frozenset({".cpp", ".cc", ".cxx", ".hpp", ".hh", ".hxx"}),
)

CSHARP = LanguageCapability(name="csharp", extensions=frozenset({".cs"}))

RUBY = LanguageCapability(name="ruby", extensions=frozenset({".rb"}))

PHP = LanguageCapability(name="php", extensions=frozenset({".php"}))
