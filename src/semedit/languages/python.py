"""
Python scope rules.

The grammar accepts `return` or `break` anywhere a statement may appear, so
these are checked by walking up from each such statement in the edited
range to the nearest scope boundary.
"""

from typing import Dict, FrozenSet, Optional, Tuple

from tree_sitter import Node

from semedit.mutation.formatter import CodeFormatter
from semedit.schemas import ValidationOutcome
from .capability import ContextProbe, LanguageCapability

FUNCTION_SCOPES = frozenset({"function_definition", "lambda"})
SCOPE_BOUNDARIES = frozenset({"function_definition", "lambda", "class_definition", "module"})
LOOPS = frozenset({"for_statement", "while_statement"})

# statement kind -> (kinds that make it legal, kinds that end the search, reason, suggestion)
SCOPE_RULES: Dict[str, Tuple[FrozenSet[str], FrozenSet[str], str, str]] = {
    "return_statement": (
        frozenset({"function_definition"}),
        SCOPE_BOUNDARIES,
        "'return' outside function",
        "Place the return statement inside a function body",
    ),
    "yield": (
        FUNCTION_SCOPES,
        SCOPE_BOUNDARIES,
        "'yield' outside function",
        "Place the yield expression inside a function body",
    ),
    "break_statement": (
        LOOPS,
        LOOPS | SCOPE_BOUNDARIES,
        "'break' outside loop",
        "Place the break statement inside a for or while loop",
    ),
    "continue_statement": (
        LOOPS,
        LOOPS | SCOPE_BOUNDARIES,
        "'continue' not properly in loop",
        "Place the continue statement inside a for or while loop",
    ),
}


def _nearest(node: Node, kinds: FrozenSet[str]) -> Optional[Node]:
    parent = node.parent
    while parent is not None:
        if parent.type in kinds:
            return parent
        parent = parent.parent
    return None


def check_context(probe: ContextProbe) -> ValidationOutcome:
    for node in probe.nodes_in_edit():
        rule = SCOPE_RULES.get(node.type)
        if rule is None:
            continue
        legal, boundaries, reason, suggestion = rule
        scope = _nearest(node, boundaries)
        if scope is None or scope.type not in legal:
            return ValidationOutcome.context_violation(
                reason,
                suggestion,
                rule=f"{node.type}.scope",
                byte_range=(node.start_byte, node.end_byte),
            )
    return ValidationOutcome.valid()


def format_python(text: str) -> str:
    return CodeFormatter().format_text(text, "python")


PYTHON = LanguageCapability(
    name="python",
    extensions=frozenset({".py", ".pyi"}),
    format=format_python,
    check_context=check_context,
)
