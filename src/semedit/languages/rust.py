"""
Rust structural rules.

Two kinds of checks run against a speculative edit:

1. Container rules compare what the replacement *is* (its kinds when
   parsed on its own) with where it lands (the enclosing kind in the
   pre-edit tree). This catches a function pasted into a struct's field
   list even though tree-sitter recovers from it with an ERROR node.
2. Query rules run tree-sitter queries over the post-edit tree. Any
   `invalid.*` capture touching the edited range is a violation.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import FrozenSet, Optional, Tuple

from tree_sitter import Query, QueryCursor

from semedit.logging_config import logger
from semedit.mutation.formatter import CodeFormatter
from semedit.parser import get_language
from semedit.schemas import ValidationOutcome
from .capability import ContextProbe, LanguageCapability

FIELD_LISTS = frozenset({"field_declaration_list", "ordered_field_declaration_list"})
FUNCTIONS = frozenset({"function_item", "function_signature_item"})
MODULE_ITEMS = frozenset({
    "struct_item", "enum_item", "union_item", "impl_item", "trait_item",
    "mod_item", "use_declaration", "const_item", "static_item", "type_item",
})


@dataclass(frozen=True)
class ContainerRule:
    rule: str
    containers: FrozenSet[str]
    forbidden: FrozenSet[str]
    reason: str
    suggestion: str
    parents: Optional[FrozenSet[str]] = None  # Restrict to containers under these kinds

    def applies(self, probe: ContextProbe) -> bool:
        if probe.container not in self.containers:
            return False
        if self.parents is not None and probe.container_parent not in self.parents:
            return False
        return any(kind in self.forbidden for kind in probe.snippet_kinds)


CONTAINER_RULES: Tuple[ContainerRule, ...] = (
    ContainerRule(
        rule="function.in.struct.fields",
        containers=FIELD_LISTS,
        forbidden=FUNCTIONS,
        reason="Functions cannot be defined inside struct field lists",
        suggestion="Place the function in an impl block after the struct definition",
    ),
    ContainerRule(
        rule="function.in.enum.variants",
        containers=frozenset({"enum_variant_list"}),
        forbidden=FUNCTIONS,
        reason="Functions cannot be defined inside enum variant lists",
        suggestion="Place the function in an impl block after the enum definition",
    ),
    ContainerRule(
        rule="item.in.type.body",
        containers=FIELD_LISTS | {"enum_variant_list"},
        forbidden=MODULE_ITEMS,
        reason="Items cannot be nested inside struct fields or enum variants",
        suggestion="Place the item at module level after the type definition",
    ),
    ContainerRule(
        rule="impl.nested",
        containers=frozenset({"declaration_list"}),
        parents=frozenset({"impl_item", "trait_item"}),
        forbidden=frozenset({"impl_item"}),
        reason="Impl blocks can only be defined at module level",
        suggestion="Move the impl block to module level",
    ),
)

INVALID_QUERIES = """
(impl_item body: (declaration_list (impl_item) @invalid.impl.nested))
(trait_item body: (declaration_list (impl_item) @invalid.impl.in.trait))
"""

QUERY_MESSAGES = {
    "invalid.impl.nested": (
        "Impl blocks can only be defined at module level",
        "Move the impl block to module level",
    ),
    "invalid.impl.in.trait": (
        "Impl blocks cannot be defined inside trait definitions",
        "Move the impl block to module level",
    ),
}


@lru_cache(maxsize=1)
def _invalid_query() -> Query:
    return Query(get_language("rust"), INVALID_QUERIES)


def check_context(probe: ContextProbe) -> ValidationOutcome:
    for rule in CONTAINER_RULES:
        if rule.applies(probe):
            logger.debug(f"Rust container rule {rule.rule} rejected edit in {probe.container}")
            return ValidationOutcome.context_violation(
                rule.reason, rule.suggestion, rule=rule.rule, byte_range=probe.edited_range
            )

    captures = QueryCursor(_invalid_query()).captures(probe.tree.root_node)
    for capture_name in sorted(captures):
        for node in captures[capture_name]:
            if probe.touches(node):
                reason, suggestion = QUERY_MESSAGES.get(
                    capture_name,
                    ("Invalid construct placement", "Consider placing this construct in an appropriate context"),
                )
                return ValidationOutcome.context_violation(
                    reason,
                    suggestion,
                    rule=capture_name.removeprefix("invalid."),
                    byte_range=(node.start_byte, node.end_byte),
                )
    return ValidationOutcome.valid()


def format_rust(text: str) -> str:
    return CodeFormatter().format_text(text, "rust")


RUST = LanguageCapability(
    name="rust",
    extensions=frozenset({".rs"}),
    format=format_rust,
    check_context=check_context,
)
