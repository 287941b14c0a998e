"""
EditValidator: two-layer gate in front of every mutation.

1. Context layer: language structural rules (via the capability record)
2. Syntax layer: re-parse and look for new ERROR / MISSING nodes the edit
   is responsible for

Both run against a speculative copy of the buffer that is discarded on
every exit path. The authoritative document is never touched here.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional, Set, Tuple

from tree_sitter import Node, Tree

from semedit.config import get_config_value
from semedit.document import DocumentSnapshot
from semedit.exceptions import FormatFailure
from semedit.languages import ContextProbe, LanguageRegistry
from semedit.logging_config import logger
from semedit.parser import ancestor_kinds, error_nodes, line_excerpt, parse
from semedit.schemas import Edit, ValidationOutcome

ErrorKey = Tuple[str, int, int]


@dataclass
class SpeculativeBuffer:
    """Post-edit buffer and tree, valid only inside `speculative_buffer`."""
    source: bytes
    tree: Tree


@dataclass(frozen=True)
class ValidationReport:
    """
    Outcome of both layers, plus the text that would be written.

    `source` and `tree` are set only when the outcome is valid; they include
    formatting when it was requested.
    """
    outcome: ValidationOutcome
    source: Optional[bytes] = None
    tree: Optional[Tree] = None

    @property
    def is_valid(self) -> bool:
        return self.outcome.is_valid


def _error_label(node: Node) -> str:
    return f"MISSING {node.type}" if node.is_missing else node.type


def enclosing_kinds(snapshot: DocumentSnapshot, start: int, end: int) -> Tuple[str, ...]:
    """
    Ancestor kinds of a span in the pre-edit tree, innermost first.

    The innermost entry is the smallest named node that strictly contains
    the span: for an insertion point it must contain bytes on both sides,
    for a replaced span it must be larger than the span itself.
    """
    root = snapshot.root
    node = root.named_descendant_for_byte_range(start, end) or root
    while node.parent is not None:
        if start == end:
            contains = node.start_byte < start < node.end_byte
        else:
            contains = (
                node.start_byte <= start and end <= node.end_byte
                and (node.start_byte, node.end_byte) != (start, end)
            )
        if contains and node.is_named:
            break
        node = node.parent
    return (node.type,) + ancestor_kinds(node)


def snippet_kinds(replacement: bytes, language: str) -> Tuple[str, ...]:
    """Top-level kinds of the replacement parsed on its own."""
    if not replacement.strip():
        return ()
    kinds = []
    for child in parse(replacement, language).root_node.named_children:
        if child.type == "ERROR":
            kinds.extend(grandchild.type for grandchild in child.named_children)
        else:
            kinds.append(child.type)
    return tuple(kinds)


class EditValidator:
    """
    Validate edits against a snapshot.

    Formatting is applied after both layers pass, when enabled in config or
    requested per call.
    """

    def __init__(self, registry: LanguageRegistry, format_enabled: Optional[bool] = None):
        self.registry = registry
        if format_enabled is None:
            format_enabled = bool(get_config_value("format.enabled", False))
        self.format_enabled = format_enabled

    @contextmanager
    def speculative_buffer(self, snapshot: DocumentSnapshot, edit: Edit) -> Iterator[SpeculativeBuffer]:
        """Scoped working copy of the buffer with the edit applied."""
        working = bytearray(snapshot.source)
        working[edit.position.start_byte:edit.position.end_byte] = edit.replacement_bytes
        source = bytes(working)
        speculative = SpeculativeBuffer(source=source, tree=parse(source, snapshot.language))
        try:
            yield speculative
        finally:
            working.clear()
            speculative.tree = None

    def validate(self, snapshot: DocumentSnapshot, edit: Edit, auto_format: bool = False) -> ValidationReport:
        """
        Run the context layer then the syntax layer, short-circuiting.

        Raises:
            FormatFailure: If formatting was requested and the formatter failed
        """
        with self.speculative_buffer(snapshot, edit) as speculative:
            outcome = self.check_context(snapshot, edit, speculative)
            if outcome.is_valid:
                outcome = self.check_syntax(snapshot, edit, speculative)
            if not outcome.is_valid:
                logger.warning(f"Rejected edit on {snapshot.document_id}: {outcome.status} {outcome.reason or outcome.node_kind}")
                return ValidationReport(outcome)
            source, tree = speculative.source, speculative.tree

        if auto_format or self.format_enabled:
            source, tree = self._format(snapshot.language, source, tree)
        return ValidationReport(outcome, source, tree)

    def check_context(self, snapshot: DocumentSnapshot, edit: Edit, speculative: SpeculativeBuffer) -> ValidationOutcome:
        capability = self.registry.get(snapshot.language)
        probe = ContextProbe(
            tree=speculative.tree,
            edited_range=edit.edited_range,
            source=speculative.source,
            enclosing_kinds=enclosing_kinds(snapshot, edit.position.start_byte, edit.position.end_byte),
            snippet_kinds=snippet_kinds(edit.replacement_bytes, snapshot.language),
        )
        return capability.check_context(probe)

    def check_syntax(self, snapshot: DocumentSnapshot, edit: Edit, speculative: SpeculativeBuffer) -> ValidationOutcome:
        """
        Report the first new error node attributed to the edit.

        An error is attributed when it, or an ancestor strictly below the root,
        touches the closed range [edit_start, edit_start + len(replacement)].
        It is pre-existing when the old tree had an error of the same kind at
        the same range after shifting by the edit's byte delta.
        """
        previous = self._shifted_errors(snapshot, edit)
        edit_start, edit_end = edit.edited_range

        for node in error_nodes(speculative.tree.root_node):
            if (_error_label(node), node.start_byte, node.end_byte) in previous:
                continue
            if not self._attributed(node, edit_start, edit_end):
                continue
            line = node.start_point[0] + 1
            return ValidationOutcome.syntax_violation(
                _error_label(node),
                (node.start_byte, node.end_byte),
                line=line,
                excerpt=line_excerpt(speculative.source, line),
            )
        return ValidationOutcome.valid()

    def _shifted_errors(self, snapshot: DocumentSnapshot, edit: Edit) -> Set[ErrorKey]:
        old_start, old_end = edit.position.start_byte, edit.position.end_byte
        delta = edit.delta
        keys = set()
        for node in error_nodes(snapshot.root):
            if node.end_byte <= old_start:
                keys.add((_error_label(node), node.start_byte, node.end_byte))
            elif node.start_byte >= old_end:
                keys.add((_error_label(node), node.start_byte + delta, node.end_byte + delta))
        return keys

    def _attributed(self, node: Node, edit_start: int, edit_end: int) -> bool:
        current = node
        while current is not None:
            if current.parent is None and current is not node:
                return False
            if current.start_byte <= edit_end and current.end_byte >= edit_start:
                return True
            current = current.parent
        return False

    def _format(self, language: str, source: bytes, tree: Tree) -> Tuple[bytes, Tree]:
        capability = self.registry.get(language)
        text = source.decode("utf-8")
        formatted = capability.format(text)
        if formatted == text:
            return source, tree
        logger.debug(f"Formatter for {language} rewrote the speculative buffer")
        data = formatted.encode("utf-8")
        formatted_tree = parse(data, language)
        # positions move under formatting, so compare error counts only
        if len(error_nodes(formatted_tree.root_node)) > len(error_nodes(tree.root_node)):
            raise FormatFailure(language, "formatter output has syntax errors the edited buffer did not")
        return data, formatted_tree
