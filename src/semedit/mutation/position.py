"""
Position resolver: turn a chosen candidate into a byte span.
"""

from typing import Optional

from tree_sitter import Node

from semedit.document import DocumentSnapshot, check_boundary
from semedit.exceptions import NotFound
from semedit.schemas import CandidateNode, EditPosition, OperationKind

# Tokens that end a statement or list element and belong to the node before them
TRAILING_DELIMITERS = frozenset({";", ","})


def node_end_with_delimiters(node: Node) -> int:
    """End of a node extended over directly following `;` / `,` tokens."""
    end = node.end_byte
    sibling = node.next_sibling
    while sibling is not None and not sibling.is_named and sibling.type in TRAILING_DELIMITERS:
        end = sibling.end_byte
        sibling = sibling.next_sibling
    return end


def place(
    candidate: CandidateNode,
    operation_kind: OperationKind,
    snapshot: DocumentSnapshot,
    end_pattern: Optional[str] = None,
) -> EditPosition:
    """
    Compute the span an operation affects.

    Args:
        candidate: Target chosen by the disambiguator
        operation_kind: What to do at the target
        snapshot: Snapshot the candidate was resolved against
        end_pattern: Closing text for replace_range with an anchor selector

    Raises:
        StaleTarget: If the candidate belongs to another revision
        InvalidBoundary: If an endpoint splits a code point or leaves the buffer
        NotFound: If `end_pattern` does not occur after the anchor
    """
    node = snapshot.node_at(candidate.arena_index, candidate.revision)
    kind = OperationKind(operation_kind)

    if kind is OperationKind.INSERT_BEFORE:
        start = end = candidate.match_start
    elif kind is OperationKind.INSERT_AFTER:
        start = end = candidate.match_end
    elif kind is OperationKind.INSERT_AFTER_NODE:
        start = end = node_end_with_delimiters(node)
    elif kind is OperationKind.REPLACE_EXACT:
        start, end = candidate.match_start, candidate.match_end
    elif kind is OperationKind.REPLACE_NODE:
        start, end = node.start_byte, node.end_byte
    elif end_pattern is not None:
        start = candidate.match_start
        closing = end_pattern.encode("utf-8")
        found = snapshot.source.find(closing, candidate.match_end)
        if found == -1:
            raise NotFound(
                f"End pattern {end_pattern!r} not found after line {candidate.start_line}",
                selector={"end": end_pattern},
            )
        end = found + len(closing)
    else:
        start, end = node.start_byte, node.end_byte

    check_boundary(snapshot.source, start)
    check_boundary(snapshot.source, end)
    return EditPosition(start_byte=start, end_byte=end, mode=kind)
