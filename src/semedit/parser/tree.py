"""
Helpers over tree-sitter nodes.

Traversals are iterative so deeply nested sources cannot hit the recursion
limit.
"""

from typing import Iterator, List, Optional, Tuple

from tree_sitter import Node


def iter_named(root: Node) -> Iterator[Node]:
    """Yield named nodes in deterministic pre-order."""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_named:
            yield node
        stack.extend(reversed(node.children))


def error_nodes(root: Node) -> List[Node]:
    """ERROR and MISSING nodes in pre-order. Subtrees without errors are skipped."""
    found = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            found.append(node)
        if node.has_error:
            stack.extend(reversed(node.children))
    return found


def ancestor_kinds(node: Node) -> Tuple[str, ...]:
    """Kinds of the node's ancestors, innermost first."""
    kinds = []
    parent = node.parent
    while parent is not None:
        kinds.append(parent.type)
        parent = parent.parent
    return tuple(kinds)


def node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def node_name(node: Node, source: bytes) -> Optional[str]:
    """
    The identifier a node declares.

    Uses the grammar's `name` field, falling back to the first named child
    whose kind ends in `identifier`.
    """
    name_node = node.child_by_field_name("name")
    if name_node is None:
        for child in node.named_children:
            if child.type.endswith("identifier"):
                name_node = child
                break
    if name_node is None:
        return None
    return node_text(name_node, source)


def line_excerpt(source: bytes, line: int, context: int = 3) -> str:
    """
    Lines around a 1-based line number, the line itself marked with `->`.
    """
    lines = source.decode("utf-8", errors="replace").split("\n")
    start = max(1, line - context)
    end = min(len(lines), line + context)
    width = len(str(end))
    out = []
    for number in range(start, end + 1):
        marker = "->" if number == line else "  "
        out.append(f"{marker} {number:>{width}} | {lines[number - 1]}")
    return "\n".join(out)
