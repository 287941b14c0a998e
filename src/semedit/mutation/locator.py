"""
TargetLocator: resolve selectors to candidate nodes.

Every strategy is deterministic: node selectors walk named nodes in
pre-order, queries follow the query engine's match order, anchors follow
text order. Running a selector twice against one snapshot yields the same
list.
"""

from typing import List, Optional

from tree_sitter import Node, Query, QueryCursor, QueryError

from semedit.document import DocumentSnapshot, check_boundary
from semedit.exceptions import InvalidSelector, NotFound
from semedit.logging_config import logger
from semedit.parser import ancestor_kinds, get_language, node_name
from semedit.schemas import ByAnchor, ByKind, ByName, ByPosition, ByQuery, CandidateNode, Selector

from .disambiguator import suggest

# Kinds that may declare a name without a `name` field in their grammar
DECLARATION_HINTS = ("definition", "declaration", "declarator", "item", "signature", "specifier")


class TargetLocator:
    """
    Map selectors to ordered candidate lists.

    Ambiguity is not an error here; only an empty result is.
    """

    def resolve(self, snapshot: DocumentSnapshot, selector: Selector) -> List[CandidateNode]:
        """
        Resolve a selector against a snapshot.

        Raises:
            NotFound: If nothing matches (carries suggestions)
            InvalidSelector: If a query fails to compile
            InvalidBoundary: If a position lies outside the buffer or inside a code point
        """
        if isinstance(selector, ByName):
            candidates = self._by_name(snapshot, selector)
        elif isinstance(selector, ByKind):
            candidates = self._by_kind(snapshot, selector)
        elif isinstance(selector, ByQuery):
            candidates = self._by_query(snapshot, selector)
        elif isinstance(selector, ByPosition):
            candidates = self._by_position(snapshot, selector)
        elif isinstance(selector, ByAnchor):
            candidates = self._by_anchor(snapshot, selector)
        else:
            raise InvalidSelector(f"Unknown selector type: {type(selector).__name__}")

        logger.debug(f"Selector {selector.describe()} -> {len(candidates)} candidate(s) at revision {snapshot.revision}")
        if not candidates:
            raise NotFound(
                f"No target matches {selector.describe()} in {snapshot.document_id}",
                suggestions=suggest(snapshot, selector),
                selector=selector.model_dump(),
            )
        return candidates

    def _candidate(
        self,
        snapshot: DocumentSnapshot,
        node: Node,
        match_start: Optional[int] = None,
        match_end: Optional[int] = None,
        name: Optional[str] = None,
    ) -> CandidateNode:
        while not node.is_named and node.parent is not None:
            node = node.parent
        if match_start is None:
            match_start, match_end = node.start_byte, node.end_byte
        return CandidateNode(
            kind=node.type,
            start_byte=node.start_byte,
            end_byte=node.end_byte,
            match_start=match_start,
            match_end=match_end,
            start_line=snapshot.line_of(match_start),
            ancestors=ancestor_kinds(node),
            arena_index=snapshot.arena_index(node),
            revision=snapshot.revision,
            name=name,
        )

    def _declared_name(self, node: Node, source: bytes) -> Optional[str]:
        if node.child_by_field_name("name") is None and not any(h in node.type for h in DECLARATION_HINTS):
            return None
        return node_name(node, source)

    def _by_name(self, snapshot: DocumentSnapshot, selector: ByName) -> List[CandidateNode]:
        candidates = []
        for node in snapshot.named_nodes:
            if selector.kind and node.type != selector.kind:
                continue
            name = self._declared_name(node, snapshot.source)
            if name == selector.name:
                candidates.append(self._candidate(snapshot, node, name=name))
        return candidates

    def _by_kind(self, snapshot: DocumentSnapshot, selector: ByKind) -> List[CandidateNode]:
        return [
            self._candidate(snapshot, node, name=node_name(node, snapshot.source))
            for node in snapshot.named_nodes
            if node.type == selector.kind
        ]

    def _by_query(self, snapshot: DocumentSnapshot, selector: ByQuery) -> List[CandidateNode]:
        try:
            query = Query(get_language(snapshot.language), selector.query)
        except QueryError as e:
            raise InvalidSelector(f"Invalid tree-sitter query: {e}", problems=[str(e)]) from e

        capture_names = [query.capture_name(i) for i in range(query.capture_count)]
        if not capture_names:
            raise InvalidSelector("Query has no captures; add an @name capture to mark the target")
        if selector.capture is not None and selector.capture not in capture_names:
            raise InvalidSelector(
                f"Capture @{selector.capture} is not defined in the query",
                problems=[f"available captures: {', '.join('@' + n for n in capture_names)}"],
            )

        wanted = [selector.capture] if selector.capture else capture_names
        candidates = []
        seen = set()
        for _, captures in QueryCursor(query).matches(snapshot.root):
            # capture index order within a match
            nodes = [node for name in wanted for node in captures.get(name, [])]
            for node in nodes:
                key = (node.start_byte, node.end_byte, node.type)
                if key in seen:
                    continue
                seen.add(key)
                candidates.append(
                    self._candidate(snapshot, node, node.start_byte, node.end_byte,
                                    name=node_name(node, snapshot.source))
                )
        return candidates

    def _by_position(self, snapshot: DocumentSnapshot, selector: ByPosition) -> List[CandidateNode]:
        if selector.byte_offset is not None:
            offset = selector.byte_offset
        else:
            offset = snapshot.offset_of(selector.line, selector.column or 1)
        check_boundary(snapshot.source, offset)
        node = snapshot.root.named_descendant_for_byte_range(offset, offset)
        if node is None:
            return []
        return [self._candidate(snapshot, node, name=node_name(node, snapshot.source))]

    def _by_anchor(self, snapshot: DocumentSnapshot, selector: ByAnchor) -> List[CandidateNode]:
        pattern = selector.pattern.encode("utf-8")
        if not pattern:
            return []

        spans = []
        index = snapshot.source.find(pattern)
        while index != -1:
            spans.append((index, index + len(pattern)))
            index = snapshot.source.find(pattern, index + len(pattern))

        if selector.occurrence is not None:
            if selector.occurrence >= len(spans):
                return []
            spans = [spans[selector.occurrence]]

        candidates = []
        for start, end in spans:
            node = snapshot.root.named_descendant_for_byte_range(start, end)
            if node is None:
                node = snapshot.root
            candidates.append(self._candidate(snapshot, node, start, end))
        return candidates
