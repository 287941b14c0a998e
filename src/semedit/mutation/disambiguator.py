"""
Narrow candidate lists to a single target, with suggestions on misses.
"""

from difflib import get_close_matches
from typing import List, Optional, Set

from semedit.config import get_config_value
from semedit.document import DocumentSnapshot
from semedit.exceptions import Ambiguous, NotFound
from semedit.logging_config import logger
from semedit.parser import iter_named, node_text
from semedit.schemas import ByAnchor, ByKind, ByName, CandidateNode, Policy, Selector, summaries


def narrow(candidates: List[CandidateNode], policy: Policy, source: bytes = b"") -> CandidateNode:
    """
    Pick one candidate according to the policy.

    Args:
        candidates: Ordered candidates from the locator
        policy: Policy.unique() or Policy.select(n)
        source: Buffer the candidates came from, used for summaries

    Raises:
        NotFound: If there are no candidates or the index is out of range
        Ambiguous: If uniqueness is required and several candidates remain
    """
    if not candidates:
        raise NotFound("Selector matched no candidates")

    if policy.require_unique:
        if len(candidates) > 1:
            logger.debug(f"Ambiguous target: {len(candidates)} candidates under unique policy")
            raise Ambiguous(candidates, summaries(candidates, source))
        return candidates[0]

    index = policy.select_index
    if index >= len(candidates):
        raise NotFound(
            f"Candidate index {index} is out of range; selector matched {len(candidates)} "
            f"candidate{'s' if len(candidates) != 1 else ''}"
        )
    return candidates[index]


def _identifiers(snapshot: DocumentSnapshot) -> Set[str]:
    names = set()
    for node in iter_named(snapshot.root):
        if node.type.endswith("identifier"):
            names.add(node_text(node, snapshot.source))
    return names


def suggest(
    snapshot: DocumentSnapshot,
    selector: Selector,
    max_results: Optional[int] = None,
    cutoff: Optional[float] = None,
) -> List[str]:
    """
    Ranked near-misses for a selector that matched nothing.

    Names and anchors are compared with identifiers in the tree, kinds with
    the node kinds present. Other selectors get no suggestions.
    """
    if max_results is None:
        max_results = int(get_config_value("suggestions.max_results", 5))
    if cutoff is None:
        cutoff = float(get_config_value("suggestions.cutoff", 0.5))

    if isinstance(selector, ByName):
        wanted, vocabulary = selector.name, _identifiers(snapshot)
    elif isinstance(selector, ByKind):
        wanted, vocabulary = selector.kind, {node.type for node in iter_named(snapshot.root)}
    elif isinstance(selector, ByAnchor):
        wanted, vocabulary = selector.pattern, _identifiers(snapshot)
    else:
        return []

    if not vocabulary:
        return []
    return get_close_matches(wanted, sorted(vocabulary), n=max_results, cutoff=cutoff)
