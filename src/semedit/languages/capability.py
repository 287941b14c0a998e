"""
Language capability records and the registry that maps tags to them.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, FrozenSet, Iterable, Iterator, List, Optional, Set, Tuple

from tree_sitter import Node, Tree

from semedit.exceptions import UnsupportedLanguage
from semedit.schemas import ValidationOutcome


@dataclass(frozen=True)
class ContextProbe:
    """
    Everything a context rule may look at for one speculative edit.

    Attributes:
        tree: Parse tree of the speculative (post-edit) buffer
        edited_range: Span of the replacement in post-edit byte coordinates
        source: The speculative buffer
        enclosing_kinds: Ancestor kinds of the edit span in the pre-edit tree, innermost first
        snippet_kinds: Top-level node kinds of the replacement parsed on its own
    """
    tree: Tree
    edited_range: Tuple[int, int]
    source: bytes
    enclosing_kinds: Tuple[str, ...] = ()
    snippet_kinds: Tuple[str, ...] = ()

    @property
    def container(self) -> Optional[str]:
        return self.enclosing_kinds[0] if self.enclosing_kinds else None

    @property
    def container_parent(self) -> Optional[str]:
        return self.enclosing_kinds[1] if len(self.enclosing_kinds) > 1 else None

    def touches(self, node: Node) -> bool:
        """True if the node intersects the closed edited range."""
        start, end = self.edited_range
        return node.start_byte <= end and node.end_byte >= start

    def nodes_in_edit(self) -> Iterator[Node]:
        """Named nodes lying inside the edited range, pre-order."""
        start, end = self.edited_range
        stack = [self.tree.root_node]
        while stack:
            node = stack.pop()
            if not self.touches(node):
                continue
            if node.is_named and node.start_byte >= start and node.end_byte <= end:
                yield node
            stack.extend(reversed(node.children))


FormatFn = Callable[[str], str]
CheckFn = Callable[[ContextProbe], ValidationOutcome]


def no_format(text: str) -> str:
    return text


def no_context_rules(probe: ContextProbe) -> ValidationOutcome:
    return ValidationOutcome.valid()


@dataclass(frozen=True)
class LanguageCapability:
    """Formatter and context rules for one language tag."""
    name: str
    extensions: FrozenSet[str] = field(default_factory=frozenset)
    format: FormatFn = no_format
    check_context: CheckFn = no_context_rules

    def supported_extensions(self) -> Set[str]:
        return set(self.extensions)


DEFAULT_CAPABILITY = LanguageCapability(name="default")


class LanguageRegistry:
    """Maps language tags and file extensions to capability records."""

    def __init__(self, capabilities: Iterable[LanguageCapability] = ()):
        self._by_name: Dict[str, LanguageCapability] = {}
        self._by_extension: Dict[str, str] = {}
        for capability in capabilities:
            self.register(capability)

    def register(self, capability: LanguageCapability) -> None:
        self._by_name[capability.name] = capability
        for extension in capability.extensions:
            self._by_extension[extension.lower()] = capability.name

    def get(self, language: str) -> LanguageCapability:
        """Capability for a tag, or DEFAULT_CAPABILITY when none is registered."""
        return self._by_name.get(language, DEFAULT_CAPABILITY)

    def names(self) -> List[str]:
        return sorted(self._by_name)

    def detect(self, path: Path, hint: Optional[str] = None) -> str:
        """
        Language tag for a file; an explicit hint wins over the extension.

        Raises:
            UnsupportedLanguage: If the extension is unknown and no hint is given
        """
        if hint:
            return hint.lower()
        language = self._by_extension.get(path.suffix.lower())
        if language is None:
            raise UnsupportedLanguage(path.suffix or path.name)
        return language
