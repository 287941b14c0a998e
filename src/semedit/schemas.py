from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from semedit.exceptions import ContextViolation, InvalidSelector, SyntaxViolation


class OperationKind(str, Enum):
    """
    Kind of mutation applied at a resolved target.

    Insert kinds produce an empty span; replace kinds produce a span that is
    overwritten by the replacement text.
    """
    INSERT_BEFORE = "insert_before"
    INSERT_AFTER = "insert_after"
    INSERT_AFTER_NODE = "insert_after_node"
    REPLACE_RANGE = "replace_range"
    REPLACE_EXACT = "replace_exact"
    REPLACE_NODE = "replace_node"

    @property
    def is_insert(self) -> bool:
        return self in (
            OperationKind.INSERT_BEFORE,
            OperationKind.INSERT_AFTER,
            OperationKind.INSERT_AFTER_NODE,
        )


# ============================================================================
# SELECTORS
# ============================================================================

class ByName(BaseModel):
    """Target nodes whose name (identifier) equals `name`."""
    model_config = ConfigDict(frozen=True)

    by: Literal["name"] = "name"
    name: str = Field(min_length=1)
    kind: Optional[str] = None  # Optional node-kind filter, e.g. "function_item"

    def describe(self) -> str:
        return f"name={self.name!r}" + (f" kind={self.kind}" if self.kind else "")


class ByKind(BaseModel):
    """Target every named node of a given tree-sitter kind."""
    model_config = ConfigDict(frozen=True)

    by: Literal["kind"] = "kind"
    kind: str = Field(min_length=1)

    def describe(self) -> str:
        return f"kind={self.kind}"


class ByQuery(BaseModel):
    """Target the captures of a tree-sitter structural query."""
    model_config = ConfigDict(frozen=True)

    by: Literal["query"] = "query"
    query: str = Field(min_length=1)
    capture: Optional[str] = None  # Restrict to one capture name

    def describe(self) -> str:
        return f"query={self.query!r}"


class ByPosition(BaseModel):
    """
    Target the smallest named node enclosing a position.

    Either `byte_offset` (0-based) or `line` (1-based) with an optional
    `column` (1-based, counted in code points) must be given.
    """
    model_config = ConfigDict(frozen=True)

    by: Literal["position"] = "position"
    line: Optional[int] = Field(default=None, ge=1)
    column: Optional[int] = Field(default=None, ge=1)
    byte_offset: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_form(self):
        if self.byte_offset is None and self.line is None:
            raise ValueError("position selector needs either line/column or byte_offset")
        if self.byte_offset is not None and (self.line is not None or self.column is not None):
            raise ValueError("position selector takes line/column or byte_offset, not both")
        return self

    def describe(self) -> str:
        if self.byte_offset is not None:
            return f"byte_offset={self.byte_offset}"
        return f"line={self.line} column={self.column or 1}"


class ByAnchor(BaseModel):
    """
    Target literal text in the buffer.

    `occurrence` picks one match (0-based); without it every match becomes a
    candidate. `end` is the closing text for replace_range.
    """
    model_config = ConfigDict(frozen=True)

    by: Literal["anchor"] = "anchor"
    pattern: str
    occurrence: Optional[int] = Field(default=None, ge=0)
    end: Optional[str] = None

    def describe(self) -> str:
        text = f"anchor={self.pattern!r}"
        if self.occurrence is not None:
            text += f" occurrence={self.occurrence}"
        if self.end is not None:
            text += f" end={self.end!r}"
        return text


Selector = Annotated[
    Union[ByName, ByKind, ByQuery, ByPosition, ByAnchor],
    Field(discriminator="by"),
]

_SELECTOR_ADAPTER = TypeAdapter(Selector)
_SELECTOR_TYPES = (ByName, ByKind, ByQuery, ByPosition, ByAnchor)


def parse_selector(data: Any) -> "Selector":
    """
    Build a selector from its wire form (`{"by": "name", ...}`).

    Raises:
        InvalidSelector: If the payload matches none of the five variants
    """
    if isinstance(data, _SELECTOR_TYPES):
        return data
    try:
        return _SELECTOR_ADAPTER.validate_python(data)
    except ValidationError as e:
        problems = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise InvalidSelector("Malformed selector", problems=problems) from e


def check_selector(selector: "Selector", operation: OperationKind) -> None:
    """
    Validate that a selector is well formed for an operation kind.

    Raises:
        InvalidSelector: Listing every problem found
    """
    problems = []
    if isinstance(selector, ByAnchor):
        if not selector.pattern.strip():
            problems.append("`pattern` cannot be empty")
        if selector.end is not None and operation is not OperationKind.REPLACE_RANGE:
            problems.append("`end` is only relevant for replace_range. Did you intend to `replace_range`?")
        if selector.end is None and operation is OperationKind.REPLACE_RANGE:
            problems.append("`end` is required for replace_range with an anchor selector")
        if selector.end is not None and not selector.end.strip():
            problems.append("`end` cannot be empty")
    if problems:
        raise InvalidSelector("; ".join(problems), problems=problems)


class Policy(BaseModel):
    """Disambiguation policy: require a unique candidate or select by index."""
    model_config = ConfigDict(frozen=True)

    select_index: Optional[int] = Field(default=None, ge=0)

    @classmethod
    def unique(cls) -> "Policy":
        return cls()

    @classmethod
    def select(cls, index: int) -> "Policy":
        return cls(select_index=index)

    @property
    def require_unique(self) -> bool:
        return self.select_index is None


# ============================================================================
# TARGETS AND EDITS
# ============================================================================

class CandidateNode(BaseModel):
    """
    A parse-tree node proposed as an edit target.

    Holds no reference to the tree itself: `arena_index` is the node's
    pre-order position among named nodes of the tree at `revision`.
    """
    model_config = ConfigDict(frozen=True)

    kind: str
    start_byte: int
    end_byte: int
    match_start: int
    match_end: int
    start_line: int  # 1-indexed
    ancestors: Tuple[str, ...] = ()  # innermost first
    arena_index: int
    revision: int
    name: Optional[str] = None
    score: Optional[float] = None

    def summary(self, source: bytes) -> Dict[str, Any]:
        """Short machine-usable description for error payloads."""
        text = source[self.start_byte:self.end_byte].decode("utf-8", errors="replace")
        first_line = text.split("\n", 1)[0]
        if len(first_line) > 80:
            first_line = first_line[:77] + "..."
        return {
            "kind": self.kind,
            "range": [self.start_byte, self.end_byte],
            "line": self.start_line,
            "name": self.name,
            "preview": first_line,
        }


class EditPosition(BaseModel):
    """Resolved byte span plus insertion mode."""
    model_config = ConfigDict(frozen=True)

    start_byte: int = Field(ge=0)
    end_byte: int = Field(ge=0)
    mode: OperationKind

    @model_validator(mode="after")
    def _check_span(self):
        if self.end_byte < self.start_byte:
            raise ValueError("end_byte precedes start_byte")
        if self.mode.is_insert and self.end_byte != self.start_byte:
            raise ValueError(f"{self.mode.value} requires an empty span")
        return self


class Edit(BaseModel):
    """An immutable proposed mutation."""
    model_config = ConfigDict(frozen=True)

    position: EditPosition
    replacement: str
    language: str
    captured_revision: int

    @property
    def replacement_bytes(self) -> bytes:
        return self.replacement.encode("utf-8")

    @property
    def edited_range(self) -> Tuple[int, int]:
        """Span of the replacement in post-edit coordinates."""
        start = self.position.start_byte
        return start, start + len(self.replacement_bytes)

    @property
    def delta(self) -> int:
        return len(self.replacement_bytes) - (self.position.end_byte - self.position.start_byte)

    def apply(self, source: bytes) -> bytes:
        """Return a new buffer with this edit applied."""
        return source[:self.position.start_byte] + self.replacement_bytes + source[self.position.end_byte:]


class ValidationOutcome(BaseModel):
    """Result of one validation layer."""
    model_config = ConfigDict(frozen=True)

    status: Literal["valid", "context_violation", "syntax_violation"] = "valid"
    reason: Optional[str] = None
    suggestion: Optional[str] = None
    rule: Optional[str] = None
    node_kind: Optional[str] = None
    byte_range: Optional[Tuple[int, int]] = None
    line: Optional[int] = None
    excerpt: Optional[str] = None

    @classmethod
    def valid(cls) -> "ValidationOutcome":
        return cls()

    @classmethod
    def context_violation(
        cls,
        reason: str,
        suggestion: str,
        rule: Optional[str] = None,
        byte_range: Optional[Tuple[int, int]] = None,
    ) -> "ValidationOutcome":
        return cls(
            status="context_violation",
            reason=reason,
            suggestion=suggestion,
            rule=rule,
            byte_range=byte_range,
        )

    @classmethod
    def syntax_violation(
        cls,
        node_kind: str,
        byte_range: Tuple[int, int],
        line: Optional[int] = None,
        excerpt: Optional[str] = None,
    ) -> "ValidationOutcome":
        return cls(
            status="syntax_violation",
            node_kind=node_kind,
            byte_range=byte_range,
            line=line,
            excerpt=excerpt,
        )

    @property
    def is_valid(self) -> bool:
        return self.status == "valid"

    def raise_for_status(self) -> None:
        """Raise the matching exception for a violation; no-op when valid."""
        if self.status == "context_violation":
            raise ContextViolation(
                self.reason or "structural rule violated",
                self.suggestion or "Consider placing this construct in an appropriate context",
                rule=self.rule,
                byte_range=self.byte_range,
            )
        if self.status == "syntax_violation":
            raise SyntaxViolation(
                self.node_kind or "ERROR",
                self.byte_range or (0, 0),
                line=self.line,
                excerpt=self.excerpt,
            )


# ============================================================================
# DIFFS AND RESULTS
# ============================================================================

class DiffMetrics(BaseModel):
    """Change-size metrics for a diff."""
    lines_added: int = 0
    lines_removed: int = 0
    lines_total: int = 0
    bytes_delta: int = 0
    changed_fraction: Optional[int] = None  # percent, only for large replacements
    tip: Optional[str] = None


class DiffResult(BaseModel):
    """Diff text plus metrics."""
    diff: str
    metrics: DiffMetrics
    truncated: bool = False


class OperationStatus(str, Enum):
    STAGED = "staged"
    RETARGETED = "retargeted"
    COMMITTED = "committed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationStatus.COMMITTED, OperationStatus.ABORTED)


class StageResult(BaseModel):
    """Response for stage and retarget."""
    operation_id: str
    session_id: str
    document_id: str
    status: OperationStatus
    revision: int
    position: EditPosition
    preview_diff: DiffResult


class CommitResult(BaseModel):
    """Response for commit."""
    operation_id: str
    document_id: str
    written: bool
    revision: int
    final_diff: DiffResult


class CacheStats(BaseModel):
    """Document cache statistics."""
    hits: int = 0
    misses: int = 0
    total_requests: int = 0
    evictions: int = 0
    size: int = 0
    capacity: int = 0

    @property
    def hit_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.hits / self.total_requests

    def as_dict(self) -> Dict[str, Any]:
        data = self.model_dump()
        data["hit_rate"] = round(self.hit_rate, 4)
        return data


def summaries(candidates: List[CandidateNode], source: bytes) -> List[Dict[str, Any]]:
    """Summaries for a candidate list, indexed for `Policy.select`."""
    result = []
    for index, candidate in enumerate(candidates):
        entry = candidate.summary(source)
        entry["index"] = index
        result.append(entry)
    return result


def parse_operation_kind(value: Union[OperationKind, str]) -> OperationKind:
    """
    Raises:
        InvalidSelector: If the value names no operation kind
    """
    try:
        return OperationKind(value)
    except ValueError as e:
        valid = ", ".join(kind.value for kind in OperationKind)
        raise InvalidSelector(f"Unknown operation kind {value!r}; expected one of: {valid}") from e
