"""
Unit tests for selectors, policies and edit value types.
"""

import pytest
from pydantic import ValidationError

from semedit.exceptions import ContextViolation, InvalidSelector, SyntaxViolation
from semedit.schemas import (
    ByAnchor,
    ByKind,
    ByName,
    ByPosition,
    ByQuery,
    Edit,
    EditPosition,
    OperationKind,
    Policy,
    ValidationOutcome,
    check_selector,
    parse_operation_kind,
    parse_selector,
)


class TestParseSelector:
    """Wire form -> selector variants."""

    @pytest.mark.parametrize("payload,expected", [
        ({"by": "name", "name": "parse"}, ByName),
        ({"by": "kind", "kind": "struct_item"}, ByKind),
        ({"by": "query", "query": "(identifier) @id"}, ByQuery),
        ({"by": "position", "line": 3, "column": 2}, ByPosition),
        ({"by": "position", "byte_offset": 10}, ByPosition),
        ({"by": "anchor", "pattern": "fn main"}, ByAnchor),
    ])
    def test_variants(self, payload, expected):
        assert isinstance(parse_selector(payload), expected)

    def test_passes_selector_instances_through(self):
        selector = ByName(name="x")
        assert parse_selector(selector) is selector

    def test_unknown_variant(self):
        with pytest.raises(InvalidSelector) as exc_info:
            parse_selector({"by": "regex", "pattern": ".*"})
        assert exc_info.value.problems

    def test_position_needs_a_form(self):
        with pytest.raises(InvalidSelector):
            parse_selector({"by": "position"})

    def test_position_rejects_both_forms(self):
        with pytest.raises(InvalidSelector):
            parse_selector({"by": "position", "line": 1, "byte_offset": 0})

    def test_selectors_are_immutable(self):
        selector = ByName(name="parse")
        with pytest.raises(ValidationError):
            selector.name = "other"


class TestCheckSelector:
    """Well-formedness for a given operation kind."""

    def test_end_only_for_replace_range(self):
        selector = ByAnchor(pattern="a", end="b")
        with pytest.raises(InvalidSelector) as exc_info:
            check_selector(selector, OperationKind.REPLACE_EXACT)
        assert "replace_range" in exc_info.value.message

    def test_replace_range_anchor_needs_end(self):
        with pytest.raises(InvalidSelector):
            check_selector(ByAnchor(pattern="a"), OperationKind.REPLACE_RANGE)

    def test_blank_anchor(self):
        with pytest.raises(InvalidSelector):
            check_selector(ByAnchor(pattern="   "), OperationKind.INSERT_AFTER)

    def test_valid_range_selector(self):
        check_selector(ByAnchor(pattern="a", end="b"), OperationKind.REPLACE_RANGE)

    def test_node_selectors_always_pass(self):
        check_selector(ByName(name="x"), OperationKind.REPLACE_RANGE)


class TestOperationKind:

    def test_insert_kinds(self):
        assert OperationKind.INSERT_BEFORE.is_insert
        assert OperationKind.INSERT_AFTER_NODE.is_insert
        assert not OperationKind.REPLACE_NODE.is_insert

    def test_parse_unknown(self):
        with pytest.raises(InvalidSelector):
            parse_operation_kind("delete_everything")

    def test_parse_known(self):
        assert parse_operation_kind("replace_exact") is OperationKind.REPLACE_EXACT


class TestPolicy:

    def test_unique(self):
        assert Policy.unique().require_unique

    def test_select(self):
        policy = Policy.select(1)
        assert not policy.require_unique
        assert policy.select_index == 1

    def test_negative_index_rejected(self):
        with pytest.raises(ValidationError):
            Policy.select(-1)


class TestEdit:
    """Edit and EditPosition value semantics."""

    def test_insert_requires_empty_span(self):
        with pytest.raises(ValidationError):
            EditPosition(start_byte=1, end_byte=2, mode=OperationKind.INSERT_AFTER)

    def test_reversed_span_rejected(self):
        with pytest.raises(ValidationError):
            EditPosition(start_byte=5, end_byte=2, mode=OperationKind.REPLACE_EXACT)

    def test_apply_and_delta(self):
        edit = Edit(
            position=EditPosition(start_byte=4, end_byte=5, mode=OperationKind.REPLACE_EXACT),
            replacement="€uro",
            language="python",
            captured_revision=0,
        )
        assert edit.apply(b"x = 1\n") == "x = €uro\n".encode("utf-8")
        assert edit.delta == len("€uro".encode("utf-8")) - 1
        assert edit.edited_range == (4, 4 + len("€uro".encode("utf-8")))


class TestValidationOutcome:

    def test_valid_does_not_raise(self):
        ValidationOutcome.valid().raise_for_status()

    def test_context_violation_raises(self):
        outcome = ValidationOutcome.context_violation("bad place", "move it", rule="r")
        with pytest.raises(ContextViolation) as exc_info:
            outcome.raise_for_status()
        payload = exc_info.value.to_dict()
        assert payload["error_type"] == "ContextViolation"
        assert payload["reason"] == "bad place"
        assert payload["suggestion"] == "move it"

    def test_syntax_violation_raises(self):
        outcome = ValidationOutcome.syntax_violation("ERROR", (3, 7), line=1)
        with pytest.raises(SyntaxViolation) as exc_info:
            outcome.raise_for_status()
        assert exc_info.value.to_dict()["range"] == [3, 7]
