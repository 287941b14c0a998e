"""
Integration tests for the staged-operation lifecycle.

stage -> (retarget)* -> commit | abort, against in-memory and on-disk
documents.
"""

import pytest

from semedit.exceptions import (
    AlreadyAborted,
    AlreadyCommitted,
    Ambiguous,
    ContextViolation,
    InvalidSelector,
    IoFailure,
    NotFound,
    OperationNotFound,
    StaleTarget,
    SyntaxViolation,
)
from semedit.parser import error_nodes, parse
from semedit.schemas import ByAnchor, ByName, ByPosition, OperationKind, OperationStatus, Policy

from tests.conftest import PYTHON_DUPLICATE_PARSE, PYTHON_GREETER, RUST_POINT

pytestmark = pytest.mark.integration


def integer_at(line: int) -> ByPosition:
    """Selector for the integer literal in `name = N` on a line."""
    return ByPosition(line=line, column=5)


class TestStageAndCommit:

    def test_stage_does_not_touch_document(self, workspace):
        document = workspace.open_text(PYTHON_GREETER, "python")
        staged = workspace.stage(document.document_id, ByAnchor(pattern="Hello"), "replace_exact", "Hi")

        assert staged.status is OperationStatus.STAGED
        assert staged.revision == 0
        assert "+    return \"Hi, \" + name" in staged.preview_diff.diff
        assert document.text == PYTHON_GREETER
        assert document.revision == 0

    def test_commit_bumps_revision_by_one(self, workspace):
        document = workspace.open_text(PYTHON_GREETER, "python")
        staged = workspace.stage(document.document_id, ByAnchor(pattern="Hello"), "replace_exact", "Hi")
        result = workspace.commit(staged.operation_id)

        assert result.revision == 1
        assert document.revision == 1
        assert 'return "Hi, " + name' in document.text
        assert result.written is False
        assert result.final_diff.metrics.lines_added == 1
        assert workspace.engine.get(staged.operation_id).status is OperationStatus.COMMITTED

    def test_commit_writes_file(self, workspace, open_file, temp_project):
        document = open_file("greeter.py")
        staged = workspace.stage(document.document_id, ByName(name="farewell"), "insert_before", "# leaving\n")
        result = workspace.commit(staged.operation_id)

        assert result.written is True
        on_disk = (temp_project / "greeter.py").read_text()
        assert "# leaving\ndef farewell(name):" in on_disk
        assert on_disk == document.text

    @pytest.mark.parametrize("kind, replacement, expected", [
        ("insert_before", "# a\n", "# a\nx = 1\n"),
        ("insert_after", "  # b", "x = 1  # b\n"),
        ("replace_exact", "x = 2", "x = 2\n"),
        ("replace_node", "y = 3", "y = 3\n"),
    ])
    def test_operation_kinds(self, workspace, kind, replacement, expected):
        document = workspace.open_text("x = 1\n", "python")
        staged = workspace.stage(document.document_id, ByAnchor(pattern="x = 1"), kind, replacement)
        workspace.commit(staged.operation_id)
        assert document.text == expected

    def test_replace_range_with_anchor_end(self, workspace):
        source = "def f():\n    a = 1\n    b = 2\n    c = 3\n    return a\n"
        document = workspace.open_text(source, "python")
        staged = workspace.stage(
            document.document_id,
            {"by": "anchor", "pattern": "a = 1", "end": "b = 2"},
            "replace_range",
            "a = 10",
        )
        workspace.commit(staged.operation_id)
        assert document.text == "def f():\n    a = 10\n    c = 3\n    return a\n"

    @pytest.mark.parametrize("source, language, selector, kind, replacement", [
        (PYTHON_GREETER, "python", ByName(name="farewell"), "replace_node", "def farewell(name):\n    return name"),
        (PYTHON_DUPLICATE_PARSE, "python", ByName(name="helper"), "insert_after_node", "\n\n\ndef other():\n    pass"),
        (RUST_POINT, "rust", ByName(name="y"), "insert_after", ", z: i64"),
    ])
    def test_committed_buffer_has_no_new_errors(self, workspace, source, language, selector, kind, replacement):
        document = workspace.open_text(source, language)
        staged = workspace.stage(document.document_id, selector, kind, replacement)
        workspace.commit(staged.operation_id)

        tree = parse(document.source, document.language)
        assert list(error_nodes(tree.root_node)) == []
        assert document.snapshot().tree.root_node.has_error is False

    def test_insert_after_node_rust_field(self, workspace):
        document = workspace.open_text(RUST_POINT, "rust")
        staged = workspace.stage(document.document_id, ByName(name="x"), "insert_after_node", " z: i32,")
        workspace.commit(staged.operation_id)
        assert document.text == "struct Point { x: i32, z: i32, y: i32 }\n"


class TestRejectedEdits:

    def test_function_in_struct_fields(self, workspace, open_file, temp_project):
        document = open_file("point.rs")
        with pytest.raises(ContextViolation) as exc_info:
            workspace.stage(
                document.document_id,
                ByName(name="x"),
                "insert_after_node",
                " fn area(&self) -> i32 { self.x * self.y }",
            )

        payload = exc_info.value.to_dict()
        assert payload["error_type"] == "ContextViolation"
        assert payload["rule"] == "function.in.struct.fields"
        assert "impl" in payload["suggestion"]
        assert workspace.list_operations() == []
        assert (temp_project / "point.rs").read_text() == RUST_POINT

    def test_syntax_violation_stages_nothing(self, workspace):
        document = workspace.open_text(PYTHON_GREETER, "python")
        with pytest.raises(SyntaxViolation) as exc_info:
            workspace.stage(document.document_id, ByName(name="greet"), "replace_node", "def greet(name:\n    pass")

        assert exc_info.value.line is not None
        assert workspace.list_operations() == []
        assert not workspace.cache.is_pinned(document.document_id)
        assert document.revision == 0

    def test_ambiguous_then_select(self, workspace, open_file, temp_project):
        document = open_file("parsers.py")
        replacement = "def parse(data):\n    return data.strip()"

        with pytest.raises(Ambiguous) as exc_info:
            workspace.stage(document.document_id, ByName(name="parse"), "replace_node", replacement)
        candidates = exc_info.value.to_dict()["candidates"]
        assert [c["line"] for c in candidates] == [1, 9]
        assert [c["index"] for c in candidates] == [0, 1]

        staged = workspace.stage(
            document.document_id, ByName(name="parse"), "replace_node", replacement, policy=Policy.select(1)
        )
        workspace.commit(staged.operation_id)

        on_disk = (temp_project / "parsers.py").read_text()
        assert on_disk.startswith("def parse(text):\n    return text.split()")
        assert on_disk.endswith("def parse(data):\n    return data.strip()\n")

    def test_select_index_out_of_range(self, workspace):
        document = workspace.open_text(PYTHON_DUPLICATE_PARSE, "python")
        with pytest.raises(NotFound, match="out of range"):
            workspace.stage(document.document_id, ByName(name="parse"), "replace_node", "pass",
                            policy=Policy.select(5))

    def test_not_found_carries_suggestions(self, workspace):
        document = workspace.open_text(PYTHON_GREETER, "python")
        with pytest.raises(NotFound) as exc_info:
            workspace.stage(document.document_id, ByName(name="gret"), "replace_node", "pass")
        assert "greet" in exc_info.value.suggestions

    def test_end_only_for_replace_range(self, workspace):
        document = workspace.open_text("x = 1\n", "python")
        with pytest.raises(InvalidSelector, match="replace_range"):
            workspace.stage(document.document_id, ByAnchor(pattern="x", end="1"), "replace_exact", "y")

    def test_unknown_operation_kind(self, workspace):
        document = workspace.open_text("x = 1\n", "python")
        with pytest.raises(InvalidSelector, match="Unknown operation kind"):
            workspace.stage(document.document_id, ByAnchor(pattern="x"), "delete", "")


class TestConcurrency:

    def test_competing_commit_is_stale_until_retargeted(self, workspace):
        document = workspace.open_text("a = 1\nb = 2\n", "python")
        first = workspace.stage(document.document_id, ByAnchor(pattern="a = 1"), "replace_exact", "a = 10")
        second = workspace.stage(document.document_id, ByAnchor(pattern="b = 2"), "replace_exact", "b = 20")

        workspace.commit(first.operation_id)
        with pytest.raises(StaleTarget) as exc_info:
            workspace.commit(second.operation_id)
        assert exc_info.value.captured_revision == 0
        assert exc_info.value.current_revision == 1

        retargeted = workspace.retarget(second.operation_id, ByAnchor(pattern="b = 2"))
        assert retargeted.status is OperationStatus.RETARGETED
        assert retargeted.revision == 1

        result = workspace.commit(second.operation_id)
        assert result.revision == 2
        assert document.text == "a = 10\nb = 20\n"

    def test_two_clients_at_revision_five(self, workspace):
        document = workspace.open_text("a = 1\nb = 2\n", "python")
        for value in range(5):
            staged = workspace.stage(document.document_id, integer_at(1), "replace_node", str(value),
                                     session_id="setup")
            workspace.commit(staged.operation_id)
        assert document.revision == 5

        client_a = workspace.stage(document.document_id, integer_at(1), "replace_node", "10", session_id="a")
        client_b = workspace.stage(document.document_id, integer_at(2), "replace_node", "20", session_id="b")
        assert client_a.revision == client_b.revision == 5

        assert workspace.commit(client_a.operation_id).revision == 6
        with pytest.raises(StaleTarget):
            workspace.commit(client_b.operation_id)

        workspace.retarget(client_b.operation_id, integer_at(2))
        assert workspace.commit(client_b.operation_id).revision == 7
        assert document.text == "a = 10\nb = 20\n"

    def test_failed_retarget_keeps_previous_edit(self, workspace):
        document = workspace.open_text("a = 1\nb = 2\n", "python")
        staged = workspace.stage(document.document_id, ByAnchor(pattern="a = 1"), "replace_exact", "a = 10")
        operation = workspace.engine.get(staged.operation_id)
        before = (operation.selector, operation.edit, operation.diff, operation.status)

        with pytest.raises(NotFound):
            workspace.retarget(staged.operation_id, ByAnchor(pattern="zzz"))

        assert (operation.selector, operation.edit, operation.diff, operation.status) == before
        workspace.commit(staged.operation_id)
        assert document.text == "a = 10\nb = 2\n"

    def test_retarget_can_change_operation_kind(self, workspace):
        document = workspace.open_text("a = 1\n", "python")
        staged = workspace.stage(document.document_id, ByAnchor(pattern="a = 1"), "replace_exact", "# note\n")
        workspace.retarget(staged.operation_id, ByAnchor(pattern="a = 1"), operation_kind="insert_before")
        workspace.commit(staged.operation_id)
        assert document.text == "# note\na = 1\n"

    def test_external_modification_is_stale(self, workspace, open_file, temp_project):
        document = open_file("greeter.py")
        staged = workspace.stage(document.document_id, ByAnchor(pattern="Hello"), "replace_exact", "Hi")

        path = temp_project / "greeter.py"
        path.write_text(PYTHON_GREETER.replace("Bye", "Ciao"))

        with pytest.raises(StaleTarget, match="modified externally"):
            workspace.commit(staged.operation_id)
        assert "Ciao" in path.read_text()
        assert document.revision == 0

    def test_reopen_after_external_change_reloads(self, workspace, open_file, temp_project):
        document = open_file("greeter.py")
        staged = workspace.stage(document.document_id, ByAnchor(pattern="Hello"), "replace_exact", "Hi")
        (temp_project / "greeter.py").write_text(PYTHON_GREETER.replace("Bye", "Ciao"))

        reopened = open_file("greeter.py")
        assert reopened is document
        assert document.revision == 1
        assert "Ciao" in document.text

        with pytest.raises(StaleTarget):
            workspace.commit(staged.operation_id)
        workspace.retarget(staged.operation_id, ByAnchor(pattern="Hello"))
        workspace.commit(staged.operation_id)
        assert (temp_project / "greeter.py").read_text() == PYTHON_GREETER.replace("Bye", "Ciao").replace("Hello", "Hi")

    def test_io_failure_leaves_document_untouched(self, workspace, open_file, temp_project, monkeypatch):
        document = open_file("greeter.py")
        staged = workspace.stage(document.document_id, ByAnchor(pattern="Hello"), "replace_exact", "Hi")

        def failing_write(path, data):
            raise IoFailure(str(path), "disk full")

        with monkeypatch.context() as patch:
            patch.setattr("semedit.mutation.engine.atomic_write", failing_write)
            with pytest.raises(IoFailure, match="disk full"):
                workspace.commit(staged.operation_id)

        assert document.revision == 0
        assert document.text == PYTHON_GREETER
        assert (temp_project / "greeter.py").read_text() == PYTHON_GREETER
        assert workspace.engine.get(staged.operation_id).status is OperationStatus.STAGED

        assert workspace.commit(staged.operation_id).revision == 1


class TestTerminalStates:

    def test_abort_is_idempotent(self, workspace):
        document = workspace.open_text("x = 1\n", "python")
        staged = workspace.stage(document.document_id, ByAnchor(pattern="1"), "replace_exact", "2")

        assert workspace.abort(staged.operation_id) is OperationStatus.ABORTED
        assert workspace.abort(staged.operation_id) is OperationStatus.ABORTED
        assert not workspace.cache.is_pinned(document.document_id)

        with pytest.raises(AlreadyAborted):
            workspace.commit(staged.operation_id)
        with pytest.raises(AlreadyAborted):
            workspace.retarget(staged.operation_id, ByAnchor(pattern="x"))
        assert document.text == "x = 1\n"

    def test_committed_operation_is_terminal(self, workspace):
        document = workspace.open_text("x = 1\n", "python")
        staged = workspace.stage(document.document_id, ByAnchor(pattern="1"), "replace_exact", "2")
        workspace.commit(staged.operation_id)

        with pytest.raises(AlreadyCommitted):
            workspace.commit(staged.operation_id)
        with pytest.raises(AlreadyCommitted):
            workspace.retarget(staged.operation_id, ByAnchor(pattern="x"))
        assert workspace.abort(staged.operation_id) is OperationStatus.COMMITTED
        assert document.revision == 1

    def test_unknown_operation(self, workspace):
        with pytest.raises(OperationNotFound):
            workspace.commit("missing")

    def test_staging_pins_until_commit(self, workspace):
        document = workspace.open_text("x = 1\n", "python")
        staged = workspace.stage(document.document_id, ByAnchor(pattern="1"), "replace_exact", "2")
        assert workspace.cache.is_pinned(document.document_id)
        workspace.commit(staged.operation_id)
        assert not workspace.cache.is_pinned(document.document_id)

    def test_finished_operations_are_bounded(self, workspace):
        workspace.engine.max_finished = 2
        document = workspace.open_text("x = 1\n", "python")
        finished = []
        for _ in range(3):
            staged = workspace.stage(document.document_id, ByAnchor(pattern="x"), "replace_exact", "z")
            workspace.abort(staged.operation_id)
            finished.append(staged.operation_id)
        live = workspace.stage(document.document_id, ByAnchor(pattern="x"), "replace_exact", "y")

        with pytest.raises(OperationNotFound):
            workspace.engine.get(finished[0])
        assert workspace.engine.get(finished[1]).status is OperationStatus.ABORTED
        assert workspace.engine.get(live.operation_id).status is OperationStatus.STAGED
        assert len(workspace.list_operations()) == 3


class TestSessions:

    def test_list_operations_by_session(self, workspace):
        document = workspace.open_text("x = 1\ny = 2\n", "python")
        workspace.stage(document.document_id, ByAnchor(pattern="x"), "replace_exact", "a", session_id="one")
        workspace.stage(document.document_id, ByAnchor(pattern="y"), "replace_exact", "b", session_id="two")

        listed = workspace.list_operations(session_id="one")
        assert len(listed) == 1
        assert listed[0]["session_id"] == "one"
        assert listed[0]["operation_kind"] == OperationKind.REPLACE_EXACT.value
        assert len(workspace.list_operations()) == 2

    def test_close_session_aborts_live_operations(self, workspace):
        document = workspace.open_text("x = 1\ny = 2\n", "python")
        staged = workspace.stage(document.document_id, ByAnchor(pattern="x"), "replace_exact", "a", session_id="one")
        workspace.stage(document.document_id, ByAnchor(pattern="y"), "replace_exact", "b", session_id="two")

        assert workspace.close_session("one") == 1
        assert workspace.list_operations(session_id="one") == []
        with pytest.raises(OperationNotFound):
            workspace.commit(staged.operation_id)
        assert len(workspace.list_operations(session_id="two")) == 1
