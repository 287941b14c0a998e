"""
Staged editing tools.

Workflow: stage_operation -> (retarget_staged_operation)* ->
commit_staged_operation, or abort_staged_operation at any point before
commit. Nothing reaches the file until commit, and commit refuses to
write if the document changed since the edit was staged.
"""
from typing import Any, Dict, Optional

from semedit.exceptions import SemEditError
from semedit.schemas import Policy

from ..workspace_manager import get_workspace


def _policy(select_index: Optional[int]) -> Policy:
    return Policy.unique() if select_index is None else Policy.select(select_index)


def register(mcp):
    @mcp.tool()
    def stage_operation(
        document_id: str,
        selector: Dict[str, Any],
        operation: str,
        replacement: str,
        select_index: Optional[int] = None,
        session_id: str = "default",
        auto_format: bool = False,
    ) -> Dict[str, Any]:
        """
        Validate an edit and stage it without touching the file.

        Selector forms (pick one):
        - {"by": "name", "name": "parse", "kind": "function_item"}
        - {"by": "kind", "kind": "struct_item"}
        - {"by": "query", "query": "(function_item name: (identifier) @fn)", "capture": "fn"}
        - {"by": "position", "line": 12, "column": 5} or {"by": "position", "byte_offset": 240}
        - {"by": "anchor", "pattern": "fn main", "occurrence": 0, "end": "}"}

        Args:
            document_id: Id returned by open_document
            selector: Where to edit (see forms above)
            operation: insert_before | insert_after | insert_after_node | replace_range | replace_exact | replace_node
            replacement: Text to insert or substitute
            select_index: Pick the Nth candidate (0-based) when the selector is ambiguous
            session_id: Session that owns the operation
            auto_format: Run the language formatter on the result

        Returns:
            operation_id and preview_diff, or a structured error (NotFound, Ambiguous,
            ContextViolation, SyntaxViolation, InvalidBoundary, InvalidSelector, ...)
        """
        try:
            result = get_workspace().stage(
                document_id,
                selector,
                operation,
                replacement,
                policy=_policy(select_index),
                session_id=session_id,
                auto_format=auto_format,
            )
        except SemEditError as e:
            return e.to_dict()
        payload = result.model_dump(mode="json")
        payload["status"] = "success"
        payload["operation_status"] = result.status.value
        return payload

    @mcp.tool()
    def retarget_staged_operation(
        operation_id: str,
        selector: Dict[str, Any],
        operation: Optional[str] = None,
        select_index: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Point a staged operation at a new target, keeping its replacement text.

        On failure the operation keeps its previous target and diff.

        Args:
            operation_id: Id returned by stage_operation
            selector: New selector
            operation: Optional new operation kind
            select_index: Optional candidate index for ambiguous selectors

        Returns:
            The new preview_diff
        """
        try:
            result = get_workspace().retarget(
                operation_id,
                selector,
                operation_kind=operation,
                policy=None if select_index is None else Policy.select(select_index),
            )
        except SemEditError as e:
            return e.to_dict()
        payload = result.model_dump(mode="json")
        payload["status"] = "success"
        payload["operation_status"] = result.status.value
        return payload

    @mcp.tool()
    def commit_staged_operation(operation_id: str) -> Dict[str, Any]:
        """
        Write a staged edit to its document.

        Fails with StaleTarget if the document changed since staging (retarget
        first), and re-validates before writing.

        Args:
            operation_id: Id returned by stage_operation

        Returns:
            written, new revision and final_diff
        """
        try:
            result = get_workspace().commit(operation_id)
        except SemEditError as e:
            return e.to_dict()
        payload = result.model_dump(mode="json")
        payload["status"] = "success"
        return payload

    @mcp.tool()
    def abort_staged_operation(operation_id: str) -> Dict[str, Any]:
        """
        Discard a staged operation. Aborting a finished operation is a no-op.

        Args:
            operation_id: Id returned by stage_operation
        """
        try:
            status = get_workspace().abort(operation_id)
        except SemEditError as e:
            return e.to_dict()
        return {"status": "success", "operation_id": operation_id, "operation_status": status.value}

    @mcp.tool()
    def list_staged_operations(session_id: Optional[str] = None) -> Dict[str, Any]:
        """
        List operations, optionally for one session.

        Args:
            session_id: Restrict to this session

        Returns:
            Operations with status, selector, captured revision and byte range
        """
        operations = get_workspace().list_operations(session_id=session_id)
        return {"status": "success", "count": len(operations), "operations": operations}
