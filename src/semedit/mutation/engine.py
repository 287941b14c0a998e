"""
EditEngine: the staged-operation state machine.

    stage -> (retarget)* -> commit
                   \\-----> abort

Every transition that installs an Edit runs the full pipeline first
(locate, narrow, place, validate), so an operation is never observable
holding an edit that failed validation. Commit is guarded by the
document's revision counter and by the on-disk fingerprint.
"""

import threading
import time
import uuid
from typing import Any, Dict, List, Optional, Tuple, Union

from semedit.cache import DocumentCache
from semedit.config import get_config_value
from semedit.document import DocumentSnapshot
from semedit.exceptions import (
    AlreadyAborted,
    AlreadyCommitted,
    OperationNotFound,
    StaleTarget,
)
from semedit.languages import LanguageRegistry
from semedit.logging_config import logger
from semedit.schemas import (
    ByAnchor,
    CommitResult,
    DiffResult,
    Edit,
    OperationKind,
    OperationStatus,
    Policy,
    Selector,
    StageResult,
    check_selector,
    parse_operation_kind,
    parse_selector,
)

from .diff import compute_diff
from .disambiguator import narrow
from .locator import TargetLocator
from .position import place
from .validator import EditValidator
from .writer import atomic_write, check_unchanged

DEFAULT_SESSION = "default"


class StagedOperation:
    """
    A validated edit waiting for commit.

    Fields are only replaced together, under `lock`, after a new edit has
    passed validation.
    """

    def __init__(
        self,
        operation_id: str,
        session_id: str,
        document_id: str,
        selector: Selector,
        operation_kind: OperationKind,
        policy: Policy,
        edit: Edit,
        diff: DiffResult,
        auto_format: bool = False,
    ):
        self.operation_id = operation_id
        self.session_id = session_id
        self.document_id = document_id
        self.selector = selector
        self.operation_kind = operation_kind
        self.policy = policy
        self.edit = edit
        self.diff = diff
        self.auto_format = auto_format
        self.status = OperationStatus.STAGED
        self.created_at = time.time()
        self.lock = threading.Lock()

    def ensure_live(self) -> None:
        """
        Raises:
            AlreadyCommitted: If the operation was committed
            AlreadyAborted: If the operation was aborted
        """
        if self.status is OperationStatus.COMMITTED:
            raise AlreadyCommitted(self.operation_id)
        if self.status is OperationStatus.ABORTED:
            raise AlreadyAborted(self.operation_id)

    def result(self) -> StageResult:
        return StageResult(
            operation_id=self.operation_id,
            session_id=self.session_id,
            document_id=self.document_id,
            status=self.status,
            revision=self.edit.captured_revision,
            position=self.edit.position,
            preview_diff=self.diff,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation_id": self.operation_id,
            "session_id": self.session_id,
            "document_id": self.document_id,
            "status": self.status.value,
            "operation_kind": self.operation_kind.value,
            "selector": self.selector.model_dump(),
            "captured_revision": self.edit.captured_revision,
            "range": [self.edit.position.start_byte, self.edit.position.end_byte],
        }


class EditEngine:
    """
    Orchestrates staging, retargeting, commit and abort.

    Registers itself as the cache's release hook so forced evictions abort
    the evicted document's live operations first.
    """

    def __init__(
        self,
        cache: DocumentCache,
        registry: LanguageRegistry,
        locator: Optional[TargetLocator] = None,
        validator: Optional[EditValidator] = None,
        max_diff_lines: Optional[int] = None,
        max_finished: Optional[int] = None,
    ):
        self.cache = cache
        self.registry = registry
        self.locator = locator if locator is not None else TargetLocator()
        self.validator = validator if validator is not None else EditValidator(registry)
        self.max_diff_lines = max_diff_lines
        if max_finished is None:
            max_finished = int(get_config_value("operations.max_finished", 100))
        self.max_finished = max_finished
        self._operations: Dict[str, StagedOperation] = {}
        self._lock = threading.Lock()
        cache.set_release_hook(self.abort_document_operations)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _prepare(
        self,
        snapshot: DocumentSnapshot,
        selector: Selector,
        operation_kind: OperationKind,
        replacement_text: str,
        policy: Policy,
        auto_format: bool,
    ) -> Tuple[Edit, DiffResult]:
        check_selector(selector, operation_kind)
        candidates = self.locator.resolve(snapshot, selector)
        chosen = narrow(candidates, policy, snapshot.source)
        end_pattern = selector.end if isinstance(selector, ByAnchor) else None
        position = place(chosen, operation_kind, snapshot, end_pattern=end_pattern)
        edit = Edit(
            position=position,
            replacement=replacement_text,
            language=snapshot.language,
            captured_revision=snapshot.revision,
        )

        report = self.validator.validate(snapshot, edit, auto_format=auto_format)
        report.outcome.raise_for_status()
        diff = compute_diff(
            snapshot.source.decode("utf-8", errors="replace"),
            report.source.decode("utf-8", errors="replace"),
            max_lines=self.max_diff_lines,
            replacement=replacement_text,
        )
        return edit, diff

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def stage(
        self,
        document_id: str,
        selector: Union[Selector, Dict[str, Any]],
        operation_kind: Union[OperationKind, str],
        replacement_text: str,
        policy: Optional[Policy] = None,
        session_id: str = DEFAULT_SESSION,
        auto_format: bool = False,
    ) -> StageResult:
        """
        Validate an edit and register it as a staged operation.

        The document buffer is not modified. On any failure nothing is
        registered and the error propagates.
        """
        selector = parse_selector(selector)
        operation_kind = parse_operation_kind(operation_kind)
        policy = policy or Policy.unique()

        document = self.cache.get(document_id)
        snapshot = document.snapshot()
        edit, diff = self._prepare(snapshot, selector, operation_kind, replacement_text, policy, auto_format)

        operation = StagedOperation(
            operation_id=uuid.uuid4().hex[:12],
            session_id=session_id,
            document_id=document_id,
            selector=selector,
            operation_kind=operation_kind,
            policy=policy,
            edit=edit,
            diff=diff,
            auto_format=auto_format,
        )
        self.cache.pin(document_id)
        with self._lock:
            self._operations[operation.operation_id] = operation
        logger.debug(
            f"Staged {operation.operation_id}: {operation_kind.value} at "
            f"{edit.position.start_byte}..{edit.position.end_byte} of {document_id} (revision {snapshot.revision})"
        )
        return operation.result()

    def retarget(
        self,
        operation_id: str,
        new_selector: Union[Selector, Dict[str, Any]],
        operation_kind: Optional[Union[OperationKind, str]] = None,
        policy: Optional[Policy] = None,
    ) -> StageResult:
        """
        Re-run the pipeline with the same replacement text and a new selector.

        Transactional: on failure the operation keeps its previous edit,
        diff and status.
        """
        operation = self.get(operation_id)
        with operation.lock:
            operation.ensure_live()
            selector = parse_selector(new_selector)
            kind = parse_operation_kind(operation_kind) if operation_kind is not None else operation.operation_kind
            policy = policy or operation.policy

            snapshot = self.cache.get(operation.document_id).snapshot()
            edit, diff = self._prepare(
                snapshot, selector, kind, operation.edit.replacement, policy, operation.auto_format
            )

            operation.selector = selector
            operation.operation_kind = kind
            operation.policy = policy
            operation.edit = edit
            operation.diff = diff
            operation.status = OperationStatus.RETARGETED
            logger.debug(f"Retargeted {operation_id} to {selector.describe()} at revision {snapshot.revision}")
            return operation.result()

    def commit(self, operation_id: str) -> CommitResult:
        """
        Apply a staged edit to its document.

        Raises:
            AlreadyCommitted / AlreadyAborted: If the operation is terminal
            StaleTarget: If the document revision moved or the file changed on disk
            ContextViolation / SyntaxViolation: If re-validation fails
            IoFailure: If the write fails; the document is left untouched
        """
        operation = self.get(operation_id)
        with operation.lock:
            operation.ensure_live()
            document = self.cache.get(operation.document_id)
            edit = operation.edit

            with document.lock:
                current = document.locked_snapshot()
                if edit.captured_revision != current.revision:
                    raise StaleTarget(
                        f"Operation {operation_id} was staged at revision {edit.captured_revision} "
                        f"but {document.document_id} is at revision {current.revision}; retarget it first",
                        captured_revision=edit.captured_revision,
                        current_revision=current.revision,
                    )
                if document.path is not None:
                    check_unchanged(document.path, document.fingerprint)

                report = self.validator.validate(current, edit, auto_format=operation.auto_format)
                report.outcome.raise_for_status()

                fingerprint = atomic_write(document.path, report.source) if document.path is not None else None
                revision = document.swap(report.source, report.tree, fingerprint)

            final_diff = compute_diff(
                current.source.decode("utf-8", errors="replace"),
                report.source.decode("utf-8", errors="replace"),
                max_lines=self.max_diff_lines,
                replacement=edit.replacement,
            )
            operation.diff = final_diff
            operation.status = OperationStatus.COMMITTED

        self.cache.unpin(operation.document_id)
        logger.info(f"Committed {operation_id} to {operation.document_id} (revision {revision})")
        self._prune_finished()
        return CommitResult(
            operation_id=operation_id,
            document_id=operation.document_id,
            written=document.path is not None,
            revision=revision,
            final_diff=final_diff,
        )

    def abort(self, operation_id: str) -> OperationStatus:
        """
        Abort a non-terminal operation. Idempotent on terminal operations.

        Returns:
            The operation's status after the call
        """
        operation = self.get(operation_id)
        self._abort(operation)
        return operation.status

    def _abort(self, operation: StagedOperation) -> bool:
        with operation.lock:
            if operation.status.is_terminal:
                return False
            operation.status = OperationStatus.ABORTED
        self.cache.unpin(operation.document_id)
        logger.debug(f"Aborted {operation.operation_id}")
        self._prune_finished()
        return True

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def get(self, operation_id: str) -> StagedOperation:
        with self._lock:
            operation = self._operations.get(operation_id)
        if operation is None:
            raise OperationNotFound(operation_id)
        return operation

    def _prune_finished(self) -> None:
        """Forget the oldest committed or aborted operations beyond `max_finished`."""
        with self._lock:
            finished = [oid for oid, op in self._operations.items() if op.status.is_terminal]
            excess = len(finished) - self.max_finished
            for operation_id in finished[:max(excess, 0)]:
                del self._operations[operation_id]
        if excess > 0:
            logger.debug(f"Dropped {excess} finished operation(s)")

    def list_operations(self, session_id: Optional[str] = None, live_only: bool = False) -> List[StagedOperation]:
        with self._lock:
            operations = list(self._operations.values())
        return [
            op for op in operations
            if (session_id is None or op.session_id == session_id)
            and (not live_only or not op.status.is_terminal)
        ]

    def abort_document_operations(self, document_id: str) -> int:
        """Abort every live operation on a document. Used on forced eviction."""
        aborted = 0
        for operation in self.list_operations(live_only=True):
            if operation.document_id == document_id and self._abort(operation):
                aborted += 1
        return aborted

    def close_session(self, session_id: str) -> int:
        """
        Abort a session's live operations and forget all of its operations.

        Returns:
            Number of operations aborted
        """
        aborted = 0
        for operation in self.list_operations(session_id=session_id):
            if self._abort(operation):
                aborted += 1
        with self._lock:
            for operation_id in [oid for oid, op in self._operations.items() if op.session_id == session_id]:
                del self._operations[operation_id]
        logger.debug(f"Closed session {session_id} ({aborted} operation(s) aborted)")
        return aborted

    def shutdown(self) -> int:
        """Abort every live operation."""
        aborted = 0
        for operation in self.list_operations(live_only=True):
            if self._abort(operation):
                aborted += 1
        return aborted
