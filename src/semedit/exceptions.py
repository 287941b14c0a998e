# Custom exceptions for semedit

from typing import Any, Dict, List, Optional, Tuple


class SemEditError(Exception):
    """Base exception for all application-specific errors."""

    kind = "SemEditError"

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Structured payload for tool responses."""
        payload = {
            "status": "error",
            "error_type": self.kind,
            "message": self.message,
        }
        for key, value in self.details.items():
            if value is not None:
                payload[key] = value
        return payload


class NotFound(SemEditError):
    """Raised when a selector resolves to zero candidates."""

    kind = "NotFound"

    def __init__(self, message: str, suggestions: Optional[List[str]] = None, selector: Optional[dict] = None):
        self.suggestions = suggestions or []
        super().__init__(message, suggestions=self.suggestions, selector=selector)


class Ambiguous(SemEditError):
    """Raised when uniqueness is required and several candidates remain."""

    kind = "Ambiguous"

    def __init__(self, candidates: list, summaries: List[Dict[str, Any]]):
        self.candidates = candidates
        self.summaries = summaries
        message = (
            f"Selector matched {len(candidates)} candidates; "
            f"select one by index (0..{len(candidates) - 1}) or refine the selector."
        )
        super().__init__(message, candidates=summaries)


class InvalidBoundary(SemEditError):
    """Raised when a byte offset splits a UTF-8 code point or leaves the buffer."""

    kind = "InvalidBoundary"

    def __init__(self, position: int, length: int):
        self.position = position
        super().__init__(
            f"Invalid UTF-8 boundary at byte position {position} (buffer length {length})",
            position=position,
            length=length,
        )


class ContextViolation(SemEditError):
    """Raised when an edit breaks a language structural rule."""

    kind = "ContextViolation"

    def __init__(
        self,
        reason: str,
        suggestion: str,
        rule: Optional[str] = None,
        byte_range: Optional[Tuple[int, int]] = None,
    ):
        self.reason = reason
        self.suggestion = suggestion
        self.rule = rule
        self.byte_range = byte_range
        super().__init__(
            f"Invalid placement: {reason}",
            reason=reason,
            suggestion=suggestion,
            rule=rule,
            range=list(byte_range) if byte_range else None,
        )


class SyntaxViolation(SemEditError):
    """Raised when an edit introduces a new parse error."""

    kind = "SyntaxViolation"

    def __init__(
        self,
        node_kind: str,
        byte_range: Tuple[int, int],
        line: Optional[int] = None,
        excerpt: Optional[str] = None,
    ):
        self.node_kind = node_kind
        self.byte_range = byte_range
        self.line = line
        location = f" at line {line}" if line else ""
        super().__init__(
            f"Edit would introduce a syntax error ({node_kind}){location}",
            node_kind=node_kind,
            range=list(byte_range),
            line=line,
            excerpt=excerpt,
        )


class StaleTarget(SemEditError):
    """Raised when the document changed since the edit was validated."""

    kind = "StaleTarget"

    def __init__(self, message: str, captured_revision: Optional[int] = None, current_revision: Optional[int] = None):
        self.captured_revision = captured_revision
        self.current_revision = current_revision
        super().__init__(
            message,
            captured_revision=captured_revision,
            current_revision=current_revision,
        )


class AlreadyCommitted(SemEditError):
    """Raised when a committed operation is reused."""

    kind = "AlreadyCommitted"

    def __init__(self, operation_id: str):
        self.operation_id = operation_id
        super().__init__(f"Operation {operation_id} was already committed", operation_id=operation_id)


class AlreadyAborted(SemEditError):
    """Raised when an aborted operation is reused."""

    kind = "AlreadyAborted"

    def __init__(self, operation_id: str):
        self.operation_id = operation_id
        super().__init__(f"Operation {operation_id} was already aborted", operation_id=operation_id)


class IoFailure(SemEditError):
    """Raised when reading or writing a document fails."""

    kind = "IoFailure"

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"I/O failure on {path}: {message}", path=path)


class InvalidSelector(SemEditError):
    """Raised for malformed selectors (bad query, empty anchor, misplaced end)."""

    kind = "InvalidSelector"

    def __init__(self, message: str, problems: Optional[List[str]] = None):
        self.problems = problems or []
        super().__init__(message, problems=self.problems or None)


class UnsupportedLanguage(SemEditError):
    """Raised when no grammar is available for a language tag."""

    kind = "UnsupportedLanguage"

    def __init__(self, language: str, install_hint: Optional[str] = None):
        self.language = language
        super().__init__(f"Unsupported language: {language}", language=language, install_hint=install_hint)


class OperationNotFound(SemEditError):
    """Raised when an operation id is unknown."""

    kind = "OperationNotFound"

    def __init__(self, operation_id: str):
        self.operation_id = operation_id
        super().__init__(f"No staged operation with id {operation_id}", operation_id=operation_id)


class DocumentNotFound(SemEditError):
    """Raised when a document id is not in the cache."""

    kind = "DocumentNotFound"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(
            f"Document {document_id} is not open (it may have been evicted); call open_document again",
            document_id=document_id,
        )


class ContextNotFound(SemEditError):
    """Raised when a relative path is used before a working context is set."""

    kind = "ContextNotFound"

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(
            f"No working context for session `{session_id}`. "
            "Use set_working_context first or provide an absolute path",
            session_id=session_id,
        )


class CacheFull(SemEditError):
    """Raised when the document cache cannot evict without aborting live operations."""

    kind = "CacheFull"

    def __init__(self, capacity: int, pinned: List[str]):
        self.capacity = capacity
        self.pinned = pinned
        super().__init__(
            f"Document cache is full ({capacity}) and every document has live staged operations",
            capacity=capacity,
            pinned=pinned,
        )


class FormatFailure(SemEditError):
    """Raised when a language formatter rejects the edited text."""

    kind = "FormatFailure"

    def __init__(self, language: str, message: str):
        self.language = language
        super().__init__(
            f"The {language} formatter rejected the edit, so nothing was staged: {message}",
            language=language,
        )
