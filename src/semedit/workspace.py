"""
EditWorkspace: the explicitly owned state behind every surface.

Holds the language registry, the document cache, the edit engine and
per-session working directories. Created once by the server or CLI and
torn down with shutdown() (or by leaving its `with` block).
"""

import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from semedit.cache import DocumentCache
from semedit.document import Document
from semedit.exceptions import ContextNotFound, IoFailure
from semedit.languages import LanguageRegistry, default_registry
from semedit.logging_config import logger
from semedit.mutation.engine import DEFAULT_SESSION, EditEngine
from semedit.parser import get_language
from semedit.schemas import CommitResult, OperationKind, OperationStatus, Policy, Selector, StageResult


class EditWorkspace:
    """Process-wide edit state with an explicit lifetime."""

    def __init__(
        self,
        registry: Optional[LanguageRegistry] = None,
        cache: Optional[DocumentCache] = None,
        engine: Optional[EditEngine] = None,
    ):
        self.registry = registry if registry is not None else default_registry()
        self.cache = cache if cache is not None else DocumentCache()
        self.engine = engine if engine is not None else EditEngine(self.cache, self.registry)
        self._contexts: Dict[str, Path] = {}
        self._lock = threading.Lock()
        self.closed = False

    # ------------------------------------------------------------------
    # Sessions and documents
    # ------------------------------------------------------------------

    def set_working_context(self, directory: Union[str, Path], session_id: str = DEFAULT_SESSION) -> Path:
        """
        Set the directory relative paths resolve against for a session.

        Raises:
            IoFailure: If the directory does not exist
        """
        path = Path(directory).expanduser().resolve()
        if not path.is_dir():
            raise IoFailure(str(path), "not a directory")
        with self._lock:
            self._contexts[session_id] = path
        logger.debug(f"Session {session_id} working context -> {path}")
        return path

    def working_context(self, session_id: str = DEFAULT_SESSION) -> Optional[Path]:
        with self._lock:
            return self._contexts.get(session_id)

    def resolve_path(self, path: Union[str, Path], session_id: str = DEFAULT_SESSION) -> Path:
        """
        Raises:
            ContextNotFound: If `path` is relative and the session has no working context
        """
        candidate = Path(path).expanduser()
        if candidate.is_absolute():
            return candidate.resolve()
        base = self.working_context(session_id)
        if base is None:
            raise ContextNotFound(session_id)
        return (base / candidate).resolve()

    def open_document(
        self,
        path: Union[str, Path],
        language_hint: Optional[str] = None,
        session_id: str = DEFAULT_SESSION,
    ) -> Document:
        """
        Open (or re-use) a document for a file.

        The document id is the resolved path. A cached document whose file
        changed on disk is reloaded, which bumps its revision.

        Raises:
            ContextNotFound: Relative path without a working context
            UnsupportedLanguage: Unknown extension or missing grammar
            IoFailure: The file cannot be read
            CacheFull: The cache cannot make room
        """
        resolved = self.resolve_path(path, session_id)
        document_id = str(resolved)
        cached = self.cache.lookup(document_id)
        if cached is not None:
            cached.reload()
            return cached

        if not resolved.is_file():
            raise IoFailure(str(resolved), "file not found")
        language = self.registry.detect(resolved, language_hint)
        get_language(language)
        document = Document.from_path(resolved, language, document_id=document_id)
        self.cache.put(document)
        logger.debug(f"Opened {document_id} as {language}")
        return document

    def open_text(self, text: str, language: str, document_id: Optional[str] = None) -> Document:
        """Open an in-memory document; commits update it without writing files."""
        get_language(language)
        document = Document.from_text(text, language, document_id=document_id)
        self.cache.put(document)
        return document

    def get_document(self, document_id: str) -> Document:
        return self.cache.get(document_id)

    # ------------------------------------------------------------------
    # Operations
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
        return self.engine.stage(
            document_id, selector, operation_kind, replacement_text,
            policy=policy, session_id=session_id, auto_format=auto_format,
        )

    def retarget(
        self,
        operation_id: str,
        new_selector: Union[Selector, Dict[str, Any]],
        operation_kind: Optional[Union[OperationKind, str]] = None,
        policy: Optional[Policy] = None,
    ) -> StageResult:
        return self.engine.retarget(operation_id, new_selector, operation_kind=operation_kind, policy=policy)

    def commit(self, operation_id: str) -> CommitResult:
        return self.engine.commit(operation_id)

    def abort(self, operation_id: str) -> OperationStatus:
        return self.engine.abort(operation_id)

    def list_operations(self, session_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return [op.to_dict() for op in self.engine.list_operations(session_id=session_id)]

    def close_session(self, session_id: str) -> int:
        """Abort the session's live operations and drop its working context."""
        aborted = self.engine.close_session(session_id)
        with self._lock:
            self._contexts.pop(session_id, None)
        return aborted

    def cache_info(self) -> Dict[str, Any]:
        info = self.cache.stats().as_dict()
        info["documents"] = self.cache.document_ids()
        info["languages"] = self.registry.names()
        return info

    # ------------------------------------------------------------------
    # Lifetime
    # ------------------------------------------------------------------

    def shutdown(self) -> None:
        """Abort all live operations and release every document."""
        if self.closed:
            return
        aborted = self.engine.shutdown()
        self.cache.clear()
        with self._lock:
            self._contexts.clear()
        self.closed = True
        logger.debug(f"Workspace shut down ({aborted} live operation(s) aborted)")

    def __enter__(self) -> "EditWorkspace":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
