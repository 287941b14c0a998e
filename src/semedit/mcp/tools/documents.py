"""Session, document and cache tools."""
from typing import Any, Dict, Optional

from semedit.exceptions import SemEditError
from semedit.logging_config import logger

from ..workspace_manager import get_workspace


def register(mcp):
    @mcp.tool()
    def set_working_context(directory: str, session_id: str = "default") -> Dict[str, Any]:
        """
        Set the directory that relative paths resolve against.

        Args:
            directory: Absolute path of the project directory
            session_id: Session the context belongs to

        Returns:
            The resolved directory
        """
        try:
            path = get_workspace().set_working_context(directory, session_id=session_id)
        except SemEditError as e:
            return e.to_dict()
        return {"status": "success", "session_id": session_id, "directory": str(path)}

    @mcp.tool()
    def open_document(
        path: str,
        language: Optional[str] = None,
        session_id: str = "default",
    ) -> Dict[str, Any]:
        """
        Open a source file for editing and return its document id.

        The language is detected from the file extension unless given.
        Reopening a file that changed on disk reloads it (new revision).

        Args:
            path: File path, absolute or relative to the session's working context
            language: Optional language tag override (python, rust, javascript, typescript, tsx, json)
            session_id: Session whose working context resolves relative paths

        Returns:
            document_id, language and current revision
        """
        try:
            document = get_workspace().open_document(path, language_hint=language, session_id=session_id)
        except SemEditError as e:
            return e.to_dict()
        return {
            "status": "success",
            "document_id": document.document_id,
            "language": document.language,
            "revision": document.revision,
        }

    @mcp.tool()
    def close_session(session_id: str) -> Dict[str, Any]:
        """
        Tear down a session: abort its live staged operations and forget its working context.

        Args:
            session_id: Session to close

        Returns:
            Number of operations aborted
        """
        aborted = get_workspace().close_session(session_id)
        logger.debug(f"close_session({session_id}) aborted {aborted}")
        return {"status": "success", "session_id": session_id, "aborted": aborted}

    @mcp.tool()
    def cache_info() -> Dict[str, Any]:
        """
        Document cache statistics.

        Returns:
            hits, misses, total_requests, hit_rate, evictions, size, capacity, open documents
        """
        info = get_workspace().cache_info()
        info["status"] = "success"
        return info
