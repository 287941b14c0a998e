"""Workspace lifecycle for the server process."""
import threading
from typing import Optional

from semedit.logging_config import logger
from semedit.workspace import EditWorkspace

_workspace: Optional[EditWorkspace] = None
_lock = threading.Lock()


def get_workspace() -> EditWorkspace:
    """Get the server's EditWorkspace, creating it on first use."""
    global _workspace
    with _lock:
        if _workspace is None or _workspace.closed:
            _workspace = EditWorkspace()
            logger.debug("Created edit workspace")
        return _workspace


def set_workspace(workspace: EditWorkspace) -> None:
    """Install a specific workspace (tests, embedding)."""
    global _workspace
    with _lock:
        _workspace = workspace


def reset_workspace() -> None:
    """Shut down the current workspace, aborting its live operations."""
    global _workspace
    with _lock:
        workspace, _workspace = _workspace, None
    if workspace is not None:
        workspace.shutdown()
