"""FastMCP server setup and tool registration."""
from typing import Optional

from fastmcp import FastMCP

from semedit.workspace import EditWorkspace

from .tools import documents, editing
from .workspace_manager import get_workspace, reset_workspace, set_workspace


def create_server(workspace: Optional[EditWorkspace] = None) -> FastMCP:
    """
    Create and configure the MCP server.

    Each call builds a fresh FastMCP instance over one workspace: the given
    one, or the process-wide workspace created on demand.
    """
    if workspace is not None:
        set_workspace(workspace)
    else:
        get_workspace()

    mcp = FastMCP("semedit")

    # Sessions, documents and cache statistics
    documents.register(mcp)

    # Stage / retarget / commit / abort
    editing.register(mcp)

    return mcp


def run_server():
    """Run the MCP server until the transport closes."""
    server = create_server()
    try:
        server.run(show_banner=False)
    finally:
        reset_workspace()
