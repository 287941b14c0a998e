"""MCP server exposing the edit engine as tools."""

from .server import create_server, run_server
from .workspace_manager import get_workspace, reset_workspace

__all__ = ["create_server", "run_server", "get_workspace", "reset_workspace"]
