"""Shared fixtures for MCP tests."""
import json

import pytest
import pytest_asyncio

from semedit.mcp import create_server
import semedit.mcp.workspace_manager as workspace_manager_module


def unwrap_result(result):
    """
    Normalize FastMCP CallToolResult to plain Python data.

    Prefers structured_content (unwrapped if FastMCP wraps under 'result'),
    otherwise falls back to parsing text content when available.
    """
    structured = getattr(result, "structured_content", None)
    if structured is not None:
        if isinstance(structured, dict) and set(structured) == {"result"}:
            return structured["result"]
        return structured

    content = getattr(result, "content", None) or []
    texts = [getattr(block, "text", None) for block in content if getattr(block, "text", None)]
    if len(texts) == 1:
        text = texts[0]
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text
    if texts:
        return texts

    return result


@pytest.fixture(autouse=True)
def reset_workspace_manager():
    """Forget the server's workspace before and after each test."""
    workspace_manager_module._workspace = None
    yield
    workspace_manager_module.reset_workspace()


@pytest.fixture
def mcp_server(workspace):
    """An MCP server bound to the test's workspace."""
    return create_server(workspace)


@pytest_asyncio.fixture
async def mcp_client(mcp_server):
    """Async FastMCP client connected to in-process server."""
    from fastmcp import Client

    client = Client(mcp_server)
    async with client:
        yield client
