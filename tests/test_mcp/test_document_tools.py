"""Tests for session and document MCP tools."""
import pytest

from .conftest import unwrap_result

pytestmark = pytest.mark.mcp


class TestWorkingContext:

    @pytest.mark.asyncio
    async def test_relative_path_without_context(self, mcp_client):
        result = unwrap_result(await mcp_client.call_tool("open_document", {"path": "greeter.py"}))
        assert result["status"] == "error"
        assert result["error_type"] == "ContextNotFound"

    @pytest.mark.asyncio
    async def test_relative_path_with_context(self, mcp_client, temp_project):
        context = unwrap_result(
            await mcp_client.call_tool("set_working_context", {"directory": str(temp_project)})
        )
        assert context["status"] == "success"

        result = unwrap_result(await mcp_client.call_tool("open_document", {"path": "greeter.py"}))
        assert result["status"] == "success"
        assert result["language"] == "python"
        assert result["revision"] == 0
        assert result["document_id"] == str((temp_project / "greeter.py").resolve())

    @pytest.mark.asyncio
    async def test_contexts_are_per_session(self, mcp_client, temp_project):
        await mcp_client.call_tool(
            "set_working_context", {"directory": str(temp_project), "session_id": "alpha"}
        )
        result = unwrap_result(
            await mcp_client.call_tool("open_document", {"path": "point.rs", "session_id": "beta"})
        )
        assert result["error_type"] == "ContextNotFound"

    @pytest.mark.asyncio
    async def test_missing_directory(self, mcp_client, temp_dir):
        result = unwrap_result(
            await mcp_client.call_tool("set_working_context", {"directory": str(temp_dir / "nope")})
        )
        assert result["error_type"] == "IoFailure"


class TestOpenDocument:

    @pytest.mark.asyncio
    async def test_unsupported_extension(self, mcp_client, temp_dir):
        (temp_dir / "notes.txt").write_text("hello\n")
        result = unwrap_result(
            await mcp_client.call_tool("open_document", {"path": str(temp_dir / "notes.txt")})
        )
        assert result["error_type"] == "UnsupportedLanguage"

    @pytest.mark.asyncio
    async def test_language_override(self, mcp_client, temp_dir):
        (temp_dir / "build").write_text("x = 1\n")
        result = unwrap_result(
            await mcp_client.call_tool(
                "open_document", {"path": str(temp_dir / "build"), "language": "python"}
            )
        )
        assert result["language"] == "python"

    @pytest.mark.asyncio
    async def test_missing_file(self, mcp_client, temp_dir):
        result = unwrap_result(
            await mcp_client.call_tool("open_document", {"path": str(temp_dir / "gone.py")})
        )
        assert result["error_type"] == "IoFailure"


class TestCacheInfo:

    @pytest.mark.asyncio
    async def test_reports_open_documents(self, mcp_client, temp_project):
        await mcp_client.call_tool("open_document", {"path": str(temp_project / "point.rs")})
        await mcp_client.call_tool("open_document", {"path": str(temp_project / "point.rs")})

        info = unwrap_result(await mcp_client.call_tool("cache_info", {}))
        assert info["status"] == "success"
        assert info["size"] == 1
        assert info["capacity"] == 8
        assert info["hits"] >= 1
        assert "rust" in info["languages"]
        assert info["documents"] == [str((temp_project / "point.rs").resolve())]
