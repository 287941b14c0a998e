"""MCP tool registrations."""

__all__ = [
    "documents",
    "editing",
]
