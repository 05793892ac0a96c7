"""MCP tool definitions."""

from .data_tools import register_data_tools

__all__ = ["register_data_tools"]
