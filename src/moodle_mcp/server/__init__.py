"""Moodle MCP Server — raw protocol implementation."""

from moodle_mcp.server.server import MCPServer
from moodle_mcp.server.router import Router

__all__ = ["MCPServer", "Router"]
