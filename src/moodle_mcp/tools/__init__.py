"""
Moodle MCP Tools

Modules:
  moodle_tools  — 7 course/search/file tools
  resources     — enrolled-course files as MCP resources
"""

from moodle_mcp.tools import moodle_tools, resources
from moodle_mcp.tools.moodle_tools import TOOLS, handle_tool, set_client

__all__ = ["TOOLS", "handle_tool", "set_client", "moodle_tools", "resources"]
