"""Moodle MCP — Moodle LMS courses and files over the Model Context Protocol."""

__version__ = "0.1.0"
