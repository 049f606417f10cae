"""Moodle web-service client and course views."""

from moodle_mcp.moodle.client import MoodleClient, MoodleSettings, flatten_params, with_token
from moodle_mcp.moodle.views import ScanReport

__all__ = ["MoodleClient", "MoodleSettings", "ScanReport", "flatten_params", "with_token"]
