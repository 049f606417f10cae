"""
Moodle Resources — every enrolled-course file as an MCP resource

URI scheme: moodle://file/<percent-encoded authenticated download URL>

Listing walks every course and is capped at Config.RESOURCE_LIST_LIMIT
files. Reading fetches the file and returns it as a base64 blob.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote, unquote

from moodle_mcp.config import Config
from moodle_mcp.moodle import views
from moodle_mcp.server.logger import get_logger
from moodle_mcp.server.protocol import blob_resource_contents
from moodle_mcp.tools import moodle_tools

log = get_logger("tools.resources")

URI_PREFIX = "moodle://file/"


def file_uri(download_url: str) -> str:
    return URI_PREFIX + quote(download_url, safe="")


def download_url_from_uri(uri: str) -> Optional[str]:
    if not uri.startswith(URI_PREFIX):
        return None
    return unquote(uri[len(URI_PREFIX):])


async def list_resources() -> List[Dict[str, Any]]:
    client = moodle_tools._require_client()
    report = await views.collect_course_files(client, Config.RESOURCE_LIST_LIMIT)

    if report.skipped:
        log.warning(f"Resource listing skipped {len(report.skipped)} course(s)")
    if len(report.results) >= Config.RESOURCE_LIST_LIMIT:
        log.info(f"Resource listing capped at {Config.RESOURCE_LIST_LIMIT} files")

    resources = []
    for item in report.results:
        resource = {
            "uri": file_uri(item["downloadUrl"]),
            "name": f"{item['courseName']} - {item['moduleName']} - {item['filename']}",
            "description": f"File from {item['courseName']} ({round(item['filesize'] / 1024)} KB)",
        }
        if item.get("mimetype"):
            resource["mimeType"] = item["mimetype"]
        resources.append(resource)
    return resources


async def read_resource(uri: str) -> Optional[List[Dict[str, Any]]]:
    """Blob contents for a moodle://file/ URI; None for any other scheme."""
    download_url = download_url_from_uri(uri)
    if download_url is None:
        return None

    client = moodle_tools._require_client()
    file_content = await client.get_file_content(download_url)
    return [blob_resource_contents(uri, file_content["mimeType"], file_content["content"])]
