"""
Moodle Tools — course browsing, search and file links

Tools:
  list_courses          — Courses the user is enrolled in
  get_course_contents   — Sections and modules of one course
  search_resources      — Modules matching a name across all courses
  search_files          — Files matching a filename across all courses
  get_course_documents  — Every file-bearing module of one course
  get_module_files      — Files of a single module
  download_file         — Authenticated link and metadata for a file (no body)

Every call returns a JSON text block; any failure becomes an isError result.
"""

from typing import Any, Dict, List, Optional

from moodle_mcp.errors import MoodleError
from moodle_mcp.moodle import views
from moodle_mcp.moodle.client import MoodleClient
from moodle_mcp.server.protocol import json_result, error_result
from moodle_mcp.server.logger import get_logger
from moodle_mcp.tools.arguments import (
    CourseArguments,
    DownloadArguments,
    ModuleArguments,
    NoArguments,
    SearchArguments,
    parse_arguments,
)

log = get_logger("tools.moodle")

_client: Optional[MoodleClient] = None


def set_client(client: Optional[MoodleClient]):
    """Called by the CLI to inject the shared Moodle client."""
    global _client
    _client = client


def _require_client() -> MoodleClient:
    if _client is None:
        raise MoodleError("Moodle client not configured")
    return _client


_COURSE_ID = {
    "type": "number",
    "description": "The ID of the course",
}

_LIMIT = {
    "type": "number",
    "description": "Maximum number of results to return (default: 50, max: 200)",
    "default": 50,
}

TOOLS: List[Dict[str, Any]] = [
    {
        "name": "list_courses",
        "description": "List all courses the user is enrolled in",
        "inputSchema": {
            "type": "object",
            "properties": {},
        },
    },
    {
        "name": "get_course_contents",
        "description": "Get all contents (sections, modules, resources) of a specific course",
        "inputSchema": {
            "type": "object",
            "properties": {"courseId": _COURSE_ID},
            "required": ["courseId"],
        },
    },
    {
        "name": "search_resources",
        "description": (
            "Search for resources by name across all enrolled courses. "
            "Returns results with download URLs that can be used directly."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search query to match against resource names",
                },
                "limit": _LIMIT,
            },
            "required": ["query"],
        },
    },
    {
        "name": "search_files",
        "description": (
            "Search for files by filename across all enrolled courses. "
            "Returns file details including download URLs."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search query to match against filenames",
                },
                "limit": _LIMIT,
            },
            "required": ["query"],
        },
    },
    {
        "name": "get_course_documents",
        "description": "Get all documents and files from a specific course with their download URLs",
        "inputSchema": {
            "type": "object",
            "properties": {"courseId": _COURSE_ID},
            "required": ["courseId"],
        },
    },
    {
        "name": "get_module_files",
        "description": "Get the files attached to one module (activity or resource) of a course",
        "inputSchema": {
            "type": "object",
            "properties": {
                "courseId": _COURSE_ID,
                "moduleId": {
                    "type": "number",
                    "description": "The ID of the module within the course",
                },
            },
            "required": ["courseId", "moduleId"],
        },
    },
    {
        "name": "download_file",
        "description": (
            "Get an authenticated download link plus filename, size and MIME type "
            "for a Moodle file URL. The file body is not transferred."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "fileUrl": {
                    "type": "string",
                    "description": "A file URL as returned by the other tools",
                },
            },
            "required": ["fileUrl"],
        },
    },
]


async def handle_tool(name: str, args: Dict[str, Any]) -> Dict[str, Any]:
    handlers = {
        "list_courses": _list_courses,
        "get_course_contents": _get_course_contents,
        "search_resources": _search_resources,
        "search_files": _search_files,
        "get_course_documents": _get_course_documents,
        "get_module_files": _get_module_files,
        "download_file": _download_file,
    }

    try:
        request = parse_arguments(name, args)
        payload = await handlers[name](request)
        return json_result(payload)
    except MoodleError as exc:
        log.warning(f"Tool {name} failed: {exc.message}")
        return error_result(exc.message)
    except Exception as exc:
        log.error(f"Tool {name} failed: {exc}", exc_info=True)
        return error_result(str(exc))


async def _list_courses(request: NoArguments) -> Dict:
    courses = await views.get_user_courses_simplified(_require_client())
    return {"count": len(courses), "courses": courses}


async def _get_course_contents(request: CourseArguments) -> Dict:
    sections = await views.get_course_contents_simplified(_require_client(), request.course_id)
    return {"courseId": request.course_id, "sections": sections}


def _search_payload(request: SearchArguments, key: str, report: views.ScanReport) -> Dict:
    payload = {
        "query": request.query,
        "limit": request.limit,
        "count": len(report.results),
        key: report.results,
    }
    if report.skipped:
        payload["skippedCourses"] = report.skipped
    return payload


async def _search_resources(request: SearchArguments) -> Dict:
    report = await views.search_resources(_require_client(), request.query, request.limit)
    return _search_payload(request, "results", report)


async def _search_files(request: SearchArguments) -> Dict:
    report = await views.search_files(_require_client(), request.query, request.limit)
    return _search_payload(request, "files", report)


async def _get_course_documents(request: CourseArguments) -> Dict:
    documents = await views.get_course_documents(_require_client(), request.course_id)
    return {
        "courseId": request.course_id,
        "documentsCount": len(documents),
        "documents": documents,
    }


async def _get_module_files(request: ModuleArguments) -> Dict:
    return await views.get_module_files(_require_client(), request.course_id, request.module_id)


async def _download_file(request: DownloadArguments) -> Dict:
    return await _require_client().get_file_info(request.file_url)
