"""
Course views — read-shaping over the two client primitives

get_user_courses() and get_course_contents() are the only remote reads;
everything here projects, filters or scans their results.

Multi-course scans walk courses in listing order and sections/modules in
returned order, one remote fetch at a time. A course whose contents fail to
load or whose matches cannot be built is recorded in ScanReport.skipped,
contributes no results, and the scan moves on.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List

from moodle_mcp.errors import MoodleError, NotFoundError
from moodle_mcp.moodle.client import MoodleClient
from moodle_mcp.moodle.models import Content, Course, Module, Section
from moodle_mcp.server.logger import get_logger

log = get_logger("moodle.views")

DEFAULT_LIMIT = 50

Matcher = Callable[[Course, Section, Module], Iterable[Dict[str, Any]]]


@dataclass
class ScanReport:
    """Partial-success result of a multi-course scan."""

    results: List[Dict[str, Any]] = field(default_factory=list)
    skipped: List[Dict[str, Any]] = field(default_factory=list)
    courses_scanned: int = 0

    def skip(self, course: Course, exc: Exception):
        self.skipped.append({
            "courseId": course.id,
            "courseName": course.fullname,
            "error": str(exc),
        })


def file_view(client: MoodleClient, content: Content) -> Dict[str, Any]:
    return {
        "filename": content.filename,
        "filesize": content.filesize,
        "mimetype": content.mimetype,
        "timecreated": content.timecreated,
        "timemodified": content.timemodified,
        "downloadUrl": client.authenticated_url(content.fileurl),
    }


def course_view(course: Course) -> Dict[str, Any]:
    return {
        "id": course.id,
        "shortname": course.shortname,
        "fullname": course.fullname,
        "displayname": course.displayname or course.fullname,
        "visible": course.visible,
        "progress": course.progress,
        "startdate": course.startdate,
        "enddate": course.enddate,
    }


def module_view(client: MoodleClient, module: Module) -> Dict[str, Any]:
    files = [file_view(client, c) for c in module.files]
    view = {
        "id": module.id,
        "name": module.name,
        "type": module.modname,
        "url": module.url,
        "filesCount": module.contentsinfo.filescount if module.contentsinfo else len(files),
    }
    if files:
        view["files"] = files
    return view


async def get_user_courses_simplified(client: MoodleClient) -> List[Dict[str, Any]]:
    courses = await client.get_user_courses()
    return [course_view(c) for c in courses]


async def get_course_contents_simplified(client: MoodleClient, course_id: int) -> List[Dict[str, Any]]:
    sections = await client.get_course_contents(course_id)
    return [
        {
            "id": section.id,
            "name": section.name,
            "visible": section.visible,
            "modules": [module_view(client, m) for m in section.modules],
        }
        for section in sections
    ]


async def get_course_documents(client: MoodleClient, course_id: int) -> List[Dict[str, Any]]:
    """Every module of a course that carries files, with download URLs."""
    sections = await client.get_course_contents(course_id)
    documents = []
    for section in sections:
        for module in section.modules:
            files = module.files
            if not files:
                continue
            documents.append({
                "sectionName": section.name,
                "moduleId": module.id,
                "moduleName": module.name,
                "moduleType": module.modname,
                "files": [file_view(client, c) for c in files],
            })
    return documents


async def get_module_files(client: MoodleClient, course_id: int, module_id: int) -> Dict[str, Any]:
    sections = await client.get_course_contents(course_id)
    for section in sections:
        for module in section.modules:
            if module.id == module_id:
                return {
                    "courseId": course_id,
                    "sectionName": section.name,
                    "moduleId": module.id,
                    "moduleName": module.name,
                    "moduleType": module.modname,
                    "moduleUrl": module.url,
                    "files": [file_view(client, c) for c in module.files],
                }
    raise NotFoundError(f"Module {module_id} not found in course {course_id}")


async def scan_courses(client: MoodleClient, matcher: Matcher, limit: int = DEFAULT_LIMIT) -> ScanReport:
    """Apply matcher to every module of every enrolled course until limit results."""
    report = ScanReport()
    if limit <= 0:
        return report

    courses = await client.get_user_courses()
    for course in courses:
        try:
            sections = await client.get_course_contents(course.id)
            found = _match_course(course, sections, matcher, limit - len(report.results))
        except MoodleError as exc:
            log.warning(f"Skipping course {course.id} ({course.shortname}): {exc}")
            report.skip(course, exc)
            continue

        report.courses_scanned += 1
        report.results.extend(found)
        if len(report.results) >= limit:
            break
    return report


def _match_course(course: Course, sections: List[Section], matcher: Matcher, remaining: int) -> List[Dict[str, Any]]:
    """Matches within one course, at most remaining of them."""
    found: List[Dict[str, Any]] = []
    for section in sections:
        for module in section.modules:
            for item in matcher(course, section, module):
                found.append(item)
                if len(found) >= remaining:
                    return found
    return found


async def search_resources(client: MoodleClient, query: str, limit: int = DEFAULT_LIMIT) -> ScanReport:
    """Modules whose name contains query (case-insensitive)."""
    needle = query.lower()

    def match(course: Course, section: Section, module: Module):
        if needle not in module.name.lower():
            return
        result = {
            "courseId": course.id,
            "courseName": course.fullname,
            "sectionName": section.name,
            "moduleId": module.id,
            "moduleName": module.name,
            "moduleUrl": module.url,
            "type": module.modname,
        }
        files = [file_view(client, c) for c in module.files]
        if files:
            result["files"] = files
        yield result

    return await scan_courses(client, match, limit)


async def search_files(client: MoodleClient, query: str, limit: int = DEFAULT_LIMIT) -> ScanReport:
    """Files whose filename contains query (case-insensitive)."""
    needle = query.lower()

    def match(course: Course, section: Section, module: Module):
        for content in module.files:
            if needle in content.filename.lower():
                yield {
                    "courseId": course.id,
                    "courseName": course.fullname,
                    "sectionName": section.name,
                    "moduleId": module.id,
                    "moduleName": module.name,
                    **file_view(client, content),
                }

    return await scan_courses(client, match, limit)


async def collect_course_files(client: MoodleClient, limit: int) -> ScanReport:
    """Every file across every enrolled course, capped at limit."""

    def match(course: Course, section: Section, module: Module):
        for content in module.files:
            yield {
                "courseId": course.id,
                "courseName": course.fullname,
                "moduleName": module.name,
                **file_view(client, content),
            }

    return await scan_courses(client, match, limit)
