"""Shared fixtures for Moodle MCP tests."""

import os
from urllib.parse import parse_qs

import httpx
import pytest

from moodle_mcp.moodle.client import MoodleClient, MoodleSettings

BASE_URL = "https://moodle.test"
TOKEN = "tok123"
PASSWORD = "secret"
USER_ID = 7


def file_url(context: int, filename: str) -> str:
    return f"{BASE_URL}/webservice/pluginfile.php/{context}/mod_resource/content/0/{filename}?forcedownload=1"


def _file(context, filename, size, mimetype):
    return {
        "type": "file",
        "filename": filename,
        "filepath": "/",
        "filesize": size,
        "fileurl": file_url(context, filename),
        "mimetype": mimetype,
        "timecreated": 1700000000,
        "timemodified": 1700000500,
        "author": "Teacher",
        "license": "allrightsreserved",
    }


COURSES = [
    {"id": 1, "shortname": "ALG", "fullname": "Algebra", "displayname": "Algebra",
     "visible": 1, "progress": 40.0, "startdate": 1690000000, "enddate": 1710000000},
    {"id": 2, "shortname": "BIO", "fullname": "Biology", "visible": 1},
    {"id": 3, "shortname": "CHEM", "fullname": "Chemistry", "visible": 1},
]

CONTENTS = {
    1: [
        {
            "id": 100, "name": "General", "visible": 1, "summary": "", "summaryformat": 1,
            "section": 0,
            "modules": [
                {
                    "id": 11, "name": "Course report guidelines", "modname": "resource",
                    "url": f"{BASE_URL}/mod/resource/view.php?id=11", "visible": 1,
                    "modicon": "", "modplural": "Files",
                    "contents": [_file(21, "report_template.docx", 2048, "application/msword")],
                    "contentsinfo": {"filescount": 1, "filessize": 2048, "lastmodified": 1700000500,
                                     "mimetypes": ["application/msword"]},
                },
                {
                    "id": 12, "name": "Announcements", "modname": "forum",
                    "url": f"{BASE_URL}/mod/forum/view.php?id=12", "visible": 1,
                    "modicon": "", "modplural": "Forums",
                },
            ],
        },
        {
            "id": 101, "name": "Week 1", "visible": 1, "summary": "", "summaryformat": 1,
            "section": 1,
            "modules": [
                {
                    "id": 13, "name": "Lecture slides", "modname": "resource",
                    "url": f"{BASE_URL}/mod/resource/view.php?id=13", "visible": 1,
                    "modicon": "", "modplural": "Files",
                    "contents": [_file(23, "week1.pdf", 10240, "application/pdf")],
                },
            ],
        },
    ],
    3: [
        {
            "id": 300, "name": "Labs", "visible": 1, "summary": "", "summaryformat": 1,
            "section": 1,
            "modules": [
                {
                    "id": 31, "name": "Lab manual", "modname": "folder",
                    "url": f"{BASE_URL}/mod/folder/view.php?id=31", "visible": 1,
                    "modicon": "", "modplural": "Folders",
                    "contents": [
                        _file(41, "lab_report.pdf", 4096, "application/pdf"),
                        _file(41, "safety.pdf", 1024, "application/pdf"),
                    ],
                },
                {
                    "id": 32, "name": "Report portal", "modname": "url",
                    "url": f"{BASE_URL}/mod/url/view.php?id=32", "visible": 1,
                    "modicon": "", "modplural": "URLs",
                    "contents": [{
                        "type": "url", "filename": "Report portal", "filesize": 0,
                        "fileurl": "https://example.org/report",
                        "timecreated": None, "timemodified": 1700000000,
                    }],
                },
                {
                    "id": 33, "name": "Safety notice", "modname": "label",
                    "visible": 1, "modicon": "", "modplural": "Labels",
                },
            ],
        },
    ],
}

# Course 2 is listed but its contents are not accessible
UNREACHABLE = {2}


class FakeMoodle:
    """In-memory Moodle answering token, REST and pluginfile requests."""

    def __init__(self):
        self.login_count = 0
        self.calls = []
        self.requests = []
        self.fail_transport = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_transport:
            raise httpx.ConnectError("connection refused", request=request)

        path = request.url.path
        if path == "/login/token.php":
            return self._login(request)
        if path == "/webservice/rest/server.php":
            return self._rest(request)
        if path.startswith("/webservice/pluginfile.php/"):
            return self._pluginfile(request)
        return httpx.Response(404, text="not found")

    def _login(self, request):
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        if form.get("password") != PASSWORD:
            return httpx.Response(200, json={
                "error": "Invalid login, please try again",
                "errorcode": "invalidlogin",
            })
        self.login_count += 1
        return httpx.Response(200, json={"token": TOKEN, "privatetoken": None})

    def _rest(self, request):
        params = request.url.params
        wsfunction = params.get("wsfunction")
        self.calls.append((wsfunction, list(params.multi_items())))

        if params.get("wstoken") != TOKEN:
            return httpx.Response(200, json={
                "exception": "moodle_exception",
                "errorcode": "invalidtoken",
                "message": "Invalid token - token not found",
            })

        if wsfunction == "core_webservice_get_site_info":
            return httpx.Response(200, json={
                "userid": USER_ID, "username": "student", "fullname": "Sam Student",
                "sitename": "Test Moodle", "siteurl": BASE_URL,
            })
        if wsfunction == "core_enrol_get_users_courses":
            assert params.get("userid") == str(USER_ID)
            return httpx.Response(200, json=COURSES)
        if wsfunction == "core_course_get_courses":
            return httpx.Response(200, json=COURSES)
        if wsfunction == "core_course_get_contents":
            course_id = int(params.get("courseid"))
            if course_id in UNREACHABLE or course_id not in CONTENTS:
                return httpx.Response(200, json={
                    "exception": "require_login_exception",
                    "errorcode": "requireloginerror",
                    "message": "Course or activity not accessible.",
                })
            return httpx.Response(200, json=CONTENTS[course_id])

        return httpx.Response(200, json={
            "exception": "dml_missing_record_exception",
            "errorcode": "invalidrecord",
            "message": "Can't find data record in database table external_functions.",
        })

    def _pluginfile(self, request):
        if request.url.params.get("token") != TOKEN:
            return httpx.Response(403, text="forbidden")

        filename = request.url.path.rsplit("/", 1)[-1]
        body = f"contents of {filename}".encode()
        headers = {"content-type": "application/pdf; charset=binary"}
        if filename == "week1.pdf":
            headers["content-disposition"] = 'attachment; filename="Week 1 Slides.pdf"'

        if request.method == "HEAD":
            headers["content-length"] = str(len(body))
            return httpx.Response(200, headers=headers)
        return httpx.Response(200, headers=headers, content=body)


@pytest.fixture
def tmp_data_dir(tmp_path):
    """Point the data dir at a temp directory for isolated tests."""
    data_dir = tmp_path / ".moodle-mcp"
    data_dir.mkdir()
    (data_dir / "logs").mkdir()
    os.environ["MOODLE_MCP_DATA_DIR"] = str(data_dir)

    from moodle_mcp import config
    original = (config.Config.DATA_DIR, config.Config.LOG_DIR)
    config.Config.DATA_DIR = data_dir
    config.Config.LOG_DIR = data_dir / "logs"

    yield data_dir

    config.Config.DATA_DIR, config.Config.LOG_DIR = original
    os.environ.pop("MOODLE_MCP_DATA_DIR", None)


@pytest.fixture
def settings():
    return MoodleSettings(url=BASE_URL + "/", username="student", password=PASSWORD)


@pytest.fixture
def fake_moodle():
    return FakeMoodle()


def make_client(fake: FakeMoodle, settings: MoodleSettings) -> MoodleClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(fake.handler), follow_redirects=True)
    return MoodleClient(settings, http=http)


@pytest.fixture
def client(fake_moodle, settings):
    return make_client(fake_moodle, settings)
