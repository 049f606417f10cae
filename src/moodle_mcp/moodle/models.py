"""Pydantic models for the Moodle web-service payloads we read."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class MoodleModel(BaseModel):
    """Remote payloads carry many more fields than we use; keep them."""

    model_config = ConfigDict(extra="allow")


class Course(MoodleModel):
    """An enrolled course from core_enrol_get_users_courses."""

    id: int
    shortname: str = ""
    fullname: str = ""
    displayname: Optional[str] = None
    enrolledusercount: Optional[int] = None
    visible: Optional[int] = None
    summary: Optional[str] = None
    format: Optional[str] = None
    category: Optional[int] = None
    progress: Optional[float] = None
    completed: Optional[bool] = None
    startdate: Optional[int] = None
    enddate: Optional[int] = None
    lastaccess: Optional[int] = None


class Content(MoodleModel):
    """A file or embedded item attached to a module."""

    type: str = "file"
    filename: str = ""
    filepath: Optional[str] = None
    filesize: int = 0
    fileurl: str = ""
    mimetype: Optional[str] = None
    timecreated: Optional[int] = None
    timemodified: Optional[int] = None
    author: Optional[str] = None
    license: Optional[str] = None

    @property
    def is_file(self) -> bool:
        return self.type == "file" and bool(self.fileurl)


class ContentsInfo(MoodleModel):
    filescount: int = 0
    filessize: int = 0
    lastmodified: Optional[int] = None
    mimetypes: List[str] = []
    repositorytype: Optional[str] = None


class Module(MoodleModel):
    """A single activity or resource inside a section."""

    id: int
    name: str = ""
    modname: str = ""
    url: Optional[str] = None
    visible: Optional[int] = None
    uservisible: Optional[bool] = None
    contents: List[Content] = []
    contentsinfo: Optional[ContentsInfo] = None

    @property
    def files(self) -> List[Content]:
        return [c for c in self.contents if c.is_file]


class Section(MoodleModel):
    """Ordered group of modules within a course."""

    id: int
    name: str = ""
    visible: Optional[int] = None
    summary: Optional[str] = None
    section: Optional[int] = None
    uservisible: Optional[bool] = None
    modules: List[Module] = []


class SiteInfo(MoodleModel):
    """Subset of core_webservice_get_site_info."""

    userid: int
    username: Optional[str] = None
    fullname: Optional[str] = None
    sitename: Optional[str] = None
    siteurl: Optional[str] = None
    release: Optional[str] = None
