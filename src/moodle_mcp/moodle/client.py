"""
Moodle API Client — session handling and web-service calls

Handles:
- Token login against login/token.php (once per session)
- Generic REST calls to webservice/rest/server.php with Moodle's
  flat array/object parameter convention
- Authenticated pluginfile URLs, HEAD file lookups and downloads

Every remote failure surfaces as AuthenticationError or RemoteCallError;
raw httpx exceptions never leave this module.
"""

import asyncio
import base64
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote, unquote, urlsplit, urlunsplit

import httpx
import pydantic

from moodle_mcp.errors import AuthenticationError, RemoteCallError
from moodle_mcp.moodle.models import Course, MoodleModel, Section, SiteInfo
from moodle_mcp.server.logger import get_logger

log = get_logger("moodle.client")

TOKEN_PATH = "/login/token.php"
REST_PATH = "/webservice/rest/server.php"
DEFAULT_SERVICE = "moodle_mobile_app"
DEFAULT_MIMETYPE = "application/octet-stream"

_FILENAME_STAR_RE = re.compile(r"filename\*\s*=\s*(?:[\w-]+'[\w-]*')?\"?([^\";]+)\"?", re.IGNORECASE)
_FILENAME_RE = re.compile(r"filename\s*=\s*\"?([^\";]+)\"?", re.IGNORECASE)


@dataclass
class MoodleSettings:
    url: str
    username: str
    password: str
    service: str = DEFAULT_SERVICE
    timeout: float = 30.0

    @property
    def base_url(self) -> str:
        return self.url.rstrip("/")


def flatten_params(params: Optional[Dict[str, Any]]) -> List[Tuple[str, str]]:
    """
    Flatten nested parameters into Moodle's query convention.

    {"tags": ["a", "b"], "opts": {"x": 1}} ->
        [("tags[0]", "a"), ("tags[1]", "b"), ("opts[x]", "1")]
    """
    pairs: List[Tuple[str, str]] = []
    for key, value in (params or {}).items():
        _flatten_into(pairs, key, value)
    return pairs


def _flatten_into(pairs: List[Tuple[str, str]], prefix: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            _flatten_into(pairs, f"{prefix}[{index}]", item)
    elif isinstance(value, dict):
        for sub_key, sub_value in value.items():
            _flatten_into(pairs, f"{prefix}[{sub_key}]", sub_value)
    elif isinstance(value, bool):
        pairs.append((prefix, "1" if value else "0"))
    else:
        pairs.append((prefix, str(value)))


def with_token(url: str, token: str) -> str:
    """
    Return url with exactly one token query parameter set to token.
    Other query segments are kept byte-for-byte.
    """
    try:
        parts = urlsplit(url)
    except ValueError as exc:
        raise RemoteCallError(f"Malformed file URL {url!r}: {exc}") from exc
    segments = [
        segment for segment in parts.query.split("&")
        if segment and unquote(segment.split("=", 1)[0]) != "token"
    ]
    segments.append(f"token={quote(token, safe='')}")
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "&".join(segments), parts.fragment))


def filename_from_response(url: str, content_disposition: Optional[str]) -> str:
    """Filename from a Content-Disposition header, else the URL's last path segment."""
    if content_disposition:
        match = _FILENAME_STAR_RE.search(content_disposition)
        if match:
            return unquote(match.group(1).strip())
        match = _FILENAME_RE.search(content_disposition)
        if match:
            return match.group(1).strip()
    segment = urlsplit(url).path.rstrip("/").rsplit("/", 1)[-1]
    return unquote(segment) or "download"


def _validate(wsfunction: str, model, data: Any) -> MoodleModel:
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        log.error(f"{wsfunction} returned an unexpected payload: {exc}")
        raise RemoteCallError(
            f"Unexpected response from {wsfunction}: "
            f"{exc.error_count()} field(s) did not match {model.__name__}"
        ) from exc


def _validate_list(wsfunction: str, model, data: Any) -> list:
    if data is None:
        return []
    if not isinstance(data, list):
        raise RemoteCallError(f"Unexpected response from {wsfunction}: expected a list")
    return [_validate(wsfunction, model, item) for item in data]


def _mimetype(content_type: Optional[str]) -> str:
    if not content_type:
        return DEFAULT_MIMETYPE
    return content_type.split(";", 1)[0].strip() or DEFAULT_MIMETYPE


class MoodleClient:
    """
    Moodle web-service client.

    Usage:
        async with MoodleClient(settings) as client:
            courses = await client.get_user_courses()

    The session token lives on the instance. It is fetched lazily on the
    first call and kept until clear_session() is called.
    """

    def __init__(self, settings: MoodleSettings, http: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            timeout=settings.timeout,
            follow_redirects=True,
        )
        self._token: Optional[str] = None
        self._auth_lock = asyncio.Lock()

    @property
    def base_url(self) -> str:
        return self.settings.base_url

    @property
    def token(self) -> Optional[str]:
        return self._token

    def clear_session(self):
        """Drop the current token; the next call logs in again."""
        self._token = None

    # -- authentication --

    async def authenticate(self) -> str:
        """Log in with the configured credentials and store the session token."""
        self._token = None
        url = f"{self.base_url}{TOKEN_PATH}"
        form = {
            "username": self.settings.username,
            "password": self.settings.password,
            "service": self.settings.service,
        }

        try:
            response = await self._http.post(url, data=form)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            log.error(f"Authentication request failed: {exc}")
            raise AuthenticationError(f"Authentication failed: {exc}") from exc
        except ValueError as exc:
            log.error(f"Authentication response was not JSON: {exc}")
            raise AuthenticationError(f"Authentication failed: invalid response ({exc})") from exc

        if not isinstance(data, dict):
            raise AuthenticationError("Authentication failed: unexpected response")

        if data.get("error"):
            errorcode = data.get("errorcode")
            detail = f"{data['error']} ({errorcode})" if errorcode else data["error"]
            log.warning(f"Moodle rejected login for {self.settings.username}: {detail}")
            raise AuthenticationError(
                f"Moodle authentication error: {detail}", errorcode=errorcode,
            )

        token = data.get("token")
        if not token:
            raise AuthenticationError("No token received from Moodle")

        self._token = token
        log.info(f"Authenticated as {self.settings.username} (service={self.settings.service})")
        return token

    async def ensure_authenticated(self):
        """Log in if no session token is held. Never re-validates a held token."""
        if self._token:
            return
        async with self._auth_lock:
            if not self._token:
                await self.authenticate()

    # -- generic web-service call --

    async def call_function(self, wsfunction: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Invoke a named web-service function and return its decoded result."""
        await self.ensure_authenticated()

        query: List[Tuple[str, str]] = [
            ("wstoken", self._token),
            ("wsfunction", wsfunction),
            ("moodlewsrestformat", "json"),
        ]
        query.extend(flatten_params(params))

        log.debug(f"Calling {wsfunction} ({len(query) - 3} params)")
        try:
            response = await self._http.get(f"{self.base_url}{REST_PATH}", params=query)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            log.error(f"{wsfunction} transport failure: {exc}")
            raise RemoteCallError(f"API call failed: {exc}") from exc
        except ValueError as exc:
            log.error(f"{wsfunction} returned invalid JSON: {exc}")
            raise RemoteCallError(f"API call failed: invalid JSON from {wsfunction}") from exc

        if isinstance(data, dict) and ("exception" in data or "errorcode" in data):
            errorcode = data.get("errorcode")
            message = data.get("message") or errorcode or data.get("exception")
            log.warning(f"{wsfunction} remote error: {errorcode}: {message}")
            raise RemoteCallError(
                f"Moodle API error: {message} ({errorcode})" if errorcode else f"Moodle API error: {message}",
                errorcode=errorcode,
            )

        return data

    # -- typed operations --

    async def get_site_info(self) -> SiteInfo:
        data = await self.call_function("core_webservice_get_site_info")
        return _validate("core_webservice_get_site_info", SiteInfo, data)

    async def get_current_user_id(self) -> int:
        site_info = await self.get_site_info()
        return site_info.userid

    async def get_user_courses(self) -> List[Course]:
        """All courses the authenticated user is enrolled in."""
        user_id = await self.get_current_user_id()
        data = await self.call_function("core_enrol_get_users_courses", {"userid": user_id})
        return _validate_list("core_enrol_get_users_courses", Course, data)

    async def get_all_courses(self) -> List[Course]:
        """Every course visible to the web-service user."""
        data = await self.call_function("core_course_get_courses")
        return _validate_list("core_course_get_courses", Course, data)

    async def get_course_contents(self, course_id: int) -> List[Section]:
        """Sections of a course with their modules and file contents."""
        data = await self.call_function("core_course_get_contents", {"courseid": course_id})
        return _validate_list("core_course_get_contents", Section, data)

    # -- files --

    def authenticated_url(self, url: str) -> str:
        if not self._token:
            raise AuthenticationError("Not authenticated: no session token")
        return with_token(url, self._token)

    async def get_file_info(self, file_url: str) -> Dict[str, Any]:
        """
        Probe a file with a HEAD request.
        Returns filename, size, MIME type and the authenticated URL without
        transferring the body.
        """
        await self.ensure_authenticated()
        download_url = self.authenticated_url(file_url)

        try:
            response = await self._http.head(download_url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            log.error(f"File info request failed: {exc}")
            raise RemoteCallError(f"File info request failed: {exc}") from exc

        length = response.headers.get("content-length")
        return {
            "filename": filename_from_response(file_url, response.headers.get("content-disposition")),
            "filesize": int(length) if length and length.isdigit() else None,
            "mimetype": _mimetype(response.headers.get("content-type")),
            "downloadUrl": download_url,
        }

    async def download_file(self, download_url: str) -> bytes:
        """Fetch the full body of a file."""
        content, _ = await self._fetch(download_url)
        return content

    async def get_file_content(self, download_url: str) -> Dict[str, str]:
        """Fetch a file and return it base64-encoded with its MIME type."""
        content, mimetype = await self._fetch(download_url)
        return {
            "content": base64.b64encode(content).decode("ascii"),
            "mimeType": mimetype,
        }

    async def _fetch(self, url: str) -> Tuple[bytes, str]:
        await self.ensure_authenticated()
        try:
            response = await self._http.get(self.authenticated_url(url))
            response.raise_for_status()
        except httpx.HTTPError as exc:
            log.error(f"File download failed: {exc}")
            raise RemoteCallError(f"File download failed: {exc}") from exc
        return response.content, _mimetype(response.headers.get("content-type"))

    # -- lifecycle --

    async def aclose(self):
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "MoodleClient":
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        await self.aclose()
