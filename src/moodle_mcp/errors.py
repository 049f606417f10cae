"""
Error taxonomy

  MoodleError
    AuthenticationError  — bad credentials, missing token, login transport failure
    RemoteCallError      — transport failure or remote exception in a web-service call
    NotFoundError        — course/module absent from a fetched result set
    ValidationError      — missing or malformed tool argument
    UnknownToolError     — tool name not in the catalog
  ConfigError            — required connection settings absent at startup
"""

from typing import Optional


class MoodleError(Exception):
    """Base class for every error surfaced to the tool dispatcher."""

    def __init__(self, message: str, errorcode: Optional[str] = None):
        self.message = message
        self.errorcode = errorcode
        super().__init__(message)


class AuthenticationError(MoodleError):
    """Login against the token endpoint failed."""


class RemoteCallError(MoodleError):
    """A web-service function call failed."""


APIError = RemoteCallError


class NotFoundError(MoodleError):
    """Requested entity is not part of the fetched result."""


class ValidationError(MoodleError):
    """Tool arguments did not match the declared input shape."""


class UnknownToolError(MoodleError):
    """No tool with the requested name is registered."""


class ConfigError(Exception):
    """Server configuration is incomplete."""
