"""
Tool arguments — one request model per tool name

Arguments arrive as a loose JSON object; each tool's model validates and
normalizes it once before dispatch.
"""

from typing import Any, Dict, Type

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from moodle_mcp.errors import UnknownToolError, ValidationError

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def clamp_limit(value: Any) -> int:
    """Default 50, clamped to [0, 200]."""
    if value is None:
        return DEFAULT_LIMIT
    if isinstance(value, bool):
        raise ValueError("limit must be a number")
    try:
        limit = int(float(value))
    except (TypeError, ValueError, OverflowError):
        raise ValueError("limit must be a number")
    return max(0, min(limit, MAX_LIMIT))


class ToolArguments(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class NoArguments(ToolArguments):
    pass


class CourseArguments(ToolArguments):
    course_id: int = Field(alias="courseId")


class ModuleArguments(ToolArguments):
    course_id: int = Field(alias="courseId")
    module_id: int = Field(alias="moduleId")


class SearchArguments(ToolArguments):
    query: str
    limit: int = DEFAULT_LIMIT

    @field_validator("limit", mode="before")
    @classmethod
    def _clamp(cls, value):
        return clamp_limit(value)


class DownloadArguments(ToolArguments):
    file_url: str = Field(alias="fileUrl", min_length=1)


ARGUMENT_MODELS: Dict[str, Type[ToolArguments]] = {
    "list_courses": NoArguments,
    "get_course_contents": CourseArguments,
    "search_resources": SearchArguments,
    "search_files": SearchArguments,
    "get_course_documents": CourseArguments,
    "get_module_files": ModuleArguments,
    "download_file": DownloadArguments,
}


def _describe(exc: pydantic.ValidationError) -> str:
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "arguments"
        problems.append(f"{field}: {error['msg']}")
    return "; ".join(problems)


def parse_arguments(name: str, args: Any) -> ToolArguments:
    """Validate args for tool name; raise UnknownToolError or ValidationError."""
    model = ARGUMENT_MODELS.get(name)
    if model is None:
        raise UnknownToolError(f"Unknown tool: {name}")
    if args is None:
        args = {}
    if not isinstance(args, dict):
        raise ValidationError(f"Invalid arguments for {name}: expected an object")
    try:
        return model.model_validate(args)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid arguments for {name}: {_describe(exc)}") from exc
