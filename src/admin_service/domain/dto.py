"""Pydantic DTOs for service inputs."""
from __future__ import annotations

from typing import Annotated, Any

from pydantic import (
    AfterValidator,
    AnyHttpUrl,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError as PydanticValidationError,
)

from admin_service.core.exceptions import ValidationError
from admin_service.domain.enums import TaskType, WebhookStatus
from admin_service.domain.events import is_known_event

_HTTP_URL = TypeAdapter(AnyHttpUrl)


def _strip_required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


def _check_url(value: str) -> str:
    value = value.strip()
    try:
        _HTTP_URL.validate_python(value)
    except PydanticValidationError as exc:
        raise ValueError("must be a valid http(s) URL") from exc
    return value


def _check_events(value: list[str]) -> list[str]:
    events = list(dict.fromkeys(e.strip() for e in value if e and e.strip()))
    unknown = [e for e in events if not is_known_event(e)]
    if unknown:
        raise ValueError(f"unknown events: {', '.join(unknown)}")
    return events


RequiredStr = Annotated[str, AfterValidator(_strip_required)]
HttpUrlStr = Annotated[str, AfterValidator(_check_url)]
EventList = Annotated[list[str], AfterValidator(_check_events)]


def format_errors(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"]) or "body"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def parse_dto(model: type[BaseModel], data: dict[str, Any]) -> Any:
    """Validate ``data`` into ``model``, turning pydantic errors into ValidationError."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(format_errors(exc)) from exc


class ScheduledTaskCreateDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: RequiredStr
    description: str | None = None
    schedule: RequiredStr
    task_type: TaskType = Field(alias="type")
    command: str | None = None


class ScheduledTaskUpdateDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: RequiredStr | None = None
    description: str | None = None
    schedule: RequiredStr | None = None
    task_type: TaskType | None = Field(default=None, alias="type")
    command: str | None = None


class WebhookCreateDTO(BaseModel):
    name: RequiredStr
    url: HttpUrlStr
    events: EventList
    status: WebhookStatus = WebhookStatus.ACTIVE


class WebhookUpdateDTO(BaseModel):
    name: RequiredStr | None = None
    url: HttpUrlStr | None = None
    events: EventList | None = None
    status: WebhookStatus | None = None


class LoginDTO(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
