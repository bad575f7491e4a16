from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Union

import httpx

DEFAULT_CONCURRENCY = 10
DEFAULT_TIMEOUT_SEC = 10.0
DEFAULT_PLACEHOLDER = "{{conversationId}}"
DEFAULT_CREATE_BODY = '{"title":"new conversation"}'
DEFAULT_MESSAGE_BODY_TEMPLATE = '{"conversationId":"{{conversationId}}","content":"Hello!"}'

Body = Union[str, Mapping[str, Any], list[Any], None]


class ConfigError(ValueError):
    """Raised before a run starts when its configuration is unusable."""


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"

    @classmethod
    def parse(cls, value: str | HttpMethod) -> HttpMethod:
        if isinstance(value, HttpMethod):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            msg = f"method must be one of: {valid} (got {value!r})"
            raise ConfigError(msg) from None


@dataclass(frozen=True, slots=True)
class StopCondition:
    duration_sec: float | None = None
    total: int | None = None

    def __post_init__(self) -> None:
        if self.duration_sec is not None and self.total is not None:
            msg = "duration and total count cannot be used together"
            raise ConfigError(msg)
        if self.duration_sec is None and self.total is None:
            msg = "either a duration or a total count is required"
            raise ConfigError(msg)
        if self.duration_sec is not None and self.duration_sec <= 0:
            msg = "duration must be a positive number"
            raise ConfigError(msg)
        if self.total is not None and self.total <= 0:
            msg = "total count must be a positive integer"
            raise ConfigError(msg)

    @property
    def is_duration(self) -> bool:
        return self.duration_sec is not None

    def to_metadata(self) -> Mapping[str, Any]:
        return {"duration_sec": self.duration_sec, "total": self.total}


@dataclass(frozen=True, slots=True)
class TargetConfig:
    url: str
    method: HttpMethod = HttpMethod.GET
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Body = None
    timeout_sec: float = DEFAULT_TIMEOUT_SEC

    def __post_init__(self) -> None:
        _check_url(self.url, "url")
        object.__setattr__(self, "method", HttpMethod.parse(self.method))
        _check_timeout(self.timeout_sec)

    def to_metadata(self) -> Mapping[str, Any]:
        return {
            "url": self.url,
            "method": self.method.value,
            "headers": dict(self.headers),
            "body": self.body,
            "timeout_sec": self.timeout_sec,
        }


@dataclass(frozen=True, slots=True)
class RunConfig:
    target: TargetConfig
    stop: StopCondition
    concurrency: int = DEFAULT_CONCURRENCY
    run_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    notes: str = ""

    def __post_init__(self) -> None:
        _check_concurrency(self.concurrency)

    def to_metadata(self) -> Mapping[str, Any]:
        return {
            "mode": "single",
            "run_id": self.run_id or "",
            "created_at": self.created_at.isoformat(),
            "concurrency": self.concurrency,
            "notes": self.notes,
            "stop": self.stop.to_metadata(),
            "target": self.target.to_metadata(),
        }


@dataclass(frozen=True, slots=True)
class ScenarioConfig:
    create_url: str
    message_url: str
    stop: StopCondition
    headers: Mapping[str, str] = field(default_factory=dict)
    create_body: str = DEFAULT_CREATE_BODY
    message_body_template: str = DEFAULT_MESSAGE_BODY_TEMPLATE
    messages_per_conversation: int = 3
    placeholder: str = DEFAULT_PLACEHOLDER
    id_field: str = "id"
    concurrency: int = DEFAULT_CONCURRENCY
    timeout_sec: float = DEFAULT_TIMEOUT_SEC
    run_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    notes: str = ""

    def __post_init__(self) -> None:
        _check_url(self.create_url, "create url")
        _check_url(self.message_url, "message url")
        if self.messages_per_conversation < 0:
            msg = "messages per conversation cannot be negative"
            raise ConfigError(msg)
        if not self.placeholder:
            msg = "placeholder token cannot be empty"
            raise ConfigError(msg)
        _check_concurrency(self.concurrency)
        _check_timeout(self.timeout_sec)

    def to_metadata(self) -> Mapping[str, Any]:
        return {
            "mode": "scenario",
            "run_id": self.run_id or "",
            "created_at": self.created_at.isoformat(),
            "concurrency": self.concurrency,
            "notes": self.notes,
            "stop": self.stop.to_metadata(),
            "create_url": self.create_url,
            "message_url": self.message_url,
            "headers": dict(self.headers),
            "create_body": self.create_body,
            "message_body_template": self.message_body_template,
            "messages_per_conversation": self.messages_per_conversation,
            "placeholder": self.placeholder,
            "id_field": self.id_field,
            "timeout_sec": self.timeout_sec,
        }


def _check_concurrency(concurrency: int) -> None:
    if not isinstance(concurrency, int) or concurrency < 1:
        msg = "concurrency must be a positive integer"
        raise ConfigError(msg)


def _check_timeout(timeout_sec: float) -> None:
    if timeout_sec <= 0:
        msg = "timeout must be positive"
        raise ConfigError(msg)


def _check_url(url: str, name: str) -> None:
    if not url or not isinstance(url, str):
        msg = f"{name} is required and must be a string"
        raise ConfigError(msg)
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        msg = f"{name} is not a valid URL ({url!r}): {exc}"
        raise ConfigError(msg) from exc
    if parsed.scheme not in ("http", "https") or not parsed.host:
        msg = f"{name} must be an absolute http(s) URL, got {url!r}"
        raise ConfigError(msg)
