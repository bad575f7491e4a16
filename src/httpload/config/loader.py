"""Build run configurations from a JSON file and command-line overrides.

File keys use the camelCase names of the report format (``durationSec``,
``totalRequests``, ``timeoutMs``...). Overrides win over file values and are
expected to be already parsed (numbers as numbers, headers as a mapping).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping

from httpload.config.models import (
    DEFAULT_CONCURRENCY,
    DEFAULT_CREATE_BODY,
    DEFAULT_MESSAGE_BODY_TEMPLATE,
    DEFAULT_PLACEHOLDER,
    DEFAULT_TIMEOUT_SEC,
    ConfigError,
    HttpMethod,
    RunConfig,
    ScenarioConfig,
    StopCondition,
    TargetConfig,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = int(DEFAULT_TIMEOUT_SEC * 1000)


def load_config_file(path: str | Path) -> dict[str, Any]:
    full_path = Path(path).resolve()
    if not full_path.exists():
        msg = f"Configuration file not found: {full_path}"
        raise ConfigError(msg)
    try:
        content = json.loads(full_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        msg = f"Invalid JSON in {full_path}: {exc}"
        raise ConfigError(msg) from exc
    except OSError as exc:
        msg = f"Could not read configuration file {full_path}: {exc}"
        raise ConfigError(msg) from exc
    if not isinstance(content, dict):
        msg = f"Configuration file {full_path} must contain a JSON object"
        raise ConfigError(msg)
    return content


def merge_values(file_values: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(file_values)
    for key, value in overrides.items():
        if value is not None:
            merged[key] = value
    return merged


def build_run_config(
    file_values: Mapping[str, Any] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> RunConfig:
    values = merge_values(file_values or {}, overrides or {})
    method = HttpMethod.parse(values.get("method") or HttpMethod.GET)
    body = values.get("body")
    if method is HttpMethod.GET and body:
        logger.warning("GET requests normally should not carry a body")
    target = TargetConfig(
        url=values.get("url") or "",
        method=method,
        headers=_headers(values.get("headers")),
        body=body,
        timeout_sec=_timeout_sec(values),
    )
    return RunConfig(
        target=target,
        stop=_stop_condition(values, count_key="totalRequests"),
        concurrency=_int(values, "concurrency", DEFAULT_CONCURRENCY),
        run_id=values.get("runId"),
        notes=values.get("notes") or "",
    )


def build_scenario_config(
    file_values: Mapping[str, Any] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ScenarioConfig:
    values = merge_values(file_values or {}, overrides or {})
    return ScenarioConfig(
        create_url=values.get("createUrl") or "",
        message_url=values.get("messageUrl") or "",
        stop=_stop_condition(values, count_key="totalConversations"),
        headers=_headers(values.get("headers")),
        create_body=_text(values.get("createBody"), DEFAULT_CREATE_BODY),
        message_body_template=_text(values.get("messageBodyTemplate"), DEFAULT_MESSAGE_BODY_TEMPLATE),
        messages_per_conversation=_int(values, "messagesPerConversation", 3),
        placeholder=values.get("placeholder") or DEFAULT_PLACEHOLDER,
        id_field=values.get("idField") or "id",
        concurrency=_int(values, "concurrency", DEFAULT_CONCURRENCY),
        timeout_sec=_timeout_sec(values),
        run_id=values.get("runId"),
        notes=values.get("notes") or "",
    )


def parse_body(raw: str) -> Any:
    """Interpret a command-line body as JSON, falling back to the raw text."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def parse_headers(raw: str) -> dict[str, str]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        msg = f"headers must be a JSON object: {exc}"
        raise ConfigError(msg) from exc
    return _headers(parsed)


def _headers(value: Any) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        msg = "headers must be a JSON object of strings"
        raise ConfigError(msg)
    return {str(k): str(v) for k, v in value.items()}


def _stop_condition(values: Mapping[str, Any], count_key: str) -> StopCondition:
    duration = values.get("durationSec")
    return StopCondition(
        duration_sec=float(_number(duration, "durationSec")) if duration is not None else None,
        total=_int(values, count_key, None),
    )


def _timeout_sec(values: Mapping[str, Any]) -> float:
    timeout_ms = values.get("timeoutMs")
    if timeout_ms is None:
        timeout_ms = DEFAULT_TIMEOUT_MS
    return float(_number(timeout_ms, "timeoutMs")) / 1000.0


def _int(values: Mapping[str, Any], key: str, default: int | None) -> int | None:
    value = values.get(key)
    if value is None:
        return default
    number = _number(value, key)
    if int(number) != number:
        msg = f"{key} must be an integer"
        raise ConfigError(msg)
    return int(number)


def _number(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        msg = f"{key} must be a number"
        raise ConfigError(msg)
    return value


def _text(value: Any, default: str) -> str:
    if value is None:
        return default
    if isinstance(value, str):
        return value
    return json.dumps(value)
