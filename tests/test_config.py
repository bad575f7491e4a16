from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from httpload.config import (
    ConfigError,
    HttpMethod,
    RunConfig,
    ScenarioConfig,
    StopCondition,
    TargetConfig,
    build_run_config,
    build_scenario_config,
    load_config_file,
    parse_body,
    parse_headers,
)


def test_stop_condition_is_mutually_exclusive() -> None:
    with pytest.raises(ConfigError):
        StopCondition(duration_sec=5.0, total=10)


def test_stop_condition_requires_one_bound() -> None:
    with pytest.raises(ConfigError):
        StopCondition()


@pytest.mark.parametrize("kwargs", [{"duration_sec": 0.0}, {"duration_sec": -1.0}, {"total": 0}, {"total": -3}])
def test_stop_condition_rejects_non_positive(kwargs: dict[str, float]) -> None:
    with pytest.raises(ConfigError):
        StopCondition(**kwargs)


def test_target_normalizes_method() -> None:
    target = TargetConfig(url="http://svc/users", method="post")
    assert target.method is HttpMethod.POST


def test_target_rejects_unknown_method_and_missing_url() -> None:
    with pytest.raises(ConfigError):
        TargetConfig(url="http://svc", method="TRACE")
    with pytest.raises(ConfigError):
        TargetConfig(url="")


def test_run_config_rejects_bad_concurrency() -> None:
    target = TargetConfig(url="http://svc")
    with pytest.raises(ConfigError):
        RunConfig(target=target, stop=StopCondition(total=1), concurrency=0)


def test_scenario_config_validation() -> None:
    stop = StopCondition(total=1)
    with pytest.raises(ConfigError):
        ScenarioConfig(create_url="", message_url="http://svc/m", stop=stop)
    with pytest.raises(ConfigError):
        ScenarioConfig(create_url="http://svc/c", message_url="http://svc/m", stop=stop, messages_per_conversation=-1)
    with pytest.raises(ConfigError):
        ScenarioConfig(create_url="http://svc/c", message_url="http://svc/m", stop=stop, timeout_sec=0)


def test_build_run_config_defaults() -> None:
    config = build_run_config({"url": "http://svc/health", "totalRequests": 20})
    assert config.target.method is HttpMethod.GET
    assert config.concurrency == 10
    assert config.target.timeout_sec == 10.0
    assert config.stop.total == 20
    assert config.stop.duration_sec is None


def test_cli_overrides_win_over_file_values() -> None:
    file_values = {
        "url": "http://svc/a",
        "method": "GET",
        "concurrency": 4,
        "durationSec": 30,
        "timeoutMs": 2000,
        "headers": {"X-Env": "file"},
    }
    overrides = {"url": "http://svc/b", "concurrency": 8, "headers": None, "timeoutMs": 500}
    config = build_run_config(file_values, overrides)
    assert config.target.url == "http://svc/b"
    assert config.concurrency == 8
    assert config.target.timeout_sec == pytest.approx(0.5)
    assert config.target.headers == {"X-Env": "file"}
    assert config.stop.duration_sec == 30.0


def test_file_with_both_stop_conditions_is_rejected() -> None:
    with pytest.raises(ConfigError):
        build_run_config({"url": "http://svc", "durationSec": 5, "totalRequests": 5})


def test_non_numeric_values_are_rejected() -> None:
    with pytest.raises(ConfigError):
        build_run_config({"url": "http://svc", "totalRequests": "ten"})
    with pytest.raises(ConfigError):
        build_run_config({"url": "http://svc", "totalRequests": 5, "concurrency": 2.5})


def test_get_with_body_logs_warning(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="httpload.config.loader"):
        build_run_config({"url": "http://svc", "totalRequests": 1, "body": {"a": 1}})
    assert "should not carry a body" in caplog.text


def test_build_scenario_config_from_file_values() -> None:
    config = build_scenario_config(
        {
            "createUrl": "http://svc/conversations",
            "messageUrl": "http://svc/messages",
            "totalConversations": 5,
            "messagesPerConversation": 2,
            "createBody": {"title": "load"},
        }
    )
    assert config.stop.total == 5
    assert config.messages_per_conversation == 2
    assert json.loads(config.create_body) == {"title": "load"}
    assert "{{conversationId}}" in config.message_body_template


def test_load_config_file(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"url": "http://svc", "totalRequests": 3}), encoding="utf-8")
    assert load_config_file(path) == {"url": "http://svc", "totalRequests": 3}


def test_load_config_file_errors(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config_file(tmp_path / "missing.json")
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError, match="Invalid JSON"):
        load_config_file(broken)


def test_parse_body_and_headers() -> None:
    assert parse_body('{"a": 1}') == {"a": 1}
    assert parse_body("plain text") == "plain text"
    assert parse_headers('{"Authorization": "Bearer x"}') == {"Authorization": "Bearer x"}
    with pytest.raises(ConfigError):
        parse_headers("not-json")


def test_to_metadata_is_json_serializable() -> None:
    config = build_run_config({"url": "http://svc", "durationSec": 1, "body": {"k": "v"}})
    metadata = json.loads(json.dumps(config.to_metadata()))
    assert metadata["mode"] == "single"
    assert metadata["target"]["body"] == {"k": "v"}


@pytest.mark.parametrize(
    "url",
    ["http://localhost:99999/", "http://[::1/", "ftp://svc/file", "/relative/path", "svc", "http://"],
)
def test_malformed_urls_rejected_before_run(url: str) -> None:
    with pytest.raises(ConfigError):
        TargetConfig(url=url)
    with pytest.raises(ConfigError):
        ScenarioConfig(create_url=url, message_url="http://svc/m", stop=StopCondition(total=1))
    with pytest.raises(ConfigError):
        ScenarioConfig(create_url="http://svc/c", message_url=url, stop=StopCondition(total=1))


def test_https_and_port_urls_accepted() -> None:
    assert TargetConfig(url="https://api.example.com:8443/v1").url == "https://api.example.com:8443/v1"


@pytest.mark.parametrize(
    "values",
    [
        {"url": "http://svc", "totalRequests": 1, "timeoutMs": 0},
        {"url": "http://svc", "durationSec": 0},
        {"url": "http://svc", "totalRequests": 0},
        {"url": "http://svc", "totalRequests": 2.5},
        {"url": "http://svc", "durationSec": 0, "totalRequests": 5},
    ],
)
def test_zero_and_fractional_values_are_not_ignored(values: dict[str, object]) -> None:
    with pytest.raises(ConfigError):
        build_run_config(values)


def test_fractional_conversation_total_rejected() -> None:
    with pytest.raises(ConfigError):
        build_scenario_config(
            {"createUrl": "http://svc/c", "messageUrl": "http://svc/m", "totalConversations": 1.5}
        )
