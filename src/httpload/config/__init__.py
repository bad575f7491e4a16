from __future__ import annotations

from httpload.config.loader import (
    build_run_config,
    build_scenario_config,
    load_config_file,
    parse_body,
    parse_headers,
)
from httpload.config.models import (
    ConfigError,
    HttpMethod,
    RunConfig,
    ScenarioConfig,
    StopCondition,
    TargetConfig,
)

__all__ = [
    "ConfigError",
    "HttpMethod",
    "RunConfig",
    "ScenarioConfig",
    "StopCondition",
    "TargetConfig",
    "build_run_config",
    "build_scenario_config",
    "load_config_file",
    "parse_body",
    "parse_headers",
]
