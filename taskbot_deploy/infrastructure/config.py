"""
Configuration Module

Architectural Intent:
- Centralized configuration of the provisioning tool itself
- Provides typed access to deployment directory, image, port and
  readiness settings
- Falls back to sensible defaults when the config file is absent
- Environment variables override file-based config

Design Decisions:
- JSON file (taskbot-deploy.json) parsed with the stdlib
- Config is a frozen dataclass for immutability after load
- Nested config sections map to sub-dataclasses
- Operator answers (host, TLS, licence) are NOT tool config; they are
  persisted per deployment by the state repository
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import dataclasses
import json
import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "taskbot-deploy.json"


@dataclass(frozen=True)
class InstallConfig:
    """Deployment directory and compose project."""
    directory: str = "/opt/taskbot"
    project_name: str = "taskbot"


@dataclass(frozen=True)
class ImagesConfig:
    """Container image coordinates."""
    namespace: str = "neaitaskbot"
    tag: str = "1.0"


@dataclass(frozen=True)
class PortsConfig:
    """Default service ports, used when no deployment state overrides them."""
    frontend: int = 3000
    gateway: int = 8080
    api: int = 18902
    api_data: int = 8080
    installer: int = 5000
    mariadb: int = 3306
    redis: int = 6379
    rabbitmq: int = 5672
    mongodb: int = 27017


@dataclass(frozen=True)
class ReadinessConfig:
    """Startup polling after `docker compose up`."""
    timeout_seconds: float = 180.0
    initial_delay: float = 1.0
    max_delay: float = 10.0


@dataclass(frozen=True)
class RemoteConfig:
    """SSH target (user@host:port); empty means the local docker daemon."""
    target: str = ""
    directory: str = ""


@dataclass(frozen=True)
class TelemetryConfig:
    """OpenTelemetry configuration."""
    endpoint: str = ""
    insecure: bool = False


@dataclass(frozen=True)
class TaskbotDeployConfig:
    """Root configuration for taskbot-deploy."""
    install: InstallConfig = field(default_factory=InstallConfig)
    images: ImagesConfig = field(default_factory=ImagesConfig)
    ports: PortsConfig = field(default_factory=PortsConfig)
    readiness: ReadinessConfig = field(default_factory=ReadinessConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        if self.log_level.upper() not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log_level '{self.log_level}'")

    @property
    def logging_level(self) -> int:
        return logging.getLevelNamesMapping()[self.log_level.upper()]


# top-level keys whose names contain the section separator
TOP_LEVEL_KEYS = {"log_level"}


def _env_override(data: dict, prefix: str = "TASKBOT") -> dict:
    """Override config values with environment variables.

    Environment variables follow the pattern TASKBOT_SECTION_KEY.
    For example: TASKBOT_INSTALL_DIRECTORY=/srv/taskbot, TASKBOT_IMAGES_TAG=1.1
    Top-level keys are named in full: TASKBOT_LOG_LEVEL=INFO
    """
    for key, value in os.environ.items():
        if not key.startswith(f"{prefix}_"):
            continue
        name = key[len(prefix) + 1:].lower()
        if name in TOP_LEVEL_KEYS:
            data[name] = value
            continue
        parts = name.split("_", 1)
        if len(parts) == 2:
            section, field_name = parts
            if not isinstance(data.get(section), dict):
                data[section] = {}
            data[section][field_name] = value
        elif len(parts) == 1:
            data[parts[0]] = value
    return data


def _parse_config_file(path: Path) -> dict:
    """Parse a JSON config file. Returns empty dict on failure."""
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}
    except json.JSONDecodeError as e:
        logger.warning("Invalid config file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file %s must contain a JSON object", path)
        return {}
    return data


def _build_sub_config(cls, data: dict):
    """Build a sub-config dataclass from a dict, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}

    # Environment values arrive as strings
    for f in dataclasses.fields(cls):
        if f.name in filtered and isinstance(filtered[f.name], str):
            if f.type == "int":
                filtered[f.name] = int(filtered[f.name])
            elif f.type == "float":
                filtered[f.name] = float(filtered[f.name])
            elif f.type == "bool":
                filtered[f.name] = filtered[f.name].lower() in ("true", "1", "yes")

    return cls(**filtered)


def load_config(
    path: Optional[str] = None,
    env_prefix: str = "TASKBOT",
) -> TaskbotDeployConfig:
    """Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (TASKBOT_SECTION_KEY)
    2. Config file values
    3. Defaults

    Args:
        path: Path to config file (JSON). Defaults to taskbot-deploy.json in CWD.
        env_prefix: Environment variable prefix. Defaults to TASKBOT.
    """
    config_path = Path(path) if path else Path(DEFAULT_CONFIG_FILE)
    data = _parse_config_file(config_path)
    data = _env_override(data, env_prefix)

    return TaskbotDeployConfig(
        install=_build_sub_config(InstallConfig, data.get("install", {})),
        images=_build_sub_config(ImagesConfig, data.get("images", {})),
        ports=_build_sub_config(PortsConfig, data.get("ports", {})),
        readiness=_build_sub_config(ReadinessConfig, data.get("readiness", {})),
        remote=_build_sub_config(RemoteConfig, data.get("remote", {})),
        telemetry=_build_sub_config(TelemetryConfig, data.get("telemetry", {})),
        log_level=str(data.get("log_level", "WARNING")),
    )
