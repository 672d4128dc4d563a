"""Configuration loading for taskboard."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from taskboard.board.schemas import DEFAULT_SCHEMA, get_profile

CONFIG_FILE = "taskboard.yaml"
DEFAULT_WORKSPACE_ROOT = "workspaces"
DEFAULT_AGENT = "main"


class ConfigError(Exception):
    """Raised when configuration is invalid."""


@dataclass
class ApiConfig:
    """HTTP API settings."""

    host: str = "127.0.0.1"
    port: int = 8765


@dataclass
class LoggingConfig:
    """Logging settings. A ``None`` level or dir falls back to the environment."""

    level: str | None = None
    dir: str | None = None
    file: str = "taskboard.log"
    max_bytes: int = 5 * 1024 * 1024
    backup_count: int = 3
    console: bool = True


@dataclass
class TaskboardConfig:
    """taskboard configuration.

    Attributes:
        workspace_root: Directory holding one workspace per agent.
        default_agent: Agent used when a session key names none.
        default_schema: Ticket schema for boards created without one.
    """

    workspace_root: Path = field(default_factory=lambda: Path(DEFAULT_WORKSPACE_ROOT))
    default_agent: str = DEFAULT_AGENT
    default_schema: str = DEFAULT_SCHEMA
    api: ApiConfig = field(default_factory=ApiConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any], root_path: Path | None = None) -> TaskboardConfig:
        """Create config from a dictionary.

        Args:
            data: Configuration dictionary from YAML.
            root_path: Directory relative workspace roots are resolved against.

        Raises:
            ConfigError: If a value is invalid.
        """
        workspace_root = Path(data.get("workspace_root", DEFAULT_WORKSPACE_ROOT))
        if root_path is not None and not workspace_root.is_absolute():
            workspace_root = root_path / workspace_root

        default_schema = data.get("default_schema", DEFAULT_SCHEMA)
        try:
            get_profile(default_schema)
        except ValueError as e:
            raise ConfigError(str(e)) from e

        api_data = data.get("api") or {}
        logging_data = data.get("logging") or {}
        try:
            api = ApiConfig(
                host=str(api_data.get("host", ApiConfig.host)),
                port=int(api_data.get("port", ApiConfig.port)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid api settings: {e}") from e

        try:
            logging_config = LoggingConfig(
                level=logging_data.get("level"),
                dir=logging_data.get("dir"),
                file=str(logging_data.get("file", LoggingConfig.file)),
                max_bytes=int(logging_data.get("max_bytes", LoggingConfig.max_bytes)),
                backup_count=int(logging_data.get("backup_count", LoggingConfig.backup_count)),
                console=bool(logging_data.get("console", True)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid logging settings: {e}") from e

        return cls(
            workspace_root=workspace_root,
            default_agent=str(data.get("default_agent", DEFAULT_AGENT)),
            default_schema=default_schema,
            api=api,
            logging=logging_config,
        )


def load_config(config_path: Path | str) -> TaskboardConfig:
    """Load configuration from a YAML file.

    Raises:
        ConfigError: If the file doesn't exist or is invalid.
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a YAML mapping, got {type(data).__name__}")

    return TaskboardConfig.from_dict(data, config_path.parent)


def find_config(start_path: Path | str | None = None) -> Path | None:
    """Find taskboard.yaml by walking up the directory tree.

    Returns:
        Path to the config file, or None if there is none.
    """
    current = Path(start_path) if start_path is not None else Path.cwd()
    current = current.resolve()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILE
        if candidate.is_file():
            return candidate
    return None


def get_config(config_path: Path | str | None = None) -> TaskboardConfig:
    """Resolve the effective configuration.

    Order: explicit path, then TASKBOARD_CONFIG, then a taskboard.yaml found
    from the current directory, then defaults. TASKBOARD_WORKSPACE_ROOT
    overrides the workspace root in every case.
    """
    if config_path is None:
        config_path = os.environ.get("TASKBOARD_CONFIG") or find_config()

    config = load_config(config_path) if config_path else TaskboardConfig()

    env_root = os.environ.get("TASKBOARD_WORKSPACE_ROOT")
    if env_root:
        config.workspace_root = Path(env_root)
    return config
