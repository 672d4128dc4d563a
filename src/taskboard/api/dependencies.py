"""FastAPI dependencies for dependency injection."""

from __future__ import annotations

from collections.abc import Generator  # noqa: TC003
from typing import Annotated

from fastapi import Depends

from taskboard.board import TicketBoard
from taskboard.config import TaskboardConfig
from taskboard.workspace import resolve_agent_id, resolve_workspace

# Global config instance (initialized on app startup)
_config: TaskboardConfig | None = None


def init_config(config: TaskboardConfig) -> TaskboardConfig:
    """Initialize the global TaskboardConfig instance."""
    global _config  # noqa: PLW0603
    _config = config
    return _config


def close_config() -> None:
    """Release the global TaskboardConfig instance."""
    global _config  # noqa: PLW0603
    _config = None


def get_config() -> Generator[TaskboardConfig, None, None]:
    """Dependency that provides the TaskboardConfig instance."""
    if _config is None:
        raise RuntimeError("Config not initialized. Call init_config() first.")
    yield _config


# Type alias for dependency injection
ConfigDep = Annotated[TaskboardConfig, Depends(get_config)]


class BoardContext:
    """Board and caller identity resolved from a request's session key."""

    def __init__(self, config: TaskboardConfig, session_key: str | None) -> None:
        self.config = config
        self.agent_id = resolve_agent_id(session_key, config.default_agent)
        self.workspace_dir = resolve_workspace(config, session_key)
        self.board = TicketBoard(self.workspace_dir)
