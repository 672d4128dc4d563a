"""Session key to workspace directory resolution."""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from taskboard.config import TaskboardConfig

_AGENT_ID_UNSAFE = re.compile(r"[^a-z0-9_-]+")


def normalize_agent_id(value: str) -> str:
    """Lowercase an agent id and replace characters unsafe in a directory name."""
    return _AGENT_ID_UNSAFE.sub("-", value.strip().lower()).strip("-")


def resolve_agent_id(session_key: str | None, default_agent: str) -> str:
    """Extract the agent id from a session key.

    Session keys look like ``agent:<id>`` optionally followed by more
    ``:``-separated parts. Anything else belongs to the default agent.
    """
    if session_key:
        parts = session_key.strip().split(":")
        if len(parts) >= 2 and parts[0].lower() == "agent" and parts[1].strip():
            agent_id = normalize_agent_id(parts[1])
            if agent_id:
                return agent_id
    return normalize_agent_id(default_agent) or "main"


def resolve_workspace(config: TaskboardConfig, session_key: str | None = None) -> Path:
    """Return the workspace directory for a session key."""
    return Path(config.workspace_root) / resolve_agent_id(session_key, config.default_agent)
