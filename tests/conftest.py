"""Shared pytest fixtures and configuration."""

from pathlib import Path

import pytest

from taskboard.board import TicketBoard


# Register custom markers
def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: fast tests with no external dependencies")
    config.addinivalue_line("markers", "integration: component interaction tests")


# Shared fixtures


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """An empty agent workspace directory."""
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def board(workspace: Path) -> TicketBoard:
    """A lean board initialized for project PROJ."""
    tb = TicketBoard(workspace)
    tb.init("proj", "Project")
    return tb


@pytest.fixture
def planning_board(workspace: Path) -> TicketBoard:
    """A planning-schema board initialized for project PLAN."""
    tb = TicketBoard(workspace)
    tb.init("plan", "Planning Project", schema="planning")
    return tb
