"""CLI entry point for taskboard.

Each board action is a subcommand, e.g. ``taskboard create "Fix bug"`` or
``taskboard move PROJ-001 in-progress``. ``taskboard serve`` runs the RPC
API.
"""

from __future__ import annotations

import functools
import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from taskboard.board import BoardError
from taskboard.config import ConfigError, TaskboardConfig, get_config
from taskboard.logging import setup_logging
from taskboard.tools import BoardTool, ToolInputError
from taskboard.workspace import resolve_agent_id, resolve_workspace


def _load_config(config_path: Path | None) -> TaskboardConfig:
    try:
        return get_config(config_path)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _configure_logging(config: TaskboardConfig, verbose: bool) -> None:
    # Board commands print results on stdout; log lines only when asked for
    setup_logging(config.logging, verbose=verbose, console=verbose)


def _echo_result(result: dict[str, Any], as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(result, indent=2, default=str))
        return
    if result.get("message"):
        click.echo(result["message"])
    if result.get("formatted"):
        click.echo(result["formatted"])
    elif result.get("ticket") and "message" not in result:
        click.echo(json.dumps(result["ticket"], indent=2, default=str))


def board_command(func: Callable[..., dict[str, Any]]) -> Callable[..., None]:
    """Add the shared workspace options and run the returned tool params.

    The wrapped function receives the command's own arguments and returns the
    parameters for one BoardTool action.
    """

    @click.option(
        "-w",
        "--workspace",
        "workspace",
        type=click.Path(file_okay=False, path_type=Path),
        default=None,
        help="Workspace directory (default: resolved from config and session key)",
    )
    @click.option("--session-key", default=None, help="Session key selecting the agent")
    @click.option(
        "-c",
        "--config",
        "config_path",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        default=None,
        help="Path to taskboard.yaml (auto-detected if not specified)",
    )
    @click.option("--json", "as_json", is_flag=True, help="Print the raw result as JSON")
    @click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
    @functools.wraps(func)
    def wrapper(
        workspace: Path | None,
        session_key: str | None,
        config_path: Path | None,
        as_json: bool,
        verbose: bool,
        **kwargs: Any,
    ) -> None:
        config = _load_config(config_path)
        _configure_logging(config, verbose)

        agent_id = resolve_agent_id(session_key, config.default_agent)
        if workspace is None:
            workspace = resolve_workspace(config, session_key)
        tool = BoardTool(workspace, agent_id=agent_id)

        params = func(**kwargs)
        if params.get("action") == "init" and not params.get("schema"):
            params["schema"] = config.default_schema

        try:
            result = tool.execute(params)
        except (BoardError, ToolInputError) as e:
            if as_json:
                click.echo(json.dumps({"status": "error", "message": str(e)}, indent=2))
            else:
                click.echo(f"Error: {e}", err=True)
            sys.exit(1)

        _echo_result(result, as_json)
        if result.get("status") == "error":
            sys.exit(1)

    return wrapper


@click.group()
@click.version_option(package_name="taskboard")
def main() -> None:
    """taskboard - Kanban boards for autonomous agents."""
    pass


@main.command()
@click.argument("project_id")
@click.argument("project_name", required=False)
@click.option(
    "--schema",
    type=click.Choice(["lean", "planning"], case_sensitive=False),
    default=None,
    help="Ticket schema (default: from config)",
)
@board_command
def init(project_id: str, project_name: str | None, schema: str | None) -> dict[str, Any]:
    """Initialize the board."""
    return {
        "action": "init",
        "projectId": project_id,
        "projectName": project_name or project_id,
        "schema": schema,
    }


@main.command()
@board_command
def status() -> dict[str, Any]:
    """Show column counts and board health."""
    return {"action": "status"}


@main.command(name="list")
@click.option("--column", default=None, help="Only tickets in this column")
@click.option("--type", "ticket_type", default=None, help="Only tickets of this type")
@board_command
def list_tickets(column: str | None, ticket_type: str | None) -> dict[str, Any]:
    """List tickets."""
    return {"action": "list", "column": column, "type": ticket_type}


@main.command()
@click.argument("ticket_id")
@board_command
def view(ticket_id: str) -> dict[str, Any]:
    """Show a ticket's full record."""
    return {"action": "view", "ticketId": ticket_id}


@main.command()
@click.argument("title")
@click.option("--type", "ticket_type", default=None, help="Ticket type")
@click.option("--intent", default=None, help="Why this ticket exists")
@click.option("--acceptance-signal", default=None, help="How to tell it is done")
@click.option("--priority", default=None, help="Priority (planning boards)")
@click.option("--parent", "parent_id", default=None, help="Parent ticket ID (planning boards)")
@board_command
def create(
    title: str,
    ticket_type: str | None,
    intent: str | None,
    acceptance_signal: str | None,
    priority: str | None,
    parent_id: str | None,
) -> dict[str, Any]:
    """Create a ticket in the first column."""
    return {
        "action": "create",
        "title": title,
        "ticketType": ticket_type,
        "intent": intent,
        "acceptanceSignal": acceptance_signal,
        "priority": priority,
        "parentId": parent_id,
    }


@main.command()
@click.argument("ticket_id")
@click.option("--title", default=None)
@click.option("--type", "ticket_type", default=None)
@click.option("--intent", default=None)
@click.option("--acceptance-signal", default=None)
@click.option("--priority", default=None)
@click.option("--parent", "parent_id", default=None)
@click.option("--blocked-by", multiple=True, help="Blocking ticket ID (repeatable)")
@board_command
def update(
    ticket_id: str,
    title: str | None,
    ticket_type: str | None,
    intent: str | None,
    acceptance_signal: str | None,
    priority: str | None,
    parent_id: str | None,
    blocked_by: tuple[str, ...],
) -> dict[str, Any]:
    """Update ticket fields."""
    params: dict[str, Any] = {"action": "update", "ticketId": ticket_id}
    for key, value in (
        ("title", title),
        ("ticketType", ticket_type),
        ("intent", intent),
        ("acceptanceSignal", acceptance_signal),
        ("priority", priority),
        ("parentId", parent_id),
    ):
        if value is not None:
            params[key] = value
    if blocked_by:
        params["blockedBy"] = list(blocked_by)
    return params


@main.command()
@click.argument("ticket_id")
@click.argument("to_status")
@click.option("--note", default=None, help="Recorded as a system comment")
@board_command
def move(ticket_id: str, to_status: str, note: str | None) -> dict[str, Any]:
    """Move a ticket to another column."""
    return {"action": "move", "ticketId": ticket_id, "toStatus": to_status, "note": note}


@main.command()
@click.argument("ticket_id")
@board_command
def delete(ticket_id: str) -> dict[str, Any]:
    """Delete a ticket."""
    return {"action": "delete", "ticketId": ticket_id}


@main.command()
@click.argument("ticket_id")
@click.argument("text")
@board_command
def comment(ticket_id: str, text: str) -> dict[str, Any]:
    """Add a comment to a ticket."""
    return {"action": "comment", "ticketId": ticket_id, "comment": text}


@main.command(name="next-work")
@board_command
def next_work() -> dict[str, Any]:
    """Show the next ready ticket, if in-progress has room."""
    return {"action": "next-work"}


@main.command(name="next-refine")
@board_command
def next_refine() -> dict[str, Any]:
    """Show the next backlog ticket to refine (planning boards)."""
    return {"action": "next-refine"}


@main.command()
@click.option("--hours", type=float, default=None, help="Threshold (default: board setting)")
@board_command
def stale(hours: float | None) -> dict[str, Any]:
    """List stale in-progress tickets."""
    return {"action": "stale", "hours": hours}


@main.command()
@board_command
def blocked() -> dict[str, Any]:
    """List blocked tickets."""
    return {"action": "blocked"}


@main.command()
@click.argument("ticket_id")
@board_command
def children(ticket_id: str) -> dict[str, Any]:
    """List a ticket's subtasks."""
    return {"action": "children", "ticketId": ticket_id}


@main.command()
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to taskboard.yaml (auto-detected if not specified)",
)
@click.option("--host", default=None, help="Bind address (default: from config)")
@click.option("--port", type=int, default=None, help="Port (default: from config)")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def serve(config_path: Path | None, host: str | None, port: int | None, verbose: bool) -> None:
    """Run the board RPC API."""
    import uvicorn  # noqa: PLC0415

    from taskboard.api import create_app  # noqa: PLC0415

    config = _load_config(config_path)
    setup_logging(config.logging, verbose=verbose, also=("uvicorn",))
    uvicorn.run(
        create_app(config),
        host=host or config.api.host,
        port=port or config.api.port,
        log_config=None,
        log_level="debug" if verbose else "info",
    )


if __name__ == "__main__":
    main()
