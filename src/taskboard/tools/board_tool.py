"""Board tool - action-based board access for agents.

Each call names an ``action`` plus its parameters and gets back a plain
dict: structured data for the agent to act on and, for listings, a
``formatted`` text summary.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from taskboard.board import TicketBoard, TicketCreate
from taskboard.board.codec import summary_to_dict, ticket_to_dict
from taskboard.board.models import Board, BoardSummary, Ticket
from taskboard.board.schemas import get_profile

logger = logging.getLogger(__name__)

BOARD_ACTIONS = (
    "init",
    "status",
    "list",
    "view",
    "create",
    "update",
    "move",
    "delete",
    "next-work",
    "next-refine",
    "stale",
    "blocked",
    "children",
    "comment",
)

# Tool parameter -> update patch key
_UPDATE_PARAMS = {
    "title": "title",
    "ticketType": "type",
    "intent": "intent",
    "acceptanceSignal": "acceptanceSignal",
    "priority": "priority",
    "parentId": "parentId",
    "blockedBy": "blockedBy",
    "blocks": "blocks",
}

TOOL_DESCRIPTION = """Project board management for autonomous work.

ACTIONS:
- init: Initialize board (requires projectId, projectName; optional schema lean|planning)
- status: Get board overview (columns, health, stale counts)
- list: List tickets (optional column/type filter)
- view: View ticket details (requires ticketId)
- create: Create ticket (requires title, optional ticketType/intent/acceptanceSignal)
- update: Update ticket (requires ticketId, any updatable fields)
- move: Move ticket to column (requires ticketId, toStatus, optional note)
- delete: Delete ticket (requires ticketId)
- next-work: Get next ticket ready to work (respects WIP limits)
- next-refine: Get next backlog ticket to refine (planning boards)
- stale: List stale in-progress tickets
- blocked: List blocked tickets
- children: List subtasks of a ticket (requires ticketId)
- comment: Add a comment to a ticket (requires ticketId, comment)

TICKET TYPES: feature, bugfix, chore, experiment
COLUMNS: backlog -> ready -> in-progress -> review -> done

MOVEMENT RULES:
- Human moves: backlog->ready (refine) and review->done (accept)
- Agent moves: ready->in-progress (pick up) and in-progress->review (submit)
- codeLocation is auto-derived when moving to in-progress"""


class ToolInputError(ValueError):
    """A required tool parameter is missing or invalid."""


def read_string_param(
    params: Mapping[str, Any], key: str, *, required: bool = False
) -> str | None:
    """Read a trimmed string parameter; blank counts as missing."""
    value = params.get(key)
    if value is not None and not isinstance(value, str):
        value = str(value)
    if value is not None:
        value = value.strip()
    if not value:
        if required:
            raise ToolInputError(f"{key} required")
        return None
    return value


def read_number_param(params: Mapping[str, Any], key: str) -> float | None:
    """Read a non-negative number; numeric strings are accepted."""
    value = params.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ToolInputError(f"{key} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ToolInputError(f"{key} must be a number") from None
    if number < 0:
        raise ToolInputError(f"{key} must not be negative")
    return number


def format_age(ms: int) -> str:
    """Render a duration as whole hours below a day, whole days above."""
    hours = ms // (1000 * 60 * 60)
    if hours < 24:
        return f"{hours}h"
    return f"{hours // 24}d"


def format_ticket_summary(ticket: Ticket) -> str:
    kind = ticket.type[:1].upper()
    return f"[{ticket.id}] {kind} {ticket.title} ({ticket.status})"


def format_board_status(summary: BoardSummary) -> str:
    lines = [f"# {summary.project_name} Board", "", "## Columns"]
    for status, count in summary.column_counts.items():
        lines.append(f"- {status}: {count}")

    lines.append("")
    lines.append("## Health")
    lines.append(f"- Total tickets: {summary.total_tickets}")
    lines.append(f"- Open: {summary.open_tickets}, completed: {summary.completed_tickets}")
    if summary.stale_count > 0:
        lines.append(f"- Stale (in-progress): {summary.stale_count}")
    if summary.blocked_count > 0:
        lines.append(f"- Blocked: {summary.blocked_count}")
    if summary.oldest_backlog_age_ms is not None:
        lines.append(f"- Oldest backlog: {format_age(summary.oldest_backlog_age_ms)}")
    if summary.oldest_in_progress_age_ms is not None:
        lines.append(f"- Oldest in-progress: {format_age(summary.oldest_in_progress_age_ms)}")
    return "\n".join(lines)


def _list_item(ticket: Ticket) -> dict[str, Any]:
    item: dict[str, Any] = {
        "id": ticket.id,
        "title": ticket.title,
        "type": ticket.type,
        "status": ticket.status,
        "intent": ticket.intent,
        "commentCount": len(ticket.comments),
        "codeLocation": ticket_to_dict(ticket).get("codeLocation"),
    }
    if ticket.priority is not None:
        item["priority"] = ticket.priority
    return item


def _listing(tickets: list[Ticket], empty: str) -> dict[str, Any]:
    return {
        "status": "ok",
        "count": len(tickets),
        "tickets": [_list_item(t) for t in tickets],
        "formatted": "\n".join(format_ticket_summary(t) for t in tickets) or empty,
    }


def _not_initialized() -> dict[str, Any]:
    return {"status": "error", "message": "Board not initialized. Use action=init first."}


class BoardTool:
    """Agent-facing adapter over a workspace's TicketBoard."""

    name = "board"
    label = "Board"
    description = TOOL_DESCRIPTION

    def __init__(self, workspace_dir: str | Path, agent_id: str = "main") -> None:
        """Initialize the tool.

        Args:
            workspace_dir: Workspace holding the board.
            agent_id: Agent invoking the tool; used as the comment author.
        """
        self.agent_id = agent_id
        self.board = TicketBoard(workspace_dir)
        self._handlers: dict[str, Callable[[Mapping[str, Any]], dict[str, Any]]] = {
            "init": self._init,
            "status": self._status,
            "list": self._list,
            "view": self._view,
            "create": self._create,
            "update": self._update,
            "move": self._move,
            "delete": self._delete,
            "next-work": self._next_work,
            "next-refine": self._next_refine,
            "stale": self._stale,
            "blocked": self._blocked,
            "children": self._children,
            "comment": self._comment,
        }

    def execute(self, params: Mapping[str, Any]) -> dict[str, Any]:
        """Run one action.

        Raises:
            ToolInputError: If the action is unknown or a required parameter
                is missing.
            BoardError: Propagated from the board for failed operations.
        """
        action = read_string_param(params, "action", required=True)
        handler = self._handlers.get(action)
        if handler is None:
            raise ToolInputError(f"Unknown action: {action}")
        logger.debug("board tool action=%s agent=%s", action, self.agent_id)
        return handler(params)

    @staticmethod
    def _ticket_id(params: Mapping[str, Any]) -> str:
        ticket_id = read_string_param(params, "ticketId") or read_string_param(params, "id")
        if ticket_id is None:
            raise ToolInputError("ticketId required")
        return ticket_id

    def _require_board(self) -> Board | None:
        return self.board.load_board()

    # --- Actions ---

    def _init(self, params: Mapping[str, Any]) -> dict[str, Any]:
        project_id = read_string_param(params, "projectId", required=True)
        project_name = read_string_param(params, "projectName", required=True)
        schema = read_string_param(params, "schema")
        try:
            board = self.board.init(project_id, project_name, schema=schema)
        except ValueError as e:
            raise ToolInputError(str(e)) from e
        return {
            "status": "ok",
            "message": f"Board initialized: {board.project_name}",
            "projectId": board.project_id,
            "ticketPrefix": board.settings.ticket_prefix,
            "schema": board.schema,
        }

    def _status(self, params: Mapping[str, Any]) -> dict[str, Any]:
        summary = self.board.get_summary()
        if summary is None:
            return _not_initialized()
        return {
            "status": "ok",
            "summary": summary_to_dict(summary),
            "formatted": format_board_status(summary),
        }

    def _list(self, params: Mapping[str, Any]) -> dict[str, Any]:
        if self._require_board() is None:
            return _not_initialized()
        column = read_string_param(params, "column")
        tickets = (
            self.board.get_tickets_by_status(column) if column else self.board.list_tickets()
        )
        filter_type = read_string_param(params, "type")
        if filter_type:
            tickets = [t for t in tickets if t.type == filter_type]
        return _listing(tickets, "(no tickets)")

    def _view(self, params: Mapping[str, Any]) -> dict[str, Any]:
        ticket_id = self._ticket_id(params)
        ticket = self.board.get_ticket(ticket_id)
        if ticket is None:
            return {"status": "error", "message": f"Ticket not found: {ticket_id}"}
        return {"status": "ok", "ticket": ticket_to_dict(ticket)}

    def _create(self, params: Mapping[str, Any]) -> dict[str, Any]:
        ticket = self.board.create_ticket(
            TicketCreate(
                title=read_string_param(params, "title", required=True),
                type=read_string_param(params, "ticketType"),
                intent=read_string_param(params, "intent"),
                acceptance_signal=read_string_param(params, "acceptanceSignal"),
                priority=read_string_param(params, "priority"),
                parent_id=read_string_param(params, "parentId"),
            )
        )
        return {
            "status": "ok",
            "message": f"Created ticket: {ticket.id}",
            "ticket": {
                "id": ticket.id,
                "title": ticket.title,
                "type": ticket.type,
                "status": ticket.status,
            },
        }

    def _update(self, params: Mapping[str, Any]) -> dict[str, Any]:
        ticket_id = self._ticket_id(params)
        patch = {key: params[param] for param, key in _UPDATE_PARAMS.items() if param in params}
        ticket = self.board.update_ticket(ticket_id, patch)
        return {
            "status": "ok",
            "message": f"Updated ticket: {ticket.id}",
            "ticket": {"id": ticket.id, "title": ticket.title, "status": ticket.status},
        }

    def _move(self, params: Mapping[str, Any]) -> dict[str, Any]:
        ticket_id = self._ticket_id(params)
        to_status = read_string_param(params, "toStatus", required=True)
        note = read_string_param(params, "note")
        ticket = self.board.move_ticket(ticket_id, to_status, note)
        return {
            "status": "ok",
            "message": f"Moved {ticket.id} to {to_status}",
            "ticket": {
                "id": ticket.id,
                "title": ticket.title,
                "status": ticket.status,
                "codeLocation": ticket_to_dict(ticket).get("codeLocation"),
            },
        }

    def _delete(self, params: Mapping[str, Any]) -> dict[str, Any]:
        ticket_id = self._ticket_id(params)
        if self.board.delete_ticket(ticket_id):
            return {"status": "ok", "message": f"Deleted ticket: {ticket_id}"}
        return {"status": "error", "message": f"Ticket not found: {ticket_id}"}

    def _next_work(self, params: Mapping[str, Any]) -> dict[str, Any]:
        ticket = self.board.get_next_work_item()
        if ticket is None:
            return {
                "status": "ok",
                "message": "No work available (WIP limit reached or no ready items)",
                "ticket": None,
            }
        return {
            "status": "ok",
            "message": f"Next work item: {format_ticket_summary(ticket)}",
            "ticket": ticket_to_dict(ticket),
        }

    def _next_refine(self, params: Mapping[str, Any]) -> dict[str, Any]:
        board = self._require_board()
        if board is None:
            return _not_initialized()
        if get_profile(board.schema).refinement_status is None:
            return {
                "status": "ok",
                "message": f"The {board.schema} schema has no refinement column",
                "ticket": None,
            }
        ticket = self.board.get_next_refinement_item()
        if ticket is None:
            return {
                "status": "ok",
                "message": "Nothing to refine (WIP limit reached or empty backlog)",
                "ticket": None,
            }
        return {
            "status": "ok",
            "message": f"Next refinement item: {format_ticket_summary(ticket)}",
            "ticket": ticket_to_dict(ticket),
        }

    def _stale(self, params: Mapping[str, Any]) -> dict[str, Any]:
        tickets = self.board.get_stale_tickets(read_number_param(params, "hours"))
        result = _listing(tickets, "(no stale tickets)")
        for item, ticket in zip(result["tickets"], tickets, strict=True):
            item["statusChangedAt"] = ticket_to_dict(ticket)["statusChangedAt"]
        return result

    def _blocked(self, params: Mapping[str, Any]) -> dict[str, Any]:
        return _listing(self.board.get_blocked_tickets(), "(no blocked tickets)")

    def _children(self, params: Mapping[str, Any]) -> dict[str, Any]:
        parent_id = read_string_param(params, "parentId") or self._ticket_id(params)
        return _listing(self.board.get_child_tickets(parent_id), "(no child tickets)")

    def _comment(self, params: Mapping[str, Any]) -> dict[str, Any]:
        ticket_id = self._ticket_id(params)
        text = read_string_param(params, "comment", required=True)
        ticket = self.board.add_comment(ticket_id, self.agent_id, text)
        return {
            "status": "ok",
            "message": f"Comment added to {ticket.id}",
            "commentCount": len(ticket.comments),
        }
