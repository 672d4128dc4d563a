"""Unit tests for the agent board tool."""

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from taskboard.board import BoardNotInitializedError, TicketNotFoundError, WipLimitExceededError
from taskboard.board.models import BoardSummary
from taskboard.tools import (
    BOARD_ACTIONS,
    BoardTool,
    ToolInputError,
    format_age,
    format_board_status,
    read_number_param,
    read_string_param,
)


@pytest.fixture
def tool(workspace: Path) -> BoardTool:
    return BoardTool(workspace, agent_id="builder")


@pytest.fixture
def ready_tool(tool: BoardTool) -> BoardTool:
    tool.execute({"action": "init", "projectId": "proj", "projectName": "Project"})
    return tool


HOUR_MS = 60 * 60 * 1000


@pytest.mark.unit
class TestHelpers:
    """Tests for parameter reading and formatting helpers."""

    def test_read_string_param_trims(self) -> None:
        assert read_string_param({"title": "  Fix  "}, "title") == "Fix"

    def test_read_string_param_blank_is_missing(self) -> None:
        assert read_string_param({"title": "   "}, "title") is None

    def test_read_string_param_required(self) -> None:
        with pytest.raises(ToolInputError, match="title required"):
            read_string_param({}, "title", required=True)

    @pytest.mark.parametrize(
        ("value", "expected"), [(None, None), ("", None), (6, 6.0), ("1.5", 1.5)]
    )
    def test_read_number_param(self, value: object, expected: float | None) -> None:
        assert read_number_param({"hours": value}, "hours") == expected

    @pytest.mark.parametrize("value", ["soon", True, -1, [2]])
    def test_read_number_param_rejects(self, value: object) -> None:
        with pytest.raises(ToolInputError, match="hours"):
            read_number_param({"hours": value}, "hours")

    @pytest.mark.parametrize(
        ("ms", "expected"),
        [(0, "0h"), (5 * HOUR_MS, "5h"), (23 * HOUR_MS, "23h"), (24 * HOUR_MS, "1d"),
         (72 * HOUR_MS + 1, "3d")],
    )
    def test_format_age(self, ms: int, expected: str) -> None:
        assert format_age(ms) == expected

    def test_format_board_status(self) -> None:
        summary = BoardSummary(
            project_id="PROJ",
            project_name="Project",
            column_counts={"backlog": 2, "done": 1},
            total_tickets=3,
            open_tickets=2,
            completed_tickets=1,
            stale_count=1,
            blocked_count=0,
            oldest_backlog_age_ms=50 * HOUR_MS,
        )

        text = format_board_status(summary)

        assert text.startswith("# Project Board")
        assert "- backlog: 2" in text
        assert "- Stale (in-progress): 1" in text
        assert "Blocked" not in text
        assert "- Oldest backlog: 2d" in text


@pytest.mark.unit
class TestExecute:
    """Tests for action dispatch."""

    def test_every_action_has_handler(self, tool: BoardTool) -> None:
        assert set(tool._handlers) == set(BOARD_ACTIONS)

    def test_unknown_action(self, tool: BoardTool) -> None:
        with pytest.raises(ToolInputError, match="Unknown action"):
            tool.execute({"action": "explode"})

    def test_missing_action(self, tool: BoardTool) -> None:
        with pytest.raises(ToolInputError):
            tool.execute({})


@pytest.mark.unit
class TestBoardActions:
    """Tests for init and status."""

    def test_init(self, tool: BoardTool) -> None:
        result = tool.execute({"action": "init", "projectId": "proj", "projectName": "Project"})

        assert result["status"] == "ok"
        assert result["ticketPrefix"] == "PROJ"
        assert result["schema"] == "lean"

    def test_init_requires_project(self, tool: BoardTool) -> None:
        with pytest.raises(ToolInputError, match="projectId required"):
            tool.execute({"action": "init", "projectName": "Project"})

    def test_init_unknown_schema(self, tool: BoardTool) -> None:
        with pytest.raises(ToolInputError):
            tool.execute(
                {"action": "init", "projectId": "p", "projectName": "P", "schema": "scrum"}
            )

    def test_status_uninitialized(self, tool: BoardTool) -> None:
        result = tool.execute({"action": "status"})

        assert result["status"] == "error"
        assert "not initialized" in result["message"]

    def test_status(self, ready_tool: BoardTool) -> None:
        ready_tool.execute({"action": "create", "title": "One"})

        result = ready_tool.execute({"action": "status"})

        assert result["summary"]["columnCounts"]["backlog"] == 1
        assert result["summary"]["totalTickets"] == 1
        assert "# Project Board" in result["formatted"]


@pytest.mark.unit
class TestTicketActions:
    """Tests for ticket CRUD actions."""

    def test_create(self, ready_tool: BoardTool) -> None:
        result = ready_tool.execute(
            {"action": "create", "title": "Fix bug", "ticketType": "bugfix", "intent": "Crash"}
        )

        assert result["ticket"] == {
            "id": "PROJ-001",
            "title": "Fix bug",
            "type": "bugfix",
            "status": "backlog",
        }

    def test_create_requires_title(self, ready_tool: BoardTool) -> None:
        with pytest.raises(ToolInputError):
            ready_tool.execute({"action": "create"})

    def test_create_uninitialized_raises(self, tool: BoardTool) -> None:
        with pytest.raises(BoardNotInitializedError):
            tool.execute({"action": "create", "title": "x"})

    def test_list_and_filters(self, ready_tool: BoardTool) -> None:
        ready_tool.execute({"action": "create", "title": "Feature A"})
        ready_tool.execute({"action": "create", "title": "Bug B", "ticketType": "bugfix"})
        ready_tool.execute({"action": "move", "ticketId": "PROJ-002", "toStatus": "ready"})

        everything = ready_tool.execute({"action": "list"})
        ready = ready_tool.execute({"action": "list", "column": "ready"})
        bugs = ready_tool.execute({"action": "list", "type": "bugfix"})

        assert everything["count"] == 2
        assert [t["id"] for t in ready["tickets"]] == ["PROJ-002"]
        assert [t["id"] for t in bugs["tickets"]] == ["PROJ-002"]
        assert "[PROJ-001] F Feature A (backlog)" in everything["formatted"]

    def test_list_empty(self, ready_tool: BoardTool) -> None:
        assert ready_tool.execute({"action": "list"})["formatted"] == "(no tickets)"

    def test_list_uninitialized(self, tool: BoardTool) -> None:
        assert tool.execute({"action": "list"})["status"] == "error"

    def test_view(self, ready_tool: BoardTool) -> None:
        ready_tool.execute({"action": "create", "title": "Fix bug"})

        result = ready_tool.execute({"action": "view", "ticketId": "proj-001"})

        assert result["ticket"]["id"] == "PROJ-001"
        assert result["ticket"]["createdAt"].endswith("Z")

    def test_view_missing(self, ready_tool: BoardTool) -> None:
        result = ready_tool.execute({"action": "view", "ticketId": "PROJ-404"})

        assert result == {"status": "error", "message": "Ticket not found: PROJ-404"}

    def test_view_requires_id(self, ready_tool: BoardTool) -> None:
        with pytest.raises(ToolInputError, match="ticketId required"):
            ready_tool.execute({"action": "view"})

    def test_update(self, ready_tool: BoardTool) -> None:
        ready_tool.execute({"action": "create", "title": "Old"})

        result = ready_tool.execute(
            {"action": "update", "ticketId": "PROJ-001", "title": "New", "ticketType": "chore"}
        )
        ticket = ready_tool.board.get_ticket("PROJ-001")

        assert result["ticket"]["title"] == "New"
        assert ticket.type == "chore"

    def test_update_missing(self, ready_tool: BoardTool) -> None:
        with pytest.raises(TicketNotFoundError):
            ready_tool.execute({"action": "update", "ticketId": "PROJ-404", "title": "x"})

    def test_move(self, ready_tool: BoardTool) -> None:
        ready_tool.execute({"action": "create", "title": "Fix bug"})

        result = ready_tool.execute(
            {"action": "move", "ticketId": "PROJ-001", "toStatus": "in-progress", "note": "go"}
        )

        assert result["ticket"]["codeLocation"]["branch"] == "story/proj-001-fix-bug"
        assert result["message"] == "Moved PROJ-001 to in-progress"

    def test_move_wip_limit(self, ready_tool: BoardTool) -> None:
        for i in range(3):
            ready_tool.execute({"action": "create", "title": f"T{i}"})
        ready_tool.execute({"action": "move", "ticketId": "PROJ-001", "toStatus": "in-progress"})
        ready_tool.execute({"action": "move", "ticketId": "PROJ-002", "toStatus": "in-progress"})

        with pytest.raises(WipLimitExceededError):
            ready_tool.execute(
                {"action": "move", "ticketId": "PROJ-003", "toStatus": "in-progress"}
            )

    def test_delete(self, ready_tool: BoardTool) -> None:
        ready_tool.execute({"action": "create", "title": "x"})

        assert ready_tool.execute({"action": "delete", "ticketId": "PROJ-001"})["status"] == "ok"
        assert ready_tool.execute({"action": "delete", "ticketId": "PROJ-001"})["status"] == (
            "error"
        )

    def test_comment_uses_agent_id(self, ready_tool: BoardTool) -> None:
        ready_tool.execute({"action": "create", "title": "x"})

        result = ready_tool.execute(
            {"action": "comment", "ticketId": "PROJ-001", "comment": "On it"}
        )

        assert result["commentCount"] == 1
        assert ready_tool.board.get_ticket("PROJ-001").comments[0].author == "builder"


@pytest.mark.unit
class TestQueryActions:
    """Tests for next-work, next-refine, stale, blocked and children."""

    def test_next_work(self, ready_tool: BoardTool) -> None:
        ready_tool.execute({"action": "create", "title": "x"})
        assert ready_tool.execute({"action": "next-work"})["ticket"] is None

        ready_tool.execute({"action": "move", "ticketId": "PROJ-001", "toStatus": "ready"})
        result = ready_tool.execute({"action": "next-work"})

        assert result["ticket"]["id"] == "PROJ-001"

    def test_next_refine_lean(self, ready_tool: BoardTool) -> None:
        result = ready_tool.execute({"action": "next-refine"})

        assert result["ticket"] is None
        assert "no refinement column" in result["message"]

    def test_next_refine_planning(self, tool: BoardTool) -> None:
        tool.execute(
            {"action": "init", "projectId": "plan", "projectName": "P", "schema": "planning"}
        )
        tool.execute({"action": "create", "title": "Task", "ticketType": "task"})
        tool.execute({"action": "create", "title": "Epic", "ticketType": "epic"})

        assert tool.execute({"action": "next-refine"})["ticket"]["id"] == "PLAN-002"

    def test_stale(self, ready_tool: BoardTool) -> None:
        ready_tool.execute({"action": "create", "title": "x"})
        ready_tool.execute({"action": "move", "ticketId": "PROJ-001", "toStatus": "in-progress"})
        ticket = ready_tool.board.get_ticket("PROJ-001")
        ticket.status_changed_at = datetime.now(UTC) - timedelta(hours=30)
        ready_tool.board.storage.save_ticket(ticket)

        result = ready_tool.execute({"action": "stale"})

        assert result["count"] == 1
        assert "statusChangedAt" in result["tickets"][0]
        assert ready_tool.execute({"action": "stale", "hours": 48})["count"] == 0

    def test_stale_bad_hours(self, ready_tool: BoardTool) -> None:
        with pytest.raises(ToolInputError, match="hours must be a number"):
            ready_tool.execute({"action": "stale", "hours": "soon"})

    def test_blocked_and_children(self, tool: BoardTool) -> None:
        tool.execute(
            {"action": "init", "projectId": "plan", "projectName": "P", "schema": "planning"}
        )
        tool.execute({"action": "create", "title": "Epic", "ticketType": "epic"})
        tool.execute({"action": "create", "title": "Child", "parentId": "PLAN-001"})
        tool.execute({"action": "update", "ticketId": "PLAN-001", "blockedBy": ["PLAN-002"]})

        blocked = tool.execute({"action": "blocked"})
        children = tool.execute({"action": "children", "ticketId": "PLAN-001"})

        assert [t["id"] for t in blocked["tickets"]] == ["PLAN-001"]
        assert [t["id"] for t in children["tickets"]] == ["PLAN-002"]
        assert children["tickets"][0]["priority"] == "medium"
