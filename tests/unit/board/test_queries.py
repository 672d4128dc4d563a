"""Unit tests for board queries and aggregation."""

from datetime import UTC, datetime, timedelta

import pytest

from taskboard.board import Ticket, TicketBoard, TicketCreate
from taskboard.board.queries import (
    age_ms,
    blocked_tickets,
    pick_refinement_candidate,
    sort_key,
    stale_tickets,
    tickets_with_status,
)
from taskboard.board.schemas import LEAN, PLANNING

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=UTC)


def make_ticket(
    ticket_id: str, status: str = "backlog", age_hours: float = 0, **overrides
) -> Ticket:
    when = NOW - timedelta(hours=age_hours)
    fields = {
        "id": ticket_id,
        "title": ticket_id,
        "type": "feature",
        "status": status,
        "created_at": when,
        "updated_at": when,
        "status_changed_at": when,
    }
    fields.update(overrides)
    return Ticket(**fields)


def save(tb: TicketBoard, ticket: Ticket) -> None:
    tb.storage.save_ticket(ticket)


@pytest.mark.unit
class TestSortKey:
    """Tests for listing order."""

    def test_lean_orders_by_age(self) -> None:
        tickets = [
            make_ticket("A-003", age_hours=1),
            make_ticket("A-001", age_hours=3),
            make_ticket("A-002", age_hours=2),
        ]

        result = tickets_with_status(tickets, "backlog", LEAN)

        assert [t.id for t in result] == ["A-001", "A-002", "A-003"]

    def test_lean_ignores_priority(self) -> None:
        tickets = [
            make_ticket("A-001", age_hours=2, priority="low"),
            make_ticket("A-002", age_hours=1, priority="critical"),
        ]
        assert [t.id for t in tickets_with_status(tickets, "backlog", LEAN)] == ["A-001", "A-002"]

    def test_planning_orders_by_priority_then_age(self) -> None:
        tickets = [
            make_ticket("P-001", age_hours=5, priority="low"),
            make_ticket("P-002", age_hours=1, priority="critical"),
            make_ticket("P-003", age_hours=3, priority="medium"),
            make_ticket("P-004", age_hours=4, priority="medium"),
            make_ticket("P-005", age_hours=9, priority=None),
        ]

        result = tickets_with_status(tickets, "backlog", PLANNING)

        assert [t.id for t in result] == ["P-002", "P-004", "P-003", "P-001", "P-005"]

    def test_ties_broken_by_id(self) -> None:
        tickets = [make_ticket("A-002"), make_ticket("A-001")]
        assert [t.id for t in tickets_with_status(tickets, "backlog", LEAN)] == ["A-001", "A-002"]

    @pytest.mark.parametrize("profile", [LEAN, PLANNING], ids=["lean", "planning"])
    def test_adjacent_keys_non_decreasing(self, profile) -> None:
        priorities = ["low", None, "critical", "high", "medium"]
        tickets = [
            make_ticket(f"X-{i:03d}", age_hours=(i * 7) % 11, priority=priorities[i % 5])
            for i in range(25)
        ]
        tickets.append(make_ticket("X-999", status="ready"))

        result = tickets_with_status(tickets, "backlog", profile)
        key = sort_key(profile)

        assert all(t.status == "backlog" for t in result)
        assert len(result) == 25
        assert all(key(a) <= key(b) for a, b in zip(result, result[1:], strict=False))


@pytest.mark.unit
class TestStaleTickets:
    """Tests for stale_tickets."""

    def test_twenty_five_hours_is_stale(self) -> None:
        ticket = make_ticket("A-001", status="in-progress", age_hours=25)
        assert stale_tickets([ticket], 24, NOW) == [ticket]

    def test_twenty_three_hours_is_not_stale(self) -> None:
        ticket = make_ticket("A-001", status="in-progress", age_hours=23)
        assert stale_tickets([ticket], 24, NOW) == []

    def test_only_in_progress(self) -> None:
        ticket = make_ticket("A-001", status="review", age_hours=100)
        assert stale_tickets([ticket], 24, NOW) == []

    def test_uses_status_changed_at(self) -> None:
        ticket = make_ticket(
            "A-001", status="in-progress", age_hours=100, status_changed_at=NOW - timedelta(hours=1)
        )
        assert stale_tickets([ticket], 24, NOW) == []


@pytest.mark.unit
class TestBlockedTickets:
    """Tests for blocked_tickets."""

    def test_blocked_column(self) -> None:
        ticket = make_ticket("P-001", status="blocked")
        assert blocked_tickets([ticket], PLANNING) == [ticket]

    def test_unfinished_blocker(self) -> None:
        blocker = make_ticket("P-001", status="in-progress")
        waiting = make_ticket("P-002", blocked_by=["P-001"])
        assert blocked_tickets([blocker, waiting], PLANNING) == [waiting]

    def test_done_blocker_releases(self) -> None:
        blocker = make_ticket("P-001", status="done")
        waiting = make_ticket("P-002", blocked_by=["P-001"])
        assert blocked_tickets([blocker, waiting], PLANNING) == []

    def test_unknown_blocker_ignored(self) -> None:
        waiting = make_ticket("P-002", blocked_by=["P-404"])
        assert blocked_tickets([waiting], PLANNING) == []


@pytest.mark.unit
class TestHelpers:
    """Tests for small query helpers."""

    def test_refinement_prefers_big_types(self) -> None:
        task = make_ticket("P-001", type="task")
        story = make_ticket("P-002", type="story")
        assert pick_refinement_candidate([task, story], PLANNING) is story

    def test_refinement_falls_back_to_head(self) -> None:
        task = make_ticket("P-001", type="task")
        bug = make_ticket("P-002", type="bug")
        assert pick_refinement_candidate([task, bug], PLANNING) is task

    def test_refinement_empty(self) -> None:
        assert pick_refinement_candidate([], PLANNING) is None

    def test_age_ms(self) -> None:
        assert age_ms(NOW - timedelta(hours=2), NOW) == 2 * 60 * 60 * 1000

    def test_age_ms_never_negative(self) -> None:
        assert age_ms(NOW + timedelta(seconds=5), NOW) == 0


@pytest.mark.unit
class TestBoardQueries:
    """Tests for TicketBoard query methods against stored tickets."""

    def test_get_tickets_by_status(self, board: TicketBoard) -> None:
        save(board, make_ticket("PROJ-002", status="ready", age_hours=1))
        save(board, make_ticket("PROJ-001", status="ready", age_hours=2))
        save(board, make_ticket("PROJ-003", status="backlog"))

        assert [t.id for t in board.get_tickets_by_status("ready")] == ["PROJ-001", "PROJ-002"]

    def test_next_work_item(self, board: TicketBoard) -> None:
        save(board, make_ticket("PROJ-001", status="ready", age_hours=1))
        save(board, make_ticket("PROJ-002", status="ready", age_hours=5))

        assert board.get_next_work_item().id == "PROJ-002"

    def test_next_work_item_respects_wip(self, board: TicketBoard) -> None:
        save(board, make_ticket("PROJ-001", status="ready"))
        save(board, make_ticket("PROJ-002", status="in-progress"))
        save(board, make_ticket("PROJ-003", status="in-progress"))

        assert board.get_next_work_item() is None

    def test_next_work_item_nothing_ready(self, board: TicketBoard) -> None:
        save(board, make_ticket("PROJ-001", status="backlog"))
        assert board.get_next_work_item() is None

    def test_next_refinement_on_lean_is_none(self, board: TicketBoard) -> None:
        save(board, make_ticket("PROJ-001"))
        assert board.get_next_refinement_item() is None

    def test_next_refinement_prefers_story(self, planning_board: TicketBoard) -> None:
        save(planning_board, make_ticket("PLAN-001", type="task", priority="medium", age_hours=9))
        save(planning_board, make_ticket("PLAN-002", type="story", priority="medium", age_hours=1))

        assert planning_board.get_next_refinement_item().id == "PLAN-002"

    def test_next_refinement_respects_wip(self, planning_board: TicketBoard) -> None:
        save(planning_board, make_ticket("PLAN-001", type="story", priority="medium"))
        for i in range(2, 5):
            save(
                planning_board,
                make_ticket(f"PLAN-00{i}", status="refinement", type="task", priority="medium"),
            )

        assert planning_board.get_next_refinement_item() is None

    def test_stale_uses_board_threshold(self, board: TicketBoard) -> None:
        now = datetime.now(UTC)
        for ticket_id, hours in (("PROJ-001", 25), ("PROJ-002", 23)):
            save(
                board,
                make_ticket(
                    ticket_id, status="in-progress", status_changed_at=now - timedelta(hours=hours)
                ),
            )

        assert [t.id for t in board.get_stale_tickets()] == ["PROJ-001"]
        assert [t.id for t in board.get_stale_tickets(24)] == ["PROJ-001"]
        assert len(board.get_stale_tickets(1)) == 2

    def test_blocked_and_children(self, planning_board: TicketBoard) -> None:
        planning_board.create_ticket(TicketCreate(title="Epic", type="epic"))
        planning_board.create_ticket(TicketCreate(title="Child", parent_id="PLAN-001"))
        planning_board.create_ticket(TicketCreate(title="Other"))
        planning_board.update_ticket("PLAN-003", {"blockedBy": ["PLAN-002"]})

        assert [t.id for t in planning_board.get_child_tickets("PLAN-001")] == ["PLAN-002"]
        assert [t.id for t in planning_board.get_blocked_tickets()] == ["PLAN-003"]

    def test_lean_migrates_away_relations(self, board: TicketBoard) -> None:
        save(board, make_ticket("PROJ-001", parent_id="PROJ-000", blocked_by=["PROJ-002"]))
        save(board, make_ticket("PROJ-002"))

        assert board.get_child_tickets("PROJ-000") == []
        assert board.get_blocked_tickets() == []


@pytest.mark.unit
class TestSummary:
    """Tests for get_summary."""

    def test_uninitialized(self, workspace) -> None:
        assert TicketBoard(workspace).get_summary() is None

    def test_empty_board(self, board: TicketBoard) -> None:
        summary = board.get_summary(now=NOW)

        assert summary.project_id == "PROJ"
        assert summary.column_counts == {
            "backlog": 0,
            "ready": 0,
            "in-progress": 0,
            "review": 0,
            "done": 0,
        }
        assert summary.total_tickets == 0
        assert summary.oldest_backlog_age_ms is None
        assert summary.oldest_in_progress_age_ms is None

    def test_counts_and_ages(self, board: TicketBoard) -> None:
        save(board, make_ticket("PROJ-001", status="backlog", age_hours=48))
        save(board, make_ticket("PROJ-002", status="backlog", age_hours=2))
        save(board, make_ticket("PROJ-003", status="in-progress", age_hours=30))
        save(board, make_ticket("PROJ-004", status="done", age_hours=1))

        summary = board.get_summary(now=NOW)

        assert summary.column_counts["backlog"] == 2
        assert summary.column_counts["in-progress"] == 1
        assert summary.column_counts["done"] == 1
        assert summary.total_tickets == 4
        assert summary.open_tickets == 3
        assert summary.completed_tickets == 1
        assert summary.stale_count == 1
        assert summary.blocked_count == 0
        assert summary.oldest_backlog_age_ms == 48 * 60 * 60 * 1000
        assert summary.oldest_in_progress_age_ms == 30 * 60 * 60 * 1000

    def test_planning_counts_every_status(self, planning_board: TicketBoard) -> None:
        save(planning_board, make_ticket("PLAN-001", status="blocked", type="task", priority="low"))

        summary = planning_board.get_summary(now=NOW)

        assert set(summary.column_counts) == {
            "backlog",
            "refinement",
            "ready",
            "in-progress",
            "review",
            "done",
            "blocked",
        }
        assert summary.blocked_count == 1
