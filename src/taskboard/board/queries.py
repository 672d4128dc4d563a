"""Pure query and aggregation helpers over lists of tickets."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from taskboard.board.models import BoardSummary, TicketStatus

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from taskboard.board.models import Board, Ticket
    from taskboard.board.schemas import SchemaProfile


def sort_key(profile: SchemaProfile) -> Callable[[Ticket], tuple]:
    """Build the listing order for a schema.

    Planning boards rank by priority first; both schemas then order by
    creation time, with the ID as a final tie-breaker so the order is total.
    """
    if profile.ranks_priority:
        ranks = {name: index for index, name in enumerate(profile.priorities)}
        unranked = len(profile.priorities)

        def ranked(ticket: Ticket) -> tuple:
            return (ranks.get(ticket.priority or "", unranked), ticket.created_at, ticket.id)

        return ranked

    def by_age(ticket: Ticket) -> tuple:
        return (ticket.created_at, ticket.id)

    return by_age


def tickets_with_status(
    tickets: Iterable[Ticket], status: str, profile: SchemaProfile
) -> list[Ticket]:
    """Tickets in one column, in listing order."""
    return sorted((t for t in tickets if t.status == status), key=sort_key(profile))


def count_in_column(tickets: Iterable[Ticket], status: str, exclude_id: str | None = None) -> int:
    return sum(1 for t in tickets if t.status == status and t.id != exclude_id)


def column_is_full(board: Board, tickets: Iterable[Ticket], status: str) -> bool:
    """True if the column has a WIP limit and is at or over it."""
    column = board.get_column(status)
    if column is None or not column.wip_limit:
        return False
    return count_in_column(tickets, status) >= column.wip_limit


def stale_tickets(tickets: Iterable[Ticket], max_hours: float, now: datetime) -> list[Ticket]:
    """In-progress tickets that entered the column before ``now - max_hours``."""
    cutoff = now - timedelta(hours=max_hours)
    return [
        t for t in tickets if t.status == TicketStatus.IN_PROGRESS and t.status_changed_at < cutoff
    ]


def blocked_tickets(tickets: list[Ticket], profile: SchemaProfile) -> list[Ticket]:
    """Tickets in the blocked column or waiting on an unfinished ticket.

    A ``blockedBy`` entry only counts if the referenced ticket exists.
    """
    status_by_id = {t.id: t.status for t in tickets}
    blocked = []
    for ticket in tickets:
        if profile.blocked_status and ticket.status == profile.blocked_status:
            blocked.append(ticket)
            continue
        if any(
            blocker in status_by_id and status_by_id[blocker] != TicketStatus.DONE
            for blocker in ticket.blocked_by
        ):
            blocked.append(ticket)
    return blocked


def child_tickets(tickets: Iterable[Ticket], parent_id: str) -> list[Ticket]:
    return [t for t in tickets if t.parent_id == parent_id]


def pick_refinement_candidate(backlog: list[Ticket], profile: SchemaProfile) -> Ticket | None:
    """Prefer the first epic or story in the backlog, then anything."""
    for ticket in backlog:
        if ticket.type in profile.big_types:
            return ticket
    return backlog[0] if backlog else None


def age_ms(since: datetime, now: datetime) -> int:
    return max(0, int((now - since).total_seconds() * 1000))


def build_summary(
    board: Board,
    tickets: list[Ticket],
    profile: SchemaProfile,
    now: datetime,
) -> BoardSummary:
    """Aggregate column counts and health metrics for a board."""
    column_counts = {str(status): 0 for status in profile.statuses}
    for ticket in tickets:
        column_counts[ticket.status] = column_counts.get(ticket.status, 0) + 1

    completed = column_counts.get(TicketStatus.DONE, 0)
    stale = stale_tickets(tickets, board.settings.stale_in_progress_hours, now)
    blocked = blocked_tickets(tickets, profile)

    backlog = [t for t in tickets if t.status == profile.backlog_status]
    in_progress = [t for t in tickets if t.status == TicketStatus.IN_PROGRESS]
    oldest_backlog = min((t.created_at for t in backlog), default=None)
    oldest_in_progress = min((t.status_changed_at for t in in_progress), default=None)

    return BoardSummary(
        project_id=board.project_id,
        project_name=board.project_name,
        column_counts=column_counts,
        total_tickets=len(tickets),
        open_tickets=len(tickets) - completed,
        completed_tickets=completed,
        stale_count=len(stale),
        blocked_count=len(blocked),
        oldest_backlog_age_ms=age_ms(oldest_backlog, now) if oldest_backlog else None,
        oldest_in_progress_age_ms=(
            age_ms(oldest_in_progress, now) if oldest_in_progress else None
        ),
    )
