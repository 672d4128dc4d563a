"""Data models for the ticket board."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class TicketStatus(StrEnum):
    """Every column id known to either ticket schema."""

    BACKLOG = "backlog"
    REFINEMENT = "refinement"
    READY = "ready"
    IN_PROGRESS = "in-progress"
    REVIEW = "review"
    DONE = "done"
    BLOCKED = "blocked"


class TicketPriority(StrEnum):
    """Work priority, most urgent first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_ORDER = [
    TicketPriority.CRITICAL,
    TicketPriority.HIGH,
    TicketPriority.MEDIUM,
    TicketPriority.LOW,
]

SYSTEM_AUTHOR = "system"


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class Column:
    """A workflow stage on the board.

    Attributes:
        id: Status identifier tickets carry while in this column.
        name: Display name.
        wip_limit: Maximum tickets allowed at once (None = unbounded).
        auto_pull: Whether work may be pulled into the column automatically.
    """

    id: str
    name: str
    wip_limit: int | None = None
    auto_pull: bool | None = None


@dataclass
class BoardSettings:
    """Heartbeat policy, ID generation and staleness settings."""

    auto_refine: bool = True
    auto_work: bool = True
    require_review: bool = True
    stale_in_progress_hours: float = 24
    max_refine_per_heartbeat: int = 1
    max_work_per_heartbeat: int = 1
    ticket_prefix: str = "TASK"
    next_ticket_number: int = 1


@dataclass
class Board:
    """Per-workspace board configuration."""

    project_id: str
    project_name: str
    columns: list[Column]
    settings: BoardSettings = field(default_factory=BoardSettings)
    schema: str = "lean"
    version: int = 1
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def column_ids(self) -> list[str]:
        return [column.id for column in self.columns]

    def get_column(self, column_id: str) -> Column | None:
        """Return the column with the given id, if the board has one."""
        for column in self.columns:
            if column.id == column_id:
                return column
        return None


@dataclass
class Comment:
    """A single append-only annotation on a ticket."""

    author: str
    text: str
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class CodeLocation:
    """Where implementation work for a ticket happens."""

    branch: str
    worktree: str


@dataclass
class Ticket:
    """One unit of work on the board.

    Fields not modelled explicitly (e.g. ``description`` on planning boards)
    are kept in ``extra`` under their on-disk key and written back on save.
    """

    id: str
    title: str
    type: str
    status: str
    created_at: datetime
    updated_at: datetime
    status_changed_at: datetime
    intent: str = ""
    acceptance_signal: str = ""
    priority: str | None = None
    completed_at: datetime | None = None
    code_location: CodeLocation | None = None
    comments: list[Comment] = field(default_factory=list)
    parent_id: str | None = None
    blocked_by: list[str] = field(default_factory=list)
    blocks: list[str] = field(default_factory=list)
    rejection_count: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class TicketCreate:
    """Input for creating a ticket."""

    title: str
    type: str | None = None
    intent: str | None = None
    acceptance_signal: str | None = None
    priority: str | None = None
    parent_id: str | None = None
    blocked_by: list[str] | None = None


@dataclass
class TicketUpdate:
    """Partial update for a ticket. ``None`` means "leave unchanged"."""

    title: str | None = None
    type: str | None = None
    intent: str | None = None
    acceptance_signal: str | None = None
    priority: str | None = None
    parent_id: str | None = None
    blocked_by: list[str] | None = None
    blocks: list[str] | None = None


@dataclass
class BoardSummary:
    """Whole-board statistics.

    Attributes:
        column_counts: Ticket count for every status of the board's schema.
        oldest_backlog_age_ms: Age of the oldest backlog ticket (by creation).
        oldest_in_progress_age_ms: Time the longest-running in-progress
            ticket has spent in that column.
    """

    project_id: str
    project_name: str
    column_counts: dict[str, int]
    total_tickets: int
    open_tickets: int
    completed_tickets: int
    stale_count: int
    blocked_count: int
    oldest_backlog_age_ms: int | None = None
    oldest_in_progress_age_ms: int | None = None


@dataclass
class BoardWithTickets:
    """A board together with every ticket stored beside it."""

    board: Board
    tickets: list[Ticket]
