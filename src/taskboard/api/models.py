"""Pydantic models for the board RPC API."""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from taskboard.board import BoardSummary, Ticket
from taskboard.board.codec import format_timestamp, ticket_to_dict

T = TypeVar("T")


class ErrorShape(BaseModel):
    """Structured error: a stable code plus a human-readable message."""

    code: str
    message: str


class APIResponse(BaseModel, Generic[T]):
    """Standard API response wrapper."""

    data: T | None = None
    error: ErrorShape | None = None


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Request models


class BoardMethodParams(CamelModel):
    """Parameters shared by every board method."""

    session_key: str | None = None


class BoardInitParams(BoardMethodParams):
    project_id: str | None = Field(default=None, max_length=255)
    project_name: str | None = Field(default=None, max_length=255)
    board_schema: str | None = Field(default=None, alias="schema")


class BoardListParams(BoardMethodParams):
    column: str | None = None
    ticket_type: str | None = None


class TicketParams(BoardMethodParams):
    """Parameters addressing a single ticket."""

    ticket_id: str = Field(..., min_length=1)


class BoardCreateParams(BoardMethodParams):
    title: str = Field(..., min_length=1)
    ticket_type: str | None = None
    intent: str | None = None
    acceptance_signal: str | None = None
    priority: str | None = None
    parent_id: str | None = None


class BoardUpdateParams(TicketParams):
    """Partial update. ``comment`` is appended before field updates apply."""

    title: str | None = Field(default=None, min_length=1)
    ticket_type: str | None = None
    intent: str | None = None
    acceptance_signal: str | None = None
    priority: str | None = None
    comment: str | None = None


class BoardMoveParams(TicketParams):
    to_status: str = Field(..., min_length=1)
    note: str | None = None


class BoardCommentParams(TicketParams):
    comment: str = Field(..., min_length=1)


# Response models


class BoardInitResponse(CamelModel):
    project_id: str
    project_name: str
    ticket_prefix: str
    board_schema: str = Field(alias="schema")


class BoardStatusResponse(CamelModel):
    """Response model for board.status."""

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


def summary_to_response(summary: BoardSummary) -> BoardStatusResponse:
    """Convert a BoardSummary to BoardStatusResponse."""
    return BoardStatusResponse(
        project_id=summary.project_id,
        project_name=summary.project_name,
        column_counts=dict(summary.column_counts),
        total_tickets=summary.total_tickets,
        open_tickets=summary.open_tickets,
        completed_tickets=summary.completed_tickets,
        stale_count=summary.stale_count,
        blocked_count=summary.blocked_count,
        oldest_backlog_age_ms=summary.oldest_backlog_age_ms,
        oldest_in_progress_age_ms=summary.oldest_in_progress_age_ms,
    )


class CodeLocationResponse(BaseModel):
    branch: str
    worktree: str


class TicketBrief(CamelModel):
    """Short ticket form returned by mutating methods."""

    id: str
    title: str
    status: str
    type: str | None = None
    code_location: CodeLocationResponse | None = None


def ticket_to_brief(ticket: Ticket, *, with_type: bool = False) -> TicketBrief:
    location = ticket.code_location
    return TicketBrief(
        id=ticket.id,
        title=ticket.title,
        status=ticket.status,
        type=ticket.type if with_type else None,
        code_location=(
            CodeLocationResponse(branch=location.branch, worktree=location.worktree)
            if location is not None
            else None
        ),
    )


class TicketListItem(CamelModel):
    """Response model for one board.list entry."""

    id: str
    title: str
    type: str
    status: str
    intent: str
    priority: str | None = None
    comment_count: int
    code_location: CodeLocationResponse | None = None
    created_at: str
    updated_at: str


def ticket_to_list_item(ticket: Ticket) -> TicketListItem:
    brief = ticket_to_brief(ticket)
    return TicketListItem(
        id=ticket.id,
        title=ticket.title,
        type=ticket.type,
        status=ticket.status,
        intent=ticket.intent,
        priority=ticket.priority,
        comment_count=len(ticket.comments),
        code_location=brief.code_location,
        created_at=format_timestamp(ticket.created_at),
        updated_at=format_timestamp(ticket.updated_at),
    )


class TicketListResponse(BaseModel):
    tickets: list[TicketListItem]


class TicketDetailResponse(BaseModel):
    """Full ticket record, in its stored shape."""

    ticket: dict[str, Any]


def ticket_to_detail(ticket: Ticket) -> TicketDetailResponse:
    return TicketDetailResponse(ticket=ticket_to_dict(ticket))


class TicketResponse(BaseModel):
    ticket: TicketBrief


class CommentResponse(CamelModel):
    ticket_id: str
    comment_count: int


class DeleteResponse(CamelModel):
    ticket_id: str
    deleted: bool
