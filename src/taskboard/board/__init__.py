"""Ticket board - Kanban persistence and lifecycle engine."""

from taskboard.board.board import TicketBoard, derive_code_location, slugify
from taskboard.board.exceptions import (
    BoardError,
    BoardNotInitializedError,
    InvalidFieldError,
    InvalidStatusError,
    MalformedRecordError,
    TicketNotFoundError,
    WipLimitExceededError,
)
from taskboard.board.models import (
    Board,
    BoardSettings,
    BoardSummary,
    BoardWithTickets,
    CodeLocation,
    Column,
    Comment,
    Ticket,
    TicketCreate,
    TicketPriority,
    TicketStatus,
    TicketUpdate,
)
from taskboard.board.schemas import LEAN, PLANNING, SchemaProfile, get_profile
from taskboard.board.storage import BoardStorage, sanitize_id

__all__ = [
    "LEAN",
    "PLANNING",
    "Board",
    "BoardError",
    "BoardNotInitializedError",
    "BoardSettings",
    "BoardStorage",
    "BoardSummary",
    "BoardWithTickets",
    "CodeLocation",
    "Column",
    "Comment",
    "InvalidFieldError",
    "InvalidStatusError",
    "MalformedRecordError",
    "SchemaProfile",
    "Ticket",
    "TicketBoard",
    "TicketCreate",
    "TicketNotFoundError",
    "TicketPriority",
    "TicketStatus",
    "TicketUpdate",
    "WipLimitExceededError",
    "derive_code_location",
    "get_profile",
    "sanitize_id",
    "slugify",
]
