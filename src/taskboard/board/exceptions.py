"""Custom exceptions for the ticket board."""

from __future__ import annotations

from pathlib import Path


class BoardError(Exception):
    """Base exception for ticket board errors."""


class BoardNotInitializedError(BoardError):
    """No board file exists in the workspace."""

    def __init__(self, message: str = "Board not initialized. Run init first.") -> None:
        super().__init__(message)


class TicketNotFoundError(BoardError):
    """Ticket with given ID does not exist."""

    def __init__(self, ticket_id: str) -> None:
        self.ticket_id = ticket_id
        super().__init__(f"Ticket not found: {ticket_id}")


class WipLimitExceededError(BoardError):
    """Target column already holds as many tickets as its WIP limit allows."""

    def __init__(self, status: str, current: int, limit: int) -> None:
        self.status = status
        self.current = current
        self.limit = limit
        super().__init__(f"WIP limit reached for {status}: {current}/{limit}")


class MalformedRecordError(BoardError):
    """A board or ticket file exists but cannot be decoded."""

    def __init__(self, reason: str, path: Path | None = None) -> None:
        self.path = path
        self.reason = reason
        where = f" in {path}" if path is not None else ""
        super().__init__(f"Malformed record{where}: {reason}")


class InvalidStatusError(BoardError):
    """Status is not one of the board's columns."""


class InvalidFieldError(BoardError):
    """A ticket field value is outside its allowed vocabulary."""
