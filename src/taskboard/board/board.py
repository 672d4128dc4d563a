"""TicketBoard - Main API for board lifecycle and query operations."""

from __future__ import annotations

import logging
import re
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from taskboard.board import queries
from taskboard.board.codec import TICKET_FIELDS
from taskboard.board.exceptions import (
    BoardNotInitializedError,
    InvalidFieldError,
    InvalidStatusError,
    TicketNotFoundError,
    WipLimitExceededError,
)
from taskboard.board.migrations import normalize
from taskboard.board.models import (
    PRIORITY_ORDER,
    SYSTEM_AUTHOR,
    Board,
    BoardSettings,
    BoardWithTickets,
    CodeLocation,
    Comment,
    TicketStatus,
    TicketUpdate,
    utc_now,
)
from taskboard.board.schemas import get_profile
from taskboard.board.storage import BoardStorage, sanitize_id

if TYPE_CHECKING:
    from collections.abc import Mapping

    from taskboard.board.models import BoardSummary, Ticket, TicketCreate
    from taskboard.board.schemas import SchemaProfile

logger = logging.getLogger(__name__)

BRANCH_PREFIX = "story"
WORKTREE_DIR = ".worktrees"
SLUG_MAX_LENGTH = 40
TICKET_NUMBER_WIDTH = 3
PREFIX_LENGTH = 4

# Fields an update may never touch; status changes go through move_ticket
PROTECTED_FIELDS = frozenset({"id", "status", "created_at"})

# Maintained by move_ticket and add_comment only
DERIVED_FIELDS = frozenset(
    {
        "updated_at",
        "status_changed_at",
        "completed_at",
        "code_location",
        "comments",
        "rejection_count",
    }
)

# Attribute name -> on-disk key, for patches given with snake_case keys
_ATTRIBUTE_KEYS = {attr: key for key, attr in TICKET_FIELDS.items()}

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str, max_length: int = SLUG_MAX_LENGTH) -> str:
    """Lowercase, collapse non-alphanumeric runs to '-', trim and truncate."""
    slug = _NON_ALNUM.sub("-", text.lower()).strip("-")
    return slug[:max_length].rstrip("-")


def derive_code_location(ticket_id: str, title: str) -> CodeLocation:
    """Derive the branch and worktree for a ticket from its ID and title."""
    name = ticket_id.lower()
    slug = slugify(title)
    if slug:
        name = f"{name}-{slug}"
    return CodeLocation(branch=f"{BRANCH_PREFIX}/{name}", worktree=f"{WORKTREE_DIR}/{name}")


def format_ticket_id(prefix: str, number: int) -> str:
    return f"{prefix}-{number:0{TICKET_NUMBER_WIDTH}d}"


class TicketBoard:
    """Lifecycle and query operations for the board in one workspace.

    Mutating operations hold the workspace lock for their whole
    read-check-write sequence, so WIP limits and ticket numbering hold for
    concurrent callers within a process. Separate processes writing the same
    workspace are not coordinated.
    """

    def __init__(self, workspace_dir: str | Path) -> None:
        """Initialize the board API for a workspace.

        Args:
            workspace_dir: Agent workspace directory holding ``board/``.
        """
        self.workspace_dir = Path(workspace_dir)
        self.storage = BoardStorage(self.workspace_dir)

    # --- Helpers ---

    def _require_board(self) -> Board:
        board = self.storage.load_board()
        if board is None:
            raise BoardNotInitializedError()
        return board

    def _require_ticket(self, ticket_id: str, profile: SchemaProfile | None = None) -> Ticket:
        ticket = self.storage.load_ticket(ticket_id, profile)
        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        return ticket

    @staticmethod
    def _check_type(profile: SchemaProfile, ticket_type: str) -> str:
        if ticket_type not in profile.ticket_types:
            raise InvalidFieldError(
                f"Invalid ticket type '{ticket_type}'. "
                f"Valid types: {', '.join(profile.ticket_types)}"
            )
        return ticket_type

    @staticmethod
    def _check_priority(profile: SchemaProfile, priority: str) -> str:
        # Lean boards rank nothing by priority but still only store known values
        allowed = profile.priorities or tuple(str(p) for p in PRIORITY_ORDER)
        if priority not in allowed:
            raise InvalidFieldError(
                f"Invalid priority '{priority}'. Valid priorities: {', '.join(allowed)}"
            )
        return priority

    # --- Board Operations ---

    def load_board(self) -> Board | None:
        """Load the board, or None if it has not been initialized."""
        return self.storage.load_board()

    def init(self, project_id: str, project_name: str, schema: str | None = None) -> Board:
        """Create the board, or return the existing one unchanged.

        Args:
            project_id: Project identifier; sanitized, and its first four
                characters become the ticket prefix.
            project_name: Human-readable project name.
            schema: Ticket schema, "lean" (default) or "planning".

        Returns:
            The new board, or the board that already existed.

        Raises:
            ValueError: If the schema name is unknown.
        """
        profile = get_profile(schema)
        with self.storage.lock():
            existing = self.storage.load_board()
            if existing is not None:
                logger.debug("Board already initialized for %s", existing.project_id)
                return existing

            sanitized = sanitize_id(project_id)
            board = Board(
                project_id=sanitized,
                project_name=project_name,
                columns=profile.default_columns(),
                settings=BoardSettings(ticket_prefix=sanitized[:PREFIX_LENGTH] or "TASK"),
                schema=profile.name,
                updated_at=utc_now(),
            )
            self.storage.save_board(board)

        logger.info(
            "Initialized %s board %s (%s) in %s",
            profile.name,
            board.project_id,
            board.project_name,
            self.workspace_dir,
        )
        return board

    def load_with_tickets(self) -> BoardWithTickets | None:
        board = self.storage.load_board()
        if board is None:
            return None
        return BoardWithTickets(
            board=board, tickets=self.storage.list_tickets(get_profile(board.schema))
        )

    # --- Ticket Operations ---

    def get_ticket(self, ticket_id: str) -> Ticket | None:
        """Load a ticket, or None if it does not exist.

        Raises:
            MalformedRecordError: If the ticket file is corrupt.
        """
        return self.storage.load_ticket(ticket_id)

    def list_tickets(self) -> list[Ticket]:
        return self.storage.list_tickets()

    def create_ticket(self, data: TicketCreate) -> Ticket:
        """Create a ticket in the first column.

        The incremented counter is saved before the ticket file. A crash in
        between leaves a gap in the numbering but never reuses an ID.

        Raises:
            BoardNotInitializedError: If the workspace has no board.
            InvalidFieldError: If the type or priority is not valid for the schema.
        """
        with self.storage.lock():
            board = self._require_board()
            profile = get_profile(board.schema)

            ticket_type = self._check_type(profile, data.type or profile.default_type)
            priority = data.priority or profile.default_priority
            if priority is not None:
                self._check_priority(profile, priority)

            ticket_id = format_ticket_id(
                board.settings.ticket_prefix, board.settings.next_ticket_number
            )
            board.settings.next_ticket_number += 1
            timestamp = utc_now()
            board.updated_at = timestamp

            raw: dict[str, Any] = {
                "id": ticket_id,
                "parentId": data.parent_id,
                "title": data.title,
                "type": ticket_type,
                "status": str(board.columns[0].id),
                "priority": priority,
                "intent": data.intent,
                "acceptanceSignal": data.acceptance_signal,
                "blockedBy": data.blocked_by,
                "createdAt": timestamp,
                "updatedAt": timestamp,
                "statusChangedAt": timestamp,
            }
            if profile.ranks_priority:
                raw.setdefault("description", "")
                raw.setdefault("acceptanceCriteria", [])
            # Lets the schema rename lean-style input fields for planning boards
            ticket = normalize({k: v for k, v in raw.items() if v is not None}, profile)

            self.storage.save_board(board)
            self.storage.save_ticket(ticket)

        logger.info("Created ticket %s: %s", ticket.id, ticket.title)
        return ticket

    def update_ticket(self, ticket_id: str, patch: TicketUpdate | Mapping[str, Any]) -> Ticket:
        """Apply a partial update.

        ``id``, ``status`` and ``createdAt`` are never changed by an update and
        ``None`` values are ignored. Keys may be attribute names or on-disk
        camelCase keys; keys the model does not know are stored as extra
        fields.

        Raises:
            TicketNotFoundError: If the ticket does not exist.
            InvalidFieldError: If the type or priority is not valid for the schema.
        """
        if isinstance(patch, TicketUpdate):
            patch = asdict(patch)

        with self.storage.lock():
            board = self.storage.load_board()
            profile = get_profile(board.schema if board is not None else None)
            ticket = self._require_ticket(ticket_id, profile)
            renames = {merge.source: merge for merge in profile.merges}

            for key, value in patch.items():
                if value is None:
                    continue
                attr = TICKET_FIELDS.get(key, key)
                if attr in PROTECTED_FIELDS or attr in DERIVED_FIELDS:
                    logger.debug("Ignoring field %r in update of %s", key, ticket_id)
                    continue
                disk_key = _ATTRIBUTE_KEYS.get(attr, key)
                if disk_key in renames:
                    merge = renames[disk_key]
                    if merge.target in TICKET_FIELDS:
                        setattr(ticket, TICKET_FIELDS[merge.target], merge.convert(value))
                    else:
                        ticket.extra[merge.target] = merge.convert(value)
                elif disk_key in profile.obsolete_fields:
                    logger.debug("Ignoring field %r not in %s schema", key, profile.name)
                elif attr == "type":
                    ticket.type = self._check_type(profile, value)
                elif attr == "priority":
                    ticket.priority = self._check_priority(profile, value)
                elif attr in _ATTRIBUTE_KEYS:
                    setattr(ticket, attr, value)
                else:
                    ticket.extra[key] = value

            ticket.updated_at = utc_now()
            self.storage.save_ticket(ticket)

        logger.info("Updated ticket %s", ticket.id)
        return ticket

    def move_ticket(self, ticket_id: str, to_status: str, note: str | None = None) -> Ticket:
        """Move a ticket to another column.

        Checks the target column's WIP limit (not counting the moved ticket),
        stamps ``statusChangedAt``, stamps ``completedAt`` on first entry into
        done, derives a code location on first entry into in-progress, appends
        ``note`` as a system comment and, on planning boards, counts review
        rejections.

        Raises:
            TicketNotFoundError: If the ticket does not exist.
            BoardNotInitializedError: If the workspace has no board.
            InvalidStatusError: If the board has no such column.
            WipLimitExceededError: If the target column is full.
        """
        with self.storage.lock():
            ticket = self._require_ticket(ticket_id)
            board = self._require_board()
            profile = get_profile(board.schema)

            column = board.get_column(to_status)
            if column is None or to_status not in profile.statuses:
                raise InvalidStatusError(
                    f"Invalid status '{to_status}'. Valid statuses: {', '.join(board.column_ids)}"
                )

            if column.wip_limit:
                tickets = self.storage.list_tickets(profile)
                current = queries.count_in_column(tickets, to_status, exclude_id=ticket.id)
                if current >= column.wip_limit:
                    raise WipLimitExceededError(to_status, current, column.wip_limit)

            from_status = ticket.status
            timestamp = utc_now()
            ticket.status = str(column.id)
            ticket.updated_at = timestamp
            ticket.status_changed_at = timestamp

            if to_status == TicketStatus.DONE and ticket.completed_at is None:
                ticket.completed_at = timestamp

            if to_status == TicketStatus.IN_PROGRESS and ticket.code_location is None:
                ticket.code_location = derive_code_location(ticket.id, ticket.title)

            if (
                profile.tracks_rejections
                and from_status == TicketStatus.REVIEW
                and to_status != TicketStatus.DONE
            ):
                ticket.rejection_count = (ticket.rejection_count or 0) + 1

            if note:
                ticket.comments.append(
                    Comment(
                        author=SYSTEM_AUTHOR,
                        text=f"Moved to {to_status}: {note}",
                        created_at=timestamp,
                    )
                )

            self.storage.save_ticket(ticket)

        logger.info("Moved ticket %s from %s to %s", ticket.id, from_status, ticket.status)
        return ticket

    def add_comment(self, ticket_id: str, author: str, text: str) -> Ticket:
        """Append a comment to a ticket.

        Raises:
            TicketNotFoundError: If the ticket does not exist.
        """
        with self.storage.lock():
            ticket = self._require_ticket(ticket_id)
            timestamp = utc_now()
            ticket.comments.append(Comment(author=author, text=text, created_at=timestamp))
            ticket.updated_at = timestamp
            self.storage.save_ticket(ticket)

        logger.info("Added comment by %s to %s", author, ticket.id)
        return ticket

    def delete_ticket(self, ticket_id: str) -> bool:
        """Delete a ticket.

        Returns:
            True if the ticket was deleted, False if it did not exist.
        """
        with self.storage.lock():
            deleted = self.storage.delete_ticket(ticket_id)
        if deleted:
            logger.info("Deleted ticket %s", ticket_id)
        return deleted

    # --- Queries ---

    def _board_and_profile(self) -> tuple[Board | None, SchemaProfile]:
        board = self.storage.load_board()
        return board, get_profile(board.schema if board is not None else None)

    def get_tickets_by_status(self, status: str) -> list[Ticket]:
        """Tickets in one column, sorted by the board's listing order."""
        _, profile = self._board_and_profile()
        return queries.tickets_with_status(self.storage.list_tickets(profile), status, profile)

    def get_next_work_item(self) -> Ticket | None:
        """Next ready ticket, or None if in-progress is full or nothing is ready."""
        board, profile = self._board_and_profile()
        if board is None:
            return None
        tickets = self.storage.list_tickets(profile)
        if queries.column_is_full(board, tickets, TicketStatus.IN_PROGRESS):
            return None
        ready = queries.tickets_with_status(tickets, TicketStatus.READY, profile)
        return ready[0] if ready else None

    def get_next_refinement_item(self) -> Ticket | None:
        """Next backlog ticket to refine, preferring epics and stories.

        Only planning boards have a refinement column; lean boards always
        return None.
        """
        board, profile = self._board_and_profile()
        if board is None or profile.refinement_status is None:
            return None
        tickets = self.storage.list_tickets(profile)
        if queries.column_is_full(board, tickets, profile.refinement_status):
            return None
        backlog = queries.tickets_with_status(tickets, profile.backlog_status, profile)
        return queries.pick_refinement_candidate(backlog, profile)

    def get_stale_tickets(
        self, max_hours: float | None = None, now: datetime | None = None
    ) -> list[Ticket]:
        """In-progress tickets older than ``max_hours`` in their column.

        Args:
            max_hours: Threshold; defaults to the board's staleInProgressHours.
            now: Reference time; defaults to the current time.
        """
        board, profile = self._board_and_profile()
        if max_hours is None:
            max_hours = (
                board.settings.stale_in_progress_hours
                if board is not None
                else BoardSettings().stale_in_progress_hours
            )
        return queries.stale_tickets(
            self.storage.list_tickets(profile), max_hours, now or utc_now()
        )

    def get_blocked_tickets(self) -> list[Ticket]:
        _, profile = self._board_and_profile()
        return queries.blocked_tickets(self.storage.list_tickets(profile), profile)

    def get_child_tickets(self, parent_id: str) -> list[Ticket]:
        _, profile = self._board_and_profile()
        return queries.child_tickets(self.storage.list_tickets(profile), parent_id)

    def get_summary(self, now: datetime | None = None) -> BoardSummary | None:
        """Whole-board statistics, or None if the board is not initialized."""
        board, profile = self._board_and_profile()
        if board is None:
            return None
        return queries.build_summary(
            board, self.storage.list_tickets(profile), profile, now or utc_now()
        )
