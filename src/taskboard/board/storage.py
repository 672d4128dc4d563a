"""Board storage layer.

Persists a board and its tickets inside an agent workspace::

    <workspace>/board/
        board.yaml          board configuration
        tickets/
            <ID>.yaml       one file per ticket
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from taskboard.board.codec import board_from_dict, decode, encode_board, encode_ticket
from taskboard.board.exceptions import MalformedRecordError
from taskboard.board.migrations import normalize
from taskboard.board.schemas import get_profile

if TYPE_CHECKING:
    from collections.abc import Iterator

    from taskboard.board.models import Board, Ticket
    from taskboard.board.schemas import SchemaProfile

logger = logging.getLogger(__name__)

BOARD_DIR = "board"
BOARD_FILE = "board.yaml"
TICKETS_DIR = "tickets"
TICKET_SUFFIX = ".yaml"

_UNSAFE_ID_CHARS = re.compile(r"[^a-zA-Z0-9_-]")

# One re-entrant lock per workspace, shared by every BoardStorage in the process
_workspace_locks: dict[Path, threading.RLock] = {}
_workspace_locks_guard = threading.Lock()


def sanitize_id(value: str) -> str:
    """Map an identifier to uppercase alphanumerics, '-' and '_'.

    Used for every ticket or project id that becomes part of a file path.
    """
    return _UNSAFE_ID_CHARS.sub("_", value).upper()


def get_workspace_lock(workspace_dir: str | Path) -> threading.RLock:
    """Return the process-wide lock guarding a workspace directory."""
    key = Path(workspace_dir).resolve()
    with _workspace_locks_guard:
        lock = _workspace_locks.get(key)
        if lock is None:
            lock = threading.RLock()
            _workspace_locks[key] = lock
        return lock


def _write_atomic(path: Path, content: str) -> None:
    """Write via a temporary file and rename so readers never see partial files."""
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.stem}.",
        suffix=".tmp",
        delete=False,
    ) as tmp_file:
        tmp_path = Path(tmp_file.name)
        try:
            tmp_file.write(content)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        except BaseException:
            tmp_file.close()
            tmp_path.unlink(missing_ok=True)
            raise

    try:
        tmp_path.replace(path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


class BoardStorage:
    """File-backed storage for one workspace's board and tickets."""

    def __init__(self, workspace_dir: str | Path) -> None:
        """Initialize storage for a workspace.

        Args:
            workspace_dir: Agent workspace directory. Nothing is created until
                the first write.
        """
        self.workspace_dir = Path(workspace_dir)

    @property
    def board_dir(self) -> Path:
        return self.workspace_dir / BOARD_DIR

    @property
    def board_path(self) -> Path:
        return self.board_dir / BOARD_FILE

    @property
    def tickets_dir(self) -> Path:
        return self.board_dir / TICKETS_DIR

    def ticket_path(self, ticket_id: str) -> Path:
        return self.tickets_dir / f"{sanitize_id(ticket_id)}{TICKET_SUFFIX}"

    @contextmanager
    def lock(self) -> Iterator[None]:
        """Hold the workspace lock for a read-modify-write sequence."""
        with get_workspace_lock(self.workspace_dir):
            yield

    def ensure_dir(self) -> Path:
        """Create the board and tickets directories if needed.

        Returns:
            The board directory.
        """
        self.tickets_dir.mkdir(parents=True, exist_ok=True)
        return self.board_dir

    # --- Board ---

    def load_board(self) -> Board | None:
        """Load the board.

        Returns:
            The board, or None if the workspace has no board yet.

        Raises:
            MalformedRecordError: If the board file exists but cannot be decoded.
        """
        try:
            content = self.board_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        return board_from_dict(decode(content, self.board_path), self.board_path)

    def save_board(self, board: Board) -> None:
        self.ensure_dir()
        _write_atomic(self.board_path, encode_board(board))
        logger.debug("Saved board %s to %s", board.project_id, self.board_path)

    def _profile(self, profile: SchemaProfile | None) -> SchemaProfile:
        if profile is not None:
            return profile
        board = self.load_board()
        return get_profile(board.schema if board is not None else None)

    # --- Tickets ---

    def load_ticket(self, ticket_id: str, profile: SchemaProfile | None = None) -> Ticket | None:
        """Load and normalize a single ticket.

        Args:
            ticket_id: Ticket ID (sanitized before use).
            profile: Schema to normalize into. Defaults to the board's schema.

        Returns:
            The ticket, or None if no file exists for the ID.

        Raises:
            MalformedRecordError: If the file exists but cannot be decoded.
        """
        path = self.ticket_path(ticket_id)
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        return normalize(decode(content, path), self._profile(profile), path)

    def save_ticket(self, ticket: Ticket) -> None:
        self.ensure_dir()
        _write_atomic(self.ticket_path(ticket.id), encode_ticket(ticket))
        logger.debug("Saved ticket %s", ticket.id)

    def delete_ticket(self, ticket_id: str) -> bool:
        """Delete a ticket file.

        Returns:
            True if a file was removed, False if none existed.
        """
        try:
            self.ticket_path(ticket_id).unlink()
        except FileNotFoundError:
            return False
        return True

    def list_tickets(self, profile: SchemaProfile | None = None) -> list[Ticket]:
        """Load every decodable ticket in the workspace.

        Files that cannot be decoded or have no ``id`` are skipped, so one
        corrupt ticket never hides the rest. A missing tickets directory
        yields an empty list.
        """
        try:
            paths = sorted(
                p for p in self.tickets_dir.iterdir() if p.name.endswith(TICKET_SUFFIX)
            )
        except FileNotFoundError:
            return []

        resolved = self._profile(profile)
        tickets = []
        for path in paths:
            try:
                content = path.read_text(encoding="utf-8")
                tickets.append(normalize(decode(content, path), resolved, path))
            except FileNotFoundError:
                continue
            except (MalformedRecordError, UnicodeDecodeError) as e:
                logger.debug("Skipping unreadable ticket file %s: %s", path, e)
        return tickets
