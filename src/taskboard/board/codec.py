"""YAML codec for board and ticket records.

Records are stored as plain YAML mappings with camelCase keys so the files
stay readable, diffable and editable by hand.
"""

from __future__ import annotations

import logging
from dataclasses import fields
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any

import yaml

from taskboard.board.exceptions import MalformedRecordError
from taskboard.board.models import (
    Board,
    BoardSettings,
    BoardSummary,
    CodeLocation,
    Column,
    Comment,
    Ticket,
)
from taskboard.board.schemas import get_profile

if TYPE_CHECKING:
    from pathlib import Path

    from taskboard.board.schemas import SchemaProfile

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

# On-disk key -> Ticket attribute for every explicitly modelled field
TICKET_FIELDS = {
    "id": "id",
    "parentId": "parent_id",
    "title": "title",
    "type": "type",
    "status": "status",
    "priority": "priority",
    "intent": "intent",
    "acceptanceSignal": "acceptance_signal",
    "blockedBy": "blocked_by",
    "blocks": "blocks",
    "codeLocation": "code_location",
    "comments": "comments",
    "rejectionCount": "rejection_count",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "statusChangedAt": "status_changed_at",
    "completedAt": "completed_at",
}

SETTINGS_FIELDS = {
    "autoRefine": "auto_refine",
    "autoWork": "auto_work",
    "requireReview": "require_review",
    "staleInProgressHours": "stale_in_progress_hours",
    "maxRefinePerHeartbeat": "max_refine_per_heartbeat",
    "maxWorkPerHeartbeat": "max_work_per_heartbeat",
    "ticketPrefix": "ticket_prefix",
    "nextTicketNumber": "next_ticket_number",
}


def format_timestamp(value: datetime) -> str:
    """Render a datetime as ISO-8601 UTC with a 'Z' suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a stored timestamp.

    Accepts ISO strings as well as the datetime/date objects YAML produces for
    unquoted timestamps. Naive values are taken to be UTC.

    Raises:
        ValueError: If the value is not a recognizable timestamp.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip())
    else:
        raise ValueError(f"Not a timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def dump_yaml(data: dict[str, Any]) -> str:
    """Serialize a mapping, preserving key order."""
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True, width=120)


def decode(text: str, path: Path | None = None) -> dict[str, Any]:
    """Decode a YAML document into a mapping.

    Raises:
        MalformedRecordError: If the text is not valid YAML or not a mapping.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise MalformedRecordError(f"invalid YAML: {e}", path) from e
    if not isinstance(data, dict):
        raise MalformedRecordError(f"expected a mapping, got {type(data).__name__}", path)
    return data


# --- Board ---


def board_to_dict(board: Board) -> dict[str, Any]:
    columns = []
    for column in board.columns:
        entry: dict[str, Any] = {
            "id": str(column.id),
            "name": column.name,
            "wipLimit": column.wip_limit,
        }
        if column.auto_pull is not None:
            entry["autoPull"] = column.auto_pull
        columns.append(entry)

    settings = {key: getattr(board.settings, attr) for key, attr in SETTINGS_FIELDS.items()}

    return {
        "version": board.version,
        "schema": board.schema,
        "projectId": board.project_id,
        "projectName": board.project_name,
        "columns": columns,
        "settings": settings,
        "updatedAt": format_timestamp(board.updated_at),
    }


def _parse_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"expected true or false, got {value!r}")
    return value


# Annotation on BoardSettings -> parser for the stored value
_SETTING_PARSERS = {"bool": _parse_bool, "int": int, "float": float, "str": str}


def settings_from_dict(raw: Any, path: Path | None = None) -> BoardSettings:
    """Build BoardSettings, coercing each stored value to its field's type.

    Unknown keys are ignored and missing ones keep their defaults.

    Raises:
        MalformedRecordError: If settings is not a mapping or a value has the wrong type.
    """
    if raw is None:
        return BoardSettings()
    if not isinstance(raw, dict):
        raise MalformedRecordError(f"settings must be a mapping, got {type(raw).__name__}", path)

    field_types = {f.name: f.type for f in fields(BoardSettings)}
    values = {}
    for key, attr in SETTINGS_FIELDS.items():
        if raw.get(key) is None:
            continue
        parse = _SETTING_PARSERS[str(field_types[attr])]
        try:
            values[attr] = parse(raw[key])
        except (TypeError, ValueError) as e:
            raise MalformedRecordError(f"invalid setting {key}: {e}", path) from e
    return BoardSettings(**values)


def reconcile_columns(
    columns: list[Column], profile: SchemaProfile, path: Path | None = None
) -> list[Column]:
    """Drop columns the board's schema has no status for.

    Tickets in such a column are normalized into another one on read, so the
    column could never hold them. A board left with no usable column gets the
    profile's defaults.
    """
    kept = [c for c in columns if c.id in profile.statuses]
    dropped = [c.id for c in columns if c.id not in profile.statuses]
    if dropped:
        logger.warning(
            "Ignoring columns %s in %s: not part of the %s schema",
            dropped,
            path or "board",
            profile.name,
        )
    return kept or profile.default_columns()


def board_from_dict(data: dict[str, Any], path: Path | None = None) -> Board:
    """Build a Board from a decoded mapping.

    Columns outside the board's schema are dropped, so every column id is a
    status its tickets can keep.

    Raises:
        MalformedRecordError: If required fields are missing or invalid.
    """
    if not data.get("projectId"):
        raise MalformedRecordError("board has no projectId", path)

    try:
        profile = get_profile(data.get("schema"))
    except ValueError as e:
        raise MalformedRecordError(str(e), path) from e

    raw_columns = data.get("columns")
    if raw_columns:
        try:
            columns = [
                Column(
                    id=str(c["id"]),
                    name=str(c.get("name") or c["id"]),
                    wip_limit=int(c["wipLimit"]) if c.get("wipLimit") is not None else None,
                    auto_pull=c.get("autoPull"),
                )
                for c in raw_columns
            ]
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise MalformedRecordError(f"invalid columns: {e}", path) from e
        columns = reconcile_columns(columns, profile, path)
    else:
        columns = profile.default_columns()

    settings = settings_from_dict(data.get("settings"), path)

    try:
        updated_at = parse_timestamp(data.get("updatedAt")) or EPOCH
        version = int(data.get("version", 1))
    except (TypeError, ValueError) as e:
        raise MalformedRecordError(str(e), path) from e

    return Board(
        project_id=str(data["projectId"]),
        project_name=str(data.get("projectName") or data["projectId"]),
        columns=columns,
        settings=settings,
        schema=profile.name,
        version=version,
        updated_at=updated_at,
    )


def encode_board(board: Board) -> str:
    return dump_yaml(board_to_dict(board))


# --- Ticket ---


def ticket_to_dict(ticket: Ticket) -> dict[str, Any]:
    """Convert a ticket to its on-disk mapping. Unset optional fields are omitted."""
    data: dict[str, Any] = {"id": ticket.id}
    if ticket.parent_id:
        data["parentId"] = ticket.parent_id
    data["title"] = ticket.title
    data["type"] = str(ticket.type)
    data["status"] = str(ticket.status)
    if ticket.priority is not None:
        data["priority"] = str(ticket.priority)
    if ticket.intent:
        data["intent"] = ticket.intent
    if ticket.acceptance_signal:
        data["acceptanceSignal"] = ticket.acceptance_signal
    data.update(ticket.extra)
    if ticket.blocked_by:
        data["blockedBy"] = list(ticket.blocked_by)
    if ticket.blocks:
        data["blocks"] = list(ticket.blocks)
    if ticket.code_location is not None:
        data["codeLocation"] = {
            "branch": ticket.code_location.branch,
            "worktree": ticket.code_location.worktree,
        }
    if ticket.comments:
        data["comments"] = [
            {
                "author": c.author,
                "text": c.text,
                "createdAt": format_timestamp(c.created_at),
            }
            for c in ticket.comments
        ]
    if ticket.rejection_count is not None:
        data["rejectionCount"] = ticket.rejection_count
    data["createdAt"] = format_timestamp(ticket.created_at)
    data["updatedAt"] = format_timestamp(ticket.updated_at)
    data["statusChangedAt"] = format_timestamp(ticket.status_changed_at)
    if ticket.completed_at is not None:
        data["completedAt"] = format_timestamp(ticket.completed_at)
    return data


def _string_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, list):
        return [str(item) for item in value]
    return [str(value)]


def ticket_from_dict(data: dict[str, Any], path: Path | None = None) -> Ticket:
    """Build a Ticket from an already-normalized mapping.

    Raises:
        MalformedRecordError: If ``id`` is missing or a field has the wrong shape.
    """
    if not data.get("id"):
        raise MalformedRecordError("ticket has no id", path)

    try:
        created_at = (
            parse_timestamp(data.get("createdAt"))
            or parse_timestamp(data.get("updatedAt"))
            or parse_timestamp(data.get("statusChangedAt"))
            or EPOCH
        )
        updated_at = parse_timestamp(data.get("updatedAt")) or created_at
        status_changed_at = parse_timestamp(data.get("statusChangedAt")) or created_at
        completed_at = parse_timestamp(data.get("completedAt"))

        code_location = None
        raw_location = data.get("codeLocation")
        if raw_location:
            code_location = CodeLocation(
                branch=str(raw_location["branch"]),
                worktree=str(raw_location.get("worktree", "")),
            )

        comments = [
            Comment(
                author=str(c.get("author", "")),
                text=str(c.get("text", "")),
                created_at=parse_timestamp(c.get("createdAt")) or created_at,
            )
            for c in data.get("comments") or []
        ]

        rejection_count = data.get("rejectionCount")
        if rejection_count is not None:
            rejection_count = int(rejection_count)
    except (ValueError, TypeError, KeyError, AttributeError) as e:
        raise MalformedRecordError(str(e), path) from e

    priority = data.get("priority")
    parent_id = data.get("parentId")
    return Ticket(
        id=str(data["id"]),
        title=str(data.get("title") or ""),
        type=str(data.get("type") or ""),
        status=str(data.get("status") or ""),
        created_at=created_at,
        updated_at=updated_at,
        status_changed_at=status_changed_at,
        intent=str(data.get("intent") or ""),
        acceptance_signal=str(data.get("acceptanceSignal") or ""),
        priority=str(priority) if priority is not None else None,
        completed_at=completed_at,
        code_location=code_location,
        comments=comments,
        parent_id=str(parent_id) if parent_id else None,
        blocked_by=_string_list(data.get("blockedBy")),
        blocks=_string_list(data.get("blocks")),
        rejection_count=rejection_count,
        extra={k: v for k, v in data.items() if k not in TICKET_FIELDS},
    )


def encode_ticket(ticket: Ticket) -> str:
    return dump_yaml(ticket_to_dict(ticket))


def summary_to_dict(summary: BoardSummary) -> dict[str, Any]:
    """Plain camelCase mapping of a summary for JSON responses."""
    return {
        "projectId": summary.project_id,
        "projectName": summary.project_name,
        "columnCounts": dict(summary.column_counts),
        "totalTickets": summary.total_tickets,
        "openTickets": summary.open_tickets,
        "completedTickets": summary.completed_tickets,
        "staleCount": summary.stale_count,
        "blockedCount": summary.blocked_count,
        "oldestBacklogAgeMs": summary.oldest_backlog_age_ms,
        "oldestInProgressAgeMs": summary.oldest_in_progress_age_ms,
    }
