"""Lazy schema migration for ticket records.

Every ticket read goes through ``normalize``. Records already in the board's
current schema pass through untouched; records written under the other
schema are rewritten in memory according to the profile's tables. Nothing is
written back here: a migrated ticket reaches disk in its new shape the next
time it is saved.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from taskboard.board.codec import ticket_from_dict
from taskboard.board.models import SYSTEM_AUTHOR

if TYPE_CHECKING:
    from pathlib import Path

    from taskboard.board.models import Ticket
    from taskboard.board.schemas import SchemaProfile

logger = logging.getLogger(__name__)

_BLANK_LINE = re.compile(r"\n\s*\n")


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == []


def _split_notes(notes: Any) -> list[str]:
    """Progress notes were a list in later releases and one text blob before."""
    if _is_empty(notes):
        return []
    if isinstance(notes, list):
        return [str(note).strip() for note in notes if str(note).strip()]
    return [part.strip() for part in _BLANK_LINE.split(str(notes)) if part.strip()]


def needs_migration(raw: dict[str, Any], profile: SchemaProfile) -> bool:
    """Return True if ``raw`` does not already match the profile's schema."""
    if any(key in raw for key in profile.obsolete_fields):
        return True
    if raw.get("type") not in profile.ticket_types:
        return True
    if raw.get("status") not in profile.statuses:
        return True
    return profile.default_priority is not None and raw.get("priority") is None


def normalize_record(raw: dict[str, Any], profile: SchemaProfile) -> dict[str, Any]:
    """Rewrite a decoded ticket mapping into the profile's schema.

    Pure and idempotent: the input is not modified, and normalizing an
    already-normalized record returns an equal mapping.
    """
    if not needs_migration(raw, profile):
        return dict(raw)

    record = dict(raw)
    ticket_id = record.get("id", "?")

    ticket_type = record.get("type")
    if ticket_type not in profile.ticket_types:
        mapped = profile.type_map.get(str(ticket_type))
        if mapped is None:
            logger.warning(
                "Ticket %s has unknown type %r, using %r",
                ticket_id,
                ticket_type,
                profile.default_type,
            )
            mapped = profile.default_type
        record["type"] = mapped

    status = record.get("status")
    if status not in profile.statuses:
        mapped = profile.status_map.get(str(status))
        if mapped is None:
            logger.warning(
                "Ticket %s has unknown status %r, using %r",
                ticket_id,
                status,
                profile.backlog_status,
            )
            mapped = profile.backlog_status
        record["status"] = str(mapped)

    for merge in profile.merges:
        if merge.source not in record:
            continue
        value = record.pop(merge.source)
        if not _is_empty(value) and _is_empty(record.get(merge.target)):
            record[merge.target] = merge.convert(value)

    if profile.notes_field and profile.notes_field in record:
        notes = _split_notes(record.pop(profile.notes_field))
        # Only synthesize once; later reads see the comments instead.
        if notes and not record.get("comments"):
            stamp = record.get("updatedAt") or record.get("createdAt")
            record["comments"] = [
                {"author": SYSTEM_AUTHOR, "text": note, "createdAt": stamp} for note in notes
            ]

    for key in profile.obsolete_fields:
        record.pop(key, None)

    if profile.default_priority is not None and record.get("priority") is None:
        record["priority"] = profile.default_priority

    logger.debug("Normalized ticket %s to %s schema", ticket_id, profile.name)
    return record


def normalize(raw: dict[str, Any], profile: SchemaProfile, path: Path | None = None) -> Ticket:
    """Normalize a decoded record and build the Ticket.

    Raises:
        MalformedRecordError: If the record has no id or malformed fields.
    """
    return ticket_from_dict(normalize_record(raw, profile), path)
