"""Ticket schema profiles.

A board is bound to one of two ticket schemas. The ``lean`` schema is the
current default: four work types, no priorities, free-text intent and
acceptance signal. The ``planning`` schema is the older, richer one with an
epic/story/task hierarchy, priorities, a refinement column and explicit
blocking relations.

Everything that differs between the two lives in a ``SchemaProfile`` table so
the migrator and the query layer stay free of per-schema branches.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from taskboard.board.models import PRIORITY_ORDER, Column, TicketPriority, TicketStatus


def _as_text(value: Any) -> str:
    if isinstance(value, list):
        return "\n".join(str(item) for item in value)
    return str(value)


def _as_lines(value: Any) -> list[str]:
    if isinstance(value, list):
        return [str(item) for item in value]
    return [line.strip() for line in str(value).splitlines() if line.strip()]


@dataclass(frozen=True)
class FieldMerge:
    """Move an obsolete field into its replacement.

    Attributes:
        source: On-disk key of the old field.
        target: On-disk key of the replacement field.
        convert: Turns the old value into the replacement's shape.
    """

    source: str
    target: str
    convert: Callable[[Any], Any] = _as_text


@dataclass(frozen=True)
class SchemaProfile:
    """Configuration table describing one ticket schema."""

    name: str
    columns: tuple[Column, ...]
    statuses: tuple[str, ...]
    ticket_types: tuple[str, ...]
    default_type: str
    type_map: Mapping[str, str] = field(default_factory=dict)
    status_map: Mapping[str, str] = field(default_factory=dict)
    merges: tuple[FieldMerge, ...] = ()
    notes_field: str | None = None
    obsolete_fields: frozenset[str] = frozenset()
    priorities: tuple[str, ...] = ()
    default_priority: str | None = None
    big_types: frozenset[str] = frozenset()
    tracks_rejections: bool = False
    refinement_status: str | None = None
    blocked_status: str | None = None

    @property
    def backlog_status(self) -> str:
        return self.statuses[0]

    @property
    def ranks_priority(self) -> bool:
        return bool(self.priorities)

    def default_columns(self) -> list[Column]:
        """Fresh copies of the profile's columns for a new board."""
        return [
            Column(id=c.id, name=c.name, wip_limit=c.wip_limit, auto_pull=c.auto_pull)
            for c in self.columns
        ]


LEAN_COLUMNS = (
    Column(id=TicketStatus.BACKLOG, name="Backlog"),
    Column(id=TicketStatus.READY, name="Ready", wip_limit=10),
    Column(id=TicketStatus.IN_PROGRESS, name="In Progress", wip_limit=2, auto_pull=True),
    Column(id=TicketStatus.REVIEW, name="Review", wip_limit=5),
    Column(id=TicketStatus.DONE, name="Done"),
)

PLANNING_COLUMNS = (
    Column(id=TicketStatus.BACKLOG, name="Backlog"),
    Column(id=TicketStatus.REFINEMENT, name="Refinement", wip_limit=3),
    Column(id=TicketStatus.READY, name="Ready", wip_limit=10),
    Column(id=TicketStatus.IN_PROGRESS, name="In Progress", wip_limit=2, auto_pull=True),
    Column(id=TicketStatus.REVIEW, name="Review", wip_limit=5),
    Column(id=TicketStatus.DONE, name="Done"),
    Column(id=TicketStatus.BLOCKED, name="Blocked"),
)

LEAN = SchemaProfile(
    name="lean",
    columns=LEAN_COLUMNS,
    statuses=tuple(c.id for c in LEAN_COLUMNS),
    ticket_types=("feature", "bugfix", "chore", "experiment"),
    default_type="feature",
    type_map={
        "epic": "feature",
        "story": "feature",
        "task": "chore",
        "bug": "bugfix",
        "idea": "experiment",
        "research": "experiment",
    },
    status_map={
        TicketStatus.BLOCKED: TicketStatus.BACKLOG,
        TicketStatus.REFINEMENT: TicketStatus.BACKLOG,
    },
    merges=(
        FieldMerge("description", "intent"),
        FieldMerge("acceptanceCriteria", "acceptanceSignal"),
    ),
    notes_field="progressNotes",
    obsolete_fields=frozenset(
        {
            "description",
            "acceptanceCriteria",
            "progressNotes",
            "rejectionCount",
            "researchNotes",
            "estimate",
            "parentId",
            "labels",
            "tags",
            "blockedBy",
            "assignee",
            "staleAt",
        }
    ),
)

PLANNING = SchemaProfile(
    name="planning",
    columns=PLANNING_COLUMNS,
    statuses=tuple(c.id for c in PLANNING_COLUMNS),
    ticket_types=("epic", "story", "task", "bug", "research"),
    default_type="task",
    type_map={
        "feature": "story",
        "bugfix": "bug",
        "chore": "task",
        "experiment": "research",
        "idea": "research",
    },
    merges=(
        FieldMerge("intent", "description"),
        FieldMerge("acceptanceSignal", "acceptanceCriteria", _as_lines),
    ),
    obsolete_fields=frozenset({"intent", "acceptanceSignal"}),
    priorities=tuple(str(p) for p in PRIORITY_ORDER),
    default_priority=str(TicketPriority.MEDIUM),
    big_types=frozenset({"epic", "story"}),
    tracks_rejections=True,
    refinement_status=TicketStatus.REFINEMENT,
    blocked_status=TicketStatus.BLOCKED,
)

PROFILES = {profile.name: profile for profile in (LEAN, PLANNING)}
DEFAULT_SCHEMA = LEAN.name


def get_profile(name: str | None) -> SchemaProfile:
    """Look up a schema profile by name. ``None`` selects the default.

    Raises:
        ValueError: If no profile has that name.
    """
    if name is None:
        return PROFILES[DEFAULT_SCHEMA]
    try:
        return PROFILES[name]
    except KeyError:
        raise ValueError(
            f"Unknown ticket schema '{name}'. Available: {sorted(PROFILES)}"
        ) from None
