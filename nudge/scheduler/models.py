"""Reminder definitions and their JSON representation.

A ``ReminderStore`` is the whole persisted collection: the reminders plus
the id counter. Both the CLI and the daemon load it fully, mutate it in
memory and write it back in one piece through ``nudge.scheduler.store``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from nudge.scheduler.errors import InvalidReminder, ReminderNotFound
from nudge.scheduler.recurrence import (
    DEFAULT_TIMEZONE,
    DueSpec,
    FixedInstant,
    RecurrenceRule,
    expand_utc_suffix,
    next_occurrence,
    utcnow,
)


class Priority(str, Enum):
    """Reminder priority, shown in the notification title."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, text: str) -> "Priority":
        aliases = {
            "high": cls.HIGH,
            "h": cls.HIGH,
            "medium": cls.MEDIUM,
            "med": cls.MEDIUM,
            "m": cls.MEDIUM,
            "low": cls.LOW,
            "l": cls.LOW,
        }
        try:
            return aliases[text.strip().lower()]
        except KeyError:
            raise InvalidReminder(
                f"Invalid priority: {text}. Use high, medium, or low"
            ) from None

    @property
    def icon(self) -> str:
        return {"high": "🔴", "medium": "🟡", "low": "🟢"}[self.value]


class ReminderState(Enum):
    """Where a reminder sits in the scheduler's state machine."""

    PENDING = "pending"  # future next_fire_at
    DUE = "due"  # now >= next_fire_at
    FIRED = "fired"  # dispatched, outcome not yet persisted
    INERT = "inert"  # completed, consumed, or exhausted


# =============================================================================
# Serialization helpers
# =============================================================================


def format_instant(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


def parse_stored_instant(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    parsed = datetime.fromisoformat(expand_utc_suffix(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def due_spec_to_dict(spec: Optional[DueSpec]) -> Optional[Dict[str, Any]]:
    if spec is None:
        return None
    if isinstance(spec, FixedInstant):
        return {"kind": "fixed", "at": format_instant(spec.at)}
    if isinstance(spec, RecurrenceRule):
        return {"kind": "cron", "expression": spec.expression, "timezone": spec.timezone}
    raise TypeError(f"Unsupported due spec: {spec!r}")


def due_spec_from_dict(data: Optional[Dict[str, Any]]) -> Optional[DueSpec]:
    """Decode a stored due spec.

    Rule expressions are not validated here: a hand-edited, malformed rule
    must load so that the scheduler can treat it as exhausted.
    """
    if data is None:
        return None
    kind = data["kind"]
    if kind == "fixed":
        return FixedInstant(at=parse_stored_instant(data["at"]))
    if kind == "cron":
        return RecurrenceRule(
            expression=str(data["expression"]),
            timezone=str(data.get("timezone") or DEFAULT_TIMEZONE),
        )
    raise ValueError(f"Unknown due spec kind: {kind!r}")


# =============================================================================
# Reminder
# =============================================================================


@dataclass
class Reminder:
    """A task with an optional schedule."""

    id: int
    content: str
    due_spec: Optional[DueSpec] = None
    priority: Priority = Priority.MEDIUM
    notify_enabled: bool = True
    created_at: datetime = field(default_factory=utcnow)
    next_fire_at: Optional[datetime] = None
    last_fired_at: Optional[datetime] = None
    last_consumed_at: Optional[datetime] = None  # due while notifications were off
    completed: bool = False
    snoozed_until: Optional[datetime] = None

    @property
    def is_recurring(self) -> bool:
        return isinstance(self.due_spec, RecurrenceRule)

    def state(self, now: datetime) -> ReminderState:
        if self.completed or self.next_fire_at is None:
            return ReminderState.INERT
        if now >= self.next_fire_at:
            return ReminderState.DUE
        return ReminderState.PENDING

    def needs_schedule(self) -> bool:
        """True for an active reminder whose next_fire_at was never computed."""
        return (
            not self.completed
            and self.due_spec is not None
            and self.next_fire_at is None
            and self.last_fired_at is None
            and self.last_consumed_at is None
        )

    def schedule(self) -> None:
        """Compute next_fire_at from the due spec and the last occurrence (or creation)."""
        last_handled = max(
            (t for t in (self.last_fired_at, self.last_consumed_at) if t is not None),
            default=None,
        )
        if self.completed or self.due_spec is None:
            self.next_fire_at = None
        elif self.snoozed_until is not None:
            self.next_fire_at = self.snoozed_until
        elif isinstance(self.due_spec, FixedInstant):
            # A one-shot is due at its instant until fired, even if already past.
            self.next_fire_at = None if last_handled else self.due_spec.at
        else:
            self.next_fire_at = next_occurrence(
                self.due_spec, last_handled or self.created_at
            )

    def mark_fired(self, fired_at: datetime) -> None:
        """Record a delivered notification and advance to the next occurrence."""
        self.last_fired_at = fired_at
        self._advance(fired_at)

    def consume(self, at: datetime) -> None:
        """Pass over a due occurrence without notifying; last_fired_at is untouched."""
        self.last_consumed_at = at
        self._advance(at)

    def _advance(self, after: datetime) -> None:
        self.snoozed_until = None
        if self.due_spec is None:
            self.next_fire_at = None
        else:
            self.next_fire_at = next_occurrence(self.due_spec, after)

    def snooze(self, until: datetime) -> None:
        self.completed = False
        self.snoozed_until = until
        self.next_fire_at = until

    def complete(self) -> None:
        self.completed = True
        self.snoozed_until = None
        self.next_fire_at = None

    def reactivate(self, now: datetime) -> None:
        self.completed = False
        self.snoozed_until = None
        if self.due_spec is None:
            self.next_fire_at = None
        else:
            self.next_fire_at = next_occurrence(self.due_spec, now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "due_spec": due_spec_to_dict(self.due_spec),
            "priority": self.priority.value,
            "notify_enabled": self.notify_enabled,
            "created_at": format_instant(self.created_at),
            "next_fire_at": format_instant(self.next_fire_at),
            "last_fired_at": format_instant(self.last_fired_at),
            "last_consumed_at": format_instant(self.last_consumed_at),
            "completed": self.completed,
            "snoozed_until": format_instant(self.snoozed_until),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Reminder":
        return cls(
            id=int(data["id"]),
            content=str(data["content"]),
            due_spec=due_spec_from_dict(data.get("due_spec")),
            priority=Priority(data.get("priority", Priority.MEDIUM.value)),
            notify_enabled=bool(data.get("notify_enabled", True)),
            created_at=parse_stored_instant(data.get("created_at")) or utcnow(),
            next_fire_at=parse_stored_instant(data.get("next_fire_at")),
            last_fired_at=parse_stored_instant(data.get("last_fired_at")),
            last_consumed_at=parse_stored_instant(data.get("last_consumed_at")),
            completed=bool(data.get("completed", False)),
            snoozed_until=parse_stored_instant(data.get("snoozed_until")),
        )


# =============================================================================
# ReminderStore
# =============================================================================


@dataclass
class ReminderStore:
    """The persisted collection: reminders in insertion order plus the id counter."""

    reminders: List[Reminder] = field(default_factory=list)
    next_id: int = 1

    def __iter__(self) -> Iterator[Reminder]:
        return iter(self.reminders)

    def __len__(self) -> int:
        return len(self.reminders)

    def get(self, reminder_id: int) -> Optional[Reminder]:
        for reminder in self.reminders:
            if reminder.id == reminder_id:
                return reminder
        return None

    def require(self, reminder_id: int) -> Reminder:
        reminder = self.get(reminder_id)
        if reminder is None:
            raise ReminderNotFound(reminder_id)
        return reminder

    def add(self, content: str, **fields: Any) -> Reminder:
        """Create a reminder with the next free id. Ids are never reused."""
        reminder = Reminder(id=self.next_id, content=content, **fields)
        self.reminders.append(reminder)
        self.next_id += 1
        return reminder

    def remove(self, reminder_id: int) -> Reminder:
        reminder = self.require(reminder_id)
        self.reminders.remove(reminder)
        return reminder

    def to_dict(self) -> dict:
        return {
            "next_id": self.next_id,
            "reminders": [r.to_dict() for r in self.reminders],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ReminderStore":
        reminders = [Reminder.from_dict(item) for item in data.get("reminders", [])]
        ids = [r.id for r in reminders]
        if len(ids) != len(set(ids)):
            raise ValueError("Duplicate reminder ids in store")
        next_id = int(data.get("next_id", 1))
        if ids:
            next_id = max(next_id, max(ids) + 1)
        return cls(reminders=reminders, next_id=next_id)
