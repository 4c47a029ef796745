"""Reminder operations used by the CLI.

Each mutation is one locked load-mutate-save transaction on the shared
store, followed by a wake signal to the daemon so it picks the change up
without waiting out its current sleep.
"""

from datetime import datetime
from typing import List, Optional

from nudge.scheduler.daemon import wake_daemon
from nudge.scheduler.errors import InvalidReminder
from nudge.scheduler.models import Priority, Reminder, ReminderState, ReminderStore
from nudge.scheduler.recurrence import (
    DueSpec,
    FixedInstant,
    parse_duration,
    parse_instant,
    parse_rule,
    utcnow,
)
from nudge.scheduler.store import ScheduleStore
from nudge.settings import get_settings


def get_store() -> ScheduleStore:
    settings = get_settings()
    return ScheduleStore(settings.reminders_file, lock_timeout=settings.lock_timeout_seconds)


def load_reminders(store: Optional[ScheduleStore] = None) -> ReminderStore:
    """Load all reminders (no lock; saves are atomic)."""
    return (store or get_store()).load()


def list_reminders(
    pending_only: bool = False, store: Optional[ScheduleStore] = None
) -> List[Reminder]:
    reminders = list(load_reminders(store))
    if pending_only:
        reminders = [r for r in reminders if not r.completed]
    return reminders


def build_due_spec(
    due: Optional[str] = None,
    cron: Optional[str] = None,
    tz: Optional[str] = None,
) -> Optional[DueSpec]:
    """Turn CLI input into a due spec, rejecting bad input before any write.

    Raises:
        MalformedRule: the cron expression does not parse.
        InvalidReminder: both --due and --cron, or an unparseable date.
    """
    tz = tz or get_settings().timezone
    if due and cron:
        raise InvalidReminder("Give either a due date or a cron schedule, not both")
    if cron:
        return parse_rule(cron, tz)
    if due:
        try:
            return FixedInstant(at=parse_instant(due, tz))
        except ValueError as exc:
            raise InvalidReminder(str(exc)) from exc
    return None


def add_reminder(
    content: str,
    due: Optional[str] = None,
    cron: Optional[str] = None,
    priority: str = "medium",
    notify: bool = True,
    tz: Optional[str] = None,
    store: Optional[ScheduleStore] = None,
) -> Reminder:
    """Add a new reminder and return it with its assigned id."""
    content = content.strip()
    if not content:
        raise InvalidReminder("Reminder message cannot be empty")
    due_spec = build_due_spec(due, cron, tz)
    level = Priority.parse(priority)

    with (store or get_store()).transaction() as data:
        reminder = data.add(
            content,
            due_spec=due_spec,
            priority=level,
            notify_enabled=notify,
            created_at=utcnow(),
        )
        reminder.schedule()

    wake_daemon()
    return reminder


def complete_reminder(reminder_id: int, store: Optional[ScheduleStore] = None) -> Reminder:
    """Mark a reminder completed. Recurring reminders stop until reactivated."""
    with (store or get_store()).transaction() as data:
        reminder = data.require(reminder_id)
        reminder.complete()
    wake_daemon()
    return reminder


def remove_reminder(reminder_id: int, store: Optional[ScheduleStore] = None) -> Reminder:
    with (store or get_store()).transaction() as data:
        reminder = data.remove(reminder_id)
    wake_daemon()
    return reminder


def reactivate_reminder(reminder_id: int, store: Optional[ScheduleStore] = None) -> Reminder:
    """Undo completion; the next occurrence is computed from now."""
    with (store or get_store()).transaction() as data:
        reminder = data.require(reminder_id)
        reminder.reactivate(utcnow())
    wake_daemon()
    return reminder


def resolve_snooze(text: str, now: datetime, tz: Optional[str] = None) -> datetime:
    """A snooze target: a duration from now ("10m") or an absolute date/time."""
    duration = parse_duration(text)
    if duration is not None:
        return now + duration
    try:
        return parse_instant(text, tz or get_settings().timezone)
    except ValueError as exc:
        raise InvalidReminder(f"Cannot snooze for '{text}': use 10m, 2h, 1d or a date") from exc


def snooze_reminder(
    reminder_id: int,
    until: str,
    tz: Optional[str] = None,
    store: Optional[ScheduleStore] = None,
) -> Reminder:
    """Defer the next fire once; the regular schedule resumes after it."""
    now = utcnow()
    target = resolve_snooze(until, now, tz)
    if target <= now:
        raise InvalidReminder("Snooze time must be in the future")

    with (store or get_store()).transaction() as data:
        reminder = data.require(reminder_id)
        reminder.snooze(target)
    wake_daemon()
    return reminder


def describe_schedule(reminder: Reminder) -> str:
    spec = reminder.due_spec
    if spec is None:
        return "─"
    if isinstance(spec, FixedInstant):
        return "once"
    return f"{spec.expression} ({spec.timezone})"


def reminder_row(reminder: Reminder, now: datetime) -> List[str]:
    state = reminder.state(now)
    if reminder.completed:
        status = "DONE"
    elif state is ReminderState.DUE:
        status = "DUE"
    elif reminder.snoozed_until is not None:
        status = "SNOOZED"
    elif state is ReminderState.PENDING:
        status = "PENDING"
    else:
        status = "INERT"

    def fmt(value: Optional[datetime]) -> str:
        return value.astimezone().strftime("%Y-%m-%d %H:%M") if value else "─"

    return [
        str(reminder.id),
        status,
        reminder.priority.value.upper(),
        "ON" if reminder.notify_enabled else "OFF",
        fmt(reminder.next_fire_at),
        fmt(reminder.last_fired_at),
        describe_schedule(reminder),
        reminder.content,
    ]
