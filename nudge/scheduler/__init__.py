"""Nudge Scheduler - fire reminder notifications on time.

This package holds the long-running side of nudge: a daemon that tracks
pending reminders (one-shot or cron-style recurring), sleeps until the next
one is due, delivers it, and keeps its schedule in step with the JSON store
the CLI edits concurrently.

Components:
    - recurrence: next fire instant for a due spec
    - models: Reminder / ReminderStore and their JSON form
    - store: atomic, lock-protected persistence
    - core: in-memory schedule and the wake cycle
    - notifier: notification delivery
    - daemon: process lifecycle and the wait/wake loop
    - platform: cross-platform process, signal and lock helpers
"""

from nudge.scheduler.core import CycleReport, SchedulerCore
from nudge.scheduler.daemon import (
    SchedulerDaemon,
    get_daemon_pid,
    start_daemon_background,
    wake_daemon,
)
from nudge.scheduler.errors import (
    DispatchError,
    MalformedRule,
    NudgeError,
    StoreUnreadable,
    StoreUnwritable,
)
from nudge.scheduler.models import Priority, Reminder, ReminderState, ReminderStore
from nudge.scheduler.recurrence import (
    FixedInstant,
    RecurrenceRule,
    next_occurrence,
    parse_rule,
)
from nudge.scheduler.store import ScheduleStore

__all__ = [
    "CycleReport",
    "DispatchError",
    "FixedInstant",
    "MalformedRule",
    "NudgeError",
    "Priority",
    "RecurrenceRule",
    "Reminder",
    "ReminderState",
    "ReminderStore",
    "ScheduleStore",
    "SchedulerCore",
    "SchedulerDaemon",
    "StoreUnreadable",
    "StoreUnwritable",
    "get_daemon_pid",
    "next_occurrence",
    "parse_rule",
    "start_daemon_background",
    "wake_daemon",
]
