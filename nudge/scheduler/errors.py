"""Error taxonomy for the reminder scheduler.

Store errors are global to a wake cycle and abort its mutation. Dispatch
errors are local to one reminder. An exhausted recurrence is not an error
at all; ``next_occurrence`` simply returns ``None``.
"""


class NudgeError(Exception):
    """Base class for every error nudge reports to the user."""


class StoreError(NudgeError):
    """The reminders file could not be read or written."""


class StoreUnreadable(StoreError):
    """The reminders file exists but cannot be read or parsed."""


class StoreUnwritable(StoreError):
    """The reminders file could not be replaced."""


class StoreLockTimeout(StoreUnwritable):
    """Another process held the store lock for too long."""


class MalformedRule(NudgeError):
    """A recurrence expression that cannot be parsed at all."""


class DispatchError(NudgeError):
    """A notification could not be delivered."""


class ReminderNotFound(NudgeError):
    """No reminder with the requested id exists."""

    def __init__(self, reminder_id: int):
        super().__init__(f"Reminder with ID {reminder_id} not found.")
        self.reminder_id = reminder_id


class InvalidReminder(NudgeError):
    """User input that cannot describe a reminder."""
