"""Tests for reminder definitions and their state transitions."""

from datetime import datetime, timedelta, timezone

import pytest

from nudge.scheduler.errors import InvalidReminder, ReminderNotFound
from nudge.scheduler.models import (
    Priority,
    Reminder,
    ReminderState,
    ReminderStore,
    due_spec_from_dict,
    due_spec_to_dict,
)
from nudge.scheduler.recurrence import FixedInstant, RecurrenceRule

UTC = timezone.utc
D = datetime(2024, 3, 4, tzinfo=UTC)


class TestPriority:
    """Tests for priority parsing."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("high", Priority.HIGH),
            ("H", Priority.HIGH),
            ("medium", Priority.MEDIUM),
            ("med", Priority.MEDIUM),
            ("m", Priority.MEDIUM),
            (" Low ", Priority.LOW),
            ("l", Priority.LOW),
        ],
    )
    def test_aliases(self, text, expected):
        assert Priority.parse(text) is expected

    def test_invalid(self):
        with pytest.raises(InvalidReminder, match="Invalid priority"):
            Priority.parse("urgent")


class TestDueSpecCodec:
    """Tests for the tagged due spec representation."""

    def test_fixed(self):
        spec = FixedInstant(at=D.replace(hour=9))
        data = due_spec_to_dict(spec)
        assert data == {"kind": "fixed", "at": "2024-03-04T09:00:00+00:00"}
        assert due_spec_from_dict(data) == spec

    def test_cron(self):
        spec = RecurrenceRule("0 9 * * *", "Europe/Paris")
        data = due_spec_to_dict(spec)
        assert data == {"kind": "cron", "expression": "0 9 * * *", "timezone": "Europe/Paris"}
        assert due_spec_from_dict(data) == spec

    def test_cron_without_zone_uses_reference_zone(self):
        spec = due_spec_from_dict({"kind": "cron", "expression": "0 9 * * *"})
        assert spec.timezone == "UTC"

    def test_malformed_rule_still_loads(self):
        """Bad expressions must load so the scheduler can mark them inert."""
        spec = due_spec_from_dict({"kind": "cron", "expression": "garbage"})
        assert spec == RecurrenceRule("garbage")

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            due_spec_from_dict({"kind": "lunar"})

    def test_none(self):
        assert due_spec_to_dict(None) is None
        assert due_spec_from_dict(None) is None


class TestReminderTransitions:
    """Tests for per-reminder state transitions."""

    def test_state(self):
        reminder = Reminder(id=1, content="x", next_fire_at=D.replace(hour=9))
        assert reminder.state(D.replace(hour=8)) is ReminderState.PENDING
        assert reminder.state(D.replace(hour=9)) is ReminderState.DUE
        reminder.complete()
        assert reminder.state(D.replace(hour=9)) is ReminderState.INERT

    def test_schedule_fixed_in_past_is_still_due(self):
        """A one-shot keeps its instant as next_fire_at until fired."""
        reminder = Reminder(id=1, content="x", due_spec=FixedInstant(D.replace(hour=9)), created_at=D.replace(hour=10))
        reminder.schedule()
        assert reminder.next_fire_at == D.replace(hour=9)
        assert reminder.state(D.replace(hour=10)) is ReminderState.DUE

    def test_schedule_rule_from_creation(self):
        reminder = Reminder(id=1, content="x", due_spec=RecurrenceRule("0 9 * * *"), created_at=D.replace(hour=10))
        reminder.schedule()
        assert reminder.next_fire_at == D.replace(hour=9) + timedelta(days=1)

    def test_schedule_without_due_spec(self):
        reminder = Reminder(id=1, content="just a task")
        reminder.schedule()
        assert reminder.next_fire_at is None
        assert not reminder.needs_schedule()

    def test_mark_fired_one_shot_becomes_inert(self):
        reminder = Reminder(id=1, content="x", due_spec=FixedInstant(D.replace(hour=9)))
        reminder.schedule()
        reminder.mark_fired(D.replace(hour=10))
        assert reminder.last_fired_at == D.replace(hour=10)
        assert reminder.next_fire_at is None
        assert reminder.state(D.replace(hour=11)) is ReminderState.INERT
        assert not reminder.needs_schedule()

    def test_mark_fired_recurring_advances(self):
        reminder = Reminder(id=1, content="x", due_spec=RecurrenceRule("0 9 * * *"), next_fire_at=D.replace(hour=9))
        reminder.mark_fired(D.replace(hour=9))
        assert reminder.next_fire_at == D.replace(hour=9) + timedelta(days=1)

    def test_consume_advances_without_firing(self):
        """A silently consumed occurrence advances the rule but is not a fire."""
        reminder = Reminder(id=1, content="x", due_spec=RecurrenceRule("0 9 * * *"), next_fire_at=D.replace(hour=9))
        reminder.consume(D.replace(hour=9, minute=1))
        assert reminder.last_fired_at is None
        assert reminder.last_consumed_at == D.replace(hour=9, minute=1)
        assert reminder.next_fire_at == D.replace(hour=9) + timedelta(days=1)

    def test_consumed_one_shot_is_not_rescheduled(self):
        reminder = Reminder(id=1, content="x", due_spec=FixedInstant(D.replace(hour=9)))
        reminder.schedule()
        reminder.consume(D.replace(hour=10))
        assert reminder.next_fire_at is None
        assert not reminder.needs_schedule()
        reminder.schedule()
        assert reminder.next_fire_at is None

    def test_snooze_then_fire_resumes_rule(self):
        """Snooze overrides one occurrence, then the rule takes over again."""
        reminder = Reminder(id=1, content="x", due_spec=RecurrenceRule("0 9 * * *"), next_fire_at=D.replace(hour=9))
        reminder.snooze(D.replace(hour=9, minute=30))
        assert reminder.next_fire_at == D.replace(hour=9, minute=30)
        reminder.mark_fired(D.replace(hour=9, minute=30))
        assert reminder.snoozed_until is None
        assert reminder.next_fire_at == D.replace(hour=9) + timedelta(days=1)

    def test_snooze_makes_completed_reminder_pending(self):
        reminder = Reminder(id=1, content="x", completed=True)
        reminder.snooze(D.replace(hour=12))
        assert not reminder.completed
        assert reminder.state(D) is ReminderState.PENDING

    def test_completed_recurring_stays_inert_until_reactivated(self):
        """Completion stops a recurring reminder; reactivation resumes from now."""
        reminder = Reminder(id=1, content="x", due_spec=RecurrenceRule("0 9 * * *"), next_fire_at=D.replace(hour=9))
        reminder.complete()
        assert reminder.next_fire_at is None
        assert not reminder.needs_schedule()

        reminder.reactivate(D.replace(hour=12))
        assert not reminder.completed
        assert reminder.next_fire_at == D.replace(hour=9) + timedelta(days=1)

    def test_reactivate_past_one_shot_has_nothing_left(self):
        reminder = Reminder(id=1, content="x", due_spec=FixedInstant(D.replace(hour=9)), completed=True)
        reminder.reactivate(D.replace(hour=12))
        assert reminder.next_fire_at is None


class TestReminderSerialization:
    """Tests for reminder dict round-trips."""

    def test_round_trip_all_fields(self):
        reminder = Reminder(
            id=7,
            content="Water the plants",
            due_spec=RecurrenceRule("0 18 * * SUN", "Europe/Oslo"),
            priority=Priority.HIGH,
            notify_enabled=False,
            created_at=D,
            next_fire_at=D + timedelta(days=6, hours=17),
            last_fired_at=D - timedelta(days=1),
            last_consumed_at=D - timedelta(days=2),
            completed=False,
            snoozed_until=None,
        )
        assert Reminder.from_dict(reminder.to_dict()) == reminder

    def test_stored_instants_accept_z_suffix(self):
        reminder = Reminder.from_dict({"id": 1, "content": "x", "next_fire_at": "2024-03-04T09:00:00Z"})
        assert reminder.next_fire_at == D.replace(hour=9)

    def test_defaults_for_missing_optional_fields(self):
        reminder = Reminder.from_dict({"id": 3, "content": "minimal"})
        assert reminder.priority is Priority.MEDIUM
        assert reminder.notify_enabled is True
        assert reminder.due_spec is None
        assert reminder.completed is False


class TestReminderStore:
    """Tests for the reminder collection."""

    def test_ids_are_never_reused(self):
        data = ReminderStore()
        first = data.add("one")
        second = data.add("two")
        data.remove(second.id)
        third = data.add("three")
        assert (first.id, second.id, third.id) == (1, 2, 3)

    def test_require_missing(self):
        with pytest.raises(ReminderNotFound, match="ID 42"):
            ReminderStore().require(42)

    def test_remove_missing(self):
        with pytest.raises(ReminderNotFound):
            ReminderStore().remove(1)

    def test_duplicate_ids_rejected(self):
        raw = {"next_id": 3, "reminders": [{"id": 1, "content": "a"}, {"id": 1, "content": "b"}]}
        with pytest.raises(ValueError, match="Duplicate"):
            ReminderStore.from_dict(raw)

    def test_next_id_never_behind_existing_ids(self):
        raw = {"next_id": 1, "reminders": [{"id": 9, "content": "a"}]}
        assert ReminderStore.from_dict(raw).next_id == 10

    def test_round_trip(self):
        data = ReminderStore()
        data.add("one", due_spec=FixedInstant(D), created_at=D)
        data.add("two", due_spec=RecurrenceRule("*/5 * * * *"), created_at=D)
        assert ReminderStore.from_dict(data.to_dict()) == data
