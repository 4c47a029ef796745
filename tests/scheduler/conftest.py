"""Fixtures for scheduler tests: an in-memory store, a scripted dispatcher
and a controllable clock."""

from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

import pytest

from nudge.scheduler.core import SchedulerCore
from nudge.scheduler.errors import DispatchError, StoreUnreadable, StoreUnwritable
from nudge.scheduler.models import Reminder, ReminderStore
from nudge.scheduler.notifier import RetryPolicy

DAY = datetime(2024, 3, 4, tzinfo=timezone.utc)  # a Monday


class MemoryStore:
    """Stand-in for ScheduleStore that keeps the 'file' as a dict."""

    def __init__(self, data: Optional[ReminderStore] = None):
        self._raw = (data or ReminderStore()).to_dict()
        self.fail_load = False
        self.fail_save = False
        self.saves = 0

    def load(self) -> ReminderStore:
        if self.fail_load:
            raise StoreUnreadable("disk on fire")
        return ReminderStore.from_dict(self._raw)

    def save(self, data: ReminderStore) -> None:
        if self.fail_save:
            raise StoreUnwritable("disk full")
        self._raw = data.to_dict()
        self.saves += 1

    @contextmanager
    def transaction(self):
        data = self.load()
        before = data.to_dict()
        yield data
        if data.to_dict() != before:
            self.save(data)

    def snapshot(self) -> ReminderStore:
        return ReminderStore.from_dict(self._raw)

    def put(self, reminder: Reminder) -> Reminder:
        """Write a reminder straight into the 'file', like a CLI process would."""
        with self.transaction() as data:
            data.reminders.append(reminder)
            data.next_id = max(data.next_id, reminder.id + 1)
        return reminder


class FakeDispatcher:
    """Records deliveries; can fail a reminder a set number of times."""

    def __init__(self):
        self.delivered: List[int] = []
        self.attempts: Dict[int, int] = {}
        self.failures: Dict[int, int] = {}
        self.on_notify: Optional[Callable[[Reminder], None]] = None

    def fail(self, reminder_id: int, times: int = 10_000) -> None:
        self.failures[reminder_id] = times

    def notify(self, reminder: Reminder) -> None:
        self.attempts[reminder.id] = self.attempts.get(reminder.id, 0) + 1
        if self.on_notify is not None:
            self.on_notify(reminder)
        remaining = self.failures.get(reminder.id, 0)
        if remaining:
            self.failures[reminder.id] = remaining - 1
            raise DispatchError(f"cannot reach desktop for #{reminder.id}")
        self.delivered.append(reminder.id)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, when: datetime) -> datetime:
        self.now = when
        return self.now


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def clock():
    return FakeClock(DAY.replace(hour=10))


@pytest.fixture
def recorded_sleep():
    return RecordingSleep()


@pytest.fixture
def make_core(memory_store, dispatcher, clock, recorded_sleep):
    """Build a SchedulerCore wired to the in-memory fakes."""

    def _make(**kwargs) -> SchedulerCore:
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("sleep", recorded_sleep)
        kwargs.setdefault("idle_interval", timedelta(minutes=5))
        retry = kwargs.pop("retry_policy", RetryPolicy(attempts=3, backoff_seconds=1.0))
        return SchedulerCore(memory_store, dispatcher, retry, **kwargs)

    return _make
