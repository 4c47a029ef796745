"""Scheduler core.

Owns the daemon's in-memory view of the reminders and runs one wake cycle
at a time:

1. Locked transaction: reload the store, re-apply fire outcomes that were
   not persisted yet, compute ``next_fire_at`` for newly added reminders.
2. Dispatch every Due reminder, concurrently and outside the lock, with
   bounded retries.
3. Locked transaction: reload again and apply the new fire outcomes to the
   fresh copy, so CLI edits made during dispatch are never overwritten.

A fire outcome is applied only if the reminder still exists and its
``next_fire_at`` is still the instant that was dispatched. Outcomes that
could not be saved stay in memory and are re-applied first thing next
cycle, which keeps a reminder from being dispatched twice by one daemon.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Optional, Set

from nudge.scheduler.errors import StoreError
from nudge.scheduler.models import Reminder, ReminderState, ReminderStore
from nudge.scheduler.notifier import Dispatcher, RetryPolicy
from nudge.scheduler.recurrence import utcnow
from nudge.scheduler.store import ScheduleStore

logger = logging.getLogger(__name__)

DEFAULT_IDLE_INTERVAL = timedelta(seconds=60)


@dataclass(frozen=True)
class FireOutcome:
    """A delivered (or silently consumed) occurrence awaiting persistence."""

    reminder_id: int
    fired_for: datetime  # the next_fire_at that was due
    fired_at: datetime
    dispatched: bool = True


@dataclass
class CycleReport:
    """What one wake cycle did."""

    started_at: datetime
    fired: List[int] = field(default_factory=list)
    consumed: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SchedulerCore:
    """In-memory schedule plus the wake-cycle logic.

    Construct one per daemon run. ``store`` only needs ``transaction()``,
    so tests pass an in-memory stand-in.
    """

    def __init__(
        self,
        store: ScheduleStore,
        dispatcher: Dispatcher,
        retry_policy: Optional[RetryPolicy] = None,
        *,
        clock: Callable[[], datetime] = utcnow,
        idle_interval: timedelta = DEFAULT_IDLE_INTERVAL,
        max_concurrent_dispatches: int = 4,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._store = store
        self._dispatcher = dispatcher
        self._retry = retry_policy or RetryPolicy()
        self._clock = clock
        self._idle_interval = idle_interval
        self._max_concurrent = max_concurrent_dispatches
        self._sleep = sleep
        self._reminders: Dict[int, Reminder] = {}
        self._unsaved: Dict[int, FireOutcome] = {}
        self._exhausted: Set[int] = set()  # already warned about
        self._reconcile_lock = threading.Lock()

    @property
    def clock(self) -> Callable[[], datetime]:
        return self._clock

    @property
    def reminders(self) -> List[Reminder]:
        return list(self._reminders.values())

    @property
    def unsaved_outcomes(self) -> List[FireOutcome]:
        return list(self._unsaved.values())

    def state_of(self, reminder_id: int, now: datetime) -> Optional[ReminderState]:
        if reminder_id in self._unsaved:
            return ReminderState.FIRED
        reminder = self._reminders.get(reminder_id)
        if reminder is None:
            return None
        return reminder.state(now)

    def due_reminders(self, now: datetime) -> List[Reminder]:
        due = [
            r
            for r in self._reminders.values()
            if r.id not in self._unsaved and r.state(now) is ReminderState.DUE
        ]
        return sorted(due, key=lambda r: (r.next_fire_at, r.id))

    def next_deadline(self, now: datetime) -> datetime:
        """Earliest pending fire instant, capped by the idle interval.

        Due reminders whose delivery failed are not counted; they are
        retried on the next wake, at most one idle interval away.
        """
        cap = now + self._idle_interval
        pending = [
            r.next_fire_at
            for r in self._reminders.values()
            if r.state(now) is ReminderState.PENDING
        ]
        if not pending:
            return cap
        return min(min(pending), cap)

    # ------------------------------------------------------------------
    # Wake cycle
    # ------------------------------------------------------------------

    async def run_cycle(self) -> CycleReport:
        now = self._clock()
        report = CycleReport(started_at=now)

        try:
            await asyncio.to_thread(self.reconcile)
        except StoreError as exc:
            logger.error("Store unavailable, keeping last known schedule: %s", exc)
            report.error = exc
            return report

        due = self.due_reminders(now)
        logger.debug(
            "Cycle at %s: %d reminders, %d due",
            now.isoformat(),
            len(self._reminders),
            len(due),
        )
        if not due:
            return report

        semaphore = asyncio.Semaphore(self._max_concurrent)
        results = await asyncio.gather(*(self._deliver(r, semaphore) for r in due))
        for reminder, outcome in zip(due, results):
            if outcome is None:
                report.failed.append(reminder.id)
            elif outcome.dispatched:
                report.fired.append(reminder.id)
            else:
                report.consumed.append(reminder.id)

        try:
            await asyncio.to_thread(self.reconcile)
        except StoreError as exc:
            logger.error(
                "Could not persist %d fire outcomes, will retry next cycle: %s",
                len(self._unsaved),
                exc,
            )
            report.error = exc
        return report

    def reconcile(self) -> None:
        """Merge the in-memory schedule with the latest persisted store.

        Raises:
            StoreError: the store could not be loaded or saved; memory is untouched.
        """
        # Runs in a worker thread; a cancelled cycle may still be inside it at flush.
        with self._reconcile_lock:
            with self._store.transaction() as data:
                self._apply_outcomes(data)
                self._adopt(data)
            self._unsaved.clear()
            self._reminders = {r.id: r for r in data}

    def flush(self) -> bool:
        """Persist outstanding fire outcomes. Used at shutdown."""
        if not self._unsaved:
            return True
        try:
            self.reconcile()
        except StoreError as exc:
            logger.error("Lost %d unsaved fire outcomes: %s", len(self._unsaved), exc)
            return False
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _apply_outcomes(self, data: ReminderStore) -> None:
        for outcome in self._unsaved.values():
            reminder = data.get(outcome.reminder_id)
            if reminder is None:
                logger.debug("Reminder #%d removed while firing", outcome.reminder_id)
                continue
            if reminder.next_fire_at != outcome.fired_for:
                # Rescheduled, completed or snoozed meanwhile; that edit wins.
                if outcome.dispatched:
                    reminder.last_fired_at = outcome.fired_at
                else:
                    reminder.last_consumed_at = outcome.fired_at
                continue
            if outcome.dispatched:
                reminder.mark_fired(outcome.fired_at)
            else:
                reminder.consume(outcome.fired_at)
            if reminder.next_fire_at is None:
                logger.info("Reminder #%d has no further occurrences", reminder.id)

    def _adopt(self, data: ReminderStore) -> None:
        for reminder in data:
            if reminder.needs_schedule():
                reminder.schedule()
                if reminder.next_fire_at is None:
                    if reminder.id in self._exhausted:
                        continue
                    self._exhausted.add(reminder.id)
                    logger.warning(
                        "Reminder #%d has no occurrence to schedule (%r)",
                        reminder.id,
                        reminder.due_spec,
                    )
                else:
                    logger.debug(
                        "Adopted reminder #%d, next fire %s",
                        reminder.id,
                        reminder.next_fire_at.isoformat(),
                    )

    async def _deliver(
        self, reminder: Reminder, semaphore: asyncio.Semaphore
    ) -> Optional[FireOutcome]:
        fired_for = reminder.next_fire_at

        if not reminder.notify_enabled:
            logger.debug("Reminder #%d is due with notifications off", reminder.id)
            return self._record(reminder, fired_for, dispatched=False)

        async with semaphore:
            for attempt in range(self._retry.attempts):
                try:
                    await asyncio.to_thread(self._dispatcher.notify, reminder)
                except Exception as exc:
                    if attempt + 1 >= self._retry.attempts:
                        logger.error(
                            "Giving up on reminder #%d after %d attempts: %s",
                            reminder.id,
                            self._retry.attempts,
                            exc,
                        )
                        return None
                    delay = self._retry.delay(attempt)
                    logger.warning(
                        "Dispatch of reminder #%d failed (attempt %d/%d), retrying in %.1fs: %s",
                        reminder.id,
                        attempt + 1,
                        self._retry.attempts,
                        delay,
                        exc,
                    )
                    await self._sleep(delay)
                else:
                    logger.info("Fired reminder #%d: %s", reminder.id, reminder.content)
                    return self._record(reminder, fired_for, dispatched=True)
        return None

    def _record(self, reminder: Reminder, fired_for: datetime, dispatched: bool) -> FireOutcome:
        outcome = FireOutcome(
            reminder_id=reminder.id,
            fired_for=fired_for,
            fired_at=self._clock(),
            dispatched=dispatched,
        )
        self._unsaved[reminder.id] = outcome
        return outcome
