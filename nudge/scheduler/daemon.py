"""Scheduler daemon for nudge.

Runs as a background process that fires reminder notifications. Between
wake cycles it sleeps on an ``asyncio.Event`` with a timeout equal to the
next deadline (never longer than the idle interval). The CLI sets that
event remotely with SIGUSR1 after changing the store; SIGTERM/SIGINT stop
the daemon after it persists any in-flight fire outcomes.
"""

import asyncio
import atexit
import contextlib
import logging
import os
import subprocess
import sys
import time
from datetime import timedelta
from logging.handlers import RotatingFileHandler
from typing import Optional

from rich.logging import RichHandler

from nudge.config import SCHEDULER_LOG_DIR, SCHEDULER_PID_FILE, ensure_dirs
from nudge.scheduler import platform
from nudge.scheduler.core import CycleReport, SchedulerCore
from nudge.scheduler.notifier import RetryPolicy, build_dispatcher
from nudge.scheduler.store import ScheduleStore
from nudge.settings import NudgeSettings, get_settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class SchedulerDaemon:
    """The wait/wake loop around a SchedulerCore."""

    def __init__(
        self,
        core: SchedulerCore,
        error_retry_seconds: float = 30.0,
    ):
        self.core = core
        self.error_retry_seconds = error_retry_seconds
        self.cycles = 0
        self._wake = asyncio.Event()
        self._stopping = asyncio.Event()

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    def wake(self) -> None:
        """Cut the current sleep short and re-read the store."""
        logger.debug("Wake requested")
        self._wake.set()

    def request_shutdown(self) -> None:
        if not self._stopping.is_set():
            logger.info("Shutdown requested")
        self._stopping.set()
        self._wake.set()

    def sleep_seconds(self, report: CycleReport) -> float:
        now = self.core.clock()
        seconds = max(0.0, (self.core.next_deadline(now) - now).total_seconds())
        if not report.ok:
            seconds = max(seconds, self.error_retry_seconds)
        return seconds

    async def run_once(self) -> Optional[CycleReport]:
        """Run one wake cycle. Returns None if shutdown interrupted it."""
        cycle = asyncio.ensure_future(self.core.run_cycle())
        stop = asyncio.ensure_future(self._stopping.wait())
        try:
            done, _ = await asyncio.wait({cycle, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()

        if cycle not in done:
            # Abandons any retry backoff; undelivered reminders stay Due.
            cycle.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await cycle
            logger.info("Wake cycle interrupted by shutdown")
            return None

        try:
            return cycle.result()
        except Exception as exc:
            logger.exception("Unexpected error in wake cycle")
            return CycleReport(started_at=self.core.clock(), error=exc)

    async def run(self) -> None:
        logger.info("Scheduler starting (PID: %d)", os.getpid())
        # The first cycle is the startup reconciliation: anything missed while
        # the daemon was down is due now and fires once.
        while not self._stopping.is_set():
            self._wake.clear()
            report = await self.run_once()
            if report is None:
                break
            self.cycles += 1
            if report.fired or report.failed:
                logger.info(
                    "Cycle %d: fired %d, failed %d",
                    self.cycles,
                    len(report.fired),
                    len(report.failed),
                )

            timeout = self.sleep_seconds(report)
            logger.debug("Sleeping up to %.1fs", timeout)
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                pass

        self.core.flush()
        logger.info("Scheduler stopped")


def build_core(settings: NudgeSettings) -> SchedulerCore:
    store = ScheduleStore(settings.reminders_file, lock_timeout=settings.lock_timeout_seconds)
    return SchedulerCore(
        store,
        build_dispatcher(settings),
        RetryPolicy(
            attempts=settings.dispatch_attempts,
            backoff_seconds=settings.dispatch_backoff_seconds,
        ),
        idle_interval=timedelta(seconds=settings.idle_interval_seconds),
        max_concurrent_dispatches=settings.max_concurrent_dispatches,
    )


def configure_logging(settings: NudgeSettings, foreground: bool) -> None:
    """Send daemon logs to a rotating file, and to the terminal in the foreground."""
    root = logging.getLogger()
    root.setLevel(settings.log_level)

    file_handler = RotatingFileHandler(
        os.path.join(SCHEDULER_LOG_DIR, "scheduler.log"),
        maxBytes=1_000_000,
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(file_handler)

    if foreground:
        root.addHandler(RichHandler(show_path=False, rich_tracebacks=True))


async def serve(settings: NudgeSettings) -> None:
    daemon = SchedulerDaemon(build_core(settings), error_retry_seconds=settings.error_retry_seconds)
    loop = asyncio.get_running_loop()
    platform.install_signal_handlers(loop, daemon.request_shutdown, daemon.wake)
    # The CLI signals whatever PID is in the file, so it only exists while handled.
    write_pid_file()
    try:
        await daemon.run()
    finally:
        remove_pid_file()
        platform.remove_signal_handlers(loop)


def write_pid_file():
    """Write the current PID to the PID file."""
    os.makedirs(os.path.dirname(SCHEDULER_PID_FILE), exist_ok=True)
    with open(SCHEDULER_PID_FILE, "w") as f:
        f.write(str(os.getpid()))


def remove_pid_file():
    """Remove the PID file."""
    try:
        if os.path.exists(SCHEDULER_PID_FILE):
            os.remove(SCHEDULER_PID_FILE)
    except OSError:
        pass


def start_daemon(foreground: bool = False):
    """Run the scheduler daemon in this process until a shutdown signal.

    Args:
        foreground: If True, also log to the terminal.
    """
    platform.ignore_wake_signal()
    settings = get_settings()
    ensure_dirs()
    configure_logging(settings, foreground)

    atexit.register(remove_pid_file)

    asyncio.run(serve(settings))


def get_daemon_pid() -> Optional[int]:
    """Get the PID of the running daemon, or None if not running."""
    if not os.path.exists(SCHEDULER_PID_FILE):
        return None

    try:
        with open(SCHEDULER_PID_FILE, "r") as f:
            pid = int(f.read().strip())
    except (ValueError, OSError):
        remove_pid_file()
        return None

    if platform.is_process_running(pid):
        return pid

    # PID file exists but process is not running - stale PID file
    remove_pid_file()
    return None


def wake_daemon() -> bool:
    """Tell a running daemon the store changed. False if none was reached."""
    pid = get_daemon_pid()
    if not pid:
        return False
    return platform.send_wake(pid)


def start_daemon_background() -> bool:
    """Start the scheduler daemon in the background.

    Returns:
        True if daemon started successfully, False otherwise.
    """
    pid = get_daemon_pid()
    if pid:
        return True  # Already running

    cmd = [sys.executable, "-m", "nudge.scheduler"]

    if sys.platform == "win32":
        subprocess.Popen(
            cmd,
            creationflags=subprocess.CREATE_NO_WINDOW,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    else:
        subprocess.Popen(
            cmd,
            start_new_session=True,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )

    time.sleep(1)
    return get_daemon_pid() is not None


def stop_daemon() -> bool:
    """Stop the running daemon. Returns True if stopped successfully."""
    pid = get_daemon_pid()
    if not pid:
        return False

    if not platform.terminate_process(pid):
        return False

    # Wait for process to stop
    for _ in range(20):
        time.sleep(0.5)
        if not get_daemon_pid():
            return True

    return False
