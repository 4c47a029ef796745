"""Unix/macOS platform support for the scheduler daemon."""

import asyncio
import fcntl
import os
import signal
from typing import Callable


def is_process_running(pid: int) -> bool:
    """Check if a process with the given PID is running."""
    try:
        os.kill(pid, 0)
        return True
    except (ProcessLookupError, PermissionError):
        return False


def terminate_process(pid: int) -> bool:
    """Terminate a process by PID."""
    try:
        os.kill(pid, signal.SIGTERM)
        return True
    except (ProcessLookupError, PermissionError):
        return False


def send_wake(pid: int) -> bool:
    """Ask a running daemon to re-read the store now."""
    try:
        os.kill(pid, signal.SIGUSR1)
        return True
    except (ProcessLookupError, PermissionError):
        return False


def try_lock(fd: int) -> bool:
    """Take an exclusive advisory lock without blocking. False if held elsewhere."""
    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        return True
    except BlockingIOError:
        return False


def unlock(fd: int) -> None:
    fcntl.flock(fd, fcntl.LOCK_UN)


def install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    on_shutdown: Callable[[], None],
    on_wake: Callable[[], None],
) -> None:
    """Route SIGTERM/SIGINT to shutdown and SIGUSR1 to an immediate wake."""
    loop.add_signal_handler(signal.SIGTERM, on_shutdown)
    loop.add_signal_handler(signal.SIGINT, on_shutdown)
    loop.add_signal_handler(signal.SIGUSR1, on_wake)


def ignore_wake_signal() -> None:
    """Make SIGUSR1 harmless while no handler is installed (its default kills)."""
    signal.signal(signal.SIGUSR1, signal.SIG_IGN)


def remove_signal_handlers(loop: asyncio.AbstractEventLoop) -> None:
    for signum in (signal.SIGTERM, signal.SIGINT, signal.SIGUSR1):
        loop.remove_signal_handler(signum)
    # remove_signal_handler restores SIG_DFL; a late wake must not kill us
    ignore_wake_signal()
