"""Windows platform support for the scheduler daemon."""

import asyncio
import ctypes
import msvcrt
import signal
from typing import Callable


def is_process_running(pid: int) -> bool:
    """Check if a process with the given PID is running."""
    try:
        kernel32 = ctypes.windll.kernel32
        handle = kernel32.OpenProcess(
            0x1000, False, pid
        )  # PROCESS_QUERY_LIMITED_INFORMATION
        if handle:
            kernel32.CloseHandle(handle)
            return True
        return False
    except OSError:
        return False


def terminate_process(pid: int) -> bool:
    """Terminate a process by PID."""
    try:
        kernel32 = ctypes.windll.kernel32
        handle = kernel32.OpenProcess(1, False, pid)  # PROCESS_TERMINATE
        if handle:
            kernel32.TerminateProcess(handle, 0)
            kernel32.CloseHandle(handle)
            return True
        return False
    except OSError:
        return False


def send_wake(pid: int) -> bool:
    """No cross-process wake on Windows; the daemon notices within one idle interval."""
    return False


def ignore_wake_signal() -> None:
    """Nothing to do: Windows has no wake signal."""


def try_lock(fd: int) -> bool:
    """Lock the first byte of the lock file without blocking."""
    try:
        msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)
        return True
    except OSError:
        return False


def unlock(fd: int) -> None:
    msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)


def install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    on_shutdown: Callable[[], None],
    on_wake: Callable[[], None],
) -> None:
    """Route SIGINT/SIGTERM to shutdown. The ProactorEventLoop has no add_signal_handler."""

    def _handler(signum, frame):
        loop.call_soon_threadsafe(on_shutdown)

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def remove_signal_handlers(loop: asyncio.AbstractEventLoop) -> None:
    signal.signal(signal.SIGINT, signal.default_int_handler)
    signal.signal(signal.SIGTERM, signal.SIG_DFL)
