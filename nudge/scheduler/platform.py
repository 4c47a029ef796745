"""Platform abstraction for daemon management and store locking.

Provides a unified interface for process control, wake signalling and
advisory file locks across Windows, Linux, and macOS.
"""

import sys

if sys.platform == "win32":
    from nudge.scheduler.platform_win import (
        install_signal_handlers,
        ignore_wake_signal,
        is_process_running,
        remove_signal_handlers,
        send_wake,
        terminate_process,
        try_lock,
        unlock,
    )
else:
    from nudge.scheduler.platform_unix import (
        install_signal_handlers,
        ignore_wake_signal,
        is_process_running,
        remove_signal_handlers,
        send_wake,
        terminate_process,
        try_lock,
        unlock,
    )

__all__ = [
    "ignore_wake_signal",
    "install_signal_handlers",
    "is_process_running",
    "remove_signal_handlers",
    "send_wake",
    "terminate_process",
    "try_lock",
    "unlock",
]
