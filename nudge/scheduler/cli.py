"""CLI subcommands for the scheduler daemon.

Handles starting/stopping the daemon, showing its status, and running it
in the foreground.
"""

from nudge.messaging import emit_error, emit_info, emit_success, emit_warning


def handle_scheduler_start() -> bool:
    """Start the scheduler daemon in background."""
    from nudge.scheduler.daemon import get_daemon_pid, start_daemon_background

    pid = get_daemon_pid()
    if pid:
        emit_warning(f"Scheduler daemon already running (PID {pid})")
        return True

    emit_info("Starting scheduler daemon...")

    if start_daemon_background():
        pid = get_daemon_pid()
        emit_success(f"Scheduler daemon started (PID {pid})")
        return True
    else:
        emit_error("Failed to start scheduler daemon")
        return False


def handle_scheduler_stop() -> bool:
    """Stop the scheduler daemon."""
    from nudge.scheduler.daemon import get_daemon_pid, stop_daemon

    pid = get_daemon_pid()
    if not pid:
        emit_info("Scheduler daemon is not running")
        return True

    emit_info(f"Stopping scheduler daemon (PID {pid})...")

    if stop_daemon():
        emit_success("Scheduler daemon stopped")
        return True
    else:
        emit_error("Failed to stop scheduler daemon")
        return False


def handle_scheduler_status() -> bool:
    """Show scheduler daemon status and what fires next."""
    from nudge.reminders import load_reminders
    from nudge.scheduler.daemon import get_daemon_pid
    from nudge.scheduler.models import ReminderState
    from nudge.scheduler.recurrence import utcnow

    pid = get_daemon_pid()
    if pid:
        emit_success(f"Scheduler daemon: RUNNING (PID {pid})")
    else:
        emit_warning("Scheduler daemon: STOPPED")

    data = load_reminders()
    now = utcnow()
    scheduled = [
        r for r in data if r.state(now) in (ReminderState.PENDING, ReminderState.DUE)
    ]
    overdue = [r for r in scheduled if r.state(now) is ReminderState.DUE]

    emit_info(f"Reminders: {len(data)} total, {len(scheduled)} scheduled, {len(overdue)} due")

    if scheduled:
        upcoming = min(scheduled, key=lambda r: r.next_fire_at)
        emit_info(
            f"Next: #{upcoming.id} {upcoming.content} at "
            f"{upcoming.next_fire_at.astimezone().strftime('%Y-%m-%d %H:%M')}"
        )

    return True


def handle_scheduler_run() -> bool:
    """Run the daemon in the foreground until interrupted."""
    from nudge.scheduler.daemon import get_daemon_pid, start_daemon

    pid = get_daemon_pid()
    if pid:
        emit_error(f"Scheduler daemon already running (PID {pid})")
        return False

    emit_info("Running scheduler in the foreground. Press Ctrl+C to stop.")
    start_daemon(foreground=True)
    return True
