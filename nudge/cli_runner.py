"""Command-line entry point for nudge.

    nudge remind add "Stand-up" --cron "0 9 * * MON-FRI"
    nudge remind add "Dentist" --due "2024-12-31 15:30" --priority high
    nudge remind list --pending
    nudge remind snooze 3 10m
    nudge daemon start
"""

import argparse
from typing import List, Optional

from nudge import __version__
from nudge.messaging import emit_error, emit_info, emit_success, emit_table
from nudge.scheduler.errors import DispatchError, NudgeError


LIST_COLUMNS = ["ID", "STATUS", "PRI", "NOTIF", "NEXT", "LAST FIRED", "SCHEDULE", "MESSAGE"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nudge", description="Nudge - reminders with a notification daemon")
    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"{__version__}",
        help="Show version and exit",
    )
    groups = parser.add_subparsers(dest="group", required=True)

    remind = groups.add_parser("remind", help="Manage reminders")
    actions = remind.add_subparsers(dest="action", required=True)

    add = actions.add_parser("add", help="Add a new reminder")
    add.add_argument("message", help="Reminder message")
    add.add_argument("--due", "-d", help="Due date and time (e.g., '2024-12-31 15:30')")
    add.add_argument("--cron", "-c", help="Cron schedule expression (e.g., '0 9 * * MON-FRI')")
    add.add_argument(
        "--priority", "-p", default="medium", help="Priority level (high, medium, low)"
    )
    add.add_argument(
        "--no-notify",
        dest="notify",
        action="store_false",
        help="Track the reminder without desktop notifications",
    )
    add.add_argument("--tz", help="IANA time zone for --due/--cron (default from settings)")

    list_cmd = actions.add_parser("list", help="List all reminders")
    list_cmd.add_argument("--pending", action="store_true", help="Show only pending reminders")

    for name, help_text in (
        ("complete", "Mark a reminder as completed"),
        ("remove", "Remove a reminder"),
        ("reactivate", "Resume a completed reminder"),
    ):
        cmd = actions.add_parser(name, help=help_text)
        cmd.add_argument("id", type=int, help="Reminder ID")

    snooze = actions.add_parser("snooze", help="Defer a reminder's next notification once")
    snooze.add_argument("id", type=int, help="Reminder ID")
    snooze.add_argument("until", help="Duration (10m, 2h, 1d) or a date and time")
    snooze.add_argument("--tz", help="IANA time zone for an absolute date")

    test_notify = actions.add_parser("test-notify", help="Send a test notification")
    test_notify.add_argument(
        "--console", action="store_true", help="Print instead of a desktop notification"
    )

    daemon = groups.add_parser("daemon", help="Control the notification daemon")
    daemon.add_argument("action", choices=["start", "stop", "status", "run"])

    return parser


def handle_remind(args: argparse.Namespace) -> bool:
    from nudge import reminders
    from nudge.scheduler.recurrence import utcnow

    if args.action == "add":
        reminder = reminders.add_reminder(
            args.message,
            due=args.due,
            cron=args.cron,
            priority=args.priority,
            notify=args.notify,
            tz=args.tz,
        )
        emit_success(f"Reminder added with ID: {reminder.id}")
        if reminder.next_fire_at:
            emit_info(
                f"Next notification: {reminder.next_fire_at.astimezone().strftime('%Y-%m-%d %H:%M')}"
            )
        elif reminder.due_spec is not None:
            emit_info("This schedule has no upcoming occurrence.")
        return True

    if args.action == "list":
        items = reminders.list_reminders(pending_only=args.pending)
        if not items:
            emit_info("No reminders found.")
            return True
        now = utcnow()
        emit_table(LIST_COLUMNS, [reminders.reminder_row(r, now) for r in items])
        return True

    if args.action == "complete":
        reminders.complete_reminder(args.id)
        emit_success(f"Reminder {args.id} marked as completed.")
        return True

    if args.action == "remove":
        reminders.remove_reminder(args.id)
        emit_success(f"Reminder {args.id} removed.")
        return True

    if args.action == "reactivate":
        reminder = reminders.reactivate_reminder(args.id)
        emit_success(f"Reminder {args.id} reactivated.")
        if reminder.next_fire_at is None:
            emit_info("It has no upcoming occurrence.")
        return True

    if args.action == "snooze":
        reminder = reminders.snooze_reminder(args.id, args.until, tz=args.tz)
        emit_success(
            f"Reminder {args.id} snoozed until "
            f"{reminder.snoozed_until.astimezone().strftime('%Y-%m-%d %H:%M')}."
        )
        return True

    if args.action == "test-notify":
        return handle_test_notify(console=args.console)

    raise ValueError(f"Unknown action: {args.action}")


def handle_test_notify(console: bool = False) -> bool:
    """Send a test notification through the configured dispatcher."""
    from nudge.scheduler.models import Reminder
    from nudge.scheduler.notifier import ConsoleNotifier, build_dispatcher
    from nudge.settings import get_settings

    dispatcher = ConsoleNotifier() if console else build_dispatcher(get_settings())
    emit_info("Sending test notification...")
    try:
        dispatcher.notify(
            Reminder(id=0, content="This is a test notification from your reminder tool!")
        )
    except DispatchError as exc:
        emit_error(f"Test notification failed: {exc}")
        return False
    emit_success("Test notification sent!")
    return True


def handle_daemon(args: argparse.Namespace) -> bool:
    from nudge.scheduler import cli

    handlers = {
        "start": cli.handle_scheduler_start,
        "stop": cli.handle_scheduler_stop,
        "status": cli.handle_scheduler_status,
        "run": cli.handle_scheduler_run,
    }
    return handlers[args.action]()


def main(argv: Optional[List[str]] = None) -> int:
    """Run one nudge command. Returns the process exit status."""
    args = build_parser().parse_args(argv)
    try:
        if args.group == "remind":
            ok = handle_remind(args)
        else:
            ok = handle_daemon(args)
    except NudgeError as exc:
        emit_error(str(exc))
        return 1
    return 0 if ok else 1
