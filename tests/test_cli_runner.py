"""Tests for the nudge command-line entry point."""

from unittest.mock import patch

import pytest

from nudge.cli_runner import build_parser, main
from nudge.scheduler.errors import DispatchError


@pytest.fixture(autouse=True)
def no_daemon():
    with patch("nudge.reminders.wake_daemon", return_value=False):
        yield


class TestParser:
    """Tests for argument parsing."""

    def test_add_arguments(self):
        args = build_parser().parse_args(
            ["remind", "add", "Stand-up", "--cron", "0 9 * * MON-FRI", "-p", "low", "--no-notify"]
        )
        assert args.message == "Stand-up"
        assert args.cron == "0 9 * * MON-FRI"
        assert args.priority == "low"
        assert args.notify is False

    def test_id_must_be_integer(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["remind", "complete", "abc"])


class TestRemindCommands:
    """Tests for the remind subcommands."""

    def test_add_and_list(self, recording_console):
        assert main(["remind", "add", "Water plants", "--due", "2099-06-01 08:00"]) == 0
        assert main(["remind", "list"]) == 0

        output = recording_console.export_text()
        assert "Reminder added with ID: 1" in output
        assert "Water plants" in output
        assert "PENDING" in output

    def test_list_empty(self, recording_console):
        assert main(["remind", "list"]) == 0
        assert "No reminders found." in recording_console.export_text()

    def test_complete_missing_reminder(self, recording_console):
        assert main(["remind", "complete", "42"]) == 1
        assert "Reminder with ID 42 not found." in recording_console.export_text()

    def test_malformed_cron(self, recording_console):
        assert main(["remind", "add", "Bad", "--cron", "every day"]) == 1
        assert main(["remind", "list"]) == 0
        assert "No reminders found." in recording_console.export_text()

    def test_complete_then_pending_list(self, recording_console):
        main(["remind", "add", "Done soon"])
        assert main(["remind", "complete", "1"]) == 0
        recording_console.export_text()  # clear

        main(["remind", "list", "--pending"])
        assert "No reminders found." in recording_console.export_text()

    def test_snooze(self, recording_console):
        main(["remind", "add", "Stretch", "--cron", "0 * * * *"])
        assert main(["remind", "snooze", "1", "15m"]) == 0
        assert "Reminder 1 snoozed until" in recording_console.export_text()

    def test_test_notify_console(self, recording_console):
        assert main(["remind", "test-notify", "--console"]) == 0
        output = recording_console.export_text()
        assert "test notification from your reminder tool" in output
        assert "Test notification sent!" in output

    def test_test_notify_failure(self, recording_console):
        with patch(
            "nudge.scheduler.notifier.DesktopNotifier.notify",
            side_effect=DispatchError("Notifier not available: notify-send"),
        ):
            assert main(["remind", "test-notify"]) == 1
        assert "Test notification failed" in recording_console.export_text()


class TestDaemonCommands:
    """Tests for the daemon subcommands."""

    @patch("nudge.scheduler.cli.handle_scheduler_status", return_value=True)
    def test_status_dispatch(self, mock_status):
        assert main(["daemon", "status"]) == 0
        mock_status.assert_called_once()

    @patch("nudge.scheduler.cli.handle_scheduler_stop", return_value=False)
    def test_failed_handler_exit_code(self, mock_stop):
        assert main(["daemon", "stop"]) == 1
