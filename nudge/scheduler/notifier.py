"""Notification dispatchers.

The scheduler only knows the ``Dispatcher`` protocol: ``notify(reminder)``
returns on success and raises ``DispatchError`` on any failure. Retrying is
the scheduler's job, driven by a ``RetryPolicy``.
"""

import logging
import subprocess
import sys
from dataclasses import dataclass
from typing import List, Protocol, Tuple, runtime_checkable
from xml.sax.saxutils import escape as xml_escape

from rich.markup import escape as escape_rich_markup

from nudge.messaging import get_console
from nudge.scheduler.errors import DispatchError
from nudge.scheduler.models import Reminder
from nudge.settings import NotifierKind, NudgeSettings

logger = logging.getLogger(__name__)

APP_NAME = "nudge"


@runtime_checkable
class Dispatcher(Protocol):
    """Delivers a due reminder to the user."""

    def notify(self, reminder: Reminder) -> None:
        """Deliver the reminder. Raises DispatchError on failure."""
        ...


@dataclass
class RetryPolicy:
    """Bounded attempts with exponential backoff between them."""

    attempts: int = 3
    backoff_seconds: float = 1.0

    def delay(self, attempt: int) -> float:
        """Seconds to wait after the given (0-based) failed attempt."""
        return self.backoff_seconds * (2**attempt)


def format_notification(reminder: Reminder) -> Tuple[str, str]:
    """Title and body shown for a reminder."""
    title = f"{reminder.priority.icon} Reminder #{reminder.id}"
    body = f"{reminder.content}\nPriority: {reminder.priority.value.upper()}"
    return title, body


class DesktopNotifier:
    """Native desktop notifications through the platform's command-line tool."""

    def __init__(self, timeout: float = 10.0, platform_name: str = sys.platform):
        self.timeout = timeout
        self.platform_name = platform_name

    def build_command(self, title: str, body: str) -> List[str]:
        if self.platform_name == "win32":
            return ["powershell", "-NoProfile", "-Command", _windows_toast_script(title, body)]
        if self.platform_name == "darwin":
            script = (
                f"display notification {_applescript_string(body)} "
                f"with title {_applescript_string(title)}"
            )
            return ["osascript", "-e", script]
        return [
            "notify-send",
            f"--app-name={APP_NAME}",
            "--icon=dialog-information",
            "--expire-time=5000",
            title,
            body,
        ]

    def notify(self, reminder: Reminder) -> None:
        title, body = format_notification(reminder)
        cmd = self.build_command(title, body)
        try:
            subprocess.run(cmd, capture_output=True, timeout=self.timeout, check=True)
        except FileNotFoundError as exc:
            raise DispatchError(f"Notifier not available: {cmd[0]}") from exc
        except subprocess.TimeoutExpired as exc:
            raise DispatchError(f"{cmd[0]} timed out after {self.timeout:.0f}s") from exc
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or b"").decode(errors="replace").strip()
            raise DispatchError(
                f"{cmd[0]} exited with {exc.returncode}: {stderr or 'no output'}"
            ) from exc
        logger.debug("Delivered reminder #%d via %s", reminder.id, cmd[0])


class ConsoleNotifier:
    """Prints reminders to the terminal. Used for foreground runs and tests."""

    def notify(self, reminder: Reminder) -> None:
        title, body = format_notification(reminder)
        get_console().print(
            f"[bold]{escape_rich_markup(title)}[/bold]\n{escape_rich_markup(body)}"
        )


def build_dispatcher(settings: NudgeSettings) -> Dispatcher:
    if settings.notifier == NotifierKind.CONSOLE:
        return ConsoleNotifier()
    return DesktopNotifier(timeout=settings.dispatch_timeout_seconds)


def _applescript_string(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _windows_toast_script(title: str, body: str) -> str:
    return f'''
[Windows.UI.Notifications.ToastNotificationManager, Windows.UI.Notifications, ContentType = WindowsRuntime] | Out-Null
[Windows.Data.Xml.Dom.XmlDocument, Windows.Data.Xml.Dom.XmlDocument, ContentType = WindowsRuntime] | Out-Null

$template = @"
<toast>
    <visual>
        <binding template="ToastText02">
            <text id="1">{xml_escape(title)}</text>
            <text id="2">{xml_escape(body[:200])}</text>
        </binding>
    </visual>
</toast>
"@

$xml = New-Object Windows.Data.Xml.Dom.XmlDocument
$xml.LoadXml($template)
$toast = New-Object Windows.UI.Notifications.ToastNotification $xml
[Windows.UI.Notifications.ToastNotificationManager]::CreateToastNotifier("{APP_NAME}").Show($toast)
'''
