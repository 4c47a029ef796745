"""Entry point for running scheduler daemon directly.

Usage: python -m nudge.scheduler
"""

import sys

from nudge.scheduler.daemon import start_daemon

if __name__ == "__main__":
    start_daemon(foreground=sys.stderr.isatty())
