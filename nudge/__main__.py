"""Usage: python -m nudge <command>"""

import sys

from nudge.cli_runner import main

if __name__ == "__main__":
    sys.exit(main())
