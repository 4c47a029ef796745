import os


def _get_xdg_dir(env_var: str, fallback: str) -> str:
    """
    Get directory for nudge files, defaulting to ~/.nudge.

    XDG paths are only used when the corresponding environment variable
    is explicitly set by the user. Otherwise, we use ~/.nudge for every
    file type (config, data, state).

    Args:
        env_var: XDG environment variable name (e.g., "XDG_DATA_HOME")
        fallback: Fallback path relative to home (e.g., ".local/share") - unused unless XDG var is set

    Returns:
        Path to the directory for nudge files
    """
    xdg_base = os.getenv(env_var)
    if xdg_base:
        return os.path.join(xdg_base, "nudge")

    return os.path.join(os.path.expanduser("~"), ".nudge")


# XDG Base Directory paths
CONFIG_DIR = _get_xdg_dir("XDG_CONFIG_HOME", ".config")
DATA_DIR = _get_xdg_dir("XDG_DATA_HOME", ".local/share")
STATE_DIR = _get_xdg_dir("XDG_STATE_HOME", ".local/state")

# Data files (XDG_DATA_HOME)
REMINDERS_FILE = os.path.join(DATA_DIR, "reminders.json")

# Runtime files (XDG_STATE_HOME)
SCHEDULER_PID_FILE = os.path.join(STATE_DIR, "scheduler.pid")
SCHEDULER_LOG_DIR = os.path.join(STATE_DIR, "scheduler_logs")

# Dotenv file read by settings, relative to the config dir
ENV_FILE = os.path.join(CONFIG_DIR, ".env")


def ensure_dirs() -> None:
    """Create the nudge directories with private permissions."""
    for directory in (CONFIG_DIR, DATA_DIR, STATE_DIR, SCHEDULER_LOG_DIR):
        os.makedirs(directory, mode=0o700, exist_ok=True)
