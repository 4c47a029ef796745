"""Schedule store adapter.

Loads and saves the shared ``ReminderStore`` JSON file. Saves are atomic
(write a temporary file, fsync, ``os.replace``), so a crash or a concurrent
reader never sees half a file.

Cross-process safety comes from ``transaction()``: an exclusive advisory
lock on a sidecar ``<file>.lock`` is held for the whole load-mutate-save
cycle. The CLI and the daemon both go through it, so neither can save over
an update the other made after its load.
"""

import json
import logging
import os
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from nudge.scheduler import platform
from nudge.scheduler.errors import StoreLockTimeout, StoreUnreadable, StoreUnwritable
from nudge.scheduler.models import ReminderStore

logger = logging.getLogger(__name__)

LOCK_POLL_INTERVAL = 0.05


class ScheduleStore:
    """File-backed reminder store."""

    def __init__(self, path: Union[str, Path], lock_timeout: float = 10.0):
        self.path = Path(path)
        self.lock_timeout = lock_timeout

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(self.path.name + ".lock")

    def load(self) -> ReminderStore:
        """Read the whole store. A missing file is an empty store.

        Raises:
            StoreUnreadable: the file exists but cannot be read or parsed.
        """
        if not self.path.exists():
            return ReminderStore()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise StoreUnreadable(f"Cannot read {self.path}: {exc}") from exc

        if not isinstance(data, dict):
            raise StoreUnreadable(f"Cannot read {self.path}: expected a JSON object")

        try:
            return ReminderStore.from_dict(data)
        except (KeyError, ValueError, TypeError) as exc:
            raise StoreUnreadable(f"Corrupt reminder store {self.path}: {exc}") from exc

    def save(self, data: ReminderStore) -> None:
        """Atomically replace the file with the full collection.

        Raises:
            StoreUnwritable: on any I/O failure; the previous file is untouched.
        """
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                json.dump(data.to_dict(), f, indent=2, ensure_ascii=False)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
            raise StoreUnwritable(f"Cannot write {self.path}: {exc}") from exc
        logger.debug("Saved %d reminders to %s", len(data), self.path)

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the exclusive store lock.

        Raises:
            StoreLockTimeout: the lock stayed busy for ``lock_timeout`` seconds.
            StoreUnwritable: the lock file cannot be opened.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
            fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o600)
        except OSError as exc:
            raise StoreUnwritable(f"Cannot open lock file {self.lock_path}: {exc}") from exc

        try:
            deadline = time.monotonic() + self.lock_timeout
            while not platform.try_lock(fd):
                if time.monotonic() >= deadline:
                    raise StoreLockTimeout(
                        f"Timed out after {self.lock_timeout:.0f}s waiting for {self.lock_path}"
                    )
                time.sleep(LOCK_POLL_INTERVAL)
            try:
                yield
            finally:
                platform.unlock(fd)
        finally:
            os.close(fd)

    @contextmanager
    def transaction(self) -> Iterator[ReminderStore]:
        """Locked load -> mutate -> save.

        The yielded store is saved when the block exits normally and changed
        something. If the block raises, nothing is written.
        """
        with self.locked():
            data = self.load()
            before = data.to_dict()
            yield data
            if data.to_dict() != before:
                self.save(data)
