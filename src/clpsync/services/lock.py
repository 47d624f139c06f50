"""Exclusive run lock so overlapping cron invocations cannot interleave."""

import fcntl
import os
from typing import IO, Optional

from clpsync.errors import SyncError
from clpsync.errors_catalog import actionable_error


class RunLock:
    def __init__(self, lock_file: str, logger):
        self.lock_file = lock_file
        self.logger = logger
        self._handle: Optional[IO[str]] = None

    def acquire(self):
        os.makedirs(os.path.dirname(self.lock_file) or ".", exist_ok=True)
        handle = open(self.lock_file, "a+", encoding="utf-8")
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as exc:
            handle.close()
            raise SyncError(actionable_error("run_locked", lock_file=self.lock_file)) from exc

        handle.seek(0)
        handle.truncate()
        handle.write(f"{os.getpid()}\n")
        handle.flush()
        self._handle = handle
        self.logger.debug("Acquired run lock %s", self.lock_file)

    def release(self):
        if self._handle is None:
            return
        try:
            fcntl.flock(self._handle.fileno(), fcntl.LOCK_UN)
        finally:
            self._handle.close()
            self._handle = None
        self.logger.debug("Released run lock %s", self.lock_file)
