"""Ownership and permission normalization for the mirrored site."""

import logging
import os
import shutil
import sys
from typing import Iterable

from rich.console import Console


class FileSystemService:
    """Encapsulates file and directory side effects on the destination tree."""

    def __init__(self, logger: logging.Logger, console: Console, chown=shutil.chown):
        self.logger = logger
        self.console = console
        self.chown = chown
        self.failures = 0

    def set_permissions(self, path: str, mode: int):
        if sys.platform == "win32":
            return

        try:
            os.chmod(path, mode)
        except OSError as exc:
            self.failures += 1
            self.logger.warning("Could not set permissions on %s: %s", path, exc)

    def set_owner(self, path: str, user: str, group: str):
        try:
            self.chown(path, user=user, group=group)
        except (OSError, LookupError) as exc:
            self.failures += 1
            self.logger.warning("Could not change ownership of %s: %s", path, exc)

    def set_tree_ownership(self, root: str, user: str, group: str):
        if sys.platform == "win32" or not os.path.exists(root):
            return

        self.set_owner(root, user, group)
        for current_root, dirs, files in os.walk(root):
            for name in dirs + files:
                path = os.path.join(current_root, name)
                if os.path.islink(path):
                    continue
                self.set_owner(path, user, group)

    def set_tree_permissions(self, root: str, dir_mode: int, file_mode: int):
        if sys.platform == "win32" or not os.path.exists(root):
            return

        self.set_permissions(root, dir_mode)
        for current_root, dirs, files in os.walk(root):
            for directory in dirs:
                path = os.path.join(current_root, directory)
                if not os.path.islink(path):
                    self.set_permissions(path, dir_mode)
            for file_name in files:
                path = os.path.join(current_root, file_name)
                if not os.path.islink(path):
                    self.set_permissions(path, file_mode)

    def normalize_site(
        self,
        root: str,
        site_user: str,
        dir_mode: int,
        file_mode: int,
        writable_dirs: Iterable[str],
        writable_mode: int,
    ) -> int:
        """Apply ownership, the broad mode policy, then writable overrides.

        Returns the number of paths that could not be updated.
        """
        self.console.print("[blue]Setting correct file permissions...[/blue]")
        self.logger.info("Setting correct file permissions on %s", root)
        self.failures = 0

        if not os.path.isdir(root):
            self.failures += 1
            self.logger.warning("Website path does not exist: %s", root)
            return self.failures

        self.set_tree_ownership(root, site_user, site_user)
        self.set_tree_permissions(root, dir_mode=dir_mode, file_mode=file_mode)

        for relative in writable_dirs:
            path = os.path.join(root, relative)
            if not os.path.isdir(path):
                self.logger.warning("Writable directory not found, skipping: %s", path)
                continue
            self.set_tree_permissions(path, dir_mode=writable_mode, file_mode=writable_mode)

        if self.failures:
            self.logger.warning("Permission normalization finished with %s failure(s).", self.failures)
        else:
            self.console.print("[green]Permissions normalized.[/green]")
        return self.failures
