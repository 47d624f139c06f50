"""Rsync transport between the source host and the local destination."""

import os
import posixpath
from typing import Callable, Iterable, List

from clpsync.errors import SyncError
from clpsync.errors_catalog import actionable_error


class TransferService:
    """Pulls the dump artifact and mirrors the website tree with rsync."""

    # No --progress: captured output is copied line by line into the log.
    RSYNC_FLAGS = ("-az", "--partial", "--stats")

    def __init__(self, remote_shell, logger, console, makedirs=os.makedirs):
        self.remote_shell = remote_shell
        self.logger = logger
        self.console = console
        self.makedirs = makedirs

    def _rsync_base(self) -> List[str]:
        return ["rsync", *self.RSYNC_FLAGS, "-e", self.remote_shell.rsync_shell()]

    @staticmethod
    def _with_trailing_slash(path: str) -> str:
        return path if path.endswith("/") else f"{path}/"

    def build_pull_command(self, remote_path: str, local_dir: str) -> List[str]:
        return self._rsync_base() + [
            self.remote_shell.remote_spec(remote_path),
            self._with_trailing_slash(local_dir),
        ]

    def build_mirror_command(
        self,
        source_path: str,
        destination_path: str,
        excludes: Iterable[str],
        delete: bool = False,
    ) -> List[str]:
        cmd = self._rsync_base()
        if delete:
            cmd.append("--delete")
        for pattern in excludes:
            cmd.extend(["--exclude", pattern])
        cmd.append(self.remote_shell.remote_spec(self._with_trailing_slash(source_path)))
        cmd.append(self._with_trailing_slash(destination_path))
        return cmd

    def pull_file(self, remote_path: str, local_dir: str, run_cmd: Callable) -> str:
        """Pull one remote file into ``local_dir`` and drop the remote copy."""
        artifact = posixpath.basename(remote_path)
        self.console.print("[blue]Syncing the database file...[/blue]")
        self.logger.info("Syncing the database file: %s", artifact)

        self.makedirs(local_dir, exist_ok=True)
        try:
            run_cmd(self.build_pull_command(remote_path, local_dir), check=True)
        except SyncError as exc:
            raise SyncError(f"{actionable_error('transport_failed', artifact=artifact)}\n{exc}") from exc

        result = self.remote_shell.run(run_cmd, ["rm", "-f", remote_path], check=False)
        if result.returncode != 0:
            self.logger.warning("Could not remove remote export %s", remote_path)

        return os.path.join(local_dir, artifact)

    def mirror_tree(
        self,
        source_path: str,
        destination_path: str,
        excludes: Iterable[str],
        run_cmd: Callable,
        delete: bool = False,
    ):
        self.console.print("[blue]Starting Rsync pull from source to destination...[/blue]")
        self.logger.info("Starting Rsync pull from source to destination...")

        cmd = self.build_mirror_command(source_path, destination_path, excludes, delete=delete)
        try:
            run_cmd(cmd, check=True)
        except SyncError as exc:
            raise SyncError(f"{actionable_error('mirror_failed', source_path=source_path)}\n{exc}") from exc

        self.console.print("[green]Website files synced.[/green]")
