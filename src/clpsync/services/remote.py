"""SSH access to the source host."""

import shlex
from typing import Callable, List, Optional, Sequence

from clpsync.errors import SyncError
from clpsync.errors_catalog import actionable_error
from clpsync.models import RemoteConnection


class RemoteShell:
    """Builds ssh invocations for one remote connection."""

    def __init__(self, connection: RemoteConnection, logger, console):
        self.connection = connection
        self.logger = logger
        self.console = console

    def ssh_options(self) -> List[str]:
        options = ["-p", str(self.connection.port)]
        if self.connection.batch_mode:
            options += ["-o", "BatchMode=yes"]
        options += ["-o", f"ConnectTimeout={self.connection.connect_timeout}"]
        return options

    def ssh_command(self, remote_command: str) -> List[str]:
        return ["ssh", *self.ssh_options(), self.connection.host, remote_command]

    def rsync_shell(self) -> str:
        """Transport string for ``rsync -e``."""
        return " ".join(["ssh", *self.ssh_options()])

    def remote_spec(self, path: str) -> str:
        return f"{self.connection.host}:{path}"

    @staticmethod
    def join_args(args: Sequence[str]) -> str:
        return " ".join(shlex.quote(arg) for arg in args)

    def probe(self, run_cmd: Callable):
        self.console.print(
            f"[blue]Checking SSH connection to remote server: {self.connection.host}[/blue]"
        )
        self.logger.info("Checking SSH connection to remote server: %s", self.connection.host)

        # `true` returns at once; allow headroom over the ssh connect timeout.
        timeout = self.connection.connect_timeout + 10
        try:
            run_cmd(self.ssh_command("true"), check=True, timeout=timeout)
        except SyncError as exc:
            raise SyncError(
                f"{actionable_error('ssh_connection_failed', host=self.connection.host)}\n{exc}"
            ) from exc

        self.console.print("[green]SSH connection to remote server established.[/green]")
        self.logger.info("SSH connection to remote server established.")

    def run(self, run_cmd: Callable, args: Sequence[str], check: bool = True, timeout: Optional[float] = None):
        return run_cmd(self.ssh_command(self.join_args(args)), check=check, timeout=timeout)
