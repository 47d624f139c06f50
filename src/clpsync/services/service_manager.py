"""systemd control of the local database daemon."""

from typing import Callable, List

from clpsync.models import RestartPolicy


class ServiceManager:
    def __init__(self, logger, console, service_name: str = "mysql"):
        self.logger = logger
        self.console = console
        self.service_name = service_name

    def _systemctl(self, action: str) -> List[str]:
        return ["systemctl", action, self.service_name]

    def restart(self, policy: RestartPolicy, run_cmd: Callable) -> bool:
        """Bounce the daemon per ``policy``. Returns False when a command failed."""
        if policy == RestartPolicy.NONE:
            self.console.print("[dim]Skipping MySQL restart.[/dim]")
            self.logger.info("Skipping MySQL restart")
            return True

        if policy == RestartPolicy.RESTART:
            self.console.print("[blue]Restarting MySQL server...[/blue]")
            self.logger.info("Restarting MySQL server")
            actions = ["restart"]
        else:
            self.console.print("[blue]Stopping and starting MySQL server...[/blue]")
            self.logger.info("Stopping and starting MySQL server")
            actions = ["stop", "start"]

        ok = True
        for action in actions:
            result = run_cmd(self._systemctl(action), check=False)
            if result.returncode != 0:
                ok = False
        return ok
