"""CloudPanel database export/replace/import services for clpsync."""

import os
import posixpath
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from clpsync.constants import BACKUP_TIMESTAMP_FORMAT, DUMP_SUFFIX
from clpsync.errors import SyncError
from clpsync.errors_catalog import actionable_error
from clpsync.models import EnvironmentDescriptor, dump_artifact_name


class DatabaseService:
    """Drives ``clpctl`` on both hosts and ``mysql`` for in-place truncation."""

    CLPCTL = "clpctl"
    MYSQL = "mysql"

    def __init__(self, logger, console, remote_shell):
        self.logger = logger
        self.console = console
        self.remote_shell = remote_shell

    @staticmethod
    def remote_dump_path(source: EnvironmentDescriptor) -> str:
        return posixpath.join(source.scratch_path, dump_artifact_name(source.database_name))

    @staticmethod
    def backup_path(destination: EnvironmentDescriptor, timezone: str, now: Optional[datetime] = None) -> str:
        moment = now or datetime.now(ZoneInfo(timezone))
        stamp = moment.strftime(BACKUP_TIMESTAMP_FORMAT)
        file_name = f"{destination.database_name}-backup-{stamp}{DUMP_SUFFIX}"
        return os.path.join(destination.scratch_path, file_name)

    def _export_cmd(self, database_name: str, file_path: str) -> List[str]:
        return [self.CLPCTL, "db:export", f"--databaseName={database_name}", f"--file={file_path}"]

    def export_source(self, source: EnvironmentDescriptor, run_cmd: Callable) -> str:
        remote_path = self.remote_dump_path(source)
        self.console.print(f"[blue]Exporting the source database: {source.database_name}[/blue]")
        self.logger.info("Exporting the source database: %s", source.database_name)

        try:
            self.remote_shell.run(run_cmd, ["mkdir", "-p", source.scratch_path])
            self.remote_shell.run(run_cmd, self._export_cmd(source.database_name, remote_path))
        except SyncError as exc:
            raise SyncError(
                f"{actionable_error('export_failed', database=source.database_name)}\n{exc}"
            ) from exc
        return remote_path

    def backup_destination(
        self,
        destination: EnvironmentDescriptor,
        timezone: str,
        run_cmd: Callable,
        makedirs=os.makedirs,
    ) -> str:
        backup_file = self.backup_path(destination, timezone)
        self.console.print("[blue]Creating backup of destination database...[/blue]")
        self.logger.info("Creating backup of destination database: %s", backup_file)

        makedirs(destination.scratch_path, exist_ok=True)
        try:
            run_cmd(self._export_cmd(destination.database_name, backup_file), check=True)
        except SyncError as exc:
            raise SyncError(
                f"{actionable_error('backup_failed', database=destination.database_name)}\n{exc}"
            ) from exc
        return backup_file

    def recreate_destination(self, destination: EnvironmentDescriptor, run_cmd: Callable):
        self.console.print("[blue]Recreating destination database...[/blue]")
        self.logger.info("Recreating destination database: %s", destination.database_name)

        result = run_cmd(
            [self.CLPCTL, "db:delete", f"--databaseName={destination.database_name}", "--force"],
            check=False,
        )
        if result.returncode != 0:
            self.logger.warning(
                "Deleting %s returned %s; continuing with creation.",
                destination.database_name,
                result.returncode,
            )

        try:
            run_cmd(
                [
                    self.CLPCTL,
                    "db:add",
                    f"--domainName={destination.domain_name}",
                    f"--databaseName={destination.database_name}",
                    f"--databaseUserName={destination.database_user}",
                    f"--databaseUserPassword={destination.database_password}",
                ],
                check=True,
            )
        except SyncError as exc:
            raise SyncError(
                f"{actionable_error('database_replace_failed', database=destination.database_name)}\n{exc}"
            ) from exc

    def _mysql_env(self, destination: EnvironmentDescriptor) -> Optional[Dict[str, str]]:
        if destination.database_password:
            return {"MYSQL_PWD": destination.database_password}
        return None

    def _mysql_cmd(self, destination: EnvironmentDescriptor, *args: str) -> List[str]:
        cmd = [self.MYSQL, "--batch", "--skip-column-names"]
        if destination.database_password:
            cmd.append(f"--user={destination.database_user}")
        return cmd + list(args) + [destination.database_name]

    @staticmethod
    def parse_full_tables(output: str) -> Tuple[List[str], List[str]]:
        """Split ``SHOW FULL TABLES`` output into (base tables, views)."""
        tables: List[str] = []
        views: List[str] = []
        for line in output.splitlines():
            parts = line.rstrip("\n").split("\t")
            if not parts[0].strip():
                continue
            table_type = parts[1].strip().upper() if len(parts) > 1 else "BASE TABLE"
            if table_type == "VIEW":
                views.append(parts[0])
            else:
                tables.append(parts[0])
        return tables, views

    @staticmethod
    def _quote_identifier(name: str) -> str:
        return "`" + name.replace("`", "``") + "`"

    def build_drop_statement(self, tables: List[str], views: List[str]) -> str:
        statements = ["SET FOREIGN_KEY_CHECKS=0;"]
        if views:
            statements.append(
                "DROP VIEW IF EXISTS " + ", ".join(self._quote_identifier(v) for v in views) + ";"
            )
        if tables:
            statements.append(
                "DROP TABLE IF EXISTS " + ", ".join(self._quote_identifier(t) for t in tables) + ";"
            )
        statements.append("SET FOREIGN_KEY_CHECKS=1;")
        return " ".join(statements)

    def truncate_destination(self, destination: EnvironmentDescriptor, run_cmd: Callable):
        self.console.print("[blue]Dropping all tables from destination database...[/blue]")
        self.logger.info("Dropping all tables from destination database: %s", destination.database_name)

        env = self._mysql_env(destination)
        try:
            listing = run_cmd(
                self._mysql_cmd(destination, "-e", "SHOW FULL TABLES"),
                check=True,
                env=env,
            )
            tables, views = self.parse_full_tables(listing.stdout or "")
            if not tables and not views:
                self.logger.info("Destination database %s has no tables.", destination.database_name)
                return

            self.logger.info(
                "Dropping %s table(s) and %s view(s) from %s",
                len(tables),
                len(views),
                destination.database_name,
            )
            run_cmd(
                self._mysql_cmd(destination, "-e", self.build_drop_statement(tables, views)),
                check=True,
                env=env,
            )
        except SyncError as exc:
            raise SyncError(
                f"{actionable_error('database_replace_failed', database=destination.database_name)}\n{exc}"
            ) from exc

    def import_dump(self, destination: EnvironmentDescriptor, dump_path: str, run_cmd: Callable):
        self.console.print("[blue]Importing database to destination...[/blue]")
        self.logger.info("Importing %s into %s", dump_path, destination.database_name)

        try:
            run_cmd(
                [
                    self.CLPCTL,
                    "db:import",
                    f"--databaseName={destination.database_name}",
                    f"--file={dump_path}",
                ],
                check=True,
            )
        except SyncError as exc:
            raise SyncError(
                f"{actionable_error('database_replace_failed', database=destination.database_name)}\n{exc}"
            ) from exc

        self.console.print("[green]Database imported.[/green]")

    def remove_local_dump(self, dump_path: str):
        try:
            os.remove(dump_path)
            self.logger.info("Removed local dump: %s", dump_path)
        except FileNotFoundError:
            self.logger.debug("Local dump already gone: %s", dump_path)
        except OSError as exc:
            self.logger.warning("Could not remove local dump %s: %s", dump_path, exc)
