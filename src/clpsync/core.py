import logging
import os
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from rich.console import Console

from .constants import DIR_MODE, FILE_MODE, MIRROR_EXCLUDES, WRITABLE_DIRS, WRITABLE_MODE
from .errors import SyncError
from .errors_catalog import actionable_error
from .models import StageResult, StageStatus, SyncSettings
from .services.command_runner import CommandRunner
from .services.database import DatabaseService
from .services.filesystem import FileSystemService
from .services.lock import RunLock
from .services.remote import RemoteShell
from .services.report import RunReportService
from .services.service_manager import ServiceManager
from .services.transfer import TransferService

console = Console()
logger = logging.getLogger("clpsync")


def _skip_makedirs(*_args, **_kwargs):
    return None


class SitePuller:
    """Pulls a CloudPanel site (database and files) from the source host."""

    def __init__(
        self,
        settings: SyncSettings,
        command_runner: Optional[CommandRunner] = None,
        filesystem_service: Optional[FileSystemService] = None,
    ):
        self.settings = settings
        self.source = settings.source
        self.destination = settings.destination
        self.options = settings.run
        self.run_id = uuid.uuid4().hex[:10]
        self.results: List[StageResult] = []
        self.current_stage: Optional[str] = None

        self.command_runner = command_runner or CommandRunner(
            logger=logger,
            default_timeout=self.options.command_timeout,
            dry_run=self.options.dry_run,
            secrets=[self.destination.database_password or ""],
        )
        makedirs = _skip_makedirs if self.options.dry_run else os.makedirs
        self.makedirs = makedirs
        self.remote_shell = RemoteShell(settings.remote, logger=logger, console=console)
        self.transfer_service = TransferService(
            self.remote_shell, logger=logger, console=console, makedirs=makedirs
        )
        self.database_service = DatabaseService(
            logger=logger, console=console, remote_shell=self.remote_shell
        )
        self.filesystem_service = filesystem_service or FileSystemService(logger=logger, console=console)
        self.service_manager = ServiceManager(
            logger=logger, console=console, service_name=self.options.mysql_service_name
        )
        self.report_service = RunReportService(
            report_file=self.options.report_file,
            logger=logger,
            enabled=not self.options.dry_run and bool(self.options.report_file),
        )
        self.run_lock = RunLock(self.options.lock_file, logger=logger)

    def _run_cmd(
        self,
        cmd: List[str],
        check: bool = True,
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
    ):
        return self.command_runner.run(cmd, check=check, timeout=timeout, env=env)

    def local_time(self) -> str:
        return datetime.now(ZoneInfo(self.options.timezone)).strftime("%a %d %b %Y %H:%M:%S %Z")

    def _record(self, result: StageResult, started_at: str):
        logger.info("Stage %s: %s", result.name, result.status.value)
        self.results.append(result)
        self.report_service.record(result, started_at)

    def _run_stage(self, name: str, callback: Callable, *args, fatal: bool = True, **kwargs):
        """Run one stage and apply its failure policy.

        Fatal stages re-raise ``SyncError``; non-fatal ones are recorded as
        failed and the pipeline carries on.
        """
        self.current_stage = name
        started_at = self.report_service.now()
        logger.debug("Stage started: %s", name)

        try:
            outcome = callback(*args, **kwargs)
        except SyncError as exc:
            self._record(StageResult(name, StageStatus.FAILED, str(exc), fatal=fatal), started_at)
            if fatal:
                raise
            console.print(f"[yellow]Warning:[/yellow] {exc}")
            logger.warning("Stage '%s' failed but is not fatal: %s", name, exc)
            self.current_stage = None
            return None

        self._record(StageResult(name, StageStatus.SUCCESS, fatal=fatal), started_at)
        self.current_stage = None
        return outcome

    def _skip_stage(self, name: str, reason: str):
        logger.info("Skipping %s: %s", name, reason)
        self._record(StageResult(name, StageStatus.SKIPPED, reason, fatal=False), self.report_service.now())

    def _build_report_metadata(self) -> Dict[str, Any]:
        return {
            "source_host": self.settings.remote.host,
            "source_domain": self.source.domain_name,
            "source_database": self.source.database_name,
            "destination_domain": self.destination.domain_name,
            "destination_database": self.destination.database_name,
            "recreate_database": self.options.recreate_database,
            "backup_destination_database": self.options.backup_destination_database,
            "restart_policy": self.options.restart_policy.value,
            "dry_run": self.options.dry_run,
        }

    def validate_configuration(self):
        if self.options.recreate_database and not self.destination.database_password:
            raise SyncError(actionable_error("missing_database_password"))
        missing = [pattern for pattern in MIRROR_EXCLUDES if pattern not in self.options.mirror_excludes]
        if missing:
            logger.warning(
                "mirror_excludes leaves out %s; the source copies will overwrite the destination ones.",
                ", ".join(missing),
            )

    def check_connectivity(self):
        self.remote_shell.probe(self._run_cmd)

    def export_database(self) -> str:
        return self.database_service.export_source(self.source, self._run_cmd)

    def transfer_database(self, remote_path: str) -> str:
        return self.transfer_service.pull_file(remote_path, self.destination.scratch_path, self._run_cmd)

    def backup_destination(self) -> str:
        return self.database_service.backup_destination(
            self.destination,
            self.options.timezone,
            self._run_cmd,
            makedirs=self.makedirs,
        )

    def replace_database(self):
        if self.options.recreate_database:
            self.database_service.recreate_destination(self.destination, self._run_cmd)
        else:
            self.database_service.truncate_destination(self.destination, self._run_cmd)

    def import_database(self, dump_path: str):
        self.database_service.import_dump(self.destination, dump_path, self._run_cmd)
        if not self.options.dry_run:
            self.database_service.remove_local_dump(dump_path)

    def mirror_files(self):
        self.transfer_service.mirror_tree(
            self.source.website_path,
            self.destination.website_path,
            self.options.mirror_excludes,
            self._run_cmd,
            delete=self.options.mirror_delete,
        )

    def normalize_permissions(self):
        failures = self.filesystem_service.normalize_site(
            self.destination.website_path,
            site_user=self.destination.site_user,
            dir_mode=DIR_MODE,
            file_mode=FILE_MODE,
            writable_dirs=WRITABLE_DIRS,
            writable_mode=WRITABLE_MODE,
        )
        if failures:
            raise SyncError(f"{failures} path(s) under {self.destination.website_path} kept old permissions.")

    def restart_database(self):
        if not self.service_manager.restart(self.options.restart_policy, self._run_cmd):
            raise SyncError(
                f"Restart of '{self.options.mysql_service_name}' did not complete cleanly."
            )

    def _pipeline(self):
        self._run_stage("check_connectivity", self.check_connectivity)

        remote_dump = self._run_stage("export_database", self.export_database)
        local_dump = self._run_stage("transfer_database", self.transfer_database, remote_dump)

        if self.options.backup_destination_database:
            self._run_stage(
                "backup_destination",
                self.backup_destination,
                fatal=self.options.backup_failure_fatal,
            )
        else:
            self._skip_stage("backup_destination", "backup_destination_database is disabled")

        self._run_stage("replace_database", self.replace_database)
        self._run_stage("import_database", self.import_database, local_dump)
        self._run_stage("mirror_files", self.mirror_files)

        if self.options.dry_run:
            self._skip_stage("normalize_permissions", "dry run")
        else:
            self._run_stage("normalize_permissions", self.normalize_permissions, fatal=False)

        self._run_stage("restart_database", self.restart_database, fatal=False)

    def run(self) -> int:
        exit_code = 1
        report_status = "failed"
        report_error: Optional[str] = None
        locked = False

        try:
            logger.info("Sync started at %s", self.local_time())
            if self.options.dry_run:
                console.print("[yellow]Dry run: commands are logged, nothing is executed.[/yellow]")

            self.report_service.start_run(self.run_id, self._build_report_metadata())
            self._run_stage("validate_configuration", self.validate_configuration)

            if self.options.lock_file and not self.options.dry_run:
                self.run_lock.acquire()
                locked = True

            self._pipeline()

            report_status = "success"
            exit_code = 0
            end_time = self.local_time()
            console.print(f"[bold green]Sync completed successfully at {end_time}[/bold green]")
            logger.info("Sync completed successfully at %s", end_time)
            return exit_code

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            report_status = "aborted"
            report_error = "Operation cancelled by user."
            return exit_code
        except SyncError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error("ERROR: %s Aborting!", exc)
            report_error = str(exc)
            return exit_code
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error during stage '%s'", self.current_stage or "run")
            report_error = str(exc)
            return exit_code
        finally:
            self.report_service.finalize(report_status, error=report_error)
            if locked:
                self.run_lock.release()
            if exit_code != 0:
                logger.info("Sync aborted at %s", self.local_time())
