"""Configuration loader for clpsync."""

import posixpath
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from clpsync.constants import (
    DEFAULT_LOG_NAME,
    DEFAULT_MYSQL_SERVICE,
    DEFAULT_TIMEZONE,
    LOCK_FILE_NAME,
    MIRROR_EXCLUDES,
    REPORT_FILE_NAME,
)
from clpsync.errors import SyncError
from clpsync.models import (
    EnvironmentDescriptor,
    RemoteConnection,
    RestartPolicy,
    Role,
    RunConfig,
    SyncSettings,
)


class ConfigLoader:
    """Loads the YAML sync definition and builds immutable settings."""

    SUPPORTED_KEYS = {
        "source",
        "destination",
        "remote",
        "recreate_database",
        "backup_destination_database",
        "backup_failure_fatal",
        "mysql_restart_method",
        "mysql_service_name",
        "timezone",
        "log_file",
        "command_timeout",
        "mirror_excludes",
        "mirror_delete",
        "verbose",
        "dry_run",
        "lock_file",
        "report_file",
    }
    ENVIRONMENT_KEYS = {
        "domain_name",
        "site_user",
        "database_name",
        "database_user",
        "website_path",
        "script_path",
    }
    DESTINATION_KEYS = ENVIRONMENT_KEYS | {"database_password"}
    REMOTE_KEYS = {"host", "port", "batch_mode", "connect_timeout"}

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise SyncError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise SyncError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise SyncError("Config file must contain a YAML mapping at the root.")

        self._reject_unknown(parsed, self.SUPPORTED_KEYS, "configuration")
        return parsed

    @staticmethod
    def _reject_unknown(values: Mapping[str, Any], allowed, section: str):
        unknown = sorted(set(values.keys()) - allowed)
        if unknown:
            unknown_list = ", ".join(str(key) for key in unknown)
            raise SyncError(f"Unknown {section} keys: {unknown_list}")

    @staticmethod
    def _section(values: Mapping[str, Any], name: str) -> Mapping[str, Any]:
        section = values.get(name)
        if section is None:
            raise SyncError(f"Missing '{name}' section in configuration.")
        if not isinstance(section, dict):
            raise SyncError(f"Configuration section '{name}' must be a mapping.")
        return section

    @staticmethod
    def _flag(values: Mapping[str, Any], key: str, default: bool) -> bool:
        value = values.get(key, default)
        if value is None:
            return default
        if not isinstance(value, bool):
            raise SyncError(f"'{key}' must be true or false, got {value!r}.")
        return value

    @staticmethod
    def _required(section: Mapping[str, Any], key: str, section_name: str) -> str:
        value = section.get(key)
        if value is None or not str(value).strip():
            raise SyncError(f"Missing required '{section_name}.{key}' in configuration.")
        return str(value).strip()

    def build_environment(self, values: Mapping[str, Any], role: Role) -> EnvironmentDescriptor:
        name = role.value
        section = self._section(values, name)
        allowed = self.DESTINATION_KEYS if role == Role.DESTINATION else self.ENVIRONMENT_KEYS
        self._reject_unknown(section, allowed, f"'{name}'")

        domain_name = self._required(section, "domain_name", name)
        site_user = self._required(section, "site_user", name)
        password = section.get("database_password")

        return EnvironmentDescriptor(
            role=role,
            domain_name=domain_name,
            site_user=site_user,
            database_name=str(section.get("database_name") or site_user),
            database_user=str(section.get("database_user") or site_user),
            website_path=str(
                section.get("website_path") or posixpath.join("/home", site_user, "htdocs", domain_name)
            ),
            script_path=str(section.get("script_path") or posixpath.join("/home", site_user)),
            database_password=str(password) if password not in (None, "") else None,
        )

    def build_remote(self, values: Mapping[str, Any]) -> RemoteConnection:
        section = self._section(values, "remote")
        self._reject_unknown(section, self.REMOTE_KEYS, "'remote'")
        try:
            port = int(section.get("port", 22))
            connect_timeout = int(section.get("connect_timeout", 5))
        except (TypeError, ValueError) as exc:
            raise SyncError(f"Invalid 'remote' port or connect_timeout: {exc}") from exc

        return RemoteConnection(
            host=self._required(section, "host", "remote"),
            port=port,
            batch_mode=self._flag(section, "batch_mode", True),
            connect_timeout=connect_timeout,
        )

    def build_settings(self, values: Mapping[str, Any]) -> SyncSettings:
        source = self.build_environment(values, Role.SOURCE)
        destination = self.build_environment(values, Role.DESTINATION)
        remote = self.build_remote(values)

        try:
            restart_policy = RestartPolicy.parse(values.get("mysql_restart_method", "stop_start"))
        except ValueError as exc:
            raise SyncError(str(exc)) from exc

        timezone = str(values.get("timezone") or DEFAULT_TIMEZONE)
        try:
            ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise SyncError(f"Unknown timezone: {timezone}") from exc

        command_timeout = values.get("command_timeout")
        if command_timeout is not None:
            try:
                command_timeout = float(command_timeout)
            except (TypeError, ValueError) as exc:
                raise SyncError(f"Invalid command_timeout: {command_timeout}") from exc

        excludes = values.get("mirror_excludes", MIRROR_EXCLUDES)
        if not isinstance(excludes, (list, tuple)) or not all(isinstance(item, str) for item in excludes):
            raise SyncError("mirror_excludes must be a list of path patterns.")

        run = RunConfig(
            recreate_database=self._flag(values, "recreate_database", True),
            backup_destination_database=self._flag(values, "backup_destination_database", False),
            backup_failure_fatal=self._flag(values, "backup_failure_fatal", True),
            restart_policy=restart_policy,
            mysql_service_name=str(values.get("mysql_service_name") or DEFAULT_MYSQL_SERVICE),
            timezone=timezone,
            log_file=str(
                values.get("log_file") or posixpath.join(destination.script_path, DEFAULT_LOG_NAME)
            ),
            command_timeout=command_timeout,
            mirror_excludes=tuple(excludes),
            mirror_delete=self._flag(values, "mirror_delete", False),
            dry_run=self._flag(values, "dry_run", False),
            verbose=self._flag(values, "verbose", False),
            lock_file=str(
                values.get("lock_file") or posixpath.join(destination.scratch_path, LOCK_FILE_NAME)
            ),
            report_file=str(
                values.get("report_file") or posixpath.join(destination.scratch_path, REPORT_FILE_NAME)
            ),
        )
        return SyncSettings(source=source, destination=destination, remote=remote, run=run)
