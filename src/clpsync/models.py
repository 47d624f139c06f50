"""Shared domain models for clpsync."""

import posixpath
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from clpsync.constants import (
    DEFAULT_MYSQL_SERVICE,
    DEFAULT_TIMEZONE,
    DUMP_SUFFIX,
    MIRROR_EXCLUDES,
    SCRATCH_DIR_NAME,
)


class Role(str, Enum):
    SOURCE = "source"
    DESTINATION = "destination"


class RestartPolicy(str, Enum):
    """How the local database daemon is bounced after a sync."""

    RESTART = "restart"
    STOP_START = "stop_start"
    NONE = "none"

    @classmethod
    def parse(cls, value: str) -> "RestartPolicy":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(policy.value for policy in cls)
            raise ValueError(f"Invalid restart method '{value}'. Choose one of: {choices}") from None


class StageStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class EnvironmentDescriptor:
    """One side of the sync, resolved from configuration."""

    role: Role
    domain_name: str
    site_user: str
    database_name: str
    database_user: str
    website_path: str
    script_path: str
    database_password: Optional[str] = None

    @property
    def scratch_path(self) -> str:
        return posixpath.join(self.script_path, SCRATCH_DIR_NAME)


@dataclass(frozen=True)
class RemoteConnection:
    """SSH target used for every remote round-trip."""

    host: str
    port: int = 22
    batch_mode: bool = True
    connect_timeout: int = 5


@dataclass(frozen=True)
class RunConfig:
    """Policy switches that drive branching in the pipeline."""

    recreate_database: bool = True
    backup_destination_database: bool = False
    backup_failure_fatal: bool = True
    restart_policy: RestartPolicy = RestartPolicy.STOP_START
    mysql_service_name: str = DEFAULT_MYSQL_SERVICE
    timezone: str = DEFAULT_TIMEZONE
    log_file: str = ""
    command_timeout: Optional[float] = None
    mirror_excludes: Tuple[str, ...] = MIRROR_EXCLUDES
    mirror_delete: bool = False
    dry_run: bool = False
    verbose: bool = False
    lock_file: str = ""
    report_file: str = ""


@dataclass(frozen=True)
class SyncSettings:
    source: EnvironmentDescriptor
    destination: EnvironmentDescriptor
    remote: RemoteConnection
    run: RunConfig


@dataclass(frozen=True)
class StageResult:
    name: str
    status: StageStatus
    detail: str = ""
    fatal: bool = True


def dump_artifact_name(database_name: str) -> str:
    """Return the file name the dump of ``database_name`` travels under."""
    return f"{database_name}{DUMP_SUFFIX}"
