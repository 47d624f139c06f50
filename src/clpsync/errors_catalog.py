"""Actionable error catalog for clpsync."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "missing_database_password": {
        "what": "Database password not set for destination (required when recreate_database=true).",
        "next": "Set `destination.database_password` or switch `recreate_database` to false.",
    },
    "ssh_connection_failed": {
        "what": "SSH connection to remote server {host} failed.",
        "next": "Check the host, port and that key-based login works with `ssh -o BatchMode=yes`.",
    },
    "export_failed": {
        "what": "Exporting source database {database} failed.",
        "next": "Run `clpctl db:export` on the source host manually and inspect its output.",
    },
    "transport_failed": {
        "what": "Pulling the database dump {artifact} failed.",
        "next": "Check free disk space and rsync availability on both hosts, then rerun.",
    },
    "backup_failed": {
        "what": "Backup of destination database {database} failed.",
        "next": "Fix the local export or set `backup_failure_fatal: false` to accept the risk.",
    },
    "database_replace_failed": {
        "what": "Replacing destination database {database} failed.",
        "next": "The destination database may be empty or partial. Inspect the log and rerun the sync.",
    },
    "mirror_failed": {
        "what": "Rsync of website files from {source_path} failed.",
        "next": "The destination tree may be partially updated. Inspect the log and rerun the sync.",
    },
    "run_locked": {
        "what": "Another sync run holds the lock {lock_file}.",
        "next": "Wait for the running sync to finish. Remove the lock file only if no run is active.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
