import logging
import os
from datetime import datetime
from zoneinfo import ZoneInfo

import click
from rich.logging import RichHandler

from .constants import DEFAULT_CONFIG_FILE, LOG_MARKER
from .core import SitePuller
from .errors import SyncError
from .models import RestartPolicy
from .services.config_loader import ConfigLoader


class TimezoneFormatter(logging.Formatter):
    """Stamps log file lines in the configured timezone rather than host time."""

    def __init__(self, fmt: str, timezone: str, datefmt: str = "%Y-%m-%d %H:%M:%S %Z"):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.zone = ZoneInfo(timezone)

    def formatTime(self, record, datefmt=None):
        moment = datetime.fromtimestamp(record.created, self.zone)
        return moment.strftime(datefmt or self.datefmt)


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def configure_file_logging(logger: logging.Logger, log_file: str, timezone: str, verbose: bool):
    os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
    file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    file_handler.setFormatter(
        TimezoneFormatter(f"{LOG_MARKER} %(asctime)s [%(levelname)s] %(message)s", timezone)
    )
    logger.addHandler(file_handler)
    return file_handler


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML sync definition. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option("--log-file", type=click.Path(), help="Append the sync log to this file.")
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option(
    "--dry-run",
    is_flag=True,
    default=None,
    help="Log every command that would run without executing anything.",
)
@click.option(
    "--restart-method",
    required=False,
    type=click.Choice([policy.value for policy in RestartPolicy]),
    help="How to bounce MySQL after the import (default: stop_start).",
)
def main(config, log_file, verbose, dry_run, restart_method):
    """Pull a CloudPanel CodeIgniter site (database and files) from a remote server."""
    logger = logging.getLogger("clpsync")

    config_loader = ConfigLoader()
    resolved_config = config
    if resolved_config is None:
        default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
        if os.path.exists(default_config_path):
            resolved_config = default_config_path
    if resolved_config is None:
        raise click.ClickException(
            f"No configuration found. Pass --config or create {DEFAULT_CONFIG_FILE}."
        )

    try:
        config_values = dict(config_loader.load(resolved_config))
        config_values["log_file"] = _resolve_option(log_file, config_values, "log_file")
        config_values["verbose"] = _resolve_option(verbose, config_values, "verbose", default=False)
        config_values["dry_run"] = _resolve_option(dry_run, config_values, "dry_run", default=False)
        config_values["mysql_restart_method"] = _resolve_option(
            restart_method, config_values, "mysql_restart_method", default="stop_start"
        )
        settings = config_loader.build_settings(config_values)
    except SyncError as exc:
        raise click.ClickException(str(exc)) from exc

    if settings.run.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    try:
        configure_file_logging(logger, settings.run.log_file, settings.run.timezone, settings.run.verbose)
    except OSError as exc:
        raise click.ClickException(f"Cannot open log file '{settings.run.log_file}': {exc}") from exc

    puller = SitePuller(settings)
    raise SystemExit(puller.run())


if __name__ == "__main__":
    main()
