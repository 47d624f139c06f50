"""Subprocess execution service for clpsync."""

import os
import subprocess
import time
from typing import Dict, Iterable, List, Optional

from clpsync.errors import SyncError


class CommandRunner:
    """Runs external commands, mirroring their output into the sync log."""

    def __init__(
        self,
        logger,
        default_timeout: Optional[float] = None,
        dry_run: bool = False,
        secrets: Optional[Iterable[str]] = None,
    ):
        self.logger = logger
        self.default_timeout = default_timeout
        self.dry_run = dry_run
        self.secrets = [value for value in (secrets or []) if value]

    def mask(self, text: str) -> str:
        for value in self.secrets:
            text = text.replace(value, "********")
        return text

    def _log_output(self, result: subprocess.CompletedProcess):
        for stream in (result.stdout, result.stderr):
            for line in (stream or "").splitlines():
                if line.strip():
                    self.logger.info(self.mask(line.rstrip()))

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
        retry_count: int = 0,
        retry_backoff_seconds: float = 0.0,
        retry_on_returncodes: Optional[Iterable[int]] = None,
    ) -> subprocess.CompletedProcess:
        cmd_str = self.mask(" ".join(cmd))

        if self.dry_run:
            self.logger.info("Would execute: %s", cmd_str)
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout
        max_attempts = max(1, retry_count + 1)
        retry_codes = set(retry_on_returncodes or [])
        process_env = None
        if env:
            process_env = os.environ.copy()
            process_env.update(env)

        for attempt in range(1, max_attempts + 1):
            try:
                result = subprocess.run(
                    cmd,
                    text=True,
                    capture_output=True,
                    timeout=effective_timeout,
                    env=process_env,
                )
            except FileNotFoundError as exc:
                raise SyncError(
                    f"Required command not found: {cmd[0]}. Please install it and try again."
                ) from exc
            except subprocess.TimeoutExpired as exc:
                if attempt < max_attempts:
                    self.logger.warning(
                        "Command timed out on attempt %s/%s. Retrying in %.1fs: %s",
                        attempt,
                        max_attempts,
                        retry_backoff_seconds,
                        cmd_str,
                    )
                    time.sleep(retry_backoff_seconds)
                    continue
                raise SyncError(f"Command timed out after {effective_timeout}s: {cmd_str}") from exc
            except OSError as exc:
                raise SyncError(f"Failed to execute command: {cmd_str}. {exc}") from exc

            self._log_output(result)

            if result.returncode == 0:
                self.logger.info("Command exited 0: %s", cmd_str)
                return result

            stderr = self.mask((result.stderr or "").strip())
            message = f"Command failed ({result.returncode}): {cmd_str}"
            if stderr:
                message = f"{message}\n{stderr}"

            can_retry = attempt < max_attempts and (
                not retry_codes or result.returncode in retry_codes
            )
            if can_retry:
                self.logger.warning(
                    "Command failed on attempt %s/%s and will be retried in %.1fs.\n%s",
                    attempt,
                    max_attempts,
                    retry_backoff_seconds,
                    message,
                )
                time.sleep(retry_backoff_seconds)
                continue

            if check:
                raise SyncError(message)

            self.logger.warning(message)
            return result

        raise SyncError(f"Command failed after retries: {cmd_str}")
