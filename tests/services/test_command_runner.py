import sys

import pytest

from clpsync.errors import SyncError
from clpsync.services.command_runner import CommandRunner


class RecordingLogger:
    def __init__(self):
        self.messages = []

    def _record(self, msg, *args, **_kwargs):
        self.messages.append(msg % args if args else msg)

    debug = info = warning = _record


def test_command_runner_raises_with_stderr():
    runner = CommandRunner(logger=RecordingLogger())

    with pytest.raises(SyncError, match="boom"):
        runner.run(
            [sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(1)"],
            check=True,
        )


def test_command_runner_returns_when_check_disabled():
    runner = CommandRunner(logger=RecordingLogger())

    result = runner.run([sys.executable, "-c", "import sys; sys.exit(1)"], check=False)

    assert result.returncode == 1


def test_command_runner_appends_output_to_log():
    logger = RecordingLogger()
    runner = CommandRunner(logger=logger)

    runner.run([sys.executable, "-c", "print('exported 3 tables')"])

    assert "exported 3 tables" in logger.messages


def test_command_runner_masks_secrets_in_log_and_errors():
    logger = RecordingLogger()
    runner = CommandRunner(logger=logger, secrets=["s3cret"])

    with pytest.raises(SyncError) as error:
        runner.run(
            [
                sys.executable,
                "-c",
                "import sys; print('password s3cret'); sys.exit(2)",
                "--databaseUserPassword=s3cret",
            ]
        )

    assert "s3cret" not in str(error.value)
    assert all("s3cret" not in message for message in logger.messages)
    assert "password ********" in logger.messages


def test_command_runner_passes_extra_environment():
    runner = CommandRunner(logger=RecordingLogger())

    result = runner.run(
        [sys.executable, "-c", "import os, sys; sys.exit(0 if os.environ.get('MYSQL_PWD') == 'pw' else 3)"],
        env={"MYSQL_PWD": "pw"},
    )

    assert result.returncode == 0


def test_command_runner_retries_before_success(tmp_path, monkeypatch):
    runner = CommandRunner(logger=RecordingLogger())
    monkeypatch.chdir(tmp_path)

    command = [
        sys.executable,
        "-c",
        (
            "from pathlib import Path;"
            "p=Path('retry-counter.txt');"
            "n=int(p.read_text()) if p.exists() else 0;"
            "p.write_text(str(n+1));"
            "import sys; sys.exit(1 if n == 0 else 0)"
        ),
    ]

    result = runner.run(command, check=True, retry_count=1, retry_backoff_seconds=0.0)

    assert result.returncode == 0


def test_command_runner_timeout_raises_error():
    runner = CommandRunner(logger=RecordingLogger())

    with pytest.raises(SyncError, match="timed out"):
        runner.run([sys.executable, "-c", "import time; time.sleep(2)"], timeout=0.1)


def test_command_runner_missing_binary_raises_error():
    runner = CommandRunner(logger=RecordingLogger())

    with pytest.raises(SyncError, match="Required command not found"):
        runner.run(["clpsync-definitely-missing-binary"])


def test_dry_run_never_spawns(tmp_path):
    logger = RecordingLogger()
    runner = CommandRunner(logger=logger, dry_run=True)
    marker = tmp_path / "touched"

    result = runner.run([sys.executable, "-c", f"open({str(marker)!r}, 'w').close()"])

    assert result.returncode == 0
    assert not marker.exists()
    assert any(message.startswith("Would execute:") for message in logger.messages)


def test_command_runner_logs_exit_status_with_masked_command():
    logger = RecordingLogger()
    runner = CommandRunner(logger=logger, secrets=["s3cret"])

    runner.run([sys.executable, "-c", "pass", "--databaseUserPassword=s3cret"])

    exit_lines = [message for message in logger.messages if message.startswith("Command exited 0: ")]
    assert len(exit_lines) == 1
    assert exit_lines[0].endswith("--databaseUserPassword=********")


def test_command_runner_logs_failed_exit_status_when_check_disabled():
    logger = RecordingLogger()
    runner = CommandRunner(logger=logger)

    runner.run([sys.executable, "-c", "import sys; sys.exit(4)"], check=False)

    assert any(message.startswith("Command failed (4): ") for message in logger.messages)
