import subprocess

import pytest

from clpsync.errors import SyncError
from clpsync.models import RemoteConnection
from clpsync.services.remote import RemoteShell


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


def test_probe_runs_true_in_batch_mode_with_connect_timeout():
    shell = RemoteShell(RemoteConnection(host="root@203.0.113.10", port=22, connect_timeout=5), DummyLogger(), DummyConsole())
    calls = []

    def fake_run_cmd(cmd, check=True, timeout=None, env=None):
        calls.append((cmd, timeout))
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    shell.probe(fake_run_cmd)

    cmd, timeout = calls[0]
    assert cmd == ["ssh", "-p", "22", "-o", "BatchMode=yes", "-o", "ConnectTimeout=5", "root@203.0.113.10", "true"]
    assert timeout is not None


def test_probe_failure_names_host():
    shell = RemoteShell(RemoteConnection(host="root@203.0.113.10"), DummyLogger(), DummyConsole())

    def fake_run_cmd(cmd, check=True, timeout=None, env=None):
        raise SyncError("Command failed (255): ssh")

    with pytest.raises(SyncError, match="SSH connection to remote server root@203.0.113.10 failed"):
        shell.probe(fake_run_cmd)


def test_interactive_connection_omits_batch_mode():
    shell = RemoteShell(RemoteConnection(host="deploy@source", batch_mode=False), DummyLogger(), DummyConsole())

    assert "BatchMode=yes" not in shell.ssh_options()


def test_remote_arguments_are_shell_quoted():
    assert RemoteShell.join_args(["rm", "-f", "/home/my site/tmp/a.sql.gz"]) == "rm -f '/home/my site/tmp/a.sql.gz'"
