import subprocess

import pytest

from clpsync.constants import MIRROR_EXCLUDES
from clpsync.errors import SyncError
from clpsync.models import RemoteConnection
from clpsync.services.remote import RemoteShell
from clpsync.services.transfer import TransferService


class DummyLogger:
    def __init__(self):
        self.warnings = []

    def info(self, *_args, **_kwargs):
        return None

    def warning(self, msg, *args, **_kwargs):
        self.warnings.append(msg % args)


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


def _service(logger=None):
    logger = logger or DummyLogger()
    remote = RemoteShell(RemoteConnection(host="root@203.0.113.10", port=2222), logger, DummyConsole())
    return TransferService(remote, logger=logger, console=DummyConsole())


def test_pull_command_uses_archive_flags_and_ssh_transport(tmp_path):
    cmd = _service().build_pull_command("/home/shop/tmp/shop_prod.sql.gz", str(tmp_path))

    assert cmd == [
        "rsync",
        "-az",
        "--partial",
        "--stats",
        "-e",
        "ssh -p 2222 -o BatchMode=yes -o ConnectTimeout=5",
        "root@203.0.113.10:/home/shop/tmp/shop_prod.sql.gz",
        f"{tmp_path}/",
    ]


def test_mirror_command_excludes_destination_local_paths():
    cmd = _service().build_mirror_command(
        "/home/shop/htdocs/shop.example.com",
        "/home/stage/htdocs/stage.example.com",
        MIRROR_EXCLUDES,
    )

    excluded = [cmd[i + 1] for i, arg in enumerate(cmd) if arg == "--exclude"]
    assert excluded == [
        "application/cache/",
        "application/logs/",
        "application/config/database.php",
        "application/config/config.php",
        ".env",
    ]
    assert "--delete" not in cmd
    assert cmd[-2] == "root@203.0.113.10:/home/shop/htdocs/shop.example.com/"
    assert cmd[-1] == "/home/stage/htdocs/stage.example.com/"


def test_mirror_command_can_delete_extraneous_files():
    cmd = _service().build_mirror_command("/src/", "/dst", (), delete=True)

    assert "--delete" in cmd
    assert "--delete-excluded" not in cmd
    assert cmd[-2:] == ["root@203.0.113.10:/src/", "/dst/"]


def test_pull_file_removes_remote_copy_after_success(tmp_path):
    calls = []

    def fake_run_cmd(cmd, check=True, timeout=None, env=None):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    local_dir = tmp_path / "tmp"
    local_path = _service().pull_file("/home/shop/tmp/shop_prod.sql.gz", str(local_dir), fake_run_cmd)

    assert local_dir.is_dir()
    assert local_path == str(local_dir / "shop_prod.sql.gz")
    assert calls[0][0] == "rsync"
    assert calls[1][0] == "ssh"
    assert calls[1][-1] == "rm -f /home/shop/tmp/shop_prod.sql.gz"


def test_pull_file_failure_keeps_remote_copy(tmp_path):
    calls = []

    def fake_run_cmd(cmd, check=True, timeout=None, env=None):
        calls.append(cmd)
        raise SyncError("Command failed (23): rsync")

    with pytest.raises(SyncError, match="Pulling the database dump shop_prod.sql.gz failed"):
        _service().pull_file("/home/shop/tmp/shop_prod.sql.gz", str(tmp_path), fake_run_cmd)

    assert len(calls) == 1


def test_remote_cleanup_failure_is_only_a_warning(tmp_path):
    logger = DummyLogger()

    def fake_run_cmd(cmd, check=True, timeout=None, env=None):
        code = 1 if cmd[0] == "ssh" else 0
        return subprocess.CompletedProcess(cmd, code, stdout="", stderr="")

    _service(logger).pull_file("/home/shop/tmp/shop_prod.sql.gz", str(tmp_path), fake_run_cmd)

    assert logger.warnings == ["Could not remove remote export /home/shop/tmp/shop_prod.sql.gz"]


def test_mirror_failure_is_raised():
    def fake_run_cmd(cmd, check=True, timeout=None, env=None):
        raise SyncError("Command failed (12): rsync")

    with pytest.raises(SyncError, match="Rsync of website files"):
        _service().mirror_tree("/src", "/dst", MIRROR_EXCLUDES, fake_run_cmd)


def test_rsync_commands_never_request_progress_meters():
    service = _service()
    pull = service.build_pull_command("/home/shop/tmp/shop_prod.sql.gz", "/home/stage/tmp")
    mirror = service.build_mirror_command("/src", "/dst", MIRROR_EXCLUDES)

    for cmd in (pull, mirror):
        assert "--progress" not in cmd
        assert not any(arg.startswith("-") and not arg.startswith("--") and "P" in arg for arg in cmd)
