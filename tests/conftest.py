import io
import shlex
import types

import pytest

from clover.utils.ssh_runner import RemoteSession

# ----------------- Fakes for Paramiko -----------------


class FakeChannel:
    """Serves canned stdout/stderr as raw byte chunks, then EOF."""

    def __init__(self, out=b"", err=b"", rc=0):
        self._out = _chunks(out)
        self._err = _chunks(err)
        self._rc = rc

    def recv(self, nbytes):
        return self._out.pop(0) if self._out else b""

    def recv_stderr(self, nbytes):
        return self._err.pop(0) if self._err else b""

    def recv_exit_status(self):
        return self._rc


def _chunks(data):
    if isinstance(data, str):
        data = data.encode()
    if isinstance(data, bytes):
        return [data] if data else []
    return list(data)


class _Stream:
    def __init__(self, channel):
        self.channel = channel


class _FakeFile:
    def __init__(self, remote, path):
        self._buf = []
        self.remote = remote
        self.path = path
    def write(self, data):
        self._buf.append(data)
    def __enter__(self):
        return self
    def __exit__(self, *exc):
        self.remote.log.append(("sftp_write", self.path, "".join(self._buf)))
        self.remote.existing.add(self.path)


class FakeSFTP:
    def __init__(self, remote): self.remote = remote
    def lstat(self, path):
        if path in self.remote.stat_errors:
            raise PermissionError(13, "Permission denied")
        if path not in self.remote.existing:
            raise FileNotFoundError(2, "No such file")
        return types.SimpleNamespace(st_mode=0o100644)
    def mkdir(self, path):
        self.remote.log.append(("sftp_mkdir", path))
        self.remote.existing.add(path)
    def open(self, path, mode="r"):
        if path in self.remote.open_errors:
            raise self.remote.open_errors[path]
        return _FakeFile(self.remote, path)
    def close(self):
        self.remote.log.append(("sftp_close",))


class FakeSSHClient:
    def __init__(self, remote):
        self.remote = remote
    def open_sftp(self):
        return FakeSFTP(self.remote)
    def exec_command(self, cmd, timeout=None):
        self.remote.log.append(("exec", cmd))
        if cmd in self.remote.exec_errors:
            raise self.remote.exec_errors[cmd]
        out, err, rc = self.remote.responses.get(cmd, ("", "", 0))
        if rc == 0:
            argv = shlex.split(cmd)
            if argv[:1] == ["sudo"]:
                argv = argv[1:]
            if argv[:1] == ["mv"]:
                self.remote.existing.discard(argv[1])
                self.remote.existing.add(argv[2])
        stdin = types.SimpleNamespace(close=lambda: None)
        channel = FakeChannel(out, err, rc)
        return stdin, _Stream(channel), _Stream(channel)
    def close(self):
        self.remote.log.append(("close",))


class FakeRemote:
    """One fake machine: its files, canned command responses and an ordered op log."""

    def __init__(self):
        self.log = []
        self.existing = set()
        self.stat_errors = set()
        self.exec_errors = {}
        self.open_errors = {}
        self.responses = {}
        self.stdout = io.StringIO()
        self.stderr = io.StringIO()

    def session(self, label="node-1"):
        return RemoteSession(FakeSSHClient(self), label=label, stdout=self.stdout, stderr=self.stderr)

    def connect(self, endpoint, label=None):
        self.log.append(("connect", endpoint.host, endpoint.port))
        return self.session(label or endpoint.host)

    @property
    def commands(self):
        return [e[1] for e in self.log if e[0] == "exec"]

    @property
    def writes(self):
        return [e[1] for e in self.log if e[0] == "sftp_write"]


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def fake_channel():
    return FakeChannel
