# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clover/vagrant/driver.py

from __future__ import annotations

import enum
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Iterator, List, Optional

from ..errors import MachineError, MissingExecutableError
from ..utils.ssh import RemoteEndpoint

log = logging.getLogger("clover")

VAGRANTFILE = "Vagrantfile"


class MachineStatus(enum.Enum):
    NOT_CREATED = "not-created"
    RUNNING = "running"
    OTHER = "other"

    @classmethod
    def from_state(cls, state: str) -> "MachineStatus":
        if state == "not_created":
            return cls.NOT_CREATED
        if state == "running":
            return cls.RUNNING
        return cls.OTHER


def require_executable(name: str) -> str:
    path = shutil.which(name)
    if not path:
        raise MissingExecutableError(f"executable '{name}' was not found in PATH")
    return path


class VagrantDriver:
    """
    A thin wrapper around the `vagrant` CLI for one state directory.
    Every call runs with cwd=state_dir; the process working directory is
    never changed. Testable by mocking subprocess.run / subprocess.Popen.
    """

    def __init__(self, state_dir: Path, executable: str = "vagrant"):
        self.state_dir = Path(state_dir)
        self.executable = executable

    @property
    def vagrantfile(self) -> Path:
        return self.state_dir / VAGRANTFILE

    # ------------------------- internal helpers -------------------------

    def _argv(self, *args: str) -> List[str]:
        return [self.executable, *args]

    def _capture(self, argv: List[str]) -> str:
        log.debug("$ %s", " ".join(argv))
        cp = subprocess.run(
            argv,
            cwd=str(self.state_dir),
            capture_output=True,
            text=True,
            check=False,
        )
        if cp.returncode != 0:
            raise MachineError(
                f"vagrant failed (rc={cp.returncode}) for {argv!r}\n{cp.stderr or ''}".rstrip()
            )
        return cp.stdout

    def _stream(self, argv: List[str]) -> Iterator[str]:
        log.debug("$ %s", " ".join(argv))
        proc = subprocess.Popen(
            argv,
            cwd=str(self.state_dir),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
        with proc:
            for line in proc.stdout:
                yield line.rstrip("\n")
        if proc.returncode != 0:
            raise MachineError(f"vagrant failed (rc={proc.returncode}) for {argv!r}")

    # ------------------------- lifecycle -------------------------

    def state(self, name: str) -> str:
        """Raw machine state as reported by `vagrant status --machine-readable`."""
        if not self.vagrantfile.exists():
            return "not_created"
        out = self._capture(self._argv("status", name, "--machine-readable"))
        for line in out.splitlines():
            fields = line.split(",")
            if len(fields) >= 4 and fields[2] == "state":
                return fields[3]
        raise MachineError(f"could not parse the state of machine {name} from vagrant status")

    def status(self, name: str) -> MachineStatus:
        state = self.state(name)
        log.debug("[%s] vagrant state: %s", name, state)
        return MachineStatus.from_state(state)

    def create(self, config: Optional[str]) -> None:
        """Materialize the state dir and Vagrantfile; an existing Vagrantfile is kept."""
        self.state_dir.mkdir(parents=True, exist_ok=True)
        if self.vagrantfile.exists():
            return
        if config is None:
            raise MachineError(f"no Vagrantfile in {self.state_dir} and no configuration to write")
        self.vagrantfile.write_text(config)

    def boot(self, name: str) -> Iterator[str]:
        """`vagrant up`, yielding its output lines as they arrive."""
        return self._stream(self._argv("up", name))

    def reapply(self, name: str) -> None:
        """`vagrant provision` attached to the operator's terminal."""
        argv = self._argv("provision", name)
        log.debug("$ %s", " ".join(argv))
        cp = subprocess.run(argv, cwd=str(self.state_dir), check=False)
        if cp.returncode != 0:
            raise MachineError(f"vagrant failed (rc={cp.returncode}) for {argv!r}")

    def destroy(self, name: Optional[str] = None) -> Iterator[str]:
        argv = self._argv("destroy", "-f")
        if name:
            argv.append(name)
        return self._stream(argv)

    def ssh(self, name: str) -> int:
        """Interactive `vagrant ssh`; returns its exit code."""
        return subprocess.run(self._argv("ssh", name), cwd=str(self.state_dir), check=False).returncode

    def ssh_config(self, name: str) -> RemoteEndpoint:
        out = self._capture(self._argv("ssh-config", name))
        return parse_ssh_config(out, name)


def parse_ssh_config(text: str, name: str = "machine") -> RemoteEndpoint:
    """Extract HostName/User/Port/IdentityFile from `vagrant ssh-config` output."""
    found = {}
    for raw in text.splitlines():
        parts = raw.strip().split(None, 1)
        if len(parts) != 2:
            continue
        key, value = parts
        if key in ("HostName", "User", "Port", "IdentityFile") and key not in found:
            found[key] = value.strip().strip('"')

    missing = [k for k in ("HostName", "User", "Port", "IdentityFile") if k not in found]
    if missing:
        raise MachineError(f"ssh-config for {name} is missing {', '.join(missing)}")
    try:
        port = int(found["Port"])
    except ValueError as exc:
        raise MachineError(f"ssh-config for {name} has an invalid port: {found['Port']}") from exc

    return RemoteEndpoint(
        host=found["HostName"],
        user=found["User"],
        port=port,
        identity_file=found["IdentityFile"],
    )
