# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clover/utils/sftp_channel.py

from __future__ import annotations

import logging
import posixpath
import shlex
import uuid
from typing import Optional

import paramiko

from ..errors import CommandError, UploadError
from .ssh_runner import RemoteSession

log = logging.getLogger("clover")

# Staging directory in the login user's home. Uploads land here first and
# are moved into place afterwards, so the final path never holds a partial file.
STAGING_DIR = ".clover"


class RemoteFileChannel:
    """
    Moves content onto a node over SFTP, sharing the session's transport.

    Writes with the login user's identity go to the staging dir only; anything
    touching the final path goes through elevated session commands.
    """

    def __init__(self, session: RemoteSession, staging_dir: str = STAGING_DIR):
        self.session = session
        self.staging_dir = staging_dir

    @property
    def _sftp(self):
        return self.session.sftp()

    def exists(self, path: str) -> bool:
        try:
            self._sftp.lstat(path)
        except FileNotFoundError:
            return False
        except (IOError, OSError, paramiko.SSHException) as exc:
            raise UploadError(f"cannot stat {path}: {exc}") from exc
        return True

    def ensure_staging_dir(self) -> None:
        if self.exists(self.staging_dir):
            return
        try:
            self._sftp.mkdir(self.staging_dir)
        except (IOError, OSError, paramiko.SSHException) as exc:
            raise UploadError(f"cannot create staging dir {self.staging_dir}: {exc}") from exc

    def ensure_dir(self, path: str) -> None:
        if not path or self.exists(path):
            return
        try:
            self.session.run(f"mkdir -p {shlex.quote(path)}", sudo=True)
        except CommandError as exc:
            raise UploadError(f"cannot create directory {path}: {exc}") from exc

    def staging_path(self, name: str) -> str:
        return posixpath.join(self.staging_dir, name)

    def write(self, path: str, content: str) -> None:
        """Plain SFTP write with the login user's identity."""
        try:
            with self._sftp.open(path, "w") as f:
                f.write(content)
        except (IOError, OSError, paramiko.SSHException) as exc:
            raise UploadError(f"cannot write {path}: {exc}") from exc

    def write_temp(self, content: str) -> str:
        tmp = self.staging_path(uuid.uuid4().hex)
        self.write(tmp, content)
        return tmp

    def upload(
        self,
        content: str,
        final_path: str,
        owner: Optional[str] = None,
        group: Optional[str] = None,
        mode: int = 0,
    ) -> None:
        """
        Upload content to a temp file in the staging dir, then elevated:
        create the parent dir, move into place, chown, chmod.

        Does not check whether `final_path` already exists.
        """
        tmp = self.write_temp(content)
        target = shlex.quote(final_path)

        self.ensure_dir(posixpath.dirname(final_path))

        steps = [f"mv {shlex.quote(tmp)} {target}"]
        if owner or group:
            spec = owner or ""
            if group:
                spec += f":{group}"
            steps.append(f"chown {shlex.quote(spec)} {target}")
        if mode:
            steps.append(f"chmod {mode:o} {target}")

        for cmd in steps:
            try:
                self.session.run(cmd, sudo=True)
            except CommandError as exc:
                raise UploadError(f"upload of {final_path} failed: {exc}") from exc

        log.debug("[%s] uploaded %s (%d bytes)", self.session.label, final_path, len(content))
