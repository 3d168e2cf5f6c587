# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clover/errors.py
from __future__ import annotations

from typing import Optional


class CloverError(RuntimeError):
    """Base class for every failure surfaced by a clover run."""


class ConfigurationError(CloverError):
    """Malformed config file, unsupported kind or unknown node."""


class NodeConnectionError(CloverError):
    """SSH connection to a node could not be established."""


class UploadError(CloverError):
    """A stat/mkdir/move/chown/chmod step of a remote upload failed."""


class UnrecoverableMachineState(CloverError):
    """The machine exists but is neither running nor absent."""


class MissingExecutableError(CloverError):
    """A required local executable is not on PATH."""


class MachineError(CloverError):
    """The vagrant CLI returned a failure."""


class CommandError(CloverError):
    """A command exited with a non-zero status."""

    def __init__(self, command: str, exit_code: int, output: Optional[str] = None):
        self.command = command
        self.exit_code = exit_code
        self.output = output or ""
        msg = f"command failed (rc={exit_code}): {command}"
        if self.output.strip():
            msg += f"\n{self.output.rstrip()}"
        super().__init__(msg)
