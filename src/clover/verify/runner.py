# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clover/verify/runner.py

from __future__ import annotations

import functools
import logging
import shlex
import uuid
from typing import Optional

from ..config.models import GossVerifier, NodeSpec
from ..errors import CloverError, ConfigurationError
from ..observers.dispatcher import EventBus
from ..observers.events import VerifyFailed, VerifyPassed, VerifyStarted, new_ctx
from ..utils.ssh import open_ssh
from ..vagrant.driver import VagrantDriver

log = logging.getLogger("clover")

GOSS_BINARY = "/usr/bin/goss"


def goss_command(verifier: GossVerifier) -> str:
    return f"{GOSS_BINARY} --gossfile {shlex.quote(verifier.goss_file)} validate"


class VerifierRunner:
    """Runs a node's verifier as one elevated remote command; its exit status is the verdict."""

    def __init__(
        self,
        driver: VagrantDriver,
        *,
        connect=None,
        bus: Optional[EventBus] = None,
        run_id: Optional[str] = None,
        strict_host_keys: bool = False,
    ):
        self.driver = driver
        self.connect = connect or functools.partial(open_ssh, strict_host_keys=strict_host_keys)
        self.bus = bus or EventBus()
        self.run_id = run_id or str(uuid.uuid4())

    def verify(self, node: NodeSpec) -> None:
        verifier = node.verifier
        if verifier is None:
            raise ConfigurationError(f"node {node.name} has no verifier configured")
        if not isinstance(verifier, GossVerifier):
            raise ConfigurationError(f"verifier {verifier!r} for node {node.name} is not supported")

        self.bus.emit(VerifyStarted(**new_ctx(node.name, self.run_id), verifier=verifier.name))
        log.info("[%s] Verifying with %s (%s)...", node.name, verifier.name, verifier.goss_file)

        try:
            endpoint = self.driver.ssh_config(node.name)
            with self.connect(endpoint, label=node.name) as session:
                session.run(goss_command(verifier), sudo=True, echo_output=True)
        except CloverError as exc:
            log.error("[%s] Verification failed: %s", node.name, exc)
            self.bus.emit(VerifyFailed(**new_ctx(node.name, self.run_id), verifier=verifier.name, error=str(exc)))
            raise

        self.bus.emit(VerifyPassed(**new_ctx(node.name, self.run_id), verifier=verifier.name))
