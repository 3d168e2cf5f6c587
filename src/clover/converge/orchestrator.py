# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clover/converge/orchestrator.py

from __future__ import annotations

import functools
import logging
import shlex
import subprocess
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..bootstrap.ansible import (
    ANSIBLE_INSTALLER,
    INSTALLER_NAME,
    build_playbook_argv,
    ensure_inventory,
    inventory_name,
)
from ..bootstrap.template_renderer import TemplateRenderer
from ..config.loader import state_dir_for
from ..config.models import (
    AnsibleLocalProvisioner,
    AnsibleProvisioner,
    CloverConfig,
    NodeSpec,
    ShellProvisioner,
)
from ..errors import CommandError, ConfigurationError, UnrecoverableMachineState
from ..observers.dispatcher import EventBus
from ..observers.events import (
    ArtifactWritten,
    BaseEvent,
    ConfigRendered,
    FileSkipped,
    FileUploaded,
    MachineBooted,
    MachineCreated,
    MachineReprovisioned,
    NodeConverged,
    NodeConvergeFailed,
    NodeConvergeStarted,
    ProvisionerStarted,
    ProvisionerSucceeded,
    new_ctx,
)
from ..utils.sftp_channel import RemoteFileChannel
from ..utils.ssh import RemoteEndpoint, open_ssh
from ..utils.ssh_runner import RemoteSession
from ..vagrant.driver import MachineStatus, VagrantDriver, require_executable

log = logging.getLogger("clover")

SessionFactory = Callable[..., RemoteSession]


@dataclass(frozen=True)
class StateLayout:
    """
    Where generated files live for one config file. All paths are explicit;
    nothing depends on the process working directory.
    """
    state_dir: Path
    base_dir: Path      # directory of the config file

    @classmethod
    def for_config(cls, config_path: str | Path) -> "StateLayout":
        return cls(state_dir=state_dir_for(config_path), base_dir=Path(config_path).resolve().parent)

    @property
    def vagrantfile(self) -> Path:
        return self.state_dir / "Vagrantfile"

    def node_dir(self, node: str) -> Path:
        # synced into the machine at /clover
        return self.state_dir / node

    def inventory(self, node: str) -> Path:
        return self.state_dir / inventory_name(node)

    def installer(self, node: str) -> Path:
        return self.node_dir(node) / INSTALLER_NAME

    def script(self, node: str, index: int) -> Path:
        return self.node_dir(node) / f"{index}.sh"


class ConvergenceOrchestrator:
    """
    Drives nodes from whatever state their machine is in to provisioned.

    Strictly forward and one-shot: every step is an existence check guarding
    a side effect, so re-running after a failure resumes where it stopped.
      1. config      render the Vagrantfile unless one exists
      2. machine     create+boot / reapply / refuse, by machine status
      3. artifacts   host-side scripts, written if absent
      4. files       upload each declared file that is absent on the node
      5. provision   run provisioners in declared order
    Any failure aborts the node (and, in converge_all, the remaining nodes).
    """

    def __init__(
        self,
        cfg: CloverConfig,
        layout: StateLayout,
        driver: VagrantDriver,
        *,
        renderer: Optional[TemplateRenderer] = None,
        connect: Optional[SessionFactory] = None,
        bus: Optional[EventBus] = None,
        run_id: Optional[str] = None,
        strict_host_keys: bool = False,
    ):
        self.cfg = cfg
        self.layout = layout
        self.driver = driver
        self.renderer = renderer or TemplateRenderer()
        self.connect = connect or functools.partial(open_ssh, strict_host_keys=strict_host_keys)
        self.bus = bus or EventBus()
        self.run_id = run_id or str(uuid.uuid4())

    # ------------------ helpers ------------------

    def _emit(self, event_cls: type[BaseEvent], node: NodeSpec, **fields) -> None:
        self.bus.emit(event_cls(**new_ctx(node.name, self.run_id), **fields))

    def _write_artifact(self, node: NodeSpec, path: Path, content: str) -> bool:
        if path.exists():
            log.debug("[%s] %s already exists, keeping it", node.name, path)
            return False
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        log.info("[%s] Wrote %s", node.name, path)
        self._emit(ArtifactWritten, node, path=str(path))
        return True

    # ------------------ stages ------------------

    def ensure_config(self, node: NodeSpec) -> Optional[str]:
        """
        Returns the rendered machine configuration, or None when a generated
        Vagrantfile already exists and is reused as-is.
        """
        self.layout.node_dir(node.name).mkdir(parents=True, exist_ok=True)
        if self.layout.vagrantfile.exists():
            log.debug("[%s] Reusing %s", node.name, self.layout.vagrantfile)
            return None
        config = self.renderer.render_vagrantfile(self.cfg.nodes, self.layout.base_dir)
        self._emit(ConfigRendered, node, path=str(self.layout.vagrantfile))
        return config

    def ensure_machine(self, node: NodeSpec, config: Optional[str]) -> None:
        status = self.driver.status(node.name)

        if status is MachineStatus.NOT_CREATED:
            self.driver.create(config)
            self._emit(MachineCreated, node)
            log.info("[%s] Booting machine...", node.name)
            for line in self.driver.boot(node.name):
                log.info("[%s] %s", node.name, line)
            self._emit(MachineBooted, node)

        elif status is MachineStatus.RUNNING:
            log.info("[%s] Machine is running, re-applying provisioning...", node.name)
            self.driver.reapply(node.name)
            self._emit(MachineReprovisioned, node)

        else:
            raise UnrecoverableMachineState(
                f"machine {node.name} is neither running nor absent; "
                f"destroy it and run converge again"
            )

    def stage_artifacts(self, node: NodeSpec) -> None:
        for index, prov in enumerate(node.provisioner):
            if isinstance(prov, AnsibleLocalProvisioner):
                self._write_artifact(node, self.layout.installer(node.name), ANSIBLE_INSTALLER)
            elif isinstance(prov, ShellProvisioner):
                self._write_artifact(node, self.layout.script(node.name, index), prov.content)

    def deploy_files(self, node: NodeSpec, channel: RemoteFileChannel) -> None:
        for spec in node.files:
            # presence alone satisfies the contract, ownership and mode included
            if channel.exists(spec.path):
                log.debug("[%s] %s already present, skipping", node.name, spec.path)
                self._emit(FileSkipped, node, path=spec.path)
                continue
            log.info("[%s] Uploading %s", node.name, spec.path)
            channel.upload(spec.content, spec.path, owner=spec.user, group=spec.group, mode=spec.mode)
            self._emit(FileUploaded, node, path=spec.path)

    def provision(
        self,
        node: NodeSpec,
        session: RemoteSession,
        channel: RemoteFileChannel,
        endpoint: RemoteEndpoint,
    ) -> None:
        for index, prov in enumerate(node.provisioner):
            started = time.time()
            self._emit(ProvisionerStarted, node, index=index, kind=prov.name)

            if isinstance(prov, ShellProvisioner):
                self._run_shell(node, index, prov, session, channel)
            elif isinstance(prov, AnsibleLocalProvisioner):
                self._run_ansible_local(node, prov, session, channel)
            elif isinstance(prov, AnsibleProvisioner):
                self._run_ansible(node, prov, endpoint)
            else:
                raise ConfigurationError(f"provisioner {prov!r} for node {node.name} is not supported")

            self._emit(
                ProvisionerSucceeded,
                node,
                index=index,
                kind=prov.name,
                duration_ms=int((time.time() - started) * 1000),
            )

    # ------------------ provisioners ------------------

    def _run_shell(
        self,
        node: NodeSpec,
        index: int,
        prov: ShellProvisioner,
        session: RemoteSession,
        channel: RemoteFileChannel,
    ) -> None:
        script = channel.staging_path(f"{index}.sh")
        log.info("[%s] Running shell provisioner #%d...", node.name, index)
        channel.write(script, prov.content)
        session.run(f"bash {shlex.quote(script)}", sudo=True, echo_output=True)

    def _run_ansible_local(
        self,
        node: NodeSpec,
        prov: AnsibleLocalProvisioner,
        session: RemoteSession,
        channel: RemoteFileChannel,
    ) -> None:
        installed = channel.staging_path(INSTALLER_NAME)
        if channel.exists(installed):
            log.debug("[%s] Ansible installer already ran, skipping", node.name)
        else:
            log.info("[%s] Installing Ansible on the machine...", node.name)
            tmp = channel.write_temp(ANSIBLE_INSTALLER)
            session.run(f"bash {shlex.quote(tmp)}", sudo=True, echo_output=True)
            # only a successful run leaves the installer at its final path
            session.run(f"mv {shlex.quote(tmp)} {shlex.quote(installed)}")

        if prov.playbook:
            log.info("[%s] Running ansible-playbook %s on the machine...", node.name, prov.playbook)
            session.run(f"ansible-playbook {shlex.quote(prov.playbook)}", sudo=True, echo_output=True)

    def _run_ansible(self, node: NodeSpec, prov: AnsibleProvisioner, endpoint: RemoteEndpoint) -> None:
        executable = require_executable("ansible-playbook")

        inventory = self.layout.inventory(node.name)
        if ensure_inventory(inventory, endpoint, prov.groups, self.renderer):
            log.info("[%s] Wrote %s", node.name, inventory)
            self._emit(ArtifactWritten, node, path=str(inventory))

        argv = build_playbook_argv(inventory, prov, executable=executable)
        log.info("[%s] Provisioning with ansible:\n    %s", node.name, " ".join(argv))

        cp = subprocess.run(argv, cwd=str(self.layout.base_dir), check=False)
        if cp.returncode != 0:
            raise CommandError(" ".join(argv), cp.returncode)

    # ------------------ public API ------------------

    def converge(self, node: NodeSpec) -> None:
        started = time.time()
        log.info("[%s] Converging node...", node.name)
        self._emit(NodeConvergeStarted, node, provisioners=len(node.provisioner), files=len(node.files))

        stage = "config"
        try:
            config = self.ensure_config(node)

            stage = "machine"
            self.ensure_machine(node, config)

            stage = "artifacts"
            self.stage_artifacts(node)

            stage = "connect"
            endpoint = self.driver.ssh_config(node.name)
            session = self.connect(endpoint, label=node.name)
            try:
                channel = RemoteFileChannel(session)
                channel.ensure_staging_dir()

                stage = "files"
                self.deploy_files(node, channel)

                stage = "provision"
                self.provision(node, session, channel, endpoint)
            finally:
                session.close()

        except Exception as exc:
            log.error("[%s] Convergence failed at stage '%s': %s", node.name, stage, exc)
            self._emit(NodeConvergeFailed, node, stage=stage, error=str(exc))
            raise

        self._emit(NodeConverged, node, duration_ms=int((time.time() - started) * 1000))
        log.info("[%s] Converged", node.name)

    def converge_all(self, nodes: Sequence[NodeSpec]) -> List[str]:
        """Converge nodes one at a time in order; the first failure stops the batch."""
        done: List[str] = []
        for i, node in enumerate(nodes, 1):
            log.info("[nodes] Converging %s (%d/%d)...", node.name, i, len(nodes))
            self.converge(node)
            done.append(node.name)
        return done
