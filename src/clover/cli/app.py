# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clover/cli/app.py
from __future__ import annotations

import logging
import shutil
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

import typer

from clover.config.loader import DEFAULT_CONFIG_FILE, load_config
from clover.config.models import CloverConfig
from clover.converge.orchestrator import ConvergenceOrchestrator, StateLayout
from clover.errors import CloverError
from clover.logging.log import init_logging
from clover.observers.console import ConsoleObserver
from clover.observers.dispatcher import EventBus
from clover.observers.jsonfile import JsonFileObserver
from clover.observers.logger import LoggerObserver
from clover.vagrant.driver import VagrantDriver, require_executable
from clover.verify.runner import VerifierRunner

log = logging.getLogger("clover")


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Clover: converge and verify Vagrant machines from a YAML definition")

CONFIG_ARG = typer.Argument(DEFAULT_CONFIG_FILE, help="Node definition YAML (.yml or .yaml)")
VM_NAME_ARG = typer.Argument(None, help="Limit the command to one node")
DEBUG_OPT = typer.Option(False, "--debug", help="Show debug logs on the console")
STRICT_OPT = typer.Option(
    False,
    "--strict-host-keys",
    help="Reject machines whose host key is not in the system known_hosts",
)


@dataclass
class RunContext:
    cfg: CloverConfig
    layout: StateLayout
    driver: VagrantDriver
    bus: EventBus
    run_id: str
    log_path: Path


@contextmanager
def fail_on_error() -> Iterator[None]:
    """Turn clover failures into `Error: ...` on stderr and exit code 1."""
    try:
        yield
    except (CloverError, OSError) as exc:
        log.debug("command failed", exc_info=True)
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)


def open_run(config: str, debug: bool) -> RunContext:
    logger, run_id, log_path = init_logging(verbose=debug)

    require_executable("vagrant")
    cfg = load_config(config)
    layout = StateLayout.for_config(config)

    observers = [
        ConsoleObserver(),
        LoggerObserver(logger),
        JsonFileObserver.for_run(run_id),
    ]

    return RunContext(
        cfg=cfg,
        layout=layout,
        driver=VagrantDriver(layout.state_dir),
        bus=EventBus(observers=observers),
        run_id=run_id,
        log_path=log_path,
    )


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def converge(
    config: str = CONFIG_ARG,
    vm_name: Optional[str] = VM_NAME_ARG,
    debug: bool = DEBUG_OPT,
    strict_host_keys: bool = STRICT_OPT,
):
    """Create, boot and provision machines."""
    with fail_on_error():
        run = open_run(config, debug)
        nodes = run.cfg.select(vm_name)

        typer.secho("Clover converge started", bold=True)
        typer.echo(f"  Run ID   : {run.run_id}")
        typer.echo(f"  Logs     : {run.log_path}")
        typer.echo(f"  State    : {run.layout.state_dir}")
        typer.echo("")

        orchestrator = ConvergenceOrchestrator(
            run.cfg,
            run.layout,
            run.driver,
            bus=run.bus,
            run_id=run.run_id,
            strict_host_keys=strict_host_keys,
        )
        orchestrator.converge_all(nodes)


@app.command()
def verify(
    config: str = CONFIG_ARG,
    vm_name: Optional[str] = VM_NAME_ARG,
    debug: bool = DEBUG_OPT,
    strict_host_keys: bool = STRICT_OPT,
):
    """Run each node's verifier against its machine."""
    with fail_on_error():
        run = open_run(config, debug)
        runner = VerifierRunner(
            run.driver,
            bus=run.bus,
            run_id=run.run_id,
            strict_host_keys=strict_host_keys,
        )
        for node in run.cfg.select(vm_name):
            typer.echo(f"Verifying node {node.name}")
            runner.verify(node)


@app.command()
def status(
    config: str = CONFIG_ARG,
    vm_name: Optional[str] = VM_NAME_ARG,
    debug: bool = DEBUG_OPT,
):
    """Print the machine state of each node."""
    with fail_on_error():
        run = open_run(config, debug)
        for node in run.cfg.select(vm_name):
            typer.echo(f"{node.name}: {run.driver.state(node.name)}")


@app.command()
def destroy(
    config: str = CONFIG_ARG,
    vm_name: Optional[str] = VM_NAME_ARG,
    debug: bool = DEBUG_OPT,
):
    """Destroy one machine, or all of them together with the state directory."""
    with fail_on_error():
        run = open_run(config, debug)
        if vm_name:
            run.cfg.node(vm_name)

        if not run.driver.vagrantfile.exists():
            typer.echo(f"Nothing to destroy in {run.layout.state_dir}")
            return

        for line in run.driver.destroy(vm_name):
            log.info("[%s] %s", vm_name or "nodes", line)

        if not vm_name:
            shutil.rmtree(run.layout.state_dir)
            log.debug("removed %s", run.layout.state_dir)
        typer.echo("Successfully destroyed")


@app.command()
def ssh(
    config: str = CONFIG_ARG,
    vm_name: Optional[str] = VM_NAME_ARG,
    debug: bool = DEBUG_OPT,
):
    """Open an interactive shell on a machine."""
    with fail_on_error():
        if not vm_name:
            typer.secho("Error: vm_name is required", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        run = open_run(config, debug)
        run.cfg.node(vm_name)
        rc = run.driver.ssh(vm_name)
    raise typer.Exit(rc)


if __name__ == "__main__":
    app()
