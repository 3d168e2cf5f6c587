# src/clover/observers/console.py
import typer

from .events import (
    BaseEvent,
    MachineBooted,
    MachineCreated,
    MachineReprovisioned,
    NodeConverged,
    NodeConvergeFailed,
    VerifyFailed,
    VerifyPassed,
)

# Stage markers shown to the operator; everything else goes to the log only.
_MARKERS = {
    MachineCreated: "created",
    MachineBooted: "booted",
    MachineReprovisioned: "re-provisioned",
    VerifyPassed: "verified",
}


class ConsoleObserver:
    def notify(self, event: BaseEvent) -> None:
        marker = _MARKERS.get(type(event))
        if isinstance(event, NodeConverged):
            typer.echo(f"*** Converged node {event.node}")
        elif marker:
            typer.echo(f"*** [{event.node}] {marker}")
        elif isinstance(event, (NodeConvergeFailed, VerifyFailed)):
            typer.secho(f"*** [{event.node}] failed: {event.error}", fg=typer.colors.RED, err=True)
