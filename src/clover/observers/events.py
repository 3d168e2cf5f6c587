# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clover/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events in a single clover invocation
    node: str         # node name from the config file

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(node: str, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "node": node,
    }


# ---------------------------------------------------------------------
# Convergence lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class NodeConvergeStarted(BaseEvent):
    provisioners: int
    files: int

@dataclass(frozen=True)
class ConfigRendered(BaseEvent):
    path: str

@dataclass(frozen=True)
class MachineCreated(BaseEvent):
    pass

@dataclass(frozen=True)
class MachineBooted(BaseEvent):
    pass

@dataclass(frozen=True)
class MachineReprovisioned(BaseEvent):
    pass

@dataclass(frozen=True)
class ArtifactWritten(BaseEvent):
    path: str

@dataclass(frozen=True)
class FileUploaded(BaseEvent):
    path: str

@dataclass(frozen=True)
class FileSkipped(BaseEvent):
    path: str

@dataclass(frozen=True)
class ProvisionerStarted(BaseEvent):
    index: int
    kind: str

@dataclass(frozen=True)
class ProvisionerSucceeded(BaseEvent):
    index: int
    kind: str
    duration_ms: int

@dataclass(frozen=True)
class NodeConverged(BaseEvent):
    duration_ms: int

@dataclass(frozen=True)
class NodeConvergeFailed(BaseEvent):
    stage: str
    error: str


# ---------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class VerifyStarted(BaseEvent):
    verifier: str

@dataclass(frozen=True)
class VerifyPassed(BaseEvent):
    verifier: str

@dataclass(frozen=True)
class VerifyFailed(BaseEvent):
    verifier: str
    error: str
