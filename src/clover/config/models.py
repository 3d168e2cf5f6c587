# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clover/config/models.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..errors import ConfigurationError

NODE_NAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_.-]*$"


class _Spec(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


@dataclass(frozen=True)
class ForwardedPort:
    guest_ip: str
    guest: int
    host_ip: str
    host: int
    protocol: str


@dataclass(frozen=True)
class SyncedFolder:
    host: str
    guest: str


def parse_forwarded_port(raw: str) -> ForwardedPort:
    """
    Accepts "guest:host:protocol" (bound to 127.0.0.1 on both sides)
    or "guest_ip:guest:host_ip:host:protocol".
    """
    parts = raw.split(":")
    try:
        if len(parts) == 3:
            return ForwardedPort("127.0.0.1", int(parts[0]), "127.0.0.1", int(parts[1]), parts[2])
        if len(parts) == 5:
            return ForwardedPort(parts[0], int(parts[1]), parts[2], int(parts[3]), parts[4])
    except ValueError as exc:
        raise ValueError(f"invalid port number in forwarded_port '{raw}'") from exc
    raise ValueError(
        f"forwarded_port '{raw}' must be guest:host:protocol or guest_ip:guest:host_ip:host:protocol"
    )


def parse_synced_folder(raw: str) -> SyncedFolder:
    parts = raw.split(":")
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"synced folder '{raw}' must be <host dir>:<guest dir>")
    return SyncedFolder(host=parts[0], guest=parts[1])


class Network(_Spec):
    forwarded_port: List[str] = Field(default_factory=list)

    @field_validator("forwarded_port")
    @classmethod
    def _check_ports(cls, value: List[str]) -> List[str]:
        for raw in value:
            parse_forwarded_port(raw)
        return value

    @property
    def forwarded_ports(self) -> List[ForwardedPort]:
        return [parse_forwarded_port(raw) for raw in self.forwarded_port]


class VagrantProvider(_Spec):
    name: Literal["vagrant"]
    box: str
    synced_folders: List[str] = Field(default_factory=list)
    network: Network = Network()

    @field_validator("synced_folders")
    @classmethod
    def _check_folders(cls, value: List[str]) -> List[str]:
        for raw in value:
            parse_synced_folder(raw)
        return value

    @property
    def folders(self) -> List[SyncedFolder]:
        return [parse_synced_folder(raw) for raw in self.synced_folders]


# ---------------------------------------------------------------------
# Provisioners: one variant per kind, selected by `name`
# ---------------------------------------------------------------------
class ShellProvisioner(_Spec):
    name: Literal["shell"]
    content: str


class AnsibleLocalProvisioner(_Spec):
    name: Literal["ansible-local"]
    playbook: Optional[str] = None


class AnsibleProvisioner(_Spec):
    name: Literal["ansible"]
    playbook: str
    groups: List[str] = Field(default_factory=list)
    extra_vars: List[str] = Field(default_factory=list)


ProvisionerSpec = Annotated[
    Union[ShellProvisioner, AnsibleLocalProvisioner, AnsibleProvisioner],
    Field(discriminator="name"),
]


class GossVerifier(_Spec):
    name: Literal["goss"]
    goss_file: str


class FileSpec(_Spec):
    path: str
    content: str
    user: Optional[str] = None
    group: Optional[str] = None
    mode: int = 0                  # 0 keeps the default permissions

    @field_validator("mode", mode="before")
    @classmethod
    def _octal_mode(cls, value):
        # "0644" in YAML quotes; unquoted 0644 is already an int (YAML 1.1 octal)
        if isinstance(value, str):
            try:
                return int(value, 8)
            except ValueError as exc:
                raise ValueError(f"mode '{value}' is not an octal permission") from exc
        return value

    @field_validator("mode")
    @classmethod
    def _mode_range(cls, value: int) -> int:
        if not 0 <= value <= 0o7777:
            raise ValueError(f"mode {value:o} is out of range")
        return value

    @field_validator("path")
    @classmethod
    def _absolute(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"file path '{value}' must be absolute")
        return value


class NodeSpec(_Spec):
    name: str = Field(pattern=NODE_NAME_PATTERN)
    provider: VagrantProvider
    provisioner: List[ProvisionerSpec] = Field(default_factory=list)
    verifier: Optional[GossVerifier] = None
    files: List[FileSpec] = Field(default_factory=list)


class CloverConfig(_Spec):
    nodes: List[NodeSpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_names(self) -> "CloverConfig":
        seen = set()
        for node in self.nodes:
            if node.name in seen:
                raise ValueError(f"node '{node.name}' is declared more than once")
            seen.add(node.name)
        return self

    def node(self, name: str) -> NodeSpec:
        for node in self.nodes:
            if node.name == name:
                return node
        raise ConfigurationError(f"Configuration for node {name} was not found")

    def select(self, name: Optional[str]) -> List[NodeSpec]:
        """A single named node, or every node in declaration order."""
        if name:
            return [self.node(name)]
        return list(self.nodes)
