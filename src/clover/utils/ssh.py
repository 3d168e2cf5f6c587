# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass

import paramiko

from ..errors import NodeConnectionError
from .ssh_runner import RemoteSession

log = logging.getLogger("clover")


@dataclass(frozen=True)
class RemoteEndpoint:
    """
    Connection facts for one node, resolved from the machine driver once per
    convergence run.
    """
    host: str
    user: str
    port: int
    identity_file: str


def _load_private_key(path: str) -> paramiko.PKey:
    last_exc: Exception | None = None
    for key_cls in (
        paramiko.Ed25519Key,
        paramiko.RSAKey,
        paramiko.ECDSAKey,
    ):
        try:
            return key_cls.from_private_key_file(path)
        except paramiko.SSHException as exc:
            last_exc = exc
            continue
        except OSError as exc:
            raise NodeConnectionError(f"cannot read private key {path}: {exc}") from exc
    raise NodeConnectionError(f"unsupported or invalid private key {path}: {last_exc}")


def open_ssh(
    endpoint: RemoteEndpoint,
    *,
    label: str | None = None,
    strict_host_keys: bool = False,
    connect_timeout: float = 30.0,
) -> RemoteSession:
    """
    Connect with the endpoint's private key only (no agent, no key lookup).

    Host keys are auto-accepted unless `strict_host_keys` is set, which
    requires the key to be in the system known_hosts.
    """
    client = paramiko.SSHClient()
    if strict_host_keys:
        client.load_system_host_keys()
        client.set_missing_host_key_policy(paramiko.RejectPolicy())
    else:
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

    pkey = _load_private_key(endpoint.identity_file)

    try:
        client.connect(
            hostname=endpoint.host,
            port=endpoint.port,
            username=endpoint.user,
            pkey=pkey,
            password=None,
            look_for_keys=False,
            allow_agent=False,
            timeout=connect_timeout,
        )
    except (paramiko.SSHException, socket.error) as exc:
        client.close()
        raise NodeConnectionError(
            f"Failed to SSH into {endpoint.host}:{endpoint.port} as '{endpoint.user}': "
            f"{type(exc).__name__}: {exc}"
        ) from exc

    log.debug("[%s] connected to %s@%s:%d", label or endpoint.host, endpoint.user, endpoint.host, endpoint.port)
    return RemoteSession(client, label=label or endpoint.host)
