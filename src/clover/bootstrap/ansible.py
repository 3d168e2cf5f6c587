# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clover/bootstrap/ansible.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from ..config.models import AnsibleProvisioner
from ..utils.ssh import RemoteEndpoint
from .template_renderer import TemplateRenderer

log = logging.getLogger("clover")

INSTALLER_NAME = "ansible.sh"

# Bootstrap for ansible-local nodes: install Ansible with whichever of apt or
# yum the box has.
ANSIBLE_INSTALLER = """\
#!/bin/sh
set -e
if command -v apt-get >/dev/null 2>&1; then
    apt-get update
    DEBIAN_FRONTEND=noninteractive apt-get install -y ansible
elif command -v yum >/dev/null 2>&1; then
    yum install -y ansible
else
    echo "no supported package manager (apt-get, yum) found" >&2
    exit 1
fi
"""


def inventory_name(node_name: str) -> str:
    return f"ansiblehosts_{node_name}"


def render_inventory(
    endpoint: RemoteEndpoint,
    groups: Sequence[str],
    renderer: Optional[TemplateRenderer] = None,
) -> str:
    """
    Single-host inventory: the alias `default` points at the endpoint, and the
    same line is repeated under one [group] stanza per declared group.
    """
    renderer = renderer or TemplateRenderer()
    return renderer.render("ansiblehosts.j2", {"endpoint": endpoint, "groups": list(groups)})


def ensure_inventory(
    path: Path,
    endpoint: RemoteEndpoint,
    groups: Sequence[str],
    renderer: Optional[TemplateRenderer] = None,
) -> bool:
    """Write the inventory unless it already exists. Returns True when written."""
    if path.exists():
        log.debug("inventory %s already exists, reusing it", path)
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_inventory(endpoint, groups, renderer))
    return True


def build_playbook_argv(
    inventory: Path,
    provisioner: AnsibleProvisioner,
    executable: str = "ansible-playbook",
) -> List[str]:
    argv = [executable, "-i", str(inventory), provisioner.playbook]
    for var in provisioner.extra_vars:
        argv += ["--extra-vars", var]
    return argv
