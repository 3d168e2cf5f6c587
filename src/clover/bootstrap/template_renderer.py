# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clover/bootstrap/template_renderer.py

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Sequence

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..config.models import NodeSpec, SyncedFolder

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def resolve_host_dir(path: str, base_dir: Path) -> str:
    """`~/x` is expanded, relative paths are taken from the config file's directory."""
    p = Path(os.path.expanduser(path))
    if not p.is_absolute():
        p = base_dir / p
    return os.path.abspath(p)


class TemplateRenderer:
    def __init__(self, templates_dir: Path = TEMPLATES_DIR):
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )

    def render(self, template_name: str, context: dict) -> str:
        tmpl = self.env.get_template(template_name)
        return tmpl.render(**context)

    def render_vagrantfile(self, nodes: Sequence[NodeSpec], base_dir: Path) -> str:
        folders: Dict[str, List[SyncedFolder]] = {
            node.name: [
                SyncedFolder(host=resolve_host_dir(f.host, base_dir), guest=f.guest)
                for f in node.provider.folders
            ]
            for node in nodes
        }
        return self.render("Vagrantfile.j2", {"nodes": list(nodes), "folders": folders})
