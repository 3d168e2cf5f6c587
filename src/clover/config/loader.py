# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clover/config/loader.py

import logging
import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from ..errors import ConfigurationError
from .models import CloverConfig

log = logging.getLogger("clover")

DEFAULT_CONFIG_FILE = "clover.yml"

_CONFIG_NAME = re.compile(r"^\.?([A-Za-z0-9\-_]+)\.ya?ml$")


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    return yaml.safe_load(expanded) or {}


def state_dir_for(config_path: str | Path) -> Path:
    """
    Directory holding the generated Vagrantfile, inventories and per-node
    artifacts: `.<name>` next to the config file (clover.yml -> .clover/).
    """
    path = Path(config_path)
    m = _CONFIG_NAME.match(path.name)
    if not m:
        raise ConfigurationError(
            f"configuration file {path.name} must have a .yml or .yaml extension"
        )
    return path.resolve().parent / f".{m.group(1)}"


def load_config(path: str | Path) -> CloverConfig:
    """
    Load and validate a clover YAML config.

    ``${ENV_VAR}`` placeholders are resolved with ``os.path.expandvars`` before
    parsing. Unsupported provider, provisioner or verifier kinds are rejected
    here, before anything touches a machine.
    """
    path = Path(path)
    try:
        data = _load_yaml(path)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"configuration file {path} not found") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"configuration file {path} is not valid YAML: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"configuration file {path} must contain a mapping")

    try:
        cfg = CloverConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid configuration in {path}:\n{exc}") from exc

    log.debug("Loaded %d node(s) from %s", len(cfg.nodes), path)
    return cfg
