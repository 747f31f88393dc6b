# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/config/loader.py

import logging
import os
import yaml
from pathlib import Path
from .models import SshLaunchConfig

log = logging.getLogger("sshlaunch")


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    Lists of named nodes are merged by ``name``.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        elif key == "nodes" and isinstance(base.get(key), list) and isinstance(value, list):
            by_name = {n.get("name"): n for n in base[key] if isinstance(n, dict)}
            for node in value:
                target = by_name.get(node.get("name")) if isinstance(node, dict) else None
                if target is not None:
                    _deep_merge(target, node)
                else:
                    base[key].append(node)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _find_secrets_file(config_path: Path) -> Path | None:
    """
    Locate secrets.yaml:

    1. SSHLAUNCH_SECRETS_FILE environment variable (explicit override)
    2. secrets.yaml in the same directory as the config
    """
    env = os.environ.get("SSHLAUNCH_SECRETS_FILE")
    if env:
        p = Path(env)
        if p.is_file():
            return p
        log.warning("SSHLAUNCH_SECRETS_FILE=%s does not exist, skipping", env)
        return None

    p = config_path.parent / "secrets.yaml"
    if p.is_file():
        return p

    return None


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    return yaml.safe_load(expanded) or {}


def load_config(path: str | Path) -> SshLaunchConfig:
    """
    Load and validate an sshlaunch YAML config.

    ``${ENV_VAR}`` placeholders are expanded at load time, and an optional
    secrets.yaml with the same structure is deep-merged before validation.
    A relative ``credentials_file`` resolves against the config's directory.
    """
    path = Path(path)
    data = _load_yaml(path)

    secrets_path = _find_secrets_file(path)
    if secrets_path:
        log.debug("Merging secrets from %s", secrets_path)
        _deep_merge(data, _load_yaml(secrets_path))
    else:
        log.debug("No secrets.yaml found, proceeding without secrets merge")

    cfg = SshLaunchConfig.model_validate(data)
    if cfg.credentials_file and not Path(cfg.credentials_file).expanduser().is_absolute():
        cfg.credentials_file = str(path.parent / cfg.credentials_file)
    return cfg
