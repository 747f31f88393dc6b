# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/credentials/resolver.py

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Optional

import yaml

from .models import Credential, PasswordCredential, PrivateKeyCredential

log = logging.getLogger("sshlaunch")


class YamlCredentialResolver:
    """
    Resolves credentials from a YAML file shaped like::

        build-user:
          username: jenkins
          private_key_file: ~/.ssh/id_ed25519
          passphrase: ${AGENT_KEY_PASSPHRASE}
        legacy-user:
          username: ci
          password: ${CI_PASSWORD}

    The file is read on every call so rotated secrets apply to the next launch.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    def _load(self) -> Dict[str, dict]:
        if not self.path.is_file():
            log.warning("Credentials file %s does not exist", self.path)
            return {}
        raw = os.path.expandvars(self.path.read_text())
        return yaml.safe_load(raw) or {}

    def resolve(self, credentials_id: str) -> Optional[Credential]:
        entry = self._load().get(credentials_id)
        if not entry:
            return None
        username = entry.get("username")
        if not username:
            raise ValueError(f"Credentials '{credentials_id}' have no username")

        key_text = entry.get("private_key")
        if not key_text and entry.get("private_key_file"):
            key_text = Path(entry["private_key_file"]).expanduser().read_text()
        if key_text:
            return PrivateKeyCredential(username, key_text, entry.get("passphrase"))
        if entry.get("password") is not None:
            return PasswordCredential(username, str(entry["password"]))
        raise ValueError(f"Credentials '{credentials_id}' have neither a password nor a private key")


class StaticCredentialResolver:
    """In-memory resolver, mostly for embedding and tests."""

    def __init__(self, credentials: Optional[Dict[str, Credential]] = None):
        self._credentials = dict(credentials or {})

    def put(self, credentials_id: str, credential: Credential) -> None:
        self._credentials[credentials_id] = credential

    def resolve(self, credentials_id: str) -> Optional[Credential]:
        return self._credentials.get(credentials_id)
