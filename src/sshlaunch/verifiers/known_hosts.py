# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/verifiers/known_hosts.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

import paramiko

from sshlaunch.ssh.models import DEFAULT_SSH_PORT, HostIdentity
from .base import HostKeyVerifier

log = logging.getLogger("sshlaunch")

DEFAULT_KNOWN_HOSTS = "~/.ssh/known_hosts"


class KnownHostsFileVerifier(HostKeyVerifier):
    """
    Checks the presented key against an OpenSSH known_hosts file.
    Hashed entries are supported. The file is read on each call and never written.
    """

    def __init__(self, path: str | Path = DEFAULT_KNOWN_HOSTS, host: str = "", port: int = DEFAULT_SSH_PORT):
        self.path = Path(path).expanduser()
        self.host = host
        self.port = port

    def _names(self) -> List[str]:
        return [self.host, f"[{self.host}]:{self.port}"]

    def _entries(self) -> Optional[Dict[str, paramiko.PKey]]:
        if not self.path.is_file():
            return None
        keys = paramiko.HostKeys(str(self.path))
        found: Dict[str, paramiko.PKey] = {}
        for name in self._names():
            entry = keys.lookup(name)
            if entry is None:
                continue
            for keytype in entry.keys():
                found.setdefault(keytype, entry[keytype])
        return found

    def verify(self, identity: HostIdentity) -> bool:
        entries = self._entries()
        if entries is None:
            log.warning("[%s] known_hosts file %s not found, rejecting host key", self.host, self.path)
            return False
        if not entries:
            log.warning(
                "[%s] No entry for %s in %s, rejecting host key %s",
                self.host, self.host, self.path, identity.fingerprint,
            )
            return False

        known = entries.get(identity.algorithm)
        if known is not None and known.asbytes() == identity.key:
            log.info("[%s] Host key %s matched %s", self.host, identity.fingerprint, self.path)
            return True

        log.warning(
            "[%s] Host key for %s does not match %s (presented %s %s). "
            "The key may have changed; update the known_hosts file if this is expected.",
            self.host, self.host, self.path, identity.algorithm, identity.fingerprint,
        )
        return False

    def preferred_algorithms(self) -> List[str]:
        return list(self._entries() or {})
