# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/verifiers/blind.py

from __future__ import annotations

import logging

from sshlaunch.ssh.models import HostIdentity
from .base import HostKeyVerifier

log = logging.getLogger("sshlaunch")


class BlindTrustVerifier(HostKeyVerifier):
    """Accepts every host key. Only for throwaway test environments."""

    insecure = True

    def __init__(self, label: str = ""):
        self.label = label
        log.warning("[%s] Host key verification is DISABLED; connections are insecure", label)

    def verify(self, identity: HostIdentity) -> bool:
        log.warning(
            "[%s] Accepting host key %s %s without verification (insecure)",
            self.label, identity.algorithm, identity.fingerprint,
        )
        return True
