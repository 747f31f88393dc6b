# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/verifiers/trust_on_first_use.py

from __future__ import annotations

import logging
from typing import List

from sshlaunch.ssh.models import HostIdentity
from .base import HostKeyVerifier
from .store import HostKeyStore

log = logging.getLogger("sshlaunch")


class TrustOnFirstUseVerifier(HostKeyVerifier):
    """
    Stores the first key a target presents and only accepts that key afterwards.

    A changed key is rejected and parked as a pending approval; the stored key
    is never overwritten by a connection. With ``require_manual_trust`` even
    the first key waits for approval.
    """

    def __init__(self, store: HostKeyStore, target_id: str, require_manual_trust: bool = False):
        self.store = store
        self.target_id = target_id
        self.require_manual_trust = require_manual_trust

    def verify(self, identity: HostIdentity) -> bool:
        with self.store.locked(self.target_id):
            stored = self.store.read(self.target_id)

            if stored is None:
                if self.require_manual_trust:
                    self.store.write_pending(self.target_id, identity)
                    log.warning(
                        "[%s] Host key %s %s is not trusted yet. "
                        "Run 'sshlaunch trust approve' to trust it.",
                        self.target_id, identity.algorithm, identity.fingerprint,
                    )
                    return False
                self.store.write(self.target_id, identity)
                log.info(
                    "[%s] Trusting host key %s %s on first connection",
                    self.target_id, identity.algorithm, identity.fingerprint,
                )
                return True

            if stored == identity:
                log.info("[%s] Host key %s matched the trusted key", self.target_id, identity.fingerprint)
                return True

            self.store.write_pending(self.target_id, identity)
            log.warning(
                "[%s] Host key changed! Trusted %s %s, presented %s %s. "
                "Connection rejected; approve the new key if the change is expected.",
                self.target_id, stored.algorithm, stored.fingerprint,
                identity.algorithm, identity.fingerprint,
            )
            return False

    def preferred_algorithms(self) -> List[str]:
        stored = self.store.get(self.target_id)
        return [stored.algorithm] if stored else []
