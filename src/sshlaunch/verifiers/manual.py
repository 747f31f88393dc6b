# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/verifiers/manual.py

from __future__ import annotations

import logging
from typing import List

import paramiko

from sshlaunch.errors import KeyParseError
from sshlaunch.ssh.models import HostIdentity
from .base import HostKeyVerifier

log = logging.getLogger("sshlaunch")


def parse_key_text(text: str) -> HostIdentity:
    """
    Parse ``"<algorithm> <base64>"`` and check the blob really is a key of
    that algorithm.
    """
    text = (text or "").strip()
    if " " not in text:
        raise KeyParseError("Key should be in the form algorithm base64-encoded-key")
    try:
        identity = HostIdentity.parse(text)
    except ValueError as e:
        raise KeyParseError(str(e)) from e

    try:
        paramiko.PKey.from_type_string(identity.algorithm, identity.key)
    except paramiko.UnknownKeyType as e:
        raise KeyParseError(f"Unsupported key algorithm: {identity.algorithm}") from e
    except Exception as e:
        raise KeyParseError(f"Key is not a valid {identity.algorithm} key: {e}") from e
    return identity


class ManualKeyVerifier(HostKeyVerifier):
    """Trusts exactly one operator-supplied key."""

    def __init__(self, key_text: str, label: str = ""):
        self._identity = parse_key_text(key_text)
        self.label = label

    @property
    def key_text(self) -> str:
        return self._identity.to_text()

    @property
    def identity(self) -> HostIdentity:
        return self._identity

    def verify(self, identity: HostIdentity) -> bool:
        if identity == self._identity:
            log.info("[%s] Host key %s matched the configured key", self.label, identity.fingerprint)
            return True
        log.warning(
            "[%s] Presented host key %s %s does not match the configured key %s %s",
            self.label, identity.algorithm, identity.fingerprint,
            self._identity.algorithm, self._identity.fingerprint,
        )
        return False

    def preferred_algorithms(self) -> List[str]:
        return [self._identity.algorithm]
