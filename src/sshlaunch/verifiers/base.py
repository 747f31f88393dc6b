# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/verifiers/base.py

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from sshlaunch.ssh.models import HostIdentity


class HostKeyVerifier(ABC):
    """
    Decides whether a presented host key is trusted. Called once per
    connection attempt, after key exchange and before authentication.
    """

    insecure = False

    @abstractmethod
    def verify(self, identity: HostIdentity) -> bool:
        ...

    def preferred_algorithms(self) -> List[str]:
        """Host key algorithms to put first in negotiation. Empty keeps the default order."""
        return []
