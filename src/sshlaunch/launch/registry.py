# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/launch/registry.py

from __future__ import annotations

import logging
import threading
from typing import Dict, List

from sshlaunch.errors import LaunchInProgressError

log = logging.getLogger("sshlaunch")


class ConnectionRegistry:
    """
    Which launcher owns each node's session. A node is owned by at most one
    launcher until that launcher tears down. ``close_all`` is the shutdown hook.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._owners: Dict[str, object] = {}

    def claim(self, target_id: str, owner) -> None:
        with self._lock:
            holder = self._owners.get(target_id)
            if holder is not None and holder is not owner:
                raise LaunchInProgressError(f"{target_id} is already managed by another launcher")
            self._owners[target_id] = owner

    def unregister(self, target_id: str, owner) -> None:
        with self._lock:
            if self._owners.get(target_id) is owner:
                del self._owners[target_id]

    def active(self) -> List[str]:
        with self._lock:
            return sorted(self._owners)

    def close_all(self) -> None:
        with self._lock:
            owners = list(self._owners.items())
        for target_id, owner in owners:
            log.info("[%s] Closing connection on shutdown", target_id)
            try:
                owner.teardown()
            except Exception as e:
                log.warning("[%s] Teardown on shutdown failed: %s", target_id, e)

