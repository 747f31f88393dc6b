# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/observers/dispatcher.py
from __future__ import annotations
import logging
from typing import List
from .events import BaseEvent

log = logging.getLogger("sshlaunch")


class EventBus:
    def __init__(self, observers: List = None):
        self._observers = observers or []

    def add(self, observer) -> None:
        self._observers.append(observer)

    def emit(self, event: BaseEvent) -> None:
        for ob in self._observers:
            try:
                ob.notify(event)
            except Exception:
                # observers must not break launches
                log.debug("Observer %r failed on %s", ob, event.__class__.__name__, exc_info=True)
