# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events of one launch
    env: str          # free-form environment label from the config
    context: Optional[str]  # node name

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def now_ts() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def new_ctx(env: str, context: Optional[str]) -> Dict[str, Any]:
    return {
        "ts": now_ts(),
        "run_id": str(uuid.uuid4()),
        "env": env,
        "context": context,
    }


# ---------------------------------------------------------------------
# Launch lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class LaunchStarted(BaseEvent):
    node: str
    host: str
    port: int

@dataclass(frozen=True)
class StageEntered(BaseEvent):
    node: str
    stage: str

@dataclass(frozen=True)
class LaunchSucceeded(BaseEvent):
    node: str
    interpreter: str
    deploy_method: str

@dataclass(frozen=True)
class LaunchFailed(BaseEvent):
    node: str
    stage: str
    error_type: str
    error: str


# ---------------------------------------------------------------------
# Teardown
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class TeardownCompleted(BaseEvent):
    node: str
    exit_message: Optional[str] = None
