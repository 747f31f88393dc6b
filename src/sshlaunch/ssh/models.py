# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/ssh/models.py

from __future__ import annotations

import base64
import binascii
import hashlib
from dataclasses import dataclass
from typing import Optional

DEFAULT_SSH_PORT = 22


@dataclass(frozen=True)
class Endpoint:
    """
    Host and port of the SSH server for one launch attempt.
    """
    host: str
    port: int = DEFAULT_SSH_PORT

    def __post_init__(self):
        if not self.host:
            raise ValueError("host must not be empty")
        if not 1 <= self.port <= 65535:
            raise ValueError(f"port out of range: {self.port}")

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class HostIdentity:
    """
    The public host key a server presented during key exchange.
    """
    algorithm: str
    key: bytes

    @classmethod
    def parse(cls, text: str) -> "HostIdentity":
        parts = text.strip().split()
        if len(parts) < 2:
            raise ValueError("Key should be in the form algorithm base64-encoded-key")
        try:
            key = base64.b64decode(parts[1], validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError("Key value must be base64 encoded") from e
        return cls(parts[0], key)

    def to_text(self) -> str:
        return f"{self.algorithm} {base64.b64encode(self.key).decode('ascii')}"

    @property
    def fingerprint(self) -> str:
        digest = hashlib.sha256(self.key).digest()
        return "SHA256:" + base64.b64encode(digest).decode("ascii").rstrip("=")


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 10
    wait_seconds: int = 15
    timeout_millis: int = 0     # 0 = unbounded

    def __post_init__(self):
        if self.max_retries < 0 or self.wait_seconds < 0 or self.timeout_millis < 0:
            raise ValueError("retry policy values must be >= 0")

    @property
    def attempts(self) -> int:
        return self.max_retries + 1


@dataclass(frozen=True)
class CommandResult:
    exit_status: int
    stdout: bytes = b""
    stderr: bytes = b""

    @property
    def output(self) -> str:
        """stdout followed by stderr, decoded leniently."""
        return (self.stdout + self.stderr).decode("utf-8", errors="replace")


@dataclass(frozen=True)
class ExitInfo:
    exit_status: Optional[int] = None
    exit_signal: Optional[str] = None
    connection_lost: bool = False

    def message(self) -> str:
        if self.exit_status is not None:
            return f"Agent process has terminated. Exit code={self.exit_status}"
        if self.exit_signal is not None:
            return f"Agent process has terminated. Exit signal={self.exit_signal}"
        if self.connection_lost:
            return "Agent process has not reported exit code before the socket was lost"
        return "Agent process has not reported exit code. Is it still running?"
