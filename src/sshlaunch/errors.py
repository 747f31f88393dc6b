# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/errors.py

from __future__ import annotations

from typing import List, Optional


class LaunchError(RuntimeError):
    """Base class for agent launch failures. ``stage`` is the launch state the error surfaced in."""

    def __init__(self, message: str, *, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class ConnectError(LaunchError):
    """Raised when the SSH transport cannot be established."""

    def __init__(self, message: str, *, recoverable: bool = False, stage: Optional[str] = None):
        super().__init__(message, stage=stage)
        self.recoverable = recoverable


class ConnectTimeoutError(ConnectError):
    """Raised when the connect loop runs out of wall-clock time."""


class TrustRejectedError(LaunchError):
    """Raised when the host key verifier refuses the presented key."""


class AuthError(LaunchError):
    """Raised when SSH authentication fails. Never retried."""


class CredentialNotFoundError(AuthError):
    """Raised when the credentials id does not resolve."""


class HeaderJunkError(LaunchError):
    """Raised when the remote shell prints output for a no-op command."""

    def __init__(self, output: str, *, stage: Optional[str] = None):
        super().__init__(
            "SSH connection reports a garbage before a command execution. "
            "Check your .bashrc, .profile, and so on.",
            stage=stage,
        )
        self.output = output


class RuntimeNotFoundError(LaunchError):
    """Raised when no candidate interpreter reports a usable version."""

    def __init__(self, tried_paths: List[str], *, minimum: int, stage: Optional[str] = None):
        super().__init__(
            f"Could not find any known supported java version (>= {minimum}) in {tried_paths}",
            stage=stage,
        )
        self.tried_paths = list(tried_paths)


class DeployError(LaunchError):
    """Raised when the agent payload cannot be copied to the remote host."""


class TransferUnavailableError(DeployError):
    """Raised when the SFTP subsystem cannot be opened at all."""


class StartError(LaunchError):
    """Raised when the agent process cannot be started or bridged."""

    def __init__(self, message: str, *, exit_info=None, stage: Optional[str] = None):
        super().__init__(message, stage=stage)
        self.exit_info = exit_info


class LaunchTimeoutError(LaunchError):
    """Raised when the whole launch does not finish within the launch timeout."""


class LaunchCancelledError(LaunchError):
    """Raised inside the launch worker once the launch has been cancelled."""


class LaunchInProgressError(LaunchError):
    """Raised when a launch or teardown is already running for the same node."""


class KeyParseError(ValueError):
    """Raised when a manually provided host key cannot be parsed."""
