# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/ssh/connect.py

"""
Connection stages shared by every launch: connect with retry, authenticate,
check the login shell is quiet and dump the remote environment.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

import paramiko

from sshlaunch.credentials.models import Credential
from sshlaunch.errors import (
    ConnectError,
    ConnectTimeoutError,
    HeaderJunkError,
    LaunchCancelledError,
    LaunchError,
)
from sshlaunch.ssh.models import Endpoint, RetryPolicy
from sshlaunch.ssh.session import TransportSession
from sshlaunch.utils.retry import RetryError, retry

log = logging.getLogger("sshlaunch")

RECOVERABLE_PREFIXES = (
    "Connection refused",
    "Connection reset",
    "Connection timed out",
    "No route to host",
    "Premature connection close",
)

JUNK_PROBE_COMMAND = "exit 0"
PROBE_TIMEOUT_SECONDS = 60


def failure_message(exc: BaseException) -> str:
    """Normalise a connect failure to the OS-style text used for classification."""
    if isinstance(exc, TimeoutError):
        return "Connection timed out"
    if isinstance(exc, EOFError):
        return "Premature connection close"
    if isinstance(exc, paramiko.SSHException) and "banner" in str(exc).lower():
        return "Premature connection close"
    if isinstance(exc, OSError) and exc.strerror:
        return exc.strerror
    return str(exc) or exc.__class__.__name__


def is_recoverable(exc: BaseException) -> bool:
    if isinstance(exc, LaunchError):
        return False
    msg = failure_message(exc)
    return any(msg.startswith(prefix) for prefix in RECOVERABLE_PREFIXES)


def connect(
    session: TransportSession,
    endpoint: Endpoint,
    policy: RetryPolicy,
    verifier,
    *,
    cancel: Optional[threading.Event] = None,
    label: str = "",
    connect_timeout: Optional[float] = None,
) -> None:
    """
    Open the transport, retrying only recoverable network failures.

    Runs at most ``policy.max_retries + 1`` attempts, waiting
    ``policy.wait_seconds`` between them. A non-zero ``policy.timeout_millis``
    is a deadline for the whole loop. Setting ``cancel`` ends the wait early.
    """
    cancel = cancel or threading.Event()
    deadline = time.monotonic() + policy.timeout_millis / 1000.0 if policy.timeout_millis else None

    def _remaining() -> Optional[float]:
        return None if deadline is None else deadline - time.monotonic()

    def _wait(seconds: float) -> None:
        remaining = _remaining()
        if remaining is not None and seconds > remaining:
            raise ConnectTimeoutError(
                f"Timed out connecting to {endpoint} after {policy.timeout_millis} ms"
            )
        if cancel.wait(seconds):
            raise LaunchCancelledError(f"Launch for {endpoint} was cancelled")

    def _on_retry(attempt: int, exc: Exception) -> None:
        log.info(
            '[%s] SSH Connection failed with IOException: "%s", retrying in %d seconds. '
            "There are %d more retries left.",
            label, failure_message(exc), policy.wait_seconds, policy.attempts - attempt,
        )

    @retry(
        retries=policy.attempts,
        delay=policy.wait_seconds,
        retry_if=is_recoverable,
        on_retry=_on_retry,
        sleep=_wait,
    )
    def _attempt() -> None:
        if cancel.is_set():
            raise LaunchCancelledError(f"Launch for {endpoint} was cancelled")
        timeouts = [t for t in (connect_timeout, _remaining()) if t is not None]
        if timeouts and min(timeouts) <= 0:
            raise ConnectTimeoutError(f"Timed out connecting to {endpoint} after {policy.timeout_millis} ms")
        log.info("[%s] Opening SSH connection to %s.", label, endpoint)
        session.handshake(endpoint, verifier, timeout=min(timeouts) if timeouts else None)

    try:
        _attempt()
    except RetryError as e:
        cause = e.__cause__
        raise ConnectError(
            f"Failed to connect to {endpoint} after {e.attempts} attempts: {failure_message(cause)}",
            recoverable=False,
        ) from cause
    except LaunchError:
        raise
    except Exception as e:
        raise ConnectError(f"Failed to connect to {endpoint}: {failure_message(e)}", recoverable=False) from e

    log.info("[%s] SSH connection to %s established.", label, endpoint)


def authenticate(session: TransportSession, credential: Credential, *, label: str = "") -> None:
    log.info("[%s] Authenticating as %s.", label, credential.username)
    session.authenticate(credential)
    log.info("[%s] Authentication successful.", label)


def verify_no_header_junk(session: TransportSession, *, command: str = JUNK_PROBE_COMMAND, label: str = "") -> None:
    """
    Run a no-op and fail if the login shell printed anything, since that
    output would corrupt the agent's stdio stream.
    """
    result = session.run(command, timeout=PROBE_TIMEOUT_SECONDS)
    if result.stdout or result.stderr:
        output = result.output
        log.error("[%s] Unexpected output from remote shell:\n%s", label, output)
        raise HeaderJunkError(output)


def report_environment(session: TransportSession, *, label: str = "") -> None:
    """Best effort: log the remote environment at DEBUG."""
    try:
        result = session.run("set", timeout=PROBE_TIMEOUT_SECONDS)
    except (paramiko.SSHException, OSError) as e:
        log.warning("[%s] Could not read remote environment: %s", label, e)
        return
    log.debug("[%s] Remote environment:\n%s", label, result.output)
