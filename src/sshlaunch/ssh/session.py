# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/ssh/session.py

from __future__ import annotations

import logging
import socket
import time
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import paramiko

from sshlaunch.credentials.models import Credential, PasswordCredential
from sshlaunch.errors import AuthError, TransferUnavailableError, TrustRejectedError
from sshlaunch.ssh.models import CommandResult, Endpoint, HostIdentity

log = logging.getLogger("sshlaunch")

KEEPALIVE_SECONDS = 10
_RECV_CHUNK = 32768


def reorder_algorithms(supported: Sequence[str], preferred: Sequence[str]) -> List[str]:
    """
    Move the supported host key algorithms matching ``preferred`` to the front.

    Matching ignores the ``ssh-`` prefix and accepts substrings, so a stored
    ``ssh-rsa`` key also promotes ``rsa-sha2-512`` and ``rsa-sha2-256``.
    """
    front: List[str] = []
    for pref in preferred:
        needle = pref[4:] if pref.startswith("ssh-") else pref
        for alg in supported:
            if needle and needle in alg and alg not in front:
                front.append(alg)
    return front + [alg for alg in supported if alg not in front]


class TransportSession(ABC):
    """
    One SSH connection to a node. Implementations are not thread safe except
    for ``close()``, which may be called from any thread to abort in-flight work.
    """

    @abstractmethod
    def handshake(self, endpoint: Endpoint, verifier, timeout: Optional[float] = None) -> None:
        """Open the transport and check the host key with ``verifier`` exactly once."""

    @abstractmethod
    def authenticate(self, credential: Credential) -> None:
        ...

    @abstractmethod
    def run(self, command: str, timeout: Optional[float] = None) -> CommandResult:
        ...

    @abstractmethod
    def open_exec(self, command: str, window_size: int):
        """Start ``command`` on a new exec channel and return the channel."""

    @abstractmethod
    def open_sftp(self):
        """Return an SFTP client or raise TransferUnavailableError."""

    @abstractmethod
    def remove_file(self, path: str) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...


class ParamikoTransportSession(TransportSession):
    def __init__(self, *, tcp_no_delay: bool = True, label: str = ""):
        self.tcp_no_delay = tcp_no_delay
        self.label = label
        self._transport: Optional[paramiko.Transport] = None

    # ------------------ connection ------------------

    def handshake(self, endpoint: Endpoint, verifier, timeout: Optional[float] = None) -> None:
        self.close()

        sock = socket.create_connection((endpoint.host, endpoint.port), timeout=timeout)
        if self.tcp_no_delay:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        transport = paramiko.Transport(sock)
        self._transport = transport
        try:
            preferred = verifier.preferred_algorithms()
            if preferred:
                opts = transport.get_security_options()
                opts.key_types = reorder_algorithms(opts.key_types, preferred)
                log.debug("[%s] Host key algorithm order: %s", self.label, list(opts.key_types))

            transport.start_client(timeout=timeout)

            key = transport.get_remote_server_key()
            identity = HostIdentity(key.get_name(), key.asbytes())
            if not verifier.verify(identity):
                raise TrustRejectedError(
                    f"Host key {identity.algorithm} {identity.fingerprint} presented by {endpoint} "
                    f"was rejected by the verification strategy"
                )
        except BaseException:
            self.close()
            raise

        transport.set_keepalive(KEEPALIVE_SECONDS)

    def authenticate(self, credential: Credential) -> None:
        transport = self._require()
        try:
            if isinstance(credential, PasswordCredential):
                transport.auth_password(credential.username, credential.password)
            else:
                transport.auth_publickey(credential.username, credential.load_pkey())
        except paramiko.AuthenticationException as e:
            raise AuthError(f"Authentication failed for user {credential.username}: {e}") from e
        except (paramiko.SSHException, EOFError, OSError) as e:
            raise AuthError(f"Connection lost while authenticating {credential.username}: {e}") from e
        except ValueError as e:
            raise AuthError(str(e)) from e

        if not transport.is_authenticated():
            raise AuthError(f"Authentication failed for user {credential.username}")

    def _require(self) -> paramiko.Transport:
        if self._transport is None or not self._transport.is_active():
            raise paramiko.SSHException("SSH transport is not connected")
        return self._transport

    # ------------------ commands & channels ------------------

    def run(self, command: str, timeout: Optional[float] = None) -> CommandResult:
        """
        Run a command to completion, collecting stdout and stderr separately.
        Both streams are drained together so a chatty stderr cannot stall stdout.
        """
        chan = self._require().open_session(timeout=timeout)
        try:
            chan.exec_command(command)
            chan.shutdown_write()

            deadline = time.monotonic() + timeout if timeout else None
            out, err = bytearray(), bytearray()

            def _drain() -> bool:
                progressed = False
                if chan.recv_ready():
                    out.extend(chan.recv(_RECV_CHUNK))
                    progressed = True
                if chan.recv_stderr_ready():
                    err.extend(chan.recv_stderr(_RECV_CHUNK))
                    progressed = True
                return progressed

            while True:
                if _drain():
                    continue
                if chan.exit_status_ready() and (chan.eof_received or chan.closed):
                    # bytes may have landed together with EOF
                    while _drain():
                        pass
                    break
                if deadline is not None and time.monotonic() > deadline:
                    raise TimeoutError(f"Command timed out after {timeout}s: {command}")
                time.sleep(0.02)

            return CommandResult(chan.recv_exit_status(), bytes(out), bytes(err))
        finally:
            chan.close()

    def open_exec(self, command: str, window_size: int):
        chan = self._require().open_session(window_size=window_size)
        chan.exec_command(command)
        return chan

    def open_sftp(self) -> paramiko.SFTPClient:
        try:
            sftp = paramiko.SFTPClient.from_transport(self._require())
        except (paramiko.SSHException, EOFError, OSError) as e:
            raise TransferUnavailableError(f"SFTP subsystem unavailable: {e}") from e
        if sftp is None:
            raise TransferUnavailableError("SFTP subsystem unavailable")
        return sftp

    def remove_file(self, path: str) -> None:
        try:
            sftp = self.open_sftp()
        except TransferUnavailableError:
            self.run(f'rm -f "{path}"', timeout=30)
            return
        try:
            sftp.remove(path)
        except FileNotFoundError:
            pass
        finally:
            sftp.close()

    # ------------------ lifecycle ------------------

    def close(self) -> None:
        transport, self._transport = self._transport, None
        if transport is not None:
            transport.close()

    @property
    def is_open(self) -> bool:
        return self._transport is not None and self._transport.is_active()
