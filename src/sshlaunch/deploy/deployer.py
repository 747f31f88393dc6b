# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/deploy/deployer.py

from __future__ import annotations

import hashlib
import logging
import posixpath
import re
import stat
from dataclasses import dataclass, field
from pathlib import Path

import paramiko

from sshlaunch.errors import DeployError, TransferUnavailableError
from sshlaunch.ssh.session import TransportSession
from .scp import scp_put

log = logging.getLogger("sshlaunch")

WRITE_CHUNK = 32 * 1024
DIR_MODE = 0o700
FILE_MODE = 0o644
DIGEST_TIMEOUT = 60

_HEX64 = re.compile(r"[0-9a-fA-F]{64}")


@dataclass(frozen=True)
class DeploymentTarget:
    remote_directory: str
    payload_name: str
    payload_bytes: bytes = field(repr=False)
    payload_digest: str = ""

    @classmethod
    def from_bytes(cls, remote_directory: str, payload_name: str, payload: bytes) -> "DeploymentTarget":
        return cls(remote_directory, payload_name, payload, hashlib.sha256(payload).hexdigest())

    @classmethod
    def from_file(cls, remote_directory: str, payload_name: str, local_path: str | Path) -> "DeploymentTarget":
        return cls.from_bytes(remote_directory, payload_name, Path(local_path).expanduser().read_bytes())

    @property
    def remote_path(self) -> str:
        return posixpath.join(self.remote_directory, self.payload_name)


@dataclass(frozen=True)
class DeployOutcome:
    method: str             # "digest" | "sftp" | "scp"
    bytes_written: int
    skipped: bool = False


class ArtifactDeployer:
    """
    Copies the agent payload to the node.

    SFTP is preferred. SCP is used only when the SFTP subsystem cannot be
    opened at all; failures after SFTP is up are final. With ``digest_check``
    an identical remote copy (by SHA-256) is left untouched.
    """

    def __init__(self, *, digest_check: bool = True, label: str = ""):
        self.digest_check = digest_check
        self.label = label

    def deploy(self, session: TransportSession, target: DeploymentTarget) -> DeployOutcome:
        if self.digest_check and self.remote_digest_matches(session, target):
            log.info("[%s] %s is up to date, skipping copy", self.label, target.remote_path)
            return DeployOutcome("digest", 0, skipped=True)

        try:
            sftp = session.open_sftp()
        except TransferUnavailableError as e:
            log.info("[%s] %s. Falling back to SCP.", self.label, e)
            return self._deploy_scp(session, target)

        try:
            return self._deploy_sftp(sftp, target)
        except (OSError, paramiko.SSHException) as e:
            raise DeployError(f"Could not copy {target.payload_name} to {target.remote_path}: {e}") from e
        finally:
            sftp.close()

    # ------------------ digest fast path ------------------

    def remote_digest_matches(self, session: TransportSession, target: DeploymentTarget) -> bool:
        path = target.remote_path
        cmd = f'sha256sum "{path}" 2>/dev/null || shasum -a 256 "{path}" 2>/dev/null'
        try:
            result = session.run(cmd, timeout=DIGEST_TIMEOUT)
        except (OSError, paramiko.SSHException) as e:
            log.debug("[%s] Remote digest check failed: %s", self.label, e)
            return False

        tokens = result.stdout.decode("utf-8", errors="replace").split()
        if not tokens or not _HEX64.fullmatch(tokens[0]):
            return False
        return tokens[0].lower() == target.payload_digest.lower()

    # ------------------ SFTP ------------------

    def _mkdirs(self, sftp, directory: str) -> None:
        parts = [p for p in directory.split("/") if p]
        current = "/" if directory.startswith("/") else ""
        for part in parts:
            current = posixpath.join(current, part) if current else part
            try:
                sftp.stat(current)
            except FileNotFoundError:
                sftp.mkdir(current, DIR_MODE)

    def _deploy_sftp(self, sftp, target: DeploymentTarget) -> DeployOutcome:
        directory = target.remote_directory
        try:
            st = sftp.stat(directory)
        except FileNotFoundError:
            log.info("[%s] Remote directory %s does not exist, creating it", self.label, directory)
            self._mkdirs(sftp, directory)
        else:
            if stat.S_ISREG(st.st_mode or 0):
                raise DeployError(f"{directory} is a file, expected a directory")

        path = target.remote_path
        try:
            sftp.remove(path)
        except FileNotFoundError:
            pass

        log.info("[%s] Copying %s (%d bytes) to %s over SFTP", self.label,
                 target.payload_name, len(target.payload_bytes), path)
        written = 0
        data = target.payload_bytes
        with sftp.open(path, "wb") as f:
            for offset in range(0, len(data), WRITE_CHUNK):
                chunk = data[offset:offset + WRITE_CHUNK]
                f.write(chunk)
                written += len(chunk)
        sftp.chmod(path, FILE_MODE)

        log.info("[%s] Copied %d bytes", self.label, written)
        return DeployOutcome("sftp", written)

    # ------------------ SCP fallback ------------------

    def _deploy_scp(self, session: TransportSession, target: DeploymentTarget) -> DeployOutcome:
        directory = target.remote_directory
        result = session.run(f'test -d "{directory}" || mkdir -p "{directory}"', timeout=DIGEST_TIMEOUT)
        if result.exit_status != 0:
            raise DeployError(f"Could not create remote directory {directory}: {result.output.strip()}")

        rm = session.run(f'rm -f "{target.remote_path}"', timeout=DIGEST_TIMEOUT)
        if rm.exit_status != 0:
            log.warning("[%s] Could not remove old %s: %s", self.label, target.remote_path, rm.output.strip())

        log.info("[%s] Copying %s (%d bytes) to %s over SCP", self.label,
                 target.payload_name, len(target.payload_bytes), target.remote_path)
        try:
            written = scp_put(session, target.payload_bytes, directory, target.payload_name, FILE_MODE)
        except (OSError, paramiko.SSHException) as e:
            raise DeployError(f"SCP copy to {target.remote_path} failed: {e}") from e
        return DeployOutcome("scp", written)
