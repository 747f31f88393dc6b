# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/verifiers/store.py

from __future__ import annotations

import fcntl
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional
from urllib.parse import quote, unquote

from sshlaunch.ssh.models import HostIdentity

log = logging.getLogger("sshlaunch")

DEFAULT_TRUST_STORE = "~/.sshlaunch/known-hosts"


class HostKeyStore:
    """
    Trusted host keys, one file per target (id percent-encoded)::

        <dir>/<target>.key            trusted key, "algorithm base64"
        <dir>/pending/<target>.key    key waiting for operator approval
        <dir>/<target>.lock           flock file guarding both

    ``read``/``write`` expect the caller to hold ``locked(target_id)``.
    """

    def __init__(self, directory: str | Path = DEFAULT_TRUST_STORE):
        self.directory = Path(directory).expanduser()
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    # ------------------ paths & locking ------------------

    @staticmethod
    def _safe(target_id: str) -> str:
        # percent-encoding keeps distinct ids in distinct files
        if not target_id:
            raise ValueError("target id must not be empty")
        return quote(target_id, safe="")

    def _key_path(self, target_id: str) -> Path:
        return self.directory / f"{self._safe(target_id)}.key"

    def _pending_path(self, target_id: str) -> Path:
        return self.directory / "pending" / f"{self._safe(target_id)}.key"

    def _thread_lock(self, target_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(target_id, threading.Lock())

    @contextmanager
    def locked(self, target_id: str) -> Iterator[None]:
        with self._thread_lock(target_id):
            self.directory.mkdir(parents=True, exist_ok=True, mode=0o700)
            lock_file = open(self.directory / f"{self._safe(target_id)}.lock", "a")
            try:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
            finally:
                lock_file.close()

    # ------------------ file helpers ------------------

    @staticmethod
    def _read_file(path: Path) -> Optional[HostIdentity]:
        if not path.is_file():
            return None
        text = path.read_text().strip()
        if not text:
            return None
        return HostIdentity.parse(text)

    @staticmethod
    def _write_file(path: Path, identity: HostIdentity) -> None:
        path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        with tempfile.NamedTemporaryFile(
            "w", dir=path.parent, prefix=f".{path.name}.", delete=False
        ) as tmp:
            tmp.write(identity.to_text() + "\n")
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp.name, path)

    # ------------------ trusted keys ------------------

    def read(self, target_id: str) -> Optional[HostIdentity]:
        return self._read_file(self._key_path(target_id))

    def write(self, target_id: str, identity: HostIdentity) -> None:
        self._write_file(self._key_path(target_id), identity)

    def get(self, target_id: str) -> Optional[HostIdentity]:
        with self.locked(target_id):
            return self.read(target_id)

    # ------------------ pending approvals ------------------

    def read_pending(self, target_id: str) -> Optional[HostIdentity]:
        return self._read_file(self._pending_path(target_id))

    def write_pending(self, target_id: str, identity: HostIdentity) -> None:
        self._write_file(self._pending_path(target_id), identity)

    def list_pending(self) -> Dict[str, HostIdentity]:
        pending_dir = self.directory / "pending"
        if not pending_dir.is_dir():
            return {}
        return {
            unquote(p.stem): HostIdentity.parse(p.read_text())
            for p in sorted(pending_dir.glob("*.key"))
        }

    def approve(self, target_id: str) -> HostIdentity:
        """Promote the pending key for ``target_id`` to trusted."""
        with self.locked(target_id):
            pending = self.read_pending(target_id)
            if pending is None:
                raise KeyError(f"No pending host key for {target_id}")
            self.write(target_id, pending)
            self._pending_path(target_id).unlink()
        log.info("[%s] Approved host key %s %s", target_id, pending.algorithm, pending.fingerprint)
        return pending

    def discard_pending(self, target_id: str) -> None:
        with self.locked(target_id):
            self._pending_path(target_id).unlink(missing_ok=True)
