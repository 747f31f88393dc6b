# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/deploy/scp.py

"""
Minimal SCP sink client: pushes one in-memory file to ``scp -t <dir>``
over an exec channel. Used only when the SFTP subsystem is unavailable.
"""

from __future__ import annotations

import logging

from sshlaunch.errors import DeployError
from sshlaunch.ssh.session import TransportSession

log = logging.getLogger("sshlaunch")

SCP_WINDOW_SIZE = 4 * 1024 * 1024
_CHUNK = 32 * 1024


def _read_ack(chan) -> None:
    code = chan.recv(1)
    if code == b"\x00":
        return
    if not code:
        raise DeployError("SCP: remote side closed the channel unexpectedly")

    msg = bytearray()
    while True:
        ch = chan.recv(1)
        if not ch or ch == b"\n":
            break
        msg += ch
    text = msg.decode("utf-8", errors="replace")
    kind = "error" if code == b"\x01" else "fatal error"
    raise DeployError(f"SCP {kind}: {text}")


def scp_put(session: TransportSession, data: bytes, remote_dir: str, name: str, mode: int = 0o644) -> int:
    """Copy ``data`` to ``<remote_dir>/<name>`` with ``mode``. Returns the bytes sent."""
    if "/" in name or "\n" in name:
        raise DeployError(f"SCP: invalid file name {name!r}")

    chan = session.open_exec(f'scp -t "{remote_dir}"', SCP_WINDOW_SIZE)
    try:
        _read_ack(chan)
        chan.sendall(f"C{mode:04o} {len(data)} {name}\n".encode("utf-8"))
        _read_ack(chan)
        for offset in range(0, len(data), _CHUNK):
            chan.sendall(data[offset:offset + _CHUNK])
        chan.sendall(b"\x00")
        _read_ack(chan)
        chan.shutdown_write()
        status = chan.recv_exit_status()
    finally:
        chan.close()

    if status not in (0, -1):
        raise DeployError(f"SCP: remote scp exited with status {status}")
    return len(data)
