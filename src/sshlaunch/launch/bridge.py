# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/launch/bridge.py

from __future__ import annotations

import logging
import sys
import threading
from typing import BinaryIO, Callable, Optional, Protocol

import paramiko

from .process import DuplexStream

log = logging.getLogger("sshlaunch")

_CHUNK = 32768

OnClose = Callable[[Optional[BaseException]], None]


class Coordinator(Protocol):
    def attach(self, stream: DuplexStream, sink: BinaryIO, on_close: OnClose) -> None:
        """Take over the stream. ``on_close(cause)`` must be called once it ends."""


class StdioCoordinator:
    """
    Relays the agent stream to local stdio: remote stdout to ``stdout`` and
    ``stdin`` to the remote stdin, each on a daemon thread.
    """

    def __init__(self, stdin: Optional[BinaryIO] = None, stdout: Optional[BinaryIO] = None):
        self.stdin = stdin if stdin is not None else sys.stdin.buffer
        self.stdout = stdout if stdout is not None else sys.stdout.buffer
        self._done = threading.Event()
        self.cause: Optional[BaseException] = None

    def attach(self, stream: DuplexStream, sink: BinaryIO, on_close: OnClose) -> None:
        self._done.clear()
        threading.Thread(
            target=self._relay_out, args=(stream, sink, on_close), name="stdio-out", daemon=True,
        ).start()
        threading.Thread(
            target=self._relay_in, args=(stream,), name="stdio-in", daemon=True,
        ).start()

    def _relay_out(self, stream: DuplexStream, sink: BinaryIO, on_close: OnClose) -> None:
        try:
            while True:
                data = stream.read(_CHUNK)
                if not data:
                    break
                self.stdout.write(data)
                self.stdout.flush()
        except (OSError, ValueError, paramiko.SSHException) as e:
            self.cause = e
            sink.write(f"Agent stream closed: {e}\n".encode("utf-8"))
            sink.flush()
        finally:
            try:
                on_close(self.cause)
            finally:
                self._done.set()

    def _relay_in(self, stream: DuplexStream) -> None:
        try:
            while not self._done.is_set():
                data = self.stdin.read1(_CHUNK)
                if not data:
                    stream.close_write()
                    return
                stream.write(data)
        except (OSError, ValueError, paramiko.SSHException) as e:
            log.debug("stdin relay stopped: %s", e)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the agent stream ends."""
        return self._done.wait(timeout)
