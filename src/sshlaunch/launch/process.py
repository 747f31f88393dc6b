# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/launch/process.py

from __future__ import annotations

import logging
import posixpath
import sys
import threading
import time
from typing import BinaryIO, Callable, Optional

import paramiko

from sshlaunch.config.models import DEFAULT_PAYLOAD_NAME
from sshlaunch.errors import StartError
from sshlaunch.ssh.models import ExitInfo
from sshlaunch.ssh.session import TransportSession

log = logging.getLogger("sshlaunch")

WINDOW_SIZE = 4 * 1024 * 1024
EXIT_GRACE_SECONDS = 3
_CHUNK = 32768


def work_dir_params(work_dir: str, suffix: str = "") -> str:
    """Agent -workDir/-jar-cache arguments, unless the suffix already passes them."""
    if not work_dir or "-workDir" in suffix or "-jar-cache" in suffix:
        return ""
    jar_cache = posixpath.join(work_dir, "remoting", "jarCache")
    return f" -workDir {work_dir} -jar-cache {jar_cache}"


def build_command(
    interpreter: str,
    remote_dir: str,
    *,
    jvm_options: str = "",
    payload_name: str = DEFAULT_PAYLOAD_NAME,
    prefix: str = "",
    suffix: str = "",
    work_dir: Optional[str] = None,
) -> str:
    java = " ".join(p for p in (interpreter, jvm_options.strip(), "-jar", payload_name) if p)
    cmd = f'cd "{remote_dir}" && {java}{work_dir_params(work_dir or remote_dir, suffix)}'
    if prefix.strip():
        cmd = f"{prefix.strip()} {cmd}"
    if suffix.strip():
        cmd = f"{cmd} {suffix.strip()}"
    return cmd


class DuplexStream:
    """
    The agent's stdio as seen by a coordinator: ``read`` returns the agent's
    stdout as it arrives (``b""`` at end of stream), ``write`` feeds its stdin.
    """

    def __init__(self, channel):
        self._channel = channel

    def read(self, size: int = _CHUNK) -> bytes:
        return self._channel.recv(size)

    def write(self, data: bytes) -> None:
        self._channel.sendall(data)

    def close_write(self) -> None:
        self._channel.shutdown_write()

    def close(self) -> None:
        self._channel.close()

    @property
    def closed(self) -> bool:
        return bool(self._channel.closed)


class RemoteProcess:
    """The running agent command on its exec channel."""

    def __init__(self, channel, command: str, *, stderr_sink: Optional[BinaryIO] = None, label: str = ""):
        self.channel = channel
        self.command = command
        self.stderr_sink = stderr_sink
        self.label = label
        self.stream = DuplexStream(channel)
        self._pump: Optional[threading.Thread] = None

    def start_stderr_pump(self) -> None:
        if self.stderr_sink is None:
            return
        self._pump = threading.Thread(
            target=self._pump_stderr, name=f"stderr-{self.label}", daemon=True,
        )
        self._pump.start()

    def _pump_stderr(self) -> None:
        # the sink is shared with the launch log, never close it here
        try:
            while True:
                data = self.channel.recv_stderr(_CHUNK)
                if not data:
                    break
                self.stderr_sink.write(data)
                self.stderr_sink.flush()
        except (OSError, ValueError, paramiko.SSHException) as e:
            log.debug("[%s] stderr pump stopped: %s", self.label, e)

    def exit_info(self, wait: float = EXIT_GRACE_SECONDS) -> ExitInfo:
        deadline = time.monotonic() + wait
        while not self.channel.exit_status_ready() and time.monotonic() < deadline:
            time.sleep(0.1)
        if not self.channel.exit_status_ready():
            return ExitInfo()
        status = self.channel.recv_exit_status()
        if status == -1:
            signal = getattr(self.channel, "exit_signal", None)
            if signal:
                return ExitInfo(exit_signal=signal)
            # no status: lost only if the transport went with the channel
            return ExitInfo(connection_lost=not self._transport_alive())
        return ExitInfo(exit_status=status)

    def _transport_alive(self) -> bool:
        get_transport = getattr(self.channel, "get_transport", None)
        transport = get_transport() if get_transport is not None else None
        return transport is not None and transport.is_active()

    def close(self) -> None:
        self.channel.close()


class ProcessLauncher:
    def __init__(
        self,
        *,
        payload_name: str = DEFAULT_PAYLOAD_NAME,
        work_dir: Optional[str] = None,
        stderr_sink: Optional[BinaryIO] = None,
        window_size: int = WINDOW_SIZE,
        label: str = "",
    ):
        self.payload_name = payload_name
        self.work_dir = work_dir
        self.stderr_sink = stderr_sink if stderr_sink is not None else sys.stderr.buffer
        self.window_size = window_size
        self.label = label

    def start(
        self,
        session: TransportSession,
        interpreter: str,
        remote_dir: str,
        jvm_options: str = "",
        prefix: str = "",
        suffix: str = "",
    ) -> RemoteProcess:
        cmd = build_command(
            interpreter, remote_dir,
            jvm_options=jvm_options, payload_name=self.payload_name,
            prefix=prefix, suffix=suffix, work_dir=self.work_dir,
        )
        log.info("[%s] Starting agent process: %s", self.label, cmd)
        try:
            channel = session.open_exec(cmd, self.window_size)
        except (OSError, paramiko.SSHException) as e:
            raise StartError(f"Could not start agent process: {e}") from e

        process = RemoteProcess(channel, cmd, stderr_sink=self.stderr_sink, label=self.label)
        process.start_stderr_pump()
        return process

    def bridge(self, process: RemoteProcess, coordinator, on_close: Callable[[Optional[BaseException]], None]) -> DuplexStream:
        """
        Hand the agent's stdio to the coordinator. If that fails, the agent has
        usually died already, so its exit outcome goes into the error.
        """
        try:
            coordinator.attach(process.stream, self.stderr_sink, on_close)
        except Exception as e:
            info = process.exit_info(EXIT_GRACE_SECONDS)
            log.error("[%s] %s", self.label, info.message())
            raise StartError(f"Could not attach agent stream: {e}. {info.message()}", exit_info=info) from e
        log.info("[%s] Agent stream attached", self.label)
        return process.stream
