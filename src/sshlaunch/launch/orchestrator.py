# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/launch/orchestrator.py

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Callable, Dict, Optional

from sshlaunch.config.models import NodeConfig, SshLaunchConfig
from sshlaunch.credentials.models import CredentialResolver
from sshlaunch.credentials.resolver import YamlCredentialResolver
from sshlaunch.deploy.deployer import ArtifactDeployer, DeploymentTarget
from sshlaunch.errors import (
    CredentialNotFoundError,
    LaunchCancelledError,
    LaunchError,
    LaunchInProgressError,
    LaunchTimeoutError,
    StartError,
)
from sshlaunch.launch.process import DuplexStream, ProcessLauncher, RemoteProcess
from sshlaunch.launch.registry import ConnectionRegistry
from sshlaunch.observers.dispatcher import EventBus
from sshlaunch.observers.events import (
    LaunchFailed,
    LaunchStarted,
    LaunchSucceeded,
    StageEntered,
    TeardownCompleted,
    new_ctx,
    now_ts,
)
from sshlaunch.runtime.providers import RuntimeContext
from sshlaunch.runtime.resolver import RuntimeResolver
from sshlaunch.ssh import connect as stages
from sshlaunch.ssh.models import Endpoint, ExitInfo, RetryPolicy
from sshlaunch.ssh.session import ParamikoTransportSession, TransportSession
from sshlaunch.verifiers.base import HostKeyVerifier
from sshlaunch.verifiers.factory import build_verifier
from sshlaunch.verifiers.store import HostKeyStore

log = logging.getLogger("sshlaunch")

ARTIFACT_DELETE_TIMEOUT = 5.0
TEARDOWN_EXIT_WAIT = 1.0


class LaunchState(str, Enum):
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    AUTHENTICATED = "AUTHENTICATED"
    PROBED = "PROBED"
    RUNTIME_RESOLVED = "RUNTIME_RESOLVED"
    DEPLOYED = "DEPLOYED"
    STARTED = "STARTED"
    BRIDGED = "BRIDGED"
    RUNNING = "RUNNING"
    FAILED = "FAILED"


_ORDER = list(LaunchState)


@dataclass
class BootstrapResult:
    state: LaunchState
    stream: Optional[DuplexStream] = None
    error: Optional[BaseException] = None
    stage: Optional[LaunchState] = None     # last state reached before the outcome

    @property
    def ok(self) -> bool:
        return self.state is LaunchState.RUNNING

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


class BootstrapOrchestrator:
    """
    Drives one node from IDLE to RUNNING over SSH and cleans up afterwards.

    Every stage runs on a dedicated single-thread executor so the launch
    timeout can abandon a stuck stage. Any failure moves to FAILED and runs
    ``teardown()``, which is also what the coordinator's close listener calls.
    """

    def __init__(
        self,
        node: NodeConfig,
        *,
        credentials: CredentialResolver,
        verifier: HostKeyVerifier,
        coordinator,
        registry: ConnectionRegistry,
        environment: Optional[Dict[str, str]] = None,
        session_factory: Optional[Callable[[], TransportSession]] = None,
        runtime_resolver: Optional[RuntimeResolver] = None,
        deployer: Optional[ArtifactDeployer] = None,
        launcher: Optional[ProcessLauncher] = None,
        bus: Optional[EventBus] = None,
        stderr_sink: Optional[BinaryIO] = None,
        env_name: str = "",
    ):
        self.node = node
        self.name = node.name
        self.credentials = credentials
        self.verifier = verifier
        self.coordinator = coordinator
        self.environment = dict(environment) if environment is not None else dict(node.environment)
        self.session_factory = session_factory or (
            lambda: ParamikoTransportSession(tcp_no_delay=node.tcp_no_delay, label=node.name)
        )
        self.runtime_resolver = runtime_resolver or RuntimeResolver(
            jvm_options=node.jvm_options, minimum=node.min_java_version, label=node.name,
        )
        self.deployer = deployer or ArtifactDeployer(digest_check=node.digest_check, label=node.name)
        self.launcher = launcher or ProcessLauncher(
            payload_name=node.payload_name, work_dir=node.work_dir,
            stderr_sink=stderr_sink, label=node.name,
        )
        self.registry = registry
        self.bus = bus or EventBus()
        self.env_name = env_name
        self.timeout = node.effective_launch_timeout

        self.state = LaunchState.IDLE
        self.interpreter: Optional[str] = None
        self.exit_info: Optional[ExitInfo] = None

        self._lock = threading.Lock()
        self._launching = False
        self._tearing_down = False
        self._torn_down = True
        self._cancel = threading.Event()
        self._ctx = new_ctx(env_name, node.name)
        self._session: Optional[TransportSession] = None
        self._process: Optional[RemoteProcess] = None
        self._artifact_path: Optional[str] = None
        self._deploy_method = ""

    @classmethod
    def from_config(
        cls, cfg: SshLaunchConfig, node_name: str, coordinator, registry: ConnectionRegistry, **kwargs
    ) -> "BootstrapOrchestrator":
        node = cfg.node(node_name)
        if not cfg.credentials_file:
            raise ValueError("credentials_file is not set in the configuration")
        return cls(
            node,
            credentials=YamlCredentialResolver(cfg.credentials_file),
            verifier=build_verifier(node, HostKeyStore(cfg.trust_store_dir)),
            coordinator=coordinator,
            registry=registry,
            environment=cfg.merged_environment(node),
            env_name=kwargs.pop("env_name", "default"),
            **kwargs,
        )

    # ------------------ events & state ------------------

    def _emit(self, event_cls, **fields) -> None:
        self.bus.emit(event_cls(**dict(self._ctx, ts=now_ts()), node=self.name, **fields))

    def _enter(self, state: LaunchState) -> None:
        if self._cancel.is_set():
            raise LaunchCancelledError(f"Launch of {self.name} was cancelled")
        if _ORDER.index(state) != _ORDER.index(self.state) + 1:
            raise LaunchError(f"Illegal state transition {self.state.value} -> {state.value}")
        self.state = state
        log.debug("[%s] -> %s", self.name, state.value)
        self._emit(StageEntered, stage=state.value)

    # ------------------ launch ------------------

    def launch(self) -> BootstrapResult:
        with self._lock:
            if self._launching or self._tearing_down:
                raise LaunchInProgressError(f"A launch or teardown of {self.name} is already in progress")
            self._launching = True
        try:
            if not self._torn_down:
                log.info("[%s] Relaunching: closing the previous connection first", self.name)
                self.teardown()
            self.registry.claim(self.name, self)
            return self._launch()
        finally:
            with self._lock:
                self._launching = False

    def _launch(self) -> BootstrapResult:
        self.state = LaunchState.IDLE
        self.interpreter = None
        self.exit_info = None
        self._process = None
        self._session = None
        self._artifact_path = None
        self._deploy_method = ""
        self._cancel = threading.Event()
        self._ctx = new_ctx(self.env_name, self.name)
        with self._lock:
            self._torn_down = False

        log.info("[%s] Launching agent on %s:%s", self.name, self.node.host, self.node.port)
        self._emit(LaunchStarted, host=self.node.host, port=self.node.port)

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"launch-{self.name}")
        error: Optional[BaseException] = None
        stream: Optional[DuplexStream] = None
        try:
            future = executor.submit(self._run_stages)
            try:
                stream = future.result(timeout=self.timeout)
            except FuturesTimeout:
                self._cancel.set()
                self._abort_session()
                error = LaunchTimeoutError(
                    f"Launch of {self.name} did not complete within {self.timeout} seconds",
                    stage=self.state.value,
                )
            except Exception as e:
                error = e
        finally:
            executor.shutdown(wait=False)

        if error is None and self._torn_down:
            error = StartError(
                f"Agent stream of {self.name} closed during launch",
                exit_info=self.exit_info, stage=self.state.value,
            )
        if error is not None:
            return self._fail(error)

        self.state = LaunchState.RUNNING
        log.info("[%s] Agent successfully connected and online", self.name)
        self._emit(LaunchSucceeded, interpreter=self.interpreter or "", deploy_method=self._deploy_method)
        return BootstrapResult(LaunchState.RUNNING, stream=stream, stage=LaunchState.BRIDGED)

    def _run_stages(self) -> DuplexStream:
        node = self.node

        self._enter(LaunchState.CONNECTING)
        credential = self.credentials.resolve(node.credentials_id)
        if credential is None:
            raise CredentialNotFoundError(f"Cannot find SSH user credentials with id: {node.credentials_id}")

        session = self.session_factory()
        self._session = session
        policy = RetryPolicy(node.max_retries, node.retry_wait_seconds, self.timeout * 1000)
        stages.connect(
            session, Endpoint(node.host, node.port), policy, self.verifier,
            cancel=self._cancel, label=self.name,
        )
        stages.authenticate(session, credential, label=self.name)
        self._enter(LaunchState.AUTHENTICATED)

        stages.verify_no_header_junk(session, label=self.name)
        stages.report_environment(session, label=self.name)
        self._enter(LaunchState.PROBED)

        ctx = RuntimeContext(node.remote_fs, self.environment, dict(node.tool_locations))
        self.interpreter = self.runtime_resolver.resolve(session, ctx, node.java_path or "")
        self._enter(LaunchState.RUNTIME_RESOLVED)

        target = DeploymentTarget.from_file(node.remote_fs, node.payload_name, node.payload)
        self._artifact_path = target.remote_path
        outcome = self.deployer.deploy(session, target)
        self._deploy_method = outcome.method
        self._enter(LaunchState.DEPLOYED)

        self._process = self.launcher.start(
            session, self.interpreter, node.remote_fs,
            node.jvm_options, node.prefix_start_cmd, node.suffix_start_cmd,
        )
        self._enter(LaunchState.STARTED)

        stream = self.launcher.bridge(self._process, self.coordinator, self._on_stream_closed)
        self._enter(LaunchState.BRIDGED)
        return stream

    def _fail(self, error: BaseException) -> BootstrapResult:
        stage = self.state
        if isinstance(error, LaunchError) and error.stage is None:
            error.stage = stage.value
        log.error("[%s] Launch failed at stage %s: %s", self.name, stage.value, error)
        self.state = LaunchState.FAILED
        self._emit(LaunchFailed, stage=stage.value, error_type=error.__class__.__name__, error=str(error))
        self.teardown()
        return BootstrapResult(LaunchState.FAILED, error=error, stage=stage)

    def _abort_session(self) -> None:
        session = self._session
        if session is not None:
            try:
                session.close()
            except Exception as e:
                log.warning("[%s] Closing the session failed: %s", self.name, e)

    def _on_stream_closed(self, cause: Optional[BaseException]) -> None:
        if cause is not None:
            log.warning("[%s] Agent stream closed: %s", self.name, cause)
        else:
            log.info("[%s] Agent stream closed", self.name)
        self.teardown()

    # ------------------ teardown ------------------

    def teardown(self) -> None:
        """
        Release everything the launch acquired. Safe to call any number of
        times from any thread; only the first call does work.
        """
        with self._lock:
            if self._torn_down or self._tearing_down:
                return
            self._tearing_down = True
        try:
            self._teardown()
        finally:
            with self._lock:
                self._tearing_down = False
                self._torn_down = True

    def _teardown(self) -> None:
        self._cancel.set()
        message = None

        process = self._process
        if process is not None:
            self.exit_info = process.exit_info(TEARDOWN_EXIT_WAIT)
            message = self.exit_info.message()
            log.info("[%s] %s", self.name, message)
            try:
                process.close()
            except Exception as e:
                log.warning("[%s] Closing the agent channel failed: %s", self.name, e)

        session = self._session
        if session is not None and self._artifact_path and session.is_open:
            self._delete_artifact(session, self._artifact_path)

        self._abort_session()
        self.registry.unregister(self.name, self)
        log.info("[%s] Connection closed", self.name)
        self._emit(TeardownCompleted, exit_message=message)

    def _delete_artifact(self, session: TransportSession, path: str) -> None:
        def _delete():
            try:
                session.remove_file(path)
                log.info("[%s] Removed %s", self.name, path)
            except Exception as e:
                log.warning("[%s] Could not remove %s: %s", self.name, path, e)

        worker = threading.Thread(target=_delete, name=f"cleanup-{self.name}", daemon=True)
        worker.start()
        worker.join(ARTIFACT_DELETE_TIMEOUT)
        if worker.is_alive():
            log.warning("[%s] Removing %s did not finish in %ss, giving up", self.name, path, ARTIFACT_DELETE_TIMEOUT)
