# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/config/models.py

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_PAYLOAD_NAME = "remoting.jar"
DEFAULT_TRUST_STORE_DIR = "~/.sshlaunch/known-hosts"
LAUNCH_TIMEOUT_MARGIN_SECONDS = 60


class HostKeyVerificationConfig(BaseModel):
    strategy: Literal["known_hosts", "manual", "trust_on_first_use", "blind"] = "known_hosts"
    key: Optional[str] = None                   # manual: "algorithm base64"
    known_hosts_file: Optional[str] = None      # known_hosts: defaults to ~/.ssh/known_hosts
    require_manual_trust: bool = False          # trust_on_first_use: never auto-trust


class NodeConfig(BaseModel):
    name: str                                   # stable target id (trust store, registry, logs)
    host: str
    port: int = 22
    credentials_id: str

    remote_fs: str                              # remote directory the payload is copied to
    work_dir: Optional[str] = None              # agent -workDir override, defaults to remote_fs
    payload: str                                # local path of the agent jar
    payload_name: str = DEFAULT_PAYLOAD_NAME

    jvm_options: str = ""
    java_path: Optional[str] = None             # explicit interpreter, may use $VARS
    prefix_start_cmd: str = ""
    suffix_start_cmd: str = ""

    launch_timeout_seconds: Optional[int] = None
    max_retries: int = Field(default=10, ge=0)
    retry_wait_seconds: int = Field(default=15, ge=0)
    tcp_no_delay: bool = True

    environment: Dict[str, str] = Field(default_factory=dict)
    tool_locations: Dict[str, str] = Field(default_factory=dict)   # tool name -> install home
    min_java_version: int = 8
    digest_check: bool = True

    host_key_verification: HostKeyVerificationConfig = HostKeyVerificationConfig()

    @field_validator("port")
    @classmethod
    def _default_port(cls, v: int) -> int:
        if v == 0:
            return 22
        if not 1 <= v <= 65535:
            raise ValueError(f"port out of range: {v}")
        return v

    @property
    def effective_launch_timeout(self) -> int:
        if self.launch_timeout_seconds and self.launch_timeout_seconds > 0:
            return self.launch_timeout_seconds
        return self.max_retries * self.retry_wait_seconds + LAUNCH_TIMEOUT_MARGIN_SECONDS


class SshLaunchConfig(BaseModel):
    environment: Dict[str, str] = Field(default_factory=dict)
    credentials_file: Optional[str] = None
    trust_store_dir: str = DEFAULT_TRUST_STORE_DIR
    nodes: List[NodeConfig] = Field(default_factory=list)

    def node(self, name: str) -> NodeConfig:
        for n in self.nodes:
            if n.name == name:
                return n
        raise KeyError(f"Unknown node: {name}")

    def merged_environment(self, node: NodeConfig) -> Dict[str, str]:
        """Global environment overlaid with the node's own; the node wins."""
        env = dict(self.environment)
        env.update(node.environment)
        return env
