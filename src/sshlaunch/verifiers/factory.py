# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/verifiers/factory.py

from __future__ import annotations

from sshlaunch.config.models import NodeConfig
from .base import HostKeyVerifier
from .blind import BlindTrustVerifier
from .known_hosts import DEFAULT_KNOWN_HOSTS, KnownHostsFileVerifier
from .manual import ManualKeyVerifier
from .store import HostKeyStore
from .trust_on_first_use import TrustOnFirstUseVerifier


def build_verifier(node: NodeConfig, store: HostKeyStore) -> HostKeyVerifier:
    hkv = node.host_key_verification
    strategy = hkv.strategy

    if strategy == "known_hosts":
        return KnownHostsFileVerifier(hkv.known_hosts_file or DEFAULT_KNOWN_HOSTS, node.host, node.port)
    if strategy == "manual":
        if not hkv.key:
            raise ValueError(f"Node '{node.name}' uses manual host key verification but has no key")
        return ManualKeyVerifier(hkv.key, label=node.name)
    if strategy == "trust_on_first_use":
        return TrustOnFirstUseVerifier(store, node.name, hkv.require_manual_trust)
    if strategy == "blind":
        return BlindTrustVerifier(label=node.name)
    raise ValueError(f"Unknown host key verification strategy: {strategy}")
