import base64

import pytest

from fakes import ed25519_blob, ed25519_identity
from sshlaunch.config.models import NodeConfig
from sshlaunch.verifiers.blind import BlindTrustVerifier
from sshlaunch.verifiers.factory import build_verifier
from sshlaunch.verifiers.known_hosts import KnownHostsFileVerifier
from sshlaunch.verifiers.manual import ManualKeyVerifier
from sshlaunch.verifiers.store import HostKeyStore
from sshlaunch.verifiers.trust_on_first_use import TrustOnFirstUseVerifier


def node(**hkv):
    return NodeConfig(
        name="node1", host="node1.example.com", port=2222, credentials_id="c",
        remote_fs="/home/agent", payload="agent.jar", host_key_verification=hkv,
    )


@pytest.mark.parametrize(
    "hkv, cls",
    [
        ({}, KnownHostsFileVerifier),
        ({"strategy": "known_hosts", "known_hosts_file": "/tmp/kh"}, KnownHostsFileVerifier),
        ({"strategy": "manual", "key": f"ssh-ed25519 {base64.b64encode(ed25519_blob()).decode()}"}, ManualKeyVerifier),
        ({"strategy": "trust_on_first_use", "require_manual_trust": True}, TrustOnFirstUseVerifier),
        ({"strategy": "blind"}, BlindTrustVerifier),
    ],
)
def test_build_verifier(tmp_path, hkv, cls):
    v = build_verifier(node(**hkv), HostKeyStore(tmp_path))
    assert isinstance(v, cls)


def test_known_hosts_uses_node_port(tmp_path):
    v = build_verifier(node(), HostKeyStore(tmp_path))
    assert (v.host, v.port) == ("node1.example.com", 2222)


def test_manual_without_key_is_rejected(tmp_path):
    with pytest.raises(ValueError):
        build_verifier(node(strategy="manual"), HostKeyStore(tmp_path))


def test_blind_trust_is_labelled_insecure(tmp_path, caplog):
    v = build_verifier(node(strategy="blind"), HostKeyStore(tmp_path))
    assert v.insecure is True
    assert v.verify(ed25519_identity()) is True
    assert "insecure" in caplog.text
