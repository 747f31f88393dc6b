import base64

import paramiko

from fakes import ed25519_blob, ed25519_identity
from sshlaunch.verifiers.known_hosts import KnownHostsFileVerifier


def line(host, seed):
    return f"{host} ssh-ed25519 {base64.b64encode(ed25519_blob(seed)).decode()}\n"


def test_matching_entry_accepted(tmp_path):
    kh = tmp_path / "known_hosts"
    kh.write_text(line("node1.example.com", 1))
    v = KnownHostsFileVerifier(kh, "node1.example.com", 22)

    assert v.verify(ed25519_identity(1)) is True
    assert v.preferred_algorithms() == ["ssh-ed25519"]


def test_changed_key_and_unknown_host_rejected(tmp_path):
    kh = tmp_path / "known_hosts"
    kh.write_text(line("node1.example.com", 1))

    assert KnownHostsFileVerifier(kh, "node1.example.com").verify(ed25519_identity(2)) is False
    assert KnownHostsFileVerifier(kh, "node2.example.com").verify(ed25519_identity(1)) is False


def test_missing_file_rejects_and_never_creates(tmp_path):
    kh = tmp_path / "missing"
    v = KnownHostsFileVerifier(kh, "node1")

    assert v.verify(ed25519_identity()) is False
    assert v.preferred_algorithms() == []
    assert not kh.exists()


def test_non_default_port_entry(tmp_path):
    kh = tmp_path / "known_hosts"
    kh.write_text(line("[node1]:2222", 5))

    assert KnownHostsFileVerifier(kh, "node1", 2222).verify(ed25519_identity(5)) is True
    assert KnownHostsFileVerifier(kh, "node1", 22).verify(ed25519_identity(5)) is False


def test_hashed_entry(tmp_path):
    kh = tmp_path / "known_hosts"
    kh.write_text(line(paramiko.HostKeys.hash_host("node1"), 7))
    before = kh.read_text()

    assert KnownHostsFileVerifier(kh, "node1").verify(ed25519_identity(7)) is True
    assert kh.read_text() == before
