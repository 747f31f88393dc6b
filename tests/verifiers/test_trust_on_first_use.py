import threading

from fakes import ed25519_identity
from sshlaunch.verifiers.store import HostKeyStore
from sshlaunch.verifiers.trust_on_first_use import TrustOnFirstUseVerifier


def test_first_contact_stores_and_accepts(tmp_path):
    store = HostKeyStore(tmp_path)
    v = TrustOnFirstUseVerifier(store, "node1")
    key = ed25519_identity(1)

    assert v.verify(key) is True
    assert (tmp_path / "node1.key").read_text().strip() == key.to_text()
    assert store.get("node1") == key


def test_same_key_accepted_changed_key_rejected_and_not_overwritten(tmp_path):
    store = HostKeyStore(tmp_path)
    v = TrustOnFirstUseVerifier(store, "node1")
    original, changed = ed25519_identity(1), ed25519_identity(2)

    assert v.verify(original)
    assert v.verify(original)
    assert v.verify(changed) is False

    assert store.get("node1") == original
    assert store.read_pending("node1") == changed


def test_manual_trust_mode_queues_first_key_until_approved(tmp_path):
    store = HostKeyStore(tmp_path)
    v = TrustOnFirstUseVerifier(store, "node1", require_manual_trust=True)
    key = ed25519_identity(3)

    assert v.verify(key) is False
    assert store.get("node1") is None
    assert store.list_pending() == {"node1": key}

    store.approve("node1")

    assert v.verify(key) is True
    assert store.list_pending() == {}


def test_preferred_algorithms_follow_stored_key(tmp_path):
    store = HostKeyStore(tmp_path)
    v = TrustOnFirstUseVerifier(store, "node1")
    assert v.preferred_algorithms() == []

    v.verify(ed25519_identity())
    assert v.preferred_algorithms() == ["ssh-ed25519"]


def test_keyed_by_target_id_not_host(tmp_path):
    store = HostKeyStore(tmp_path)
    a = TrustOnFirstUseVerifier(store, "agent-a")
    b = TrustOnFirstUseVerifier(store, "agent-b")

    assert a.verify(ed25519_identity(1))
    assert b.verify(ed25519_identity(2))
    assert a.verify(ed25519_identity(2)) is False


def test_concurrent_first_contact_is_consistent(tmp_path):
    store = HostKeyStore(tmp_path)
    key = ed25519_identity(4)
    results = []

    def worker():
        results.append(TrustOnFirstUseVerifier(store, "node1").verify(key))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results == [True] * 8
    assert store.get("node1") == key
    assert store.list_pending() == {}


def test_ids_differing_only_in_punctuation_get_separate_files(tmp_path):
    store = HostKeyStore(tmp_path)
    spaced = TrustOnFirstUseVerifier(store, "build node")
    underscored = TrustOnFirstUseVerifier(store, "build_node")

    assert spaced.verify(ed25519_identity(1))
    assert underscored.verify(ed25519_identity(2))

    assert store.get("build node") == ed25519_identity(1)
    assert store.get("build_node") == ed25519_identity(2)
    assert store.list_pending() == {}


def test_pending_listing_returns_original_ids(tmp_path):
    store = HostKeyStore(tmp_path)
    TrustOnFirstUseVerifier(store, "rack/7 node", require_manual_trust=True).verify(ed25519_identity(5))

    assert store.list_pending() == {"rack/7 node": ed25519_identity(5)}
    assert store.approve("rack/7 node") == ed25519_identity(5)
    assert store.get("rack/7 node") == ed25519_identity(5)
