import base64
import struct

import pytest

from fakes import ed25519_blob, ed25519_identity
from sshlaunch.errors import KeyParseError
from sshlaunch.verifiers.manual import ManualKeyVerifier


def key_text(blob=None, alg="ssh-ed25519"):
    return f"{alg} {base64.b64encode(blob or ed25519_blob()).decode()}"


def test_key_text_round_trips():
    text = key_text()
    v = ManualKeyVerifier(text)
    assert v.key_text == text
    assert ManualKeyVerifier(v.key_text).identity == v.identity


def test_surrounding_whitespace_is_ignored():
    assert ManualKeyVerifier(f"  {key_text()}\n").key_text == key_text()


@pytest.mark.parametrize(
    "text",
    [
        "ssh-ed25519",                                   # no space
        "ssh-ed25519 not*base64!",                       # bad base64
        key_text(alg="ssh-nonsense"),                    # unknown algorithm
        key_text(alg="ssh-rsa"),                         # blob is not an RSA key
        key_text(blob=struct.pack(">I", 11) + b"ssh-ed25519" + struct.pack(">I", 5) + b"short"),
        "",
    ],
)
def test_invalid_keys_raise_key_parse_error(text):
    with pytest.raises(KeyParseError):
        ManualKeyVerifier(text)


def test_verify_is_exact_equality():
    v = ManualKeyVerifier(key_text())
    assert v.verify(ed25519_identity()) is True
    assert v.verify(ed25519_identity(9)) is False
    assert v.preferred_algorithms() == ["ssh-ed25519"]
