import errno
import logging
import socket
import threading

import paramiko
import pytest

from fakes import AcceptAll, FakeSession, RejectAll
from sshlaunch.errors import (
    ConnectError,
    ConnectTimeoutError,
    HeaderJunkError,
    LaunchCancelledError,
    TrustRejectedError,
)
from sshlaunch.ssh import connect as stages
from sshlaunch.ssh.models import CommandResult, Endpoint, RetryPolicy


def refused():
    return ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused")


@pytest.mark.parametrize(
    "exc, recoverable",
    [
        (refused(), True),
        (ConnectionResetError(errno.ECONNRESET, "Connection reset by peer"), True),
        (OSError(errno.EHOSTUNREACH, "No route to host"), True),
        (socket.timeout("timed out"), True),
        (EOFError(), True),
        (paramiko.SSHException("Error reading SSH protocol banner"), True),
        (socket.gaierror(-2, "Name or service not known"), False),
        (paramiko.SSHException("Incompatible ssh peer (no acceptable kex algorithm)"), False),
        (TrustRejectedError("rejected"), False),
    ],
)
def test_recoverable_classification(exc, recoverable):
    assert stages.is_recoverable(exc) is recoverable


def test_connect_retries_recoverable_failures_then_succeeds():
    session = FakeSession(handshake_errors=[refused(), refused()])
    verifier = AcceptAll()

    stages.connect(session, Endpoint("node1"), RetryPolicy(3, 0), verifier, label="node1")

    assert session.handshakes == 3
    # verifier consulted once, on the attempt that completed key exchange
    assert len(verifier.seen) == 1


def test_connect_exhaustion_is_terminal_and_logs_remaining(caplog):
    session = FakeSession(handshake_errors=[refused() for _ in range(5)])
    caplog.set_level(logging.INFO, logger="sshlaunch")

    with pytest.raises(ConnectError) as ei:
        stages.connect(session, Endpoint("node1"), RetryPolicy(2, 0), AcceptAll(), label="node1")

    assert session.handshakes == 3
    assert ei.value.recoverable is False
    assert "after 3 attempts" in str(ei.value)
    assert 'SSH Connection failed with IOException: "Connection refused"' in caplog.text
    assert "There are 2 more retries left." in caplog.text
    assert "There are 1 more retries left." in caplog.text


def test_connect_does_not_retry_dns_failure():
    session = FakeSession(handshake_errors=[socket.gaierror(-2, "Name or service not known")])

    with pytest.raises(ConnectError):
        stages.connect(session, Endpoint("nowhere.invalid"), RetryPolicy(5, 0), AcceptAll())
    assert session.handshakes == 1


def test_connect_does_not_retry_verifier_rejection():
    session = FakeSession()
    verifier = RejectAll()

    with pytest.raises(TrustRejectedError):
        stages.connect(session, Endpoint("node1"), RetryPolicy(5, 0), verifier)
    assert session.handshakes == 1
    assert len(verifier.seen) == 1


def test_connect_honours_cancel_before_first_attempt():
    cancel = threading.Event()
    cancel.set()
    session = FakeSession()

    with pytest.raises(LaunchCancelledError):
        stages.connect(session, Endpoint("node1"), RetryPolicy(5, 0), AcceptAll(), cancel=cancel)
    assert session.handshakes == 0


def test_connect_deadline_stops_the_retry_wait():
    session = FakeSession(handshake_errors=[refused() for _ in range(5)])

    with pytest.raises(ConnectTimeoutError):
        stages.connect(session, Endpoint("node1"), RetryPolicy(5, 30, timeout_millis=200), AcceptAll())
    assert session.handshakes == 1


@pytest.mark.parametrize(
    "result, junk",
    [
        (CommandResult(0), False),
        (CommandResult(0, stdout=b"Welcome to node1\n"), True),
        (CommandResult(0, stderr=b"bash: warning\n"), True),
        (CommandResult(1), False),
    ],
)
def test_header_junk_iff_output_present(result, junk):
    session = FakeSession({"exit 0": result})
    if junk:
        with pytest.raises(HeaderJunkError) as ei:
            stages.verify_no_header_junk(session)
        assert ei.value.output == result.output
    else:
        stages.verify_no_header_junk(session)
    assert session.commands == ["exit 0"]


def test_report_environment_is_best_effort(caplog):
    session = FakeSession({"set": OSError("channel closed")})
    caplog.set_level(logging.WARNING, logger="sshlaunch")

    stages.report_environment(session, label="node1")

    assert "Could not read remote environment" in caplog.text
