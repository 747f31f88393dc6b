import io

from fakes import FakeChannel
from sshlaunch.launch.bridge import StdioCoordinator
from sshlaunch.launch.process import DuplexStream


class _BlockingStdin:
    def read1(self, n):
        return b""


def test_remote_stdout_relayed_and_close_reported():
    out = io.BytesIO()
    closed = []
    coordinator = StdioCoordinator(stdin=_BlockingStdin(), stdout=out)

    coordinator.attach(DuplexStream(FakeChannel(stdout=b"agent-bytes")), io.BytesIO(), closed.append)

    assert coordinator.wait(2)
    assert out.getvalue() == b"agent-bytes"
    assert closed == [None]


def test_local_stdin_relayed_then_remote_stdin_closed():
    chan = FakeChannel()
    coordinator = StdioCoordinator(stdin=io.BytesIO(b"ping"), stdout=io.BytesIO())

    coordinator._relay_in(DuplexStream(chan))

    assert bytes(chan.sent) == b"ping"
    assert chan.write_shut


class _BrokenChannel(FakeChannel):
    def recv(self, n):
        raise OSError("Socket is closed")


def test_stream_error_passed_to_close_listener():
    sink = io.BytesIO()
    closed = []
    coordinator = StdioCoordinator(stdin=_BlockingStdin(), stdout=io.BytesIO())

    coordinator.attach(DuplexStream(_BrokenChannel()), sink, closed.append)

    assert coordinator.wait(2)
    assert isinstance(closed[0], OSError)
    assert b"Socket is closed" in sink.getvalue()
