from __future__ import annotations

import errno

import pytest

from tcpecho import transfer
from tcpecho.config import HarnessConfig
from tcpecho.errors import Phase, ReceiveError, ResourceError, SendError, ShortReceiveError
from tcpecho.initiator import Initiator
from tcpecho.pattern import pattern, verify
from tcpecho.transfer import allocate, recv_all, send_all


class ChunkedPipe:
    """Stream stub that moves at most ``chunk`` bytes per call."""

    def __init__(self, incoming: bytes = b"", chunk: int = 1, fail_on_call: int | None = None):
        self.incoming = bytearray(incoming)
        self.sent = bytearray()
        self.chunk = chunk
        self.fail_on_call = fail_on_call
        self.calls = 0

    def _tick(self) -> None:
        self.calls += 1
        if self.fail_on_call is not None and self.calls >= self.fail_on_call:
            raise OSError(errno.ECONNRESET, "Connection reset by peer")

    def send(self, view) -> int:
        self._tick()
        n = min(len(view), self.chunk)
        self.sent += view[:n]
        return n

    def recv_into(self, view, nbytes: int = 0) -> int:
        self._tick()
        n = min(nbytes or len(view), self.chunk, len(self.incoming))
        view[:n] = self.incoming[:n]
        del self.incoming[:n]
        return n


def test_send_all_one_byte_per_call():
    data = pattern(4096)
    pipe = ChunkedPipe(chunk=1)
    assert send_all(pipe, data, 4096) == 4096
    assert pipe.calls == 4096
    assert bytes(pipe.sent) == data


def test_recv_all_one_byte_per_call():
    pipe = ChunkedPipe(pattern(4096), chunk=1)
    (buf,) = allocate(4096, 1)
    assert recv_all(pipe, buf, 4096) == 4096
    assert pipe.calls == 4096
    assert verify(buf, 4096)


def test_large_payload_in_64k_chunks():
    size = 1048576
    pipe = ChunkedPipe(pattern(size), chunk=65536)
    (buf,) = allocate(size, 1)
    assert recv_all(pipe, buf, size) == size
    assert pipe.calls == 16
    assert verify(buf, size)

    out = ChunkedPipe(chunk=65536)
    assert send_all(out, buf, size) == size
    assert out.calls == 16
    assert bytes(out.sent) == bytes(buf)


def test_zero_read_is_short_receive():
    pipe = ChunkedPipe(pattern(1000), chunk=300)
    buf = bytearray(4096)
    with pytest.raises(ShortReceiveError) as info:
        recv_all(pipe, buf, 4096)
    assert info.value.bytes_moved == 1000
    assert info.value.phase is Phase.RECEIVE
    # 4 calls with data, then the one that returned 0
    assert pipe.calls == 5


def test_recv_all_never_reads_past_length():
    pipe = ChunkedPipe(pattern(4096) + b"next phase", chunk=10000)
    buf = bytearray(8192)
    recv_all(pipe, buf, 4096)
    assert bytes(pipe.incoming) == b"next phase"
    assert buf[4096:] == bytearray(4096)


def test_send_error_carries_progress():
    pipe = ChunkedPipe(chunk=100, fail_on_call=4)
    with pytest.raises(SendError) as info:
        send_all(pipe, pattern(4096), 4096)
    assert info.value.bytes_moved == 300
    assert info.value.errno == errno.ECONNRESET
    assert "send failed" in str(info.value)
    assert "after 300 bytes" in str(info.value)


def test_recv_error_is_not_short_receive():
    pipe = ChunkedPipe(pattern(4096), chunk=100, fail_on_call=2)
    with pytest.raises(ReceiveError) as info:
        recv_all(pipe, bytearray(4096), 4096)
    assert not isinstance(info.value, ShortReceiveError)
    assert info.value.bytes_moved == 100


@pytest.mark.parametrize("reported", [0, -1])
def test_send_reporting_nothing_is_a_failure(reported):
    class Stuck:
        calls = 0

        def send(self, view) -> int:
            self.calls += 1
            return reported

    stuck = Stuck()
    with pytest.raises(SendError):
        send_all(stuck, pattern(16), 16)
    assert stuck.calls == 1


def test_length_must_fit_buffer():
    with pytest.raises(ValueError):
        send_all(ChunkedPipe(), bytearray(10), 11)
    with pytest.raises(ValueError):
        recv_all(ChunkedPipe(), bytearray(10), 11)


def test_zero_length_moves_nothing():
    pipe = ChunkedPipe()
    assert send_all(pipe, b"", 0) == 0
    assert recv_all(pipe, bytearray(), 0) == 0
    assert pipe.calls == 0


def test_allocate_is_zero_filled():
    a, b = allocate(32, 2)
    assert a == bytearray(32) and b == bytearray(32)
    assert a is not b


def test_allocation_failure_is_a_resource_error(monkeypatch):
    def no_memory(n):
        raise MemoryError

    monkeypatch.setattr(transfer, "bytearray", no_memory, raising=False)
    with pytest.raises(ResourceError) as info:
        allocate(4096, 2)
    assert info.value.phase is Phase.RESOURCE
    assert info.value.phase.exit_code == 2


def test_initiator_stops_before_connect_when_allocation_fails(monkeypatch, closed_port):
    def no_memory(n):
        raise MemoryError

    monkeypatch.setattr(transfer, "bytearray", no_memory, raising=False)
    outcome = Initiator(HarnessConfig(host="127.0.0.1", port=closed_port, drain_delay_s=0)).run()

    assert isinstance(outcome.failure, ResourceError)
    assert outcome.exit_code == 2
    assert outcome.send_calls == 0
