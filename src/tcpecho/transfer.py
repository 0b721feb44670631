"""Move an exact number of bytes over a stream endpoint.

A stream ``send``/``recv`` may move fewer bytes than asked for, so both loops
keep calling the single-shot primitive on the remaining suffix until the
target is reached. The endpoint only needs ``send(view) -> int`` and
``recv_into(view, nbytes) -> int``, which covers ``socket.socket`` as well as
``TcpEndpoint``.
"""
from __future__ import annotations

import logging

from .errors import ReceiveError, ResourceError, SendError, ShortReceiveError

log = logging.getLogger(__name__)


def allocate(nbytes: int, count: int) -> list[bytearray]:
    """Zero-filled payload buffers for one session."""
    try:
        return [bytearray(nbytes) for _ in range(count)]
    except MemoryError as exc:
        raise ResourceError(f"buffer allocation of {nbytes} bytes failed") from exc


def _checked_view(buffer, length: int) -> memoryview:
    view = memoryview(buffer)
    if length < 0 or length > view.nbytes:
        raise ValueError(f"length {length} does not fit a {view.nbytes}-byte buffer")
    return view[:length]


def send_all(endpoint, buffer, length: int) -> int:
    view = _checked_view(buffer, length)
    so_far = 0
    while so_far < length:
        try:
            ret = endpoint.send(view[so_far:])
        except OSError as exc:
            raise SendError.from_os_error(exc, bytes_moved=so_far) from exc
        if ret <= 0 or ret > length - so_far:
            raise SendError(f"transport reported {ret} bytes sent", bytes_moved=so_far)
        so_far += ret
        log.debug("[send loop] %d bytes, so_far %d target %d", ret, so_far, length)
    return so_far


def recv_all(endpoint, buffer, length: int) -> int:
    view = _checked_view(buffer, length)
    so_far = 0
    while so_far < length:
        remaining = length - so_far
        try:
            ret = endpoint.recv_into(view[so_far:], remaining)
        except OSError as exc:
            raise ReceiveError.from_os_error(exc, bytes_moved=so_far) from exc
        if ret == 0:
            raise ShortReceiveError("peer closed before sending the full payload", bytes_moved=so_far)
        if ret < 0 or ret > remaining:
            raise ReceiveError(f"transport reported {ret} bytes received", bytes_moved=so_far)
        so_far += ret
        log.debug("[receive loop] %d bytes, so_far %d target %d", ret, so_far, length)
    return so_far
