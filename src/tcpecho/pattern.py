"""Deterministic payload pattern: byte ``i`` of a buffer is ``i % 256``.

This is a correctness fixture, not a checksum. Any shift, truncation or
duplication of the stream shows up at the first byte where it happens.
"""
from __future__ import annotations

from typing import Union

Buffer = Union[bytearray, memoryview, bytes]

_PERIOD = bytes(range(256))


def pattern(length: int) -> bytes:
    if length < 0:
        raise ValueError(f"negative length: {length}")
    reps, rest = divmod(length, len(_PERIOD))
    return _PERIOD * reps + _PERIOD[:rest]


def generate(buf: Union[bytearray, memoryview], length: int) -> None:
    if length > len(buf):
        raise ValueError(f"buffer of {len(buf)} bytes cannot hold {length}")
    buf[:length] = pattern(length)


def verify(buf: Buffer, length: int) -> bool:
    if len(buf) < length:
        return False
    return bytes(buf[:length]) == pattern(length)


def first_mismatch(buf: Buffer, length: int) -> int | None:
    """Offset of the first byte that differs from the pattern, or None."""
    if verify(buf, length):
        return None
    expected = pattern(length)
    got = bytes(buf[:length])
    for i, (a, b) in enumerate(zip(got, expected)):
        if a != b:
            return i
    # buffer is a clean prefix but too short
    return len(got)


def describe(ok: bool | None) -> str:
    if ok is None:
        return "n/a"
    return "OK" if ok else "FAILED"
