from __future__ import annotations

import enum


class Phase(str, enum.Enum):
    RESOURCE = "resource"
    CONNECT = "connect"
    BIND = "bind"
    LISTEN = "listen"
    ACCEPT = "accept"
    SEND = "send"
    RECEIVE = "receive"
    CLOSE = "close"

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]


_EXIT_CODES = {
    Phase.RESOURCE: 2,
    Phase.CONNECT: 3,
    Phase.BIND: 4,
    Phase.LISTEN: 5,
    Phase.ACCEPT: 6,
    Phase.SEND: 7,
    Phase.RECEIVE: 8,
    Phase.CLOSE: 9,
}


class HarnessError(Exception):
    """A terminal failure of one session, tagged with the phase it happened in."""

    phase: Phase = Phase.RESOURCE

    def __init__(
        self,
        message: str,
        *,
        errno: int | None = None,
        bytes_moved: int | None = None,
        phase: Phase | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.errno = errno
        self.bytes_moved = bytes_moved
        if phase is not None:
            self.phase = phase

    @classmethod
    def from_os_error(cls, exc: OSError, *, bytes_moved: int | None = None, phase: Phase | None = None):
        return cls(exc.strerror or str(exc), errno=exc.errno, bytes_moved=bytes_moved, phase=phase)

    def __str__(self) -> str:
        details = []
        if self.errno is not None:
            details.append(f"errno {self.errno}")
        if self.bytes_moved is not None:
            details.append(f"after {self.bytes_moved} bytes")
        suffix = f" ({', '.join(details)})" if details else ""
        return f"{self.phase.value} failed: {self.message}{suffix}"


class ResourceError(HarnessError):
    phase = Phase.RESOURCE


class SetupError(HarnessError):
    """connect/bind/listen/accept; the concrete phase is passed by the caller."""

    phase = Phase.CONNECT


class ConnectError(SetupError):
    phase = Phase.CONNECT


class SendError(HarnessError):
    phase = Phase.SEND


class ReceiveError(HarnessError):
    phase = Phase.RECEIVE


class ShortReceiveError(ReceiveError):
    """The peer shut down its write side before the full payload arrived."""


class CloseError(HarnessError):
    phase = Phase.CLOSE
