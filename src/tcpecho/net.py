from __future__ import annotations

import logging
import socket
from dataclasses import dataclass
from typing import Tuple

from .constants import LISTEN_BACKLOG
from .errors import CloseError, ConnectError, Phase, SetupError

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Throttle:
    """Caps how much a single send/recv call may move, to force partial I/O."""

    max_chunk: int = 0

    def clamp(self, n: int) -> int:
        if self.max_chunk > 0:
            return min(n, self.max_chunk)
        return n


class TcpEndpoint:
    def __init__(self, sock: socket.socket, throttle: Throttle | None = None):
        self.sock = sock
        self.throttle = throttle or Throttle()
        self.send_calls = 0
        self.recv_calls = 0
        self._closed = False

    @classmethod
    def connecting(
        cls,
        host: str,
        port: int,
        throttle: Throttle | None = None,
    ) -> "TcpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.connect((host, port))
        except OSError as exc:
            sock.close()
            raise ConnectError.from_os_error(exc) from exc
        log.info("connected to the server at %s:%d", host, port)
        return cls(sock, throttle)

    @classmethod
    def listening(
        cls,
        host: str,
        port: int,
        backlog: int = LISTEN_BACKLOG,
        throttle: Throttle | None = None,
    ) -> "TcpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError as exc:
            sock.close()
            raise SetupError.from_os_error(exc, phase=Phase.BIND) from exc
        try:
            sock.listen(backlog)
        except OSError as exc:
            sock.close()
            raise SetupError.from_os_error(exc, phase=Phase.LISTEN) from exc
        log.info("server listening on %s:%d (backlog %d)", *sock.getsockname(), backlog)
        return cls(sock, throttle)

    @property
    def local_address(self) -> Tuple[str, int]:
        return self.sock.getsockname()

    def accept(self) -> "TcpEndpoint":
        try:
            conn, addr = self.sock.accept()
        except OSError as exc:
            raise SetupError.from_os_error(exc, phase=Phase.ACCEPT) from exc
        log.info("new incoming connection from %s:%d", *addr)
        return TcpEndpoint(conn, self.throttle)

    def send(self, data: memoryview) -> int:
        self.send_calls += 1
        return self.sock.send(data[: self.throttle.clamp(len(data))])

    def recv_into(self, view: memoryview, nbytes: int = 0) -> int:
        self.recv_calls += 1
        nbytes = nbytes or len(view)
        return self.sock.recv_into(view, self.throttle.clamp(nbytes))

    def shutdown_write(self) -> None:
        self.sock.shutdown(socket.SHUT_WR)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.sock.close()
        except OSError as exc:
            raise CloseError.from_os_error(exc) from exc
