from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from .config import HarnessConfig
from .errors import CloseError, HarnessError
from .net import TcpEndpoint, Throttle
from .outcome import SessionOutcome
from .pattern import describe, verify
from .transfer import allocate, recv_all, send_all

log = logging.getLogger(__name__)


@dataclass(slots=True)
class Responder:
    """Server side: accept one client, echo its payload, wait for it to close.

    The listener is owned by the responder and closed when ``run`` returns.
    """

    listener: TcpEndpoint
    config: HarnessConfig

    def run(self) -> SessionOutcome:
        size = self.config.size.nbytes
        outcome = SessionOutcome(role="server", size=size)
        client: TcpEndpoint | None = None

        try:
            (buffer,) = allocate(size, 1)
            client = self.listener.accept()

            # first recv the buffer, then tx it back as it is
            outcome.bytes_received = recv_all(client, buffer, size)
            outcome.pattern_ok = verify(buffer, size)
            log.info("buffer received ok, pattern match: %s", describe(outcome.pattern_ok))

            outcome.bytes_sent = send_all(client, buffer, size)
            outcome.finish()
            log.info("buffer tx backed")

            outcome.peer_shutdown = self._await_peer_close(client, buffer)
            outcome.teardown_ts = time.perf_counter()
        except HarnessError as exc:
            log.error("%s", exc)
            outcome.fail(exc)
        finally:
            if client is not None:
                outcome.send_calls = client.send_calls
                outcome.recv_calls = client.recv_calls
                self._close(client, "client", outcome)
            self._close(self.listener, "server listen", outcome)

        if outcome.ok:
            log.info("server and client sockets closed")
        return outcome

    @staticmethod
    def _await_peer_close(client: TcpEndpoint, scratch: bytearray) -> bool:
        """Block until the client closes its side, so our close cannot reset unread data."""
        try:
            ret = client.recv_into(memoryview(scratch))
        except OSError as exc:
            log.warning("final recv before close failed: %s (errno %s)", exc.strerror or exc, exc.errno)
            return False
        if ret != 0:
            log.warning("unexpected %d bytes after the echo, closing anyway", ret)
            return False
        log.info("client closed its side")
        return True

    @staticmethod
    def _close(endpoint: TcpEndpoint, what: str, outcome: SessionOutcome) -> None:
        try:
            endpoint.close()
        except CloseError as exc:
            log.error("%s shutdown was not clean: %s", what, exc)
            outcome.fail(exc)


def serve_once(config: HarnessConfig) -> SessionOutcome:
    try:
        listener = TcpEndpoint.listening(
            config.host,
            config.port,
            throttle=Throttle(max_chunk=config.max_chunk),
        )
    except HarnessError as exc:
        log.error("%s", exc)
        outcome = SessionOutcome(role="server", size=config.size.nbytes)
        outcome.fail(exc)
        return outcome
    return Responder(listener, config).run()
