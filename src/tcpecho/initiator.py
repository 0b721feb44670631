from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from .config import CloseMode, HarnessConfig
from .errors import CloseError, HarnessError
from .net import TcpEndpoint, Throttle
from .outcome import SessionOutcome
from .pattern import describe, first_mismatch, generate, verify
from .transfer import allocate, recv_all, send_all

log = logging.getLogger(__name__)


@dataclass(slots=True)
class Initiator:
    """Client side: connect, send the pattern, read the echo, verify, close."""

    config: HarnessConfig

    def run(self) -> SessionOutcome:
        size = self.config.size.nbytes
        outcome = SessionOutcome(role="client", size=size)
        endpoint: TcpEndpoint | None = None

        try:
            tx_buffer, rx_buffer = allocate(size, 2)
            endpoint = TcpEndpoint.connecting(
                self.config.host,
                self.config.port,
                throttle=Throttle(max_chunk=self.config.max_chunk),
            )

            generate(tx_buffer, size)
            outcome.bytes_sent = send_all(endpoint, tx_buffer, size)
            log.info("buffer sent successfully, waiting to receive data")

            outcome.bytes_received = recv_all(endpoint, rx_buffer, size)
            outcome.pattern_ok = verify(rx_buffer, size)
            outcome.finish()
            if outcome.pattern_ok:
                log.info("results of pattern matching: %s", describe(True))
            else:
                log.error(
                    "results of pattern matching: %s (first bad byte at offset %s)",
                    describe(False),
                    first_mismatch(rx_buffer, size),
                )

            self._teardown(endpoint, rx_buffer)
        except HarnessError as exc:
            log.error("%s", exc)
            outcome.fail(exc)
        finally:
            if endpoint is not None:
                outcome.send_calls = endpoint.send_calls
                outcome.recv_calls = endpoint.recv_calls
                outcome.teardown_ts = time.perf_counter()
                try:
                    endpoint.close()
                except CloseError as exc:
                    log.error("shutdown was not clean: %s", exc)
                    outcome.fail(exc)

        if outcome.ok:
            log.info("shutdown was fine")
        return outcome

    def _teardown(self, endpoint: TcpEndpoint, scratch: bytearray) -> None:
        if self.config.close_mode is CloseMode.HALF_CLOSE:
            self._half_close(endpoint, scratch)
            return
        # let in-flight acks settle before the close is issued
        log.info("a %.1f sec wait before calling close", self.config.drain_delay_s)
        time.sleep(self.config.drain_delay_s)

    @staticmethod
    def _half_close(endpoint: TcpEndpoint, scratch: bytearray) -> None:
        try:
            endpoint.shutdown_write()
            ret = endpoint.recv_into(memoryview(scratch))
        except OSError as exc:
            raise CloseError.from_os_error(exc) from exc
        if ret != 0:
            log.warning("expected server shutdown after half-close, got %d more bytes", ret)
        else:
            log.info("server closed its side after our half-close")
