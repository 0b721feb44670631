from __future__ import annotations

import logging
import statistics
import threading
from dataclasses import dataclass, replace

from .config import CloseMode, HarnessConfig, SizeConfig
from .initiator import Initiator
from .net import TcpEndpoint, Throttle
from .outcome import SessionOutcome
from .responder import Responder

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    rounds: int
    bytes_per_round: int
    mean_us: float
    stdev_us: float
    min_us: int
    max_us: int
    throughput_mbps: float
    pattern_ok: bool
    failures: int


def run_session_pair(config: HarnessConfig) -> tuple[SessionOutcome, SessionOutcome]:
    """One responder thread plus one initiator on loopback; returns (client, server)."""
    listener = TcpEndpoint.listening(
        config.host,
        0,
        throttle=Throttle(max_chunk=config.max_chunk),
    )
    _, port = listener.local_address

    server_holder: dict[str, SessionOutcome] = {}

    def server_runner() -> None:
        server_holder["outcome"] = Responder(listener, replace(config, port=port)).run()

    t = threading.Thread(target=server_runner, daemon=True)
    t.start()
    try:
        client = Initiator(replace(config, port=port)).run()
    finally:
        t.join(timeout=config.drain_delay_s + 10.0)

    server = server_holder.get("outcome")
    if server is None:
        raise RuntimeError("responder did not finish")
    return client, server


def run_benchmark(
    *,
    size: SizeConfig = SizeConfig.SMALL,
    rounds: int = 1,
    host: str = "127.0.0.1",
    close_mode: CloseMode = CloseMode.HALF_CLOSE,
    drain_delay_s: float = 0.0,
    max_chunk: int = 0,
) -> BenchmarkResult:
    if rounds < 1:
        raise ValueError(f"rounds must be >= 1, got {rounds}")
    config = HarnessConfig(
        host=host,
        port=0,
        size=size,
        close_mode=close_mode,
        drain_delay_s=drain_delay_s,
        max_chunk=max_chunk,
    )

    latencies: list[int] = []
    pattern_ok = True
    failures = 0
    for _ in range(rounds):
        try:
            client, server = run_session_pair(config)
        except RuntimeError as exc:
            log.error("bench round failed: %s", exc)
            failures += 1
            continue
        if not (client.ok and server.ok):
            failures += 1
            continue
        latencies.append(client.elapsed_us)
        pattern_ok = pattern_ok and bool(client.pattern_ok)

    if not latencies:
        return BenchmarkResult(rounds, size.nbytes, 0.0, 0.0, 0, 0, 0.0, False, failures)

    mean_us = statistics.mean(latencies)
    stdev_us = statistics.stdev(latencies) if len(latencies) > 1 else 0.0
    # payload crosses the wire twice per round
    throughput_mbps = (2 * size.nbytes * 8) / max(1.0, mean_us)

    return BenchmarkResult(
        rounds=rounds,
        bytes_per_round=size.nbytes,
        mean_us=mean_us,
        stdev_us=stdev_us,
        min_us=min(latencies),
        max_us=max(latencies),
        throughput_mbps=throughput_mbps,
        pattern_ok=pattern_ok,
        failures=failures,
    )
