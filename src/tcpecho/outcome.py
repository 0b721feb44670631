from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from .errors import HarnessError
from .pattern import describe


@dataclass(slots=True)
class SessionOutcome:
    role: str
    size: int
    bytes_sent: int = 0
    bytes_received: int = 0
    pattern_ok: bool | None = None
    peer_shutdown: bool | None = None
    send_calls: int = 0
    recv_calls: int = 0
    start_ts: float = field(default_factory=time.perf_counter)
    end_ts: float | None = None
    teardown_ts: float | None = None
    failure: HarnessError | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def exit_code(self) -> int:
        return 0 if self.failure is None else self.failure.phase.exit_code

    @property
    def elapsed_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)

    @property
    def elapsed_us(self) -> int:
        return int(self.elapsed_s * 1_000_000)

    @property
    def throughput_mbps(self) -> float:
        if self.elapsed_s <= 0:
            return 0.0
        return ((self.bytes_sent + self.bytes_received) * 8 / 1_000_000) / self.elapsed_s

    def finish(self) -> None:
        self.end_ts = time.perf_counter()

    def fail(self, exc: HarnessError) -> None:
        # the first failure is the one that ended the session
        if self.failure is None:
            self.failure = exc

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "role": self.role,
            "size": self.size,
            "bytes_sent": self.bytes_sent,
            "bytes_received": self.bytes_received,
            "pattern": describe(self.pattern_ok),
            "elapsed_us": self.elapsed_us,
            "mbps": self.throughput_mbps,
            "send_calls": self.send_calls,
            "recv_calls": self.recv_calls,
            "ok": self.ok,
        }
        if self.peer_shutdown is not None:
            payload["peer_shutdown"] = self.peer_shutdown
        if self.failure is not None:
            payload["phase"] = self.failure.phase.value
            payload["errno"] = self.failure.errno
            payload["bytes_moved"] = self.failure.bytes_moved
            payload["error"] = str(self.failure)
        return payload
