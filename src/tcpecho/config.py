from __future__ import annotations

import enum
from dataclasses import dataclass

from .constants import (
    DEFAULT_CLIENT_HOST,
    DEFAULT_PORT,
    DEFAULT_SERVER_HOST,
    DRAIN_DELAY_S,
    LARGE_BUF,
    MEDIUM_BUF,
    SMALL_BUF,
)


class SizeConfig(enum.IntEnum):
    SMALL = 1
    MEDIUM = 2
    LARGE = 3

    @property
    def nbytes(self) -> int:
        return _SIZES[self]

    @classmethod
    def from_selector(cls, value: int) -> "SizeConfig":
        try:
            return cls(int(value))
        except ValueError:
            raise ValueError(f"wrong config number {value}; expected 1, 2 or 3") from None


_SIZES = {
    SizeConfig.SMALL: SMALL_BUF,
    SizeConfig.MEDIUM: MEDIUM_BUF,
    SizeConfig.LARGE: LARGE_BUF,
}


class CloseMode(str, enum.Enum):
    DRAIN = "drain"
    HALF_CLOSE = "half-close"


@dataclass(frozen=True, slots=True)
class HarnessConfig:
    host: str
    port: int = DEFAULT_PORT
    size: SizeConfig = SizeConfig.SMALL
    close_mode: CloseMode = CloseMode.DRAIN
    drain_delay_s: float = DRAIN_DELAY_S
    max_chunk: int = 0  # 0 = no cap on a single send/recv call

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 0xFFFF:
            raise ValueError(f"port out of range: {self.port}")
        if self.drain_delay_s < 0:
            raise ValueError(f"drain delay must be >= 0, got {self.drain_delay_s}")
        if self.max_chunk < 0:
            raise ValueError(f"max chunk must be >= 0, got {self.max_chunk}")

    @property
    def address(self) -> tuple[str, int]:
        return (self.host, self.port)

    @classmethod
    def client(cls, host: str = DEFAULT_CLIENT_HOST, **kwargs) -> "HarnessConfig":
        return cls(host=host, **kwargs)

    @classmethod
    def server(cls, host: str = DEFAULT_SERVER_HOST, **kwargs) -> "HarnessConfig":
        return cls(host=host, **kwargs)
