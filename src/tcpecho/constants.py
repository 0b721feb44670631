from __future__ import annotations

SMALL_BUF = 4096
MEDIUM_BUF = 32768
LARGE_BUF = 1048576

DEFAULT_PORT = 43211
DEFAULT_CLIENT_HOST = "127.0.0.1"
DEFAULT_SERVER_HOST = "0.0.0.0"

LISTEN_BACKLOG = 1  # one client per run
DRAIN_DELAY_S = 5.0
