from __future__ import annotations

import socket
import threading

import pytest


def read_exactly(conn: socket.socket, n: int) -> bytes:
    chunks = bytearray()
    while len(chunks) < n:
        chunk = conn.recv(n - len(chunks))
        if not chunk:
            break
        chunks += chunk
    return bytes(chunks)


def wait_for_close(conn: socket.socket) -> None:
    while conn.recv(4096):
        pass


@pytest.fixture
def raw_server():
    """Start a one-shot TCP server on loopback running ``handler(conn)``; yields a starter."""
    threads: list[threading.Thread] = []

    def start(handler) -> int:
        srv = socket.create_server(("127.0.0.1", 0), backlog=1)
        port = srv.getsockname()[1]

        def run() -> None:
            with srv:
                conn, _ = srv.accept()
                with conn:
                    handler(conn)

        t = threading.Thread(target=run, daemon=True)
        t.start()
        threads.append(t)
        return port

    yield start
    for t in threads:
        t.join(timeout=5.0)


@pytest.fixture
def closed_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]
