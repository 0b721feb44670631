"""TCP echo correctness and latency harness (tcpecho)

A client sends a fixed-size, deterministically patterned payload over one TCP
connection, the server echoes it back verbatim, and the client checks the echo
and times the round trip.

The package keeps the pieces apart:
- the pattern codec that produces and checks payloads
- the transfer loops that hide partial send/recv results
- the per-role session protocols that order connect, transfer and teardown
"""

__all__ = []
