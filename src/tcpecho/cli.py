from __future__ import annotations

import argparse
import ipaddress
import json
import logging
import sys
from dataclasses import asdict

from .bench import run_benchmark
from .config import CloseMode, HarnessConfig, SizeConfig
from .constants import DEFAULT_CLIENT_HOST, DEFAULT_PORT, DEFAULT_SERVER_HOST, DRAIN_DELAY_S
from .errors import HarnessError
from .initiator import Initiator
from .outcome import SessionOutcome
from .responder import serve_once

log = logging.getLogger(__name__)


def ipv4(value: str) -> str:
    try:
        return str(ipaddress.IPv4Address(value))
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid IP {value}") from None


def size_config(value: str) -> SizeConfig:
    try:
        return SizeConfig.from_selector(int(value, 0))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def _config(args: argparse.Namespace) -> HarnessConfig:
    return HarnessConfig(
        host=args.address,
        port=args.port,
        size=args.config,
        close_mode=CloseMode(args.close_mode),
        drain_delay_s=args.drain_delay,
        max_chunk=args.max_chunk,
    )


def _report(outcome: SessionOutcome, as_json: bool) -> int:
    payload = outcome.as_dict()
    print(json.dumps(payload, indent=2) if as_json else payload)
    return outcome.exit_code


def cmd_server(args: argparse.Namespace) -> int:
    config = _config(args)
    log.info(
        "[server] working with the following IP: %s and port %d (config: %d)",
        config.host,
        config.port,
        config.size,
    )
    return _report(serve_once(config), args.json)


def cmd_client(args: argparse.Namespace) -> int:
    config = _config(args)
    log.info(
        "[client] working with the following IP: %s and port %d (config: %d)",
        config.host,
        config.port,
        config.size,
    )
    if args.wait:
        input("Waiting, press Enter to continue... (time to start a packet capture if you need one)")

    outcome = Initiator(config).run()
    if outcome.end_ts is not None:
        print(f"Time for the test is (microseconds): {outcome.elapsed_us}")
    return _report(outcome, args.json)


def cmd_bench(args: argparse.Namespace) -> int:
    r = run_benchmark(
        size=args.config,
        rounds=args.rounds,
        close_mode=CloseMode(args.close_mode),
        drain_delay_s=args.drain_delay,
        max_chunk=args.max_chunk,
    )
    payload = {"role": "bench", **asdict(r)}
    print(json.dumps(payload, indent=2) if args.json else payload)
    return 0 if r.failures == 0 else 1


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="tcpecho", description="TCP echo correctness and latency test.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser, close_mode: str, drain_delay: float) -> None:
        x.add_argument(
            "-c",
            "--config",
            type=size_config,
            default=SizeConfig.SMALL,
            help="1=small (4KB), 2=medium (32KB), 3=large (1MB)",
        )
        x.add_argument("--close-mode", choices=[m.value for m in CloseMode], default=close_mode)
        x.add_argument("--drain-delay", type=float, default=drain_delay, help="seconds to wait before close")
        x.add_argument("--max-chunk", type=int, default=0, help="cap bytes moved per send/recv call")
        x.add_argument("--json", action="store_true")

    server = sub.add_parser("server", help="echo one client's payload back")
    add_common(server, CloseMode.DRAIN.value, DRAIN_DELAY_S)
    server.add_argument("-a", "--address", type=ipv4, default=DEFAULT_SERVER_HOST, help="IPv4 address to bind")
    server.add_argument("-p", "--port", type=int, default=DEFAULT_PORT)
    server.set_defaults(func=cmd_server)

    client = sub.add_parser("client", help="send a payload and verify its echo")
    add_common(client, CloseMode.DRAIN.value, DRAIN_DELAY_S)
    client.add_argument("-a", "--address", type=ipv4, default=DEFAULT_CLIENT_HOST, help="IPv4 address of the server")
    client.add_argument("-p", "--port", type=int, default=DEFAULT_PORT)
    client.add_argument("-w", "--wait", action="store_true", help="wait for Enter before connecting")
    client.set_defaults(func=cmd_client)

    bench = sub.add_parser("bench", help="server and client on loopback, repeated rounds")
    add_common(bench, CloseMode.HALF_CLOSE.value, 0.0)
    bench.add_argument("--rounds", type=int, default=10)
    bench.set_defaults(func=cmd_bench)

    return p


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        return int(args.func(args))
    except ValueError as exc:
        p.error(str(exc))
    except HarnessError as exc:
        log.error("%s", exc)
        return exc.phase.exit_code


def server_main(argv: list[str] | None = None) -> int:
    return _role_main("server", argv)


def client_main(argv: list[str] | None = None) -> int:
    return _role_main("client", argv)


def _role_main(cmd: str, argv: list[str] | None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    # global options stay in front of the subcommand
    if args[:1] == ["--log-level"]:
        split = 2
    elif args[:1] and args[0].startswith("--log-level="):
        split = 1
    else:
        split = 0
    return main(args[:split] + [cmd] + args[split:])


if __name__ == "__main__":
    raise SystemExit(main())
