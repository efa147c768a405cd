"""
servicelink command line
Entry point for serving and probing Discovery services
"""

import argparse
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional

from servicelink.config import Settings, get_settings
from servicelink.exceptions import ServiceLinkError
from servicelink.protocol.models import Configuration, Endpoint
from servicelink.rpc.acceptor import ServiceAcceptor
from servicelink.rpc.connector import ServiceConnector
from servicelink.rpc.discovery import StaticDiscoveryServicer
from servicelink.rpc.transport import ServerConfig
from servicelink.utils.logging_config import setup_logging

APP_VERSION = os.getenv("APP_VERSION", "unknown")

logger = logging.getLogger(__name__)


def serve(settings: Settings, port: int) -> int:
    """Run a static Discovery service until SIGINT/SIGTERM."""
    servicer = StaticDiscoveryServicer.from_dicts(settings.advertised_endpoints)
    acceptor = ServiceAcceptor(port, servicer, ServerConfig.from_settings(settings))
    acceptor.start()

    def handle_signal(signum: int, frame: object) -> None:
        logger.info(f"Received signal {signum}, shutting down")
        acceptor.shutdown()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    # Wait in slices so the main thread keeps handling signals
    while not acceptor.block_until_shutdown(timeout_ms=500):
        pass
    logger.info("Server stopped")
    return 0


def ping(endpoint: Endpoint, timeout_ms: int) -> int:
    with ServiceConnector.for_address(endpoint.host, endpoint.port) as connector:
        if connector.ping(timeout_ms):
            print(f"{endpoint}: alive")
            return 0
    print(f"{endpoint}: no answer within {timeout_ms} ms", file=sys.stderr)
    return 1


def discover(endpoint: Endpoint) -> int:
    with ServiceConnector.for_address(endpoint.host, endpoint.port) as connector:
        result = connector.discover_endpoints()
    print(result.model_dump_json(indent=2))
    return 0


def configure(
    endpoint: Endpoint, name: str, values: list[tuple[str, str]], timeout_ms: int
) -> int:
    conf = Configuration(name=name, values=dict(values))
    with ServiceConnector.for_address(endpoint.host, endpoint.port) as connector:
        result = connector.configure(conf, timeout_ms)
    if result is None:
        print(f"{endpoint}: configure timed out after {timeout_ms} ms", file=sys.stderr)
        return 1
    print(result.model_dump_json(indent=2))
    return 0


def _split_value(item: str) -> tuple[str, str]:
    key, sep, value = item.partition("=")
    if not sep:
        raise argparse.ArgumentTypeError(f"Expected key=value, got {item!r}")
    return key, value


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    default_target = f"{settings.default_host}:{settings.default_port}"

    parser = argparse.ArgumentParser(
        prog="servicelink", description="Serve or probe a Discovery gRPC service"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    serve_parser = commands.add_parser("serve", help="Run a static Discovery service")
    serve_parser.add_argument("--port", type=int, default=settings.default_port)

    ping_parser = commands.add_parser("ping", help="Check that a service answers")
    ping_parser.add_argument("target", nargs="?", default=default_target, type=Endpoint.parse)
    ping_parser.add_argument(
        "--timeout-ms", type=int, default=settings.health_check_timeout_ms
    )

    discover_parser = commands.add_parser("discover", help="List advertised endpoints")
    discover_parser.add_argument(
        "target", nargs="?", default=default_target, type=Endpoint.parse
    )

    configure_parser = commands.add_parser("configure", help="Push a configuration")
    configure_parser.add_argument(
        "target", nargs="?", default=default_target, type=Endpoint.parse
    )
    configure_parser.add_argument("--name", default="")
    configure_parser.add_argument(
        "--set", dest="values", action="append", default=[], type=_split_value
    )
    configure_parser.add_argument("--timeout-ms", type=int, default=0)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    settings = get_settings()
    setup_logging(
        log_level=settings.log_level,
        log_dir=Path(settings.log_dir) if settings.log_dir else None,
        json_format=settings.log_json,
        version=APP_VERSION,
        sensitive_patterns=settings.log_sensitive_patterns,
    )

    args = build_parser(settings).parse_args(argv)

    try:
        if args.command == "serve":
            return serve(settings, args.port)
        if args.command == "ping":
            return ping(args.target, args.timeout_ms)
        if args.command == "discover":
            return discover(args.target)
        return configure(args.target, args.name, args.values, args.timeout_ms)
    except ServiceLinkError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
