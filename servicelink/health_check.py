#!/usr/bin/env python3
"""
Health check script for containers running a Discovery service.

Checks:
1. The service answers ping within SERVICELINK_HEALTH_CHECK_TIMEOUT_MS

Exit codes:
- 0: Healthy
- 1: Unhealthy (no answer, remote error, or bad configuration)
"""
import sys
from typing import Optional

from servicelink.config import get_settings
from servicelink.exceptions import ServiceLinkError
from servicelink.protocol.models import Endpoint
from servicelink.rpc.connector import ServiceConnector


def check_ping(endpoint: Endpoint, timeout_ms: int) -> bool:
    """
    Ping the service once.

    Returns:
        True if it answered within timeout_ms, False otherwise
    """
    connector = ServiceConnector.for_address(endpoint.host, endpoint.port)
    try:
        if connector.ping(timeout_ms):
            return True
        print(f"❌ {endpoint} did not answer within {timeout_ms} ms", file=sys.stderr)
        return False
    except ServiceLinkError as e:
        print(f"❌ Ping to {endpoint} failed: {e}", file=sys.stderr)
        return False
    finally:
        connector.shutdown(force=True)


def main(target: Optional[str] = None) -> int:
    """
    Main entry point.

    Args:
        target: host:port to check (defaults to the configured host/port)

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    try:
        settings = get_settings()
        endpoint = (
            Endpoint.parse(target)
            if target
            else Endpoint(host=settings.default_host, port=settings.default_port)
        )

        print(f"Checking {endpoint}...")
        if check_ping(endpoint, settings.health_check_timeout_ms):
            print(f"✅ {endpoint} is healthy")
            return 0
        return 1

    except Exception as e:
        print(f"❌ Health check error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main(sys.argv[1] if len(sys.argv) > 1 else None))
