"""
Pytest configuration and fixtures
"""

from typing import Callable, Iterator

import pytest

from servicelink.protocol.service import BindableService
from servicelink.rpc.acceptor import ServiceAcceptor
from servicelink.rpc.connector import ServiceConnector
from servicelink.rpc.transport import ServerConfig

LOCALHOST = "127.0.0.1"


@pytest.fixture
def mock_settings(tmp_path, monkeypatch):
    """Settings isolated from the developer's environment and .env file."""
    from servicelink.config import Settings

    monkeypatch.chdir(tmp_path)
    return Settings(
        log_level="DEBUG",
        server_max_workers=4,
        shutdown_grace_seconds=1.0,
    )


@pytest.fixture
def server_config() -> ServerConfig:
    """Plaintext loopback server with a short grace period."""
    return ServerConfig(bind_host=LOCALHOST, max_workers=4, grace_seconds=1.0)


@pytest.fixture
def start_acceptor(server_config) -> Iterator[Callable[[BindableService], ServiceAcceptor]]:
    """Factory starting acceptors on free ports; all are force-stopped afterwards."""
    acceptors: list[ServiceAcceptor] = []

    def start(service: BindableService) -> ServiceAcceptor:
        acceptor = ServiceAcceptor(0, service, server_config)
        acceptor.start()
        acceptors.append(acceptor)
        return acceptor

    yield start

    for acceptor in acceptors:
        acceptor.shutdown(force=True).block_until_shutdown(5000)


@pytest.fixture
def connect() -> Iterator[Callable[[ServiceAcceptor], ServiceConnector]]:
    """Factory for connectors to a started acceptor; force-closed afterwards."""
    connectors: list[ServiceConnector] = []

    def open_connector(acceptor: ServiceAcceptor) -> ServiceConnector:
        connector = ServiceConnector.for_address(LOCALHOST, acceptor.port)
        connectors.append(connector)
        return connector

    yield open_connector

    for connector in connectors:
        connector.shutdown(force=True).block_until_shutdown(5000)
