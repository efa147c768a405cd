"""Transport configuration for acceptors and connectors.

Security is always explicit: a config without credentials is plaintext,
whatever the port number.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import grpc

from servicelink.config import Settings, get_settings
from servicelink.protocol.models import Endpoint

logger = logging.getLogger(__name__)

ChannelOption = tuple[str, Any]


def transport_options(settings: Settings) -> list[ChannelOption]:
    """Channel arguments shared by servers and clients."""
    options: list[ChannelOption] = [
        ("grpc.max_send_message_length", settings.max_message_bytes),
        ("grpc.max_receive_message_length", settings.max_message_bytes),
    ]
    if settings.keepalive_time_ms is not None:
        options.append(("grpc.keepalive_time_ms", settings.keepalive_time_ms))
    return options


@dataclass
class ServerConfig:
    """How an acceptor builds and binds its ``grpc.Server``."""

    bind_host: str = "[::]"
    max_workers: int = 10
    credentials: Optional[grpc.ServerCredentials] = None  # None = plaintext
    interceptors: Sequence[grpc.ServerInterceptor] = ()
    options: list[ChannelOption] = field(default_factory=list)
    max_concurrent_rpcs: Optional[int] = None
    grace_seconds: float = 30.0  # graceful shutdown window for in-flight RPCs

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.grace_seconds <= 0:
            raise ValueError(f"grace_seconds must be > 0, got {self.grace_seconds}")

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ServerConfig":
        """Default plaintext server configuration."""
        settings = settings or get_settings()
        return cls(
            bind_host=settings.server_bind_host,
            max_workers=settings.server_max_workers,
            options=transport_options(settings),
            max_concurrent_rpcs=settings.server_max_concurrent_rpcs,
            grace_seconds=settings.shutdown_grace_seconds,
        )

    @property
    def secure(self) -> bool:
        return self.credentials is not None

    def address(self, port: int) -> str:
        return f"{self.bind_host}:{port}"

    def build_server(self) -> tuple[grpc.Server, ThreadPoolExecutor]:
        """Create an unbound server and the worker pool it runs handlers on."""
        executor = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="servicelink-server"
        )
        server = grpc.server(
            executor,
            interceptors=list(self.interceptors) or None,
            options=self.options or None,
            maximum_concurrent_rpcs=self.max_concurrent_rpcs,
        )
        return server, executor

    def bind(self, server: grpc.Server, port: int) -> int:
        """Add the listening port to ``server``.

        Returns:
            The bound port (0 if the transport could not bind)
        """
        address = self.address(port)
        if self.credentials is not None:
            return server.add_secure_port(address, self.credentials)
        return server.add_insecure_port(address)


@dataclass
class ChannelConfig:
    """How a connector builds its channel to a remote endpoint."""

    endpoint: Endpoint
    credentials: Optional[grpc.ChannelCredentials] = None  # None = plaintext
    interceptors: Sequence[Any] = ()
    options: list[ChannelOption] = field(default_factory=list)
    compression: Optional[grpc.Compression] = None
    cancel_on_timeout: bool = False

    @classmethod
    def insecure(
        cls, host: str, port: int, settings: Optional[Settings] = None
    ) -> "ChannelConfig":
        """Plaintext, unauthenticated channel to ``host:port``."""
        settings = settings or get_settings()
        return cls(
            endpoint=Endpoint(host=host, port=port),
            options=transport_options(settings),
            cancel_on_timeout=settings.cancel_on_timeout,
        )

    @property
    def secure(self) -> bool:
        return self.credentials is not None

    def build_channel(self) -> tuple[grpc.Channel, grpc.Channel]:
        """Create the channel.

        Returns:
            (raw channel owning the connection, channel calls go through).
            They are the same object unless interceptors are configured.
        """
        target = self.endpoint.target
        options = self.options or None
        if self.credentials is not None:
            channel = grpc.secure_channel(
                target, self.credentials, options=options, compression=self.compression
            )
        else:
            channel = grpc.insecure_channel(
                target, options=options, compression=self.compression
            )

        logger.debug(f"Channel to {target} created (secure={self.secure})")

        if self.interceptors:
            return channel, grpc.intercept_channel(channel, *self.interceptors)
        return channel, channel
