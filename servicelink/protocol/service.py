"""Discovery service definition: servicer base class, client stub, registration.

Messages are pydantic models encoded as JSON, so no generated code is
needed. Method paths follow the gRPC ``/<package>.<Service>/<Method>`` form.
"""

from typing import Protocol, runtime_checkable

import grpc

from servicelink.protocol.models import (
    ConfigResult,
    Configuration,
    Empty,
    ServiceEndpoints,
    decoder,
    encode,
)

SERVICE_NAME = "servicelink.Discovery"

CONFIGURE_METHOD = f"/{SERVICE_NAME}/Configure"
PING_METHOD = f"/{SERVICE_NAME}/Ping"
DISCOVER_ENDPOINTS_METHOD = f"/{SERVICE_NAME}/DiscoverEndpoints"


@runtime_checkable
class BindableService(Protocol):
    """Anything that can register its handlers on a ``grpc.Server``."""

    def add_to_server(self, server: grpc.Server) -> None:
        ...


class DiscoveryServicer:
    """Base class for Discovery service implementations.

    Override the methods the service supports; the rest answer
    ``UNIMPLEMENTED``. Handlers run on the server's worker threads.
    """

    def configure(self, request: Configuration, context: grpc.ServicerContext) -> ConfigResult:
        context.abort(grpc.StatusCode.UNIMPLEMENTED, "configure not implemented")
        raise NotImplementedError  # abort() raises; keeps type checkers happy

    def ping(self, request: Empty, context: grpc.ServicerContext) -> Empty:
        context.abort(grpc.StatusCode.UNIMPLEMENTED, "ping not implemented")
        raise NotImplementedError

    def discover_endpoints(
        self, request: Empty, context: grpc.ServicerContext
    ) -> ServiceEndpoints:
        context.abort(grpc.StatusCode.UNIMPLEMENTED, "discover_endpoints not implemented")
        raise NotImplementedError

    def add_to_server(self, server: grpc.Server) -> None:
        """Register this servicer's handlers on ``server``."""
        add_discovery_servicer_to_server(self, server)


def add_discovery_servicer_to_server(servicer: DiscoveryServicer, server: grpc.Server) -> None:
    handlers = {
        "Configure": grpc.unary_unary_rpc_method_handler(
            servicer.configure,
            request_deserializer=decoder(Configuration),
            response_serializer=encode,
        ),
        "Ping": grpc.unary_unary_rpc_method_handler(
            servicer.ping,
            request_deserializer=decoder(Empty),
            response_serializer=encode,
        ),
        "DiscoverEndpoints": grpc.unary_unary_rpc_method_handler(
            servicer.discover_endpoints,
            request_deserializer=decoder(Empty),
            response_serializer=encode,
        ),
    }
    generic_handler = grpc.method_handlers_generic_handler(SERVICE_NAME, handlers)
    server.add_generic_rpc_handlers((generic_handler,))


class DiscoveryStub:
    """Client stub for the Discovery service.

    Each attribute is a ``grpc.UnaryUnaryMultiCallable``: call it directly for
    a blocking call or use ``.future(request)`` for a non-blocking one.
    """

    def __init__(self, channel: grpc.Channel):
        self.Configure = channel.unary_unary(
            CONFIGURE_METHOD,
            request_serializer=encode,
            response_deserializer=decoder(ConfigResult),
        )
        self.Ping = channel.unary_unary(
            PING_METHOD,
            request_serializer=encode,
            response_deserializer=decoder(Empty),
        )
        self.DiscoverEndpoints = channel.unary_unary(
            DISCOVER_ENDPOINTS_METHOD,
            request_serializer=encode,
            response_deserializer=decoder(ServiceEndpoints),
        )
