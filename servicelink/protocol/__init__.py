"""Discovery RPC surface: messages, servicer base class and client stub."""

from servicelink.protocol.models import (
    ConfigResult,
    ConfigStatus,
    Configuration,
    Empty,
    Endpoint,
    EndpointDescriptor,
    ServiceEndpoints,
)
from servicelink.protocol.service import (
    SERVICE_NAME,
    BindableService,
    DiscoveryServicer,
    DiscoveryStub,
    add_discovery_servicer_to_server,
)

__all__ = [
    "ConfigResult",
    "ConfigStatus",
    "Configuration",
    "Empty",
    "Endpoint",
    "EndpointDescriptor",
    "ServiceEndpoints",
    "SERVICE_NAME",
    "BindableService",
    "DiscoveryServicer",
    "DiscoveryStub",
    "add_discovery_servicer_to_server",
]
