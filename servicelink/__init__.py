"""
servicelink: lifecycle and invocation wrapper around gRPC.

ServiceAcceptor binds a service to a port; ServiceConnector calls it with
bounded waits that return None/False on timeout instead of raising.
"""

from servicelink.exceptions import (
    BindError,
    InterruptedWait,
    LifecycleError,
    ListenerStartError,
    RemoteError,
    ServiceLinkError,
)
from servicelink.protocol import (
    ConfigResult,
    ConfigStatus,
    Configuration,
    DiscoveryServicer,
    DiscoveryStub,
    Endpoint,
    EndpointDescriptor,
    ServiceEndpoints,
)
from servicelink.rpc import ChannelConfig, ServerConfig, ServiceAcceptor, ServiceConnector

__all__ = [
    "BindError",
    "InterruptedWait",
    "LifecycleError",
    "ListenerStartError",
    "RemoteError",
    "ServiceLinkError",
    "ConfigResult",
    "ConfigStatus",
    "Configuration",
    "DiscoveryServicer",
    "DiscoveryStub",
    "Endpoint",
    "EndpointDescriptor",
    "ServiceEndpoints",
    "ChannelConfig",
    "ServerConfig",
    "ServiceAcceptor",
    "ServiceConnector",
]
