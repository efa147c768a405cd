"""Acceptor/connector lifecycle and invocation over gRPC."""

from servicelink.rpc.acceptor import ServiceAcceptor
from servicelink.rpc.connector import ServiceConnector
from servicelink.rpc.discovery import StaticDiscoveryServicer
from servicelink.rpc.invocation import CallOutcome, InvocationAdapter, OutcomeKind
from servicelink.rpc.lifecycle import (
    LifecycleState,
    ManagedService,
    ShutdownAction,
    TerminationStateMachine,
)
from servicelink.rpc.transport import ChannelConfig, ServerConfig

__all__ = [
    "ServiceAcceptor",
    "ServiceConnector",
    "StaticDiscoveryServicer",
    "CallOutcome",
    "InvocationAdapter",
    "OutcomeKind",
    "LifecycleState",
    "ManagedService",
    "ShutdownAction",
    "TerminationStateMachine",
    "ChannelConfig",
    "ServerConfig",
]
