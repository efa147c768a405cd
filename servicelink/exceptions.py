"""Exception hierarchy for acceptors, connectors and remote calls."""

from typing import Optional

import grpc


class ServiceLinkError(Exception):
    """Base exception for servicelink errors."""

    def __init__(self, message: str, user_message: str | None = None):
        super().__init__(message)
        self.user_message = user_message or message


class BindError(ServiceLinkError, OSError):
    """Listening endpoint could not be acquired."""

    pass


class ListenerStartError(ServiceLinkError, OSError):
    """Listener failed to start serving."""

    pass


class LifecycleError(ServiceLinkError):
    """Operation not allowed in the current lifecycle state."""

    pass


class InterruptedWait(ServiceLinkError):
    """A blocked wait was cancelled before the call completed."""

    pass


class RemoteError(ServiceLinkError):
    """Remote peer reported a non-OK status.

    The message follows the ``"<CODE>: <details>"`` form, e.g.
    ``"UNAVAILABLE: backend is down"``.
    """

    def __init__(self, code: str, details: str = ""):
        self.code = code
        self.details = details
        message = f"{code}: {details}" if details else code
        super().__init__(message, user_message="Service unavailable")

    @classmethod
    def from_rpc_error(cls, error: grpc.RpcError) -> "RemoteError":
        """Build from a grpc error carrying a status code and details."""
        # Errors raised by the channel are also grpc.Call objects.
        code: Optional[grpc.StatusCode] = None
        details: Optional[str] = None
        if callable(getattr(error, "code", None)):
            code = error.code()  # type: ignore[attr-defined]
            details = error.details()  # type: ignore[attr-defined]
        name = code.name if code is not None else "UNKNOWN"
        return cls(name, details or "")
