"""Synchronous calls over the future-returning gRPC primitive.

The blocking multicallable has no separate "wait at most N ms but let the
call continue" mode, so calls are dispatched with ``.future()`` and the
calling thread joins the future with an optional bound. An expired bound is
an ordinary outcome (``CallOutcome.timeout()``), not an exception.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar

import grpc

from servicelink.exceptions import InterruptedWait, RemoteError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Dispatcher = Callable[[grpc.UnaryUnaryMultiCallable, Any], grpc.Future]


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    TIMEOUT = "timeout"
    REMOTE_ERROR = "remote_error"


@dataclass(frozen=True)
class CallOutcome(Generic[T]):
    """Result of one invocation: a value, a timeout, or a remote error."""

    kind: OutcomeKind
    value: Optional[T] = None
    error: Optional[RemoteError] = None

    @classmethod
    def success(cls, value: T) -> "CallOutcome[T]":
        return cls(OutcomeKind.SUCCESS, value=value)

    @classmethod
    def timeout(cls) -> "CallOutcome[T]":
        return cls(OutcomeKind.TIMEOUT)

    @classmethod
    def remote_error(cls, error: RemoteError) -> "CallOutcome[T]":
        return cls(OutcomeKind.REMOTE_ERROR, error=error)

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @property
    def timed_out(self) -> bool:
        return self.kind is OutcomeKind.TIMEOUT

    def unwrap(self) -> Optional[T]:
        """Return the value, None on timeout, or raise the remote error.

        Raises:
            RemoteError: If the remote side reported a non-OK status
        """
        if self.kind is OutcomeKind.REMOTE_ERROR:
            assert self.error is not None
            raise self.error
        return self.value


def _default_dispatch(multicallable: grpc.UnaryUnaryMultiCallable, request: Any) -> grpc.Future:
    return multicallable.future(request)


class InvocationAdapter:
    """Joins gRPC futures with an optional deadline and classifies the result.

    Features:
    - ``timeout_ms > 0`` waits at most that long, ``timeout_ms == 0`` waits forever
    - non-OK status -> ``CallOutcome.remote_error``
    - cancelled future -> ``InterruptedWait`` raised
    - expired calls are abandoned, or cancelled when ``cancel_on_timeout``
    """

    def __init__(self, dispatch: Optional[Dispatcher] = None, cancel_on_timeout: bool = False):
        """Initialize adapter.

        Args:
            dispatch: Starts a call and returns its future (defaults to
                      ``multicallable.future(request)``)
            cancel_on_timeout: Cancel a call whose bounded wait expired
        """
        self._dispatch = dispatch or _default_dispatch
        self._cancel_on_timeout = cancel_on_timeout

    def invoke(
        self, multicallable: grpc.UnaryUnaryMultiCallable, request: Any, timeout_ms: int = 0
    ) -> CallOutcome[Any]:
        """Dispatch ``request`` and wait for its result.

        Args:
            multicallable: Stub method to invoke
            request: Request message
            timeout_ms: Max wait in milliseconds; 0 waits forever

        Returns:
            CallOutcome with the response, a timeout, or a remote error

        Raises:
            ValueError: If timeout_ms is negative
            InterruptedWait: If the call was cancelled while waiting
        """
        if timeout_ms < 0:
            raise ValueError(f"timeout_ms must be >= 0, got {timeout_ms}")

        try:
            future = self._dispatch(multicallable, request)
        except grpc.RpcError as e:
            return self._remote_error(e)

        return self.join(future, timeout_ms)

    def join(self, future: grpc.Future, timeout_ms: int = 0) -> CallOutcome[Any]:
        """Wait for an already dispatched call."""
        try:
            if timeout_ms > 0:
                value = future.result(timeout=timeout_ms / 1000.0)
            else:
                value = future.result()
        except grpc.FutureTimeoutError:
            if self._cancel_on_timeout:
                future.cancel()
                logger.debug(f"Call cancelled after {timeout_ms} ms")
            else:
                logger.debug(f"Call abandoned after {timeout_ms} ms")
            return CallOutcome.timeout()
        except grpc.FutureCancelledError as e:
            raise InterruptedWait("Call was cancelled while waiting for its result") from e
        except grpc.RpcError as e:
            return self._remote_error(e)

        return CallOutcome.success(value)

    def call(self, multicallable: grpc.UnaryUnaryMultiCallable, request: Any) -> CallOutcome[Any]:
        """Blocking call without a deadline."""
        try:
            value = multicallable(request)
        except grpc.RpcError as e:
            return self._remote_error(e)
        return CallOutcome.success(value)

    def _remote_error(self, error: grpc.RpcError) -> CallOutcome[Any]:
        remote_error = RemoteError.from_rpc_error(error)
        logger.warning(f"RPC failed: {remote_error}")
        return CallOutcome.remote_error(remote_error)
