"""Client side: channel to a remote Discovery service and calls over it."""

import logging
import threading
from typing import Any, Optional

import grpc

from servicelink.exceptions import RemoteError
from servicelink.protocol.models import (
    ConfigResult,
    Configuration,
    Empty,
    Endpoint,
    ServiceEndpoints,
)
from servicelink.protocol.service import DiscoveryStub
from servicelink.rpc.invocation import CallOutcome, InvocationAdapter
from servicelink.rpc.lifecycle import (
    LifecycleState,
    ShutdownAction,
    TerminationStateMachine,
    millis_to_seconds,
)
from servicelink.rpc.transport import ChannelConfig

logger = logging.getLogger(__name__)


class ServiceConnector:
    """Client of a remote Discovery service.

    The channel is created at construction and is safe for concurrent use;
    each call builds its own stub on it. ``configure`` and ``ping`` have a
    three-way result the caller must branch on:

    - a value (``ConfigResult`` / ``True``) on success
    - ``None`` / ``False`` when the bounded wait expired
    - ``RemoteError`` raised when the remote side reported a failure

    No call is retried.
    """

    def __init__(self, config: ChannelConfig):
        """Create a connector using a caller-supplied channel configuration.

        Credentials, interceptors and options all come from ``config``.

        Args:
            config: Channel configuration
        """
        self._config = config
        self._lifecycle = TerminationStateMachine(f"ServiceConnector({config.endpoint})")
        self._lock = threading.Lock()
        self._pending: set[grpc.Future] = set()
        self._blocking_calls = 0
        self._closed = False

        self._raw_channel, self._channel = config.build_channel()
        self._adapter = InvocationAdapter(
            dispatch=self._dispatch, cancel_on_timeout=config.cancel_on_timeout
        )
        self._lifecycle.mark_running()
        logger.info(f"ServiceConnector created for {config.endpoint} (secure={config.secure})")

    @classmethod
    def for_address(cls, host: str, port: int) -> "ServiceConnector":
        """Plaintext, unauthenticated connector for ``host:port``.

        The port never selects TLS; use a ``ChannelConfig`` with
        credentials for a secure channel.

        Args:
            host: Fully qualified host name
            port: Port number in [1, 65536)
        """
        return cls(ChannelConfig.insecure(host, port))

    @property
    def channel(self) -> grpc.Channel:
        return self._channel

    @property
    def endpoint(self) -> Endpoint:
        return self._config.endpoint

    @property
    def state(self) -> LifecycleState:
        return self._lifecycle.state

    @property
    def in_flight(self) -> int:
        """Number of calls dispatched and not yet completed."""
        with self._lock:
            return len(self._pending) + self._blocking_calls

    def is_terminated(self) -> bool:
        return self._lifecycle.is_terminated

    def shutdown(self, force: bool = False) -> "ServiceConnector":
        """Shut the connection down.

        Graceful: new calls are refused and the channel closes once the
        calls in flight complete. Forced: in-flight calls are cancelled and
        the channel closes at once. Safe to call repeatedly; never raises.

        Args:
            force: Cancel in-flight calls

        Returns:
            self, so a wait can be chained
        """
        with self._lock:
            action = self._lifecycle.request_shutdown(force)
            if action is ShutdownAction.NONE:
                return self
            pending = list(self._pending)
            drained = not pending and self._blocking_calls == 0

        logger.info(
            f"Shutting down connector to {self._config.endpoint} "
            f"({action.value}, in_flight={len(pending)})"
        )

        if action is ShutdownAction.FORCED:
            for future in pending:
                future.cancel()
            self._close()
        elif drained:
            self._close()
        return self

    def block_until_shutdown(self, timeout_ms: Optional[int] = None) -> bool:
        """Wait until the channel has terminated.

        Args:
            timeout_ms: Max wait in milliseconds; None waits forever

        Returns:
            True if shutdown completed, False on timeout
        """
        return self._lifecycle.await_termination(millis_to_seconds(timeout_ms))

    def configure(self, conf: Configuration, timeout_ms: int = 0) -> Optional[ConfigResult]:
        """Configure the remote endpoint.

        Args:
            conf: The configuration
            timeout_ms: Max wait in milliseconds; 0 waits forever

        Returns:
            The ConfigResult, or None if the wait timed out

        Raises:
            RemoteError: If the remote side reported a non-OK status
            InterruptedWait: If the call was cancelled while waiting
        """
        stub = DiscoveryStub(self._channel)
        outcome: CallOutcome[ConfigResult] = self._adapter.invoke(
            stub.Configure, conf, timeout_ms
        )
        return outcome.unwrap()

    def ping(self, timeout_ms: int = 0) -> bool:
        """Do nothing remotely; useful to wait until a server is ready.

        Args:
            timeout_ms: Max wait in milliseconds; 0 waits forever

        Returns:
            True if the peer answered, False if the wait timed out

        Raises:
            RemoteError: If the remote side reported a non-OK status
            InterruptedWait: If the call was cancelled while waiting
        """
        stub = DiscoveryStub(self._channel)
        outcome = self._adapter.invoke(stub.Ping, Empty(), timeout_ms)
        if outcome.timed_out:
            return False
        outcome.unwrap()
        return True

    def discover_endpoints(self) -> ServiceEndpoints:
        """List the endpoints the peer advertises (blocking, no deadline).

        Raises:
            RemoteError: If the remote side reported a non-OK status
        """
        self._begin_blocking_call()
        try:
            stub = DiscoveryStub(self._channel)
            outcome: CallOutcome[ServiceEndpoints] = self._adapter.call(
                stub.DiscoverEndpoints, Empty()
            )
        finally:
            self._end_blocking_call()

        result = outcome.unwrap()
        assert result is not None
        return result

    def _refuse_if_shutdown(self) -> None:
        # Caller holds self._lock
        if self._lifecycle.is_shutdown:
            raise RemoteError("UNAVAILABLE", f"Channel to {self._config.endpoint} is shut down")

    def _dispatch(self, multicallable: grpc.UnaryUnaryMultiCallable, request: Any) -> grpc.Future:
        with self._lock:
            self._refuse_if_shutdown()
            future = multicallable.future(request)
            self._pending.add(future)
        # Runs immediately if the future is already done
        future.add_done_callback(self._on_call_done)
        return future

    def _on_call_done(self, future: grpc.Future) -> None:
        with self._lock:
            self._pending.discard(future)
            drained = self._drained_after_shutdown()
        if drained:
            self._close()

    def _begin_blocking_call(self) -> None:
        with self._lock:
            self._refuse_if_shutdown()
            self._blocking_calls += 1

    def _end_blocking_call(self) -> None:
        with self._lock:
            self._blocking_calls -= 1
            drained = self._drained_after_shutdown()
        if drained:
            self._close()

    def _drained_after_shutdown(self) -> bool:
        # Caller holds self._lock
        return (
            self._lifecycle.is_shutdown
            and not self._pending
            and self._blocking_calls == 0
        )

    def _close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._raw_channel.close()
        except Exception as e:
            logger.warning(f"Error closing channel to {self._config.endpoint}: {e}")
        if self._lifecycle.mark_terminated():
            logger.info(f"Connector to {self._config.endpoint} terminated")

    def __enter__(self) -> "ServiceConnector":
        return self

    def __exit__(self, *exc_info: object) -> None:
        # Calls still pending here were abandoned after a timeout
        self.shutdown(force=True).block_until_shutdown()
