"""Shared test helpers: gRPC doubles and Discovery handlers."""

import threading
from typing import Any, Callable, Optional
from unittest.mock import MagicMock

import grpc

from servicelink.protocol.models import (
    ConfigResult,
    ConfigStatus,
    Configuration,
    Empty,
)
from servicelink.protocol.service import DiscoveryServicer


class FakeRpcError(grpc.RpcError):
    """RpcError carrying a status like the ones grpc raises from calls."""

    def __init__(self, code: grpc.StatusCode, details: str = ""):
        super().__init__(details)
        self._code = code
        self._details = details

    def code(self) -> grpc.StatusCode:
        return self._code

    def details(self) -> str:
        return self._details


class FakeFuture:
    """Minimal grpc.Future: completes on demand, runs done callbacks."""

    def __init__(self, value: Any = None, error: Optional[Exception] = None, done: bool = True):
        self._value = value
        self._error = error
        self._done = done
        self._cancelled = False
        self._callbacks: list[Callable[["FakeFuture"], None]] = []
        self._cond = threading.Condition()
        self.result_timeouts: list[Optional[float]] = []

    def result(self, timeout: Optional[float] = None) -> Any:
        self.result_timeouts.append(timeout)
        with self._cond:
            if not self._cond.wait_for(lambda: self._done, timeout=timeout):
                raise grpc.FutureTimeoutError()
        if self._cancelled:
            raise grpc.FutureCancelledError()
        if self._error is not None:
            raise self._error
        return self._value

    def complete(self, value: Any = None, error: Optional[Exception] = None) -> None:
        with self._cond:
            self._value = value
            self._error = error
            self._done = True
            self._cond.notify_all()
        self._run_callbacks()

    def cancel(self) -> bool:
        with self._cond:
            if self._done:
                return False
            self._cancelled = True
            self._done = True
            self._cond.notify_all()
        self._run_callbacks()
        return True

    def cancelled(self) -> bool:
        return self._cancelled

    def done(self) -> bool:
        return self._done

    def add_done_callback(self, fn: Callable[["FakeFuture"], None]) -> None:
        with self._cond:
            if not self._done:
                self._callbacks.append(fn)
                return
        fn(self)

    def _run_callbacks(self) -> None:
        callbacks, self._callbacks = self._callbacks, []
        for fn in callbacks:
            fn(self)


def make_multicallable(future: FakeFuture, blocking_value: Any = None) -> MagicMock:
    """Create a mock UnaryUnaryMultiCallable returning ``future`` from .future()."""
    multicallable = MagicMock()
    multicallable.future.return_value = future
    multicallable.return_value = blocking_value
    return multicallable


def make_channel(multicallables: dict[str, MagicMock]) -> MagicMock:
    """Create a mock channel whose unary_unary() returns per-method callables.

    Keys are method names: ``Configure``, ``Ping``, ``DiscoverEndpoints``.
    """
    channel = MagicMock()

    def unary_unary(path: str, **kwargs: Any) -> MagicMock:
        return multicallables.get(path.rsplit("/", 1)[-1], MagicMock())

    channel.unary_unary.side_effect = unary_unary
    return channel


def make_server() -> MagicMock:
    """Create a mock grpc.Server whose stop() completes immediately."""
    server = MagicMock()
    server.add_insecure_port.return_value = 50051
    server.add_secure_port.return_value = 50051

    def stop(grace: Optional[float]) -> threading.Event:
        event = threading.Event()
        event.set()
        return event

    server.stop.side_effect = stop
    return server


class WarningHandler(DiscoveryServicer):
    """Answers every configure with WARNING."""

    def __init__(self) -> None:
        self.configure_calls = 0

    def configure(self, request: Configuration, context: grpc.ServicerContext) -> ConfigResult:
        self.configure_calls += 1
        return ConfigResult(status=ConfigStatus.WARNING)

    def ping(self, request: Empty, context: grpc.ServicerContext) -> Empty:
        return Empty()


class SlowHandler(WarningHandler):
    """Holds configure until released or ``delay`` seconds pass."""

    def __init__(self, delay: float = 5.0) -> None:
        super().__init__()
        self.delay = delay
        self.entered = threading.Event()
        self.release = threading.Event()

    def configure(self, request: Configuration, context: grpc.ServicerContext) -> ConfigResult:
        self.entered.set()
        self.release.wait(self.delay)
        return super().configure(request, context)


class UnavailableHandler(DiscoveryServicer):
    """Fails configure with an UNAVAILABLE status."""

    def configure(self, request: Configuration, context: grpc.ServicerContext) -> ConfigResult:
        context.abort(grpc.StatusCode.UNAVAILABLE, "UNAVAILABLE")
        raise AssertionError("abort() must raise")
