"""Server side: binds a service implementation to a listening port."""

import atexit
import logging
import sys
import threading
from typing import Optional

import grpc

from servicelink.exceptions import BindError, LifecycleError, ListenerStartError
from servicelink.protocol.service import BindableService
from servicelink.rpc.lifecycle import (
    LifecycleState,
    ShutdownAction,
    TerminationStateMachine,
    millis_to_seconds,
)
from servicelink.rpc.transport import ServerConfig

logger = logging.getLogger(__name__)


class ServiceAcceptor:
    """gRPC server for a bindable service.

    Lifecycle:
    - constructor builds the server and binds the port (``BindError`` on failure)
    - ``start()`` serves on the transport's worker threads and returns at once
    - ``shutdown()`` is idempotent and non-blocking; ``block_until_shutdown()``
      waits for the server to terminate

    Usage:
        acceptor = ServiceAcceptor(9001, MyServicer())
        acceptor.start()
        acceptor.block_until_shutdown()
    """

    def __init__(
        self,
        port: int,
        service: BindableService,
        config: Optional[ServerConfig] = None,
    ):
        """Create a server listening on ``port``.

        Args:
            port: Port to listen on; 0 picks a free port
            service: Service used to handle requests
            config: Transport configuration (defaults from settings)

        Raises:
            BindError: If the port cannot be acquired
        """
        if not 0 <= port < 65536:
            raise ValueError(f"port must be in [0, 65536), got {port}")

        self._config = config or ServerConfig.from_settings()
        self._service = service
        self._lifecycle = TerminationStateMachine(f"ServiceAcceptor(port={port})")
        self._start_lock = threading.Lock()
        self._release_lock = threading.Lock()
        self._released = False
        self._exit_hook_registered = False

        self._server, self._executor = self._config.build_server()
        service.add_to_server(self._server)

        try:
            bound_port = self._config.bind(self._server, port)
        except RuntimeError as e:
            # Newer grpcio raises instead of returning 0
            self._executor.shutdown(wait=False)
            raise BindError(f"Failed to bind {self._config.address(port)}: {e}") from e

        if bound_port == 0:
            self._executor.shutdown(wait=False)
            raise BindError(f"Failed to bind {self._config.address(port)}")

        self._port = bound_port
        logger.info(
            f"ServiceAcceptor bound to {self._config.address(bound_port)} "
            f"(secure={self._config.secure}, max_workers={self._config.max_workers})"
        )

    @property
    def server(self) -> grpc.Server:
        return self._server

    @property
    def port(self) -> int:
        """Bound port (the OS-assigned one when constructed with port 0)."""
        return self._port

    @property
    def state(self) -> LifecycleState:
        return self._lifecycle.state

    def is_terminated(self) -> bool:
        return self._lifecycle.is_terminated

    def start(self) -> "ServiceAcceptor":
        """Start serving requests. Requests are handled on worker threads.

        Registers an exit hook that shuts the server down gracefully if the
        process exits while it is still running.

        Raises:
            LifecycleError: If already started or shut down
            ListenerStartError: If the listener cannot start
        """
        # A shutdown requested meanwhile waits until the server is started
        with self._start_lock:
            if not self._lifecycle.mark_running():
                raise LifecycleError(
                    f"Cannot start acceptor in state {self._lifecycle.state.value}"
                )

            try:
                self._server.start()
            except Exception as e:
                logger.error(f"Failed to start server on port {self._port}: {e}", exc_info=True)
                self._lifecycle.request_shutdown(force=True)
                self._release()
                raise ListenerStartError(
                    f"Failed to start server on port {self._port}: {e}"
                ) from e

            self._register_exit_hook()

        logger.info(f"Server started, listening on {self._port}")
        return self

    def shutdown(self, force: bool = False) -> "ServiceAcceptor":
        """Stop serving requests and release resources.

        Safe to call any number of times from any thread. A forced call
        while a graceful shutdown is draining cancels the remaining RPCs.

        Args:
            force: Cancel in-flight RPCs instead of letting them finish

        Returns:
            self, so a wait can be chained
        """
        with self._start_lock:
            action = self._lifecycle.request_shutdown(force)
        if action is ShutdownAction.NONE:
            return self

        grace = None if action is ShutdownAction.FORCED else self._config.grace_seconds
        logger.info(
            f"Shutting down server on port {self._port} "
            f"({action.value}, grace={grace})"
        )

        stopper = threading.Thread(
            target=self._stop_server,
            args=(grace,),
            name=f"servicelink-acceptor-stop-{self._port}",
            daemon=True,
        )
        try:
            stopper.start()
        except RuntimeError as e:
            # No new threads while the interpreter is finalizing
            logger.warning(f"Stopping server on port {self._port} inline: {e}")
            self._stop_server(grace)
        return self

    def block_until_shutdown(self, timeout_ms: Optional[int] = None) -> bool:
        """Wait until the server has terminated.

        Args:
            timeout_ms: Max wait in milliseconds; None waits forever

        Returns:
            True if shutdown completed, False on timeout
        """
        return self._lifecycle.await_termination(millis_to_seconds(timeout_ms))

    def _stop_server(self, grace: Optional[float]) -> None:
        try:
            # stop() on a server that never started returns a set event
            self._server.stop(grace).wait()
        except RuntimeError as e:
            if grace is None:
                logger.error(f"Error stopping server on port {self._port}: {e}", exc_info=True)
            else:
                # Graceful stop starts a timer thread, which a finalizing
                # interpreter refuses; fall back to an immediate stop.
                self._server.stop(None)
        finally:
            self._release()

    def _release(self) -> None:
        with self._release_lock:
            if self._released:
                return
            self._released = True
        self._executor.shutdown(wait=False)
        self._unregister_exit_hook()
        if self._lifecycle.mark_terminated():
            logger.info(f"Server on port {self._port} terminated")

    def _register_exit_hook(self) -> None:
        if self._exit_hook_registered:
            return
        atexit.register(self._on_process_exit)
        self._exit_hook_registered = True

    def _unregister_exit_hook(self) -> None:
        if not self._exit_hook_registered:
            return
        atexit.unregister(self._on_process_exit)
        self._exit_hook_registered = False

    def _on_process_exit(self) -> None:
        if not self._lifecycle.is_running:
            return
        # The hook is running now; nothing left to unregister
        self._exit_hook_registered = False
        # stderr here: logging may already be torn down during interpreter exit
        sys.stderr.write(
            f"*** shutting down server on port {self._port} since the process is exiting\n"
        )
        with self._start_lock:
            action = self._lifecycle.request_shutdown()
        if action is not ShutdownAction.NONE:
            # Stop inline: no new threads once the interpreter is exiting
            self._stop_server(self._config.grace_seconds)
        sys.stderr.write("*** server shut down\n")

    def __enter__(self) -> "ServiceAcceptor":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown().block_until_shutdown()
