"""Termination state machine shared by acceptors and connectors."""

import logging
import threading
from enum import Enum
from typing import Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class LifecycleState(str, Enum):
    """Lifecycle states. There is no transition out of TERMINATED."""

    CREATED = "created"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


class ShutdownAction(str, Enum):
    """What the caller of ``request_shutdown`` has to do."""

    NONE = "none"
    GRACEFUL = "graceful"
    FORCED = "forced"


class TerminationStateMachine:
    """Thread-safe lifecycle state with idempotent shutdown.

    Every transition happens under a single lock, so when several threads
    (e.g. an exit hook and application code) request shutdown at once only
    one of them is told to release resources; the others get
    ``ShutdownAction.NONE``.

    A forced request arriving while a graceful shutdown is still draining is
    an escalation and is granted exactly once.
    """

    def __init__(self, name: str):
        """Initialize state machine.

        Args:
            name: Owner name used in log messages
        """
        self._name = name
        self._state = LifecycleState.CREATED
        self._forced = False
        self._cond = threading.Condition(threading.Lock())

    @property
    def state(self) -> LifecycleState:
        with self._cond:
            return self._state

    @property
    def forced(self) -> bool:
        with self._cond:
            return self._forced

    @property
    def is_running(self) -> bool:
        return self.state is LifecycleState.RUNNING

    @property
    def is_shutdown(self) -> bool:
        return self.state in (LifecycleState.SHUTTING_DOWN, LifecycleState.TERMINATED)

    @property
    def is_terminated(self) -> bool:
        return self.state is LifecycleState.TERMINATED

    def mark_running(self) -> bool:
        """Move CREATED -> RUNNING.

        Returns:
            True if the transition happened, False if not in CREATED
        """
        with self._cond:
            if self._state is not LifecycleState.CREATED:
                return False
            self._state = LifecycleState.RUNNING
        logger.debug(f"{self._name}: running")
        return True

    def request_shutdown(self, force: bool = False) -> ShutdownAction:
        """Record a shutdown request and tell the caller what to do.

        Args:
            force: Cancel in-flight work instead of letting it drain

        Returns:
            GRACEFUL or FORCED if the caller won the transition (or the
            escalation), NONE if there is nothing left to do
        """
        with self._cond:
            if self._state is LifecycleState.TERMINATED:
                return ShutdownAction.NONE

            if self._state is LifecycleState.SHUTTING_DOWN:
                if force and not self._forced:
                    self._forced = True
                    action = ShutdownAction.FORCED
                else:
                    return ShutdownAction.NONE
            else:
                self._state = LifecycleState.SHUTTING_DOWN
                self._forced = force
                action = ShutdownAction.FORCED if force else ShutdownAction.GRACEFUL

        logger.debug(f"{self._name}: shutdown requested ({action.value})")
        return action

    def mark_terminated(self) -> bool:
        """Move to TERMINATED and wake every waiter.

        Returns:
            True if this call made the transition
        """
        with self._cond:
            if self._state is LifecycleState.TERMINATED:
                return False
            self._state = LifecycleState.TERMINATED
            self._cond.notify_all()
        logger.debug(f"{self._name}: terminated")
        return True

    def await_termination(self, timeout: Optional[float] = None) -> bool:
        """Block until TERMINATED or until ``timeout`` seconds elapse.

        Args:
            timeout: Seconds to wait; None waits forever, 0 only checks

        Returns:
            True if TERMINATED was reached
        """
        if timeout is not None and timeout < 0:
            raise ValueError(f"timeout must be >= 0, got {timeout}")

        with self._cond:
            return self._cond.wait_for(
                lambda: self._state is LifecycleState.TERMINATED, timeout=timeout
            )


def millis_to_seconds(timeout_ms: Optional[int]) -> Optional[float]:
    """Convert a millisecond timeout to seconds, keeping None as unbounded."""
    if timeout_ms is None:
        return None
    if timeout_ms < 0:
        raise ValueError(f"timeout_ms must be >= 0, got {timeout_ms}")
    return timeout_ms / 1000.0


@runtime_checkable
class ManagedService(Protocol):
    """Protocol for objects driven by a termination state machine."""

    def shutdown(self, force: bool = False) -> "ManagedService":
        """Request shutdown; idempotent and non-blocking."""
        ...

    def block_until_shutdown(self, timeout_ms: Optional[int] = None) -> bool:
        """Wait for termination; True if terminated within the bound."""
        ...

    def is_terminated(self) -> bool:
        """Check if the service reached its terminal state."""
        ...
