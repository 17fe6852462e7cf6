"""Signal-driven, one-shot graceful shutdown."""

import signal
import threading
import time
from typing import Optional

from shared.logging import get_logger
from .config import SHUTDOWN_TIMEOUT
from .listeners import Listener, ListenerError, ServerSet

logger = get_logger(__name__)

# Poll interval for the main-thread wait so signals are handled on every platform
WAIT_POLL_INTERVAL = 0.5


class ShutdownCoordinator:
    """Waits for SIGINT/SIGTERM (or a listener failure) and drains the ServerSet.

    The first trigger wins; later signals during shutdown are ignored. All
    listeners share one deadline, ``timeout`` seconds after that trigger.
    """

    def __init__(self, timeout: float = SHUTDOWN_TIMEOUT):
        self.timeout = timeout
        self.reason: Optional[str] = None
        self.failed = False
        self.triggered_at: Optional[float] = None
        self._event = threading.Event()
        self._lock = threading.RLock()
        self._drained = False

    def install_signal_handlers(self) -> None:
        """Must be called from the main thread."""
        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)

    def _handle_signal(self, signum, frame) -> None:
        self.trigger(f"signal {signal.Signals(signum).name}")

    def trigger(self, reason: str, failed: bool = False) -> bool:
        """Start shutdown. Returns False if it had already started."""
        with self._lock:
            if self._event.is_set():
                return False
            self.reason = reason
            self.failed = failed
            self.triggered_at = time.monotonic()
            self._event.set()
            return True

    def on_listener_failure(self, listener: Listener, error: ListenerError) -> None:
        self.trigger(f"{listener.spec.name} listener failed: {error}", failed=True)

    @property
    def triggered(self) -> bool:
        return self._event.is_set()

    @property
    def deadline(self) -> float:
        start = self.triggered_at if self.triggered_at is not None else time.monotonic()
        return start + self.timeout

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until shutdown is triggered (or ``timeout`` elapses)."""
        if timeout is not None:
            return self._event.wait(timeout)
        while not self._event.wait(WAIT_POLL_INTERVAL):
            pass
        return True

    def drain(self, servers: ServerSet) -> list[Listener]:
        """Stop every listener in ``servers``; runs at most once."""
        with self._lock:
            if self._drained:
                return []
            self._drained = True

        logger.info(f"SHUTDOWN SIGNAL RECEIVED ({self.reason}): Stopping servers...")
        forced = servers.shutdown(self.deadline)
        for listener in forced:
            logger.warning(
                f"Server forced to shutdown: {listener.spec.address} did not stop within {self.timeout:g}s"
            )
        return forced
