"""
Network listeners and the per-mode topology.

Each listener is a uvicorn server running on its own daemon thread. The
ServerSet collects them during startup and stops them all against a single
deadline at teardown.
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import uvicorn

from shared.logging import get_logger
from .config import DEFAULT_PORT, HOST, HTTP_PORT, HTTPS_PORT, SHUTDOWN_TIMEOUT
from .modes import RunMode

logger = get_logger(__name__)

# Extra wait after force-exit before giving up on a listener thread
FORCE_EXIT_GRACE = 1.0


class Transport(str, Enum):
    PLAIN = "plain"
    TLS = "tls"


class ListenerError(Exception):
    """A listener stopped without being asked to (bind failure included)."""


@dataclass(frozen=True)
class ListenerSpec:
    """What to bind and what to serve on it."""
    name: str
    host: str
    port: int
    app: object
    transport: Transport = Transport.PLAIN
    cert_file: Optional[str] = None
    key_file: Optional[str] = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def scheme(self) -> str:
        return "https" if self.transport is Transport.TLS else "http"

    def uvicorn_config(self) -> uvicorn.Config:
        tls = {}
        if self.transport is Transport.TLS:
            tls = {"ssl_certfile": self.cert_file, "ssl_keyfile": self.key_file}
        return uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            lifespan="off",
            log_config=None,
            timeout_graceful_shutdown=int(SHUTDOWN_TIMEOUT),
            **tls,
        )


def build_topology(
    mode: RunMode,
    app,
    redirect_app=None,
    port: int = DEFAULT_PORT,
    host: str = HOST,
    cert_file: Optional[str] = None,
    key_file: Optional[str] = None,
) -> list[ListenerSpec]:
    """Listener specs for ``mode``.

    serve-test: one TLS listener on ``port``.
    serve-http / serve-cfd: one plain listener on ``port``.
    serve-prod: plain redirect on 80 plus TLS on 443; ``port`` is ignored.
    view: none.
    """
    if mode is RunMode.TEST:
        return [ListenerSpec("TLS Test", host, port, app, Transport.TLS, cert_file, key_file)]

    if mode in (RunMode.HTTP, RunMode.TUNNEL):
        return [ListenerSpec("HTTP", host, port, app, Transport.PLAIN)]

    if mode is RunMode.PRODUCTION:
        if redirect_app is None:
            raise ValueError("production mode needs a redirect app for port 80")
        return [
            ListenerSpec("HTTP Redirect", host, HTTP_PORT, redirect_app, Transport.PLAIN),
            ListenerSpec("HTTPS", host, HTTPS_PORT, app, Transport.TLS, cert_file, key_file),
        ]

    return []


FailureCallback = Callable[["Listener", ListenerError], None]


class Listener:
    """One uvicorn server on its own thread."""

    def __init__(
        self,
        spec: ListenerSpec,
        on_failure: Optional[FailureCallback] = None,
        server_factory: Callable[[uvicorn.Config], uvicorn.Server] = uvicorn.Server,
    ):
        self.spec = spec
        self.on_failure = on_failure
        self.server = server_factory(spec.uvicorn_config())
        self._stopping = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name=f"listener-{spec.port}", daemon=True
        )

    def start(self) -> None:
        logger.info(f"LISTENING: {self.spec.address} ({self.spec.name}, {self.spec.transport.value})")
        self._thread.start()

    def _run(self) -> None:
        error = None
        try:
            self.server.run()
        except SystemExit as e:
            # uvicorn exits this way when it cannot bind
            error = ListenerError(f"{self.spec.address} failed to start (exit {e.code})")
        except Exception as e:
            error = ListenerError(f"{self.spec.address} crashed: {e}")
            error.__cause__ = e

        if self._stopping.is_set():
            return
        if error is None:
            error = ListenerError(f"{self.spec.address} stopped unexpectedly")

        logger.critical(f"{self.spec.name} Server Failed: {error}")
        if self.on_failure is not None:
            self.on_failure(self, error)

    @property
    def started(self) -> bool:
        return bool(getattr(self.server, "started", False))

    @property
    def alive(self) -> bool:
        return self._thread.is_alive()

    def request_stop(self) -> None:
        """Stop accepting and let in-flight requests finish."""
        self._stopping.set()
        self.server.should_exit = True

    def force_stop(self) -> None:
        self.server.force_exit = True

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the thread; True once it has finished."""
        if self._thread.is_alive():
            self._thread.join(timeout)
        return not self._thread.is_alive()


class ServerSet:
    """Listeners for this run: appended during startup, drained once."""

    def __init__(self):
        self._listeners: list[Listener] = []
        self._sealed = False
        self._drained = False

    def add(self, listener: Listener) -> None:
        if self._sealed:
            raise RuntimeError("ServerSet is sealed once startup completes")
        self._listeners.append(listener)

    def start_all(self) -> None:
        """Start every listener; each runs independently of the others."""
        self._sealed = True
        for listener in self._listeners:
            listener.start()

    def __iter__(self):
        return iter(list(self._listeners))

    def __len__(self) -> int:
        return len(self._listeners)

    def shutdown(self, deadline: float) -> list[Listener]:
        """Stop all listeners by ``deadline`` (a time.monotonic value).

        Returns the listeners that had to be force-closed. Only the first
        call does anything.
        """
        if self._drained:
            return []
        self._drained = True

        for listener in self._listeners:
            listener.request_stop()

        forced = []
        for listener in self._listeners:
            remaining = max(0.0, deadline - time.monotonic())
            if listener.join(remaining):
                continue
            listener.force_stop()
            listener.join(FORCE_EXIT_GRACE)
            forced.append(listener)
        return forced
