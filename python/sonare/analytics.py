"""
Request analytics recording.

Each tracked request produces one log line immediately and one database row
written later on a worker thread, after the GeoIP lookup. The request never
waits for the lookup or the write, and a failure in either is only logged.
"""

import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional

from starlette.requests import Request

from shared.logging import get_logger
from . import geoip, store
from .config import ANALYTICS_WORKERS
from .database import Database

logger = get_logger(__name__)

# Monitoring probes are not visitor traffic
UNTRACKED_PATHS = frozenset({"/healthz"})

GeoLookup = Callable[[str], tuple[str, str]]


@dataclass(frozen=True)
class RequestInfo:
    ip: str
    user_agent: str
    path: str
    method: str


def client_ip(request: Request) -> str:
    """X-Forwarded-For when a proxy sets it, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded
    if request.client is not None:
        return request.client.host
    return ""


def request_info(request: Request) -> RequestInfo:
    return RequestInfo(
        ip=client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
        path=request.url.path,
        method=request.method,
    )


class AnalyticsRecorder:
    """Dispatches analytics writes onto a thread pool."""

    def __init__(
        self,
        db: Database,
        geo_lookup: GeoLookup = geoip.lookup,
        executor: Optional[Executor] = None,
    ):
        self.db = db
        self.geo_lookup = geo_lookup
        self.executor = executor or ThreadPoolExecutor(
            max_workers=ANALYTICS_WORKERS, thread_name_prefix="analytics"
        )
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def should_track(self, path: str) -> bool:
        return path not in UNTRACKED_PATHS

    def track(self, request: Request) -> None:
        """Log the request and schedule its persistence. Never raises."""
        if not self.should_track(request.url.path):
            return

        try:
            info = request_info(request)
            logger.info(f"REQUEST: [{info.method}] {info.path} {info.ip} | UA: {info.user_agent}")
            future = self.executor.submit(self._persist, info)
            with self._lock:
                self._pending.add(future)
            future.add_done_callback(self._forget)
        except Exception as e:
            logger.error(f"ANALYTICS ERROR: could not schedule write: {e}")

    def _persist(self, info: RequestInfo) -> None:
        try:
            country, city = self.geo_lookup(info.ip)
            with self.db.session() as session:
                store.save_analytics(
                    session,
                    ip=info.ip,
                    user_agent=info.user_agent,
                    path=info.path,
                    method=info.method,
                    country=country,
                    city=city,
                )
        except Exception as e:
            logger.error(f"DB ERROR (Analytics): {e}")

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def close(self, wait: bool = True, cancel_pending: bool = False) -> int:
        """Stop the writer pool. Returns how many queued writes were dropped.

        With ``cancel_pending`` writes that have not started are cancelled;
        writes already running are left to finish on their own.
        """
        dropped = 0
        if cancel_pending:
            with self._lock:
                pending = list(self._pending)
            dropped = sum(1 for future in pending if future.cancel())
            if dropped:
                logger.warning(f"ANALYTICS: dropped {dropped} queued write(s) at shutdown")
        self.executor.shutdown(wait=wait, cancel_futures=cancel_pending)
        return dropped
