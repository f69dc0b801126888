"""Process-wide, lazily established handle to the backing store.

Request threads share one ``ConnectionCache``. The first caller starts the
connection attempt; callers that arrive while it is running wait on the same
future instead of starting their own. A failed attempt or a reported
disconnect puts the cache back to ``UNINITIALIZED`` so the next caller starts
over.
"""
import enum
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from .errors import StoreUnavailable
from .models import Base

logger = logging.getLogger(__name__)


class State(enum.Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class _Attempt:
    __slots__ = ("future", "handle")

    def __init__(self):
        self.future = Future()
        self.handle = None


class ConnectionCache:
    """Single-flight cache around a ``connect(on_disconnect)`` callable.

    ``connect`` returns a handle or raises. It receives a callback to invoke
    when the store later reports a connection-level failure on that handle.
    """

    def __init__(self, connect: Callable[[Callable[[], None]], Any]):
        self._connect = connect
        self._lock = threading.Lock()
        self._state = State.UNINITIALIZED
        self._handle = None
        self._pending: Optional[_Attempt] = None

    @property
    def state(self) -> State:
        return self._state

    def get_connection(self):
        with self._lock:
            if self._state is State.CONNECTED:
                return self._handle
            attempt = self._pending
            owner = attempt is None
            if owner:
                attempt = self._pending = _Attempt()
                self._state = State.CONNECTING

        if not owner:
            # Raises the same StoreUnavailable the owner got.
            return attempt.future.result()

        logger.info("Connecting to backing store")
        try:
            handle = self._connect(lambda: self._on_disconnect(attempt))
        except BaseException as exc:
            logger.error("Backing store connection failed: %s", exc)
            error = StoreUnavailable(detail={"reason": str(exc) or type(exc).__name__})
            error.__cause__ = exc
            with self._lock:
                self._pending = None
                self._state = State.UNINITIALIZED
            attempt.future.set_exception(error)
            if not isinstance(exc, Exception):
                # SystemExit and friends keep propagating; waiters still get released.
                raise
            raise error

        with self._lock:
            attempt.handle = handle
            self._handle = handle
            self._pending = None
            self._state = State.CONNECTED
        attempt.future.set_result(handle)
        logger.info("Backing store connected")
        return handle

    def invalidate(self, handle=None):
        """Drop the cached handle. A ``handle`` that is no longer current is ignored."""
        with self._lock:
            if self._state is not State.CONNECTED:
                return
            if handle is not None and handle is not self._handle:
                return
            stale, self._handle = self._handle, None
            self._state = State.UNINITIALIZED
        logger.warning("Backing store connection invalidated; next request reconnects")
        close = getattr(stale, "close", None)
        if close is not None:
            try:
                close()
            except Exception:
                logger.exception("Error closing stale store handle")

    def _on_disconnect(self, attempt):
        if attempt.handle is not None:
            self.invalidate(attempt.handle)


class StoreHandle:
    """An engine plus its session factory."""

    def __init__(self, engine):
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    def session(self):
        return self._sessions()

    def close(self):
        self.engine.dispose()


def _connect_args(url, connect_timeout):
    backend = make_url(url).get_backend_name()
    if backend == "sqlite":
        return {"timeout": connect_timeout}
    if backend in ("postgresql", "mysql", "mariadb"):
        return {"connect_timeout": max(1, int(connect_timeout))}
    return {}


def sqlalchemy_connector(url: str, connect_timeout: float, idle_timeout: float):
    """Build the ``connect`` callable used in production.

    The engine is verified with ``SELECT 1`` and the schema created before the
    handle is returned, so a cached handle is known to have worked once.
    """

    def connect(on_disconnect):
        engine = create_engine(
            url,
            pool_pre_ping=True,
            pool_recycle=int(idle_timeout),
            connect_args=_connect_args(url, connect_timeout),
        )

        @event.listens_for(engine, "handle_error")
        def _handle_error(context):
            if context.is_disconnect:
                logger.warning("Backing store reported a disconnect")
                on_disconnect()

        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            Base.metadata.create_all(engine)
        except Exception:
            engine.dispose()
            raise
        return StoreHandle(engine)

    return connect
