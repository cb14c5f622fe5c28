import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Hashable, Optional, TypeVar

from quizworld.errors import UpstreamUnavailable

T = TypeVar('T')


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    fetched_at: float


class ReferenceCache(Generic[T]):
    """TTL read-through cache in front of a slow upstream loader.

    - Fresh entries are served without touching the loader.
    - At most one loader call is in flight per key; callers arriving during a
      refresh wait on the same future and get the same outcome.
    - A failed refresh falls back to the stale entry when there is one,
      otherwise it raises UpstreamUnavailable.

    Values are handed out as-is, so loaders should return immutable data.
    """

    def __init__(
        self,
        loader: Callable[[Hashable], T],
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ):
        if ttl_seconds <= 0:
            raise ValueError('ttl_seconds must be positive')
        self._loader = loader
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._entries: Dict[Hashable, CacheEntry[T]] = {}
        self._inflight: Dict[Hashable, Future] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, key: Hashable) -> T:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._clock() - entry.fetched_at < self._ttl:
                return entry.value
            future = self._inflight.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._inflight[key] = future
        if not leader:
            return future.result()
        return self._refresh(key, future, entry)

    def peek(self, key: Hashable) -> Optional[T]:
        """Cached value for ``key`` (fresh or stale) without fetching."""
        with self._lock:
            entry = self._entries.get(key)
        return entry.value if entry is not None else None

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def _refresh(self, key: Hashable, future: Future, stale: Optional[CacheEntry[T]]) -> T:
        try:
            value = self._loader(key)
        except Exception as exc:
            self._release(key)
            if stale is not None:
                self._logger.warning(f"[cache-stale] key={key} serving stale value after upstream error: {exc}")
                future.set_result(stale.value)
                return stale.value
            self._logger.error(f"[cache-miss-failed] key={key} upstream error: {exc}")
            error = UpstreamUnavailable(f'Reference data for {key!r} is unavailable')
            error.__cause__ = exc
            future.set_exception(error)
            raise error
        except BaseException:
            # Interrupted (greenlet kill, eventlet timeout): unblock waiters, keep no marker
            self._release(key)
            self._logger.warning(f"[cache-interrupted] key={key}")
            if stale is not None:
                future.set_result(stale.value)
            else:
                future.set_exception(UpstreamUnavailable(f'Refresh of {key!r} was interrupted'))
            raise

        with self._lock:
            self._entries[key] = CacheEntry(value=value, fetched_at=self._clock())
            self._inflight.pop(key, None)
        self._logger.info(f"[cache-refresh] key={key} size={_size_of(value)}")
        future.set_result(value)
        return value

    def _release(self, key: Hashable) -> None:
        with self._lock:
            self._inflight.pop(key, None)


def _size_of(value: Any) -> Any:
    try:
        return len(value)
    except TypeError:
        return '-'
