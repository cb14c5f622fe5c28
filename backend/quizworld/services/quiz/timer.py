import math
import threading
import time
from typing import Callable, Optional

from quizworld.errors import TimerStateError

IDLE = 'idle'
RUNNING = 'running'
EXPIRED = 'expired'
CANCELLED = 'cancelled'


def spawn_thread(fn, *args):
    worker = threading.Thread(target=fn, args=args, daemon=True)
    worker.start()
    return worker


class RoundTimer:
    """Single-use countdown: idle -> running -> expired | cancelled.

    - ``on_expire`` fires at most once, from the countdown worker or ``fire()``
    - ``cancel()`` and expiry race on one lock; whichever takes it first wins
    - a timer in a terminal state cannot be restarted, make a new one

    ``spawn(fn, *args)`` runs the countdown worker in the background; the
    server passes ``socketio.start_background_task``.
    """

    def __init__(self, spawn: Optional[Callable] = None, clock: Callable[[], float] = time.monotonic):
        self._spawn = spawn or spawn_thread
        self._clock = clock
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._state = IDLE
        self._deadline: Optional[float] = None
        self._on_expire: Optional[Callable[[], None]] = None

    @property
    def state(self) -> str:
        return self._state

    @property
    def remaining_seconds(self) -> int:
        with self._lock:
            if self._state != RUNNING or self._deadline is None:
                return 0
            return max(0, math.ceil(self._deadline - self._clock()))

    def start(self, duration_seconds: float, on_expire: Callable[[], None]) -> None:
        if duration_seconds < 0:
            raise ValueError('duration_seconds must not be negative')
        with self._lock:
            if self._state != IDLE:
                raise TimerStateError(f'Timer already {self._state}; create a new one')
            self._state = RUNNING
            self._on_expire = on_expire
            self._deadline = self._clock() + duration_seconds
        self._spawn(self._countdown, duration_seconds)

    def cancel(self) -> bool:
        """Stop the countdown. Returns False if it had already ended."""
        with self._lock:
            if self._state != RUNNING:
                return False
            self._state = CANCELLED
            self._on_expire = None
        self._stop.set()
        return True

    def fire(self) -> bool:
        """End the countdown now, as if the duration had elapsed."""
        with self._lock:
            if self._state != RUNNING:
                return False
            self._state = EXPIRED
            callback, self._on_expire = self._on_expire, None
        self._stop.set()
        if callback is not None:
            callback()
        return True

    def _countdown(self, duration_seconds: float) -> None:
        if self._stop.wait(duration_seconds):
            return
        self.fire()
