"""Sliding-window request budget shared by all callers of a provider."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable


class RateWindow:
    """Sliding window of request timestamps with a fixed capacity.

    At any instant the number of admitted requests within the last
    ``window_seconds`` never exceeds ``capacity``. ``try_admit`` performs the
    check and the append under one lock so concurrent investigations
    cannot both take the last slot.
    """

    def __init__(
        self,
        capacity: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the window.

        Args:
            capacity: Maximum requests admitted per window.
            window_seconds: Window length in seconds.
            clock: Monotonic time source (seconds); injectable for tests.
        """
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.capacity = capacity
        self.window_seconds = window_seconds
        self._clock = clock
        self._timestamps: deque[float] = deque()
        self._lock = threading.Lock()

    def _prune(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= self.window_seconds:
            self._timestamps.popleft()

    def can_admit(self) -> bool:
        """Drop expired timestamps and report whether a request fits."""
        with self._lock:
            self._prune(self._clock())
            return len(self._timestamps) < self.capacity

    def admit(self) -> None:
        """Record one attempted request at the current time."""
        with self._lock:
            self._timestamps.append(self._clock())

    def try_admit(self) -> bool:
        """Atomically check capacity and record the request if it fits.

        Returns:
            True if the request was admitted.
        """
        with self._lock:
            now = self._clock()
            self._prune(now)
            if len(self._timestamps) >= self.capacity:
                return False
            self._timestamps.append(now)
            return True

    @property
    def in_flight(self) -> int:
        """Number of requests counted in the current window."""
        with self._lock:
            self._prune(self._clock())
            return len(self._timestamps)
