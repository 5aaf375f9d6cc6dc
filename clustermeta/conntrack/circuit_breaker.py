"""A circuit breaker that trips when an event rate stays above a limit."""

from __future__ import annotations

import logging
import sys
import threading
import time
from typing import Optional

logger = logging.getLogger(__name__)

# Seconds between two rate updates done by the background thread.
TICK_INTERVAL = 3.0

# The lower this weight, the more amortized the average: with a weight of 1
# a single burst of events could trip the breaker.
EWMA_WEIGHT = 0.2


class CircuitBreaker:
    """Enforces a maximum rate of events per second.

    The rate is an exponentially weighted moving average, refreshed by
    update(). Once it rises above the limit the breaker opens and stays open
    until reset() is called. Unless ``start`` is False a daemon thread calls
    update() every TICK_INTERVAL seconds until stop() is called.
    """

    def __init__(self, max_events_per_sec: int, *, start: bool = True) -> None:
        # -1 virtually disables the breaker.
        if max_events_per_sec == -1:
            max_events_per_sec = sys.maxsize
        self.max_events_per_sec = max_events_per_sec
        self._lock = threading.Lock()
        self._event_count = 0
        self._event_rate = 0
        self._open = False
        self._last_update = time.time()
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.reset()
        if start:
            self._thread = threading.Thread(
                target=self._run, name="circuit-breaker", daemon=True
            )
            self._thread.start()

    def __enter__(self) -> "CircuitBreaker":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _run(self) -> None:
        while not self._done.wait(TICK_INTERVAL):
            self.update(time.time())

    def is_open(self) -> bool:
        """True once the breaker has tripped, until reset() is called."""
        with self._lock:
            return self._open

    def tick(self, n: int) -> None:
        """Record n events passing through the breaker."""
        with self._lock:
            self._event_count += n

    def rate(self) -> int:
        """The current smoothed rate of events per second."""
        with self._lock:
            return self._event_rate

    def reset(self) -> None:
        """Close the breaker and clear its state."""
        with self._lock:
            self._event_count = 0
            self._event_rate = 0
            self._last_update = time.time()
            self._open = False

    def stop(self) -> None:
        """Stop the background update thread, if any."""
        self._done.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()

    def update(self, now: float) -> None:
        """Recompute the event rate at time ``now`` (seconds since the epoch)."""
        with self._lock:
            if self._open:
                return

            delta = now - self._last_update
            # Avoid dividing by zero, or a spurious spike right after a reset.
            if delta < 1.0:
                delta = 1.0

            event_count = self._event_count
            self._event_count = 0
            prev_rate = self._event_rate
            new_rate = EWMA_WEIGHT * float(event_count) / delta + (1 - EWMA_WEIGHT) * float(prev_rate)

            # On the first measurement the value is not amortized, so that
            # starting above the threshold trips the breaker at once.
            if prev_rate == 0:
                new_rate = float(event_count) / delta

            self._last_update = now
            self._event_rate = int(new_rate)

            if int(new_rate) > self.max_events_per_sec:
                logger.warning(
                    "exceeded maximum number of netlink messages per second. expected=%d actual=%d",
                    self.max_events_per_sec,
                    int(new_rate),
                )
                self._open = True