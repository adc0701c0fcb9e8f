"""
Fixed-window admission control: at most N requests per client per window.
Requests over the limit are rejected, never queued.
"""

import threading
import time
from typing import Callable, Dict, Tuple


class FixedWindowRateLimiter:
    """Per-client request counter reset at fixed window boundaries."""

    def __init__(self, max_requests: int = 60, window_sec: float = 60.0, clock: Callable[[], float] = time.monotonic):
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_sec <= 0:
            raise ValueError("window_sec must be positive")

        self.max_requests = max_requests
        self.window_sec = window_sec
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: Dict[str, Tuple[int, int]] = {}  # client -> (window index, count)

    def allow(self, client_id: str) -> bool:
        """Count one request for client_id; False once the window is exhausted."""
        window = int(self._clock() // self.window_sec)

        with self._lock:
            current_window, count = self._windows.get(client_id, (window, 0))
            if current_window != window:
                count = 0

            if count >= self.max_requests:
                self._windows[client_id] = (window, count)
                return False

            self._windows[client_id] = (window, count + 1)
            self._evict_stale(window)
            return True

    def retry_after(self) -> int:
        """Seconds until the current window closes."""
        now = self._clock()
        remaining = self.window_sec - (now % self.window_sec)
        return max(1, int(round(remaining)))

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _evict_stale(self, window: int) -> None:
        # Bounded memory: drop clients whose window has passed
        if len(self._windows) > 10000:
            self._windows = {k: v for k, v in self._windows.items() if v[0] == window}
