"""
In-memory sliding window rate limiter keyed by client identity.

State lives only in this process: nothing is persisted or shared between
instances. Memory is bounded by sweeping idle clients and by a cap on the
number of tracked clients (least recently seen evicted first).
"""

import logging
import math
import threading
import time
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Callable, Deque, Optional

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: Optional[int] = None


class SlidingWindowRateLimiter:
    """
    Sliding window counter.

    Each client keeps an ordered list of request timestamps. On every check,
    timestamps older than the window are pruned; the request is blocked when
    the remaining count already reached ``max_requests``.
    """

    def __init__(
        self,
        window_ms: int,
        max_requests: int,
        max_clients: int = 10000,
        clock: Callable[[], float] = _monotonic_ms
    ):
        """
        Initialize rate limiter.

        Args:
            window_ms: Window length in milliseconds
            max_requests: Requests allowed per client within the window
            max_clients: Maximum number of client buckets kept in memory
            clock: Returns the current time in milliseconds
        """
        if window_ms <= 0:
            raise ValueError("window_ms must be greater than 0")
        if max_requests <= 0:
            raise ValueError("max_requests must be greater than 0")
        if max_clients <= 0:
            raise ValueError("max_clients must be greater than 0")

        self.window_ms = window_ms
        self.max_requests = max_requests
        self.max_clients = max_clients
        self._clock = clock

        self._windows: "OrderedDict[str, Deque[float]]" = OrderedDict()
        self._lock = threading.Lock()
        self._last_sweep = clock()

    @property
    def retry_after_seconds(self) -> int:
        # Always the full window, not the time until the oldest entry expires
        return math.ceil(self.window_ms / 1000)

    def _sweep(self, window_start: float) -> None:
        """Drop clients whose newest request already left the window."""
        stale = [client for client, stamps in self._windows.items() if not stamps or stamps[-1] <= window_start]
        for client in stale:
            del self._windows[client]
        if stale:
            logger.debug(f"Rate limiter swept {len(stale)} idle client(s)")

    def check(self, client_id: str) -> RateLimitDecision:
        """
        Record a request for ``client_id`` if it is within the limit.

        Args:
            client_id: Client identity (IP address or "unknown")

        Returns:
            RateLimitDecision (allowed, or blocked with retry_after_seconds)
        """
        client_id = client_id or UNKNOWN_CLIENT

        with self._lock:
            now = self._clock()
            window_start = now - self.window_ms

            if now - self._last_sweep >= self.window_ms:
                self._sweep(window_start)
                self._last_sweep = now

            stamps = self._windows.get(client_id)
            if stamps is None:
                stamps = deque()
                self._windows[client_id] = stamps
                if len(self._windows) > self.max_clients:
                    evicted, _ = self._windows.popitem(last=False)
                    logger.warning(f"Rate limiter at capacity ({self.max_clients}), evicted client {evicted}")
            else:
                self._windows.move_to_end(client_id)

            while stamps and stamps[0] <= window_start:
                stamps.popleft()

            if len(stamps) >= self.max_requests:
                logger.warning(
                    f"Rate limit exceeded for client {client_id}: "
                    f"{len(stamps)}/{self.max_requests}"
                )
                return RateLimitDecision(
                    allowed=False,
                    limit=self.max_requests,
                    remaining=0,
                    retry_after_seconds=self.retry_after_seconds
                )

            stamps.append(now)
            return RateLimitDecision(
                allowed=True,
                limit=self.max_requests,
                remaining=self.max_requests - len(stamps)
            )

    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._windows)

    def reset(self) -> None:
        """Forget every client (used between tests)."""
        with self._lock:
            self._windows.clear()
            self._last_sweep = self._clock()
