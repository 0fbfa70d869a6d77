"""Sharded sliding-window rate limiter keyed by client IP address."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import timedelta

__all__ = ["Metrics", "ShardedLimiter"]

_SHARD_COUNT = 256


@dataclass(frozen=True)
class Metrics:
    """A snapshot of the limiter's counters."""

    total_requests: int
    blocked_requests: int
    active_clients: int
    cleanup_interval: float


@dataclass
class _Counter:
    window_start: float
    current_count: int = 1
    prev_count: int = 0


@dataclass
class _Shard:
    lock: threading.Lock = field(default_factory=threading.Lock)
    clients: dict[str, _Counter] = field(default_factory=dict)

    def clean(self, threshold: float) -> None:
        """Drop clients whose window started before *threshold*."""
        with self.lock:
            stale = [ip for ip, c in self.clients.items() if c.window_start < threshold]
            for ip in stale:
                del self.clients[ip]


def _seconds(window: float | timedelta) -> float:
    if isinstance(window, timedelta):
        return window.total_seconds()
    return float(window)


class ShardedLimiter:
    """Limit requests per IP using a weighted sliding window.

    Clients are spread over 256 shards to reduce lock contention. A
    background thread periodically forgets clients that have been idle
    for two windows.
    """

    def __init__(self, max_requests: int, window: float | timedelta) -> None:
        if max_requests < 0:
            raise ValueError("max_requests must not be negative")
        seconds = _seconds(window)
        if seconds <= 0:
            raise ValueError("window must be positive")

        self.max_requests = int(max_requests)
        self.window = seconds
        self.cleanup_interval = seconds * 2
        self._shards = [_Shard() for _ in range(_SHARD_COUNT)]
        self._metrics_lock = threading.Lock()
        self._total = 0
        self._blocked = 0
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.start_cleanup()

    def _shard_for(self, ip: str) -> _Shard:
        return self._shards[sum(ip.encode()) % _SHARD_COUNT]

    def is_allowed(self, ip: str) -> bool:
        """Record a request from *ip* and report whether it is within limits."""
        with self._metrics_lock:
            self._total += 1

        shard = self._shard_for(ip)
        with shard.lock:
            now = time.monotonic()
            counter = shard.clients.get(ip)
            if counter is None:
                shard.clients[ip] = _Counter(window_start=now)
                return True

            elapsed = now - counter.window_start
            if elapsed > self.window:
                counter.prev_count = counter.current_count
                counter.current_count = 1
                counter.window_start = now
                return True

            weight_prev = 1.0 - elapsed / self.window
            weighted = int(counter.prev_count * weight_prev) + counter.current_count
            # Strictly less: the current request is counted only if allowed.
            allowed = weighted < self.max_requests
            if allowed:
                counter.current_count += 1

        if not allowed:
            with self._metrics_lock:
                self._blocked += 1
        return allowed

    def get_metrics(self) -> Metrics:
        """Return a snapshot of the current metrics."""
        active = 0
        for shard in self._shards:
            with shard.lock:
                active += len(shard.clients)
        with self._metrics_lock:
            total, blocked = self._total, self._blocked
        return Metrics(
            total_requests=total,
            blocked_requests=blocked,
            active_clients=active,
            cleanup_interval=self.cleanup_interval,
        )

    def cleanup(self) -> None:
        """Forget clients that have made no request in the last two windows."""
        threshold = time.monotonic() - self.window * 2
        for shard in self._shards:
            shard.clean(threshold)

    def _run_cleanup(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.cleanup_interval):
            self.cleanup()

    def start_cleanup(self) -> None:
        """Start the periodic cleanup thread unless it is already running."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run_cleanup,
            args=(self._stop_event,),
            name="windowlimit-cleanup",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop the cleanup thread."""
        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def __enter__(self) -> ShardedLimiter:
        return self

    def __exit__(self, *args) -> None:
        self.stop()