"""Deferred callbacks for room timers.

Rooms never sleep. Every wait (round timers, hint reveals, turn delays) is a
callback handed to a scheduler, and every callback gets a handle it can be
cancelled with. ``SocketIOScheduler`` runs callbacks as Socket.IO background
tasks; ``ManualScheduler`` keeps a virtual clock that tests move forward.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import time
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)


class TimerHandle:
    __slots__ = ("cancelled", "fired", "when")

    def __init__(self, when: float) -> None:
        self.when = when
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)


class Scheduler(Protocol):
    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


def _run_callback(callback: Callable[..., Any], args: tuple) -> None:
    # A failing timer must never take the worker (or other rooms) down with it.
    try:
        callback(*args)
    except Exception:
        logger.exception("timer callback %r failed", callback)


class SocketIOScheduler:
    def __init__(self, socketio) -> None:
        self._socketio = socketio

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        handle = TimerHandle(self.now() + max(0.0, delay))

        def _runner() -> None:
            self._socketio.sleep(max(0.0, delay))
            if handle.cancelled:
                return
            handle.fired = True
            _run_callback(callback, args)

        self._socketio.start_background_task(_runner)
        return handle


class ManualScheduler:
    """Virtual-time scheduler. Nothing fires until ``advance`` is called."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[tuple[float, int, TimerHandle, Callable[..., Any], tuple]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        handle = TimerHandle(self._now + max(0.0, delay))
        heapq.heappush(self._queue, (handle.when, next(self._seq), handle, callback, args))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h, _, _ in self._queue if h.active)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due callbacks in time order.

        Callbacks scheduled while advancing fire too if they fall inside the
        window. Returns the number of callbacks fired.
        """
        target = self._now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            when, _, handle, callback, args = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = max(self._now, when)
            handle.fired = True
            _run_callback(callback, args)
            fired += 1
        self._now = target
        return fired

    def run_all(self, limit: int = 1000) -> int:
        """Fire everything queued, jumping the clock as needed."""
        fired = 0
        while self._queue and fired < limit:
            when = self._queue[0][0]
            fired += self.advance(max(0.0, when - self._now))
        return fired
