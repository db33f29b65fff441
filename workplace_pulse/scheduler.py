"""Timer service for delayed, cancellable callbacks.

One background daemon thread sleeps until the earliest timer is due and then
hands the callback to a shared ThreadPoolExecutor, so arming a timer never
costs a thread of its own.  Timers can be cancelled until they fire, which is
what the debounced dashboard refresh relies on: every new trigger cancels the
armed timer and arms a fresh one.
"""
from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from concurrent.futures import Executor
from typing import Any, Callable, Set, Tuple

logger = logging.getLogger(__name__)


class _Timer:
    """Heap entry for one armed callback."""

    __slots__ = ("due", "timer_id", "callback", "args", "kwargs")

    def __init__(
        self,
        due: float,
        timer_id: int,
        callback: Callable[..., Any],
        args: Tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> None:
        self.due = due
        self.timer_id = timer_id
        self.callback = callback
        self.args = args
        self.kwargs = kwargs

    def __lt__(self, other: "_Timer") -> bool:
        return (self.due, self.timer_id) < (other.due, other.timer_id)


class Scheduler:
    """Thread-safe delayed-callback scheduler with cancellation."""

    def __init__(self, executor: Executor) -> None:
        self._executor = executor
        self._cond = threading.Condition()
        self._heap: list[_Timer] = []
        self._cancelled: Set[int] = set()
        self._ids = itertools.count(1)
        self._running = True
        self._thread = threading.Thread(
            target=self._loop, daemon=True, name="pulse-scheduler"
        )
        self._thread.start()
        logger.info("Scheduler started.")

    def schedule(
        self,
        delay_seconds: float,
        callback: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> int:
        """Run *callback* on the executor after *delay_seconds*; return a timer id."""
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be non-negative")
        timer = _Timer(
            time.monotonic() + delay_seconds, next(self._ids), callback, args, kwargs
        )
        with self._cond:
            if not self._running:
                raise RuntimeError("Scheduler has been shut down")
            heapq.heappush(self._heap, timer)
            self._cond.notify()
        return timer.timer_id

    def cancel(self, timer_id: int) -> bool:
        """Cancel an armed timer.  Returns *False* if it already fired or is unknown."""
        with self._cond:
            if not any(t.timer_id == timer_id for t in self._heap):
                return False
            self._cancelled.add(timer_id)
            self._cond.notify()
            return True

    def pending(self) -> int:
        """Number of timers armed and not cancelled."""
        with self._cond:
            return sum(1 for t in self._heap if t.timer_id not in self._cancelled)

    def shutdown(self) -> None:
        """Stop the loop; timers that have not fired yet are dropped."""
        with self._cond:
            self._running = False
            dropped = len(self._heap) - len(self._cancelled)
            self._heap.clear()
            self._cancelled.clear()
            self._cond.notify()
        self._thread.join()
        logger.info("Scheduler shut down (%d timer(s) dropped).", max(dropped, 0))

    def _loop(self) -> None:
        while True:
            with self._cond:
                while self._running and not self._heap:
                    self._cond.wait()
                if not self._running:
                    return
                head = self._heap[0]
                if head.timer_id in self._cancelled:
                    heapq.heappop(self._heap)
                    self._cancelled.discard(head.timer_id)
                    continue
                delay = head.due - time.monotonic()
                if delay > 0:
                    self._cond.wait(timeout=delay)
                    continue
                heapq.heappop(self._heap)
            # Submit outside the lock; callbacks may arm new timers.
            try:
                self._executor.submit(head.callback, *head.args, **head.kwargs)
            except Exception:  # pragma: no cover – executor already shut down
                logger.exception("Error submitting timer %s", head.timer_id)
