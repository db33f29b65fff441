"""Shared fixtures: a controllable clock and an in-memory timer service."""
from __future__ import annotations

import itertools
from typing import Any, Callable, Dict, Tuple

import pytest


class FakeClock:
    """Callable clock whose time only moves when told to."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeScheduler:
    """Timer service driven by :meth:`advance` instead of a thread."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: Dict[int, Tuple[float, Callable[..., Any], Tuple[Any, ...]]] = {}
        self._ids = itertools.count(1)

    def schedule(self, delay_seconds: float, callback: Callable[..., Any], *args: Any) -> int:
        timer_id = next(self._ids)
        self.timers[timer_id] = (self.now + delay_seconds, callback, args)
        return timer_id

    def cancel(self, timer_id: int) -> bool:
        return self.timers.pop(timer_id, None) is not None

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = sorted(
            (due_at, timer_id)
            for timer_id, (due_at, _, _) in self.timers.items()
            if due_at <= self.now
        )
        for _, timer_id in due:
            entry = self.timers.pop(timer_id, None)
            if entry is not None:
                entry[1](*entry[2])


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def timers() -> FakeScheduler:
    return FakeScheduler()
