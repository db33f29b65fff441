"""Unit tests for the Scheduler timer service."""
from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from workplace_pulse.scheduler import Scheduler


class TestScheduler:
    """Verify Scheduler executes callbacks and handles edge-cases."""

    def test_schedule_executes_callback_after_delay(self):
        executed = threading.Event()

        def _callback(arg: str, *, flag: bool) -> None:
            assert arg == "hello"
            assert flag is True
            executed.set()

        with ThreadPoolExecutor(max_workers=2) as executor:
            sched = Scheduler(executor)
            sched.schedule(0.05, _callback, "hello", flag=True)

            assert executed.wait(0.5), "Scheduled callback did not execute in time"
            sched.shutdown()

    def test_timers_fire_in_due_order(self):
        order = []
        done = threading.Event()

        def _record(label: str) -> None:
            order.append(label)
            if len(order) == 2:
                done.set()

        with ThreadPoolExecutor(max_workers=1) as executor:
            sched = Scheduler(executor)
            sched.schedule(0.15, _record, "late")
            sched.schedule(0.05, _record, "early")
            assert done.wait(1.0)
            sched.shutdown()

        assert order == ["early", "late"]

    def test_cancelled_timer_never_fires(self):
        fired = threading.Event()

        with ThreadPoolExecutor(max_workers=1) as executor:
            sched = Scheduler(executor)
            timer_id = sched.schedule(0.05, fired.set)
            assert sched.cancel(timer_id) is True
            assert sched.pending() == 0

            assert not fired.wait(0.2)
            sched.shutdown()

    def test_cancel_unknown_or_fired_timer(self):
        fired = threading.Event()

        with ThreadPoolExecutor(max_workers=1) as executor:
            sched = Scheduler(executor)
            assert sched.cancel(999) is False

            timer_id = sched.schedule(0.0, fired.set)
            assert fired.wait(0.5)
            time.sleep(0.05)
            assert sched.cancel(timer_id) is False
            sched.shutdown()

    def test_schedule_negative_delay_raises(self):
        with ThreadPoolExecutor(max_workers=1) as executor:
            sched = Scheduler(executor)
            with pytest.raises(ValueError):
                sched.schedule(-1, lambda: None)
            sched.shutdown()

    def test_shutdown_drops_pending_and_stops_thread(self):
        fired = threading.Event()

        with ThreadPoolExecutor(max_workers=1) as executor:
            sched = Scheduler(executor)
            assert sched._thread.is_alive()
            sched.schedule(0.2, fired.set)
            sched.shutdown()

            assert not sched._thread.is_alive()
            assert not fired.wait(0.3)
            with pytest.raises(RuntimeError):
                sched.schedule(0.1, lambda: None)
