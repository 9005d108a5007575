import threading
import time

import pytest

from pictio.game.timer import RoundTimer


class Recorder:
    def __init__(self):
        self.ticks = []
        self.reveals = []
        self.warnings = []
        self.expired = 0

    def timer(self, **kwargs):
        kwargs.setdefault("interval", 0.01)
        return RoundTimer(
            on_tick=self.ticks.append,
            on_expired=self._expired,
            on_reveal=self.reveals.append,
            on_warning=self.warnings.append,
            **kwargs,
        )

    def _expired(self):
        self.expired += 1


def test_counts_down_and_expires_once(wait_until):
    rec = Recorder()
    timer = rec.timer()
    timer.start(6)

    assert wait_until(lambda: timer.state == "stopped")
    time.sleep(0.05)
    assert rec.ticks == [5, 4, 3, 2, 1, 0]
    assert rec.expired == 1
    assert timer.remaining == 0


def test_reveals_at_two_thirds_and_one_third(wait_until):
    rec = Recorder()
    timer = rec.timer()
    timer.start(6)

    assert wait_until(lambda: rec.expired == 1)
    assert rec.reveals == [1, 2]


def test_low_time_warning_every_tick_below_threshold(wait_until):
    rec = Recorder()
    timer = rec.timer(warning_threshold=2)
    timer.start(5)

    assert wait_until(lambda: rec.expired == 1)
    assert rec.warnings == [2, 1, 0]


def test_stop_twice_is_harmless_and_never_expires():
    rec = Recorder()
    timer = rec.timer(interval=60)
    timer.start(10)

    timer.stop()
    timer.stop()

    assert timer.state == "stopped"
    assert rec.expired == 0


def test_no_events_after_stop(wait_until):
    rec = Recorder()
    timer = rec.timer()
    timer.start(1000)
    assert wait_until(lambda: len(rec.ticks) >= 3)

    timer.stop()
    seen = len(rec.ticks)
    time.sleep(0.1)

    assert len(rec.ticks) == seen
    assert rec.expired == 0


def test_stop_from_inside_a_callback(wait_until):
    calls = []
    holder = {}

    def on_tick(remaining):
        calls.append(remaining)
        if remaining == 7:
            holder["timer"].stop()

    timer = RoundTimer(on_tick=on_tick, on_expired=lambda: calls.append("expired"), interval=0.01)
    holder["timer"] = timer
    timer.start(10)

    assert wait_until(lambda: timer.state == "stopped")
    time.sleep(0.05)
    assert calls == [9, 8, 7]


def test_stop_waits_for_in_flight_tick():
    entered = threading.Event()
    release = threading.Event()
    stopped = threading.Event()

    def on_tick(remaining):
        entered.set()
        release.wait(2)

    timer = RoundTimer(on_tick=on_tick, on_expired=lambda: None, interval=0.01)
    timer.start(100)
    assert entered.wait(2)

    stopper = threading.Thread(target=lambda: (timer.stop(), stopped.set()))
    stopper.start()

    assert not stopped.wait(0.1)
    release.set()
    assert stopped.wait(2)
    stopper.join(2)


def test_start_twice_raises():
    timer = RoundTimer(on_tick=lambda n: None, on_expired=lambda: None, interval=60)
    timer.start(5)
    try:
        with pytest.raises(RuntimeError):
            timer.start(5)
    finally:
        timer.stop()


def test_after_tick_runs_outside_the_guard(wait_until):
    guard = threading.RLock()
    outside = []

    def lock_is_free():
        if guard.acquire(timeout=1):
            guard.release()
            return True
        return False

    def after_tick():
        result = []
        other = threading.Thread(target=lambda: result.append(lock_is_free()))
        other.start()
        other.join(2)
        outside.append(result == [True])

    timer = RoundTimer(
        on_tick=lambda n: None,
        on_expired=lambda: None,
        after_tick=after_tick,
        guard=guard,
        interval=0.01,
    )
    timer.start(3)

    assert wait_until(lambda: len(outside) == 3)
    assert outside == [True, True, True]


def test_failing_callback_expires_the_round(wait_until):
    expired = []

    def on_tick(remaining):
        raise RuntimeError("broken tick")

    timer = RoundTimer(on_tick=on_tick, on_expired=lambda: expired.append(True), interval=0.01)
    timer.start(10)

    assert wait_until(lambda: expired == [True])
    assert timer.state == "stopped"
    time.sleep(0.05)
    assert expired == [True]
