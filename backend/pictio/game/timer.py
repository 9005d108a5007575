from __future__ import annotations

import logging
import threading
from typing import Callable, Literal, Optional

logger = logging.getLogger(__name__)


TimerState = Literal["idle", "running", "stopped"]


class RoundTimer:
    """Once-per-second countdown for a single round.

    Every tick and every ``stop()`` runs under ``guard``. Passing the owner's
    state lock as the guard means callbacks execute with that lock held and a
    ``stop()`` issued by the owner can never interleave with a tick: once it
    returns, no callback fires again. A timer instance runs at most once.

    ``after_tick`` runs after each tick once the guard is released. A callback
    that raises stops the timer and fires ``on_expired`` so the round still ends.
    """

    def __init__(
        self,
        on_tick: Callable[[int], None],
        on_expired: Callable[[], None],
        on_reveal: Optional[Callable[[int], None]] = None,
        on_warning: Optional[Callable[[int], None]] = None,
        after_tick: Optional[Callable[[], None]] = None,
        guard: threading.RLock | None = None,
        interval: float = 1.0,
        warning_threshold: int = 10,
    ):
        self._on_tick = on_tick
        self._on_expired = on_expired
        self._on_reveal = on_reveal
        self._on_warning = on_warning
        self._after_tick = after_tick
        self._guard = guard or threading.RLock()
        self._interval = interval
        self._warning_threshold = warning_threshold
        self._wake = threading.Event()
        self._thread: threading.Thread | None = None
        self.state: TimerState = "idle"
        self.duration = 0
        self.remaining = 0
        self.ticking = False

    @property
    def running(self) -> bool:
        return self.state == "running"

    def start(self, duration: int) -> None:
        with self._guard:
            if self.state != "idle":
                raise RuntimeError(f"timer already {self.state}")
            self.duration = duration
            self.remaining = duration
            self.state = "running"
            self._thread = threading.Thread(target=self._run, name="round-timer", daemon=True)
            self._thread.start()
        logger.debug("Round timer started: %ss", duration)

    def stop(self) -> None:
        with self._guard:
            if self.state == "stopped":
                return
            self.state = "stopped"
            self._wake.set()

    def _run(self) -> None:
        while not self._wake.wait(self._interval):
            with self._guard:
                if self.state != "running":
                    return
                self.ticking = True
                try:
                    self._tick()
                except Exception:
                    logger.exception("Round timer callback failed, expiring the round early")
                    self._fail()
                finally:
                    self.ticking = False
                running = self.state == "running"
            if self._after_tick is not None:
                self._after_tick()
            if not running:
                return

    def _fail(self) -> None:
        if self.state == "stopped":
            return
        self.state = "stopped"
        self._wake.set()
        try:
            self._on_expired()
        except Exception:
            logger.exception("Round timer expiry failed")

    def _tick(self) -> None:
        self.remaining -= 1
        self._on_tick(self.remaining)

        # a callback may have stopped us
        if self.state != "running":
            return

        if self._on_reveal is not None:
            if self.remaining == self.duration * 2 // 3:
                self._on_reveal(1)
            elif self.remaining == self.duration // 3:
                self._on_reveal(2)

        if self.state != "running":
            return

        if self._on_warning is not None and self.remaining <= self._warning_threshold:
            self._on_warning(self.remaining)

        if self.state == "running" and self.remaining <= 0:
            self.state = "stopped"
            self._wake.set()
            self._on_expired()
