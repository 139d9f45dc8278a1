"""
Exercise clock with configurable speed multiplier.

The receiver's tick loop asks the clock how much simulated time passed
since the previous tick and hands that to every entity tracker. The
clock maps wall-clock time to simulated time, so pausing it (for example
while the exercise is frozen) stops dead reckoning without touching the
trackers themselves.
"""

import time
from typing import Callable


class SimulationClock:
    """
    Maps monotonic wall-clock time to simulated seconds.

    Not async. Elapsed time is computed when queried, no background
    thread needed.
    """

    def __init__(self, speed: float = 1.0, time_source: Callable[[], float] = time.monotonic) -> None:
        self._speed = speed
        self._now = time_source
        self._running = False
        self._wall_start: float | None = None
        self._accumulated_s = 0.0
        self._last_advance_s = 0.0

    @property
    def speed(self) -> float:
        return self._speed

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Begin advancing time."""
        if self._running:
            return
        self._running = True
        self._wall_start = self._now()

    def pause(self) -> None:
        """Stop advancing time. Elapsed time so far is kept."""
        if not self._running:
            return
        self._accumulated_s = self.get_elapsed()
        self._running = False
        self._wall_start = None

    def resume(self) -> None:
        if self._running:
            return
        self._running = True
        self._wall_start = self._now()

    def reset(self) -> None:
        """Back to zero elapsed time. The clock is left paused."""
        self._running = False
        self._wall_start = None
        self._accumulated_s = 0.0
        self._last_advance_s = 0.0

    def set_speed(self, multiplier: float) -> None:
        """Change speed multiplier. Time so far is banked at the old speed."""
        if multiplier < 0:
            raise ValueError(f"Clock speed must be non-negative, got {multiplier}")
        if self._running:
            self._accumulated_s = self.get_elapsed()
            self._wall_start = self._now()
        self._speed = multiplier

    def get_elapsed(self) -> float:
        """Simulated seconds since start."""
        if not self._running or self._wall_start is None:
            return self._accumulated_s
        return self._accumulated_s + (self._now() - self._wall_start) * self._speed

    def advance(self) -> float:
        """Simulated seconds since the previous call (0.0 while paused)."""
        elapsed = self.get_elapsed()
        dt = elapsed - self._last_advance_s
        self._last_advance_s = elapsed
        return max(dt, 0.0)
