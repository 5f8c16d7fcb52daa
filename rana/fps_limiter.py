"""Frame-rate limiter that sleeps away whatever is left of each frame's budget."""

from __future__ import annotations

import logging
import time

MILLISECONDS_IN_A_SECOND = 1000
AVERAGE_WINDOW = 30

logger = logging.getLogger(__name__)


class FpsLimiter:
    """Keeps a loop at or below ``fps`` iterations per second.

    Call ``start`` at the top of a frame and ``stop`` at the end, or use the
    limiter as a context manager around each frame.
    """

    def __init__(self, fps: int, verbose: bool = False) -> None:
        if fps <= 0:
            raise ValueError("fps must be positive")
        self.fps = fps
        self.verbose = verbose
        self.frame_time = 0
        self.frame_count = 0
        self.frame_rate = 0.0
        self.average_frame_time: float | None = None
        self._started: float | None = None

    def start(self) -> None:
        """Mark the beginning of a frame."""
        self._started = time.monotonic()

    def stop(self) -> int:
        """End the frame, sleep out its budget and return its duration in ms."""
        if self._started is None:
            raise RuntimeError("stop() called before start()")
        self.frame_time = int((time.monotonic() - self._started) * MILLISECONDS_IN_A_SECOND)
        if self.verbose:
            print(self.frame_time)

        budget = MILLISECONDS_IN_A_SECOND // self.fps
        if budget > self.frame_time:
            time.sleep((budget - self.frame_time) / MILLISECONDS_IN_A_SECOND)

        if self.frame_count < AVERAGE_WINDOW:
            self.frame_count += 1
            self.frame_rate += self.frame_time
        else:
            self.average_frame_time = self.frame_rate / AVERAGE_WINDOW
            if self.verbose:
                logger.debug("average frame time %s ms", self.average_frame_time)
            self.frame_count = 0
            self.frame_rate = 0.0
        return self.frame_time

    def __enter__(self) -> "FpsLimiter":
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()