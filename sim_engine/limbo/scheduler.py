"""
LIMBO ENGINE - Frame Scheduling

A "request the next frame" capability in the shape of requestAnimationFrame:
callbacks receive a timestamp in seconds, fire at most once, and can be
cancelled through the handle returned when they were requested.

Callbacks requested while a frame is being dispatched run on the *next*
frame, never the current one.
"""

import logging
import time
from typing import Callable, Optional

logger = logging.getLogger("limbo.scheduler")

FrameCallback = Callable[[float], None]


class FrameHandle:
    """Cancelable reference to one pending frame callback."""

    __slots__ = ("callback", "cancelled", "fired")

    def __init__(self, callback: FrameCallback):
        self.callback = callback
        self.cancelled = False
        self.fired = False

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        self.cancelled = True


class ManualFrameScheduler:
    """Frames are dispatched only when the owner calls advance()."""

    def __init__(self):
        self._queue: list[FrameHandle] = []
        self.frames_dispatched = 0

    def request_frame(self, callback: FrameCallback) -> FrameHandle:
        handle = FrameHandle(callback)
        self._queue.append(handle)
        return handle

    @property
    def pending_frames(self) -> int:
        return sum(1 for h in self._queue if h.pending)

    @property
    def has_pending(self) -> bool:
        return self.pending_frames > 0

    def advance(self, timestamp: float) -> int:
        """Dispatch every frame pending right now. Returns how many fired."""
        batch, self._queue = self._queue, []
        fired = 0
        for handle in batch:
            if not handle.pending:
                continue
            handle.fired = True
            handle.callback(timestamp)
            fired += 1
        self.frames_dispatched += 1
        return fired


class RealtimeFrameScheduler(ManualFrameScheduler):
    """Drives frames from time.monotonic() at a fixed target rate."""

    def __init__(self, fps: int = 60, clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        super().__init__()
        if fps <= 0:
            raise ValueError(f"fps must be positive (got {fps})")
        self.fps = fps
        self.clock = clock
        self.sleep = sleep

    @property
    def frame_interval(self) -> float:
        return 1.0 / self.fps

    def run(self, max_seconds: Optional[float] = None) -> int:
        """Loop until no frames are pending (or max_seconds passes)."""
        started = self.clock()
        frames = 0
        while self.has_pending:
            now = self.clock()
            if max_seconds is not None and now - started >= max_seconds:
                logger.warning(f"frame loop stopped after {max_seconds}s with frames pending")
                break
            self.advance(now)
            frames += 1
            self.sleep(self.frame_interval)
        return frames
