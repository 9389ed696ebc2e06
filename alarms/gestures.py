from __future__ import annotations

import time
from typing import Callable, Optional


class DismissGestures:
    """Maps the swipe and double-tap gestures onto a single dismiss call."""

    def __init__(
        self,
        on_dismiss: Callable[[], object],
        swipe_threshold: float = 0.9,
        double_tap_window: float = 0.3,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.on_dismiss = on_dismiss
        self.swipe_threshold = swipe_threshold
        self.double_tap_window = double_tap_window
        self.monotonic = monotonic
        self.swipe_progress = 0.0
        self._last_tap: Optional[float] = None

    def swipe(self, progress: float) -> bool:
        """Update drag progress (0..1 along the track)."""
        self.swipe_progress = max(0.0, min(1.0, progress))
        if self.swipe_progress >= self.swipe_threshold:
            self.swipe_progress = 0.0
            self.on_dismiss()
            return True
        return False

    def release(self) -> None:
        self.swipe_progress = 0.0

    def tap(self, at: Optional[float] = None) -> bool:
        now = self.monotonic() if at is None else at
        last = self._last_tap
        if last is not None and now - last < self.double_tap_window:
            self._last_tap = None
            self.on_dismiss()
            return True
        self._last_tap = now
        return False
