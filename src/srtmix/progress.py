"""Map pipeline milestones to a monotonic percentage."""

import logging
from typing import Callable

logger = logging.getLogger(__name__)

MATCHING = 5.0
RUNTIME_CHECK = 10.0
PLANS_BUILT = 20.0
CLIPS_START = 20.0
CLIPS_END = 45.0
TIMELINE_CREATED = 48.0
RENDER_COMPLETE = 50.0


class ProgressTracker:
    """Forward (message, percent) updates, never letting percent go backwards.

    The encoding stage owns the second half of the range: an encoder fraction
    f in [0, 1] maps to ``50 + min(100 f, 99) / 2``, and 100 is only reached
    by ``finish()``.
    """

    def __init__(self, callback: Callable[[str, float], None] | None = None):
        self._callback = callback
        self.percent = 0.0
        self.message = ""

    def update(self, message: str, percent: float) -> None:
        percent = min(100.0, max(0.0, float(percent)))
        self.percent = max(self.percent, percent)
        self.message = message
        logger.debug(f"{self.percent:5.1f}% {message}")
        if self._callback:
            self._callback(message, self.percent)

    def clip_processed(self, done: int, total: int) -> None:
        frac = done / total if total else 1.0
        self.update(
            f"Applying effects... ({done}/{total})",
            CLIPS_START + frac * (CLIPS_END - CLIPS_START),
        )

    def encoding(self, fraction: float) -> None:
        self.update("Encoding to MP3...", 50.0 + min(fraction * 100.0, 99.0) / 2)

    def finish(self, message: str = "Complete!") -> None:
        self.update(message, 100.0)
