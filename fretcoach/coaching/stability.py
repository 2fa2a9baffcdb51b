"""
Hold-time tracking for a chord score
"""
import math
from dataclasses import dataclass, replace
from typing import Optional

from config.coach_config import STABILITY_THRESHOLD, REQUIRED_STABLE_MS


@dataclass(frozen=True)
class StabilityTracker:
    """
    Accumulated time a chord score has stayed at or above threshold

    Immutable: update() returns the next tracker, so the owner replaces its copy
    instead of sharing a mutable reference.
    """
    score: float = 0.0
    stable_ms: float = 0.0
    last_update: Optional[float] = None  # ms; None until the first update
    threshold: float = STABILITY_THRESHOLD
    required_stable_ms: float = REQUIRED_STABLE_MS

    def update(self, score: float, timestamp: float) -> 'StabilityTracker':
        """
        Args:
            score: Chord score in [0, 1]
            timestamp: Sample time in milliseconds

        Returns:
            Updated tracker (self when the score is not a finite number)
        """
        if not isinstance(score, (int, float)) or not math.isfinite(score):
            return self

        dt = 0.0 if self.last_update is None else max(0.0, timestamp - self.last_update)

        if score >= self.threshold:
            stable_ms = self.stable_ms + dt
        else:
            stable_ms = 0.0

        return replace(self, score=score, stable_ms=stable_ms, last_update=timestamp)

    def is_stable(self) -> bool:
        """Chord held long enough to count as formed"""
        return self.stable_ms >= self.required_stable_ms

    def reset(self) -> 'StabilityTracker':
        return StabilityTracker(threshold=self.threshold, required_stable_ms=self.required_stable_ms)
