"""
One-Euro filtering of hand keypoints
Based on Casiez et al., "1 Euro Filter" (CHI 2012)
"""
import math
from typing import Dict, Optional

from config.coach_config import FILTER_MIN_CUTOFF, FILTER_BETA, FILTER_D_CUTOFF
from fretcoach.types import HandLandmark, HandObservation, Point2D


class OneEuroFilter:
    """Adaptive low-pass filter for one scalar stream"""

    def __init__(self, min_cutoff=FILTER_MIN_CUTOFF, beta=FILTER_BETA, d_cutoff=FILTER_D_CUTOFF):
        """
        Args:
            min_cutoff: Minimum cutoff frequency (Hz), lower = smoother at rest
            beta: Speed coefficient, higher = less lag when moving fast
            d_cutoff: Cutoff frequency for the derivative estimate (Hz)
        """
        self.min_cutoff = min_cutoff
        self.beta = beta
        self.d_cutoff = d_cutoff
        self.reset()

    @staticmethod
    def alpha(cutoff: float, dt: float) -> float:
        tau = 1.0 / (2 * math.pi * cutoff)
        return 1.0 / (1.0 + tau / dt)

    def filter(self, value: float, timestamp: float) -> float:
        """
        Args:
            value: Raw sample
            timestamp: Sample time in milliseconds

        Returns:
            Filtered value
        """
        if self.last_time is None:
            self.x = value
            self.last_time = timestamp
            return value

        dt = (timestamp - self.last_time) / 1000.0
        if dt <= 0:
            return self.x

        dx = (value - self.x) / dt
        a_d = self.alpha(self.d_cutoff, dt)
        self.dx = a_d * dx + (1 - a_d) * self.dx

        cutoff = self.min_cutoff + self.beta * abs(self.dx)
        a = self.alpha(cutoff, dt)
        self.x = a * value + (1 - a) * self.x

        self.last_time = timestamp
        return self.x

    def reset(self):
        self.x = 0.0
        self.dx = 0.0
        self.last_time: Optional[float] = None


class PointFilter:
    """Independent One-Euro filters for x and y"""

    def __init__(self, **params):
        self.x_filter = OneEuroFilter(**params)
        self.y_filter = OneEuroFilter(**params)

    def filter(self, point: Point2D, timestamp: float) -> Point2D:
        return Point2D(
            self.x_filter.filter(point.x, timestamp),
            self.y_filter.filter(point.y, timestamp),
        )

    def reset(self):
        self.x_filter.reset()
        self.y_filter.reset()


class HandKeypointFilter:
    """Per-landmark smoothing for one tracked hand"""

    def __init__(self, min_cutoff=FILTER_MIN_CUTOFF, beta=FILTER_BETA, d_cutoff=FILTER_D_CUTOFF):
        self.filters: Dict[HandLandmark, PointFilter] = {
            landmark: PointFilter(min_cutoff=min_cutoff, beta=beta, d_cutoff=d_cutoff)
            for landmark in HandLandmark
        }

    def filter(self, hand: HandObservation, timestamp: float) -> HandObservation:
        """Return a copy of the hand with every keypoint smoothed"""
        keypoints = tuple(
            self.filters[landmark].filter(hand.landmark(landmark), timestamp)
            for landmark in HandLandmark
        )
        return HandObservation(keypoints=keypoints, handedness=hand.handedness, score=hand.score)

    def reset(self):
        for point_filter in self.filters.values():
            point_filter.reset()
