"""
Map fingertip positions to guitar strings and fret bands
"""
import numpy as np
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from config.coach_config import (
    STRING_DISTANCE_SCALE,
    FRET_DISTANCE_SCALE,
    ORDER_VIOLATION_DISCOUNT,
    PRESSED_MAX_VELOCITY,
    PRESSED_MIN_CONFIDENCE,
)
from fretcoach.types import (
    FingerAssignment,
    Fingertip,
    FretboardGeometry,
    Homography,
    Line,
    Point2D,
)


@dataclass(frozen=True)
class MappingResult:
    assignments: Tuple[FingerAssignment, ...] = ()
    confidence: float = 0.0


class FingerMapper:
    """Map detected fingertips to strings and frets on the rectified fretboard"""

    def __init__(self):
        self.homography: Optional[Homography] = None
        self.string_lines: Optional[List[Line]] = None  # Rectified plane
        self.fret_positions: Optional[List[float]] = None  # Rectified y, ascending

    def calibrate(self, geometry: FretboardGeometry) -> bool:
        """
        Calibrate the mapper with fretboard geometry

        String and fret lines are projected into the rectified plane once so each
        fingertip only needs a single transform.

        Returns:
            True when the geometry has a homography, strings and frets
        """
        self.homography = None
        self.string_lines = None
        self.fret_positions = None

        if not isinstance(geometry.homography, Homography):
            return False
        if not geometry.strings or not geometry.frets:
            return False

        homography = geometry.homography
        self.homography = homography
        self.string_lines = [
            Line(homography.apply(line.start), homography.apply(line.end))
            for line in geometry.strings
        ]
        self.fret_positions = sorted(
            (homography.apply(line.start).y + homography.apply(line.end).y) / 2
            for line in geometry.frets
        )
        return True

    def is_calibrated(self) -> bool:
        """Check if mapper is calibrated"""
        return (self.homography is not None and
                self.string_lines is not None and
                self.fret_positions is not None)

    def map_fingertips(self, fingertips: Sequence[Fingertip]) -> MappingResult:
        """
        Assign each fingertip to its nearest string and fret band

        Args:
            fingertips: Fingertip positions in image space

        Returns:
            MappingResult with one assignment per fingertip
        """
        if not self.is_calibrated() or not fingertips:
            return MappingResult()

        assignments = []

        for tip in fingertips:
            plane_point = self.homography.apply(tip.position)

            string_idx, string_dist = self._find_closest_string(plane_point)
            fret_idx, fret_dist = self._find_fret_band(plane_point)

            confidence = max(
                0.0,
                1 - (string_dist / STRING_DISTANCE_SCALE + fret_dist / FRET_DISTANCE_SCALE) / 2
            )

            assignments.append(FingerAssignment(
                finger_id=tip.finger_id,
                string_idx=string_idx,
                fret_idx=fret_idx,
                confidence=confidence,
                position=tip.position,
            ))

        assignments = enforce_string_order(assignments)

        return MappingResult(
            assignments=tuple(assignments),
            confidence=sum(a.confidence for a in assignments) / len(assignments),
        )

    def _find_closest_string(self, position: Point2D) -> Tuple[int, float]:
        """
        Returns:
            (1-indexed string, distance in rectified units)
        """
        distances = [point_to_line_distance(position, line) for line in self.string_lines]
        closest = int(np.argmin(distances))
        return closest + 1, distances[closest]

    def _find_fret_band(self, position: Point2D) -> Tuple[int, float]:
        """
        Fret band is the index of the first fret line below the point

        Past the last fret line the band equals the number of frets.

        Returns:
            (fret band, distance to the band's boundary line)
        """
        for fret_idx, fret_y in enumerate(self.fret_positions):
            if position.y < fret_y:
                return fret_idx, abs(position.y - fret_y)

        return len(self.fret_positions), abs(position.y - self.fret_positions[-1])


def point_to_line_distance(point: Point2D, line: Line) -> float:
    """Distance from point to line segment"""
    dx = line.end.x - line.start.x
    dy = line.end.y - line.start.y

    if dx == 0 and dy == 0:
        # Line segment is a point
        return point.distance_to(line.start)

    t = max(0.0, min(1.0, ((point.x - line.start.x) * dx + (point.y - line.start.y) * dy)
                     / (dx * dx + dy * dy)))

    return point.distance_to(Point2D(line.start.x + t * dx, line.start.y + t * dy))


def enforce_string_order(assignments: Sequence[FingerAssignment]) -> List[FingerAssignment]:
    """
    Lower trust in anatomically implausible finger orderings

    Walks the assignments sorted by string; when a pair's finger ids run against
    the string order both confidences are discounted. Strings are never reassigned.
    """
    result = list(assignments)
    order = sorted(range(len(result)), key=lambda i: result[i].string_idx)

    for prev_pos, curr_pos in zip(order, order[1:]):
        prev, curr = result[prev_pos], result[curr_pos]

        if prev.finger_id > curr.finger_id and prev.string_idx < curr.string_idx:
            result[prev_pos] = replace(prev, confidence=prev.confidence * ORDER_VIOLATION_DISCOUNT)
            result[curr_pos] = replace(curr, confidence=curr.confidence * ORDER_VIOLATION_DISCOUNT)

    return result


def is_finger_pressed(assignment: FingerAssignment,
                      history: Sequence[FingerAssignment]) -> bool:
    """
    A finger is pressed (not hovering) when it is steady and confidently placed

    Args:
        assignment: Current assignment for the finger
        history: Previous assignments for the same finger, oldest first
    """
    if len(history) < 3:
        return False

    positions = [a.position for a in history[-3:]]
    velocity = np.mean([b.distance_to(a) for a, b in zip(positions, positions[1:])])

    return velocity < PRESSED_MAX_VELOCITY and assignment.confidence > PRESSED_MIN_CONFIDENCE
