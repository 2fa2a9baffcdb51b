"""
Heuristic fret/string line detection on a downsampled frame
"""
import math
import cv2
import numpy as np
from collections import Counter
from dataclasses import dataclass
from typing import List, Optional, Tuple

from config.coach_config import (
    EDGE_MAGNITUDE_THRESHOLD,
    LINE_MIN_LENGTH_RATIO,
    LINE_MERGE_GAP_PX,
    MIN_TOTAL_LINES,
    MIN_HORIZONTAL_LINES,
    MIN_VERTICAL_LINES,
    PARTIAL_LINES_CONFIDENCE,
    LINE_COUNT_SATURATION,
)
from fretcoach.types import Line, Point2D


@dataclass(frozen=True)
class LineDetectionResult:
    horizontal: Tuple[Line, ...]  # Fret candidates
    vertical: Tuple[Line, ...]  # String candidates
    dominant_angle: float
    confidence: float

    @property
    def lines(self) -> Tuple[Line, ...]:
        return self.horizontal + self.vertical


EMPTY_RESULT = LineDetectionResult((), (), 0.0, 0.0)


def detect_lines(pixels: Optional[np.ndarray]) -> LineDetectionResult:
    """
    Detect axis-aligned lines in a frame

    Args:
        pixels: HxWx4 RGBA, HxWx3 RGB or HxW grayscale buffer

    Returns:
        LineDetectionResult with a confidence in [0, 1]
    """
    if pixels is None or pixels.size == 0 or pixels.shape[0] == 0 or pixels.shape[1] == 0:
        return EMPTY_RESULT

    height, width = pixels.shape[:2]
    edges = detect_edges(pixels)

    horizontal = _detect_runs(edges, width * LINE_MIN_LENGTH_RATIO, horizontal=True)
    vertical = _detect_runs(edges.T, height * LINE_MIN_LENGTH_RATIO, horizontal=False)

    lines = horizontal + vertical

    return LineDetectionResult(
        horizontal=tuple(horizontal),
        vertical=tuple(vertical),
        dominant_angle=estimate_dominant_angle(lines),
        confidence=calculate_confidence(horizontal, vertical),
    )


def detect_edges(pixels: np.ndarray) -> np.ndarray:
    """
    Binary edge map from 3x3 Sobel gradient magnitude

    Returns:
        HxW boolean array
    """
    if pixels.ndim == 3:
        gray = pixels[:, :, :3].astype(np.float64).mean(axis=2)
    else:
        gray = pixels.astype(np.float64)

    gx = cv2.Sobel(gray, cv2.CV_64F, 1, 0, ksize=3)
    gy = cv2.Sobel(gray, cv2.CV_64F, 0, 1, ksize=3)
    magnitude = np.sqrt(gx * gx + gy * gy)

    edges = magnitude > EDGE_MAGNITUDE_THRESHOLD

    # Border pixels have no full 3x3 neighbourhood
    edges[0, :] = False
    edges[-1, :] = False
    edges[:, 0] = False
    edges[:, -1] = False

    return edges


def _detect_runs(mask: np.ndarray, min_length: float, horizontal: bool) -> List[Line]:
    """
    Find runs of edge pixels along each row of mask longer than min_length

    For vertical detection the caller passes the transposed mask, so "row" means
    column and the coordinates are swapped back when building lines.
    """
    padded = np.pad(mask.astype(np.int8), ((0, 0), (1, 1)))
    diff = np.diff(padded, axis=1)

    # argwhere is row-major, so starts and ends pair up within each row
    starts = np.argwhere(diff == 1)
    ends = np.argwhere(diff == -1)
    lengths = ends[:, 1] - starts[:, 1]
    keep = lengths > min_length

    candidates = [
        (float(row), float(start), float(start + length))
        for row, start, length in zip(starts[keep, 0], starts[keep, 1], lengths[keep])
    ]

    lines = []
    for position, start, end in _merge_runs(candidates):
        if horizontal:
            lines.append(Line(Point2D(start, position), Point2D(end, position)))
        else:
            lines.append(Line(Point2D(position, start), Point2D(position, end)))

    return lines


def _merge_runs(candidates: List[Tuple[float, float, float]]) -> List[Tuple[float, float, float]]:
    """
    Merge parallel runs that belong to the same physical edge

    A thin line produces a gradient response on both of its sides, so runs within
    LINE_MERGE_GAP_PX of each other that overlap are averaged into one.
    """
    clusters = []  # [positions, start, end]

    for position, start, end in sorted(candidates):
        for cluster in clusters:
            positions, c_start, c_end = cluster
            if position - positions[-1] <= LINE_MERGE_GAP_PX and start <= c_end and end >= c_start:
                positions.append(position)
                cluster[1] = min(c_start, start)
                cluster[2] = max(c_end, end)
                break
        else:
            clusters.append([[position], start, end])

    return [(float(np.mean(positions)), start, end) for positions, start, end in clusters]


def estimate_dominant_angle(lines: List[Line]) -> float:
    """Most common line angle in radians (rounded to 0.1)"""
    if not lines:
        return 0.0

    angles = Counter(
        round(math.atan2(line.end.y - line.start.y, line.end.x - line.start.x), 1)
        for line in lines
    )
    return angles.most_common(1)[0][0]


def calculate_confidence(horizontal: List[Line], vertical: List[Line]) -> float:
    """Confidence that the detected lines form a fretboard grid"""
    total = len(horizontal) + len(vertical)

    if total < MIN_TOTAL_LINES:
        return 0.0

    # Need both frets and strings
    if len(horizontal) < MIN_HORIZONTAL_LINES or len(vertical) < MIN_VERTICAL_LINES:
        return PARTIAL_LINES_CONFIDENCE

    line_score = min(total / LINE_COUNT_SATURATION, 1.0)
    return line_score * 0.6 + line_regularity(horizontal) * 0.4


def line_regularity(lines: List[Line]) -> float:
    """Even spacing between horizontal lines suggests frets (1 = perfectly regular)"""
    if len(lines) < 3:
        return 0.0

    positions = np.sort([line.start.y for line in lines])
    spacings = np.diff(positions)
    mean = spacings.mean()

    if mean <= 0:
        return 0.0

    return max(0.0, 1.0 - float(spacings.std()) / float(mean))
