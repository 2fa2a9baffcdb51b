"""
Fretboard localization: heuristic line detection with a manual calibration fallback
"""
import logging
import numpy as np
from dataclasses import dataclass, replace
from numbers import Real
from typing import List, Optional, Sequence

from config.coach_config import (
    NUM_STRINGS,
    REFERENCE_FRET,
    MANUAL_FRET_COUNT,
    DETECTOR_MIN_CONFIDENCE,
    MANUAL_CALIBRATION_CONFIDENCE,
    ROI_MARGIN_PX,
    DEFAULT_ROI_RATIO,
    MAX_AUTO_FRETS,
)
from fretcoach.fretboard.homography import compute_homography, identity_homography
from fretcoach.fretboard.line_detector import LineDetectionResult, detect_lines
from fretcoach.types import (
    CalibrationProfile,
    FretboardGeometry,
    Homography,
    Line,
    NO_HOMOGRAPHY,
    Point2D,
    Rect,
)

logger = logging.getLogger(__name__)

# Target rectangle in the rectified plane: nut along y = 0, reference fret along y = 1
UNIT_SQUARE = (
    Point2D(0.0, 0.0),  # Top-left
    Point2D(1.0, 0.0),  # Top-right
    Point2D(0.0, 1.0),  # Bottom-left
    Point2D(1.0, 1.0),  # Bottom-right
)


@dataclass(frozen=True)
class ManualCalibrationPoints:
    """Operator-tapped reference points (reference fret is the 3rd)"""
    nut_left: Point2D
    nut_right: Point2D
    fret_left: Point2D
    fret_right: Point2D

    def as_list(self) -> List[Point2D]:
        return [self.nut_left, self.nut_right, self.fret_left, self.fret_right]

    def is_valid(self) -> bool:
        for point in self.as_list():
            if not isinstance(point, Point2D):
                return False
            if not isinstance(point.x, Real) or not isinstance(point.y, Real):
                return False
            if not point.is_finite():
                return False
        return True


def _needs_manual(confidence: float = 0.0) -> FretboardGeometry:
    return FretboardGeometry(
        homography=NO_HOMOGRAPHY,
        confidence=confidence,
        needs_manual_calibration=True,
    )


class FretboardLocalizer:
    """Estimate the fretboard plane from a frame or from manual calibration"""

    def __init__(self, detector=detect_lines):
        """
        Args:
            detector: Line detection function returning a LineDetectionResult
        """
        self.detector = detector

    def estimate(self, pixels: Optional[np.ndarray],
                 manual_points: Optional[ManualCalibrationPoints] = None) -> FretboardGeometry:
        """
        Estimate fretboard geometry

        Args:
            pixels: Downsampled frame buffer (may be None when only manual points are given)
            manual_points: Operator calibration, takes precedence over detection

        Returns:
            FretboardGeometry, flagged for manual calibration when unreliable
        """
        if manual_points is not None:
            return self.estimate_from_manual_points(manual_points)

        if pixels is None:
            return _needs_manual()

        return self.estimate_from_frame(pixels)

    def estimate_from_manual_points(self, points: ManualCalibrationPoints) -> FretboardGeometry:
        """Operator-verified geometry from nut and reference-fret corners"""
        if not points.is_valid():
            logger.warning("Rejecting manual calibration with non-finite points")
            return _needs_manual()

        homography = Homography(compute_homography(points.as_list(), UNIT_SQUARE))
        frets = project_fret_lines_from_points(points)

        return FretboardGeometry(
            homography=homography,
            strings=tuple(project_string_lines(homography)),
            frets=tuple(frets),
            confidence=MANUAL_CALIBRATION_CONFIDENCE,
            roi=_bounding_roi([frets[0].start, frets[0].end, frets[-1].start, frets[-1].end]),
            needs_manual_calibration=False,
        )

    def estimate_from_frame(self, pixels: np.ndarray) -> FretboardGeometry:
        """Heuristic geometry from detected fret/string lines"""
        height, width = pixels.shape[:2]
        detection: LineDetectionResult = self.detector(pixels)

        if detection.confidence < DETECTOR_MIN_CONFIDENCE:
            return _needs_manual()

        horizontal = list(detection.horizontal)
        vertical = list(detection.vertical)

        roi = estimate_roi(horizontal, vertical, width, height)
        homography = Homography(estimate_homography_from_roi(horizontal, vertical, roi))

        geometry = FretboardGeometry(
            homography=homography,
            strings=tuple(project_string_lines(homography)),
            frets=tuple(detect_fret_positions(horizontal, roi)),
            confidence=detection.confidence,
            roi=roi,
        )
        geometry = replace(geometry, needs_manual_calibration=not geometry.is_reliable)
        logger.debug("Auto fretboard estimate: confidence %.2f, %d frets",
                     geometry.confidence, len(geometry.frets))
        return geometry


def estimate_roi(horizontal: Sequence[Line], vertical: Sequence[Line],
                 width: int, height: int) -> Rect:
    """Padded bounding box of the fret/string line intersections"""
    if not horizontal or not vertical:
        margin = (1 - DEFAULT_ROI_RATIO) / 2
        return Rect(width * margin, height * margin,
                    width * DEFAULT_ROI_RATIO, height * DEFAULT_ROI_RATIO)

    min_x = min(min(l.start.x, l.end.x) for l in vertical)
    max_x = max(max(l.start.x, l.end.x) for l in vertical)
    min_y = min(min(l.start.y, l.end.y) for l in horizontal)
    max_y = max(max(l.start.y, l.end.y) for l in horizontal)

    x = max(0.0, min_x - ROI_MARGIN_PX)
    y = max(0.0, min_y - ROI_MARGIN_PX)

    return Rect(
        x=x,
        y=y,
        width=min(float(width), max_x + ROI_MARGIN_PX) - x,
        height=min(float(height), max_y + ROI_MARGIN_PX) - y,
    )


def estimate_homography_from_roi(horizontal: Sequence[Line], vertical: Sequence[Line],
                                 roi: Optional[Rect]) -> np.ndarray:
    """Map the ROI corners onto the unit square"""
    if roi is None or len(horizontal) < 2 or len(vertical) < 2:
        return identity_homography()

    if roi.width <= 0 or roi.height <= 0 or roi.x < 0 or roi.y < 0:
        return identity_homography()

    corners = [
        Point2D(roi.x, roi.y),
        Point2D(roi.x + roi.width, roi.y),
        Point2D(roi.x, roi.y + roi.height),
        Point2D(roi.x + roi.width, roi.y + roi.height),
    ]
    return compute_homography(corners, UNIT_SQUARE)


def project_string_lines(homography: Homography) -> List[Line]:
    """
    Six evenly spaced string lines, mapped back into the image

    String k sits at rectified x = (k - 0.5) / 6 and spans the nut (y = 0) to the
    reference edge (y = 1); string 1 is nearest the left calibration points.
    """
    inverse = homography.inverse()
    strings = []

    for k in range(1, NUM_STRINGS + 1):
        x = (k - 0.5) / NUM_STRINGS
        strings.append(Line(inverse.apply(Point2D(x, 0.0)), inverse.apply(Point2D(x, 1.0))))

    return strings


def detect_fret_positions(horizontal: Sequence[Line], roi: Optional[Rect]) -> List[Line]:
    """First few horizontal lines (sorted by y) that lie inside the ROI"""
    ordered = sorted(horizontal, key=lambda l: l.start.y)

    if roi is not None:
        ordered = [l for l in ordered if roi.y <= l.start.y <= roi.y + roi.height]

    return ordered[:MAX_AUTO_FRETS]


def _interpolate(a: Point2D, b: Point2D, t: float) -> Point2D:
    return Point2D(a.x + (b.x - a.x) * t, a.y + (b.y - a.y) * t)


def project_fret_lines_from_points(points: ManualCalibrationPoints) -> List[Line]:
    """
    Nut plus frets 1-5, extrapolated linearly from the nut-to-reference spacing

    Returns:
        Lines ordered from the nut outwards
    """
    frets = [Line(points.nut_left, points.nut_right)]

    for fret in range(1, MANUAL_FRET_COUNT + 1):
        t = fret / REFERENCE_FRET
        frets.append(Line(
            _interpolate(points.nut_left, points.fret_left, t),
            _interpolate(points.nut_right, points.fret_right, t),
        ))

    return frets


def _bounding_roi(points: Sequence[Point2D]) -> Rect:
    min_x = min(p.x for p in points) - ROI_MARGIN_PX
    min_y = min(p.y for p in points) - ROI_MARGIN_PX
    max_x = max(p.x for p in points) + ROI_MARGIN_PX
    max_y = max(p.y for p in points) + ROI_MARGIN_PX

    return Rect(max(0.0, min_x), max(0.0, min_y),
                max_x - max(0.0, min_x), max_y - max(0.0, min_y))


def geometry_from_profile(profile: CalibrationProfile) -> FretboardGeometry:
    """Rebuild geometry from a stored calibration profile"""
    matrix = np.array(profile.homography, dtype=np.float64)

    if not np.all(np.isfinite(matrix)):
        logger.warning("Stored calibration has a non-finite homography")
        return _needs_manual()

    roi = None
    if profile.frets:
        roi = _bounding_roi([profile.frets[0].start, profile.frets[0].end,
                             profile.frets[-1].start, profile.frets[-1].end])

    return FretboardGeometry(
        homography=Homography(matrix),
        strings=tuple(profile.strings),
        frets=tuple(profile.frets),
        confidence=MANUAL_CALIBRATION_CONFIDENCE,
        roi=roi,
        needs_manual_calibration=False,
    )


def profile_from_geometry(geometry: FretboardGeometry, guitar_type: str = 'acoustic',
                          handedness: str = 'right', timestamp: float = 0.0) -> CalibrationProfile:
    """Calibration profile for persisting a manual geometry"""
    if not isinstance(geometry.homography, Homography):
        raise ValueError("Cannot store a calibration without a homography")

    return CalibrationProfile(
        homography=geometry.homography.matrix.tolist(),
        strings=geometry.strings,
        frets=geometry.frets,
        guitar_type=guitar_type,
        handedness=handedness,
        timestamp=timestamp,
    )
