"""Shared pytest fixtures for the chord coaching tests."""
import numpy as np
import pytest

from fretcoach.fretboard.fretboard_localizer import ManualCalibrationPoints
from fretcoach.types import FingerAssignment, HandLandmark, HandObservation, Point2D, FINGERTIPS


# Axis-aligned calibration: nut at y=100, 3rd fret at y=190, strings between x=100 and x=160.
# Fret k then sits at y = 100 + 30k and string k at x = 95 + 10k.
NUT_Y = 100
FRET_SPACING = 30
STRING_X = {k: 95 + 10 * k for k in range(1, 7)}


def fret_band_y(fret: int) -> float:
    """Image y just behind the given fret (0 = above the nut)"""
    if fret == 0:
        return NUT_Y - 5
    return NUT_Y + FRET_SPACING * fret - 5


@pytest.fixture
def manual_points():
    return ManualCalibrationPoints(
        nut_left=Point2D(100, 100),
        nut_right=Point2D(160, 100),
        fret_left=Point2D(100, 190),
        fret_right=Point2D(160, 190),
    )


@pytest.fixture
def grid_image():
    """Six evenly spaced fret lines and five string lines on a black frame"""
    image = np.zeros((200, 200, 4), dtype=np.uint8)
    image[:, :, 3] = 255
    for y in range(20, 200, 30):
        image[y, 20:180, :3] = 255
    for x in range(40, 170, 30):
        image[10:190, x, :3] = 255
    return image


@pytest.fixture
def make_hand():
    """Factory for a hand with every keypoint at `base` and fingertips overridden"""
    def _make(base=(130, 200), tips=None, handedness='Right', score=0.9):
        keypoints = [Point2D(*base) for _ in HandLandmark]
        for finger_id, position in (tips or {}).items():
            keypoints[FINGERTIPS[finger_id]] = Point2D(*position)
        return HandObservation(keypoints=tuple(keypoints), handedness=handedness, score=score)
    return _make


@pytest.fixture
def chord_hand(make_hand):
    """Factory for a fretting hand placing fingers at (string, fret) on the manual grid"""
    def _make(placements, **kwargs):
        tips = {
            finger_id: (STRING_X[string_idx], fret_band_y(fret))
            for finger_id, (string_idx, fret) in placements.items()
        }
        return make_hand(tips=tips, **kwargs)
    return _make


@pytest.fixture
def finger():
    def _finger(finger_id, string_idx, fret_idx, confidence=0.9):
        return FingerAssignment(
            finger_id=finger_id,
            string_idx=string_idx,
            fret_idx=fret_idx,
            confidence=confidence,
            position=Point2D(0, 0),
        )
    return _finger
