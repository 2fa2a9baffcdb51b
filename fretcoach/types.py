"""
Shared value types for the chord coaching pipeline
"""
import math
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Mapping, Optional, Tuple, Union

import numpy as np

from config.coach_config import NUM_STRINGS, RELIABLE_CONFIDENCE


@dataclass(frozen=True)
class Point2D:
    x: float
    y: float

    def distance_to(self, other: 'Point2D') -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y)


@dataclass(frozen=True)
class Line:
    start: Point2D
    end: Point2D


@dataclass(frozen=True)
class Rect:
    """Axis-aligned region in image pixels"""
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> Point2D:
        return Point2D(self.x + self.width / 2, self.y + self.height / 2)

    def contains(self, point: Point2D) -> bool:
        return (self.x <= point.x <= self.x + self.width and
                self.y <= point.y <= self.y + self.height)


# Homography state: either no geometry yet, or a valid 3x3 matrix

@dataclass(frozen=True)
class NoHomography:
    """No valid fretboard geometry has been estimated yet"""


NO_HOMOGRAPHY = NoHomography()


@dataclass(frozen=True, eq=False)
class Homography:
    """Projective transform from image space to the rectified fretboard plane"""
    matrix: np.ndarray

    def __post_init__(self):
        # Snapshots share this matrix with the processor and mapper
        matrix = np.array(self.matrix, dtype=np.float64)
        matrix.flags.writeable = False
        object.__setattr__(self, 'matrix', matrix)

    def apply(self, point: Point2D) -> Point2D:
        from fretcoach.fretboard.homography import apply_homography
        return apply_homography(self.matrix, point)

    def inverse(self) -> 'Homography':
        from fretcoach.fretboard.homography import invert_homography
        return Homography(invert_homography(self.matrix))


HomographyState = Union[NoHomography, Homography]


@dataclass(frozen=True)
class FretboardGeometry:
    homography: HomographyState
    strings: Tuple[Line, ...] = ()
    frets: Tuple[Line, ...] = ()
    confidence: float = 0.0
    roi: Optional[Rect] = None
    needs_manual_calibration: bool = True

    @classmethod
    def empty(cls) -> 'FretboardGeometry':
        return cls(homography=NO_HOMOGRAPHY)

    @property
    def is_reliable(self) -> bool:
        """Geometry below the reliability threshold should give way to manual calibration"""
        return self.confidence >= RELIABLE_CONFIDENCE


class HandLandmark(IntEnum):
    """MediaPipe hand landmark topology (21 keypoints)"""
    WRIST = 0
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4
    INDEX_FINGER_MCP = 5
    INDEX_FINGER_PIP = 6
    INDEX_FINGER_DIP = 7
    INDEX_FINGER_TIP = 8
    MIDDLE_FINGER_MCP = 9
    MIDDLE_FINGER_PIP = 10
    MIDDLE_FINGER_DIP = 11
    MIDDLE_FINGER_TIP = 12
    RING_FINGER_MCP = 13
    RING_FINGER_PIP = 14
    RING_FINGER_DIP = 15
    RING_FINGER_TIP = 16
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20


NUM_LANDMARKS = len(HandLandmark)

# Finger id (0 = thumb ... 4 = pinky) -> tip landmark
FINGERTIPS = (
    HandLandmark.THUMB_TIP,
    HandLandmark.INDEX_FINGER_TIP,
    HandLandmark.MIDDLE_FINGER_TIP,
    HandLandmark.RING_FINGER_TIP,
    HandLandmark.PINKY_TIP,
)

FINGER_NAMES = ('Thumb', 'Index', 'Middle', 'Ring', 'Pinky')


@dataclass(frozen=True)
class Fingertip:
    finger_id: int
    position: Point2D


@dataclass(frozen=True)
class HandObservation:
    keypoints: Tuple[Point2D, ...]
    handedness: str = 'Right'
    score: float = 0.0

    def __post_init__(self):
        if len(self.keypoints) != NUM_LANDMARKS:
            raise ValueError(
                f"Hand observation needs {NUM_LANDMARKS} keypoints, got {len(self.keypoints)}"
            )

    def landmark(self, landmark: HandLandmark) -> Point2D:
        return self.keypoints[landmark]

    @property
    def wrist(self) -> Point2D:
        return self.keypoints[HandLandmark.WRIST]

    def fingertips(self) -> Tuple[Fingertip, ...]:
        return tuple(
            Fingertip(finger_id, self.keypoints[tip])
            for finger_id, tip in enumerate(FINGERTIPS)
        )


@dataclass(frozen=True)
class HandRoles:
    fretting: Optional[HandObservation] = None
    strumming: Optional[HandObservation] = None


@dataclass(frozen=True)
class FingerAssignment:
    finger_id: int
    string_idx: int  # 1 = high e ... 6 = low E
    fret_idx: int  # 0 = open
    confidence: float
    position: Point2D


# Chord template constraints

@dataclass(frozen=True)
class Muted:
    pass


@dataclass(frozen=True)
class Open:
    pass


@dataclass(frozen=True)
class Fretted:
    fret: int
    finger: int


StringConstraint = Union[Muted, Open, Fretted]


@dataclass(frozen=True)
class ChordTemplate:
    name: str
    strings: Mapping[int, StringConstraint]

    def __post_init__(self):
        invalid = [s for s in self.strings if not 1 <= s <= NUM_STRINGS]
        if invalid:
            raise ValueError(f"Chord '{self.name}' constrains unknown strings: {invalid}")

    def constraint(self, string_idx: int) -> Optional[StringConstraint]:
        return self.strings.get(string_idx)


@dataclass(frozen=True)
class StringMatch:
    ok: bool
    reason: Optional[str] = None
    finger_id: Optional[int] = None


@dataclass(frozen=True)
class ChordMatchResult:
    score: float
    per_string: Mapping[int, StringMatch]
    stability_ms: float = 0.0


@dataclass(frozen=True)
class Frame:
    """Downsampled RGBA (or RGB) pixel buffer with a millisecond timestamp"""
    pixels: np.ndarray
    timestamp: float

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]


@dataclass(frozen=True)
class SessionResult:
    """A target chord held long enough to count as formed"""
    chord: str
    score: float
    time_to_form_ms: float  # From target selection to the first stable frame
    mistakes: Tuple[str, ...] = ()
    timestamp: float = 0.0


@dataclass(frozen=True)
class FrameSnapshot:
    frame_index: int
    timestamp: float
    fretboard: FretboardGeometry
    hands: HandRoles
    chord_target: Optional[str] = None
    chord_match: Optional[ChordMatchResult] = None
    finger_assignments: Tuple[FingerAssignment, ...] = ()
    chord_score: float = 0.0
    stable_ms: float = 0.0
    is_stable: bool = False
    feedback: Tuple[str, ...] = ()
    session_result: Optional[SessionResult] = None  # Set on the frame a chord is formed


def _point_to_list(point: Point2D) -> List[float]:
    return [point.x, point.y]


def _line_to_dict(line: Line) -> Dict:
    return {'start': _point_to_list(line.start), 'end': _point_to_list(line.end)}


def _line_from_dict(data: Dict) -> Line:
    return Line(Point2D(*data['start']), Point2D(*data['end']))


@dataclass(frozen=True)
class CalibrationProfile:
    homography: List[List[float]]
    strings: Tuple[Line, ...]
    frets: Tuple[Line, ...]
    guitar_type: str = 'acoustic'  # 'acoustic' or 'electric'
    handedness: str = 'right'  # 'right' or 'left'
    timestamp: float = field(default=0.0)

    def to_dict(self) -> Dict:
        return {
            'homography': [list(map(float, row)) for row in self.homography],
            'strings': [_line_to_dict(line) for line in self.strings],
            'frets': [_line_to_dict(line) for line in self.frets],
            'guitar_type': self.guitar_type,
            'handedness': self.handedness,
            'timestamp': self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'CalibrationProfile':
        homography = [[float(v) for v in row] for row in data['homography']]
        if len(homography) != 3 or any(len(row) != 3 for row in homography):
            raise ValueError("Calibration homography must be 3x3")

        return cls(
            homography=homography,
            strings=tuple(_line_from_dict(line) for line in data['strings']),
            frets=tuple(_line_from_dict(line) for line in data['frets']),
            guitar_type=data.get('guitar_type', 'acoustic'),
            handedness=data.get('handedness', 'right'),
            timestamp=float(data.get('timestamp', 0.0)),
        )
