# Guitar layout
NUM_STRINGS = 6
REFERENCE_FRET = 3  # Manual calibration taps the nut and the 3rd fret
MANUAL_FRET_COUNT = 5  # Frets 1-5 cover the open chord shapes

# Line/edge detection (downsampled frame)
EDGE_MAGNITUDE_THRESHOLD = 50  # Sobel magnitude on 0-255 grayscale
LINE_MIN_LENGTH_RATIO = 0.3  # Runs must exceed 30% of width/height
LINE_MERGE_GAP_PX = 3  # Parallel runs this close are the same edge
MIN_TOTAL_LINES = 4
MIN_HORIZONTAL_LINES = 2
MIN_VERTICAL_LINES = 3
PARTIAL_LINES_CONFIDENCE = 0.3
LINE_COUNT_SATURATION = 20

# Fretboard localisation
DETECTOR_MIN_CONFIDENCE = 0.6  # Below this the heuristic result is discarded
RELIABLE_CONFIDENCE = 0.7  # Below this manual calibration is preferred
MANUAL_CALIBRATION_CONFIDENCE = 0.9
ROI_MARGIN_PX = 10
DEFAULT_ROI_RATIO = 0.6  # Centered fallback box (60% x 60%)
MAX_AUTO_FRETS = 5

# Homography
SINGULAR_EPSILON = 1e-10

# String/fret mapping (rectified plane units)
STRING_DISTANCE_SCALE = 0.1
FRET_DISTANCE_SCALE = 0.1
ORDER_VIOLATION_DISCOUNT = 0.8
PRESSED_MAX_VELOCITY = 0.01
PRESSED_MIN_CONFIDENCE = 0.7

# Hand roles
FRETTING_MIN_KEYPOINTS = 10  # More than 10 of 21 keypoints inside the ROI

# Keypoint smoothing (One-Euro filter)
FILTER_MIN_CUTOFF = 1.0  # Hz
FILTER_BETA = 0.5
FILTER_D_CUTOFF = 1.0  # Hz

# Chord scoring
MUTED_STRING_CREDIT = 0.6  # Muting cannot be observed reliably
FRET_TOLERANCE = 0.5
EXTRA_FINGER_PENALTY = 0.05
MAX_EXTRA_FINGER_PENALTY = 0.2

# Stability
STABILITY_THRESHOLD = 0.85
REQUIRED_STABLE_MS = 2000

# Frame processing
PROCESSING_WIDTH = 640
PROCESSING_HEIGHT = 360
FRETBOARD_UPDATE_INTERVAL = 10  # frames
FRAME_POLL_INTERVAL_S = 0.005  # Wait when the source has no frame yet

# Hand detection (MediaPipe)
HAND_MIN_DETECTION_CONFIDENCE = 0.5
HAND_MIN_TRACKING_CONFIDENCE = 0.5
MAX_NUM_HANDS = 2

# Calibration persistence
CALIBRATION_PATH = "data/calibration.json"
