"""
Hand tracking using MediaPipe
"""
import numpy as np
import mediapipe as mp
from typing import List

from config.coach_config import (
    HAND_MIN_DETECTION_CONFIDENCE,
    HAND_MIN_TRACKING_CONFIDENCE,
    MAX_NUM_HANDS,
)
from fretcoach.types import HandObservation, Point2D


class HandTracker:
    """Track hands and finger positions using MediaPipe"""

    def __init__(self,
                 min_detection_confidence=HAND_MIN_DETECTION_CONFIDENCE,
                 min_tracking_confidence=HAND_MIN_TRACKING_CONFIDENCE,
                 max_num_hands=MAX_NUM_HANDS):
        """
        Args:
            min_detection_confidence: Minimum confidence for hand detection
            min_tracking_confidence: Minimum confidence for hand tracking
            max_num_hands: Maximum number of hands to detect
        """
        self.mp_hands = mp.solutions.hands

        self.hands = self.mp_hands.Hands(
            static_image_mode=False,
            max_num_hands=max_num_hands,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence
        )

    def detect(self, image: np.ndarray, timestamp: float) -> List[HandObservation]:
        """
        Detect hands in a frame

        Args:
            image: RGBA or RGB frame
            timestamp: Frame time in milliseconds (MediaPipe tracks internally)

        Returns:
            Detected hands with keypoints in pixel coordinates of image
        """
        rgb = np.ascontiguousarray(image[:, :, :3])
        h, w = rgb.shape[:2]

        results = self.hands.process(rgb)

        detected_hands = []

        if results.multi_hand_landmarks and results.multi_handedness:
            for hand_landmarks, handedness in zip(
                results.multi_hand_landmarks,
                results.multi_handedness
            ):
                # "Left" or "Right"
                hand_label = handedness.classification[0].label
                hand_score = handedness.classification[0].score

                keypoints = tuple(
                    Point2D(landmark.x * w, landmark.y * h)
                    for landmark in hand_landmarks.landmark
                )

                detected_hands.append(HandObservation(
                    keypoints=keypoints,
                    handedness=hand_label,
                    score=hand_score,
                ))

        return detected_hands

    def close(self):
        """Release MediaPipe resources"""
        self.hands.close()
