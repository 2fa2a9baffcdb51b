"""
Read and downsample camera or video frames for analysis
"""
import time
import cv2
import numpy as np
from pathlib import Path
from typing import Optional, Union

from config.coach_config import PROCESSING_WIDTH, PROCESSING_HEIGHT
from fretcoach.types import Frame


class VideoFrameSource:
    """Pull frames from a video file or camera on demand"""

    def __init__(self, source: Union[str, int, Path],
                 processing_width=PROCESSING_WIDTH,
                 processing_height=PROCESSING_HEIGHT):
        """
        Args:
            source: Video file path or camera index
            processing_width: Width of the downsampled analysis frame
            processing_height: Height of the downsampled analysis frame
        """
        self.processing_size = (processing_width, processing_height)
        self.is_camera = isinstance(source, int)

        if not self.is_camera:
            source = Path(source)
            if not source.exists():
                raise FileNotFoundError(f"Video file not found: {source}")
            source = str(source)

        self.cap = cv2.VideoCapture(source)

        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open video source: {source}")

        self.fps = self.cap.get(cv2.CAP_PROP_FPS) or 0.0
        self.frame_count = 0
        self.exhausted = False

    def read(self) -> Optional[Frame]:
        """
        Returns:
            Downsampled RGBA frame, or None when no frame is available
        """
        if self.exhausted:
            return None

        ret, frame = self.cap.read()
        if not ret:
            # A file has ended; a camera may simply not be ready yet
            if not self.is_camera:
                self.exhausted = True
            return None

        if self.is_camera or self.fps <= 0:
            timestamp = time.monotonic() * 1000.0
        else:
            timestamp = self.frame_count / self.fps * 1000.0

        self.frame_count += 1

        return Frame(pixels=self._prepare(frame), timestamp=timestamp)

    def _prepare(self, frame: np.ndarray) -> np.ndarray:
        small = cv2.resize(frame, self.processing_size, interpolation=cv2.INTER_AREA)
        # OpenCV decodes BGR
        return cv2.cvtColor(small, cv2.COLOR_BGR2RGBA)

    def release(self):
        self.cap.release()
