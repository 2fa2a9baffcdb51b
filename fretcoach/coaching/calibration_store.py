"""
JSON persistence for manual calibration profiles
"""
import json
import logging
from pathlib import Path
from typing import Optional

from config.coach_config import CALIBRATION_PATH
from fretcoach.types import CalibrationProfile

logger = logging.getLogger(__name__)


class JsonCalibrationStore:
    """Store one calibration profile in a JSON file"""

    def __init__(self, path=CALIBRATION_PATH):
        self.path = Path(path)

    def load(self) -> Optional[CalibrationProfile]:
        """
        Returns:
            Stored profile, or None if missing or unreadable
        """
        if not self.path.exists():
            return None

        try:
            with open(self.path, 'r') as f:
                return CalibrationProfile.from_dict(json.load(f))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Failed to load calibration from %s: %s", self.path, e)
            return None

    def save(self, profile: CalibrationProfile):
        self.path.parent.mkdir(exist_ok=True, parents=True)
        with open(self.path, 'w') as f:
            json.dump(profile.to_dict(), f, indent=2)

    def clear(self):
        if self.path.exists():
            self.path.unlink()
