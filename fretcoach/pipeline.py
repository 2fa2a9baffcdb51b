"""
Per-frame chord coaching pipeline
"""
import asyncio
import inspect
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from config.coach_config import (
    DETECTOR_MIN_CONFIDENCE,
    FRETBOARD_UPDATE_INTERVAL,
    FRAME_POLL_INTERVAL_S,
    STABILITY_THRESHOLD,
    REQUIRED_STABLE_MS,
)
from fretcoach.coaching.chord_matcher import generate_feedback, match_chord
from fretcoach.coaching.chord_templates import CHORD_LIBRARY
from fretcoach.coaching.session_history import SessionHistory
from fretcoach.coaching.stability import StabilityTracker
from fretcoach.fretboard.finger_mapper import FingerMapper
from fretcoach.fretboard.fretboard_localizer import (
    FretboardLocalizer,
    ManualCalibrationPoints,
    geometry_from_profile,
    profile_from_geometry,
)
from fretcoach.types import (
    CalibrationProfile,
    ChordMatchResult,
    Frame,
    FrameSnapshot,
    FretboardGeometry,
    HandObservation,
    SessionResult,
)
from fretcoach.video.hand_assigner import assign_hands
from fretcoach.video.keypoint_filter import HandKeypointFilter

logger = logging.getLogger(__name__)

SnapshotObserver = Callable[[FrameSnapshot], None]


class FrameProcessor:
    """
    Runs the coaching pipeline one frame at a time

    The processor exclusively owns the fretboard geometry, the stability tracker
    and the keypoint filters; observers only ever see immutable snapshots.
    """

    def __init__(self,
                 frame_source,
                 hand_detector=None,
                 chord_source=CHORD_LIBRARY,
                 calibration_store=None,
                 session_history=None,
                 localizer: Optional[FretboardLocalizer] = None,
                 fretboard_update_interval=FRETBOARD_UPDATE_INTERVAL,
                 stability_threshold=STABILITY_THRESHOLD,
                 required_stable_ms=REQUIRED_STABLE_MS,
                 poll_interval=FRAME_POLL_INTERVAL_S):
        """
        Args:
            frame_source: Object with read() -> Optional[Frame]
            hand_detector: Object with detect(image, timestamp) -> hands; a plain
                method runs on a worker thread, a coroutine is awaited directly.
                Defaults to the MediaPipe tracker
            chord_source: Object with lookup(name) -> Optional[ChordTemplate]
            calibration_store: Optional object with load() / save(profile)
            session_history: Object with add(SessionResult) (default in-memory history)
            localizer: Fretboard localizer (default heuristic detector)
            fretboard_update_interval: Re-estimate the fretboard every N frames
            stability_threshold: Score needed to count towards hold time
            required_stable_ms: Hold time for a chord to count as formed
            poll_interval: Seconds to wait when the source has no frame
        """
        if hand_detector is None:
            from fretcoach.video.hand_tracker import HandTracker
            hand_detector = HandTracker()

        self.frame_source = frame_source
        self.hand_detector = hand_detector
        self.chord_source = chord_source
        self.calibration_store = calibration_store
        self.session_history = session_history if session_history is not None else SessionHistory()
        self.localizer = localizer or FretboardLocalizer()
        self.fretboard_update_interval = max(1, int(fretboard_update_interval))
        self.poll_interval = poll_interval

        self.geometry = FretboardGeometry.empty()
        self.finger_mapper = FingerMapper()
        self.keypoint_filters: Dict[Tuple[str, int], HandKeypointFilter] = {}
        self.tracker = StabilityTracker(threshold=stability_threshold,
                                        required_stable_ms=required_stable_ms)
        self.chord_target: Optional[str] = None
        self.chord_started_at: Optional[float] = None  # ms; first frame after the target was set
        self._chord_recorded = False
        self.frame_count = 0

        self.observer: Optional[SnapshotObserver] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._in_flight = False

    # Loop control

    def start(self, observer: Optional[SnapshotObserver] = None) -> asyncio.Task:
        """Start the frame loop on the running event loop"""
        if self._task is not None and not self._task.done():
            return self._task

        if observer is not None:
            self.observer = observer
        self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    def stop(self):
        """Cancel the frame loop, including any pending hand detection"""
        self._running = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def dispose(self):
        """Stop and release detector and filter state"""
        self.stop()
        self.reset()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        close = getattr(self.hand_detector, 'close', None)
        if close is not None:
            close()

    async def run(self, max_frames: Optional[int] = None):
        """
        Process frames until stopped, the source is exhausted or max_frames is reached

        The next frame is only read after the current one is fully processed, so
        frames are dropped under load rather than queued.
        """
        self._running = True
        processed = 0

        while self._running:
            if getattr(self.frame_source, 'exhausted', False):
                break

            snapshot = await self.process_frame()

            if snapshot is None:
                await asyncio.sleep(self.poll_interval)
                continue

            processed += 1
            if max_frames is not None and processed >= max_frames:
                break

            await asyncio.sleep(0)

        self._running = False

    # Per-frame pipeline

    async def process_frame(self) -> Optional[FrameSnapshot]:
        """
        Process one frame if none is in flight

        Returns:
            The emitted snapshot, or None when skipped or failed
        """
        if self._in_flight:
            return None

        self._in_flight = True
        try:
            frame = self.frame_source.read()
            if frame is None:
                return None

            try:
                snapshot = await self._process(frame)
            finally:
                self.frame_count += 1

            if self.observer is not None:
                self.observer(snapshot)

            return snapshot
        except Exception:
            logger.exception("Frame processing error (frame %d)", self.frame_count)
            return None
        finally:
            self._in_flight = False

    async def _process(self, frame: Frame) -> FrameSnapshot:
        timestamp = frame.timestamp
        if self.chord_target and self.chord_started_at is None:
            self.chord_started_at = timestamp

        if self._should_update_fretboard():
            self._consider_geometry(self.localizer.estimate(frame.pixels))

        detections = await self._detect_hands(frame, timestamp)
        hands = self._smooth_hands(detections or [], timestamp)
        roles = assign_hands(hands, self.geometry.roi)

        assignments = ()
        if roles.fretting is not None and self.finger_mapper.is_calibrated():
            assignments = self.finger_mapper.map_fingertips(roles.fretting.fingertips()).assignments

        chord_match = None
        if self.chord_target and assignments:
            template = self.chord_source.lookup(self.chord_target)
            if template is not None:
                chord_match, self.tracker = match_chord(assignments, template, self.tracker, timestamp)
            else:
                logger.debug("Unknown chord target: %s", self.chord_target)

        feedback: Tuple[str, ...] = ()
        if self.chord_target:
            feedback = tuple(generate_feedback(chord_match, self.chord_target,
                                               self.tracker.required_stable_ms))

        is_stable = chord_match is not None and self.tracker.is_stable()
        session_result = None
        if is_stable and not self._chord_recorded:
            session_result = self._record_session_result(chord_match, timestamp)

        return FrameSnapshot(
            frame_index=self.frame_count,
            timestamp=timestamp,
            fretboard=self.geometry,
            hands=roles,
            chord_target=self.chord_target,
            chord_match=chord_match,
            finger_assignments=tuple(assignments),
            chord_score=chord_match.score if chord_match else 0.0,
            stable_ms=chord_match.stability_ms if chord_match else 0.0,
            is_stable=is_stable,
            feedback=feedback,
            session_result=session_result,
        )

    async def _detect_hands(self, frame: Frame, timestamp: float):
        """Run hand detection without blocking the event loop"""
        detect = self.hand_detector.detect
        if inspect.iscoroutinefunction(detect):
            return await detect(frame.pixels, timestamp)

        # One worker keeps MediaPipe graph calls on a single thread
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='hand-detect')

        detections = await asyncio.get_running_loop().run_in_executor(
            self._executor, detect, frame.pixels, timestamp)
        if inspect.isawaitable(detections):
            detections = await detections
        return detections

    def _record_session_result(self, chord_match: ChordMatchResult, timestamp: float) -> SessionResult:
        """Record the first stable frame for the current target; later frames are ignored"""
        started_at = self.chord_started_at if self.chord_started_at is not None else timestamp
        result = SessionResult(
            chord=self.chord_target,
            score=chord_match.score,
            time_to_form_ms=max(0.0, timestamp - started_at),
            mistakes=tuple(
                match.reason or 'Unknown mistake'
                for _, match in sorted(chord_match.per_string.items())
                if not match.ok
            ),
            timestamp=timestamp,
        )
        self._chord_recorded = True
        self.session_history.add(result)
        logger.info("Chord %s formed in %.0f ms (score %.2f)",
                    result.chord, result.time_to_form_ms, result.score)
        return result

    def _should_update_fretboard(self) -> bool:
        return (self.frame_count % self.fretboard_update_interval == 0 or
                self.geometry.confidence < DETECTOR_MIN_CONFIDENCE)

    def _consider_geometry(self, candidate: FretboardGeometry):
        """Keep the new estimate only if it is not worse than the current one"""
        if candidate.confidence >= self.geometry.confidence:
            self._set_geometry(candidate)

    def _set_geometry(self, geometry: FretboardGeometry):
        self.geometry = geometry
        self.finger_mapper.calibrate(geometry)

    def _smooth_hands(self, hands: Sequence[HandObservation], timestamp: float) -> List[HandObservation]:
        """Run each hand through its own keypoint filter; lost hands reset theirs"""
        smoothed = []
        seen = set()

        for hand in hands:
            key = (hand.handedness, sum(1 for label, _ in seen if label == hand.handedness))
            seen.add(key)

            keypoint_filter = self.keypoint_filters.get(key)
            if keypoint_filter is None:
                keypoint_filter = self.keypoint_filters[key] = HandKeypointFilter()

            smoothed.append(keypoint_filter.filter(hand, timestamp))

        for key in list(self.keypoint_filters):
            if key not in seen:
                self.keypoint_filters.pop(key).reset()

        return smoothed

    # Target chord and calibration

    def set_chord_target(self, chord: Optional[str], timestamp: Optional[float] = None):
        """
        Change the target chord; hold time never carries over between chords

        Args:
            chord: Chord name, or None to stop coaching
            timestamp: When the chord was chosen (ms, frame clock); defaults to the next frame
        """
        if chord != self.chord_target:
            self.tracker = self.tracker.reset()
            self.chord_started_at = timestamp
            self._chord_recorded = False
        self.chord_target = chord

    def calibrate_manual(self, points: ManualCalibrationPoints,
                         guitar_type: str = 'acoustic',
                         handedness: str = 'right') -> FretboardGeometry:
        """
        Apply operator-tapped calibration and persist it when a store is configured

        Returns:
            The resulting geometry (flagged, and not applied, when the points are invalid)
        """
        geometry = self.localizer.estimate(None, manual_points=points)
        if geometry.needs_manual_calibration:
            return geometry

        self._set_geometry(geometry)

        if self.calibration_store is not None:
            self.calibration_store.save(profile_from_geometry(
                geometry, guitar_type=guitar_type, handedness=handedness,
                timestamp=time.time() * 1000.0,
            ))

        return geometry

    def apply_calibration(self, profile: CalibrationProfile) -> FretboardGeometry:
        geometry = geometry_from_profile(profile)
        if not geometry.needs_manual_calibration:
            self._set_geometry(geometry)
        return geometry

    def load_calibration(self) -> Optional[CalibrationProfile]:
        """Restore the stored calibration profile, if any"""
        if self.calibration_store is None:
            return None

        profile = self.calibration_store.load()
        if profile is not None:
            self.apply_calibration(profile)
        return profile

    def reset(self):
        """Session reset: frame count, hold time and keypoint smoothing"""
        self.frame_count = 0
        self.tracker = self.tracker.reset()
        self.chord_started_at = None
        self._chord_recorded = False
        for keypoint_filter in self.keypoint_filters.values():
            keypoint_filter.reset()
        self.keypoint_filters.clear()
