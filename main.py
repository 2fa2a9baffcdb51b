#!/usr/bin/env python3
import argparse
import asyncio
import logging

from fretcoach.coaching.calibration_store import JsonCalibrationStore
from fretcoach.coaching.chord_templates import CHORD_NAMES
from fretcoach.fretboard.fretboard_localizer import ManualCalibrationPoints
from fretcoach.pipeline import FrameProcessor
from fretcoach.types import Point2D
from fretcoach.video.frame_source import VideoFrameSource
from config.coach_config import CALIBRATION_PATH


def parse_manual_points(text: str) -> ManualCalibrationPoints:
    """Parse 'x1,y1,x2,y2,x3,y3,x4,y4' (nut-left, nut-right, fret3-left, fret3-right)"""
    values = [float(v) for v in text.split(',')]
    if len(values) != 8:
        raise argparse.ArgumentTypeError("Manual calibration needs 8 comma-separated numbers")

    points = [Point2D(values[i], values[i + 1]) for i in range(0, 8, 2)]
    return ManualCalibrationPoints(*points)


def print_snapshot(snapshot):
    fretboard = snapshot.fretboard
    line = f"[{snapshot.timestamp / 1000:7.2f}s] fretboard {fretboard.confidence:.2f}"

    if fretboard.needs_manual_calibration:
        line += " (needs calibration)"

    if snapshot.chord_match is not None:
        line += f" | {snapshot.chord_target}: {snapshot.chord_score:.2f}, held {snapshot.stable_ms / 1000:.1f}s"
        if snapshot.is_stable:
            line += " ✓"

    if snapshot.session_result is not None:
        result = snapshot.session_result
        line += f" | formed in {result.time_to_form_ms / 1000:.1f}s"

    if snapshot.feedback:
        line += " | " + "; ".join(snapshot.feedback)

    print(line)


def main():
    parser = argparse.ArgumentParser(description='Guitar chord coach')
    parser.add_argument('input', type=str, help='Video file or camera index')
    parser.add_argument('--chord', choices=CHORD_NAMES, help='Target chord')
    parser.add_argument('--calibration', type=str, default=CALIBRATION_PATH,
                        help='Calibration profile path')
    parser.add_argument('--manual', type=parse_manual_points,
                        help='Manual calibration: x1,y1,x2,y2,x3,y3,x4,y4 in processing pixels')
    parser.add_argument('--max-frames', type=int, help='Stop after N processed frames')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    source = int(args.input) if args.input.isdigit() else args.input

    print(f"Processing: {args.input}")
    frame_source = VideoFrameSource(source)
    processor = FrameProcessor(frame_source, calibration_store=JsonCalibrationStore(args.calibration))

    if args.manual:
        geometry = processor.calibrate_manual(args.manual)
        if geometry.needs_manual_calibration:
            print("✗ Manual calibration rejected")
        else:
            print(f"✓ Manual calibration saved to: {args.calibration}")
    elif processor.load_calibration() is not None:
        print(f"✓ Loaded calibration: {args.calibration}")

    if args.chord:
        processor.set_chord_target(args.chord)

    processor.observer = print_snapshot

    try:
        asyncio.run(processor.run(max_frames=args.max_frames))
    except KeyboardInterrupt:
        pass
    finally:
        processor.dispose()
        frame_source.release()

    for result in processor.session_history.results:
        mistakes = ", ".join(result.mistakes) or "none"
        print(f"{result.chord}: {result.score:.2f} in {result.time_to_form_ms / 1000:.1f}s (mistakes: {mistakes})")


if __name__ == "__main__":
    main()
