import pytest

from fretcoach.types import HandLandmark, Point2D
from fretcoach.video.keypoint_filter import HandKeypointFilter, OneEuroFilter, PointFilter

FRAME_MS = 1000 / 30


def test_first_sample_passes_through():
    assert OneEuroFilter().filter(3.5, 0.0) == 3.5


def test_constant_input_converges():
    one_euro = OneEuroFilter()
    one_euro.filter(0.0, 0.0)

    value = None
    for i in range(1, 200):
        value = one_euro.filter(5.0, i * FRAME_MS)

    assert value == pytest.approx(5.0, abs=1e-3)


def test_higher_beta_lags_less_on_a_step():
    slow = OneEuroFilter(beta=0.0)
    fast = OneEuroFilter(beta=1.0)
    for one_euro in (slow, fast):
        one_euro.filter(0.0, 0.0)

    slow_value = slow.filter(1.0, FRAME_MS)
    fast_value = fast.filter(1.0, FRAME_MS)

    assert 0.0 < slow_value < fast_value < 1.0


def test_non_increasing_timestamp_returns_previous_value():
    one_euro = OneEuroFilter()
    one_euro.filter(1.0, 100.0)
    previous = one_euro.filter(2.0, 200.0)

    assert one_euro.filter(50.0, 200.0) == previous
    assert one_euro.filter(50.0, 150.0) == previous


def test_reset_forgets_history():
    one_euro = OneEuroFilter()
    one_euro.filter(1.0, 0.0)
    one_euro.filter(2.0, FRAME_MS)

    one_euro.reset()

    assert one_euro.filter(9.0, 10 * FRAME_MS) == 9.0


def test_point_filter_smooths_both_axes():
    point_filter = PointFilter()
    point_filter.filter(Point2D(0, 0), 0.0)

    smoothed = point_filter.filter(Point2D(10, -10), FRAME_MS)

    assert 0 < smoothed.x < 10
    assert -10 < smoothed.y < 0


def test_hand_filter_keeps_metadata(make_hand):
    hand_filter = HandKeypointFilter()
    hand = make_hand(base=(50, 60), handedness='Left', score=0.75)

    smoothed = hand_filter.filter(hand, 0.0)

    assert smoothed.handedness == 'Left'
    assert smoothed.score == 0.75
    assert smoothed.keypoints == hand.keypoints


def test_hand_filter_smooths_each_landmark(make_hand):
    hand_filter = HandKeypointFilter()
    hand_filter.filter(make_hand(base=(0, 0)), 0.0)

    moved = make_hand(base=(0, 0), tips={1: (100, 0)})
    smoothed = hand_filter.filter(moved, FRAME_MS)

    assert smoothed.landmark(HandLandmark.WRIST) == Point2D(0, 0)
    assert 0 < smoothed.landmark(HandLandmark.INDEX_FINGER_TIP).x < 100
