"""
Assign detected hands to fretting and strumming roles
"""
from typing import Optional, Sequence

from config.coach_config import FRETTING_MIN_KEYPOINTS
from fretcoach.types import HandObservation, HandRoles, Rect


def keypoints_in_roi(hand: HandObservation, roi: Optional[Rect]) -> int:
    """Number of keypoints inside the fretboard region (0 without a region)"""
    if roi is None:
        return 0
    return sum(1 for keypoint in hand.keypoints if roi.contains(keypoint))


def distance_to_roi(hand: HandObservation, roi: Optional[Rect]) -> float:
    """Distance from the wrist to the region centre (inf without a region)"""
    if roi is None:
        return float('inf')
    return hand.wrist.distance_to(roi.center)


def assign_hands(hands: Sequence[HandObservation], roi: Optional[Rect]) -> HandRoles:
    """
    Decide which hand frets and which strums

    Args:
        hands: Up to two detected hands (extra hands are ignored)
        roi: Fretboard region of interest in image pixels

    Returns:
        HandRoles with either role possibly None
    """
    if not hands:
        return HandRoles()

    if len(hands) == 1:
        hand = hands[0]
        if keypoints_in_roi(hand, roi) > FRETTING_MIN_KEYPOINTS:
            return HandRoles(fretting=hand)
        return HandRoles(strumming=hand)

    first, second = hands[0], hands[1]
    first_in = keypoints_in_roi(first, roi)
    second_in = keypoints_in_roi(second, roi)

    if first_in > second_in:
        return HandRoles(fretting=first, strumming=second)
    if second_in > first_in:
        return HandRoles(fretting=second, strumming=first)

    # Tie: the wrist nearer the fretboard centre is fretting
    if distance_to_roi(first, roi) < distance_to_roi(second, roi):
        return HandRoles(fretting=first, strumming=second)
    return HandRoles(fretting=second, strumming=first)
