"""
Score finger assignments against a chord template
"""
from dataclasses import replace
from types import MappingProxyType
from typing import Dict, List, Optional, Sequence, Tuple

from config.coach_config import (
    NUM_STRINGS,
    MUTED_STRING_CREDIT,
    FRET_TOLERANCE,
    EXTRA_FINGER_PENALTY,
    MAX_EXTRA_FINGER_PENALTY,
    REQUIRED_STABLE_MS,
)
from fretcoach.coaching.stability import StabilityTracker
from fretcoach.types import (
    FINGER_NAMES,
    ChordMatchResult,
    ChordTemplate,
    FingerAssignment,
    Fretted,
    Muted,
    Open,
    StringMatch,
)


def best_finger_on_string(fingers: Sequence[FingerAssignment],
                          string_idx: int) -> Optional[FingerAssignment]:
    """Highest-confidence finger assigned to a string"""
    candidates = [f for f in fingers if f.string_idx == string_idx]
    if not candidates:
        return None
    return max(candidates, key=lambda f: f.confidence)


def _is_pressing(finger: FingerAssignment) -> bool:
    return finger.fret_idx >= 1


def compute_extra_finger_penalty(fingers: Sequence[FingerAssignment],
                                 template: ChordTemplate) -> float:
    """
    Penalty for fingers where the shape does not want them

    Counts fingers on muted strings, fingers at the wrong fret of a fretted string,
    and fretted strings with no finger at all, whatever fret a finger sits at.
    Capped so a sloppy hand cannot wipe out the per-string credit entirely.
    """
    count = 0

    for finger in fingers:
        constraint = template.constraint(finger.string_idx)
        if isinstance(constraint, Muted):
            count += 1
        elif isinstance(constraint, Fretted) and abs(finger.fret_idx - constraint.fret) > FRET_TOLERANCE:
            count += 1

    for string_idx, constraint in template.strings.items():
        if isinstance(constraint, Fretted) and best_finger_on_string(fingers, string_idx) is None:
            count += 1

    return min(count * EXTRA_FINGER_PENALTY, MAX_EXTRA_FINGER_PENALTY)


def score_chord(fingers: Sequence[FingerAssignment], template: ChordTemplate) -> ChordMatchResult:
    """
    Score a chord shape

    Args:
        fingers: Finger assignments for the fretting hand
        template: Target chord

    Returns:
        ChordMatchResult with per-string verdicts (stability_ms left at 0)
    """
    fingers = list(fingers or [])
    score = 0.0
    per_string: Dict[int, StringMatch] = {}

    for s in range(1, NUM_STRINGS + 1):
        expected = template.constraint(s)
        observed = best_finger_on_string(fingers, s)

        if expected is None:
            per_string[s] = StringMatch(ok=True, reason='no constraint')
            score += 1
            continue

        if isinstance(expected, Muted):
            per_string[s] = StringMatch(ok=True, reason='muting not enforced')
            score += MUTED_STRING_CREDIT
            continue

        if isinstance(expected, Open):
            blocking = [f for f in fingers if f.string_idx == s and _is_pressing(f)]
            if blocking:
                per_string[s] = StringMatch(ok=False, reason='finger blocking open string',
                                            finger_id=blocking[0].finger_id)
            else:
                per_string[s] = StringMatch(ok=True)
                score += 1
            continue

        if observed is None:
            per_string[s] = StringMatch(ok=False, reason='missing finger')
        elif abs(observed.fret_idx - expected.fret) <= FRET_TOLERANCE:
            per_string[s] = StringMatch(ok=True, finger_id=observed.finger_id)
            score += 1
        else:
            per_string[s] = StringMatch(
                ok=False,
                reason=f'wrong fret: expected {expected.fret}, got {observed.fret_idx}',
                finger_id=observed.finger_id,
            )

    penalty = compute_extra_finger_penalty(fingers, template)
    final_score = clamp(score / NUM_STRINGS - penalty, 0.0, 1.0)

    return ChordMatchResult(score=final_score, per_string=MappingProxyType(per_string))


def match_chord(fingers: Sequence[FingerAssignment], template: ChordTemplate,
                tracker: StabilityTracker,
                timestamp: float) -> Tuple[ChordMatchResult, StabilityTracker]:
    """
    Score the chord and advance the hold-time tracker

    Returns:
        (result with stability_ms filled in, updated tracker)
    """
    result = score_chord(fingers, template)
    tracker = tracker.update(result.score, timestamp)
    return replace(result, stability_ms=tracker.stable_ms), tracker


def generate_feedback(result: Optional[ChordMatchResult], chord_name: Optional[str],
                      required_stable_ms: float = REQUIRED_STABLE_MS) -> List[str]:
    """Short coaching messages for a match result"""
    if result is None:
        return ['Select a chord to begin']

    messages = []

    if result.score >= 0.9:
        messages.append('Excellent!')
    elif result.score >= 0.7:
        messages.append('Good, keep adjusting')
    elif result.score >= 0.5:
        messages.append('Getting there...')
    else:
        messages.append('Keep practicing')

    for s in range(1, NUM_STRINGS + 1):
        string_result = result.per_string.get(s)
        if string_result is None or string_result.ok:
            continue

        reason = string_result.reason or ''
        if reason.startswith('wrong fret'):
            finger_id = string_result.finger_id
            if finger_id is not None and 0 <= finger_id < len(FINGER_NAMES):
                messages.append(f'{FINGER_NAMES[finger_id]} finger: check fret position')
        elif reason.startswith('missing'):
            messages.append(f'String {s}: place finger')
        elif 'blocking' in reason:
            messages.append(f'String {s}: remove finger')

    if 0 < result.stability_ms < required_stable_ms:
        remaining = (required_stable_ms - result.stability_ms) / 1000
        messages.append(f'Hold for {remaining:.1f} more seconds')
    elif result.stability_ms >= required_stable_ms:
        name = f' {chord_name}' if chord_name else ''
        messages.append(f'Perfect!{name} chord formed correctly.')

    return messages


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
