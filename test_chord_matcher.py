import pytest

from fretcoach.coaching.chord_matcher import (
    compute_extra_finger_penalty,
    generate_feedback,
    match_chord,
    score_chord,
)
from fretcoach.coaching.chord_templates import CHORD_LIBRARY, CHORD_NAMES, CHORD_TEMPLATES, get_chord_template
from fretcoach.coaching.stability import StabilityTracker
from fretcoach.types import ChordMatchResult, ChordTemplate, Fretted, Open, StringMatch

E_MAJOR = CHORD_TEMPLATES['E']


@pytest.fixture
def e_major_fingers(finger):
    return [finger(2, 5, 2), finger(3, 4, 2), finger(1, 3, 1)]


def test_exact_e_major(e_major_fingers):
    result = score_chord(e_major_fingers, E_MAJOR)

    assert result.score == pytest.approx(1.0)
    assert all(match.ok for match in result.per_string.values())
    assert result.per_string[5].finger_id == 2


def test_one_wrong_fret(finger):
    fingers = [finger(2, 5, 2), finger(3, 4, 2), finger(1, 3, 2)]

    result = score_chord(fingers, E_MAJOR)

    assert result.score == pytest.approx(5 / 6 - 0.05)
    assert 0.6 < result.score < 1.0
    assert not result.per_string[3].ok
    assert result.per_string[3].reason == 'wrong fret: expected 1, got 2'


def test_two_fingers_missing(finger):
    result = score_chord([finger(2, 5, 2)], E_MAJOR)

    assert result.score == pytest.approx(4 / 6 - 0.1)
    assert result.score < 0.6
    assert result.per_string[4] == StringMatch(ok=False, reason='missing finger')


def test_no_fingers(finger):
    result = score_chord([], E_MAJOR)

    assert result.score == pytest.approx(3 / 6 - 0.15)


def test_finger_blocking_open_string(e_major_fingers, finger):
    result = score_chord(e_major_fingers + [finger(4, 1, 3)], E_MAJOR)

    assert result.score == pytest.approx(5 / 6)
    assert result.per_string[1] == StringMatch(ok=False, reason='finger blocking open string', finger_id=4)


def test_resting_finger_does_not_block(e_major_fingers, finger):
    result = score_chord(e_major_fingers + [finger(0, 6, 0)], E_MAJOR)

    assert result.score == pytest.approx(1.0)


def test_best_finger_on_string_wins(e_major_fingers, finger):
    fingers = e_major_fingers + [finger(4, 3, 3, confidence=0.4)]

    result = score_chord(fingers, E_MAJOR)

    assert result.per_string[3].ok
    assert result.score == pytest.approx(1.0 - 0.05)


def test_muted_strings_get_partial_credit(finger):
    d_major = CHORD_TEMPLATES['D']
    exact = [finger(1, 3, 2), finger(3, 2, 3), finger(2, 1, 2)]

    result = score_chord(exact, d_major)

    assert result.score == pytest.approx(5.2 / 6)
    assert result.per_string[6] == StringMatch(ok=True, reason='muting not enforced')

    fretting_muted = score_chord(exact + [finger(4, 6, 3)], d_major)
    assert fretting_muted.score == pytest.approx(5.2 / 6 - 0.05)


def test_resting_finger_on_muted_string_is_penalised(finger):
    c_major = CHORD_TEMPLATES['C']
    exact = [finger(3, 5, 3), finger(2, 4, 2), finger(1, 2, 1)]

    assert compute_extra_finger_penalty(exact, c_major) == 0.0
    assert compute_extra_finger_penalty(exact + [finger(0, 6, 0)], c_major) == pytest.approx(0.05)


def test_finger_short_of_its_fret_is_penalised(finger):
    fingers = [finger(2, 5, 2), finger(3, 4, 2), finger(1, 3, 0)]

    result = score_chord(fingers, E_MAJOR)

    assert result.per_string[3].reason == 'wrong fret: expected 1, got 0'
    assert compute_extra_finger_penalty(fingers, E_MAJOR) == pytest.approx(0.05)
    assert result.score == pytest.approx(5 / 6 - 0.05)


def test_penalty_is_capped(finger):
    fingers = [finger(1, 6, 5), finger(2, 5, 5), finger(3, 6, 4), finger(4, 5, 4)]

    assert compute_extra_finger_penalty(fingers, CHORD_TEMPLATES['D']) == pytest.approx(0.2)


def test_unconstrained_strings_count_as_matched():
    template = ChordTemplate('Partial', {1: Open()})

    result = score_chord([], template)

    assert result.score == pytest.approx(1.0)
    assert result.per_string[6].reason == 'no constraint'


def test_per_string_is_read_only(e_major_fingers):
    result = score_chord(e_major_fingers, E_MAJOR)

    with pytest.raises(TypeError):
        result.per_string[1] = StringMatch(ok=False)


@pytest.mark.parametrize("name", CHORD_NAMES)
def test_every_template_scores_well_when_played_exactly(name, finger):
    template = CHORD_TEMPLATES[name]
    fingers = [
        finger(constraint.finger, string_idx, constraint.fret)
        for string_idx, constraint in template.strings.items()
        if isinstance(constraint, Fretted)
    ]

    result = score_chord(fingers, template)

    assert result.score >= 0.8
    assert 0.0 <= result.score <= 1.0


def test_templates_only_use_real_strings():
    with pytest.raises(ValueError):
        ChordTemplate('Bad', {7: Open()})


def test_library_lookup():
    assert CHORD_LIBRARY.lookup('Am').name == 'A Minor'
    assert get_chord_template('B7') is None
    assert CHORD_LIBRARY.names() == CHORD_NAMES


def test_match_chord_tracks_hold_time(e_major_fingers):
    tracker = StabilityTracker()

    for timestamp in (0, 500, 1000):
        result, tracker = match_chord(e_major_fingers, E_MAJOR, tracker, timestamp)

    assert result.stability_ms == pytest.approx(1000)
    assert tracker.stable_ms == pytest.approx(1000)


def result_with(score, stability_ms=0.0, **per_string):
    return ChordMatchResult(
        score=score,
        per_string={int(k[1:]): v for k, v in per_string.items()},
        stability_ms=stability_ms,
    )


def test_feedback_without_result():
    assert generate_feedback(None, 'E') == ['Select a chord to begin']


@pytest.mark.parametrize("score,message", [
    (0.95, 'Excellent!'),
    (0.75, 'Good, keep adjusting'),
    (0.55, 'Getting there...'),
    (0.2, 'Keep practicing'),
])
def test_feedback_headline(score, message):
    assert generate_feedback(result_with(score), 'E')[0] == message


def test_feedback_per_string_hints():
    result = result_with(
        0.5,
        s1=StringMatch(ok=False, reason='finger blocking open string', finger_id=4),
        s3=StringMatch(ok=False, reason='wrong fret: expected 1, got 2', finger_id=1),
        s4=StringMatch(ok=False, reason='missing finger'),
    )

    assert generate_feedback(result, 'E')[1:] == [
        'String 1: remove finger',
        'Index finger: check fret position',
        'String 4: place finger',
    ]


def test_feedback_hold_countdown():
    messages = generate_feedback(result_with(0.95, stability_ms=500), 'E', required_stable_ms=2000)

    assert messages[-1] == 'Hold for 1.5 more seconds'


def test_feedback_chord_formed():
    messages = generate_feedback(result_with(0.95, stability_ms=2000), 'E', required_stable_ms=2000)

    assert messages == ['Excellent!', 'Perfect! E chord formed correctly.']
