from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from learner_engine.bkt import initial_state
from learner_engine.models import SpacedRepetition
from learner_engine.srs import (
    DEFAULT_EASE,
    MIN_EASE,
    due_for_review,
    milestone_interval,
    overdue_by,
    recall_quality,
    schedule,
    schedule_state,
    update_ease_factor,
)

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _state(skill_id: str, due_at: datetime | None):
    state = initial_state("learner-1", skill_id)
    return replace(state, spaced_repetition=SpacedRepetition(next_review_at=due_at))


def test_recall_quality_incorrect_scale():
    assert recall_quality(False) == 2
    assert recall_quality(False, hints_used=1) == 1
    assert recall_quality(False, hints_used=4) == 0


def test_recall_quality_correct_uses_response_time():
    assert recall_quality(True, response_time_ms=5_000, expected_time_ms=30_000) == 5
    assert recall_quality(True, response_time_ms=20_000, expected_time_ms=30_000) == 4
    assert recall_quality(True, response_time_ms=45_000, expected_time_ms=30_000) == 3
    assert recall_quality(True) == 4


def test_recall_quality_correct_never_below_passing():
    assert recall_quality(True, hints_used=1, response_time_ms=5_000) == 4
    assert recall_quality(True, hints_used=5, response_time_ms=5_000) == 3


def test_update_ease_factor():
    assert update_ease_factor(2.5, 5) == pytest.approx(2.6)
    assert update_ease_factor(2.5, 4) == pytest.approx(2.5)
    assert update_ease_factor(2.5, 0) == pytest.approx(1.7)
    assert update_ease_factor(1.4, 0) == MIN_EASE


def test_schedule_sm2_intervals():
    sr = SpacedRepetition()
    sr = schedule(sr, 4, NOW)
    assert (sr.repetitions, sr.interval) == (1, 1)
    sr = schedule(sr, 4, NOW)
    assert (sr.repetitions, sr.interval) == (2, 6)
    sr = schedule(sr, 4, NOW)
    assert (sr.repetitions, sr.interval) == (3, 15)
    assert sr.ease_factor == pytest.approx(DEFAULT_EASE)
    assert sr.next_review_at == NOW + timedelta(days=15)


def test_schedule_failure_resets_repetitions():
    sr = SpacedRepetition(ease_factor=2.5, interval=15, repetitions=3)
    result = schedule(sr, 2, NOW)
    assert result.repetitions == 0
    assert result.interval == 1
    assert result.next_review_at == NOW + timedelta(days=1)


def test_schedule_ease_floor():
    sr = SpacedRepetition()
    for _ in range(5):
        sr = schedule(sr, 0, NOW)
    assert sr.ease_factor == MIN_EASE


@pytest.mark.parametrize("quality", [-1, 6, 3.5, True])
def test_schedule_rejects_invalid_quality(quality):
    with pytest.raises(ValueError):
        schedule(SpacedRepetition(), quality, NOW)


def test_schedule_naive_now_treated_as_utc():
    result = schedule(SpacedRepetition(), 5, datetime(2024, 1, 1, 12, 0))
    assert result.next_review_at == NOW + timedelta(days=1)


def test_milestone_intervals_for_seed_reviews():
    sr = SpacedRepetition()
    intervals = []
    for _ in range(4):
        sr = schedule(sr, 4, NOW, seed_reviews=3)
        intervals.append(sr.interval)
    assert intervals == [1, 3, 7, round(7 * DEFAULT_EASE)]


def test_milestone_interval_clamps_to_last():
    assert milestone_interval(0) == 1
    assert milestone_interval(6) == 60
    assert milestone_interval(10) == 60
    assert milestone_interval(2, (1, 2, 5)) == 2


def test_schedule_state_keeps_mastery_fields():
    state = initial_state("learner-1", "variables")
    updated = schedule_state(state, 5, NOW)
    assert updated.p_mastery == state.p_mastery
    assert updated.spaced_repetition.repetitions == 1


def test_due_for_review_orders_most_overdue_first():
    states = [
        _state("a", NOW - timedelta(days=1)),
        _state("b", NOW - timedelta(days=3)),
        _state("c", NOW + timedelta(days=2)),
        _state("d", None),
        _state("e", NOW),
    ]
    due = due_for_review(states, NOW)
    assert [s.skill_id for s in due] == ["b", "a", "e"]
    assert [s.skill_id for s in due_for_review(states, NOW, limit=1)] == ["b"]


def test_overdue_by_none_without_schedule():
    assert overdue_by(_state("a", None), NOW) is None
    assert overdue_by(_state("a", NOW - timedelta(hours=2)), NOW) == timedelta(hours=2)
