"""SM-2 review scheduling for learner skill states."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence

from .models import LearnerSkillState, SpacedRepetition

DEFAULT_EASE = 2.5
MIN_EASE = 1.3
MIN_INTERVAL = 1
SECOND_INTERVAL = 6
PASSING_QUALITY = 3
MILESTONES: tuple[int, ...] = (1, 3, 7, 14, 30, 60)

# Response time relative to the expected time
FAST_RATIO = 0.5
ON_TIME_RATIO = 1.0


def _normalize_datetime(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def update_ease_factor(ease_factor: float, quality: int) -> float:
    """EF' = EF + (0.1 - (5-q)(0.08 + (5-q)0.02)), floored at 1.3."""
    miss = 5 - quality
    return max(MIN_EASE, ease_factor + (0.1 - miss * (0.08 + miss * 0.02)))


def milestone_interval(repetitions: int, milestones: Sequence[int] = MILESTONES) -> int:
    """Interval for the n-th successful review from the milestone table."""
    if repetitions <= 0:
        return MIN_INTERVAL
    return milestones[min(repetitions, len(milestones)) - 1]


def schedule(
    sr: SpacedRepetition,
    quality: int,
    now: datetime,
    *,
    milestones: Sequence[int] = MILESTONES,
    seed_reviews: int = 0,
) -> SpacedRepetition:
    """Apply one graded recall (quality 0-5) and return the new schedule.

    The first ``seed_reviews`` successful reviews take their interval from
    ``milestones``; after that the SM-2 interval applies.
    """
    if isinstance(quality, bool) or not isinstance(quality, int) or not 0 <= quality <= 5:
        raise ValueError(f"quality must be an integer 0-5, got {quality!r}")

    ease = update_ease_factor(sr.ease_factor, quality)
    if quality < PASSING_QUALITY:
        repetitions = 0
        interval = MIN_INTERVAL
    else:
        repetitions = sr.repetitions + 1
        if repetitions <= seed_reviews:
            interval = milestone_interval(repetitions, milestones)
        elif repetitions == 1:
            interval = MIN_INTERVAL
        elif repetitions == 2:
            interval = SECOND_INTERVAL
        else:
            base_interval = sr.interval if sr.interval > 0 else MIN_INTERVAL
            interval = max(MIN_INTERVAL, int(round(base_interval * ease)))

    return SpacedRepetition(
        ease_factor=ease,
        interval=interval,
        next_review_at=_normalize_datetime(now) + timedelta(days=interval),
        repetitions=repetitions,
    )


def recall_quality(
    is_correct: bool,
    hints_used: int = 0,
    response_time_ms: float | None = None,
    expected_time_ms: float = 30_000,
) -> int:
    """Map a practice response onto the SM-2 0-5 quality scale.

    Correct: 5 when fast (under half the expected time) without hints, 4 when
    on time or untimed, 3 when slow; each hint costs one point, never below 3.
    Incorrect: 2 without hints, 1 with one hint, 0 with more.
    """
    hints = max(0, hints_used)
    if not is_correct:
        return max(0, 2 - hints)

    if response_time_ms is None or expected_time_ms <= 0:
        base = 4
    else:
        ratio = response_time_ms / expected_time_ms
        if ratio < FAST_RATIO:
            base = 5
        elif ratio < ON_TIME_RATIO:
            base = 4
        else:
            base = 3
    return max(PASSING_QUALITY, base - hints)


def schedule_state(
    state: LearnerSkillState,
    quality: int,
    now: datetime,
    *,
    milestones: Sequence[int] = MILESTONES,
    seed_reviews: int = 0,
) -> LearnerSkillState:
    return replace(
        state,
        spaced_repetition=schedule(
            state.spaced_repetition, quality, now, milestones=milestones, seed_reviews=seed_reviews
        ),
    )


def overdue_by(state: LearnerSkillState, now: datetime) -> timedelta | None:
    due_at = state.spaced_repetition.next_review_at
    if due_at is None:
        return None
    return _normalize_datetime(now) - _normalize_datetime(due_at)


def due_for_review(
    states: Iterable[LearnerSkillState],
    now: datetime,
    limit: int | None = None,
) -> list[LearnerSkillState]:
    """States whose review date has passed, most overdue first."""
    due: list[tuple[timedelta, LearnerSkillState]] = []
    for state in states:
        lateness = overdue_by(state, now)
        if lateness is not None and lateness >= timedelta(0):
            due.append((lateness, state))
    due.sort(key=lambda item: (-item[0], item[1].skill_id))
    ordered = [state for _, state in due]
    return ordered[:limit] if limit is not None else ordered


__all__ = [
    "DEFAULT_EASE",
    "MILESTONES",
    "MIN_EASE",
    "due_for_review",
    "milestone_interval",
    "overdue_by",
    "recall_quality",
    "schedule",
    "schedule_state",
    "update_ease_factor",
]
