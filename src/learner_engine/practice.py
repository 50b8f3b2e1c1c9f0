"""One practice attempt: BKT update, review rescheduling and scaffold level."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .bkt import initial_state, mastery_threshold_for, params_for_skill, update_state
from .models import LearnerSkillState, SkillNode
from .scaffold import apply_scaffold
from .settings import EngineSettings
from .srs import recall_quality, schedule_state


@dataclass(slots=True)
class PracticeAttempt:
    is_correct: bool
    hints_used: int = 0
    response_time_ms: float | None = None
    expected_time_ms: float | None = None


def new_state_for(
    learner_id: str,
    skill_id: str,
    settings: EngineSettings,
    skill: SkillNode | None = None,
    notebook_id: str | None = None,
) -> LearnerSkillState:
    return initial_state(
        learner_id,
        skill_id,
        params=params_for_skill(skill, settings),
        threshold=mastery_threshold_for(skill, settings),
        notebook_id=notebook_id,
    )


def apply_attempt(
    state: LearnerSkillState,
    attempt: PracticeAttempt,
    settings: EngineSettings,
    now: datetime,
    skill: SkillNode | None = None,
) -> tuple[LearnerSkillState, int]:
    """Return the updated state and the recall quality used for scheduling."""
    expected = attempt.expected_time_ms or settings.scheduler.expected_response_time_ms
    quality = recall_quality(
        attempt.is_correct,
        hints_used=attempt.hints_used,
        response_time_ms=attempt.response_time_ms,
        expected_time_ms=expected,
    )

    if skill is not None and skill.review_intervals:
        milestones = skill.review_intervals
        seed_reviews = len(milestones)
    else:
        milestones = settings.scheduler.milestones
        seed_reviews = settings.scheduler.seed_reviews

    updated = update_state(state, attempt.is_correct, now)
    updated = schedule_state(updated, quality, now, milestones=milestones, seed_reviews=seed_reviews)
    updated = apply_scaffold(updated, settings.scaffold.thresholds)
    return updated, quality


__all__ = ["PracticeAttempt", "apply_attempt", "new_state_for"]
