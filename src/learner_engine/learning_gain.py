"""Normalized learning gain (Hake) over mastery-history series."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from .buckets import GainCategory, gain_category
from .models import MasterySnapshot

HIGH_GAIN = 0.7
LOW_GAIN = 0.3
SATURATED_PRE = 0.99
ACHIEVABLE_DAYS = 365

GAIN_DESCRIPTIONS: dict[GainCategory, str] = {
    "high": "High learning gain - excellent progress",
    "medium": "Medium learning gain - good progress",
    "low": "Low learning gain - some progress",
    "negative": "Performance decreased - may need review",
}


@dataclass(slots=True)
class SkillMasteryHistory:
    skill_id: str
    skill_name: str
    history: list[MasterySnapshot] = field(default_factory=list)


@dataclass(slots=True)
class LearningGain:
    skill_id: str
    skill_name: str
    pre_score: float
    post_score: float
    normalized_gain: float
    absolute_gain: float
    period_start: datetime
    period_end: datetime


@dataclass(slots=True)
class OverallLearningGain:
    total_skills: int
    average_normalized_gain: float | None
    average_absolute_gain: float | None
    high_gain_skills: list[LearningGain]
    low_gain_skills: list[LearningGain]
    gains: list[LearningGain]


@dataclass(slots=True)
class MasteryProjection:
    days_to_target: int | None
    achievable: bool


def calculate_normalized_gain(pre_score: float, post_score: float) -> float:
    """g = (post - pre) / (1 - pre), clamped to [-1, 1].

    Inputs are clamped to [0, 1]; a pre score of 0.99 or more leaves no room
    to gain and yields 0.
    """
    pre = max(0.0, min(1.0, pre_score))
    post = max(0.0, min(1.0, post_score))
    if pre >= SATURATED_PRE:
        return 0.0
    return max(-1.0, min(1.0, (post - pre) / (1 - pre)))


def skill_learning_gain(
    skill: SkillMasteryHistory,
    period_start: datetime | None = None,
    period_end: datetime | None = None,
) -> LearningGain | None:
    history = sorted(
        (
            h for h in skill.history
            if (period_start is None or h.recorded_at >= period_start)
            and (period_end is None or h.recorded_at <= period_end)
        ),
        key=lambda h: h.recorded_at,
    )
    if len(history) < 2:
        return None
    first, last = history[0], history[-1]
    return LearningGain(
        skill_id=skill.skill_id,
        skill_name=skill.skill_name,
        pre_score=first.p_mastery,
        post_score=last.p_mastery,
        normalized_gain=calculate_normalized_gain(first.p_mastery, last.p_mastery),
        absolute_gain=last.p_mastery - first.p_mastery,
        period_start=first.recorded_at,
        period_end=last.recorded_at,
    )


def overall_learning_gains(
    skills: list[SkillMasteryHistory],
    period_start: datetime | None = None,
    period_end: datetime | None = None,
) -> OverallLearningGain:
    gains = [
        gain
        for gain in (skill_learning_gain(skill, period_start, period_end) for skill in skills)
        if gain is not None
    ]
    if not gains:
        return OverallLearningGain(
            total_skills=0,
            average_normalized_gain=None,
            average_absolute_gain=None,
            high_gain_skills=[],
            low_gain_skills=[],
            gains=[],
        )
    return OverallLearningGain(
        total_skills=len(gains),
        average_normalized_gain=sum(g.normalized_gain for g in gains) / len(gains),
        average_absolute_gain=sum(g.absolute_gain for g in gains) / len(gains),
        high_gain_skills=[g for g in gains if g.normalized_gain > HIGH_GAIN],
        low_gain_skills=[g for g in gains if 0 <= g.normalized_gain < LOW_GAIN],
        gains=gains,
    )


def interpret_normalized_gain(gain: float) -> tuple[GainCategory, str]:
    category = gain_category(gain)
    return category, GAIN_DESCRIPTIONS[category]


def learning_velocity(gain: LearningGain) -> float | None:
    """Normalized gain per day over the measurement period."""
    days = (gain.period_end - gain.period_start) / timedelta(days=1)
    if days == 0:
        return None
    return gain.normalized_gain / days


def project_mastery(current: float, daily_velocity: float | None, target: float) -> MasteryProjection:
    if current >= target:
        return MasteryProjection(days_to_target=0, achievable=True)
    if daily_velocity is None or daily_velocity <= 0 or current >= 1:
        return MasteryProjection(days_to_target=None, achievable=False)
    required_gain = (target - current) / (1 - current)
    days = required_gain / daily_velocity
    return MasteryProjection(days_to_target=math.ceil(days), achievable=days < ACHIEVABLE_DAYS)


__all__ = [
    "LearningGain",
    "MasteryProjection",
    "OverallLearningGain",
    "SkillMasteryHistory",
    "calculate_normalized_gain",
    "interpret_normalized_gain",
    "learning_velocity",
    "overall_learning_gains",
    "project_mastery",
    "skill_learning_gain",
]
