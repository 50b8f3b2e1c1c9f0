"""Retention analytics: forgetting-curve predictions and review adherence."""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Literal

from .srs import DEFAULT_EASE

RetentionRisk = Literal["high", "medium", "low"]

STABILITY_PER_EASE = 10
DEFAULT_STABILITY = 25.0
MIN_STABILITY = 5.0
MAX_STABILITY = 100.0
NEEDS_REVIEW_BELOW = 0.8
WELL_RETAINED_AT = 0.9
HIGH_RISK_BELOW = 0.6
HIGH_RISK_MISSED = 3
CURVE_BUCKET_DAYS = 7


@dataclass(slots=True)
class ReviewRecord:
    scheduled_at: datetime
    completed_at: datetime | None = None


@dataclass(slots=True)
class SkillRetentionData:
    skill_id: str
    skill_name: str
    initial_mastery: float
    current_mastery: float
    last_practice_at: datetime
    ease_factor: float = DEFAULT_EASE
    reviews: list[ReviewRecord] = field(default_factory=list)


@dataclass(slots=True)
class RetentionMetrics:
    skill_id: str
    skill_name: str
    initial_mastery: float
    current_mastery: float
    days_since_last_practice: int
    retention_rate: float | None
    predicted_decay: float
    reviews_completed: int
    reviews_missed: int


@dataclass(slots=True)
class ForgettingCurvePoint:
    days_ago: int
    average_retention: float


@dataclass(slots=True)
class RetentionSummary:
    average_retention: float | None
    skills_needing_review: list[RetentionMetrics]
    well_retained_skills: list[RetentionMetrics]
    forgetting_curve: list[ForgettingCurvePoint]


def predicted_retention(days_since_practice: float, ease_factor: float = DEFAULT_EASE) -> float:
    """Ebbinghaus curve R = e^(-t/S) with stability S = ease * 10."""
    stability = ease_factor * STABILITY_PER_EASE
    return max(0.0, min(1.0, math.exp(-days_since_practice / stability)))


def skill_retention(data: SkillRetentionData, now: datetime) -> RetentionMetrics:
    days = math.floor((now - data.last_practice_at) / timedelta(days=1))
    rate = (
        min(1.0, data.current_mastery / data.initial_mastery) if data.initial_mastery > 0 else None
    )
    completed = sum(1 for r in data.reviews if r.completed_at is not None)
    missed = sum(1 for r in data.reviews if r.completed_at is None and r.scheduled_at < now)
    return RetentionMetrics(
        skill_id=data.skill_id,
        skill_name=data.skill_name,
        initial_mastery=data.initial_mastery,
        current_mastery=data.current_mastery,
        days_since_last_practice=days,
        retention_rate=rate,
        predicted_decay=1 - predicted_retention(max(0, days), data.ease_factor),
        reviews_completed=completed,
        reviews_missed=missed,
    )


def needs_review(metrics: RetentionMetrics) -> bool:
    if metrics.reviews_missed > 0:
        return True
    return metrics.retention_rate is not None and metrics.retention_rate < NEEDS_REVIEW_BELOW


def forgetting_curve(metrics: list[RetentionMetrics]) -> list[ForgettingCurvePoint]:
    """Average observed retention per week since last practice."""
    buckets: dict[int, list[float]] = defaultdict(list)
    for m in metrics:
        if m.retention_rate is None:
            continue
        bucket = (max(0, m.days_since_last_practice) // CURVE_BUCKET_DAYS) * CURVE_BUCKET_DAYS
        buckets[bucket].append(m.retention_rate)
    return [
        ForgettingCurvePoint(days_ago=days, average_retention=sum(values) / len(values))
        for days, values in sorted(buckets.items())
    ]


def retention_summary(skills: list[SkillRetentionData], now: datetime) -> RetentionSummary:
    metrics = [skill_retention(skill, now) for skill in skills]
    rates = [m.retention_rate for m in metrics if m.retention_rate is not None]
    needing = sorted(
        (m for m in metrics if needs_review(m)),
        key=lambda m: (m.retention_rate is None, m.retention_rate or 0.0, m.skill_id),
    )
    return RetentionSummary(
        average_retention=sum(rates) / len(rates) if rates else None,
        skills_needing_review=needing,
        well_retained_skills=[
            m for m in metrics if m.retention_rate is not None and m.retention_rate >= WELL_RETAINED_AT
        ],
        forgetting_curve=forgetting_curve(metrics),
    )


def optimal_review_time(
    current_retention: float, target_retention: float, ease_factor: float = DEFAULT_EASE
) -> int:
    """Days until retention decays from ``current`` to ``target``."""
    if current_retention <= 0 or target_retention <= 0:
        return 0
    stability = ease_factor * STABILITY_PER_EASE
    days = -stability * math.log(target_retention / current_retention)
    return max(0, math.ceil(days))


def estimate_stability(review_history: list[tuple[float, float]]) -> float:
    """Stability S from (interval_days, retention) pairs by regressing ln R on t.

    The slope of ln R against t is -1/S.
    """
    points = [(t, math.log(r)) for t, r in review_history if r > 0]
    if len(points) < 2:
        return DEFAULT_STABILITY
    n = len(points)
    sum_x = sum(x for x, _ in points)
    sum_y = sum(y for _, y in points)
    sum_xy = sum(x * y for x, y in points)
    sum_x2 = sum(x * x for x, _ in points)
    denominator = n * sum_x2 - sum_x * sum_x
    if denominator == 0:
        return DEFAULT_STABILITY
    slope = (n * sum_xy - sum_x * sum_y) / denominator
    if slope >= 0:
        return MAX_STABILITY
    return max(MIN_STABILITY, min(MAX_STABILITY, -1 / slope))


def retention_risk(metrics: RetentionMetrics) -> RetentionRisk:
    rate = metrics.retention_rate
    if (rate is not None and rate < HIGH_RISK_BELOW) or metrics.reviews_missed >= HIGH_RISK_MISSED:
        return "high"
    if (rate is not None and rate < NEEDS_REVIEW_BELOW) or metrics.reviews_missed >= 1:
        return "medium"
    return "low"


__all__ = [
    "ForgettingCurvePoint",
    "RetentionMetrics",
    "RetentionSummary",
    "ReviewRecord",
    "SkillRetentionData",
    "estimate_stability",
    "forgetting_curve",
    "needs_review",
    "optimal_review_time",
    "predicted_retention",
    "retention_risk",
    "retention_summary",
    "skill_retention",
]
