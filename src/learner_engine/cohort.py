"""Cohort analytics across the learners of one notebook."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Literal, Mapping

from .models import LearnerSkillState

Priority = Literal["high", "medium", "low"]
VelocityTrend = Literal["accelerating", "steady", "slowing"]
ClassPosition = Literal["above", "at", "below"]

MASTERED_AT = 0.8
STRUGGLE_BELOW = 0.4
COHORT_STRUGGLE_BELOW = 0.5
MIN_STUDENTS_FOR_PATTERN = 2
MAX_COHORT_ITEMS = 10
POSITION_MARGIN = 0.1
RECENT_WEEKS = 3


@dataclass(slots=True)
class StudentSkill:
    skill_id: str
    skill_name: str
    p_mastery: float
    last_practice_at: datetime | None = None


@dataclass(slots=True)
class StudentData:
    id: str
    name: str | None = None
    skills: list[StudentSkill] = field(default_factory=list)
    total_practice_time_ms: int = 0


@dataclass(slots=True)
class MisconceptionReport:
    skill_id: str
    misconception: str
    student_ids: list[str] = field(default_factory=list)


@dataclass(slots=True)
class AtRiskOptions:
    mastery_threshold: float = 0.3
    inactivity_days: int = 7
    struggle_area_threshold: int = 3


@dataclass(slots=True)
class StudentProgress:
    id: str
    name: str | None
    mastered_count: int
    in_progress_count: int
    not_started_count: int
    overall_mastery: float | None
    last_active_at: datetime | None
    total_practice_time_ms: int
    struggle_areas: list[str]
    needs_intervention: bool


@dataclass(slots=True)
class MasteryDistribution:
    high: int = 0
    medium: int = 0
    low: int = 0


@dataclass(slots=True)
class StruggleSpot:
    skill_id: str
    skill_name: str
    student_count: int
    average_mastery: float


@dataclass(slots=True)
class CommonMisconception:
    misconception: str
    skill_id: str
    student_count: int
    frequency: float


@dataclass(slots=True)
class CohortAnalytics:
    student_count: int
    average_mastery: float | None
    mastery_distribution: MasteryDistribution
    common_struggle_spots: list[StruggleSpot]
    common_misconceptions: list[CommonMisconception]
    students_needing_help: list[StudentProgress]
    class_progress: list[StudentProgress]


@dataclass(slots=True)
class InterventionRecommendation:
    type: str
    priority: Priority
    message: str


@dataclass(slots=True)
class ClassVelocity:
    velocity: float
    trend: VelocityTrend


@dataclass(slots=True)
class ClassComparison:
    mastery_delta: float | None
    practice_time_delta: float
    position: ClassPosition | None


def _inactive_days(last_active_at: datetime | None, now: datetime) -> int | None:
    if last_active_at is None:
        return None
    return math.floor((now - last_active_at) / timedelta(days=1))


def _is_at_risk(progress: StudentProgress, options: AtRiskOptions, now: datetime) -> bool:
    if progress.overall_mastery is not None and progress.overall_mastery < options.mastery_threshold:
        return True
    if len(progress.struggle_areas) >= options.struggle_area_threshold:
        return True
    inactive = _inactive_days(progress.last_active_at, now)
    return inactive is not None and inactive >= options.inactivity_days


def student_progress(
    data: StudentData, now: datetime, options: AtRiskOptions | None = None
) -> StudentProgress:
    options = options or AtRiskOptions()
    masteries = [s.p_mastery for s in data.skills]
    practiced = [s for s in data.skills if s.last_practice_at is not None]
    progress = StudentProgress(
        id=data.id,
        name=data.name,
        mastered_count=sum(1 for s in practiced if s.p_mastery >= MASTERED_AT),
        in_progress_count=sum(1 for s in practiced if s.p_mastery < MASTERED_AT),
        not_started_count=len(data.skills) - len(practiced),
        overall_mastery=sum(masteries) / len(masteries) if masteries else None,
        last_active_at=max(s.last_practice_at for s in practiced) if practiced else None,
        total_practice_time_ms=data.total_practice_time_ms,
        struggle_areas=[s.skill_name for s in practiced if s.p_mastery < STRUGGLE_BELOW],
        needs_intervention=False,
    )
    progress.needs_intervention = _is_at_risk(progress, options, now)
    return progress


def _distribution(progress: list[StudentProgress]) -> MasteryDistribution:
    distribution = MasteryDistribution()
    for p in progress:
        if p.overall_mastery is None:
            continue
        if p.overall_mastery >= MASTERED_AT:
            distribution.high += 1
        elif p.overall_mastery >= STRUGGLE_BELOW:
            distribution.medium += 1
        else:
            distribution.low += 1
    return distribution


def _struggle_spots(students: list[StudentData]) -> list[StruggleSpot]:
    spots: dict[str, tuple[str, list[float]]] = {}
    for student in students:
        for skill in student.skills:
            if skill.p_mastery < COHORT_STRUGGLE_BELOW:
                _, values = spots.setdefault(skill.skill_id, (skill.skill_name, []))
                values.append(skill.p_mastery)
    result = [
        StruggleSpot(
            skill_id=skill_id,
            skill_name=name,
            student_count=len(values),
            average_mastery=sum(values) / len(values),
        )
        for skill_id, (name, values) in spots.items()
        if len(values) >= MIN_STUDENTS_FOR_PATTERN
    ]
    result.sort(key=lambda spot: (-spot.student_count, spot.skill_id))
    return result[:MAX_COHORT_ITEMS]


def cohort_analytics(
    students: list[StudentData],
    now: datetime,
    misconceptions: list[MisconceptionReport] | None = None,
    options: AtRiskOptions | None = None,
) -> CohortAnalytics:
    progress = [student_progress(student, now, options) for student in students]
    masteries = [p.overall_mastery for p in progress if p.overall_mastery is not None]
    common = [
        CommonMisconception(
            misconception=m.misconception,
            skill_id=m.skill_id,
            student_count=len(m.student_ids),
            frequency=len(m.student_ids) / len(students),
        )
        for m in misconceptions or []
        if len(m.student_ids) >= MIN_STUDENTS_FOR_PATTERN and students
    ]
    common.sort(key=lambda m: (-m.student_count, m.skill_id))
    return CohortAnalytics(
        student_count=len(progress),
        average_mastery=sum(masteries) / len(masteries) if masteries else None,
        mastery_distribution=_distribution(progress),
        common_struggle_spots=_struggle_spots(students),
        common_misconceptions=common[:MAX_COHORT_ITEMS],
        students_needing_help=sorted(
            (p for p in progress if p.needs_intervention),
            key=lambda p: (p.overall_mastery is None, p.overall_mastery or 0.0, p.id),
        ),
        class_progress=progress,
    )


def identify_at_risk_students(
    progress: list[StudentProgress], now: datetime, options: AtRiskOptions | None = None
) -> list[StudentProgress]:
    options = options or AtRiskOptions()
    return [p for p in progress if _is_at_risk(p, options, now)]


def intervention_recommendations(
    student: StudentProgress, now: datetime
) -> list[InterventionRecommendation]:
    recommendations: list[InterventionRecommendation] = []
    if student.overall_mastery is not None and student.overall_mastery < 0.2:
        recommendations.append(InterventionRecommendation(
            type="fundamental_support",
            priority="high",
            message="Student needs significant support. Consider one-on-one tutoring or foundational review.",
        ))
    if len(student.struggle_areas) >= 3:
        recommendations.append(InterventionRecommendation(
            type="targeted_practice",
            priority="high",
            message=f"Focus on struggle areas: {', '.join(student.struggle_areas[:3])}",
        ))
    inactive = _inactive_days(student.last_active_at, now)
    if inactive is not None and inactive >= 7:
        recommendations.append(InterventionRecommendation(
            type="engagement",
            priority="high" if inactive >= 14 else "medium",
            message=f"Student has been inactive for {inactive} days. Check in to re-engage.",
        ))
    if student.mastered_count == 0 and student.in_progress_count > 0:
        recommendations.append(InterventionRecommendation(
            type="encouragement",
            priority="medium",
            message="Student is working but hasn't mastered any skills yet. Encourage persistence.",
        ))
    return recommendations


def class_velocity(weekly_average_mastery: list[float]) -> ClassVelocity:
    """Mean week-over-week mastery change; the trend compares the last three weeks to the rest."""
    if len(weekly_average_mastery) < 2:
        return ClassVelocity(velocity=0.0, trend="steady")
    changes = [b - a for a, b in zip(weekly_average_mastery, weekly_average_mastery[1:])]
    velocity = sum(changes) / len(changes)
    recent = changes[-RECENT_WEEKS:]
    earlier = changes[:-RECENT_WEEKS]
    trend: VelocityTrend = "steady"
    if recent and earlier:
        recent_avg = sum(recent) / len(recent)
        earlier_avg = sum(earlier) / len(earlier)
        if recent_avg > earlier_avg * 1.2:
            trend = "accelerating"
        elif recent_avg < earlier_avg * 0.8:
            trend = "slowing"
    return ClassVelocity(velocity=velocity, trend=trend)


def compare_to_class(
    student: StudentProgress, class_mastery: float | None, class_practice_time_ms: float
) -> ClassComparison:
    practice_delta = student.total_practice_time_ms - class_practice_time_ms
    if student.overall_mastery is None or class_mastery is None:
        return ClassComparison(mastery_delta=None, practice_time_delta=practice_delta, position=None)
    delta = student.overall_mastery - class_mastery
    position: ClassPosition = "at"
    if delta > POSITION_MARGIN:
        position = "above"
    elif delta < -POSITION_MARGIN:
        position = "below"
    return ClassComparison(mastery_delta=delta, practice_time_delta=practice_delta, position=position)


def student_data_from_states(
    learner_id: str,
    states: list[LearnerSkillState],
    skill_names: Mapping[str, str] | None = None,
    total_practice_time_ms: int = 0,
) -> StudentData:
    names = skill_names or {}
    return StudentData(
        id=learner_id,
        skills=[
            StudentSkill(
                skill_id=state.skill_id,
                skill_name=names.get(state.skill_id, state.skill_id),
                p_mastery=state.p_mastery,
                last_practice_at=state.updated_at if state.total_attempts > 0 else None,
            )
            for state in states
        ],
        total_practice_time_ms=total_practice_time_ms,
    )


__all__ = [
    "AtRiskOptions",
    "ClassComparison",
    "ClassVelocity",
    "CohortAnalytics",
    "CommonMisconception",
    "InterventionRecommendation",
    "MasteryDistribution",
    "MisconceptionReport",
    "StruggleSpot",
    "StudentData",
    "StudentProgress",
    "StudentSkill",
    "class_velocity",
    "cohort_analytics",
    "compare_to_class",
    "identify_at_risk_students",
    "intervention_recommendations",
    "student_data_from_states",
    "student_progress",
]
