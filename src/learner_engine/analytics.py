"""Assemble analytics inputs from stored state, history and interactions.

Everything here is a pure function of its arguments; the HTTP layer fetches
rows from the store and passes ``now`` in.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Mapping

from .cohort import (
    CohortAnalytics,
    MisconceptionReport,
    StudentData,
    cohort_analytics,
    student_data_from_states,
)
from .dimensions import detect_misconceptions
from .errors import ConfigError
from .graph import SkillGraph
from .learning_gain import OverallLearningGain, SkillMasteryHistory, overall_learning_gains
from .models import LearnerInteraction, LearnerSkillState, MasterySnapshot
from .retention import ReviewRecord, RetentionSummary, SkillRetentionData, retention_summary
from .time_to_mastery import (
    PracticeRecord,
    SkillPracticeData,
    TimeToMasterySummary,
    time_to_mastery_summary,
)
from .transfer import TransferSummary, transfer_data_from_interactions, transfer_summary

PERIOD_DAYS: dict[str, int | None] = {"week": 7, "month": 30, "all": None}
VELOCITY_WEEKS = 8


@dataclass(slots=True)
class DashboardSummary:
    total_skills: int
    mastered_skills: int
    in_progress_skills: int
    total_practice_time_ms: int
    total_attempts: int
    correct_attempts: int
    average_accuracy: float | None
    streak_days: int


@dataclass(slots=True)
class AnalyticsDashboard:
    learning_gains: OverallLearningGain
    retention: RetentionSummary
    time_to_mastery: TimeToMasterySummary
    transfer: TransferSummary
    summary: DashboardSummary


def period_start(period: str, now: datetime) -> datetime | None:
    if period not in PERIOD_DAYS:
        raise ConfigError("period", f"must be one of {', '.join(PERIOD_DAYS)}")
    days = PERIOD_DAYS[period]
    return now - timedelta(days=days) if days is not None else None


def _name(graph: SkillGraph | None, skill_id: str) -> str:
    if graph is not None and skill_id in graph.skills:
        return graph.skills[skill_id].name
    return skill_id


def skill_names(graph: SkillGraph | None) -> dict[str, str]:
    return {sid: skill.name for sid, skill in graph.skills.items()} if graph else {}


def _group_history(snapshots: list[MasterySnapshot]) -> dict[str, list[MasterySnapshot]]:
    grouped: dict[str, list[MasterySnapshot]] = defaultdict(list)
    for snapshot in sorted(snapshots, key=lambda s: s.recorded_at):
        grouped[snapshot.skill_id].append(snapshot)
    return grouped


def skill_histories(
    snapshots: list[MasterySnapshot], graph: SkillGraph | None = None
) -> list[SkillMasteryHistory]:
    return [
        SkillMasteryHistory(skill_id=skill_id, skill_name=_name(graph, skill_id), history=history)
        for skill_id, history in sorted(_group_history(snapshots).items())
    ]


def retention_inputs(
    states: list[LearnerSkillState],
    snapshots: list[MasterySnapshot],
    graph: SkillGraph | None = None,
) -> list[SkillRetentionData]:
    """Retention of each practiced skill relative to its peak recorded mastery.

    The pending review, if any, is the only review record.
    """
    history = _group_history(snapshots)
    data: list[SkillRetentionData] = []
    for state in states:
        if state.total_attempts == 0 or state.updated_at is None:
            continue
        peak = max((s.p_mastery for s in history.get(state.skill_id, [])), default=state.p_mastery)
        due_at = state.spaced_repetition.next_review_at
        data.append(
            SkillRetentionData(
                skill_id=state.skill_id,
                skill_name=_name(graph, state.skill_id),
                initial_mastery=max(peak, state.p_mastery),
                current_mastery=state.p_mastery,
                last_practice_at=state.updated_at,
                ease_factor=state.spaced_repetition.ease_factor,
                reviews=[ReviewRecord(scheduled_at=due_at)] if due_at is not None else [],
            )
        )
    return data


def practice_inputs(
    states: list[LearnerSkillState],
    attempts: list[LearnerInteraction],
    snapshots: list[MasterySnapshot],
    graph: SkillGraph | None = None,
) -> list[SkillPracticeData]:
    """Per-skill attempt history; ``mastered_at`` is the first snapshot at or above threshold."""
    history = _group_history(snapshots)
    by_skill: dict[str, list[LearnerInteraction]] = defaultdict(list)
    for attempt in sorted(attempts, key=lambda a: a.created_at):
        if attempt.is_practice and attempt.skill_id:
            by_skill[attempt.skill_id].append(attempt)

    data: list[SkillPracticeData] = []
    for state in states:
        skill_attempts = by_skill.get(state.skill_id, [])
        skill_history = history.get(state.skill_id, [])
        if not skill_attempts and not skill_history:
            continue
        starts = [a.created_at for a in skill_attempts[:1]] + [s.recorded_at for s in skill_history[:1]]
        mastered_at = next(
            (s.recorded_at for s in skill_history if s.p_mastery >= state.mastery_threshold), None
        )
        skill = graph.skills.get(state.skill_id) if graph else None
        data.append(
            SkillPracticeData(
                skill_id=state.skill_id,
                skill_name=_name(graph, state.skill_id),
                bloom_level=skill.bloom_level if skill else 1,
                difficulty=skill.difficulty if skill else 5,
                first_attempt_at=min(starts),
                mastered_at=mastered_at,
                current_mastery=state.p_mastery,
                attempts=[
                    PracticeRecord(
                        attempted_at=a.created_at,
                        response_time_ms=int(a.response_time_ms or 0),
                        correct=bool(a.is_correct),
                    )
                    for a in skill_attempts
                ],
            )
        )
    return data


def streak_days(interactions: list[LearnerInteraction], today: date) -> int:
    """Consecutive active days ending today, or yesterday if today has no activity yet."""
    active = {i.created_at.date() for i in interactions}
    day = today if today in active else today - timedelta(days=1)
    count = 0
    while day in active:
        count += 1
        day -= timedelta(days=1)
    return count


def dashboard_summary(
    states: list[LearnerSkillState],
    interactions: list[LearnerInteraction],
    graph: SkillGraph | None,
    now: datetime,
) -> DashboardSummary:
    attempts = [i for i in interactions if i.is_practice]
    total = sum(s.total_attempts for s in states)
    correct = sum(s.correct_attempts for s in states)
    return DashboardSummary(
        total_skills=len(graph.skills) if graph else len(states),
        mastered_skills=sum(1 for s in states if s.mastery_status == "mastered"),
        in_progress_skills=sum(1 for s in states if s.mastery_status == "learning"),
        total_practice_time_ms=sum(int(a.response_time_ms or 0) for a in attempts),
        total_attempts=total,
        correct_attempts=correct,
        average_accuracy=correct / total if total else None,
        streak_days=streak_days(interactions, now.date()),
    )


def build_dashboard(
    states: list[LearnerSkillState],
    snapshots: list[MasterySnapshot],
    interactions: list[LearnerInteraction],
    graph: SkillGraph | None,
    now: datetime,
    period: str = "all",
) -> AnalyticsDashboard:
    start = period_start(period, now)
    names = skill_names(graph)
    attempts = [i for i in interactions if i.is_practice]
    return AnalyticsDashboard(
        learning_gains=overall_learning_gains(skill_histories(snapshots, graph), start, now),
        retention=retention_summary(retention_inputs(states, snapshots, graph), now),
        time_to_mastery=time_to_mastery_summary(practice_inputs(states, attempts, snapshots, graph)),
        transfer=transfer_summary(transfer_data_from_interactions(attempts, names)),
        summary=dashboard_summary(states, interactions, graph, now),
    )


# ── Cohort ────────────────────────────────────────────────────────────────────


def cohort_misconceptions(
    attempts_by_learner: Mapping[str, list[LearnerInteraction]],
    graph: SkillGraph | None = None,
) -> list[MisconceptionReport]:
    learners_by_skill: dict[str, list[str]] = defaultdict(list)
    for learner_id, attempts in sorted(attempts_by_learner.items()):
        for skill_id in detect_misconceptions(attempts):
            learners_by_skill[skill_id].append(learner_id)
    return [
        MisconceptionReport(
            skill_id=skill_id,
            misconception=f"Frequent errors on {_name(graph, skill_id)}",
            student_ids=learner_ids,
        )
        for skill_id, learner_ids in sorted(learners_by_skill.items())
    ]


def weekly_average_mastery(
    snapshots: list[MasterySnapshot], now: datetime, weeks: int = VELOCITY_WEEKS
) -> list[float]:
    """Class-wide mean of each learner's latest mastery per skill at the end of each week.

    Weeks before the first snapshot are omitted.
    """
    ordered = sorted(snapshots, key=lambda s: s.recorded_at)
    averages: list[float] = []
    for offset in range(weeks - 1, -1, -1):
        week_end = now - timedelta(weeks=offset)
        latest: dict[tuple[str, str], float] = {}
        for snapshot in ordered:
            if snapshot.recorded_at > week_end:
                break
            latest[(snapshot.learner_id, snapshot.skill_id)] = snapshot.p_mastery
        if latest:
            averages.append(sum(latest.values()) / len(latest))
    return averages


def build_cohort(
    states_by_learner: Mapping[str, list[LearnerSkillState]],
    interactions: list[LearnerInteraction],
    graph: SkillGraph | None,
    now: datetime,
) -> CohortAnalytics:
    names = skill_names(graph)
    attempts_by_learner: dict[str, list[LearnerInteraction]] = defaultdict(list)
    practice_time: dict[str, int] = defaultdict(int)
    for interaction in interactions:
        if interaction.is_practice:
            attempts_by_learner[interaction.learner_id].append(interaction)
            practice_time[interaction.learner_id] += int(interaction.response_time_ms or 0)
    students: list[StudentData] = [
        student_data_from_states(learner_id, states, names, practice_time.get(learner_id, 0))
        for learner_id, states in sorted(states_by_learner.items())
    ]
    return cohort_analytics(students, now, cohort_misconceptions(attempts_by_learner, graph))


__all__ = [
    "AnalyticsDashboard",
    "DashboardSummary",
    "PERIOD_DAYS",
    "build_cohort",
    "build_dashboard",
    "cohort_misconceptions",
    "dashboard_summary",
    "period_start",
    "practice_inputs",
    "retention_inputs",
    "skill_histories",
    "skill_names",
    "streak_days",
    "weekly_average_mastery",
]
