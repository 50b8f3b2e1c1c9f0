"""Readiness selector: zone-of-proximal-development skills and learner progress."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Mapping

from .graph import SkillGraph
from .models import LearnerSkillState, PrerequisiteRelationship, ZPDSkill
from .srs import due_for_review


@dataclass(slots=True)
class LearnerProgress:
    total_skills: int
    mastered: int
    learning: int
    not_started: int
    average_mastery: float | None
    due_for_review: int
    next_review_at: datetime | None


def is_mastered(state: LearnerSkillState | None) -> bool:
    return state is not None and state.mastery_status == "mastered"


def readiness_score(
    prerequisites: list[PrerequisiteRelationship],
    states: Mapping[str, LearnerSkillState],
) -> float:
    """Mean mastery over the non-required prerequisites; 1.0 when there are none."""
    optional = [rel for rel in prerequisites if rel.strength != "required"]
    if not optional:
        return 1.0
    total = 0.0
    for rel in optional:
        state = states.get(rel.from_skill_id)
        total += state.p_mastery if state is not None else 0.0
    return total / len(optional)


def zpd_skills(
    graph: SkillGraph,
    states: Mapping[str, LearnerSkillState],
    limit: int | None = None,
) -> list[ZPDSkill]:
    """Skills not yet mastered whose required prerequisites are all mastered.

    Readiness ranks candidates (highest first), then lower Bloom level, then
    lower difficulty; it never excludes one.
    """
    candidates: list[ZPDSkill] = []
    for skill_id, skill in graph.skills.items():
        if is_mastered(states.get(skill_id)):
            continue
        prerequisites = graph.prerequisites_of(skill_id)
        required = [rel for rel in prerequisites if rel.strength == "required"]
        if not all(is_mastered(states.get(rel.from_skill_id)) for rel in required):
            continue
        mastered = [rel.from_skill_id for rel in prerequisites if is_mastered(states.get(rel.from_skill_id))]
        pending = [rel.from_skill_id for rel in prerequisites if not is_mastered(states.get(rel.from_skill_id))]
        candidates.append(
            ZPDSkill(
                skill=skill,
                readiness_score=readiness_score(prerequisites, states),
                prerequisites_mastered=mastered,
                prerequisites_pending=pending,
            )
        )

    candidates.sort(
        key=lambda item: (
            -item.readiness_score,
            item.skill.bloom_level,
            item.skill.difficulty,
            item.skill.id,
        )
    )
    return candidates[:limit] if limit is not None else candidates


def progress_summary(
    graph: SkillGraph,
    states: Mapping[str, LearnerSkillState],
    now: datetime,
) -> LearnerProgress:
    tracked = [states[sid] for sid in graph.skills if sid in states]
    mastered = sum(1 for state in tracked if state.mastery_status == "mastered")
    learning = sum(1 for state in tracked if state.mastery_status == "learning")
    due = due_for_review(tracked, now)
    upcoming = [
        state.spaced_repetition.next_review_at
        for state in tracked
        if state.spaced_repetition.next_review_at is not None
        and state.spaced_repetition.next_review_at > now
    ]
    return LearnerProgress(
        total_skills=len(graph.skills),
        mastered=mastered,
        learning=learning,
        not_started=len(graph.skills) - mastered - learning,
        average_mastery=sum(s.p_mastery for s in tracked) / len(tracked) if tracked else None,
        due_for_review=len(due),
        next_review_at=min(upcoming) if upcoming else None,
    )


__all__ = ["LearnerProgress", "is_mastered", "progress_summary", "readiness_score", "zpd_skills"]
