from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

MasteryStatus = Literal["not_started", "learning", "mastered"]
PrerequisiteStrength = Literal["required", "recommended", "helpful"]
EventType = Literal[
    "practice_attempt",
    "hint_requested",
    "confidence_rated",
    "practice_skipped",
    "session_started",
    "session_ended",
    "skill_viewed",
]

MASTERY_STATUSES: tuple[MasteryStatus, ...] = ("not_started", "learning", "mastered")
PREREQUISITE_STRENGTHS: tuple[PrerequisiteStrength, ...] = ("required", "recommended", "helpful")


@dataclass(slots=True, frozen=True)
class BKTParams:
    p_l0: float  # prior knowledge
    p_t: float   # learn rate per attempt
    p_s: float   # slip rate
    p_g: float   # guess rate


@dataclass(slots=True, frozen=True)
class IRTParameters:
    difficulty: float
    discrimination: float = 1.0
    guessing: float = 0.0


@dataclass(slots=True)
class SkillNode:
    id: str
    name: str
    bloom_level: int = 1
    difficulty: int = 5
    is_threshold_concept: bool = False
    mastery_threshold: float | None = None
    review_intervals: tuple[int, ...] | None = None
    irt: IRTParameters | None = None
    bkt_params: BKTParams | None = None
    notebook_id: str | None = None
    description: str = ""


@dataclass(slots=True, frozen=True)
class PrerequisiteRelationship:
    from_skill_id: str
    to_skill_id: str
    strength: PrerequisiteStrength = "required"


@dataclass(slots=True)
class SpacedRepetition:
    ease_factor: float = 2.5
    interval: int = 0
    next_review_at: datetime | None = None
    repetitions: int = 0


@dataclass(slots=True)
class LearnerSkillState:
    learner_id: str
    skill_id: str
    p_mastery: float
    bkt_params: BKTParams
    mastery_status: MasteryStatus = "not_started"
    mastery_threshold: float = 0.8
    total_attempts: int = 0
    correct_attempts: int = 0
    consecutive_successes: int = 0
    spaced_repetition: SpacedRepetition = field(default_factory=SpacedRepetition)
    scaffold_level: int = 1
    updated_at: datetime | None = None
    notebook_id: str | None = None

    @property
    def accuracy(self) -> float | None:
        if self.total_attempts == 0:
            return None
        return self.correct_attempts / self.total_attempts


def payload_number(payload: dict[str, Any], key: str) -> float | None:
    """Numeric payload value, or None when missing or not a number."""
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


@dataclass(slots=True)
class LearnerInteraction:
    learner_id: str
    notebook_id: str
    event_type: str
    created_at: datetime
    skill_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    session_id: str | None = None

    @property
    def is_practice(self) -> bool:
        return self.event_type == "practice_attempt"

    @property
    def is_correct(self) -> bool | None:
        value = self.payload.get("isCorrect")
        if not isinstance(value, bool):
            return None
        return value

    @property
    def response_time_ms(self) -> float | None:
        return payload_number(self.payload, "responseTimeMs")

    @property
    def difficulty(self) -> float | None:
        return payload_number(self.payload, "difficulty")

    @property
    def hints_used(self) -> int:
        return int(payload_number(self.payload, "hintUsedCount") or 0)


@dataclass(slots=True)
class LearnerSession:
    learner_id: str
    notebook_id: str
    started_at: datetime
    ended_at: datetime | None = None
    duration_ms: int | None = None
    skills_practiced: list[str] = field(default_factory=list)
    id: str | None = None


@dataclass(slots=True, frozen=True)
class MasterySnapshot:
    learner_id: str
    skill_id: str
    p_mastery: float
    recorded_at: datetime


@dataclass(slots=True)
class ZPDSkill:
    skill: SkillNode
    readiness_score: float
    prerequisites_mastered: list[str] = field(default_factory=list)
    prerequisites_pending: list[str] = field(default_factory=list)


__all__ = [
    "BKTParams",
    "EventType",
    "IRTParameters",
    "LearnerInteraction",
    "LearnerSession",
    "LearnerSkillState",
    "MASTERY_STATUSES",
    "MasterySnapshot",
    "MasteryStatus",
    "PREREQUISITE_STRENGTHS",
    "PrerequisiteRelationship",
    "PrerequisiteStrength",
    "SkillNode",
    "SpacedRepetition",
    "ZPDSkill",
    "payload_number",
]
