"""Builders for interactions, ratings and sessions shared by the tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from learner_engine.models import LearnerInteraction, LearnerSession

# A Monday
BASE = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def make_attempt(
    skill_id: str,
    correct: bool,
    minute: int = 0,
    *,
    response_time_ms: float | None = None,
    difficulty: float | None = None,
    learner_id: str = "learner-1",
    notebook_id: str = "nb-1",
) -> LearnerInteraction:
    payload: dict = {"isCorrect": correct}
    if response_time_ms is not None:
        payload["responseTimeMs"] = response_time_ms
    if difficulty is not None:
        payload["difficulty"] = difficulty
    return LearnerInteraction(
        learner_id=learner_id,
        notebook_id=notebook_id,
        event_type="practice_attempt",
        created_at=BASE + timedelta(minutes=minute),
        skill_id=skill_id,
        payload=payload,
    )


def make_event(event_type: str, minute: int = 0, payload: dict | None = None, **kwargs) -> LearnerInteraction:
    return LearnerInteraction(
        learner_id=kwargs.get("learner_id", "learner-1"),
        notebook_id=kwargs.get("notebook_id", "nb-1"),
        event_type=event_type,
        created_at=kwargs.get("created_at", BASE + timedelta(minutes=minute)),
        skill_id=kwargs.get("skill_id"),
        payload=payload or {},
    )


def make_rating(confidence: float, outcome: bool | None, minute: int = 0) -> LearnerInteraction:
    return make_event(
        "confidence_rated",
        minute,
        {"rating": confidence, "scale": "0-1", "ratingType": "pre_attempt", "actualOutcome": outcome},
    )


def make_session(
    hours: float,
    *,
    length_hours: float = 1.0,
    skills: list[str] | None = None,
    learner_id: str = "learner-1",
    notebook_id: str = "nb-1",
) -> LearnerSession:
    started = BASE + timedelta(hours=hours)
    return LearnerSession(
        learner_id=learner_id,
        notebook_id=notebook_id,
        started_at=started,
        ended_at=started + timedelta(hours=length_hours),
        duration_ms=int(length_hours * 3_600_000),
        skills_practiced=skills or [],
    )
