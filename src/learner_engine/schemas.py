"""Request bodies for the HTTP surface."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, RootModel
from pydantic.alias_generators import to_camel


class AttemptRequest(BaseModel):
    skill_id: str
    is_correct: bool
    hints_used: int = Field(default=0, ge=0)
    response_time_ms: float | None = Field(default=None, ge=0)
    expected_time_ms: float | None = Field(default=None, gt=0)
    difficulty: float | None = Field(default=None, ge=0, le=1)
    is_novel: bool = False
    question_type: str | None = None
    user_answer: str | None = None
    session_id: str | None = None
    occurred_at: datetime | None = None


# ── Interaction payloads ──────────────────────────────────────────────────────

# Payload keys are camelCase on the wire and in the log; unknown keys are kept.


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_log(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PracticeAttemptPayload(_Payload):
    is_correct: bool
    response_time_ms: float | None = Field(default=None, ge=0)
    difficulty: float | None = Field(default=None, ge=0, le=1)
    hint_used_count: int = Field(default=0, ge=0)
    is_novel: bool | None = None
    question_id: str | None = None
    question_type: str | None = None
    user_answer: str | None = None
    attempt_number: int | None = Field(default=None, ge=1)


class ConfidenceRatedPayload(_Payload):
    rating_type: Literal["pre_attempt", "post_attempt", "self_assessment"]
    rating: float = Field(ge=0)
    scale: Literal["0-1", "1-5", "1-10", "0-100"] = "0-1"
    actual_outcome: bool | None = None


class HintRequestedPayload(_Payload):
    time_before_hint_ms: float | None = Field(default=None, ge=0)
    question_id: str | None = None
    hint_number: int | None = Field(default=None, ge=1)
    total_hints_available: int | None = Field(default=None, ge=0)


class PracticeSkippedPayload(_Payload):
    question_id: str | None = None
    question_type: str | None = None
    time_before_skip_ms: float | None = Field(default=None, ge=0)
    reason: Literal["too_hard", "not_relevant", "already_know", "unknown"] | None = None


class SessionStartedPayload(_Payload):
    entry_point: str | None = None
    returning_same_day: bool | None = None
    days_since_last_session: float | None = Field(default=None, ge=0)


class SessionEndedPayload(_Payload):
    end_reason: Literal["explicit", "idle_timeout", "page_close", "navigation_away"] | None = None
    final_skill_id: str | None = None
    practice_streak: int | None = Field(default=None, ge=0)


class SkillViewedPayload(_Payload):
    view_duration_ms: float | None = Field(default=None, ge=0)
    scroll_depth: float | None = Field(default=None, ge=0, le=1)
    previous_skill_id: str | None = None


# ── Interaction events ────────────────────────────────────────────────────────


class _InteractionEvent(BaseModel):
    skill_id: str | None = None
    session_id: str | None = None
    occurred_at: datetime | None = None


class PracticeAttemptEvent(_InteractionEvent):
    event_type: Literal["practice_attempt"]
    payload: PracticeAttemptPayload


class ConfidenceRatedEvent(_InteractionEvent):
    event_type: Literal["confidence_rated"]
    payload: ConfidenceRatedPayload


class HintRequestedEvent(_InteractionEvent):
    event_type: Literal["hint_requested"]
    payload: HintRequestedPayload = Field(default_factory=HintRequestedPayload)


class PracticeSkippedEvent(_InteractionEvent):
    event_type: Literal["practice_skipped"]
    payload: PracticeSkippedPayload = Field(default_factory=PracticeSkippedPayload)


class SessionStartedEvent(_InteractionEvent):
    event_type: Literal["session_started"]
    payload: SessionStartedPayload = Field(default_factory=SessionStartedPayload)


class SessionEndedEvent(_InteractionEvent):
    event_type: Literal["session_ended"]
    payload: SessionEndedPayload = Field(default_factory=SessionEndedPayload)


class SkillViewedEvent(_InteractionEvent):
    event_type: Literal["skill_viewed"]
    payload: SkillViewedPayload = Field(default_factory=SkillViewedPayload)


InteractionEvent = Annotated[
    Union[
        PracticeAttemptEvent,
        ConfidenceRatedEvent,
        HintRequestedEvent,
        PracticeSkippedEvent,
        SessionStartedEvent,
        SessionEndedEvent,
        SkillViewedEvent,
    ],
    Field(discriminator="event_type"),
]


class InteractionRequest(RootModel[InteractionEvent]):
    """One logged event; ``event_type`` selects the payload shape."""


class SessionRequest(BaseModel):
    started_at: datetime
    ended_at: datetime | None = None
    duration_ms: int | None = Field(default=None, ge=0)
    skills_practiced: list[str] = Field(default_factory=list)
    id: str | None = None


class FitRequest(BaseModel):
    learner_id: str
    save: bool = False
    max_iterations: int = Field(default=100, ge=1, le=1000)
