"""JSON routes for practice, readiness, profiles, analytics and notebook settings."""

from __future__ import annotations

from dataclasses import asdict, replace
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, HTTPException, Query

from . import store
from .analytics import build_cohort, build_dashboard, weekly_average_mastery
from .bkt_fit import fit_parameters, mastery_with_confidence, validation_metrics
from .cohort import class_velocity, intervention_recommendations
from .dimensions import ProfileWindow
from .errors import FeatureUnavailableError
from .graph import SkillGraph, load_skill_graph
from .insights import generate_profile_insights
from .log import get_logger
from .models import LearnerInteraction, LearnerSession, LearnerSkillState, SkillNode
from .practice import PracticeAttempt
from .profile import compute_profile
from .scaffold import describe_level
from .schemas import AttemptRequest, FitRequest, InteractionRequest, SessionRequest
from .settings import EngineSettings, load_settings, settings_to_dict
from .zpd import progress_summary, zpd_skills

router = APIRouter()
logger = get_logger(__name__)


def _utc(moment: datetime | None) -> datetime:
    if moment is None:
        return datetime.now(timezone.utc)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _settings(notebook_id: str) -> EngineSettings:
    return store.notebook_settings(notebook_id, load_settings())


def _require(enabled: bool, feature: str) -> None:
    if not enabled:
        raise FeatureUnavailableError(feature, "disabled in notebook settings")


def _graph(notebook_id: str) -> SkillGraph:
    return load_skill_graph().for_notebook(notebook_id)


def _skill(graph: SkillGraph, skill_id: str) -> SkillNode:
    skill = graph.skills.get(skill_id)
    if skill is None:
        raise HTTPException(status_code=404, detail=f"Unknown skill '{skill_id}'")
    return skill


def _state_view(state: LearnerSkillState) -> dict[str, Any]:
    view = asdict(state)
    view["accuracy"] = state.accuracy
    view["scaffold_description"] = describe_level(state.scaffold_level)
    return view


# ── Health ────────────────────────────────────────────────────────────────────


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


# ── Practice ──────────────────────────────────────────────────────────────────


@router.post("/notebooks/{notebook_id}/learners/{learner_id}/attempts")
def record_attempt(notebook_id: str, learner_id: str, request: AttemptRequest) -> dict[str, Any]:
    settings = _settings(notebook_id)
    skill = _skill(_graph(notebook_id), request.skill_id)
    if settings.bkt_parameters.use_skill_specific:
        fitted = store.get_skill_params(skill.id)
        if fitted is not None:
            skill = replace(skill, bkt_params=fitted)

    now = _utc(request.occurred_at)
    result = store.record_practice_attempt(
        learner_id,
        notebook_id,
        skill.id,
        PracticeAttempt(
            is_correct=request.is_correct,
            hints_used=request.hints_used,
            response_time_ms=request.response_time_ms,
            expected_time_ms=request.expected_time_ms,
        ),
        settings,
        now,
        skill=skill,
    )

    payload: dict[str, Any] = {
        "isCorrect": request.is_correct,
        "hintUsedCount": request.hints_used,
        "isNovel": request.is_novel,
    }
    if request.response_time_ms is not None:
        payload["responseTimeMs"] = request.response_time_ms
    if request.difficulty is not None:
        payload["difficulty"] = request.difficulty
    if request.question_type is not None:
        payload["questionType"] = request.question_type
    if request.user_answer is not None:
        payload["userAnswer"] = request.user_answer
    if settings.interaction_logging_enabled:
        store.append_interaction(
            LearnerInteraction(
                learner_id=learner_id,
                notebook_id=notebook_id,
                event_type="practice_attempt",
                created_at=now,
                skill_id=skill.id,
                payload=payload,
                session_id=request.session_id,
            )
        )

    return {
        "state": _state_view(result.state),
        "previous_p_mastery": result.previous_p_mastery,
        "quality": result.quality,
        "newly_mastered": (
            result.state.mastery_status == "mastered"
            and result.previous_p_mastery < result.state.mastery_threshold
        ),
    }


@router.get("/notebooks/{notebook_id}/learners/{learner_id}/skills/{skill_id}/state")
def get_skill_state(notebook_id: str, learner_id: str, skill_id: str) -> dict[str, Any]:
    state = store.get_state(learner_id, notebook_id, skill_id)
    if state is None:
        raise HTTPException(status_code=404, detail="No state recorded for this learner and skill")
    return _state_view(state)


@router.get("/notebooks/{notebook_id}/learners/{learner_id}/review-queue")
def review_queue(
    notebook_id: str,
    learner_id: str,
    limit: int | None = Query(default=None, ge=1, le=100),
) -> dict[str, Any]:
    due = store.get_due(learner_id, datetime.now(timezone.utc), notebook_id, limit)
    return {"count": len(due), "skills": [_state_view(state) for state in due]}


# ── Readiness ─────────────────────────────────────────────────────────────────


@router.get("/notebooks/{notebook_id}/learners/{learner_id}/zpd")
def zone_of_proximal_development(
    notebook_id: str,
    learner_id: str,
    limit: int | None = Query(default=5, ge=1, le=50),
) -> dict[str, Any]:
    graph = _graph(notebook_id)
    states = {s.skill_id: s for s in store.list_states(learner_id, notebook_id)}
    return {"skills": zpd_skills(graph, states, limit)}


@router.get("/notebooks/{notebook_id}/learners/{learner_id}/progress")
def learner_progress(notebook_id: str, learner_id: str) -> dict[str, Any]:
    graph = _graph(notebook_id)
    states = {s.skill_id: s for s in store.list_states(learner_id, notebook_id)}
    return asdict(progress_summary(graph, states, datetime.now(timezone.utc)))


# ── Interaction log ───────────────────────────────────────────────────────────


@router.post("/notebooks/{notebook_id}/learners/{learner_id}/interactions", status_code=201)
def log_interaction(notebook_id: str, learner_id: str, request: InteractionRequest) -> dict[str, int]:
    _require(_settings(notebook_id).interaction_logging_enabled, "interaction_logging")
    event = request.root
    interaction_id = store.append_interaction(
        LearnerInteraction(
            learner_id=learner_id,
            notebook_id=notebook_id,
            event_type=event.event_type,
            created_at=_utc(event.occurred_at),
            skill_id=event.skill_id,
            payload=event.payload.to_log(),
            session_id=event.session_id,
        )
    )
    return {"id": interaction_id}


@router.post("/notebooks/{notebook_id}/learners/{learner_id}/sessions", status_code=201)
def log_session(notebook_id: str, learner_id: str, request: SessionRequest) -> dict[str, str]:
    _require(_settings(notebook_id).session_tracking_enabled, "session_tracking")
    session_id = store.append_session(
        LearnerSession(
            learner_id=learner_id,
            notebook_id=notebook_id,
            started_at=_utc(request.started_at),
            ended_at=_utc(request.ended_at) if request.ended_at else None,
            duration_ms=request.duration_ms,
            skills_practiced=request.skills_practiced,
            id=request.id,
        )
    )
    return {"id": session_id}


# ── Profile & analytics ───────────────────────────────────────────────────────


@router.get("/notebooks/{notebook_id}/learners/{learner_id}/profile")
def learner_profile(notebook_id: str, learner_id: str) -> dict[str, Any]:
    _require(_settings(notebook_id).inverse_profiling_enabled, "inverse_profiling")
    window = ProfileWindow(
        learner_id=learner_id,
        notebook_id=notebook_id,
        interactions=store.list_interactions(learner_id, notebook_id),
        sessions=store.list_sessions(learner_id, notebook_id),
        states={s.skill_id: s for s in store.list_states(learner_id, notebook_id)},
        graph=_graph(notebook_id),
    )
    result = compute_profile(
        window,
        now=datetime.now(timezone.utc),
        previous_version=store.latest_profile_version(learner_id, notebook_id),
    )
    store.save_profile(result)
    return {
        "profile": result.profile,
        "warnings": result.warnings,
        "data_quality": result.data_quality,
        "insights": generate_profile_insights(result.profile),
    }


@router.get("/notebooks/{notebook_id}/learners/{learner_id}/analytics")
def learner_analytics(
    notebook_id: str,
    learner_id: str,
    period: str = Query(default="all"),
) -> dict[str, Any]:
    dashboard = build_dashboard(
        store.list_states(learner_id, notebook_id),
        store.mastery_history(learner_id, notebook_id=notebook_id),
        store.list_interactions(learner_id, notebook_id),
        _graph(notebook_id),
        datetime.now(timezone.utc),
        period,
    )
    return asdict(dashboard)


@router.get("/notebooks/{notebook_id}/cohort")
def notebook_cohort(notebook_id: str) -> dict[str, Any]:
    now = datetime.now(timezone.utc)
    analytics = build_cohort(
        store.states_by_learner(notebook_id),
        store.list_interactions(None, notebook_id, event_type="practice_attempt"),
        _graph(notebook_id),
        now,
    )
    return {
        "cohort": analytics,
        "velocity": class_velocity(weekly_average_mastery(store.notebook_mastery_history(notebook_id), now)),
        "interventions": {
            student.id: intervention_recommendations(student, now)
            for student in analytics.students_needing_help
        },
    }


# ── Settings ──────────────────────────────────────────────────────────────────


@router.get("/notebooks/{notebook_id}/settings")
def get_notebook_settings(notebook_id: str) -> dict[str, Any]:
    return settings_to_dict(_settings(notebook_id))


@router.put("/notebooks/{notebook_id}/settings")
def put_notebook_settings(notebook_id: str, overrides: dict[str, Any] = Body(...)) -> dict[str, Any]:
    settings = store.update_notebook_settings(notebook_id, overrides, load_settings())
    return settings_to_dict(settings)


# ── BKT fitting ───────────────────────────────────────────────────────────────


@router.post("/notebooks/{notebook_id}/skills/{skill_id}/fit")
def fit_skill(notebook_id: str, skill_id: str, request: FitRequest) -> dict[str, Any]:
    settings = _settings(notebook_id)
    _skill(_graph(notebook_id), skill_id)
    attempts = store.list_interactions(
        request.learner_id, notebook_id, event_type="practice_attempt", skill_id=skill_id
    )
    outcomes = [bool(a.is_correct) for a in attempts]
    initial = settings.bkt_parameters.to_params()
    result = fit_parameters(outcomes, initial, max_iterations=request.max_iterations)
    saved = request.save and result.log_likelihood is not None
    if saved:
        store.save_skill_params(skill_id, result, len(outcomes), datetime.now(timezone.utc))
        logger.info("skill_params_saved", skill_id=skill_id, fit_quality=result.fit_quality)
    return {
        "fit": result,
        "validation": validation_metrics(outcomes, result.params),
        "estimate": mastery_with_confidence(outcomes, result.params),
        "sample_size": len(outcomes),
        "saved": saved,
    }


__all__ = ["router"]
