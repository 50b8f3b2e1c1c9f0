"""Bayesian Knowledge Tracing (BKT) engine for per-skill mastery tracking."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

from .models import BKTParams, LearnerSkillState, MasteryStatus, SkillNode, SpacedRepetition
from .settings import EngineSettings

P_L0 = 0.3    # prior knowledge
P_T = 0.1     # learn rate per attempt
P_S = 0.1     # slip rate
P_G = 0.2     # guess rate
DEFAULT_PARAMS = BKTParams(p_l0=P_L0, p_t=P_T, p_s=P_S, p_g=P_G)

MASTERY_THRESHOLD = 0.80
THRESHOLD_CONCEPT_MASTERY = 0.90


def bkt_update(p_mastery: float, is_correct: bool, params: BKTParams = DEFAULT_PARAMS) -> float:
    """Standard BKT: posterior update then learning transition.

    1. Posterior given evidence:
       correct:   P(L|correct) = P(L)*(1-P_S) / [P(L)*(1-P_S) + (1-P(L))*P_G]
       incorrect: P(L|wrong)   = P(L)*P_S     / [P(L)*P_S     + (1-P(L))*(1-P_G)]
    2. Transition: P(L_new) = P(L|evidence) + (1 - P(L|evidence)) * P_T
    """
    if is_correct:
        numerator = p_mastery * (1 - params.p_s)
        denominator = numerator + (1 - p_mastery) * params.p_g
    else:
        numerator = p_mastery * params.p_s
        denominator = numerator + (1 - p_mastery) * (1 - params.p_g)

    if denominator == 0:
        p_posterior = 0.0
    else:
        p_posterior = numerator / denominator

    p_new = p_posterior + (1 - p_posterior) * params.p_t
    return max(0.0, min(1.0, p_new))


def predict_correct(p_mastery: float, params: BKTParams = DEFAULT_PARAMS) -> float:
    """Probability that the next response is correct."""
    return (1 - params.p_s) * p_mastery + params.p_g * (1 - p_mastery)


def mastery_status(p_mastery: float, threshold: float, total_attempts: int) -> MasteryStatus:
    if total_attempts == 0:
        return "not_started"
    if p_mastery >= threshold:
        return "mastered"
    return "learning"


def mastery_threshold_for(skill: SkillNode | None, settings: EngineSettings | None = None) -> float:
    """Threshold concepts use the stricter bar; a skill's own threshold wins otherwise."""
    default = settings.mastery.default_threshold if settings else MASTERY_THRESHOLD
    strict = settings.mastery.threshold_concept_threshold if settings else THRESHOLD_CONCEPT_MASTERY
    if skill is None:
        return default
    if skill.is_threshold_concept:
        return max(strict, skill.mastery_threshold or 0.0)
    return skill.mastery_threshold if skill.mastery_threshold is not None else default


def params_for_skill(skill: SkillNode | None, settings: EngineSettings | None = None) -> BKTParams:
    """Skill-specific fitted parameters when enabled, notebook defaults otherwise."""
    if settings is None:
        return skill.bkt_params if skill and skill.bkt_params else DEFAULT_PARAMS
    if settings.bkt_parameters.use_skill_specific and skill is not None and skill.bkt_params:
        return skill.bkt_params
    return settings.bkt_parameters.to_params()


def initial_state(
    learner_id: str,
    skill_id: str,
    *,
    params: BKTParams = DEFAULT_PARAMS,
    threshold: float = MASTERY_THRESHOLD,
    notebook_id: str | None = None,
) -> LearnerSkillState:
    return LearnerSkillState(
        learner_id=learner_id,
        skill_id=skill_id,
        p_mastery=params.p_l0,
        bkt_params=params,
        mastery_status="not_started",
        mastery_threshold=threshold,
        spaced_repetition=SpacedRepetition(),
        notebook_id=notebook_id,
    )


def update_state(
    state: LearnerSkillState,
    is_correct: bool,
    now: datetime | None = None,
) -> LearnerSkillState:
    """Apply one observed response and return the new state."""
    p_new = bkt_update(state.p_mastery, is_correct, state.bkt_params)
    total = state.total_attempts + 1
    return replace(
        state,
        p_mastery=p_new,
        total_attempts=total,
        correct_attempts=state.correct_attempts + (1 if is_correct else 0),
        consecutive_successes=state.consecutive_successes + 1 if is_correct else 0,
        mastery_status=mastery_status(p_new, state.mastery_threshold, total),
        updated_at=now or datetime.now(timezone.utc),
    )


def replay(
    outcomes: list[bool],
    params: BKTParams = DEFAULT_PARAMS,
) -> list[float]:
    """Mastery trace after each response, starting from ``params.p_l0``."""
    trace: list[float] = []
    p_mastery = params.p_l0
    for is_correct in outcomes:
        p_mastery = bkt_update(p_mastery, is_correct, params)
        trace.append(p_mastery)
    return trace


__all__ = [
    "DEFAULT_PARAMS",
    "MASTERY_THRESHOLD",
    "P_G",
    "P_L0",
    "P_S",
    "P_T",
    "THRESHOLD_CONCEPT_MASTERY",
    "bkt_update",
    "initial_state",
    "mastery_status",
    "mastery_threshold_for",
    "params_for_skill",
    "predict_correct",
    "replay",
    "update_state",
]
