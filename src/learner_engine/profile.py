"""Inverse profile orchestration: dimensions, confidence scores and data quality."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

from .dimensions import (
    MIN_CONFIDENCE_RATINGS,
    MIN_INTERACTIONS,
    BehavioralPatterns,
    CognitiveIndicators,
    KnowledgeState,
    MetacognitiveIndicators,
    MotivationalIndicators,
    ProfileWindow,
    behavioral_patterns,
    cognitive_indicators,
    knowledge_state,
    metacognitive_indicators,
    motivational_indicators,
)
from .log import get_logger

logger = get_logger(__name__)

DataQuality = Literal["insufficient", "limited", "adequate", "good"]
Dimension = Literal["knowledge", "cognitive", "metacognitive", "motivational", "behavioral"]

CONFIDENCE_GROWTH = 0.5
MIN_CONFIDENCE = 0.1

# dimension -> (samples at the logistic midpoint, asymptotic confidence)
CONFIDENCE_WEIGHTS: dict[Dimension, tuple[int, float]] = {
    "knowledge": (5, 0.95),
    "cognitive": (10, 0.85),
    "metacognitive": (10, 0.80),
    "motivational": (3, 0.90),
    "behavioral": (10, 0.85),
}


@dataclass(slots=True)
class ConfidenceScores:
    knowledge: float
    cognitive: float
    metacognitive: float
    motivational: float
    behavioral: float


@dataclass(slots=True)
class InverseProfile:
    id: str
    learner_id: str
    notebook_id: str
    version: int
    computed_at: datetime
    interactions_analyzed: int
    knowledge_state: KnowledgeState
    cognitive_indicators: CognitiveIndicators
    metacognitive_indicators: MetacognitiveIndicators
    motivational_indicators: MotivationalIndicators
    behavioral_patterns: BehavioralPatterns
    confidence_scores: ConfidenceScores


@dataclass(slots=True)
class ProfileComputationResult:
    profile: InverseProfile
    warnings: list[str]
    data_quality: DataQuality


def dimension_confidence(sample_size: int, min_samples: int, max_confidence: float) -> float:
    """Logistic confidence in a dimension estimate, floored at 0.1.

    Grows with the sample size and stays strictly below ``max_confidence``.
    """
    exponent = -CONFIDENCE_GROWTH * (sample_size - min_samples)
    raw = max_confidence / (1 + math.exp(min(exponent, 700.0)))
    ceiling = math.nextafter(max_confidence, 0.0)
    return min(ceiling, max(MIN_CONFIDENCE, raw))


def confidence_scores(window: ProfileWindow) -> ConfidenceScores:
    practice = len(window.practice_attempts)
    samples: dict[Dimension, int] = {
        "knowledge": practice,
        "cognitive": practice,
        "metacognitive": len(window.confidence_ratings),
        "motivational": len(window.sessions),
        "behavioral": len(window.interactions),
    }
    scores = {
        dimension: dimension_confidence(samples[dimension], *CONFIDENCE_WEIGHTS[dimension])
        for dimension in CONFIDENCE_WEIGHTS
    }
    return ConfidenceScores(**scores)


def _tier(count: int, full: int, partial: int) -> int:
    if count >= full:
        return 2
    if count >= partial:
        return 1
    return 0


def assess_data_quality(window: ProfileWindow) -> DataQuality:
    score = (
        _tier(len(window.interactions), 50, 20)
        + _tier(len(window.practice_attempts), 20, 10)
        + _tier(len(window.sessions), 5, 3)
        + _tier(len(window.confidence_ratings), 10, MIN_CONFIDENCE_RATINGS)
    )
    if score >= 7:
        return "good"
    if score >= 5:
        return "adequate"
    if score >= 2:
        return "limited"
    return "insufficient"


def compute_profile(
    window: ProfileWindow,
    *,
    now: datetime | None = None,
    previous_version: int = 0,
) -> ProfileComputationResult:
    """Build a fresh, versioned profile snapshot from a history window.

    Interactions and sessions outside ``window.notebook_id`` or belonging to
    another learner are ignored.
    """
    scoped = ProfileWindow(
        learner_id=window.learner_id,
        notebook_id=window.notebook_id,
        interactions=sorted(
            (
                i for i in window.interactions
                if i.learner_id == window.learner_id and i.notebook_id == window.notebook_id
            ),
            key=lambda i: i.created_at,
        ),
        sessions=[
            s for s in window.sessions
            if s.learner_id == window.learner_id and s.notebook_id == window.notebook_id
        ],
        states=window.states,
        graph=window.graph,
    )

    warnings: list[str] = []
    if len(scoped.interactions) < MIN_INTERACTIONS:
        warnings.append(
            f"Limited data: {len(scoped.interactions)} interactions ({MIN_INTERACTIONS} recommended)"
        )

    knowledge, knowledge_warnings = knowledge_state(scoped)
    cognitive, cognitive_warnings = cognitive_indicators(scoped)
    metacognitive, metacognitive_warnings = metacognitive_indicators(scoped)
    motivational, motivational_warnings = motivational_indicators(scoped)
    behavioral, behavioral_warnings = behavioral_patterns(scoped)
    for extra in (
        knowledge_warnings,
        cognitive_warnings,
        metacognitive_warnings,
        motivational_warnings,
        behavioral_warnings,
    ):
        warnings.extend(w for w in extra if w not in warnings)

    version = previous_version + 1
    profile = InverseProfile(
        id=f"{scoped.learner_id}:{scoped.notebook_id}:v{version}",
        learner_id=scoped.learner_id,
        notebook_id=scoped.notebook_id,
        version=version,
        computed_at=now or datetime.now(timezone.utc),
        interactions_analyzed=len(scoped.interactions),
        knowledge_state=knowledge,
        cognitive_indicators=cognitive,
        metacognitive_indicators=metacognitive,
        motivational_indicators=motivational,
        behavioral_patterns=behavioral,
        confidence_scores=confidence_scores(scoped),
    )
    data_quality = assess_data_quality(scoped)
    logger.info(
        "profile_computed",
        learner_id=scoped.learner_id,
        notebook_id=scoped.notebook_id,
        version=version,
        data_quality=data_quality,
        warnings=len(warnings),
    )
    return ProfileComputationResult(profile=profile, warnings=warnings, data_quality=data_quality)


__all__ = [
    "CONFIDENCE_WEIGHTS",
    "ConfidenceScores",
    "DataQuality",
    "InverseProfile",
    "ProfileComputationResult",
    "assess_data_quality",
    "compute_profile",
    "confidence_scores",
    "dimension_confidence",
]
