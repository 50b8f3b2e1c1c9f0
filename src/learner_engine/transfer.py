"""Transfer analytics: performance on novel problems relative to practiced ones."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Literal, Mapping

from .models import LearnerInteraction

TransferLevel = Literal["excellent", "good", "moderate", "poor"]

MAX_TRANSFER_RATIO = 1.5
GOOD_TRANSFER = 0.8
POOR_TRANSFER = 0.5
MIN_NOVEL_FOR_VERDICT = 3
VARIATION_TARGET_NOVEL = 5

TRANSFER_LEVELS: tuple[tuple[float, TransferLevel, str, str], ...] = (
    (
        0.9,
        "excellent",
        "Strong knowledge transfer - applies well to new situations",
        "Ready for more challenging novel problems",
    ),
    (
        0.7,
        "good",
        "Good transfer - can handle most variations",
        "Practice with more diverse problem types",
    ),
    (
        0.5,
        "moderate",
        "Moderate transfer - some difficulty with novel problems",
        "Focus on understanding underlying principles",
    ),
)


@dataclass(slots=True)
class TransferAttempt:
    is_novel: bool
    correct: bool
    question_type: str = ""


@dataclass(slots=True)
class SkillTransferData:
    skill_id: str
    skill_name: str
    attempts: list[TransferAttempt] = field(default_factory=list)


@dataclass(slots=True)
class TransferMetrics:
    skill_id: str
    skill_name: str
    practice_accuracy: float | None
    transfer_accuracy: float | None
    transfer_ratio: float | None
    novel_problem_count: int


@dataclass(slots=True)
class TransferSummary:
    average_transfer_ratio: float | None
    skills_with_good_transfer: list[TransferMetrics]
    skills_with_poor_transfer: list[TransferMetrics]
    overall_practice_accuracy: float | None
    overall_transfer_accuracy: float | None
    skills: list[TransferMetrics]


@dataclass(slots=True)
class TransferRecommendation:
    type: str
    message: str
    skill_ids: list[str]


def _accuracy(attempts: list[TransferAttempt]) -> float | None:
    if not attempts:
        return None
    return sum(1 for a in attempts if a.correct) / len(attempts)


def transfer_ratio(practice_accuracy: float | None, transfer_accuracy: float | None) -> float | None:
    """transfer / practice accuracy, capped at 1.5; undefined without practice success."""
    if practice_accuracy is None or transfer_accuracy is None or practice_accuracy == 0:
        return None
    return min(MAX_TRANSFER_RATIO, transfer_accuracy / practice_accuracy)


def skill_transfer(data: SkillTransferData) -> TransferMetrics:
    practiced = [a for a in data.attempts if not a.is_novel]
    novel = [a for a in data.attempts if a.is_novel]
    practice_accuracy = _accuracy(practiced)
    transfer_accuracy = _accuracy(novel)
    return TransferMetrics(
        skill_id=data.skill_id,
        skill_name=data.skill_name,
        practice_accuracy=practice_accuracy,
        transfer_accuracy=transfer_accuracy,
        transfer_ratio=transfer_ratio(practice_accuracy, transfer_accuracy),
        novel_problem_count=len(novel),
    )


def transfer_summary(skills: list[SkillTransferData]) -> TransferSummary:
    """Summary over skills that have at least one novel attempt."""
    metrics = [m for m in map(skill_transfer, skills) if m.novel_problem_count > 0]
    ratios = [m.transfer_ratio for m in metrics if m.transfer_ratio is not None]
    practiced = [a for s in skills for a in s.attempts if not a.is_novel]
    novel = [a for s in skills for a in s.attempts if a.is_novel]
    return TransferSummary(
        average_transfer_ratio=sum(ratios) / len(ratios) if ratios else None,
        skills_with_good_transfer=[
            m for m in metrics if m.transfer_ratio is not None and m.transfer_ratio >= GOOD_TRANSFER
        ],
        skills_with_poor_transfer=[
            m for m in metrics
            if m.transfer_ratio is not None
            and m.transfer_ratio < POOR_TRANSFER
            and m.novel_problem_count >= MIN_NOVEL_FOR_VERDICT
        ],
        overall_practice_accuracy=_accuracy(practiced) if metrics else None,
        overall_transfer_accuracy=_accuracy(novel) if metrics else None,
        skills=metrics,
    )


def interpret_transfer_ratio(ratio: float) -> tuple[TransferLevel, str, str]:
    """(level, description, recommendation)."""
    for lower, level, description, recommendation in TRANSFER_LEVELS:
        if ratio >= lower:
            return level, description, recommendation
    return (
        "poor",
        "Limited transfer - struggles with unfamiliar contexts",
        "Review fundamentals and practice varied examples",
    )


def identify_rote_knowledge(metrics: list[TransferMetrics]) -> list[TransferMetrics]:
    """Strong on practiced questions, weak on novel ones."""
    return [
        m for m in metrics
        if m.practice_accuracy is not None
        and m.practice_accuracy >= 0.8
        and m.transfer_ratio is not None
        and m.transfer_ratio < POOR_TRANSFER
        and m.novel_problem_count >= MIN_NOVEL_FOR_VERDICT
    ]


def identify_robust_knowledge(metrics: list[TransferMetrics]) -> list[TransferMetrics]:
    return [
        m for m in metrics
        if m.practice_accuracy is not None
        and m.practice_accuracy >= 0.7
        and m.transfer_ratio is not None
        and m.transfer_ratio >= GOOD_TRANSFER
        and m.novel_problem_count >= MIN_NOVEL_FOR_VERDICT
    ]


def transfer_readiness(practice_accuracy: float, attempt_count: int, variation_exposure: int) -> int:
    """0-100 readiness: 30 for practice volume, 40 for accuracy, 30 for question variety."""
    practice_score = min(1.0, attempt_count / 10) * 30
    accuracy_score = practice_accuracy * 40
    variation_score = min(1.0, variation_exposure / 5) * 30
    return round(practice_score + accuracy_score + variation_score)


def transfer_recommendations(summary: TransferSummary) -> list[TransferRecommendation]:
    recommendations: list[TransferRecommendation] = []
    rote = identify_rote_knowledge(summary.skills)
    if rote:
        recommendations.append(TransferRecommendation(
            type="review_fundamentals",
            message='These skills may be memorized rather than understood. Focus on "why" not just "how".',
            skill_ids=[m.skill_id for m in rote],
        ))
    robust = identify_robust_knowledge(summary.skills)
    if robust:
        recommendations.append(TransferRecommendation(
            type="ready_for_advanced",
            message="These skills show strong transfer. Try more complex applications.",
            skill_ids=[m.skill_id for m in robust],
        ))
    need_variation = [
        m for m in summary.skills
        if m.transfer_ratio is not None
        and POOR_TRANSFER <= m.transfer_ratio < GOOD_TRANSFER
        and m.novel_problem_count < VARIATION_TARGET_NOVEL
    ]
    if need_variation:
        recommendations.append(TransferRecommendation(
            type="need_variation",
            message="Practice these skills with more varied problem types.",
            skill_ids=[m.skill_id for m in need_variation],
        ))
    return recommendations


def transfer_data_from_interactions(
    interactions: list[LearnerInteraction],
    skill_names: Mapping[str, str] | None = None,
) -> list[SkillTransferData]:
    """Group practice attempts by skill; ``isNovel`` marks varied questions."""
    names = skill_names or {}
    grouped: dict[str, list[TransferAttempt]] = defaultdict(list)
    for interaction in interactions:
        if interaction.event_type != "practice_attempt" or not interaction.skill_id:
            continue
        grouped[interaction.skill_id].append(
            TransferAttempt(
                is_novel=interaction.payload.get("isNovel") is True,
                correct=bool(interaction.is_correct),
                question_type=str(interaction.payload.get("questionType", "")),
            )
        )
    return [
        SkillTransferData(skill_id=skill_id, skill_name=names.get(skill_id, skill_id), attempts=attempts)
        for skill_id, attempts in sorted(grouped.items())
    ]


__all__ = [
    "SkillTransferData",
    "TransferAttempt",
    "TransferMetrics",
    "TransferRecommendation",
    "TransferSummary",
    "identify_robust_knowledge",
    "identify_rote_knowledge",
    "interpret_transfer_ratio",
    "skill_transfer",
    "transfer_data_from_interactions",
    "transfer_ratio",
    "transfer_readiness",
    "transfer_recommendations",
    "transfer_summary",
]
