"""Human-readable insights derived from an inverse profile."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .dimensions import optimal_difficulty_range
from .profile import InverseProfile

InsightCategory = Literal["strength", "improvement", "recommendation"]
Priority = Literal["high", "medium", "low"]

PRIORITY_ORDER: dict[Priority, int] = {"high": 0, "medium": 1, "low": 2}


@dataclass(slots=True)
class ProfileInsight:
    category: InsightCategory
    title: str
    description: str
    priority: Priority
    actionable: bool


def _plural(count: int, singular: str, plural: str | None = None) -> str:
    return singular if count == 1 else (plural or f"{singular}s")


def generate_profile_insights(profile: InverseProfile) -> list[ProfileInsight]:
    """Deterministic insight list, highest priority first."""
    insights: list[ProfileInsight] = []

    ks = profile.knowledge_state
    if ks.skills_mastered > 0:
        insights.append(ProfileInsight(
            category="strength",
            title="Mastery Progress",
            description=f"You've mastered {ks.skills_mastered} {_plural(ks.skills_mastered, 'skill')}. Great progress!",
            priority="low",
            actionable=False,
        ))
    if ks.knowledge_gaps:
        count = len(ks.knowledge_gaps)
        insights.append(ProfileInsight(
            category="improvement",
            title="Knowledge Gaps Detected",
            description=f"{count} {_plural(count, 'skill needs', 'skills need')} more practice.",
            priority="high",
            actionable=True,
        ))
    if ks.misconceptions:
        count = len(ks.misconceptions)
        insights.append(ProfileInsight(
            category="improvement",
            title="Potential Misconceptions",
            description=(
                f"High error patterns detected in {count} {_plural(count, 'area')}. "
                "Consider reviewing fundamentals."
            ),
            priority="high",
            actionable=True,
        ))

    ci = profile.cognitive_indicators
    if ci.expertise_level in ("expert", "advanced"):
        insights.append(ProfileInsight(
            category="strength",
            title="Strong Performance",
            description=f"Your accuracy and speed indicate {ci.expertise_level} level understanding.",
            priority="low",
            actionable=False,
        ))
    if ci.working_memory == "low":
        insights.append(ProfileInsight(
            category="recommendation",
            title="Break Down Complex Problems",
            description="Work through problems step by step. Taking notes may help.",
            priority="medium",
            actionable=True,
        ))
    if ci.optimal_complexity is not None:
        lower, upper = optimal_difficulty_range(ci.optimal_complexity)
        insights.append(ProfileInsight(
            category="recommendation",
            title="Your Challenge Zone",
            description=f"You do your best learning on problems with difficulty {lower:.1f}-{upper:.1f}.",
            priority="low",
            actionable=True,
        ))

    mi = profile.metacognitive_indicators
    if mi.help_seeking == "avoidant":
        insights.append(ProfileInsight(
            category="recommendation",
            title="Use Available Help",
            description="Do not hesitate to use hints when stuck. They are designed to support learning.",
            priority="medium",
            actionable=True,
        ))
    elif mi.help_seeking == "excessive":
        insights.append(ProfileInsight(
            category="recommendation",
            title="Try Before Seeking Help",
            description="Challenge yourself to attempt problems before requesting hints.",
            priority="medium",
            actionable=True,
        ))
    if mi.overconfidence_rate is not None and mi.overconfidence_rate > 0.4:
        insights.append(ProfileInsight(
            category="improvement",
            title="Calibrate Your Confidence",
            description="Your confidence sometimes exceeds your accuracy. Double-check your work.",
            priority="medium",
            actionable=True,
        ))

    moi = profile.motivational_indicators
    if moi.persistence_score is not None and moi.persistence_score > 0.7:
        insights.append(ProfileInsight(
            category="strength",
            title="Great Persistence",
            description="You show excellent persistence after encountering challenges.",
            priority="low",
            actionable=False,
        ))
    elif moi.persistence_score is not None and moi.persistence_score < 0.3:
        insights.append(ProfileInsight(
            category="recommendation",
            title="Embrace Challenges",
            description="Mistakes are learning opportunities. Try a few more times before moving on.",
            priority="high",
            actionable=True,
        ))

    bp = profile.behavioral_patterns
    if (
        bp.hint_usage_rate is not None
        and bp.hint_usage_rate < 0.05
        and ks.average_mastery is not None
        and ks.average_mastery < 0.5
    ):
        insights.append(ProfileInsight(
            category="recommendation",
            title="Leverage Learning Aids",
            description="Hints are available to help you learn. Consider using them when needed.",
            priority="medium",
            actionable=True,
        ))
    if bp.learning_velocity is not None and bp.learning_velocity > 5:
        insights.append(ProfileInsight(
            category="strength",
            title="Fast Learner",
            description="You are progressing through skills at an impressive pace!",
            priority="low",
            actionable=False,
        ))

    # sort is stable: rule order breaks ties
    insights.sort(key=lambda insight: PRIORITY_ORDER[insight.priority])
    return insights


__all__ = ["PRIORITY_ORDER", "ProfileInsight", "generate_profile_insights"]
