"""Scaffold adapter: map mastery onto a support level."""

from __future__ import annotations

from dataclasses import replace
from typing import Literal, Sequence

from .models import LearnerSkillState

ScaffoldLevel = Literal[1, 2, 3, 4]

DEFAULT_THRESHOLDS: tuple[float, float, float] = (0.3, 0.5, 0.7)

SCAFFOLD_DESCRIPTIONS: dict[int, str] = {
    1: "Worked examples",
    2: "Partial solutions",
    3: "Hints on request",
    4: "Independent practice",
}


def scaffold_level(p_mastery: float, thresholds: Sequence[float] = DEFAULT_THRESHOLDS) -> ScaffoldLevel:
    """Level 1 below the first threshold up to level 4 at or above the last."""
    level = 1
    for threshold in thresholds:
        if p_mastery >= threshold:
            level += 1
    return level  # type: ignore[return-value]


def apply_scaffold(
    state: LearnerSkillState, thresholds: Sequence[float] = DEFAULT_THRESHOLDS
) -> LearnerSkillState:
    return replace(state, scaffold_level=scaffold_level(state.p_mastery, thresholds))


def describe_level(level: int) -> str:
    return SCAFFOLD_DESCRIPTIONS[level]


__all__ = [
    "DEFAULT_THRESHOLDS",
    "SCAFFOLD_DESCRIPTIONS",
    "ScaffoldLevel",
    "apply_scaffold",
    "describe_level",
    "scaffold_level",
]
