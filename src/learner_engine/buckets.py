"""Bucket types with explicit boundary tables.

Each table lists ``(label, lower, upper)`` with ``lower`` inclusive and
``upper`` exclusive; the last row of a bounded table also includes its upper
edge.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Sequence, TypeVar

DifficultyBucket = Literal["very_easy", "easy", "moderate", "hard", "very_hard"]
TimeOfDay = Literal["morning", "afternoon", "evening", "night"]
DifficultyBand = Literal["easy", "medium", "hard"]
GainCategory = Literal["high", "medium", "low", "negative"]

Label = TypeVar("Label", bound=str)

DIFFICULTY_BUCKETS: tuple[tuple[DifficultyBucket, float, float], ...] = (
    ("very_easy", 0.0, 0.2),
    ("easy", 0.2, 0.4),
    ("moderate", 0.4, 0.6),
    ("hard", 0.6, 0.8),
    ("very_hard", 0.8, 1.0),
)

# Hours of the day; night wraps past midnight.
TIME_OF_DAY_BUCKETS: tuple[tuple[TimeOfDay, int, int], ...] = (
    ("morning", 6, 12),
    ("afternoon", 12, 18),
    ("evening", 18, 22),
)

# Skill difficulty on the 1-10 graph scale.
DIFFICULTY_BANDS: tuple[tuple[DifficultyBand, int, int], ...] = (
    ("easy", 1, 4),
    ("medium", 4, 7),
    ("hard", 7, 11),
)

GAIN_CATEGORIES: tuple[tuple[GainCategory, float, float], ...] = (
    ("negative", -1.0, 0.0),
    ("low", 0.0, 0.3),
    ("medium", 0.3, 0.7),
    ("high", 0.7, 1.0),
)


def classify(value: float, table: Sequence[tuple[Label, float, float]]) -> Label:
    """Return the label whose range holds ``value``; values beyond the edges clamp."""
    if value < table[0][1]:
        return table[0][0]
    for label, lower, upper in table:
        if lower <= value < upper:
            return label
    return table[-1][0]


def bucket_bounds(label: str, table: Sequence[tuple[str, float, float]]) -> tuple[float, float]:
    for name, lower, upper in table:
        if name == label:
            return lower, upper
    raise KeyError(label)


def difficulty_bucket(difficulty: float) -> DifficultyBucket:
    return classify(difficulty, DIFFICULTY_BUCKETS)


def difficulty_band(difficulty: int) -> DifficultyBand:
    return classify(difficulty, DIFFICULTY_BANDS)


def gain_category(gain: float) -> GainCategory:
    return classify(gain, GAIN_CATEGORIES)


def time_of_day(moment: datetime) -> TimeOfDay:
    hour = moment.hour
    for label, start, end in TIME_OF_DAY_BUCKETS:
        if start <= hour < end:
            return label
    return "night"


__all__ = [
    "DIFFICULTY_BANDS",
    "DIFFICULTY_BUCKETS",
    "DifficultyBand",
    "DifficultyBucket",
    "GAIN_CATEGORIES",
    "GainCategory",
    "TIME_OF_DAY_BUCKETS",
    "TimeOfDay",
    "bucket_bounds",
    "classify",
    "difficulty_band",
    "difficulty_bucket",
    "gain_category",
    "time_of_day",
]
