"""Learning efficiency: how long and how many attempts each skill took to master."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from .buckets import DIFFICULTY_BANDS, DifficultyBand, difficulty_band

EXPECTED_ATTEMPTS_BY_BLOOM: dict[int, int] = {1: 3, 2: 5, 3: 7, 4: 10, 5: 12, 6: 15}
DEFAULT_EXPECTED_ATTEMPTS = 5
MAX_EFFICIENCY = 2.0
EXPECTED_MS_PER_ATTEMPT = 60_000


@dataclass(slots=True)
class PracticeRecord:
    attempted_at: datetime
    response_time_ms: int
    correct: bool


@dataclass(slots=True)
class SkillPracticeData:
    skill_id: str
    skill_name: str
    bloom_level: int
    difficulty: int
    first_attempt_at: datetime
    mastered_at: datetime | None = None
    current_mastery: float = 0.0
    attempts: list[PracticeRecord] = field(default_factory=list)


@dataclass(slots=True)
class TimeToMasteryMetrics:
    skill_id: str
    skill_name: str
    started_at: datetime
    mastered_at: datetime | None
    total_practice_time_ms: int
    attempt_count: int
    average_time_per_attempt_ms: float | None
    efficiency: float | None
    bloom_level: int
    difficulty: int

    @property
    def time_to_mastery(self) -> timedelta | None:
        if self.mastered_at is None:
            return None
        return self.mastered_at - self.started_at


@dataclass(slots=True)
class TimeToMasterySummary:
    average_time_to_mastery: timedelta | None
    median_time_to_mastery: timedelta | None
    fastest_skill: TimeToMasteryMetrics | None
    slowest_skill: TimeToMasteryMetrics | None
    by_bloom_level: dict[int, timedelta]
    by_difficulty: dict[DifficultyBand, timedelta]
    skills: list[TimeToMasteryMetrics]


@dataclass(slots=True)
class MasteryPrediction:
    attempts: int
    time_ms: float


def expected_attempts(bloom_level: int, difficulty: int) -> int:
    """Bloom base count scaled by ``0.5 + difficulty / 10``."""
    base = EXPECTED_ATTEMPTS_BY_BLOOM.get(bloom_level, DEFAULT_EXPECTED_ATTEMPTS)
    return round(base * (0.5 + difficulty / 10))


def time_to_mastery(data: SkillPracticeData) -> TimeToMasteryMetrics:
    total = sum(a.response_time_ms for a in data.attempts)
    count = len(data.attempts)
    efficiency = None
    if count:
        efficiency = min(MAX_EFFICIENCY, expected_attempts(data.bloom_level, data.difficulty) / count)
    return TimeToMasteryMetrics(
        skill_id=data.skill_id,
        skill_name=data.skill_name,
        started_at=data.first_attempt_at,
        mastered_at=data.mastered_at,
        total_practice_time_ms=total,
        attempt_count=count,
        average_time_per_attempt_ms=total / count if count else None,
        efficiency=efficiency,
        bloom_level=data.bloom_level,
        difficulty=data.difficulty,
    )


def _mean(values: list[timedelta]) -> timedelta:
    return sum(values, timedelta()) / len(values)


def time_to_mastery_summary(skills: list[SkillPracticeData]) -> TimeToMasterySummary:
    """Aggregate over mastered skills; every skill is still listed in ``skills``."""
    metrics = [time_to_mastery(skill) for skill in skills]
    mastered = [m for m in metrics if m.mastered_at is not None]
    durations = sorted(m.time_to_mastery for m in mastered)

    ranked = sorted(
        (m for m in mastered if m.efficiency is not None),
        key=lambda m: (-m.efficiency, m.skill_id),
    )

    by_bloom: dict[int, timedelta] = {}
    for level in sorted(EXPECTED_ATTEMPTS_BY_BLOOM):
        times = [m.time_to_mastery for m in mastered if m.bloom_level == level]
        if times:
            by_bloom[level] = _mean(times)

    by_difficulty: dict[DifficultyBand, timedelta] = {}
    for band, _, _ in DIFFICULTY_BANDS:
        times = [m.time_to_mastery for m in mastered if difficulty_band(m.difficulty) == band]
        if times:
            by_difficulty[band] = _mean(times)

    return TimeToMasterySummary(
        average_time_to_mastery=_mean(durations) if durations else None,
        median_time_to_mastery=durations[len(durations) // 2] if durations else None,
        fastest_skill=ranked[0] if ranked else None,
        slowest_skill=ranked[-1] if ranked else None,
        by_bloom_level=by_bloom,
        by_difficulty=by_difficulty,
        skills=metrics,
    )


def format_duration(duration: timedelta) -> str:
    seconds = math.floor(duration.total_seconds())
    minutes, hours, days = seconds // 60, seconds // 3600, seconds // 86400
    if days > 0:
        return f"{days}d {hours % 24}h"
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def efficiency_score(metrics: TimeToMasteryMetrics) -> int:
    """0-100, half from attempt efficiency and half from practice time against one minute per attempt."""
    attempt_score = min(100.0, (metrics.efficiency or 0.0) * 50)
    expected_ms = expected_attempts(metrics.bloom_level, metrics.difficulty) * EXPECTED_MS_PER_ATTEMPT
    if metrics.total_practice_time_ms > 0:
        time_score = min(100.0, expected_ms / metrics.total_practice_time_ms * 50)
    else:
        time_score = 50.0
    return round((attempt_score + time_score) / 2)


def predict_time_to_mastery(
    current_mastery: float,
    target_mastery: float,
    average_gain_per_attempt: float,
    average_time_per_attempt_ms: float,
) -> MasteryPrediction | None:
    """None when there is no positive per-attempt gain to extrapolate from."""
    if current_mastery >= target_mastery:
        return MasteryPrediction(attempts=0, time_ms=0.0)
    if average_gain_per_attempt <= 0:
        return None
    attempts = math.ceil((target_mastery - current_mastery) / average_gain_per_attempt)
    return MasteryPrediction(attempts=attempts, time_ms=attempts * average_time_per_attempt_ms)


__all__ = [
    "EXPECTED_ATTEMPTS_BY_BLOOM",
    "MasteryPrediction",
    "PracticeRecord",
    "SkillPracticeData",
    "TimeToMasteryMetrics",
    "TimeToMasterySummary",
    "efficiency_score",
    "expected_attempts",
    "format_duration",
    "predict_time_to_mastery",
    "time_to_mastery",
    "time_to_mastery_summary",
]
