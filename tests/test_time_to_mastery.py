from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from learner_engine.time_to_mastery import (
    PracticeRecord,
    SkillPracticeData,
    efficiency_score,
    expected_attempts,
    format_duration,
    predict_time_to_mastery,
    time_to_mastery,
    time_to_mastery_summary,
)

START = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _skill(skill_id, bloom, difficulty, attempts, mastered_after_days=None, response_time_ms=10_000):
    return SkillPracticeData(
        skill_id=skill_id,
        skill_name=skill_id.title(),
        bloom_level=bloom,
        difficulty=difficulty,
        first_attempt_at=START,
        mastered_at=START + timedelta(days=mastered_after_days) if mastered_after_days is not None else None,
        attempts=[
            PracticeRecord(attempted_at=START + timedelta(hours=i), response_time_ms=response_time_ms, correct=True)
            for i in range(attempts)
        ],
    )


class TestExpectedAttempts:
    def test_scaled_by_difficulty(self):
        assert expected_attempts(3, 5) == 7
        assert expected_attempts(1, 2) == 2
        assert expected_attempts(6, 10) == 22

    def test_unknown_bloom_level_uses_default(self):
        assert expected_attempts(9, 5) == 5


class TestTimeToMastery:
    def test_metrics(self):
        metrics = time_to_mastery(_skill("a", 2, 5, 4, mastered_after_days=2))
        assert metrics.total_practice_time_ms == 40_000
        assert metrics.average_time_per_attempt_ms == 10_000
        assert metrics.efficiency == pytest.approx(1.25)
        assert metrics.time_to_mastery == timedelta(days=2)

    def test_efficiency_capped(self):
        assert time_to_mastery(_skill("a", 2, 5, 2)).efficiency == 2.0

    def test_no_attempts(self):
        metrics = time_to_mastery(_skill("a", 2, 5, 0))
        assert metrics.efficiency is None
        assert metrics.average_time_per_attempt_ms is None
        assert metrics.time_to_mastery is None

    def test_summary(self):
        summary = time_to_mastery_summary([
            _skill("a", 1, 2, 2, mastered_after_days=2),
            _skill("b", 1, 5, 1, mastered_after_days=4),
            _skill("c", 3, 8, 6),
        ])
        assert summary.average_time_to_mastery == timedelta(days=3)
        assert summary.median_time_to_mastery == timedelta(days=4)
        assert summary.fastest_skill.skill_id == "b"
        assert summary.slowest_skill.skill_id == "a"
        assert summary.by_bloom_level == {1: timedelta(days=3)}
        assert summary.by_difficulty == {"easy": timedelta(days=2), "medium": timedelta(days=4)}
        assert len(summary.skills) == 3

    def test_summary_without_mastery(self):
        summary = time_to_mastery_summary([_skill("c", 3, 8, 6)])
        assert summary.average_time_to_mastery is None
        assert summary.fastest_skill is None
        assert summary.by_bloom_level == {}


class TestFormattingAndScores:
    @pytest.mark.parametrize(
        "duration, expected",
        [
            (timedelta(days=1, hours=2, minutes=5), "1d 2h"),
            (timedelta(hours=3, minutes=5), "3h 5m"),
            (timedelta(seconds=90), "1m 30s"),
            (timedelta(seconds=45), "45s"),
        ],
    )
    def test_format_duration(self, duration, expected):
        assert format_duration(duration) == expected

    def test_efficiency_score(self):
        metrics = time_to_mastery(_skill("a", 2, 5, 5, response_time_ms=60_000))
        assert efficiency_score(metrics) == 50

    def test_efficiency_score_without_practice(self):
        assert efficiency_score(time_to_mastery(_skill("a", 2, 5, 0))) == 25

    def test_prediction(self):
        prediction = predict_time_to_mastery(0.5, 0.75, 0.125, 1_000)
        assert prediction.attempts == 2
        assert prediction.time_ms == 2_000

    def test_prediction_at_target(self):
        assert predict_time_to_mastery(0.9, 0.8, 0.1, 1_000).attempts == 0

    def test_prediction_without_gain(self):
        assert predict_time_to_mastery(0.5, 0.8, 0.0, 1_000) is None
