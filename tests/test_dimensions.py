"""Tests for dimensions.py: the five inverse-profile dimensions."""

from __future__ import annotations

from datetime import timedelta

import pytest

from factories import BASE, make_attempt, make_event, make_rating, make_session
from learner_engine import dimensions
from learner_engine.bkt import initial_state
from learner_engine.dimensions import ProfileWindow


def _window(**kwargs) -> ProfileWindow:
    return ProfileWindow(learner_id="learner-1", notebook_id="nb-1", **kwargs)


class TestKnowledge:
    def test_misconceptions_need_high_error_rate(self):
        attempts = [make_attempt("x", c, i) for i, c in enumerate([False, False, False, True])]
        attempts += [make_attempt("y", c, 10 + i) for i, c in enumerate([False, False, True, True, True])]
        assert dimensions.detect_misconceptions(attempts) == ["x"]

    def test_gaps_and_counts(self):
        weak = initial_state("learner-1", "weak")
        weak.p_mastery, weak.mastery_status, weak.total_attempts = 0.2, "learning", 4
        strong = initial_state("learner-1", "strong")
        strong.p_mastery, strong.mastery_status, strong.total_attempts = 0.9, "mastered", 6
        knowledge, warnings = dimensions.knowledge_state(_window(states={"weak": weak, "strong": strong}))
        assert knowledge.skills_mastered == 1
        assert knowledge.skills_in_progress == 1
        assert knowledge.knowledge_gaps == ["weak"]
        assert knowledge.average_mastery == pytest.approx(0.55)
        assert knowledge.current_zpd is None
        assert knowledge.misconceptions is None
        assert any("zone of proximal development" in w for w in warnings)

    def test_empty_window(self):
        knowledge, _ = dimensions.knowledge_state(_window())
        assert knowledge.average_mastery is None
        assert knowledge.knowledge_gaps == []


class TestCognitive:
    def test_expertise_levels(self):
        fast = [make_attempt("a", True, i, response_time_ms=5_000) for i in range(5)]
        assert dimensions.infer_expertise(fast) == "expert"
        mixed = [make_attempt("a", i < 3, i, response_time_ms=40_000) for i in range(5)]
        assert dimensions.infer_expertise(mixed) == "beginner"
        assert dimensions.infer_expertise(fast[:4]) == "unknown"

    def test_working_memory(self):
        steady = [make_attempt("a", True, i, response_time_ms=10_000) for i in range(5)]
        assert dimensions.infer_working_memory(steady, 0) == "high"
        assert dimensions.infer_working_memory(steady, 3) == "low"

    def test_cognitive_load_threshold(self):
        attempts = [make_attempt("a", True, i, difficulty=0.1) for i in range(2)]
        attempts += [make_attempt("a", False, 5 + i, difficulty=0.5) for i in range(2)]
        assert dimensions.cognitive_load_threshold(attempts) == 0.4
        assert dimensions.cognitive_load_threshold(attempts[:2]) == 1.0
        assert dimensions.cognitive_load_threshold([make_attempt("a", True)]) is None

    def test_optimal_complexity_closest_to_target(self):
        attempts = [make_attempt("a", True, i, difficulty=0.1) for i in range(2)]
        attempts += [make_attempt("a", i == 0, 5 + i, difficulty=0.5) for i in range(2)]
        assert dimensions.optimal_complexity(attempts) == "moderate"
        assert dimensions.optimal_difficulty_range("moderate") == (0.4, 0.6)

    def test_too_few_attempts_warns(self):
        indicators, warnings = dimensions.cognitive_indicators(_window(interactions=[make_attempt("a", True)]))
        assert indicators.expertise_level == "unknown"
        assert indicators.cognitive_load_threshold is None
        assert warnings


class TestMetacognitive:
    def test_calibration_correlation(self):
        ratings = [
            make_rating(0.9, True, 0),
            make_rating(0.8, True, 1),
            make_rating(0.2, False, 2),
            make_rating(0.1, False, 3),
            make_rating(0.7, True, 4),
        ]
        assert dimensions.calibration_accuracy(ratings) > 0.8

    def test_calibration_needs_variation(self):
        ratings = [make_rating(0.5 + i / 10, True, i) for i in range(5)]
        assert dimensions.calibration_accuracy(ratings) is None

    def test_ratings_without_outcome_ignored(self):
        ratings = [make_rating(0.9, None, i) for i in range(6)]
        assert dimensions.calibration_accuracy(ratings) is None

    def test_confidence_rates(self):
        ratings = [
            make_rating(0.9, False, 0),
            make_rating(0.8, True, 1),
            make_rating(0.2, True, 2),
            make_rating(0.1, False, 3),
            make_rating(0.7, True, 4),
        ]
        over, under = dimensions.confidence_rates(ratings)
        assert over == pytest.approx(1 / 3)
        assert under == pytest.approx(0.5)

    def test_normalized_confidence_scales(self):
        assert dimensions.normalized_confidence({"rating": 4, "scale": "1-5"}) == pytest.approx(0.8)
        assert dimensions.normalized_confidence({"rating": 4, "scale": "stars"}) is None
        assert dimensions.normalized_confidence({}) is None

    def test_non_numeric_payload_values_are_skipped(self):
        assert dimensions.normalized_confidence({"rating": "high", "scale": "1-5"}) is None
        assert dimensions.normalized_confidence({"rating": True}) is None
        ratings = [
            make_event("confidence_rated", i, {"rating": "high", "ratingType": "pre_attempt", "actualOutcome": True})
            for i in range(6)
        ]
        ratings.append(make_event("confidence_rated", 7, {"rating": 0.5, "ratingType": "pre_attempt", "actualOutcome": "no"}))
        assert dimensions.calibration_accuracy(ratings) is None
        assert dimensions.confidence_rates(ratings) == (None, None)

    def test_malformed_attempt_payload_reads_as_missing(self):
        event = make_event("practice_attempt", 0, {"isCorrect": "yes", "responseTimeMs": "fast", "hintUsedCount": "two"})
        assert event.is_correct is None
        assert event.response_time_ms is None
        assert event.hints_used == 0
        attempts = [make_attempt("a", True, i) for i in range(10)]
        hints = [make_event("hint_requested", i, {"timeBeforeHintMs": "soon"}) for i in range(2)]
        assert dimensions.classify_help_seeking(hints, attempts) == "appropriate"

    def test_help_seeking(self):
        attempts = [make_attempt("a", True, i) for i in range(10)]
        assert dimensions.classify_help_seeking([], attempts) == "avoidant"
        many = [make_event("hint_requested", i) for i in range(6)]
        assert dimensions.classify_help_seeking(many, attempts) == "excessive"
        patient = [make_event("hint_requested", i, {"timeBeforeHintMs": 20_000}) for i in range(2)]
        assert dimensions.classify_help_seeking(patient, attempts) == "appropriate"
        assert dimensions.classify_help_seeking([], attempts[:3]) == "unknown"


class TestMotivational:
    def test_persistence_counts_abandoned_skills(self):
        attempts = [
            make_attempt("a", False, 0),
            make_attempt("a", True, 1),
            make_attempt("a", True, 2),
            make_attempt("b", False, 3),
            make_attempt("c", True, 4),
        ]
        assert dimensions.persistence_score(attempts) == pytest.approx(0.2)

    def test_persistence_untested_without_failures(self):
        attempts = [make_attempt("a", True, i) for i in range(5)]
        assert dimensions.persistence_score(attempts) is None

    def test_session_metrics(self):
        sessions = [
            make_session(0, length_hours=1, skills=["a", "b"]),
            make_session(2, length_hours=1, skills=["b", "c"]),
            make_session(24 * 14, length_hours=0.5, skills=["d"]),
        ]
        assert dimensions.session_frequency(sessions) == pytest.approx(1.5)
        assert dimensions.voluntary_return_rate(sessions) == pytest.approx(0.5)
        assert dimensions.average_session_minutes(sessions) == pytest.approx(50.0)
        assert dimensions.learning_velocity(sessions) == pytest.approx(2.0)

    def test_short_span_yields_none(self):
        sessions = [make_session(0), make_session(5)]
        assert dimensions.session_frequency(sessions) is None

    def test_motivation_needs_three_sessions(self):
        window = _window(sessions=[make_session(0), make_session(24 * 7)])
        indicators, warnings = dimensions.motivational_indicators(window)
        assert indicators.session_frequency is None
        assert any("session" in w for w in warnings)

    def test_skipping_is_avoidance(self):
        interactions = [make_attempt("a", True, i) for i in range(5)]
        interactions += [make_event("practice_skipped", 10 + i) for i in range(3)]
        window = _window(interactions=interactions)
        assert dimensions.infer_goal_orientation(window, None) == "avoidance"


class TestBehavioral:
    def test_time_of_day_tie_prefers_morning(self):
        interactions = [make_event("skill_viewed", created_at=BASE + timedelta(minutes=i)) for i in range(5)]
        interactions += [make_event("skill_viewed", created_at=BASE + timedelta(hours=5, minutes=i)) for i in range(5)]
        assert dimensions.preferred_time_of_day(interactions) == "morning"

    def test_most_active_day_tie_prefers_monday(self):
        interactions = [make_event("skill_viewed", created_at=BASE + timedelta(minutes=i)) for i in range(5)]
        interactions += [make_event("skill_viewed", created_at=BASE + timedelta(days=1, minutes=i)) for i in range(5)]
        assert dimensions.most_active_day(interactions) == "Monday"

    def test_patterns_need_ten_interactions(self):
        interactions = [make_event("skill_viewed", i) for i in range(9)]
        assert dimensions.preferred_time_of_day(interactions) is None
        assert dimensions.most_active_day(interactions) is None

    def test_error_patterns(self):
        attempts = [make_attempt("x", False, i) for i in range(3)]
        attempts += [make_attempt("y", False, 10 + i) for i in range(4)]
        attempts += [make_attempt("z", False, 20 + i) for i in range(2)]
        assert dimensions.error_patterns(attempts) == ["y", "x"]

    def test_hint_usage_rate(self):
        interactions = [make_attempt("a", True, i) for i in range(4)] + [make_event("hint_requested", 9)]
        patterns, _ = dimensions.behavioral_patterns(_window(interactions=interactions))
        assert patterns.hint_usage_rate == pytest.approx(0.25)
