"""Tests for profile.py: profile computation, confidence scores and data quality."""

from __future__ import annotations

import pytest

from factories import BASE, make_attempt, make_rating, make_session
from learner_engine import graph
from learner_engine.bkt import initial_state
from learner_engine.dimensions import ProfileWindow
from learner_engine.profile import (
    CONFIDENCE_WEIGHTS,
    assess_data_quality,
    compute_profile,
    dimension_confidence,
)


def _state(skill_id, p_mastery, status):
    state = initial_state("learner-1", skill_id)
    state.p_mastery = p_mastery
    state.mastery_status = status
    state.total_attempts = 5
    return state


class TestComputeProfile:
    def test_sparse_window_computes_knowledge_without_calibration(self):
        interactions = [make_attempt("variables", i % 4 != 0, i, response_time_ms=12_000) for i in range(8)]
        interactions += [make_rating(0.8, True, 20), make_rating(0.3, False, 21)]
        window = ProfileWindow(
            learner_id="learner-1",
            notebook_id="nb-1",
            interactions=interactions,
            states={"variables": _state("variables", 0.85, "mastered")},
        )
        result = compute_profile(window, now=BASE)

        profile = result.profile
        assert profile.interactions_analyzed == 10
        assert profile.knowledge_state.average_mastery == pytest.approx(0.85)
        assert profile.knowledge_state.skills_mastered == 1
        assert profile.knowledge_state.misconceptions == []
        assert profile.metacognitive_indicators.calibration_accuracy is None
        assert any("confidence" in warning for warning in result.warnings)

    def test_scopes_to_learner_and_notebook(self):
        interactions = [
            make_attempt("a", True, 0),
            make_attempt("a", True, 1, learner_id="learner-2"),
            make_attempt("a", True, 2, notebook_id="nb-2"),
        ]
        sessions = [make_session(0), make_session(1, learner_id="learner-2")]
        window = ProfileWindow("learner-1", "nb-1", interactions=interactions, sessions=sessions)
        result = compute_profile(window, now=BASE)
        assert result.profile.interactions_analyzed == 1

    def test_version_and_id(self):
        window = ProfileWindow("learner-1", "nb-1")
        result = compute_profile(window, now=BASE, previous_version=3)
        assert result.profile.version == 4
        assert result.profile.id == "learner-1:nb-1:v4"
        assert result.profile.computed_at == BASE

    def test_empty_window(self):
        result = compute_profile(ProfileWindow("learner-1", "nb-1"), now=BASE)
        assert result.data_quality == "insufficient"
        assert result.profile.knowledge_state.average_mastery is None
        assert result.profile.cognitive_indicators.expertise_level == "unknown"
        assert result.profile.motivational_indicators.goal_orientation == "unknown"
        assert result.profile.behavioral_patterns.preferred_time_of_day is None
        assert result.warnings

    def test_warnings_not_duplicated(self):
        result = compute_profile(ProfileWindow("learner-1", "nb-1"), now=BASE)
        assert len(result.warnings) == len(set(result.warnings))

    def test_graph_feeds_zpd(self):
        graph.clear_cache()
        window = ProfileWindow("learner-1", "nb-1", graph=graph.load_skill_graph())
        result = compute_profile(window, now=BASE)
        assert result.profile.knowledge_state.current_zpd == ["variables", "graphing-lines"]
        assert result.profile.knowledge_state.skills_not_started == 6
        graph.clear_cache()


class TestConfidence:
    @pytest.mark.parametrize("dimension", list(CONFIDENCE_WEIGHTS))
    def test_bounded_and_non_decreasing(self, dimension):
        min_samples, max_confidence = CONFIDENCE_WEIGHTS[dimension]
        scores = [dimension_confidence(n, min_samples, max_confidence) for n in range(0, 200)]
        assert all(0.1 <= score < max_confidence for score in scores)
        assert scores == sorted(scores)

    def test_floor_with_no_data(self):
        assert dimension_confidence(0, 5, 0.95) == 0.1

    def test_midpoint(self):
        assert dimension_confidence(10, 10, 0.8) == pytest.approx(0.4)

    def test_huge_sample_stays_below_max(self):
        assert dimension_confidence(10_000, 5, 0.95) < 0.95


class TestDataQuality:
    def test_limited(self):
        interactions = [make_attempt("a", True, i) for i in range(20)]
        window = ProfileWindow("learner-1", "nb-1", interactions=interactions)
        assert assess_data_quality(window) == "limited"

    def test_good(self):
        interactions = [make_attempt("a", True, i) for i in range(40)]
        interactions += [make_rating(0.5, True, 100 + i) for i in range(10)]
        sessions = [make_session(24 * i) for i in range(5)]
        window = ProfileWindow("learner-1", "nb-1", interactions=interactions, sessions=sessions)
        assert assess_data_quality(window) == "good"
