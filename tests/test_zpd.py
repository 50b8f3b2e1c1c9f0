from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from learner_engine import graph
from learner_engine.bkt import initial_state
from learner_engine.models import PrerequisiteRelationship, SpacedRepetition
from learner_engine.zpd import progress_summary, readiness_score, zpd_skills

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture()
def skill_graph():
    graph.clear_cache()
    yield graph.load_skill_graph()
    graph.clear_cache()


def _state(skill_id, p_mastery, status, due_at=None):
    state = initial_state("learner-1", skill_id)
    state.p_mastery = p_mastery
    state.mastery_status = status
    state.total_attempts = 0 if status == "not_started" else 4
    state.spaced_repetition = SpacedRepetition(next_review_at=due_at)
    return state


class TestZPDSkills:
    def test_fresh_learner_gets_root_skills(self, skill_graph):
        ids = [item.skill.id for item in zpd_skills(skill_graph, {})]
        assert ids == ["variables", "graphing-lines"]

    def test_required_prerequisite_unlocks_dependents(self, skill_graph):
        states = {"variables": _state("variables", 0.9, "mastered")}
        result = zpd_skills(skill_graph, states)
        assert [item.skill.id for item in result] == ["linear-equations", "graphing-lines", "functions"]
        assert result[0].readiness_score == 1.0
        assert result[0].prerequisites_mastered == ["variables"]

    def test_functions_pending_helpful_prerequisite(self, skill_graph):
        states = {"variables": _state("variables", 0.9, "mastered")}
        functions = next(item for item in zpd_skills(skill_graph, states) if item.skill.id == "functions")
        assert functions.prerequisites_pending == ["graphing-lines"]
        assert functions.readiness_score == 0.0

    def test_mastered_skills_excluded(self, skill_graph):
        states = {"variables": _state("variables", 0.9, "mastered")}
        assert "variables" not in [item.skill.id for item in zpd_skills(skill_graph, states)]

    def test_limit(self, skill_graph):
        states = {"variables": _state("variables", 0.9, "mastered")}
        assert len(zpd_skills(skill_graph, states, limit=1)) == 1


class TestReadiness:
    def test_no_optional_prerequisites(self):
        rels = [PrerequisiteRelationship("a", "b", "required")]
        assert readiness_score(rels, {}) == 1.0

    def test_mean_of_optional_prerequisites(self):
        rels = [
            PrerequisiteRelationship("a", "c", "recommended"),
            PrerequisiteRelationship("b", "c", "helpful"),
        ]
        states = {"a": _state("a", 0.6, "learning")}
        assert readiness_score(rels, states) == pytest.approx(0.3)


class TestProgressSummary:
    def test_counts_and_reviews(self, skill_graph):
        states = {
            "variables": _state("variables", 0.9, "mastered", NOW + timedelta(days=3)),
            "linear-equations": _state("linear-equations", 0.5, "learning", NOW - timedelta(days=1)),
        }
        progress = progress_summary(skill_graph, states, NOW)
        assert progress.total_skills == 6
        assert progress.mastered == 1
        assert progress.learning == 1
        assert progress.not_started == 4
        assert progress.average_mastery == pytest.approx(0.7)
        assert progress.due_for_review == 1
        assert progress.next_review_at == NOW + timedelta(days=3)

    def test_empty_progress(self, skill_graph):
        progress = progress_summary(skill_graph, {}, NOW)
        assert progress.average_mastery is None
        assert progress.next_review_at is None
