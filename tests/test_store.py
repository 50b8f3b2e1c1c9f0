"""Tests for store.py: skill state, history, interaction log and notebook settings."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from learner_engine import db, store
from learner_engine.bkt_fit import fit_parameters
from learner_engine.dimensions import ProfileWindow
from learner_engine.errors import ConfigError, FeatureUnavailableError
from learner_engine.models import LearnerInteraction, LearnerSession
from learner_engine.practice import PracticeAttempt
from learner_engine.profile import compute_profile
from learner_engine.settings import EngineSettings

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def fresh_db(tmp_path):
    db_path = tmp_path / "test.db"
    db.DB_PATH = db_path
    db.init_db()
    yield
    if db_path.exists():
        db_path.unlink()


def _record(correct=True, *, learner_id="learner-1", skill_id="variables", now=NOW, notebook_id="nb-1"):
    return store.record_practice_attempt(
        learner_id, notebook_id, skill_id, PracticeAttempt(is_correct=correct), EngineSettings(), now
    )


class TestSkillState:
    def test_first_attempt_creates_state(self):
        result = _record()
        assert result.previous_p_mastery == 0.3
        assert result.quality == 4
        stored = store.get_state("learner-1", "nb-1", "variables")
        assert stored == result.state
        assert stored.p_mastery == pytest.approx(0.692683, abs=1e-4)
        assert stored.updated_at == NOW
        assert stored.notebook_id == "nb-1"

    def test_attempts_accumulate(self):
        _record()
        _record(now=NOW + timedelta(minutes=5))
        result = _record(False, now=NOW + timedelta(minutes=10))
        assert result.state.total_attempts == 3
        assert result.state.correct_attempts == 2
        assert result.state.consecutive_successes == 0

    def test_missing_state(self):
        assert store.get_state("learner-1", "nb-1", "nothing") is None

    def test_state_is_kept_per_notebook(self):
        _record()
        _record(now=NOW + timedelta(minutes=1))
        other = _record(notebook_id="nb-2", now=NOW + timedelta(minutes=2))
        assert other.previous_p_mastery == 0.3
        first = store.get_state("learner-1", "nb-1", "variables")
        assert first.total_attempts == 2
        assert first.mastery_status == "mastered"
        assert store.get_state("learner-1", "nb-2", "variables").total_attempts == 1
        assert [s.notebook_id for s in store.list_states("learner-1", "nb-1")] == ["nb-1"]

    def test_list_and_group_states(self):
        _record(skill_id="variables")
        _record(skill_id="functions")
        _record(learner_id="learner-2")
        _record(learner_id="learner-3", notebook_id="nb-2")
        assert [s.skill_id for s in store.list_states("learner-1")] == ["functions", "variables"]
        assert sorted(store.states_by_learner("nb-1")) == ["learner-1", "learner-2"]

    def test_due_reviews(self):
        _record(skill_id="variables", now=NOW - timedelta(days=3))
        _record(skill_id="functions", now=NOW)
        due = store.get_due("learner-1", NOW, "nb-1")
        assert [s.skill_id for s in due] == ["variables"]

    def test_history_snapshot_per_attempt(self):
        _record()
        _record(now=NOW + timedelta(minutes=1))
        history = store.mastery_history("learner-1", "variables")
        assert len(history) == 2
        assert history[0].recorded_at == NOW
        assert history[1].p_mastery > history[0].p_mastery
        assert len(store.notebook_mastery_history("nb-1")) == 2

    def test_concurrent_attempts_are_serialised(self):
        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(lambda i: _record(now=NOW + timedelta(seconds=i)), range(8)))
        state = store.get_state("learner-1", "nb-1", "variables")
        assert state.total_attempts == 8
        assert len(store.mastery_history("learner-1", "variables")) == 8

    def test_failed_transaction_rolls_back(self):
        with pytest.raises(RuntimeError):
            with db.transaction() as conn:
                conn.execute(
                    "INSERT INTO notebook_settings (notebook_id, overrides_json, updated_at) VALUES (?, ?, ?)",
                    ("nb-1", "{}", db.now_iso()),
                )
                raise RuntimeError("boom")
        assert store.get_notebook_overrides("nb-1") == {}


class TestInteractionLog:
    def _interaction(self, event_type, minutes, **kwargs):
        return LearnerInteraction(
            learner_id=kwargs.pop("learner_id", "learner-1"),
            notebook_id="nb-1",
            event_type=event_type,
            created_at=NOW + timedelta(minutes=minutes),
            **kwargs,
        )

    def test_append_and_filter(self):
        store.append_interaction(
            self._interaction("practice_attempt", 1, skill_id="variables", payload={"isCorrect": True, "responseTimeMs": 4000})
        )
        store.append_interaction(self._interaction("hint_requested", 0, skill_id="variables"))
        store.append_interaction(
            self._interaction("practice_attempt", 2, skill_id="functions", learner_id="learner-2", payload={"responseTimeMs": 6000})
        )

        mine = store.list_interactions("learner-1", "nb-1")
        assert [i.event_type for i in mine] == ["hint_requested", "practice_attempt"]
        assert mine[1].payload == {"isCorrect": True, "responseTimeMs": 4000}
        assert len(store.list_interactions(None, "nb-1", event_type="practice_attempt")) == 2
        assert len(store.list_interactions(None, "nb-1", skill_id="functions")) == 1
        assert len(store.list_interactions("learner-1", "nb-1", since=NOW + timedelta(minutes=1))) == 1

    def test_undecodable_payload_reports_store_unavailable(self):
        interaction_id = store.append_interaction(self._interaction("skill_viewed", 0))
        with db.connect() as conn:
            conn.execute("UPDATE learner_interactions SET payload_json = 'not json' WHERE id = ?", (interaction_id,))
        with pytest.raises(FeatureUnavailableError) as exc_info:
            store.list_interactions("learner-1", "nb-1")
        assert exc_info.value.feature == "learner_store"

    def test_sessions_round_trip(self):
        session_id = store.append_session(
            LearnerSession(
                learner_id="learner-1",
                notebook_id="nb-1",
                started_at=NOW,
                ended_at=NOW + timedelta(minutes=20),
                duration_ms=1_200_000,
                skills_practiced=["variables"],
            )
        )
        (session,) = store.list_sessions("learner-1", "nb-1")
        assert session.id == session_id
        assert session.ended_at == NOW + timedelta(minutes=20)
        assert session.skills_practiced == ["variables"]


class TestNotebookSettings:
    def test_defaults_without_overrides(self):
        assert store.notebook_settings("nb-1", EngineSettings()) == EngineSettings()

    def test_overrides_accumulate(self):
        store.update_notebook_settings("nb-1", {"bkt_parameters": {"default_pT": 0.2}}, EngineSettings())
        settings = store.update_notebook_settings("nb-1", {"mastery": {"default_threshold": 0.85}}, EngineSettings())
        assert settings.bkt_parameters.default_p_t == 0.2
        assert settings.mastery.default_threshold == 0.85
        assert store.get_notebook_overrides("nb-1") == {
            "bkt_parameters": {"default_pT": 0.2},
            "mastery": {"default_threshold": 0.85},
        }

    def test_invalid_override_not_written(self):
        with pytest.raises(ConfigError) as exc_info:
            store.update_notebook_settings("nb-1", {"bkt_parameters": {"default_pS": 2}}, EngineSettings())
        assert exc_info.value.field == "bkt_parameters.default_pS"
        assert store.get_notebook_overrides("nb-1") == {}

    def test_other_notebooks_unaffected(self):
        store.update_notebook_settings("nb-1", {"inverse_profiling_enabled": False}, EngineSettings())
        assert store.notebook_settings("nb-2", EngineSettings()).inverse_profiling_enabled is True


class TestProfilesAndParams:
    def test_profile_versions(self):
        assert store.latest_profile_version("learner-1", "nb-1") == 0
        result = compute_profile(ProfileWindow("learner-1", "nb-1"), now=NOW)
        store.save_profile(result)
        assert store.latest_profile_version("learner-1", "nb-1") == 1

    def test_skill_params_upsert(self):
        assert store.get_skill_params("variables") is None
        outcomes = [False, True, False, True, True, True, True]
        store.save_skill_params("variables", fit_parameters(outcomes), len(outcomes), NOW)
        result = fit_parameters(outcomes, max_iterations=1)
        store.save_skill_params("variables", result, len(outcomes), NOW)
        assert store.get_skill_params("variables") == result.params


class TestUnavailableStore:
    def test_unwritable_location(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        db.DB_PATH = blocker / "test.db"
        with pytest.raises(FeatureUnavailableError) as exc_info:
            store.get_state("learner-1", "nb-1", "variables")
        assert exc_info.value.feature == "learner_store"
