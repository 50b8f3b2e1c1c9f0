from __future__ import annotations

import pytest

from learner_engine.bkt import initial_state
from learner_engine.scaffold import apply_scaffold, describe_level, scaffold_level


class TestScaffoldLevel:
    @pytest.mark.parametrize(
        "p_mastery, expected",
        [(0.0, 1), (0.29, 1), (0.3, 2), (0.49, 2), (0.5, 3), (0.69, 3), (0.7, 4), (1.0, 4)],
    )
    def test_default_thresholds(self, p_mastery, expected):
        assert scaffold_level(p_mastery) == expected

    def test_custom_thresholds(self):
        assert scaffold_level(0.5, (0.2, 0.4, 0.6)) == 3
        assert scaffold_level(0.65, (0.2, 0.4, 0.6)) == 4

    def test_apply_scaffold_sets_level(self):
        state = initial_state("learner-1", "variables")
        state.p_mastery = 0.72
        assert apply_scaffold(state).scaffold_level == 4
        assert state.scaffold_level == 1

    def test_descriptions(self):
        assert describe_level(1) == "Worked examples"
        assert describe_level(4) == "Independent practice"
