"""Learner modeling and adaptive analytics engine."""

from .bkt import bkt_update, mastery_status, replay
from .errors import ConfigError, FeatureUnavailableError, LearnerEngineError
from .graph import SkillGraph, load_skill_graph
from .insights import generate_profile_insights
from .profile import compute_profile
from .settings import EngineSettings, load_settings
from .srs import due_for_review, schedule
from .zpd import zpd_skills

__all__ = [
    "ConfigError",
    "EngineSettings",
    "FeatureUnavailableError",
    "LearnerEngineError",
    "SkillGraph",
    "bkt_update",
    "compute_profile",
    "due_for_review",
    "generate_profile_insights",
    "load_settings",
    "load_skill_graph",
    "mastery_status",
    "replay",
    "schedule",
    "zpd_skills",
]
