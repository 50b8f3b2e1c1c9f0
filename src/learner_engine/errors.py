"""Exception types shared across the engine."""

from __future__ import annotations


class LearnerEngineError(Exception):
    """Base class for engine errors."""


class ConfigError(LearnerEngineError, ValueError):
    """A settings value failed validation.

    ``field`` is the dotted path of the offending setting, e.g.
    ``bkt_parameters.default_pS``.
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class FeatureUnavailableError(LearnerEngineError):
    """An upstream store (skill graph, interaction log, state database) cannot be read."""

    def __init__(self, feature: str, reason: str) -> None:
        super().__init__(f"{feature} unavailable: {reason}")
        self.feature = feature
        self.reason = reason


__all__ = ["ConfigError", "FeatureUnavailableError", "LearnerEngineError"]
