"""Engine and per-notebook settings: YAML defaults, JSON overrides, validation."""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from .errors import ConfigError
from .models import BKTParams

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent.parent
DATA_DIR = PROJECT_ROOT / "data"
DEFAULT_SETTINGS_PATH = DATA_DIR / "settings.yaml"
SETTINGS_PATH = Path(os.environ.get("LEARNER_ENGINE_SETTINGS_PATH", DEFAULT_SETTINGS_PATH))


def _probability(default: float, **kwargs: Any) -> Any:
    return Field(default, ge=0, le=1, strict=True, **kwargs)


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class BKTParameters(_Section):
    """Population-wide BKT defaults; per-skill parameters apply only when enabled."""

    use_skill_specific: StrictBool = False
    default_p_l0: float = _probability(0.3, alias="default_pL0")
    default_p_t: float = _probability(0.1, alias="default_pT")
    default_p_s: float = _probability(0.1, alias="default_pS")
    default_p_g: float = _probability(0.2, alias="default_pG")

    def to_params(self) -> BKTParams:
        return BKTParams(
            p_l0=self.default_p_l0,
            p_t=self.default_p_t,
            p_s=self.default_p_s,
            p_g=self.default_p_g,
        )


class MasterySettings(_Section):
    default_threshold: float = Field(0.8, gt=0, le=1, strict=True)
    threshold_concept_threshold: float = Field(0.9, gt=0, le=1, strict=True)


class ScaffoldSettings(_Section):
    """p(mastery) cut points between scaffold levels 4/3/2/1."""

    thresholds: tuple[StrictFloat, StrictFloat, StrictFloat] = (0.3, 0.5, 0.7)

    @field_validator("thresholds")
    @classmethod
    def strictly_increasing(cls, value: tuple[float, float, float]) -> tuple[float, float, float]:
        if any(not 0 <= threshold <= 1 for threshold in value):
            raise ValueError("thresholds must be within [0, 1]")
        if not value[0] < value[1] < value[2]:
            raise ValueError("thresholds must be strictly increasing")
        return value


class SchedulerSettings(_Section):
    milestones: tuple[StrictInt, ...] = Field((1, 3, 7, 14, 30, 60), min_length=1)
    seed_reviews: StrictInt = Field(0, ge=0)
    expected_response_time_ms: StrictInt = Field(30_000, gt=0)

    @field_validator("milestones")
    @classmethod
    def milestones_increasing(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        if value[0] <= 0:
            raise ValueError("milestones must be positive day counts")
        if any(later <= earlier for earlier, later in zip(value, value[1:])):
            raise ValueError("milestones must be strictly increasing")
        return value

    @field_validator("seed_reviews")
    @classmethod
    def seed_within_milestones(cls, value: int, info: ValidationInfo) -> int:
        milestones = info.data.get("milestones", cls.model_fields["milestones"].default)
        if value > len(milestones):
            raise ValueError(f"cannot exceed the number of milestones ({len(milestones)})")
        return value


class LoggingSettings(_Section):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    json_output: StrictBool = Field(False, alias="json")

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


class EngineSettings(_Section):
    """Validated engine settings; unknown keys are rejected at every level."""

    bkt_parameters: BKTParameters = Field(default_factory=BKTParameters)
    mastery: MasterySettings = Field(default_factory=MasterySettings)
    scaffold: ScaffoldSettings = Field(default_factory=ScaffoldSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    inverse_profiling_enabled: StrictBool = True
    session_tracking_enabled: StrictBool = True
    interaction_logging_enabled: StrictBool = True

    @field_validator("bkt_parameters", "mastery", "scaffold", "scheduler", "logging", mode="before")
    @classmethod
    def empty_section(cls, value: Any) -> Any:
        # An empty YAML section parses as None
        return {} if value is None else value


# ── Public API ───────────────────────────────────────────────────────────────


def _error_field(exc: ValidationError) -> tuple[str, str]:
    error = exc.errors()[0]
    # Item indices are dropped so the field names the whole list
    path = ".".join(str(part) for part in error["loc"] if isinstance(part, str))
    return path or "settings", error["msg"]


def settings_from_mapping(data: Mapping[str, Any] | None) -> EngineSettings:
    """Validate a settings mapping and build ``EngineSettings``.

    Raises ``ConfigError`` naming the first offending field; nothing partial
    is returned.
    """
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ConfigError("settings", "must be a mapping")
    try:
        return EngineSettings.model_validate(dict(data))
    except ValidationError as exc:
        field, message = _error_field(exc)
        raise ConfigError(field, message) from exc


def settings_to_dict(settings: EngineSettings) -> dict[str, Any]:
    """Serialise settings using the external key names."""
    return settings.model_dump(by_alias=True, mode="json")


def merge_dicts(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge ``override`` into a copy of ``base``."""
    result = copy.deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(result.get(key), Mapping):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def apply_overrides(settings: EngineSettings, overrides: Mapping[str, Any] | None) -> EngineSettings:
    """Return new settings with notebook overrides merged in and re-validated."""
    if not overrides:
        return settings
    return settings_from_mapping(merge_dicts(settings_to_dict(settings), overrides))


def load_settings(path: Path | None = None) -> EngineSettings:
    """Read the YAML settings file; a missing file yields the defaults."""
    file_path = path or SETTINGS_PATH
    if not file_path.exists():
        return EngineSettings()
    try:
        with open(file_path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError("settings", f"invalid YAML in {file_path}: {exc}") from exc
    return settings_from_mapping(raw)


__all__ = [
    "BKTParameters",
    "EngineSettings",
    "LoggingSettings",
    "MasterySettings",
    "ScaffoldSettings",
    "SchedulerSettings",
    "apply_overrides",
    "load_settings",
    "merge_dicts",
    "settings_from_mapping",
    "settings_to_dict",
]
