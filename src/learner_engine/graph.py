"""Skill graph: YAML loader, DAG validation, prerequisite lookups."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import FeatureUnavailableError
from .models import (
    PREREQUISITE_STRENGTHS,
    BKTParams,
    IRTParameters,
    PrerequisiteRelationship,
    SkillNode,
)

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent.parent
DATA_DIR = PROJECT_ROOT / "data"
DEFAULT_GRAPH_PATH = DATA_DIR / "skill_graph.yaml"
GRAPH_PATH = Path(os.environ.get("LEARNER_ENGINE_GRAPH_PATH", DEFAULT_GRAPH_PATH))


@dataclass(slots=True)
class SkillGraph:
    skills: dict[str, SkillNode] = field(default_factory=dict)
    prerequisites: list[PrerequisiteRelationship] = field(default_factory=list)

    def prerequisites_of(self, skill_id: str) -> list[PrerequisiteRelationship]:
        return [rel for rel in self.prerequisites if rel.to_skill_id == skill_id]

    def dependents_of(self, skill_id: str) -> list[PrerequisiteRelationship]:
        return [rel for rel in self.prerequisites if rel.from_skill_id == skill_id]

    def for_notebook(self, notebook_id: str | None) -> SkillGraph:
        """Skills tagged with ``notebook_id`` (untagged skills belong to every notebook)."""
        if notebook_id is None:
            return self
        skills = {
            sid: skill
            for sid, skill in self.skills.items()
            if skill.notebook_id in (None, notebook_id)
        }
        prerequisites = [
            rel
            for rel in self.prerequisites
            if rel.from_skill_id in skills and rel.to_skill_id in skills
        ]
        return SkillGraph(skills=skills, prerequisites=prerequisites)


_graph_cache: SkillGraph | None = None


def _parse_skill(entry: dict[str, Any]) -> SkillNode:
    irt_raw = entry.get("irt")
    bkt_raw = entry.get("bkt_params")
    intervals = entry.get("review_intervals")
    return SkillNode(
        id=str(entry["id"]),
        name=entry.get("name", entry["id"]),
        description=entry.get("description", ""),
        bloom_level=int(entry.get("bloom_level", 1)),
        difficulty=int(entry.get("difficulty", 5)),
        is_threshold_concept=bool(entry.get("is_threshold_concept", False)),
        mastery_threshold=entry.get("mastery_threshold"),
        review_intervals=tuple(int(day) for day in intervals) if intervals else None,
        irt=IRTParameters(**irt_raw) if irt_raw else None,
        bkt_params=(
            BKTParams(
                p_l0=float(bkt_raw["pL0"]),
                p_t=float(bkt_raw["pT"]),
                p_s=float(bkt_raw["pS"]),
                p_g=float(bkt_raw["pG"]),
            )
            if bkt_raw
            else None
        ),
        notebook_id=entry.get("notebook_id"),
    )


def _parse_prerequisite(entry: dict[str, Any]) -> PrerequisiteRelationship:
    strength = entry.get("strength", "required")
    if strength not in PREREQUISITE_STRENGTHS:
        raise ValueError(f"Unknown prerequisite strength '{strength}'")
    return PrerequisiteRelationship(
        from_skill_id=str(entry["from"]),
        to_skill_id=str(entry["to"]),
        strength=strength,
    )


def parse_skill_graph(raw: dict[str, Any] | None) -> SkillGraph:
    """Build and validate a graph from already-parsed YAML/JSON."""
    raw = raw or {}
    skills = {skill.id: skill for skill in map(_parse_skill, raw.get("skills") or [])}
    prerequisites = [_parse_prerequisite(entry) for entry in raw.get("prerequisites") or []]
    graph = SkillGraph(skills=skills, prerequisites=prerequisites)
    validate_dag(graph)
    return graph


def load_skill_graph(path: Path | None = None) -> SkillGraph:
    """Parse the YAML skill graph. Cached in memory for the default path."""
    global _graph_cache
    if _graph_cache is not None and path is None:
        return _graph_cache

    file_path = path or GRAPH_PATH
    try:
        with open(file_path) as f:
            raw = yaml.safe_load(f)
    except OSError as exc:
        raise FeatureUnavailableError("skill_graph", f"cannot read {file_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise FeatureUnavailableError("skill_graph", f"invalid YAML in {file_path}") from exc

    try:
        graph = parse_skill_graph(raw)
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        raise FeatureUnavailableError("skill_graph", f"invalid skill graph in {file_path}: {exc}") from exc
    if path is None:
        _graph_cache = graph
    return graph


def clear_cache() -> None:
    """Clear the in-memory skill graph cache."""
    global _graph_cache
    _graph_cache = None


def validate_dag(graph: SkillGraph) -> list[str]:
    """Topological sort of the skill DAG. Returns ordered skill IDs.
    Raises ValueError on unknown prerequisites or cycles.
    """
    for rel in graph.prerequisites:
        for skill_id in (rel.from_skill_id, rel.to_skill_id):
            if skill_id not in graph.skills:
                raise ValueError(
                    f"Prerequisite {rel.from_skill_id} -> {rel.to_skill_id} names unknown skill '{skill_id}'"
                )

    in_degree: dict[str, int] = {sid: 0 for sid in graph.skills}
    adj: dict[str, list[str]] = {sid: [] for sid in graph.skills}
    for rel in graph.prerequisites:
        in_degree[rel.to_skill_id] += 1
        adj[rel.from_skill_id].append(rel.to_skill_id)

    def order_key(sid: str) -> tuple[int, int, str]:
        skill = graph.skills[sid]
        return (skill.bloom_level, skill.difficulty, sid)

    queue = sorted((sid for sid, deg in in_degree.items() if deg == 0), key=order_key)
    result: list[str] = []
    while queue:
        node = queue.pop(0)
        result.append(node)
        for neighbor in sorted(adj[node]):
            in_degree[neighbor] -= 1
            if in_degree[neighbor] == 0:
                queue.append(neighbor)
        queue.sort(key=order_key)

    if len(result) != len(graph.skills):
        raise ValueError("Cycle detected in skill prerequisite graph")
    return result


__all__ = [
    "GRAPH_PATH",
    "SkillGraph",
    "clear_cache",
    "load_skill_graph",
    "parse_skill_graph",
    "validate_dag",
]
