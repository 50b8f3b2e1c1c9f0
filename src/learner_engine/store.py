"""Persistence for learner skill state, mastery history, the interaction log and notebook settings."""

from __future__ import annotations

import json
import sqlite3
import uuid
from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Mapping

from .bkt_fit import FittingResult
from .db import connect, now_iso, parse_iso, transaction
from .errors import ConfigError
from .log import get_logger
from .models import (
    BKTParams,
    LearnerInteraction,
    LearnerSession,
    LearnerSkillState,
    MasterySnapshot,
    SkillNode,
    SpacedRepetition,
)
from .practice import PracticeAttempt, apply_attempt, new_state_for
from .profile import ProfileComputationResult
from .settings import EngineSettings, apply_overrides, merge_dicts
from .srs import due_for_review

logger = get_logger(__name__)


@dataclass(slots=True)
class PracticeResult:
    state: LearnerSkillState
    previous_p_mastery: float
    quality: int


# ── Skill state ───────────────────────────────────────────────────────────────


def _row_to_state(row: Any) -> LearnerSkillState:
    return LearnerSkillState(
        learner_id=row["learner_id"],
        skill_id=row["skill_id"],
        notebook_id=row["notebook_id"],
        p_mastery=float(row["p_mastery"]),
        bkt_params=BKTParams(
            p_l0=float(row["p_l0"]),
            p_t=float(row["p_t"]),
            p_s=float(row["p_s"]),
            p_g=float(row["p_g"]),
        ),
        mastery_status=row["mastery_status"],
        mastery_threshold=float(row["mastery_threshold"]),
        total_attempts=int(row["total_attempts"]),
        correct_attempts=int(row["correct_attempts"]),
        consecutive_successes=int(row["consecutive_successes"]),
        spaced_repetition=SpacedRepetition(
            ease_factor=float(row["ease_factor"]),
            interval=int(row["interval_days"]),
            next_review_at=parse_iso(row["next_review_at"]),
            repetitions=int(row["repetitions"]),
        ),
        scaffold_level=int(row["scaffold_level"]),
        updated_at=parse_iso(row["updated_at"]),
    )


def _write_state(conn: sqlite3.Connection, state: LearnerSkillState) -> None:
    sr = state.spaced_repetition
    conn.execute(
        """
        INSERT INTO learner_skill_state (
            learner_id, skill_id, notebook_id, p_mastery, p_l0, p_t, p_s, p_g,
            mastery_status, mastery_threshold, total_attempts, correct_attempts,
            consecutive_successes, ease_factor, interval_days, repetitions,
            next_review_at, scaffold_level, updated_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(learner_id, notebook_id, skill_id) DO UPDATE SET
            p_mastery = excluded.p_mastery,
            p_l0 = excluded.p_l0,
            p_t = excluded.p_t,
            p_s = excluded.p_s,
            p_g = excluded.p_g,
            mastery_status = excluded.mastery_status,
            mastery_threshold = excluded.mastery_threshold,
            total_attempts = excluded.total_attempts,
            correct_attempts = excluded.correct_attempts,
            consecutive_successes = excluded.consecutive_successes,
            ease_factor = excluded.ease_factor,
            interval_days = excluded.interval_days,
            repetitions = excluded.repetitions,
            next_review_at = excluded.next_review_at,
            scaffold_level = excluded.scaffold_level,
            updated_at = excluded.updated_at
        """,
        (
            state.learner_id,
            state.skill_id,
            state.notebook_id,
            state.p_mastery,
            state.bkt_params.p_l0,
            state.bkt_params.p_t,
            state.bkt_params.p_s,
            state.bkt_params.p_g,
            state.mastery_status,
            state.mastery_threshold,
            state.total_attempts,
            state.correct_attempts,
            state.consecutive_successes,
            sr.ease_factor,
            sr.interval,
            sr.repetitions,
            now_iso(sr.next_review_at) if sr.next_review_at else None,
            state.scaffold_level,
            now_iso(state.updated_at) if state.updated_at else None,
        ),
    )


def get_state(learner_id: str, notebook_id: str, skill_id: str) -> LearnerSkillState | None:
    with connect() as conn:
        row = conn.execute(
            """
            SELECT * FROM learner_skill_state
            WHERE learner_id = ? AND notebook_id = ? AND skill_id = ?
            """,
            (learner_id, notebook_id, skill_id),
        ).fetchone()
    if row is None:
        return None
    return _row_to_state(row)


def list_states(learner_id: str, notebook_id: str | None = None) -> list[LearnerSkillState]:
    query = "SELECT * FROM learner_skill_state WHERE learner_id = ?"
    params: list[Any] = [learner_id]
    if notebook_id is not None:
        query += " AND notebook_id = ?"
        params.append(notebook_id)
    with connect() as conn:
        rows = conn.execute(query + " ORDER BY skill_id", params).fetchall()
    return [_row_to_state(row) for row in rows]


def states_by_learner(notebook_id: str) -> dict[str, list[LearnerSkillState]]:
    with connect() as conn:
        rows = conn.execute(
            "SELECT * FROM learner_skill_state WHERE notebook_id = ? ORDER BY learner_id, skill_id",
            (notebook_id,),
        ).fetchall()
    grouped: dict[str, list[LearnerSkillState]] = defaultdict(list)
    for row in rows:
        grouped[row["learner_id"]].append(_row_to_state(row))
    return dict(grouped)


def get_due(
    learner_id: str,
    now: datetime,
    notebook_id: str | None = None,
    limit: int | None = None,
) -> list[LearnerSkillState]:
    return due_for_review(list_states(learner_id, notebook_id), now, limit)


def record_practice_attempt(
    learner_id: str,
    notebook_id: str,
    skill_id: str,
    attempt: PracticeAttempt,
    settings: EngineSettings,
    now: datetime,
    *,
    skill: SkillNode | None = None,
) -> PracticeResult:
    """Read, update and write one learner/notebook/skill state in a single transaction.

    A history snapshot is appended in the same transaction.
    """
    with transaction() as conn:
        row = conn.execute(
            """
            SELECT * FROM learner_skill_state
            WHERE learner_id = ? AND notebook_id = ? AND skill_id = ?
            """,
            (learner_id, notebook_id, skill_id),
        ).fetchone()
        if row is None:
            state = new_state_for(learner_id, skill_id, settings, skill, notebook_id)
        else:
            state = _row_to_state(row)
        previous = state.p_mastery
        updated, quality = apply_attempt(state, attempt, settings, now, skill)
        _write_state(conn, updated)
        conn.execute(
            """
            INSERT INTO mastery_history (learner_id, skill_id, notebook_id, p_mastery, recorded_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (learner_id, skill_id, updated.notebook_id, updated.p_mastery, now_iso(now)),
        )

    logger.info(
        "practice_attempt_recorded",
        learner_id=learner_id,
        skill_id=skill_id,
        is_correct=attempt.is_correct,
        p_mastery=round(updated.p_mastery, 4),
        mastery_status=updated.mastery_status,
        quality=quality,
    )
    return PracticeResult(state=updated, previous_p_mastery=previous, quality=quality)


# ── Mastery history ───────────────────────────────────────────────────────────


def mastery_history(
    learner_id: str,
    skill_id: str | None = None,
    notebook_id: str | None = None,
) -> list[MasterySnapshot]:
    query = "SELECT * FROM mastery_history WHERE learner_id = ?"
    params: list[Any] = [learner_id]
    if skill_id is not None:
        query += " AND skill_id = ?"
        params.append(skill_id)
    if notebook_id is not None:
        query += " AND notebook_id = ?"
        params.append(notebook_id)
    with connect() as conn:
        rows = conn.execute(query + " ORDER BY recorded_at, id", params).fetchall()
    return [_row_to_snapshot(row) for row in rows]


def notebook_mastery_history(notebook_id: str) -> list[MasterySnapshot]:
    with connect() as conn:
        rows = conn.execute(
            "SELECT * FROM mastery_history WHERE notebook_id = ? ORDER BY recorded_at, id",
            (notebook_id,),
        ).fetchall()
    return [_row_to_snapshot(row) for row in rows]


def _row_to_snapshot(row: Any) -> MasterySnapshot:
    return MasterySnapshot(
        learner_id=row["learner_id"],
        skill_id=row["skill_id"],
        p_mastery=float(row["p_mastery"]),
        recorded_at=parse_iso(row["recorded_at"]),
    )


# ── Interaction log ───────────────────────────────────────────────────────────


def append_interaction(interaction: LearnerInteraction) -> int:
    with connect() as conn:
        cursor = conn.execute(
            """
            INSERT INTO learner_interactions
                (learner_id, notebook_id, session_id, skill_id, event_type, payload_json, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                interaction.learner_id,
                interaction.notebook_id,
                interaction.session_id,
                interaction.skill_id,
                interaction.event_type,
                json.dumps(interaction.payload),
                now_iso(interaction.created_at),
            ),
        )
        return int(cursor.lastrowid)


def _row_to_interaction(row: Any) -> LearnerInteraction:
    return LearnerInteraction(
        learner_id=row["learner_id"],
        notebook_id=row["notebook_id"],
        session_id=row["session_id"],
        skill_id=row["skill_id"],
        event_type=row["event_type"],
        payload=json.loads(row["payload_json"] or "{}"),
        created_at=parse_iso(row["created_at"]),
    )


def list_interactions(
    learner_id: str | None,
    notebook_id: str,
    *,
    since: datetime | None = None,
    event_type: str | None = None,
    skill_id: str | None = None,
) -> list[LearnerInteraction]:
    """Chronological interactions; ``learner_id=None`` reads the whole notebook."""
    query = "SELECT * FROM learner_interactions WHERE notebook_id = ?"
    params: list[Any] = [notebook_id]
    if learner_id is not None:
        query += " AND learner_id = ?"
        params.append(learner_id)
    if since is not None:
        query += " AND created_at >= ?"
        params.append(now_iso(since))
    if event_type is not None:
        query += " AND event_type = ?"
        params.append(event_type)
    if skill_id is not None:
        query += " AND skill_id = ?"
        params.append(skill_id)
    with connect() as conn:
        rows = conn.execute(query + " ORDER BY created_at, id", params).fetchall()
        return [_row_to_interaction(row) for row in rows]


def append_session(session: LearnerSession) -> str:
    session_id = session.id or uuid.uuid4().hex
    with connect() as conn:
        conn.execute(
            """
            INSERT INTO learner_sessions
                (id, learner_id, notebook_id, started_at, ended_at, duration_ms, skills_practiced_json)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                session_id,
                session.learner_id,
                session.notebook_id,
                now_iso(session.started_at),
                now_iso(session.ended_at) if session.ended_at else None,
                session.duration_ms,
                json.dumps(session.skills_practiced),
            ),
        )
    return session_id


def list_sessions(learner_id: str, notebook_id: str) -> list[LearnerSession]:
    with connect() as conn:
        rows = conn.execute(
            """
            SELECT * FROM learner_sessions
            WHERE learner_id = ? AND notebook_id = ?
            ORDER BY started_at
            """,
            (learner_id, notebook_id),
        ).fetchall()
        return [
            LearnerSession(
                id=row["id"],
                learner_id=row["learner_id"],
                notebook_id=row["notebook_id"],
                started_at=parse_iso(row["started_at"]),
                ended_at=parse_iso(row["ended_at"]),
                duration_ms=row["duration_ms"],
                skills_practiced=json.loads(row["skills_practiced_json"] or "[]"),
            )
            for row in rows
        ]


# ── Notebook settings ─────────────────────────────────────────────────────────


def get_notebook_overrides(notebook_id: str) -> dict[str, Any]:
    with connect() as conn:
        row = conn.execute(
            "SELECT overrides_json FROM notebook_settings WHERE notebook_id = ?",
            (notebook_id,),
        ).fetchone()
        if row is None:
            return {}
        return json.loads(row["overrides_json"])


def notebook_settings(notebook_id: str, base: EngineSettings) -> EngineSettings:
    return apply_overrides(base, get_notebook_overrides(notebook_id))


def update_notebook_settings(
    notebook_id: str,
    overrides: Mapping[str, Any],
    base: EngineSettings,
) -> EngineSettings:
    """Merge ``overrides`` into the stored ones and persist them if they validate.

    Raises ``ConfigError`` without writing anything when validation fails.
    """
    merged = merge_dicts(get_notebook_overrides(notebook_id), overrides)
    try:
        settings = apply_overrides(base, merged)
    except ConfigError as exc:
        logger.warning("settings_rejected", notebook_id=notebook_id, field=exc.field, reason=exc.message)
        raise
    with connect() as conn:
        conn.execute(
            """
            INSERT INTO notebook_settings (notebook_id, overrides_json, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(notebook_id) DO UPDATE SET
                overrides_json = excluded.overrides_json,
                updated_at = excluded.updated_at
            """,
            (notebook_id, json.dumps(merged), now_iso()),
        )
    logger.info("notebook_settings_updated", notebook_id=notebook_id)
    return settings


# ── Profile snapshots ─────────────────────────────────────────────────────────


def latest_profile_version(learner_id: str, notebook_id: str) -> int:
    with connect() as conn:
        row = conn.execute(
            """
            SELECT MAX(version) AS version FROM learner_profiles
            WHERE learner_id = ? AND notebook_id = ?
            """,
            (learner_id, notebook_id),
        ).fetchone()
    return int(row["version"] or 0)


def save_profile(result: ProfileComputationResult) -> None:
    """Append a profile snapshot; earlier versions are kept."""
    profile = result.profile
    with connect() as conn:
        conn.execute(
            """
            INSERT INTO learner_profiles
                (learner_id, notebook_id, version, computed_at, data_quality, profile_json)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                profile.learner_id,
                profile.notebook_id,
                profile.version,
                now_iso(profile.computed_at),
                result.data_quality,
                json.dumps(asdict(profile), default=str),
            ),
        )


# ── Skill-specific BKT parameters ─────────────────────────────────────────────


def save_skill_params(skill_id: str, result: FittingResult, sample_size: int, now: datetime) -> None:
    params = result.params
    with connect() as conn:
        conn.execute(
            """
            INSERT INTO skill_bkt_params
                (skill_id, p_l0, p_t, p_s, p_g, log_likelihood, fit_quality, sample_size, fitted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(skill_id) DO UPDATE SET
                p_l0 = excluded.p_l0,
                p_t = excluded.p_t,
                p_s = excluded.p_s,
                p_g = excluded.p_g,
                log_likelihood = excluded.log_likelihood,
                fit_quality = excluded.fit_quality,
                sample_size = excluded.sample_size,
                fitted_at = excluded.fitted_at
            """,
            (
                skill_id,
                params.p_l0,
                params.p_t,
                params.p_s,
                params.p_g,
                result.log_likelihood,
                result.fit_quality,
                sample_size,
                now_iso(now),
            ),
        )


def get_skill_params(skill_id: str) -> BKTParams | None:
    with connect() as conn:
        row = conn.execute(
            "SELECT p_l0, p_t, p_s, p_g FROM skill_bkt_params WHERE skill_id = ?",
            (skill_id,),
        ).fetchone()
    if row is None:
        return None
    return BKTParams(
        p_l0=float(row["p_l0"]),
        p_t=float(row["p_t"]),
        p_s=float(row["p_s"]),
        p_g=float(row["p_g"]),
    )


__all__ = [
    "PracticeResult",
    "append_interaction",
    "append_session",
    "get_due",
    "get_notebook_overrides",
    "get_skill_params",
    "get_state",
    "latest_profile_version",
    "list_interactions",
    "list_sessions",
    "list_states",
    "mastery_history",
    "notebook_mastery_history",
    "notebook_settings",
    "record_practice_attempt",
    "save_profile",
    "save_skill_params",
    "states_by_learner",
    "update_notebook_settings",
]
