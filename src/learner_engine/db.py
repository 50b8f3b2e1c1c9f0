from __future__ import annotations

import json
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from .errors import FeatureUnavailableError
from .log import get_logger

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent.parent
DATA_DIR = PROJECT_ROOT / "data"
DEFAULT_DB_PATH = DATA_DIR / "learner_engine.db"
DB_PATH = Path(os.environ.get("LEARNER_ENGINE_DB_PATH", DEFAULT_DB_PATH))

STORE_FEATURE = "learner_store"

logger = get_logger(__name__)


def _unavailable(exc: Exception) -> FeatureUnavailableError:
    logger.warning("store_unavailable", db_path=str(DB_PATH), error=str(exc))
    return FeatureUnavailableError(STORE_FEATURE, str(exc))


@contextmanager
def connect() -> Iterator[sqlite3.Connection]:
    """Yield a SQLite connection with foreign keys enforced.

    Stored JSON that no longer decodes is reported like any other store failure.
    """

    connection = _open_connection()
    try:
        yield connection
        connection.commit()
    except (sqlite3.Error, json.JSONDecodeError) as exc:
        raise _unavailable(exc) from exc
    finally:
        connection.close()


@contextmanager
def transaction() -> Iterator[sqlite3.Connection]:
    """Yield a connection inside ``BEGIN IMMEDIATE``.

    The write lock is taken up front, so two read-modify-write cycles on the
    same rows run one after the other.
    """

    connection = _open_connection()
    connection.isolation_level = None
    try:
        connection.execute("BEGIN IMMEDIATE")
        try:
            yield connection
        except BaseException:
            connection.execute("ROLLBACK")
            raise
        connection.execute("COMMIT")
    except sqlite3.Error as exc:
        raise _unavailable(exc) from exc
    finally:
        connection.close()


def _open_connection() -> sqlite3.Connection:
    try:
        DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        connection = sqlite3.connect(DB_PATH, timeout=30)
    except (OSError, sqlite3.Error) as exc:
        logger.warning("store_unavailable", db_path=str(DB_PATH), error=str(exc))
        raise FeatureUnavailableError(STORE_FEATURE, str(exc)) from exc
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys = ON")
    return connection


def now_iso(value: datetime | None = None) -> str:
    """Return a UTC timestamp as ISO 8601 (microsecond precision)."""

    moment = value or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    else:
        moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="microseconds")


def parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def init_db() -> None:
    """Initialise the database schema if tables are missing."""

    with connect() as connection:
        _create_tables(connection)


def _create_tables(connection: sqlite3.Connection) -> None:
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS learner_skill_state (
            learner_id TEXT NOT NULL,
            notebook_id TEXT NOT NULL,
            skill_id TEXT NOT NULL,
            p_mastery REAL NOT NULL,
            p_l0 REAL NOT NULL,
            p_t REAL NOT NULL,
            p_s REAL NOT NULL,
            p_g REAL NOT NULL,
            mastery_status TEXT NOT NULL DEFAULT 'not_started',
            mastery_threshold REAL NOT NULL DEFAULT 0.8,
            total_attempts INTEGER NOT NULL DEFAULT 0,
            correct_attempts INTEGER NOT NULL DEFAULT 0,
            consecutive_successes INTEGER NOT NULL DEFAULT 0,
            ease_factor REAL NOT NULL DEFAULT 2.5,
            interval_days INTEGER NOT NULL DEFAULT 0,
            repetitions INTEGER NOT NULL DEFAULT 0,
            next_review_at TEXT,
            scaffold_level INTEGER NOT NULL DEFAULT 1,
            updated_at TEXT,
            PRIMARY KEY (learner_id, notebook_id, skill_id)
        )
        """
    )
    connection.execute(
        "CREATE INDEX IF NOT EXISTS idx_state_notebook ON learner_skill_state(notebook_id, learner_id)"
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS mastery_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            learner_id TEXT NOT NULL,
            skill_id TEXT NOT NULL,
            notebook_id TEXT,
            p_mastery REAL NOT NULL,
            recorded_at TEXT NOT NULL
        )
        """
    )
    connection.execute(
        "CREATE INDEX IF NOT EXISTS idx_history_learner ON mastery_history(learner_id, skill_id, recorded_at)"
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS learner_interactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            learner_id TEXT NOT NULL,
            notebook_id TEXT NOT NULL,
            session_id TEXT,
            skill_id TEXT,
            event_type TEXT NOT NULL,
            payload_json TEXT NOT NULL DEFAULT '{}',
            created_at TEXT NOT NULL
        )
        """
    )
    connection.execute(
        "CREATE INDEX IF NOT EXISTS idx_interactions_learner ON learner_interactions(learner_id, notebook_id, created_at)"
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS learner_sessions (
            id TEXT PRIMARY KEY,
            learner_id TEXT NOT NULL,
            notebook_id TEXT NOT NULL,
            started_at TEXT NOT NULL,
            ended_at TEXT,
            duration_ms INTEGER,
            skills_practiced_json TEXT NOT NULL DEFAULT '[]'
        )
        """
    )
    connection.execute(
        "CREATE INDEX IF NOT EXISTS idx_sessions_learner ON learner_sessions(learner_id, notebook_id, started_at)"
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS notebook_settings (
            notebook_id TEXT PRIMARY KEY,
            overrides_json TEXT NOT NULL DEFAULT '{}',
            updated_at TEXT NOT NULL
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS skill_bkt_params (
            skill_id TEXT PRIMARY KEY,
            p_l0 REAL NOT NULL,
            p_t REAL NOT NULL,
            p_s REAL NOT NULL,
            p_g REAL NOT NULL,
            log_likelihood REAL,
            fit_quality TEXT NOT NULL,
            sample_size INTEGER NOT NULL,
            fitted_at TEXT NOT NULL
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS learner_profiles (
            learner_id TEXT NOT NULL,
            notebook_id TEXT NOT NULL,
            version INTEGER NOT NULL,
            computed_at TEXT NOT NULL,
            data_quality TEXT NOT NULL,
            profile_json TEXT NOT NULL,
            PRIMARY KEY (learner_id, notebook_id, version)
        )
        """
    )


__all__ = [
    "DB_PATH",
    "STORE_FEATURE",
    "connect",
    "init_db",
    "now_iso",
    "parse_iso",
    "transaction",
]
