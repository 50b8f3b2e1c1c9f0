"""The five inverse-profile dimensions, each a pure function of a profile window.

Every function returns ``(dimension, warnings)``. Values that cannot be
estimated from the window are ``None`` (numbers, lists) or ``"unknown"``
(labels); they are never replaced by a default number.
"""

from __future__ import annotations

import calendar
import math
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Literal

from .buckets import (
    DIFFICULTY_BUCKETS,
    DifficultyBucket,
    TimeOfDay,
    bucket_bounds,
    difficulty_bucket,
    time_of_day,
)
from .graph import SkillGraph
from .models import LearnerInteraction, LearnerSession, LearnerSkillState, payload_number
from .zpd import zpd_skills

WorkingMemory = Literal["low", "medium", "high", "unknown"]
ExpertiseLevel = Literal["novice", "beginner", "intermediate", "advanced", "expert", "unknown"]
HelpSeeking = Literal["avoidant", "appropriate", "excessive", "unknown"]
GoalOrientation = Literal["mastery", "performance", "avoidance", "unknown"]

MIN_INTERACTIONS = 10
MIN_PRACTICE_ATTEMPTS = 5
MIN_SESSIONS = 3
MIN_CONFIDENCE_RATINGS = 5

GAP_MASTERY = 0.4
GAP_MIN_ATTEMPTS = 3
MAX_GAPS = 10
MAX_ZPD = 5
MISCONCEPTION_ERROR_RATE = 0.6
MISCONCEPTION_MIN_ERRORS = 3
MAX_MISCONCEPTIONS = 5

TARGET_ACCURACY = 0.70
OVERLOAD_ACCURACY = 0.5
MIN_BUCKET_ATTEMPTS = 2

EARLY_HINT_MS = 5_000
CONFIDENT_AT = 0.6
RETURN_GAP = timedelta(hours=4)
MIN_SPAN_WEEKS = 0.5
PERSISTENCE_FULL_AT = 5
SYSTEMATIC_ERRORS = 3
MAX_ERROR_PATTERNS = 5

# Rating scale name -> divisor onto [0, 1]
CONFIDENCE_SCALES: dict[str, float] = {"0-1": 1.0, "1-5": 5.0, "1-10": 10.0, "0-100": 100.0}


@dataclass(slots=True)
class ProfileWindow:
    """Bounded slice of one learner's history in one notebook."""

    learner_id: str
    notebook_id: str
    interactions: list[LearnerInteraction] = field(default_factory=list)
    sessions: list[LearnerSession] = field(default_factory=list)
    states: dict[str, LearnerSkillState] = field(default_factory=dict)
    graph: SkillGraph | None = None

    @property
    def practice_attempts(self) -> list[LearnerInteraction]:
        return [i for i in self.interactions if i.event_type == "practice_attempt"]

    @property
    def confidence_ratings(self) -> list[LearnerInteraction]:
        return [i for i in self.interactions if i.event_type == "confidence_rated"]

    @property
    def hint_requests(self) -> list[LearnerInteraction]:
        return [i for i in self.interactions if i.event_type == "hint_requested"]

    @property
    def skipped(self) -> list[LearnerInteraction]:
        return [i for i in self.interactions if i.event_type == "practice_skipped"]


@dataclass(slots=True)
class KnowledgeState:
    average_mastery: float | None
    skills_mastered: int
    skills_in_progress: int
    skills_not_started: int
    knowledge_gaps: list[str]
    misconceptions: list[str] | None
    current_zpd: list[str] | None


@dataclass(slots=True)
class CognitiveIndicators:
    working_memory: WorkingMemory
    expertise_level: ExpertiseLevel
    cognitive_load_threshold: float | None
    optimal_complexity: DifficultyBucket | None
    average_response_time_ms: float | None


@dataclass(slots=True)
class MetacognitiveIndicators:
    calibration_accuracy: float | None
    help_seeking: HelpSeeking
    self_monitoring_accuracy: float | None
    overconfidence_rate: float | None
    underconfidence_rate: float | None


@dataclass(slots=True)
class MotivationalIndicators:
    session_frequency: float | None
    average_session_minutes: float | None
    voluntary_return_rate: float | None
    persistence_score: float | None
    goal_orientation: GoalOrientation


@dataclass(slots=True)
class BehavioralPatterns:
    preferred_time_of_day: TimeOfDay | None
    most_active_day: str | None
    average_response_time_ms: float | None
    hint_usage_rate: float | None
    error_patterns: list[str]
    learning_velocity: float | None


# ── Shared helpers ───────────────────────────────────────────────────────────


def _mean(values: list[float]) -> float | None:
    return sum(values) / len(values) if values else None


def _response_times(attempts: list[LearnerInteraction]) -> list[float]:
    return [t for t in (a.response_time_ms for a in attempts) if t is not None and t > 0]


def _accuracy(attempts: list[LearnerInteraction]) -> float | None:
    if not attempts:
        return None
    return sum(1 for a in attempts if a.is_correct) / len(attempts)


def _by_skill(attempts: list[LearnerInteraction]) -> dict[str, list[bool]]:
    grouped: dict[str, list[bool]] = defaultdict(list)
    for attempt in sorted(attempts, key=lambda a: a.created_at):
        if attempt.skill_id:
            grouped[attempt.skill_id].append(bool(attempt.is_correct))
    return grouped


def _sessions_span_weeks(sessions: list[LearnerSession]) -> float | None:
    """Weeks between the first and last session start; None under half a week."""
    if len(sessions) < 2:
        return None
    starts = sorted(s.started_at for s in sessions)
    weeks = (starts[-1] - starts[0]) / timedelta(weeks=1)
    if weeks < MIN_SPAN_WEEKS:
        return None
    return weeks


def _bucket_accuracy(attempts: list[LearnerInteraction]) -> dict[DifficultyBucket, tuple[int, int]]:
    """(correct, total) per difficulty bucket; attempts without a difficulty are skipped."""
    stats: dict[DifficultyBucket, list[int]] = {}
    for attempt in attempts:
        difficulty = attempt.difficulty
        if difficulty is None:
            continue
        bucket = difficulty_bucket(difficulty)
        entry = stats.setdefault(bucket, [0, 0])
        entry[1] += 1
        if attempt.is_correct:
            entry[0] += 1
    return {bucket: (entry[0], entry[1]) for bucket, entry in stats.items()}


def normalized_confidence(payload: dict) -> float | None:
    rating = payload_number(payload, "rating")
    if rating is None:
        return None
    divisor = CONFIDENCE_SCALES.get(str(payload.get("scale", "0-1")))
    if divisor is None:
        return None
    return max(0.0, min(1.0, rating / divisor))


def _paired_ratings(ratings: list[LearnerInteraction]) -> list[tuple[float, bool]]:
    """(normalized confidence, outcome) for pre-attempt ratings with a known outcome."""
    pairs: list[tuple[float, bool]] = []
    for rating in ratings:
        payload = rating.payload
        outcome = payload.get("actualOutcome")
        if payload.get("ratingType") != "pre_attempt" or not isinstance(outcome, bool):
            continue
        confidence = normalized_confidence(payload)
        if confidence is not None:
            pairs.append((confidence, outcome))
    return pairs


# ── Knowledge ────────────────────────────────────────────────────────────────


def detect_misconceptions(attempts: list[LearnerInteraction]) -> list[str]:
    """Skills answered wrong at least 60% of the time over 3+ errors."""
    found: list[tuple[float, str]] = []
    for skill_id, outcomes in _by_skill(attempts).items():
        errors = outcomes.count(False)
        if len(outcomes) < GAP_MIN_ATTEMPTS or errors < MISCONCEPTION_MIN_ERRORS:
            continue
        error_rate = errors / len(outcomes)
        if error_rate >= MISCONCEPTION_ERROR_RATE:
            found.append((error_rate, skill_id))
    found.sort(key=lambda item: (-item[0], item[1]))
    return [skill_id for _, skill_id in found[:MAX_MISCONCEPTIONS]]


def knowledge_state(window: ProfileWindow) -> tuple[KnowledgeState, list[str]]:
    warnings: list[str] = []
    states = list(window.states.values())

    mastered = sum(1 for s in states if s.mastery_status == "mastered")
    in_progress = sum(1 for s in states if s.mastery_status == "learning")
    not_started = sum(1 for s in states if s.mastery_status == "not_started")
    if window.graph is not None:
        not_started += sum(1 for sid in window.graph.skills if sid not in window.states)

    gaps = sorted(
        (s for s in states if s.p_mastery < GAP_MASTERY and s.total_attempts >= GAP_MIN_ATTEMPTS),
        key=lambda s: (s.p_mastery, s.skill_id),
    )

    current_zpd: list[str] | None
    if window.graph is None:
        current_zpd = None
        warnings.append("Skill graph unavailable: zone of proximal development not computed")
    else:
        current_zpd = [item.skill.id for item in zpd_skills(window.graph, window.states, limit=MAX_ZPD)]

    misconceptions: list[str] | None
    if len(window.interactions) < MIN_INTERACTIONS:
        misconceptions = None
        warnings.append(
            f"Limited data: {len(window.interactions)} interactions "
            f"({MIN_INTERACTIONS} recommended for misconception detection)"
        )
    else:
        misconceptions = detect_misconceptions(window.practice_attempts)

    return (
        KnowledgeState(
            average_mastery=_mean([s.p_mastery for s in states]),
            skills_mastered=mastered,
            skills_in_progress=in_progress,
            skills_not_started=not_started,
            knowledge_gaps=[s.skill_id for s in gaps[:MAX_GAPS]],
            misconceptions=misconceptions,
            current_zpd=current_zpd,
        ),
        warnings,
    )


# ── Cognitive ────────────────────────────────────────────────────────────────


def infer_working_memory(attempts: list[LearnerInteraction], hint_requests: int) -> WorkingMemory:
    """Hint reliance and response-time variability (coefficient of variation)."""
    if len(attempts) < MIN_PRACTICE_ATTEMPTS:
        return "unknown"
    times = _response_times(attempts)
    if len(times) < 3:
        return "unknown"
    hint_rate = hint_requests / len(attempts)
    mean = sum(times) / len(times)
    variance = sum((t - mean) ** 2 for t in times) / len(times)
    cv = math.sqrt(variance) / mean
    if hint_rate < 0.1 and cv < 0.3:
        return "high"
    if hint_rate > 0.4 or cv > 0.6:
        return "low"
    return "medium"


def infer_expertise(attempts: list[LearnerInteraction]) -> ExpertiseLevel:
    if len(attempts) < MIN_PRACTICE_ATTEMPTS:
        return "unknown"
    accuracy = _accuracy(attempts) or 0.0
    avg_time = _mean(_response_times(attempts))
    speed = avg_time if avg_time is not None else math.inf
    if accuracy >= 0.9 and speed < 10_000:
        return "expert"
    if accuracy >= 0.85 and speed < 15_000:
        return "advanced"
    if accuracy >= 0.7 and speed < 30_000:
        return "intermediate"
    if accuracy >= 0.5:
        return "beginner"
    return "novice"


def cognitive_load_threshold(attempts: list[LearnerInteraction]) -> float | None:
    """Lower bound of the easiest bucket where accuracy falls under 50%.

    1.0 when every sampled bucket holds up; None when no attempt carries a
    difficulty.
    """
    stats = _bucket_accuracy(attempts)
    if not stats:
        return None
    for label, lower, _ in DIFFICULTY_BUCKETS:
        correct, total = stats.get(label, (0, 0))
        if total >= MIN_BUCKET_ATTEMPTS and correct / total < OVERLOAD_ACCURACY:
            return lower
    return 1.0


def optimal_complexity(attempts: list[LearnerInteraction]) -> DifficultyBucket | None:
    """Bucket whose accuracy sits closest to the 70% challenge target."""
    best: DifficultyBucket | None = None
    best_distance = math.inf
    stats = _bucket_accuracy(attempts)
    for label, _, _ in DIFFICULTY_BUCKETS:
        correct, total = stats.get(label, (0, 0))
        if total < MIN_BUCKET_ATTEMPTS:
            continue
        distance = abs(correct / total - TARGET_ACCURACY)
        if distance < best_distance:
            best, best_distance = label, distance
    return best


def cognitive_indicators(window: ProfileWindow) -> tuple[CognitiveIndicators, list[str]]:
    warnings: list[str] = []
    attempts = window.practice_attempts
    avg_time = _mean(_response_times(attempts))
    if len(attempts) < MIN_PRACTICE_ATTEMPTS:
        warnings.append(
            f"Limited practice data: {len(attempts)} attempts "
            f"({MIN_PRACTICE_ATTEMPTS} recommended for cognitive indicators)"
        )
        return (
            CognitiveIndicators(
                working_memory="unknown",
                expertise_level="unknown",
                cognitive_load_threshold=None,
                optimal_complexity=None,
                average_response_time_ms=avg_time,
            ),
            warnings,
        )

    return (
        CognitiveIndicators(
            working_memory=infer_working_memory(attempts, len(window.hint_requests)),
            expertise_level=infer_expertise(attempts),
            cognitive_load_threshold=cognitive_load_threshold(attempts),
            optimal_complexity=optimal_complexity(attempts),
            average_response_time_ms=avg_time,
        ),
        warnings,
    )


# ── Metacognitive ────────────────────────────────────────────────────────────


def calibration_accuracy(ratings: list[LearnerInteraction]) -> float | None:
    """Pearson correlation between pre-attempt confidence and correctness."""
    pairs = _paired_ratings(ratings)
    if len(pairs) < MIN_CONFIDENCE_RATINGS:
        return None
    n = len(pairs)
    xs = [c for c, _ in pairs]
    ys = [1.0 if o else 0.0 for _, o in pairs]
    sum_x, sum_y = sum(xs), sum(ys)
    sum_xy = sum(x * y for x, y in zip(xs, ys))
    sum_x2 = sum(x * x for x in xs)
    sum_y2 = sum(y * y for y in ys)
    denominator = math.sqrt((n * sum_x2 - sum_x**2) * (n * sum_y2 - sum_y**2))
    if denominator == 0:
        return None
    return (n * sum_xy - sum_x * sum_y) / denominator


def classify_help_seeking(
    hint_requests: list[LearnerInteraction], attempts: list[LearnerInteraction]
) -> HelpSeeking:
    if len(attempts) < MIN_PRACTICE_ATTEMPTS:
        return "unknown"
    hint_rate = len(hint_requests) / len(attempts)
    waits = [payload_number(h.payload, "timeBeforeHintMs") for h in hint_requests]
    early = [w for w in waits if w is not None and w < EARLY_HINT_MS]
    early_rate = len(early) / len(hint_requests) if hint_requests else 0.0
    if hint_rate < 0.05:
        return "avoidant"
    if hint_rate > 0.5 or early_rate > 0.7:
        return "excessive"
    return "appropriate"


def confidence_rates(ratings: list[LearnerInteraction]) -> tuple[float | None, float | None]:
    """(overconfidence, underconfidence) from the confident x correct table."""
    pairs = _paired_ratings(ratings)
    if len(pairs) < MIN_CONFIDENCE_RATINGS:
        return None, None
    confident = [correct for conf, correct in pairs if conf >= CONFIDENT_AT]
    hesitant = [correct for conf, correct in pairs if conf < CONFIDENT_AT]
    over = confident.count(False) / len(confident) if confident else None
    under = hesitant.count(True) / len(hesitant) if hesitant else None
    return over, under


def metacognitive_indicators(window: ProfileWindow) -> tuple[MetacognitiveIndicators, list[str]]:
    warnings: list[str] = []
    ratings = window.confidence_ratings
    if len(_paired_ratings(ratings)) < MIN_CONFIDENCE_RATINGS:
        warnings.append(
            f"Limited confidence data: {len(ratings)} ratings "
            f"({MIN_CONFIDENCE_RATINGS} recommended for calibration)"
        )
    calibration = calibration_accuracy(ratings)
    over, under = confidence_rates(ratings)
    return (
        MetacognitiveIndicators(
            calibration_accuracy=calibration,
            help_seeking=classify_help_seeking(window.hint_requests, window.practice_attempts),
            self_monitoring_accuracy=calibration,
            overconfidence_rate=over,
            underconfidence_rate=under,
        ),
        warnings,
    )


# ── Motivational ─────────────────────────────────────────────────────────────


def session_frequency(sessions: list[LearnerSession]) -> float | None:
    weeks = _sessions_span_weeks(sessions)
    if weeks is None:
        return None
    return len(sessions) / weeks


def average_session_minutes(sessions: list[LearnerSession]) -> float | None:
    durations = [s.duration_ms for s in sessions if s.duration_ms and s.duration_ms > 0]
    if not durations:
        return None
    return sum(durations) / len(durations) / 60_000


def voluntary_return_rate(sessions: list[LearnerSession]) -> float | None:
    """Share of returns that came more than four hours after the previous session."""
    if len(sessions) < 2:
        return None
    ordered = sorted(sessions, key=lambda s: s.started_at)
    returns = 0
    for previous, current in zip(ordered, ordered[1:]):
        left_at = previous.ended_at or previous.started_at
        if current.started_at - left_at > RETURN_GAP:
            returns += 1
    return returns / (len(ordered) - 1)


def persistence_score(attempts: list[LearnerInteraction]) -> float | None:
    """Average attempts after the first failure on a skill, scaled so 5+ is 1.0.

    Skills abandoned right after failing count as zero. None when the learner
    has not failed yet, since persistence was never tested.
    """
    if len(attempts) < MIN_PRACTICE_ATTEMPTS:
        return None
    after_failure: list[int] = []
    for outcomes in _by_skill(attempts).values():
        if False in outcomes:
            first_failure = outcomes.index(False)
            after_failure.append(len(outcomes) - first_failure - 1)
    if not after_failure:
        return None
    return min(1.0, (sum(after_failure) / len(after_failure)) / PERSISTENCE_FULL_AT)


def infer_goal_orientation(window: ProfileWindow, persistence: float | None) -> GoalOrientation:
    attempts = window.practice_attempts
    skipped = window.skipped
    if len(attempts) < MIN_PRACTICE_ATTEMPTS:
        return "unknown"
    skip_rate = len(skipped) / (len(attempts) + len(skipped))
    avg_difficulty = _mean([d for d in (a.difficulty for a in attempts) if d is not None])

    if skip_rate > 0.3 or (persistence is not None and persistence < 0.3):
        return "avoidance"
    if avg_difficulty is not None:
        if avg_difficulty > 0.6 and persistence is not None and persistence > 0.6:
            return "mastery"
        if avg_difficulty < 0.4 and skip_rate < 0.1:
            return "performance"
    return "mastery"


def motivational_indicators(window: ProfileWindow) -> tuple[MotivationalIndicators, list[str]]:
    warnings: list[str] = []
    sessions = window.sessions
    enough_sessions = len(sessions) >= MIN_SESSIONS
    if not enough_sessions:
        warnings.append(
            f"Limited session data: {len(sessions)} sessions "
            f"({MIN_SESSIONS} recommended for motivation analysis)"
        )
    persistence = persistence_score(window.practice_attempts)
    return (
        MotivationalIndicators(
            session_frequency=session_frequency(sessions) if enough_sessions else None,
            average_session_minutes=average_session_minutes(sessions) if enough_sessions else None,
            voluntary_return_rate=voluntary_return_rate(sessions) if enough_sessions else None,
            persistence_score=persistence,
            goal_orientation=infer_goal_orientation(window, persistence),
        ),
        warnings,
    )


# ── Behavioral ───────────────────────────────────────────────────────────────


def preferred_time_of_day(interactions: list[LearnerInteraction]) -> TimeOfDay | None:
    if len(interactions) < MIN_INTERACTIONS:
        return None
    counts = Counter(time_of_day(i.created_at) for i in interactions)
    order: tuple[TimeOfDay, ...] = ("morning", "afternoon", "evening", "night")
    return max(order, key=lambda slot: (counts[slot], -order.index(slot)))


def most_active_day(interactions: list[LearnerInteraction]) -> str | None:
    if len(interactions) < MIN_INTERACTIONS:
        return None
    counts = Counter(i.created_at.weekday() for i in interactions)
    day = max(range(7), key=lambda d: (counts[d], -d))
    return calendar.day_name[day]


def error_patterns(attempts: list[LearnerInteraction]) -> list[str]:
    """Skills with three or more wrong answers, most errors first."""
    errors = Counter(a.skill_id for a in attempts if a.skill_id and not a.is_correct)
    systematic = sorted(
        ((count, skill_id) for skill_id, count in errors.items() if count >= SYSTEMATIC_ERRORS),
        key=lambda item: (-item[0], item[1]),
    )
    return [skill_id for _, skill_id in systematic[:MAX_ERROR_PATTERNS]]


def learning_velocity(sessions: list[LearnerSession]) -> float | None:
    """Distinct skills practiced per week."""
    weeks = _sessions_span_weeks(sessions)
    if weeks is None:
        return None
    skills = {skill_id for s in sessions for skill_id in s.skills_practiced}
    return len(skills) / weeks


def behavioral_patterns(window: ProfileWindow) -> tuple[BehavioralPatterns, list[str]]:
    warnings: list[str] = []
    attempts = window.practice_attempts
    if len(window.interactions) < MIN_INTERACTIONS:
        warnings.append(
            f"Limited data: {len(window.interactions)} interactions "
            f"({MIN_INTERACTIONS} recommended for activity patterns)"
        )
    return (
        BehavioralPatterns(
            preferred_time_of_day=preferred_time_of_day(window.interactions),
            most_active_day=most_active_day(window.interactions),
            average_response_time_ms=_mean(_response_times(attempts)),
            hint_usage_rate=len(window.hint_requests) / len(attempts) if attempts else None,
            error_patterns=error_patterns(attempts),
            learning_velocity=learning_velocity(window.sessions),
        ),
        warnings,
    )


def optimal_difficulty_range(bucket: DifficultyBucket) -> tuple[float, float]:
    return bucket_bounds(bucket, DIFFICULTY_BUCKETS)


__all__ = [
    "BehavioralPatterns",
    "CognitiveIndicators",
    "KnowledgeState",
    "MetacognitiveIndicators",
    "MotivationalIndicators",
    "ProfileWindow",
    "behavioral_patterns",
    "calibration_accuracy",
    "classify_help_seeking",
    "cognitive_indicators",
    "cognitive_load_threshold",
    "confidence_rates",
    "detect_misconceptions",
    "error_patterns",
    "infer_expertise",
    "infer_goal_orientation",
    "infer_working_memory",
    "knowledge_state",
    "learning_velocity",
    "metacognitive_indicators",
    "most_active_day",
    "motivational_indicators",
    "normalized_confidence",
    "optimal_complexity",
    "optimal_difficulty_range",
    "persistence_score",
    "preferred_time_of_day",
    "session_frequency",
    "voluntary_return_rate",
]
