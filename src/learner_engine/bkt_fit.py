"""BKT parameter fitting (EM), prediction validation metrics and mastery intervals."""

from __future__ import annotations

import math
from dataclasses import dataclass
from statistics import NormalDist
from typing import Literal, Sequence

from .bkt import DEFAULT_PARAMS, bkt_update, predict_correct
from .models import BKTParams

FitQuality = Literal["poor", "acceptable", "good", "excellent"]

MIN_ATTEMPTS_FOR_FIT = 5
MAX_ITERATIONS = 100
TOLERANCE = 1e-6
CALIBRATION_BINS = 10
LOG_LOSS_EPSILON = 1e-15
_STAT_EPSILON = 1e-10


@dataclass(slots=True)
class FittingResult:
    params: BKTParams
    log_likelihood: float | None
    iterations: int
    converged: bool
    fit_quality: FitQuality


@dataclass(slots=True)
class ValidationMetrics:
    auc: float
    brier_score: float
    calibration_error: float
    accuracy: float
    log_loss: float
    sample_size: int


@dataclass(slots=True)
class MasteryEstimate:
    p_mastery: float
    lower: float
    upper: float
    level: float
    n_effective: float


def _emission(is_correct: bool, mastered: bool, params: BKTParams) -> float:
    if mastered:
        return 1 - params.p_s if is_correct else params.p_s
    return params.p_g if is_correct else 1 - params.p_g


def _forward_backward(
    outcomes: Sequence[bool], params: BKTParams
) -> tuple[list[list[float]], list[list[float]], float]:
    """Scaled forward-backward over the two-state (unmastered, mastered) chain.

    Mastered is absorbing: no forgetting.
    """
    steps = len(outcomes)
    alpha: list[list[float]] = []
    scale: list[float] = []

    first = [
        (1 - params.p_l0) * _emission(outcomes[0], False, params),
        params.p_l0 * _emission(outcomes[0], True, params),
    ]
    total = first[0] + first[1]
    scale.append(total)
    alpha.append([first[0] / total, first[1] / total])

    for t in range(1, steps):
        prev = alpha[t - 1]
        obs = outcomes[t]
        current = [
            prev[0] * (1 - params.p_t) * _emission(obs, False, params),
            (prev[0] * params.p_t + prev[1]) * _emission(obs, True, params),
        ]
        total = current[0] + current[1]
        scale.append(total)
        alpha.append([current[0] / total, current[1] / total])

    beta: list[list[float]] = [[0.0, 0.0] for _ in range(steps)]
    beta[steps - 1] = [1.0, 1.0]
    for t in range(steps - 2, -1, -1):
        nxt = beta[t + 1]
        obs = outcomes[t + 1]
        unmastered = (
            (1 - params.p_t) * _emission(obs, False, params) * nxt[0]
            + params.p_t * _emission(obs, True, params) * nxt[1]
        )
        mastered = _emission(obs, True, params) * nxt[1]
        beta[t] = [unmastered / scale[t + 1], mastered / scale[t + 1]]

    log_likelihood = sum(math.log(c + 1e-300) for c in scale)
    return alpha, beta, log_likelihood


def _m_step(
    outcomes: Sequence[bool],
    alpha: list[list[float]],
    beta: list[list[float]],
    params: BKTParams,
) -> BKTParams:
    steps = len(outcomes)
    gamma: list[tuple[float, float]] = []
    for t in range(steps):
        g0 = alpha[t][0] * beta[t][0]
        g1 = alpha[t][1] * beta[t][1]
        norm = g0 + g1
        gamma.append((g0 / norm, g1 / norm))

    xi00 = xi01 = 0.0
    for t in range(steps - 1):
        obs = outcomes[t + 1]
        denom = alpha[t][0] * beta[t][0] + alpha[t][1] * beta[t][1]
        xi00 += alpha[t][0] * (1 - params.p_t) * _emission(obs, False, params) * beta[t + 1][0] / denom
        xi01 += alpha[t][0] * params.p_t * _emission(obs, True, params) * beta[t + 1][1] / denom

    mastered_total = sum(g[1] for g in gamma)
    mastered_correct = sum(g[1] for g, obs in zip(gamma, outcomes) if obs)
    unmastered_total = sum(g[0] for g in gamma)
    unmastered_correct = sum(g[0] for g, obs in zip(gamma, outcomes) if obs)

    return BKTParams(
        p_l0=gamma[0][1],
        p_t=xi01 / (xi00 + xi01 + _STAT_EPSILON),
        p_s=1 - mastered_correct / (mastered_total + _STAT_EPSILON),
        p_g=unmastered_correct / (unmastered_total + _STAT_EPSILON),
    )


def _constrain(params: BKTParams) -> BKTParams:
    """Keep parameters identifiable: slip and guess below 0.5 and pS + pG < 1."""
    p_s = max(0.001, min(0.5, params.p_s))
    p_g = max(0.001, min(0.5, params.p_g))
    if p_s + p_g >= 1:
        factor = 0.9 / (p_s + p_g)
        p_s *= factor
        p_g *= factor
    return BKTParams(
        p_l0=max(0.001, min(0.999, params.p_l0)),
        p_t=max(0.001, min(0.999, params.p_t)),
        p_s=p_s,
        p_g=p_g,
    )


def _predictions(outcomes: Sequence[bool], params: BKTParams) -> list[float]:
    predictions: list[float] = []
    p_mastery = params.p_l0
    for is_correct in outcomes:
        predictions.append(predict_correct(p_mastery, params))
        p_mastery = bkt_update(p_mastery, is_correct, params)
    return predictions


def fit_quality(brier_score: float) -> FitQuality:
    if brier_score < 0.15:
        return "excellent"
    if brier_score < 0.25:
        return "good"
    if brier_score < 0.35:
        return "acceptable"
    return "poor"


def fit_parameters(
    outcomes: Sequence[bool],
    initial: BKTParams = DEFAULT_PARAMS,
    *,
    max_iterations: int = MAX_ITERATIONS,
    tolerance: float = TOLERANCE,
) -> FittingResult:
    """Fit BKT parameters to a chronological response sequence with EM.

    Fewer than ``MIN_ATTEMPTS_FOR_FIT`` responses returns ``initial`` unchanged
    with a ``poor`` quality and no likelihood.
    """
    if len(outcomes) < MIN_ATTEMPTS_FOR_FIT:
        return FittingResult(
            params=initial, log_likelihood=None, iterations=0, converged=False, fit_quality="poor"
        )

    params = _constrain(initial)
    previous: float | None = None
    iterations = 0
    converged = False
    for iteration in range(max_iterations):
        iterations = iteration + 1
        alpha, beta, log_likelihood = _forward_backward(outcomes, params)
        if previous is not None and abs(log_likelihood - previous) < tolerance:
            converged = True
            break
        previous = log_likelihood
        params = _constrain(_m_step(outcomes, alpha, beta, params))

    brier = brier_score(_predictions(outcomes, params), outcomes)
    return FittingResult(
        params=params,
        log_likelihood=previous,
        iterations=iterations,
        converged=converged,
        fit_quality=fit_quality(brier),
    )


# ── Validation metrics ───────────────────────────────────────────────────────


def auc(predictions: Sequence[float], actuals: Sequence[bool]) -> float:
    """Area under the ROC curve via the Mann-Whitney statistic; 0.5 when one class is absent."""
    positives = [p for p, a in zip(predictions, actuals) if a]
    negatives = [p for p, a in zip(predictions, actuals) if not a]
    if not positives or not negatives:
        return 0.5
    concordant = ties = 0
    for pos in positives:
        for neg in negatives:
            if pos > neg:
                concordant += 1
            elif pos == neg:
                ties += 1
    return (concordant + 0.5 * ties) / (len(positives) * len(negatives))


def brier_score(predictions: Sequence[float], actuals: Sequence[bool]) -> float:
    return sum((p - (1.0 if a else 0.0)) ** 2 for p, a in zip(predictions, actuals)) / len(predictions)


def calibration_error(
    predictions: Sequence[float], actuals: Sequence[bool], bins: int = CALIBRATION_BINS
) -> float:
    """Expected calibration error over equal-width probability bins."""
    counts = [0] * bins
    predicted = [0.0] * bins
    observed = [0.0] * bins
    for p, a in zip(predictions, actuals):
        index = min(int(p * bins), bins - 1)
        counts[index] += 1
        predicted[index] += p
        observed[index] += 1.0 if a else 0.0
    total = len(predictions)
    error = 0.0
    for count, pred_sum, obs_sum in zip(counts, predicted, observed):
        if count:
            error += (count / total) * abs(pred_sum / count - obs_sum / count)
    return error


def accuracy(predictions: Sequence[float], actuals: Sequence[bool]) -> float:
    hits = sum(1 for p, a in zip(predictions, actuals) if (p >= 0.5) == a)
    return hits / len(predictions)


def log_loss(predictions: Sequence[float], actuals: Sequence[bool]) -> float:
    total = 0.0
    for p, a in zip(predictions, actuals):
        clipped = max(LOG_LOSS_EPSILON, min(1 - LOG_LOSS_EPSILON, p))
        total += math.log(clipped) if a else math.log(1 - clipped)
    return -total / len(predictions)


def validation_metrics(outcomes: Sequence[bool], params: BKTParams = DEFAULT_PARAMS) -> ValidationMetrics:
    """Score one-step-ahead BKT predictions against the observed responses."""
    if len(outcomes) < 2:
        return ValidationMetrics(
            auc=0.5,
            brier_score=0.25,
            calibration_error=0.0,
            accuracy=0.5,
            log_loss=math.log(2),
            sample_size=0,
        )
    predictions = _predictions(outcomes, params)
    return ValidationMetrics(
        auc=auc(predictions, outcomes),
        brier_score=brier_score(predictions, outcomes),
        calibration_error=calibration_error(predictions, outcomes),
        accuracy=accuracy(predictions, outcomes),
        log_loss=log_loss(predictions, outcomes),
        sample_size=len(outcomes),
    )


# ── Confidence interval ──────────────────────────────────────────────────────


def wilson_interval(p: float, n: float, level: float = 0.95) -> tuple[float, float]:
    z = NormalDist().inv_cdf((1 + level) / 2)
    z2 = z * z
    center = (p + z2 / (2 * n)) / (1 + z2 / n)
    margin = (z / (1 + z2 / n)) * math.sqrt(p * (1 - p) / n + z2 / (4 * n * n))
    return max(0.0, center - margin), min(1.0, center + margin)


def mastery_with_confidence(
    outcomes: Sequence[bool], params: BKTParams = DEFAULT_PARAMS, level: float = 0.95
) -> MasteryEstimate:
    """Final mastery estimate with a Wilson interval.

    Successive responses are correlated through learning, so the interval uses
    an effective sample size n / (1 + 2 pT (n-1)/n), at least 1.
    """
    if not 0 < level < 1:
        raise ValueError("level must be between 0 and 1")
    p_mastery = params.p_l0
    for is_correct in outcomes:
        p_mastery = bkt_update(p_mastery, is_correct, params)
    n = len(outcomes)
    if n == 0:
        n_effective = 1.0
    else:
        n_effective = max(1.0, n / (1 + 2 * params.p_t * (n - 1) / n))
    lower, upper = wilson_interval(p_mastery, n_effective, level)
    return MasteryEstimate(
        p_mastery=p_mastery, lower=lower, upper=upper, level=level, n_effective=n_effective
    )


__all__ = [
    "FittingResult",
    "MasteryEstimate",
    "ValidationMetrics",
    "accuracy",
    "auc",
    "brier_score",
    "calibration_error",
    "fit_parameters",
    "fit_quality",
    "log_loss",
    "mastery_with_confidence",
    "validation_metrics",
    "wilson_interval",
]
