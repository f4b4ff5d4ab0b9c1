# ABOUTME: Implements the inferential statistics primitives used across the engine.
# ABOUTME: Covers significance tests, corrections, intervals, binning, trends, effect sizes, and quality scans.

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd
from scipy import stats

from .calendar import parse_timestamp
from .schemas import ConfidenceInterval, DataQualityIssue, as_mapping

MIN_TREND_POINTS = 4
MIN_OUTLIER_POINTS = 4
TREND_ALPHA = 0.05

TRACKED_NUMERIC_FIELDS = ("arousal", "valence", "energy", "duration")
TRACKED_CATEGORICAL_FIELDS = ("context",)
CONSTANT_RUN_THRESHOLD = 10
MISSING_SHARE_THRESHOLD = 0.10


@dataclass(frozen=True)
class BonferroniResult:
    corrected_alpha: float
    significant: List[bool]


@dataclass(frozen=True)
class BenjaminiHochbergResult:
    adjusted_p_values: List[float]
    significant: List[bool]


@dataclass(frozen=True)
class TrendResult:
    trend: str
    tau: float
    p_value: float
    s_statistic: float = 0.0
    z_score: float = 0.0


@dataclass(frozen=True)
class OutlierBounds:
    lower: float
    upper: float


@dataclass(frozen=True)
class OutlierResult:
    outliers: List[float]
    indices: List[int]
    bounds: OutlierBounds


# ---------------------------------------------------------------------------
# Significance
# ---------------------------------------------------------------------------


def chi_squared_p_value(statistic: float, degrees_of_freedom: int) -> float:
    """Upper-tail probability of the chi-squared distribution."""

    if math.isnan(statistic) or statistic <= 0 or degrees_of_freedom <= 0:
        return 1.0
    return float(stats.chi2.sf(statistic, degrees_of_freedom))


def chi_squared_statistic_2x2(a: int, b: int, c: int, d: int) -> float:
    """
    Pearson chi-squared statistic for the table [[a, b], [c, d]].

    A zero row or column total means no association can be measured, so 0 is returned.
    """

    n = a + b + c + d
    row_1, row_2 = a + b, c + d
    col_1, col_2 = a + c, b + d
    denominator = float(row_1) * row_2 * col_1 * col_2
    if n == 0 or denominator == 0:
        return 0.0
    return n * float(a * d - b * c) ** 2 / denominator


def bonferroni_correction(p_values: Sequence[float], family_alpha: float = 0.05) -> BonferroniResult:
    values = list(p_values)
    corrected = family_alpha / len(values) if values else family_alpha
    return BonferroniResult(corrected_alpha=corrected, significant=[p < corrected for p in values])


def benjamini_hochberg_correction(p_values: Sequence[float], fdr_level: float = 0.05) -> BenjaminiHochbergResult:
    """
    Benjamini-Hochberg step-up procedure.

    Adjusted p-values are the running minimum of p(i) * n / i taken from the
    largest rank down, clamped to 1 and returned in the caller's order.
    """

    p = np.asarray(list(p_values), dtype=float)
    n = p.size
    if n == 0:
        return BenjaminiHochbergResult(adjusted_p_values=[], significant=[])

    order = np.argsort(p, kind="mergesort")
    ranked = p[order] * n / np.arange(1, n + 1)
    stepped = np.minimum.accumulate(ranked[::-1])[::-1]
    stepped = np.minimum(stepped, 1.0)

    adjusted = np.empty(n, dtype=float)
    adjusted[order] = stepped
    return BenjaminiHochbergResult(
        adjusted_p_values=[float(v) for v in adjusted],
        significant=[bool(v <= fdr_level) for v in adjusted],
    )


# ---------------------------------------------------------------------------
# Intervals
# ---------------------------------------------------------------------------


def z_value(confidence_level: float) -> float:
    if not 0 < confidence_level < 1:
        raise ValueError(f"confidence_level must be in (0, 1), got {confidence_level}.")
    return float(stats.norm.ppf(1 - (1 - confidence_level) / 2))


def wilson_score_interval(successes: int, total: int, confidence_level: float = 0.95) -> ConfidenceInterval:
    if total <= 0:
        return ConfidenceInterval(lower=0.0, upper=1.0, point=0.0)

    z = z_value(confidence_level)
    p = successes / total
    z2 = z * z
    denom = 1 + z2 / total
    centre = (p + z2 / (2 * total)) / denom
    spread = z * math.sqrt(p * (1 - p) / total + z2 / (4 * total * total)) / denom

    lower = 0.0 if successes <= 0 else max(0.0, centre - spread)
    upper = 1.0 if successes >= total else min(1.0, centre + spread)
    return ConfidenceInterval(lower=lower, upper=upper, point=p)


def bootstrap_mean_ci(
    values: Iterable[float],
    confidence_level: float = 0.95,
    resample_count: int = 1000,
    rng: Optional[np.random.Generator] = None,
    seed: Optional[int] = None,
) -> ConfidenceInterval:
    """
    Percentile bootstrap interval for the mean.

    Pass `rng` or `seed` for reproducible resampling.
    """

    data = np.asarray(list(values), dtype=float)
    if data.size == 0:
        return ConfidenceInterval(lower=0.0, upper=0.0, point=0.0)
    point = float(data.mean())
    if data.size == 1:
        return ConfidenceInterval(lower=point, upper=point, point=point)
    if resample_count <= 0:
        raise ValueError(f"resample_count must be positive, got {resample_count}.")

    z_value(confidence_level)
    generator = rng if rng is not None else np.random.default_rng(seed)
    samples = generator.choice(data, size=(resample_count, data.size), replace=True)
    means = samples.mean(axis=1)

    alpha = 1 - confidence_level
    lower, upper = np.percentile(means, [100 * alpha / 2, 100 * (1 - alpha / 2)])
    return ConfidenceInterval(lower=float(lower), upper=float(upper), point=point)


# ---------------------------------------------------------------------------
# Discretization
# ---------------------------------------------------------------------------


def calculate_quantile_thresholds(values: Iterable[float], bin_count: int = 3) -> List[float]:
    """
    Return `bin_count - 1` ascending cut points approximating equal-frequency bins.

    Each cut is either the value at the target rank or the next distinct value
    above it, whichever leaves the lower bins closer to the target size. This
    keeps a dense block of repeated values together in one bin. A block that
    starts at the smallest value always moves the cut above it.
    """

    if bin_count < 1:
        raise ValueError(f"bin_count must be at least 1, got {bin_count}.")
    data = np.sort(np.asarray(list(values), dtype=float))
    n = data.size
    if n == 0:
        return []

    distinct = np.unique(data)
    thresholds: List[float] = []
    for i in range(1, bin_count):
        target = i * n / bin_count
        candidate = data[min(int(math.floor(target)), n - 1)]
        below = int(np.searchsorted(data, candidate, side="left"))
        through = int(np.searchsorted(data, candidate, side="right"))

        cut = candidate
        # A cut at the minimum would leave the lowest bin empty.
        if below == 0 or abs(through - target) < abs(below - target):
            higher = distinct[distinct > candidate]
            if higher.size:
                cut = higher[0]

        if thresholds and cut <= thresholds[-1]:
            higher = distinct[distinct > thresholds[-1]]
            cut = higher[0] if higher.size else thresholds[-1]
        thresholds.append(float(cut))
    return thresholds


def assign_to_bin(value: float, thresholds: Sequence[float]) -> int:
    for index, threshold in enumerate(thresholds):
        if value < threshold:
            return index
    return len(thresholds)


# ---------------------------------------------------------------------------
# Trends and outliers
# ---------------------------------------------------------------------------


def mann_kendall_test(series: Iterable[float]) -> TrendResult:
    """Mann-Kendall monotonic trend test with tie-corrected variance and tau-b."""

    x = np.asarray([v for v in series if v is not None], dtype=float)
    x = x[~np.isnan(x)]
    n = x.size
    if n < MIN_TREND_POINTS:
        return TrendResult(trend="no_trend", tau=0.0, p_value=1.0)

    upper = np.triu_indices(n, k=1)
    signs = np.sign(x[upper[1]] - x[upper[0]])
    s = float(signs.sum())

    _, tie_counts = np.unique(x, return_counts=True)
    tie_counts = tie_counts[tie_counts > 1].astype(float)
    n_pairs = n * (n - 1) / 2
    tied_pairs = float((tie_counts * (tie_counts - 1) / 2).sum())

    tau_denominator = math.sqrt((n_pairs - tied_pairs) * n_pairs)
    tau = s / tau_denominator if tau_denominator > 0 else 0.0

    variance = (n * (n - 1) * (2 * n + 5) - float((tie_counts * (tie_counts - 1) * (2 * tie_counts + 5)).sum())) / 18
    if variance <= 0:
        return TrendResult(trend="no_trend", tau=tau, p_value=1.0, s_statistic=s)

    if s > 0:
        z = (s - 1) / math.sqrt(variance)
    elif s < 0:
        z = (s + 1) / math.sqrt(variance)
    else:
        z = 0.0
    p_value = float(2 * stats.norm.sf(abs(z)))

    trend = "no_trend"
    if p_value < TREND_ALPHA:
        trend = "increasing" if tau > 0 else "decreasing" if tau < 0 else "no_trend"
    return TrendResult(trend=trend, tau=tau, p_value=p_value, s_statistic=s, z_score=z)


def detect_outliers_iqr(values: Sequence[float], multiplier: float = 1.5) -> OutlierResult:
    data = np.asarray(list(values), dtype=float)
    if data.size < MIN_OUTLIER_POINTS:
        return OutlierResult(outliers=[], indices=[], bounds=OutlierBounds(float("-inf"), float("inf")))

    q1, q3 = np.percentile(data, [25, 75])
    iqr = q3 - q1
    lower = float(q1 - multiplier * iqr)
    upper = float(q3 + multiplier * iqr)
    mask = (data < lower) | (data > upper)
    indices = [int(i) for i in np.flatnonzero(mask)]
    return OutlierResult(
        outliers=[float(data[i]) for i in indices],
        indices=indices,
        bounds=OutlierBounds(lower=lower, upper=upper),
    )


# ---------------------------------------------------------------------------
# Effect sizes
# ---------------------------------------------------------------------------


def cohens_d(group_a: Iterable[float], group_b: Iterable[float]) -> float:
    a = np.asarray(list(group_a), dtype=float)
    b = np.asarray(list(group_b), dtype=float)
    if a.size == 0 or b.size == 0:
        return 0.0

    dof = a.size + b.size - 2
    if dof <= 0:
        return 0.0
    pooled_var = (float(((a - a.mean()) ** 2).sum()) + float(((b - b.mean()) ** 2).sum())) / dof
    pooled_sd = math.sqrt(pooled_var)
    if pooled_sd == 0:
        return 0.0
    return float((a.mean() - b.mean()) / pooled_sd)


def interpret_effect_size(d: float) -> str:
    magnitude = abs(d)
    if magnitude < 0.2:
        return "negligible"
    if magnitude < 0.5:
        return "small"
    if magnitude < 0.8:
        return "medium"
    return "large"


# ---------------------------------------------------------------------------
# Collection-level quality scan
# ---------------------------------------------------------------------------


def detect_data_quality_issues(records: Sequence[Any]) -> List[DataQualityIssue]:
    """
    Scan a collection for constant-value runs, unparsable timestamps, and missing categories.

    Records may be validated dataclasses or loose mappings straight from storage.
    """

    rows = [dict(as_mapping(record)) for record in records]
    if not rows:
        return []

    frame = pd.DataFrame(rows)
    ids = [str(row.get("id")) if row.get("id") is not None else f"#{i}" for i, row in enumerate(rows)]
    issues: List[DataQualityIssue] = []

    for field in TRACKED_NUMERIC_FIELDS:
        if field not in frame.columns:
            continue
        issue = _constant_run_issue(field, frame[field], ids)
        if issue:
            issues.append(issue)

    invalid_ids = tuple(ids[i] for i, row in enumerate(rows) if parse_timestamp(row.get("timestamp")) is None)
    if invalid_ids:
        issues.append(
            DataQualityIssue(
                type="invalid_timestamp",
                severity="high",
                description=f"{len(invalid_ids)} registreringer har ugyldig eller manglende tidsstempel",
                affected_log_ids=invalid_ids,
            )
        )

    total = len(rows)
    for field in TRACKED_CATEGORICAL_FIELDS:
        column = frame[field] if field in frame.columns else pd.Series([None] * total)
        missing_mask = column.isna() | (column.astype(str).str.strip() == "")
        missing_share = float(missing_mask.mean())
        if missing_share > MISSING_SHARE_THRESHOLD:
            issues.append(
                DataQualityIssue(
                    type=f"missing_{field}",
                    severity="medium",
                    description=f"{round(missing_share * 100)}% av registreringene mangler {field}",
                    affected_log_ids=tuple(ids[i] for i in np.flatnonzero(missing_mask.to_numpy())),
                )
            )

    return issues


def _constant_run_issue(field: str, column: pd.Series, ids: Sequence[str]) -> Optional[DataQualityIssue]:
    present = pd.to_numeric(column, errors="coerce").dropna()
    if len(present) < CONSTANT_RUN_THRESHOLD:
        return None

    run_id = (present != present.shift()).cumsum()
    run_sizes = present.groupby(run_id).size()
    if run_sizes.max() < CONSTANT_RUN_THRESHOLD:
        return None

    longest = run_sizes.idxmax()
    positions = run_id.index[run_id == longest]
    value = present.loc[positions[0]]
    return DataQualityIssue(
        type=f"constant_{field}",
        severity="high",
        description=f"{field} har samme verdi ({value:g}) i {len(positions)} registreringer på rad",
        affected_log_ids=tuple(ids[i] for i in positions),
    )
