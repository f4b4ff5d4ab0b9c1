# ABOUTME: Mines single factors and factor pairs associated with high arousal.
# ABOUTME: Tests each candidate with a 2x2 chi-squared table and controls FDR with Benjamini-Hochberg.

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from itertools import combinations
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from src.common.calendar import derive_calendar_features, parse_timestamp
from src.common.config import DEFAULT_CONFIG, AnalysisConfig
from src.common.schemas import ConfidenceInterval, ContextBreakdown, CrisisEvent, DiscretizedFactor, LogEntry, Pattern
from src.common.statistics import (
    benjamini_hochberg_correction,
    chi_squared_p_value,
    chi_squared_statistic_2x2,
    wilson_score_interval,
)
from src.common.vocabulary import CONTEXT_TRIGGERS, SENSORY_TRIGGERS, normalize_values

from .discretization import BIN_LABELS, AdaptiveThresholds, bin_label, calculate_adaptive_thresholds, is_top_bin

logger = logging.getLogger(__name__)

OUTCOME_HIGH_AROUSAL = "high_arousal"
OUTCOME_PRECEDES_CRISIS = "precedes_crisis"
OUTCOME_PHRASES = {
    OUTCOME_HIGH_AROUSAL: "sjanse for høy aktivering",
    OUTCOME_PRECEDES_CRISIS: "sjanse for krise innen kort tid",
}

ENERGY_LABELS = {"low": "lav", "mid": "middels", "high": "høy"}
FACTOR_LABELS = {
    "energy": "Energi",
    "sensory_trigger": "Sensorisk trigger",
    "context_trigger": "Situasjonstrigger",
    "day_of_week": "Ukedag",
    "time_of_day": "Tid på døgnet",
    "context": "Miljø",
}
# Factor types whose values partition the logs; two values of one such type never co-occur.
EXCLUSIVE_TYPES = ("energy", "day_of_week", "time_of_day", "context")


@dataclass(frozen=True)
class FactorCandidate:
    factors: Tuple[DiscretizedFactor, ...]
    mask: np.ndarray


@dataclass(frozen=True)
class CandidateTest:
    candidate: FactorCandidate
    outcome: str
    occurrence_count: int
    total_occasions: int
    probability: float
    p_value: float
    probability_ci: ConfidenceInterval


def analyze_multi_factor_patterns(
    logs: Sequence[LogEntry],
    crisis_events: Sequence[CrisisEvent] = (),
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> List[Pattern]:
    """
    Find factors and factor pairs after which high arousal is unusually likely.

    Steps:
    - Discretize energy and arousal and mark each log's outcome: arousal in
      the top bin, plus (when `enable_crisis_outcome` is set) a separate
      `precedes_crisis` outcome for logs shortly before a crisis event.
    - Enumerate single factors, then pairs of factors that both co-occur
      with the outcome often enough on their own.
    - Test every candidate with a 2x2 chi-squared table and correct the
      resulting p-values with Benjamini-Hochberg when enabled.
    - Drop weak candidates, rank the rest, and keep the top `max_patterns`.
    """

    if len(logs) < max(config.min_logs_for_analysis, 1):
        logger.debug("Skipping pattern mining: %d logs < %d", len(logs), config.min_logs_for_analysis)
        return []

    thresholds = calculate_adaptive_thresholds(logs, config)
    frame = build_feature_frame(logs, thresholds, crisis_events, config)
    candidates = enumerate_single_factors(frame)

    outcomes = [OUTCOME_HIGH_AROUSAL]
    if config.enable_crisis_outcome:
        outcomes.append(OUTCOME_PRECEDES_CRISIS)

    tested: List[CandidateTest] = []
    for label in outcomes:
        outcome = frame[label].to_numpy(dtype=bool)
        if not outcome.any():
            logger.debug("No %s outcomes among %d logs", label, len(frame))
            continue
        tested += _test_outcome(candidates, label, outcome, config)
    if not tested:
        return []

    adjusted: List[Optional[float]] = [None] * len(tested)
    significant: List[Optional[bool]] = [None] * len(tested)
    if config.enable_multiple_comparison_correction:
        correction = benjamini_hochberg_correction([test.p_value for test in tested], config.fdr_level)
        adjusted = list(correction.adjusted_p_values)
        significant = list(correction.significant)

    patterns: List[Pattern] = []
    for test, adjusted_p, is_significant in zip(tested, adjusted, significant):
        if is_significant is False:
            continue
        if test.probability < config.min_confidence_threshold:
            continue
        breakdown = None
        if config.enable_stratified_analysis:
            outcome = frame[test.outcome].to_numpy(dtype=bool)
            breakdown = context_breakdown(frame, test.candidate.mask, outcome, config)
        patterns.append(_build_pattern(test, adjusted_p, is_significant, breakdown))

    patterns.sort(key=lambda p: (-p.probability, _effective_p(p), -p.occurrence_count))
    logger.debug("Kept %d patterns (cap %d)", len(patterns), config.max_patterns)
    return patterns[: config.max_patterns]


def build_feature_frame(
    logs: Sequence[LogEntry],
    thresholds: AdaptiveThresholds,
    crisis_events: Sequence[CrisisEvent] = (),
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> pd.DataFrame:
    """One row per log with discretized scales, calendar fields, triggers, and the outcome flags."""

    rows = []
    for log in logs:
        timestamp = parse_timestamp(log.timestamp)
        calendar = derive_calendar_features(timestamp) if timestamp is not None else None
        rows.append(
            {
                "id": log.id,
                "timestamp": timestamp,
                "energy_bin": bin_label(log.energy, thresholds.energy_thresholds),
                OUTCOME_HIGH_AROUSAL: is_top_bin(log.arousal, thresholds.arousal_thresholds),
                "context": log.context or None,
                "day_of_week": log.day_of_week or (calendar.day_of_week if calendar else None),
                "time_of_day": log.time_of_day or (calendar.time_of_day if calendar else None),
                "sensory_triggers": normalize_values(log.sensory_triggers, SENSORY_TRIGGERS),
                "context_triggers": normalize_values(log.context_triggers, CONTEXT_TRIGGERS),
            }
        )

    frame = pd.DataFrame(rows)
    frame[OUTCOME_PRECEDES_CRISIS] = _precedes_crisis(frame["timestamp"], crisis_events, config.crisis_window_minutes)
    return frame


def enumerate_single_factors(frame: pd.DataFrame) -> List[FactorCandidate]:
    candidates: List[FactorCandidate] = []

    present_bins = set(frame["energy_bin"])
    for value in [v for v in BIN_LABELS if v in present_bins] + sorted(present_bins - set(BIN_LABELS)):
        mask = (frame["energy_bin"] == value).to_numpy()
        label = f"{FACTOR_LABELS['energy']}: {ENERGY_LABELS.get(value, value)}"
        candidates.append(FactorCandidate((DiscretizedFactor("energy", value, "equals", label),), mask))

    for factor_type, column in (("sensory_trigger", "sensory_triggers"), ("context_trigger", "context_triggers")):
        values = sorted({value for values in frame[column] for value in values})
        for value in values:
            mask = frame[column].map(lambda present, v=value: v in present).to_numpy(dtype=bool)
            label = f"{FACTOR_LABELS[factor_type]}: {value}"
            candidates.append(FactorCandidate((DiscretizedFactor(factor_type, value, "includes", label),), mask))

    for factor_type in ("day_of_week", "time_of_day", "context"):
        for value in sorted(frame[factor_type].dropna().unique()):
            mask = (frame[factor_type] == value).to_numpy()
            label = f"{FACTOR_LABELS[factor_type]}: {value}"
            candidates.append(FactorCandidate((DiscretizedFactor(factor_type, value, "equals", label),), mask))

    return candidates


def pair_candidates(singles: Sequence[FactorCandidate]):
    """
    Yield the conjunction of every two single factors that can co-occur.

    A pair whose logs are exactly those of one of its factors adds no new
    hypothesis (e.g. a weekday every log shares) and is skipped.
    """

    for left, right in combinations(singles, 2):
        first, second = left.factors[0], right.factors[0]
        if first.type == second.type and first.type in EXCLUSIVE_TYPES:
            continue
        joint = left.mask & right.mask
        if np.array_equal(joint, left.mask) or np.array_equal(joint, right.mask):
            continue
        yield FactorCandidate((first, second), joint)


def context_breakdown(
    frame: pd.DataFrame, mask: np.ndarray, outcome: np.ndarray, config: AnalysisConfig = DEFAULT_CONFIG
) -> Optional[Dict[str, ContextBreakdown]]:
    """Per-context counts for a candidate, kept only when at least two contexts qualify."""

    breakdown: Dict[str, ContextBreakdown] = {}
    for context in sorted(frame["context"].dropna().unique()):
        present = mask & (frame["context"] == context).to_numpy()
        total = int(present.sum())
        count = int((present & outcome).sum())
        if count >= config.min_occurrences_for_pattern:
            breakdown[context] = ContextBreakdown(count=count, total=total, probability=count / total)
    return breakdown if len(breakdown) >= 2 else None


def confidence_tier(p_value: float, sample_size: int) -> str:
    if p_value < 0.01 and sample_size >= 10:
        return "high"
    if p_value < 0.05 and sample_size >= 5:
        return "medium"
    return "low"


def describe_pattern(
    factors: Sequence[DiscretizedFactor],
    count: int,
    total: int,
    probability: float,
    outcome: str = OUTCOME_HIGH_AROUSAL,
) -> str:
    conditions = " og ".join(factor.label for factor in factors)
    percent = int(math.floor(probability * 100 + 0.5))
    return f"Når {conditions}: {percent}% {OUTCOME_PHRASES[outcome]} ({count} av {total} ganger)"


def _test_outcome(
    candidates: Sequence[FactorCandidate], label: str, outcome: np.ndarray, config: AnalysisConfig
) -> List[CandidateTest]:
    singles = [c for c in candidates if int((c.mask & outcome).sum()) >= config.min_occurrences_for_pattern]
    pool = singles + list(pair_candidates(singles))
    tested = [test for test in (_test_candidate(c, label, outcome, config) for c in pool) if test is not None]
    logger.debug("%s: tested %d of %d candidates (%d single factors)", label, len(tested), len(pool), len(singles))
    return tested


def _test_candidate(
    candidate: FactorCandidate, label: str, outcome: np.ndarray, config: AnalysisConfig
) -> Optional[CandidateTest]:
    mask = candidate.mask
    a = int((mask & outcome).sum())
    if a < config.min_occurrences_for_pattern:
        return None
    b = int((mask & ~outcome).sum())
    c = int((~mask & outcome).sum())
    d = int((~mask & ~outcome).sum())

    statistic = chi_squared_statistic_2x2(a, b, c, d)
    total = a + b
    return CandidateTest(
        candidate=candidate,
        outcome=label,
        occurrence_count=a,
        total_occasions=total,
        probability=a / total,
        p_value=chi_squared_p_value(statistic, 1),
        probability_ci=wilson_score_interval(a, total, config.confidence_level),
    )


def _build_pattern(
    test: CandidateTest,
    adjusted_p: Optional[float],
    significant: Optional[bool],
    breakdown: Optional[Dict[str, ContextBreakdown]],
) -> Pattern:
    factors = test.candidate.factors
    effective_p = test.p_value if adjusted_p is None else adjusted_p
    pattern_id = "+".join(factor.key for factor in factors)
    if test.outcome != OUTCOME_HIGH_AROUSAL:
        pattern_id = f"{pattern_id}->{test.outcome}"
    return Pattern(
        id=pattern_id,
        factors=factors,
        outcome=test.outcome,
        occurrence_count=test.occurrence_count,
        total_occasions=test.total_occasions,
        probability=test.probability,
        p_value=test.p_value,
        confidence=confidence_tier(effective_p, test.total_occasions),
        description=describe_pattern(
            factors, test.occurrence_count, test.total_occasions, test.probability, test.outcome
        ),
        probability_ci=test.probability_ci,
        adjusted_p_value=adjusted_p,
        significant_after_correction=significant,
        context_breakdown=breakdown,
    )


def _effective_p(pattern: Pattern) -> float:
    return pattern.p_value if pattern.adjusted_p_value is None else pattern.adjusted_p_value


def _precedes_crisis(timestamps: pd.Series, crisis_events: Sequence[CrisisEvent], window_minutes: int) -> pd.Series:
    """Flag logs recorded at most `window_minutes` before some crisis event."""

    flags = pd.Series(False, index=timestamps.index)
    crisis_times = sorted(ts for ts in (parse_timestamp(event.timestamp) for event in crisis_events) if ts is not None)
    if not crisis_times:
        return flags

    window = pd.Timedelta(minutes=window_minutes)
    for index, timestamp in timestamps.items():
        if timestamp is None or pd.isna(timestamp):
            continue
        flags[index] = any(timestamp <= crisis <= timestamp + window for crisis in crisis_times)
    return flags
