# ABOUTME: Measures how strategy combinations turn out and which factor pairs act in synergy.
# ABOUTME: Groups logs by strategy set and compares joint high-arousal rates against an additive baseline.

from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Tuple

import pandas as pd

from src.common.config import DEFAULT_CONFIG, AnalysisConfig
from src.common.schemas import InteractionEffect, LogEntry, StrategyCombinationResult
from src.common.vocabulary import STRATEGIES, normalize_values

from .discretization import calculate_adaptive_thresholds
from .multi_factor import OUTCOME_HIGH_AROUSAL, build_feature_frame, enumerate_single_factors, pair_candidates

logger = logging.getLogger(__name__)


def analyze_strategy_combinations(
    logs: Sequence[LogEntry], config: AnalysisConfig = DEFAULT_CONFIG
) -> List[StrategyCombinationResult]:
    """
    Success and escalation rates per distinct set of strategies used together.

    Sets are order-independent; a set needs at least `min_occurrences_for_pattern`
    uses to be reported. Results are sorted by success rate, then by use count.
    """

    rows = []
    combos: Dict[str, Tuple[str, ...]] = {}
    for log in logs:
        strategies = tuple(sorted(normalize_values(log.strategies, STRATEGIES)))
        if not strategies:
            continue
        key = "\x1f".join(strategies)
        combos[key] = strategies
        rows.append(
            {
                "combo": key,
                "helped": log.strategy_effectiveness == "helped",
                "escalated": log.strategy_effectiveness == "escalated",
            }
        )
    if not rows:
        return []

    grouped = (
        pd.DataFrame(rows)
        .groupby("combo", sort=False)
        .agg(count=("helped", "size"), helped=("helped", "sum"), escalated=("escalated", "sum"))
    )
    grouped = grouped[grouped["count"] >= config.min_occurrences_for_pattern]

    results = [
        StrategyCombinationResult(
            strategies=combos[key],
            occurrence_count=int(row["count"]),
            success_rate=round(100.0 * float(row["helped"]) / float(row["count"]), 1),
            escalation_rate=round(100.0 * float(row["escalated"]) / float(row["count"]), 1),
        )
        for key, row in grouped.iterrows()
    ]
    results.sort(key=lambda r: (-r.success_rate, -r.occurrence_count))
    logger.debug("Strategy combinations: %d groups, %d reported", len(grouped), len(results))
    return results


def analyze_interaction_effects(
    logs: Sequence[LogEntry], config: AnalysisConfig = DEFAULT_CONFIG
) -> List[InteractionEffect]:
    """
    Factor pairs whose joint high-arousal rate exceeds what each factor predicts alone.

    The baseline adds each factor's lift over the overall rate:
    expected = p_base + (p_a - p_base) + (p_b - p_base), clamped to [0, 1].
    """

    if not config.enable_interaction_testing:
        return []
    if len(logs) < max(config.min_logs_for_analysis, 1):
        return []

    frame = build_feature_frame(logs, calculate_adaptive_thresholds(logs, config), (), config)
    outcome = frame[OUTCOME_HIGH_AROUSAL].to_numpy(dtype=bool)
    base_rate = float(outcome.mean())

    singles = [c for c in enumerate_single_factors(frame) if int(c.mask.sum()) >= config.min_occurrences_for_pattern]
    masks = {candidate.factors[0].key: candidate.mask for candidate in singles}
    effects: List[InteractionEffect] = []
    for pair in pair_candidates(singles):
        first, second = pair.factors
        sample_size = int(pair.mask.sum())
        if sample_size < config.min_occurrences_for_pattern:
            continue

        observed = float(outcome[pair.mask].mean())
        p_left = float(outcome[masks[first.key]].mean())
        p_right = float(outcome[masks[second.key]].mean())
        expected = min(1.0, max(0.0, p_left + p_right - base_rate))
        strength = observed - expected
        if strength < config.min_interaction_strength:
            continue

        effects.append(
            InteractionEffect(
                factors=(first, second),
                observed_probability=observed,
                expected_probability=expected,
                interaction_strength=strength,
                sample_size=sample_size,
                description=(
                    f"{first.label} og {second.label} sammen: {round(observed * 100)}% høy aktivering, "
                    f"forventet {round(expected * 100)}%"
                ),
            )
        )

    effects.sort(key=lambda e: -e.interaction_strength)
    logger.debug("Interaction effects: %d above %.2f", len(effects), config.min_interaction_strength)
    return effects[: config.max_interactions]
