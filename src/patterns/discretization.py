# ABOUTME: Converts continuous 1-10 scales into low/mid/high bins for pattern mining.
# ABOUTME: Uses data-driven quantile cuts with a fixed-threshold fallback for sparse or flat data.

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple

from src.common.config import DEFAULT_CONFIG, AnalysisConfig
from src.common.schemas import LogEntry
from src.common.statistics import assign_to_bin, calculate_quantile_thresholds

logger = logging.getLogger(__name__)

BIN_LABELS = ("low", "mid", "high")
METHOD_QUANTILE = "quantile"
METHOD_FIXED = "fixed"


@dataclass(frozen=True)
class AdaptiveThresholds:
    """Cut points per scale and the method that produced them."""

    energy_thresholds: Tuple[float, ...]
    arousal_thresholds: Tuple[float, ...]
    energy_method: str = METHOD_FIXED
    arousal_method: str = METHOD_FIXED


def calculate_adaptive_thresholds(
    logs: Sequence[LogEntry], config: AnalysisConfig = DEFAULT_CONFIG
) -> AdaptiveThresholds:
    energy, energy_method = scale_thresholds([log.energy for log in logs], config)
    arousal, arousal_method = scale_thresholds([log.arousal for log in logs], config)
    return AdaptiveThresholds(
        energy_thresholds=energy,
        arousal_thresholds=arousal,
        energy_method=energy_method,
        arousal_method=arousal_method,
    )


def scale_thresholds(values: Sequence[float], config: AnalysisConfig = DEFAULT_CONFIG) -> Tuple[Tuple[float, ...], str]:
    """
    Pick quantile cuts when adaptive mode is on and the sample is large enough.

    Cuts that fail to ascend strictly (a flat or near-flat sample) fall back to
    the fixed thresholds, since they would put every value into one bin.
    """

    fixed = tuple(float(v) for v in config.fixed_thresholds)
    if not config.enable_adaptive_discretization or len(values) < config.min_samples_for_adaptive:
        return fixed, METHOD_FIXED

    cuts = calculate_quantile_thresholds(values, config.bin_count)
    if any(later <= earlier for earlier, later in zip(cuts, cuts[1:])):
        logger.info("Quantile thresholds %s are degenerate; using fixed thresholds %s", cuts, fixed)
        return fixed, METHOD_FIXED
    return tuple(cuts), METHOD_QUANTILE


def bin_label(value: float, thresholds: Sequence[float]) -> str:
    index = assign_to_bin(value, thresholds)
    if len(thresholds) == len(BIN_LABELS) - 1:
        return BIN_LABELS[index]
    return f"bin_{index}"


def is_top_bin(value: float, thresholds: Sequence[float]) -> bool:
    return assign_to_bin(value, thresholds) == len(thresholds)
