# ABOUTME: Declares the analysis configuration threaded through every mining call.
# ABOUTME: Loads overrides from the `analysis` section of a YAML config file.

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

import yaml


@dataclass(frozen=True)
class AnalysisConfig:
    """Configuration for pattern mining, discretization, and strategy analysis."""

    min_occurrences_for_pattern: int = 3
    enable_multiple_comparison_correction: bool = True
    fdr_level: float = 0.05
    enable_adaptive_discretization: bool = True
    enable_stratified_analysis: bool = False
    enable_interaction_testing: bool = True
    min_confidence_threshold: float = 0.5
    min_logs_for_analysis: int = 10
    min_samples_for_adaptive: int = 20
    bin_count: int = 3
    fixed_thresholds: Tuple[float, float] = (4.0, 8.0)
    enable_crisis_outcome: bool = False
    crisis_window_minutes: int = 60
    confidence_level: float = 0.95
    max_patterns: int = 10
    max_interactions: int = 5
    min_interaction_strength: float = 0.1


DEFAULT_CONFIG = AnalysisConfig()


def config_from_mapping(overrides: Optional[Mapping[str, Any]], base: AnalysisConfig = DEFAULT_CONFIG) -> AnalysisConfig:
    """Apply a mapping of overrides to a base config, rejecting unknown keys."""

    if not overrides:
        return base
    known = {f.name for f in fields(AnalysisConfig)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ValueError(f"Unsupported analysis option(s): {', '.join(unknown)}.")
    values = dict(overrides)
    if "fixed_thresholds" in values:
        values["fixed_thresholds"] = tuple(float(v) for v in values["fixed_thresholds"])
    return replace(base, **values)


def load_analysis_config(config_path: Path) -> AnalysisConfig:
    """Read the `analysis` section of a YAML file into an AnalysisConfig."""

    with open(config_path) as f:
        cfg = yaml.safe_load(f) or {}

    if not isinstance(cfg, Mapping):
        raise ValueError(f"Config file {config_path} must contain a mapping.")
    return config_from_mapping(cfg.get("analysis", {}))
