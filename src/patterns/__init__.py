# ABOUTME: Groups the pattern mining layer built on the statistics primitives.
# ABOUTME: Re-exports discretization, the miners, the risk forecast, and the digest renderer.

from .discretization import AdaptiveThresholds, calculate_adaptive_thresholds
from .forecast import calculate_risk_forecast
from .multi_factor import analyze_multi_factor_patterns
from .strategies import analyze_interaction_effects, analyze_strategy_combinations
from .summary import get_pattern_summary

__all__ = [
    "AdaptiveThresholds",
    "calculate_adaptive_thresholds",
    "calculate_risk_forecast",
    "analyze_multi_factor_patterns",
    "analyze_interaction_effects",
    "analyze_strategy_combinations",
    "get_pattern_summary",
]
