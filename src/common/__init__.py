# ABOUTME: Makes the shared common package importable across the quality and pattern layers.
# ABOUTME: Re-exports record schemas, configuration, and ingest helpers for convenience.

from .config import DEFAULT_CONFIG, AnalysisConfig, load_analysis_config
from .data_pipeline import ObservationExport, load_observation_export, prepare_records
from .schemas import CrisisEvent, LogEntry, Pattern, RiskForecast, ValidationResult

__all__ = [
    "DEFAULT_CONFIG",
    "AnalysisConfig",
    "load_analysis_config",
    "ObservationExport",
    "load_observation_export",
    "prepare_records",
    "CrisisEvent",
    "LogEntry",
    "Pattern",
    "RiskForecast",
    "ValidationResult",
]
