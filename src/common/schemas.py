# ABOUTME: Defines canonical data structures shared by validation and pattern mining.
# ABOUTME: Centralizes observation log, crisis event, and analysis result schemas.

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime
from typing import Any, List, Mapping, Optional, Tuple

CONTEXT_TYPES = ("home", "school", "other")
STRATEGY_OUTCOMES = ("helped", "no_change", "escalated")
CRISIS_TYPES = ("meltdown", "shutdown", "mixed")
CRISIS_RESOLUTIONS = ("self_regulated", "co_regulated", "timed_out", "other")


@dataclass(frozen=True)
class LogEntry:
    """Canonical observation log row produced by ingest."""

    id: str
    timestamp: datetime
    arousal: int
    valence: int
    energy: int
    context: str = "home"
    duration: Optional[int] = None
    sensory_triggers: Tuple[str, ...] = ()
    context_triggers: Tuple[str, ...] = ()
    strategies: Tuple[str, ...] = ()
    strategy_effectiveness: Optional[str] = None
    day_of_week: Optional[str] = None
    time_of_day: Optional[str] = None
    hour_of_day: Optional[int] = None
    note: str = ""


@dataclass(frozen=True)
class CrisisEvent:
    """Canonical crisis event row produced by ingest."""

    id: str
    timestamp: datetime
    type: str
    duration_seconds: int
    peak_intensity: int
    context: str = "home"
    preceding_arousal: Optional[int] = None
    preceding_energy: Optional[int] = None
    warning_signs: Tuple[str, ...] = ()
    sensory_triggers: Tuple[str, ...] = ()
    context_triggers: Tuple[str, ...] = ()
    strategies_used: Tuple[str, ...] = ()
    resolution: str = "other"
    has_audio_recording: bool = False
    recovery_time_minutes: Optional[int] = None
    notes: str = ""
    day_of_week: Optional[str] = None
    time_of_day: Optional[str] = None
    hour_of_day: Optional[int] = None


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    message: str
    code: str


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one record; warnings never affect validity."""

    errors: Tuple[ValidationIssue, ...] = ()
    warnings: Tuple[ValidationIssue, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def error_codes(self) -> List[str]:
        return [issue.code for issue in self.errors]

    def warning_codes(self) -> List[str]:
        return [issue.code for issue in self.warnings]


@dataclass(frozen=True)
class SuspiciousPattern:
    type: str
    description: str
    severity: str
    affected_ids: Tuple[str, ...]
    recommendation: str


@dataclass(frozen=True)
class DataQualityIssue:
    type: str
    severity: str
    description: str
    affected_log_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DataQualityReport:
    total_entries: int
    valid_entries: int
    error_entries: int
    warning_entries: int
    suspicious_patterns: Tuple[SuspiciousPattern, ...]
    quality_score: int
    summary: str


@dataclass(frozen=True)
class ConfidenceInterval:
    lower: float
    upper: float
    point: float


@dataclass(frozen=True)
class DiscretizedFactor:
    """Atomic condition combined into pattern hypotheses."""

    type: str
    value: str
    operator: str
    label: str

    @property
    def key(self) -> str:
        return f"{self.type}={self.value}"


@dataclass(frozen=True)
class ContextBreakdown:
    count: int
    total: int
    probability: float


@dataclass(frozen=True)
class Pattern:
    """A mined factor combination and its association with the outcome."""

    id: str
    factors: Tuple[DiscretizedFactor, ...]
    outcome: str
    occurrence_count: int
    total_occasions: int
    probability: float
    p_value: float
    confidence: str
    description: str
    probability_ci: Optional[ConfidenceInterval] = None
    adjusted_p_value: Optional[float] = None
    significant_after_correction: Optional[bool] = None
    context_breakdown: Optional[Mapping[str, ContextBreakdown]] = None

    @property
    def sample_size(self) -> int:
        return self.total_occasions


@dataclass(frozen=True)
class StrategyCombinationResult:
    strategies: Tuple[str, ...]
    occurrence_count: int
    success_rate: float
    escalation_rate: float


@dataclass(frozen=True)
class InteractionEffect:
    factors: Tuple[DiscretizedFactor, DiscretizedFactor]
    observed_probability: float
    expected_probability: float
    interaction_strength: float
    sample_size: int
    description: str


@dataclass(frozen=True)
class ContributingFactor:
    key: str
    weight: float = 0.0
    params: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RiskForecast:
    level: str
    score: int
    contributing_factors: Tuple[ContributingFactor, ...] = ()
    peak_hour: Optional[int] = None


def as_mapping(record: Any) -> Mapping[str, Any]:
    """View a record dataclass or a raw candidate mapping as a field mapping."""

    if isinstance(record, Mapping):
        return record
    if is_dataclass(record) and not isinstance(record, type):
        return {f.name: getattr(record, f.name) for f in fields(record)}
    return {}
