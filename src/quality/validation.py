# ABOUTME: Validates individual observation logs and crisis events field by field.
# ABOUTME: Returns structured errors (block use) and warnings (flag only), never raising.

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Mapping, Optional, Sequence

import pandas as pd

from src.common.calendar import parse_timestamp, utc_now
from src.common.data_pipeline import snake_case_keys
from src.common.schemas import (
    CONTEXT_TYPES,
    CRISIS_RESOLUTIONS,
    CRISIS_TYPES,
    STRATEGY_OUTCOMES,
    ValidationIssue,
    ValidationResult,
    as_mapping,
)


class ValidationThresholds:
    MIN_SCALE_VALUE = 1
    MAX_SCALE_VALUE = 10
    MAX_ENTRY_AGE = pd.Timedelta(days=365)
    EXTREME_AROUSAL_HIGH = 10
    EXTREME_ENERGY_LOW = 1
    MIN_DURATION_MINUTES = 1
    MAX_DURATION_MINUTES = 24 * 60
    MAX_CRISIS_SECONDS = 24 * 60 * 60


SCALE_FIELDS = (("arousal", "Aktivering"), ("valence", "Stemning"), ("energy", "Energi"))
LOG_ARRAY_FIELDS = ("sensory_triggers", "context_triggers", "strategies")
CRISIS_ARRAY_FIELDS = ("warning_signs", "sensory_triggers", "context_triggers", "strategies_used")


@dataclass(frozen=True)
class FlaggedEntry:
    entry: Any
    result: ValidationResult


class _IssueCollector:
    def __init__(self) -> None:
        self.errors: List[ValidationIssue] = []
        self.warnings: List[ValidationIssue] = []

    def error(self, field: str, message: str, code: str) -> None:
        self.errors.append(ValidationIssue(field=field, message=message, code=code))

    def warning(self, field: str, message: str, code: str) -> None:
        self.warnings.append(ValidationIssue(field=field, message=message, code=code))

    def result(self) -> ValidationResult:
        return ValidationResult(errors=tuple(self.errors), warnings=tuple(self.warnings))


def validate_log_entry(entry: Any, now: Optional[datetime] = None) -> ValidationResult:
    """
    Validate a single log entry given as a LogEntry or a raw candidate mapping.
    """

    record = _normalize(entry)
    issues = _IssueCollector()
    reference = _reference_time(now)

    _check_id(record, issues)
    _check_timestamp(record, issues, reference, warn_when_old=True)

    for name, label in SCALE_FIELDS:
        value = record.get(name)
        if value is None:
            issues.error(name, f"{label} mangler", f"MISSING_{name.upper()}")
        elif not _is_number(value) or not float(value).is_integer():
            issues.error(name, f"{label} må være et heltall", f"INVALID_{name.upper()}_TYPE")
        elif not ValidationThresholds.MIN_SCALE_VALUE <= value <= ValidationThresholds.MAX_SCALE_VALUE:
            issues.error(
                name,
                f"{label} må være mellom {ValidationThresholds.MIN_SCALE_VALUE} og {ValidationThresholds.MAX_SCALE_VALUE}",
                f"OUT_OF_RANGE_{name.upper()}",
            )

    if _is_number(record.get("arousal")) and record["arousal"] == ValidationThresholds.EXTREME_AROUSAL_HIGH:
        issues.warning("arousal", "Ekstrem aktiveringsverdi (10) registrert", "EXTREME_AROUSAL")
    if _is_number(record.get("energy")) and record["energy"] == ValidationThresholds.EXTREME_ENERGY_LOW:
        issues.warning("energy", "Svært lav energi (1) registrert", "EXTREME_ENERGY_LOW")

    duration = record.get("duration")
    if duration is not None:
        if not _is_number(duration):
            issues.error("duration", "Varighet må være et tall", "INVALID_DURATION_TYPE")
        elif duration < ValidationThresholds.MIN_DURATION_MINUTES:
            issues.warning("duration", "Varighet er svært kort (under 1 minutt)", "VERY_SHORT_DURATION")
        elif duration > ValidationThresholds.MAX_DURATION_MINUTES:
            issues.warning("duration", "Varighet er uvanlig lang (over 24 timer)", "VERY_LONG_DURATION")

    _check_arrays(record, issues, LOG_ARRAY_FIELDS)
    _check_enum(record, issues, "context", CONTEXT_TYPES, "Ukjent kontekst", "INVALID_CONTEXT")
    _check_enum(
        record,
        issues,
        "strategy_effectiveness",
        STRATEGY_OUTCOMES,
        "Ukjent strategieffekt",
        "INVALID_STRATEGY_EFFECTIVENESS",
    )
    return issues.result()


def validate_crisis_event(event: Any, now: Optional[datetime] = None) -> ValidationResult:
    """
    Validate a single crisis event given as a CrisisEvent or a raw candidate mapping.
    """

    record = _normalize(event)
    issues = _IssueCollector()

    _check_id(record, issues)
    _check_timestamp(record, issues, _reference_time(now), warn_when_old=False)

    crisis_type = record.get("type")
    if not crisis_type:
        issues.error("type", "Krisetype mangler", "MISSING_TYPE")
    elif crisis_type not in CRISIS_TYPES:
        issues.error("type", f"Ugyldig krisetype: {crisis_type}", "INVALID_TYPE")

    duration = record.get("duration_seconds")
    if duration is None:
        issues.error("duration_seconds", "Varighet mangler", "MISSING_DURATION")
    elif not _is_number(duration) or duration < 0:
        issues.error("duration_seconds", "Varighet må være et ikke-negativt tall", "INVALID_DURATION")
    elif duration > ValidationThresholds.MAX_CRISIS_SECONDS:
        issues.warning("duration_seconds", "Krisens varighet er uvanlig lang (over 24 timer)", "VERY_LONG_CRISIS")

    peak = record.get("peak_intensity")
    if peak is None:
        issues.error("peak_intensity", "Toppintensitet mangler", "MISSING_PEAK_INTENSITY")
    elif (
        not _is_number(peak)
        or not ValidationThresholds.MIN_SCALE_VALUE <= peak <= ValidationThresholds.MAX_SCALE_VALUE
    ):
        issues.error(
            "peak_intensity",
            f"Toppintensitet må være mellom {ValidationThresholds.MIN_SCALE_VALUE} og {ValidationThresholds.MAX_SCALE_VALUE}",
            "INVALID_PEAK_INTENSITY",
        )

    _check_arrays(record, issues, CRISIS_ARRAY_FIELDS)
    _check_enum(record, issues, "resolution", CRISIS_RESOLUTIONS, "Ukjent løsning", "INVALID_RESOLUTION")
    return issues.result()


def is_valid_entry(entry: Any, now: Optional[datetime] = None) -> bool:
    return validate_log_entry(entry, now=now).is_valid


def filter_valid_entries(logs: Sequence[Any], now: Optional[datetime] = None) -> List[Any]:
    return [log for log in logs if is_valid_entry(log, now=now)]


def get_entries_needing_attention(logs: Sequence[Any], now: Optional[datetime] = None) -> List[FlaggedEntry]:
    flagged = []
    for log in logs:
        result = validate_log_entry(log, now=now)
        if not result.is_valid or result.warnings:
            flagged.append(FlaggedEntry(entry=log, result=result))
    return flagged


def _normalize(record: Any) -> Mapping[str, Any]:
    return snake_case_keys(as_mapping(record))


def _reference_time(now: Optional[datetime]) -> pd.Timestamp:
    if now is None:
        return utc_now()
    return parse_timestamp(now)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    return not math.isnan(float(value))


def _check_id(record: Mapping[str, Any], issues: _IssueCollector) -> None:
    value = record.get("id")
    if not isinstance(value, str) or not value.strip():
        issues.error("id", "ID mangler eller er ugyldig", "MISSING_ID")


def _check_timestamp(
    record: Mapping[str, Any], issues: _IssueCollector, now: pd.Timestamp, warn_when_old: bool
) -> None:
    raw = record.get("timestamp")
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        issues.error("timestamp", "Tidsstempel mangler", "MISSING_TIMESTAMP")
        return

    timestamp = parse_timestamp(raw)
    if timestamp is None:
        issues.error("timestamp", "Ugyldig tidsstempelformat", "INVALID_TIMESTAMP_FORMAT")
    elif timestamp > now:
        issues.error("timestamp", "Tidsstempel kan ikke være i fremtiden", "FUTURE_TIMESTAMP")
    elif warn_when_old and now - timestamp > ValidationThresholds.MAX_ENTRY_AGE:
        issues.warning("timestamp", "Oppføringen er over ett år gammel", "OLD_ENTRY")


def _check_arrays(record: Mapping[str, Any], issues: _IssueCollector, names: Sequence[str]) -> None:
    for name in names:
        value = record.get(name)
        if value is not None and not isinstance(value, (list, tuple)):
            issues.error(name, f"{name} må være en liste", f"INVALID_{name.upper()}_TYPE")


def _check_enum(
    record: Mapping[str, Any], issues: _IssueCollector, name: str, allowed: Sequence[str], message: str, code: str
) -> None:
    value = record.get(name)
    if value is not None and value not in allowed:
        issues.error(name, f"{message}: {value}", code)
