# ABOUTME: Builds canonical log and crisis records from the application's JSON export.
# ABOUTME: Normalizes camelCase keys, legacy vocabulary, and derived calendar features.

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .calendar import derive_calendar_features, parse_timestamp
from .schemas import CrisisEvent, LogEntry
from .vocabulary import CONTEXT_TRIGGERS, SENSORY_TRIGGERS, STRATEGIES, WARNING_SIGNS, normalize_values

logger = logging.getLogger(__name__)

LOG_COLLECTION_KEYS = ("logs", "logEntries", "kreativium_logs")
CRISIS_COLLECTION_KEYS = ("crisisEvents", "crisis_events", "kreativium_crisis_events")

Record = Union[LogEntry, CrisisEvent, Mapping[str, Any]]

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


@dataclass(frozen=True)
class ObservationExport:
    """Records read from one export; rows that could not be built stay as raw mappings."""

    logs: Tuple[Record, ...]
    crisis_events: Tuple[Record, ...]

    @property
    def log_entries(self) -> List[LogEntry]:
        return [record for record in self.logs if isinstance(record, LogEntry)]

    @property
    def crisis_records(self) -> List[CrisisEvent]:
        return [record for record in self.crisis_events if isinstance(record, CrisisEvent)]


def snake_case_keys(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return {_CAMEL_BOUNDARY.sub("_", str(key)).lower(): value for key, value in raw.items()}


def build_log_entry(raw: Mapping[str, Any]) -> Optional[LogEntry]:
    """
    Convert a stored log mapping into a LogEntry.

    Returns None when required fields cannot be coerced; the quality layer
    reports those rows from the raw mapping instead.
    """

    row = snake_case_keys(raw)
    timestamp = parse_timestamp(row.get("timestamp"))
    scales = [_as_int(row.get(name)) for name in ("arousal", "valence", "energy")]
    if not row.get("id") or timestamp is None or any(value is None for value in scales):
        return None
    if _has_malformed_arrays(row, ("sensory_triggers", "context_triggers", "strategies")):
        return None

    calendar = derive_calendar_features(timestamp)
    arousal, valence, energy = scales
    return LogEntry(
        id=str(row["id"]),
        timestamp=timestamp.to_pydatetime(),
        arousal=arousal,
        valence=valence,
        energy=energy,
        context=row.get("context") or "home",
        duration=_as_int(row.get("duration")),
        sensory_triggers=normalize_values(_as_list(row.get("sensory_triggers")), SENSORY_TRIGGERS),
        context_triggers=normalize_values(_as_list(row.get("context_triggers")), CONTEXT_TRIGGERS),
        strategies=normalize_values(_as_list(row.get("strategies")), STRATEGIES),
        strategy_effectiveness=row.get("strategy_effectiveness"),
        day_of_week=row.get("day_of_week") or calendar.day_of_week,
        time_of_day=row.get("time_of_day") or calendar.time_of_day,
        hour_of_day=_as_int(row.get("hour_of_day")) if row.get("hour_of_day") is not None else calendar.hour_of_day,
        note=row.get("note") or "",
    )


def build_crisis_event(raw: Mapping[str, Any]) -> Optional[CrisisEvent]:
    row = snake_case_keys(raw)
    timestamp = parse_timestamp(row.get("timestamp"))
    duration = _as_int(row.get("duration_seconds"))
    peak = _as_int(row.get("peak_intensity"))
    if not row.get("id") or timestamp is None or not row.get("type") or duration is None or peak is None:
        return None
    if _has_malformed_arrays(row, ("warning_signs", "sensory_triggers", "context_triggers", "strategies_used")):
        return None

    calendar = derive_calendar_features(timestamp)
    return CrisisEvent(
        id=str(row["id"]),
        timestamp=timestamp.to_pydatetime(),
        type=str(row["type"]),
        duration_seconds=duration,
        peak_intensity=peak,
        context=row.get("context") or "home",
        preceding_arousal=_as_int(row.get("preceding_arousal")),
        preceding_energy=_as_int(row.get("preceding_energy")),
        warning_signs=normalize_values(_as_list(row.get("warning_signs")), WARNING_SIGNS),
        sensory_triggers=normalize_values(_as_list(row.get("sensory_triggers")), SENSORY_TRIGGERS),
        context_triggers=normalize_values(_as_list(row.get("context_triggers")), CONTEXT_TRIGGERS),
        strategies_used=normalize_values(_as_list(row.get("strategies_used")), STRATEGIES),
        resolution=row.get("resolution") or "other",
        has_audio_recording=bool(row.get("has_audio_recording", False)),
        recovery_time_minutes=_as_int(row.get("recovery_time_minutes")),
        notes=row.get("notes") or "",
        day_of_week=calendar.day_of_week,
        time_of_day=calendar.time_of_day,
        hour_of_day=calendar.hour_of_day,
    )


def prepare_records(
    raw_logs: Sequence[Mapping[str, Any]], raw_crises: Sequence[Mapping[str, Any]] = ()
) -> ObservationExport:
    logs: List[Record] = []
    for raw in raw_logs:
        entry = build_log_entry(raw) if isinstance(raw, Mapping) else None
        logs.append(entry if entry is not None else _raw_record(raw))

    crises: List[Record] = []
    for raw in raw_crises:
        event = build_crisis_event(raw) if isinstance(raw, Mapping) else None
        crises.append(event if event is not None else _raw_record(raw))

    skipped = sum(1 for record in logs + crises if not isinstance(record, (LogEntry, CrisisEvent)))
    if skipped:
        logger.info("Kept %d malformed record(s) as raw mappings for quality reporting", skipped)
    return ObservationExport(logs=tuple(logs), crisis_events=tuple(crises))


def load_observation_export(path: Path) -> ObservationExport:
    """
    Read a JSON export holding logs and crisis events.

    Accepts `{"logs": [...], "crisisEvents": [...]}` or a bare list of logs.
    """

    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(payload, list):
        return prepare_records(payload)
    if not isinstance(payload, Mapping):
        raise ValueError(f"Unsupported export layout in {path}: expected an object or a list.")

    raw_logs = _first_collection(payload, LOG_COLLECTION_KEYS)
    raw_crises = _first_collection(payload, CRISIS_COLLECTION_KEYS)
    logger.debug("Loaded %d log(s) and %d crisis event(s) from %s", len(raw_logs), len(raw_crises), path)
    return prepare_records(raw_logs, raw_crises)


def _first_collection(payload: Mapping[str, Any], keys: Sequence[str]) -> List[Any]:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, list):
            return value
    return []


def _raw_record(raw: Any) -> Mapping[str, Any]:
    return snake_case_keys(raw) if isinstance(raw, Mapping) else {"id": None, "value": raw}


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _has_malformed_arrays(row: Mapping[str, Any], names: Sequence[str]) -> bool:
    return any(row.get(name) is not None and not isinstance(row.get(name), (list, tuple)) for name in names)


def _as_list(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [item for item in value if isinstance(item, str)]
    return []
