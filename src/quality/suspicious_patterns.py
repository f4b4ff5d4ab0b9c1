# ABOUTME: Detects suspicious patterns across a whole collection of observation logs.
# ABOUTME: Flags near-duplicates, monotonous runs, impossible timestamps, and extreme-value clusters.

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional, Sequence

import pandas as pd

from src.common.calendar import parse_timestamp, utc_now
from src.common.data_pipeline import snake_case_keys
from src.common.schemas import SuspiciousPattern, as_mapping

SCALE_COLUMNS = ["arousal", "valence", "energy"]


class SuspicionThresholds:
    DUPLICATE_WINDOW = pd.Timedelta(minutes=5)
    DUPLICATE_HIGH_SEVERITY_COUNT = 5
    MONOTONOUS_RUN = 10
    EARLIEST_PLAUSIBLE_YEAR = 2020
    EXTREME_VALUES = (1, 10)
    CLUSTER_WINDOW = pd.Timedelta(hours=1)
    MIN_CLUSTER_SIZE = 3


def detect_suspicious_patterns(logs: Sequence[Any], now: Optional[datetime] = None) -> List[SuspiciousPattern]:
    """Run every collection-level detector over the timestamp-sorted logs."""

    if len(logs) < 2:
        return []

    frame = _sorted_frame(logs)
    if len(frame) < 2:
        return []

    reference = utc_now() if now is None else parse_timestamp(now)
    candidates = (
        detect_duplicates(frame),
        detect_monotonous_runs(frame),
        detect_impossible_timestamps(frame, reference),
        detect_outlier_clusters(frame),
    )
    return [pattern for pattern in candidates if pattern]


def detect_duplicates(frame: pd.DataFrame) -> Optional[SuspiciousPattern]:
    groups: List[List[str]] = []
    rows = list(frame.itertuples(index=False))
    for current, following in zip(rows, rows[1:]):
        close_in_time = (following.timestamp - current.timestamp) < SuspicionThresholds.DUPLICATE_WINDOW
        if not (close_in_time and _same_scales(current, following)):
            continue
        if groups and groups[-1][-1] == current.id:
            groups[-1].append(following.id)
        else:
            groups.append([current.id, following.id])

    if not groups:
        return None

    affected = tuple(log_id for group in groups for log_id in group)
    severity = "high" if len(affected) > SuspicionThresholds.DUPLICATE_HIGH_SEVERITY_COUNT else "medium"
    return SuspiciousPattern(
        type="duplicate",
        description=f"{len(affected)} oppføringer ser ut til å være duplikater (identiske verdier innen 5 minutter)",
        severity=severity,
        affected_ids=affected,
        recommendation="Vurder å slette duplikate oppføringer for mer nøyaktig analyse.",
    )


def detect_monotonous_runs(frame: pd.DataFrame) -> Optional[SuspiciousPattern]:
    if len(frame) < SuspicionThresholds.MONOTONOUS_RUN:
        return None

    runs: List[List[str]] = []
    current_run: List[str] = []
    previous = None
    for row in frame.itertuples(index=False):
        if previous is not None and _same_scales(previous, row):
            current_run.append(row.id)
        else:
            if len(current_run) >= SuspicionThresholds.MONOTONOUS_RUN:
                runs.append(current_run)
            current_run = [row.id]
        previous = row
    if len(current_run) >= SuspicionThresholds.MONOTONOUS_RUN:
        runs.append(current_run)

    if not runs:
        return None

    affected = tuple(log_id for run in runs for log_id in run)
    return SuspiciousPattern(
        type="monotonous",
        description=f"{len(affected)} oppføringer på rad har identiske verdier for aktivering, stemning og energi",
        severity="high",
        affected_ids=affected,
        recommendation="Mange identiske verdier kan tyde på at dataene ikke gjenspeiler faktisk variasjon. Vurder datakvaliteten.",
    )


def detect_impossible_timestamps(frame: pd.DataFrame, now: pd.Timestamp) -> Optional[SuspiciousPattern]:
    mask = (frame["timestamp"] > now) | (frame["timestamp"].dt.year < SuspicionThresholds.EARLIEST_PLAUSIBLE_YEAR)
    affected = tuple(frame.loc[mask, "id"])
    if not affected:
        return None
    return SuspiciousPattern(
        type="impossible_timestamp",
        description=f"{len(affected)} oppføringer har umulige tidsstempler (i fremtiden eller før 2020)",
        severity="high",
        affected_ids=affected,
        recommendation="Korriger eller slett oppføringer med ugyldige tidsstempler.",
    )


def detect_outlier_clusters(frame: pd.DataFrame) -> Optional[SuspiciousPattern]:
    extremes = SuspicionThresholds.EXTREME_VALUES
    extreme = frame[frame["arousal"].isin(extremes) | frame["energy"].isin(extremes)]
    if len(extreme) < SuspicionThresholds.MIN_CLUSTER_SIZE:
        return None

    clusters: List[List[str]] = []
    cluster: List[str] = []
    last_time = None
    for row in extreme.itertuples(index=False):
        if last_time is not None and row.timestamp - last_time < SuspicionThresholds.CLUSTER_WINDOW:
            cluster.append(row.id)
        else:
            if len(cluster) >= SuspicionThresholds.MIN_CLUSTER_SIZE:
                clusters.append(cluster)
            cluster = [row.id]
        last_time = row.timestamp
    if len(cluster) >= SuspicionThresholds.MIN_CLUSTER_SIZE:
        clusters.append(cluster)

    if not clusters:
        return None

    return SuspiciousPattern(
        type="outlier_cluster",
        description=f"{len(clusters)} klynge(r) med ekstreme verdier funnet (3+ ekstreme verdier innen 1 time)",
        severity="medium",
        affected_ids=tuple(log_id for group in clusters for log_id in group),
        recommendation="Mange ekstreme verdier tett sammen kan tyde på kriseepisoder eller registreringsfeil. Verifiser dataene.",
    )


def _sorted_frame(logs: Sequence[Any]) -> pd.DataFrame:
    rows = []
    for log in logs:
        record = snake_case_keys(as_mapping(log))
        timestamp = parse_timestamp(record.get("timestamp"))
        if timestamp is None:
            continue
        rows.append(
            {
                "id": "" if record.get("id") is None else str(record.get("id")),
                "timestamp": timestamp.tz_convert("UTC"),
                "arousal": record.get("arousal"),
                "valence": record.get("valence"),
                "energy": record.get("energy"),
            }
        )
    if not rows:
        return pd.DataFrame(columns=["id", "timestamp", *SCALE_COLUMNS])
    frame = pd.DataFrame(rows)
    return frame.sort_values("timestamp", kind="mergesort").reset_index(drop=True)


def _same_scales(left: Any, right: Any) -> bool:
    return all(
        getattr(left, column) is not None and getattr(left, column) == getattr(right, column)
        for column in SCALE_COLUMNS
    )
