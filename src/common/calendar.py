# ABOUTME: Parses record timestamps and derives calendar features from them.
# ABOUTME: Supplies day-of-week, time-of-day bucket, and hour used by pattern mining.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import pandas as pd

DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
TIME_OF_DAY_BUCKETS = ("night", "morning", "midday", "afternoon", "evening")


@dataclass(frozen=True)
class CalendarFeatures:
    day_of_week: str
    time_of_day: str
    hour_of_day: int


def parse_timestamp(value: Any) -> Optional[pd.Timestamp]:
    """
    Parse a stored timestamp into a tz-aware pandas Timestamp.

    Naive values are read as UTC. Unparsable or missing values return None.
    """

    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (str, datetime)):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        ts = pd.Timestamp(value)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return ts


def utc_now() -> pd.Timestamp:
    return pd.Timestamp.now(tz="UTC")


def time_of_day_bucket(hour: int) -> str:
    if 6 <= hour < 11:
        return "morning"
    if 11 <= hour < 14:
        return "midday"
    if 14 <= hour < 18:
        return "afternoon"
    if 18 <= hour < 22:
        return "evening"
    return "night"


def derive_calendar_features(timestamp: datetime) -> CalendarFeatures:
    ts = pd.Timestamp(timestamp)
    return CalendarFeatures(
        day_of_week=DAY_NAMES[ts.dayofweek],
        time_of_day=time_of_day_bucket(ts.hour),
        hour_of_day=int(ts.hour),
    )
