# ABOUTME: Forecasts today's risk of high arousal from the trailing month of observation logs.
# ABOUTME: Weights recent arousal by recency, conditions on the weekday, and adds a trend bonus.

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from src.common.calendar import parse_timestamp, utc_now
from src.common.schemas import ContributingFactor, LogEntry, RiskForecast
from src.common.statistics import mann_kendall_test

logger = logging.getLogger(__name__)


class ForecastSettings:
    WINDOW = pd.Timedelta(days=30)
    MIN_RECENT_LOGS = 5
    MIN_SAME_WEEKDAY_LOGS = 3
    HALF_LIFE_DAYS = 14.0
    CALM_BASELINE = 4.0
    MAX_AROUSAL = 10.0
    TREND_BONUS = 10
    HIGH_SCORE = 50
    MODERATE_SCORE = 25


def calculate_risk_forecast(logs: Sequence[LogEntry], now: Optional[datetime] = None) -> RiskForecast:
    """
    Score 0-100 how far recent arousal sits above a calm baseline.

    Steps:
    - Keep logs from the trailing 30 days; require at least 5 of them.
    - Narrow to logs on today's weekday when at least 3 exist.
    - Average arousal with exponential recency weights (14-day half-life).
    - Map the weighted mean onto 0-100 and add a bonus for a rising trend.
    """

    if not logs:
        return RiskForecast(level="low", score=0, contributing_factors=())

    reference = (utc_now() if now is None else parse_timestamp(now)).tz_convert("UTC")
    recent = _recent_frame(logs, reference)
    if len(recent) < ForecastSettings.MIN_RECENT_LOGS:
        logger.debug("Forecast skipped: %d recent logs", len(recent))
        return RiskForecast(
            level="low",
            score=0,
            contributing_factors=(ContributingFactor(key="not_enough_data", params={"count": len(recent)}),),
        )

    same_weekday = recent[recent["weekday"] == reference.dayofweek]
    use_weekday = len(same_weekday) >= ForecastSettings.MIN_SAME_WEEKDAY_LOGS
    sample = same_weekday if use_weekday else recent

    weights = np.power(0.5, sample["age_days"].to_numpy() / ForecastSettings.HALF_LIFE_DAYS)
    weighted_mean = float(np.average(sample["arousal"].to_numpy(dtype=float), weights=weights))
    raw_score = 100.0 * (weighted_mean - ForecastSettings.CALM_BASELINE) / (
        ForecastSettings.MAX_AROUSAL - ForecastSettings.CALM_BASELINE
    )

    trend = mann_kendall_test(recent["arousal"].tolist())
    rising = trend.trend == "increasing"
    if rising:
        raw_score += ForecastSettings.TREND_BONUS
    score = int(min(100.0, max(0.0, np.floor(raw_score + 0.5))))

    factors: List[ContributingFactor] = []
    if weighted_mean <= ForecastSettings.CALM_BASELINE and not rising:
        factors.append(ContributingFactor(key="calm_period", params={"mean_arousal": round(weighted_mean, 1)}))
    else:
        factors.append(
            ContributingFactor(
                key="elevated_arousal",
                weight=round(max(0.0, weighted_mean - ForecastSettings.CALM_BASELINE), 2),
                params={"mean_arousal": round(weighted_mean, 1)},
            )
        )
        if use_weekday:
            factors.append(
                ContributingFactor(
                    key="same_weekday_pattern",
                    params={"weekday": int(reference.dayofweek), "count": len(same_weekday)},
                )
            )
        if rising:
            factors.append(
                ContributingFactor(key="rising_trend", weight=round(trend.tau, 2), params={"p_value": trend.p_value})
            )

    logger.debug("Forecast: mean=%.2f score=%d weekday=%s trend=%s", weighted_mean, score, use_weekday, trend.trend)
    return RiskForecast(
        level=risk_level(score),
        score=score,
        contributing_factors=tuple(factors),
        peak_hour=_peak_hour(sample),
    )


def risk_level(score: int) -> str:
    if score > ForecastSettings.HIGH_SCORE:
        return "high"
    if score > ForecastSettings.MODERATE_SCORE:
        return "moderate"
    return "low"


def _recent_frame(logs: Sequence[LogEntry], reference: pd.Timestamp) -> pd.DataFrame:
    rows = []
    for log in logs:
        timestamp = parse_timestamp(log.timestamp)
        if timestamp is None:
            continue
        timestamp = timestamp.tz_convert("UTC")
        if not reference - ForecastSettings.WINDOW <= timestamp <= reference:
            continue
        rows.append(
            {
                "timestamp": timestamp,
                "arousal": log.arousal,
                "weekday": timestamp.dayofweek,
                "hour": log.hour_of_day if log.hour_of_day is not None else timestamp.hour,
                "age_days": (reference - timestamp) / pd.Timedelta(days=1),
            }
        )
    if not rows:
        return pd.DataFrame(columns=["timestamp", "arousal", "weekday", "hour", "age_days"])
    return pd.DataFrame(rows).sort_values("timestamp", kind="mergesort").reset_index(drop=True)


def _peak_hour(sample: pd.DataFrame) -> Optional[int]:
    if sample.empty:
        return None
    by_hour = sample.groupby("hour")["arousal"].mean()
    return int(by_hour.idxmax())
