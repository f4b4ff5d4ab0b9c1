# ABOUTME: Aggregates validation results and suspicious patterns into a data quality report.
# ABOUTME: Scores the collection from 0 to 100 and picks a Norwegian summary sentence per tier.

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Optional, Sequence

from src.common.schemas import DataQualityReport, SuspiciousPattern

from .suspicious_patterns import detect_suspicious_patterns
from .validation import validate_crisis_event, validate_log_entry

logger = logging.getLogger(__name__)

SEVERITY_PENALTY = {"high": 15, "medium": 10, "low": 5}
MAX_ERROR_PENALTY = 50
MAX_WARNING_PENALTY = 20
MAX_PATTERN_PENALTY = 30

QUALITY_TIERS = (
    (90, "Utmerket datakvalitet. Dataene er pålitelige for analyse."),
    (70, "God datakvalitet med noen advarsler. Vurder å gjennomgå flaggede oppføringer."),
    (50, "Moderat datakvalitet. Flere problemer ble funnet som kan påvirke analysenøyaktigheten."),
    (0, "Lav datakvalitet. Betydelige problemer ble funnet. Analyseresultater kan være upålitelige."),
)


def generate_data_quality_report(
    logs: Sequence[Any],
    crisis_events: Optional[Sequence[Any]] = None,
    now: Optional[datetime] = None,
) -> DataQualityReport:
    """
    Validate every record, scan logs for suspicious patterns, and score the collection.

    Steps:
    - Count valid, erroneous, and warned records across logs and crisis events.
    - Detect suspicious patterns over the logs.
    - Deduct capped penalties for error ratio, warning ratio, and pattern severity.
    """

    valid = errors = warned = 0
    results = [validate_log_entry(log, now=now) for log in logs]
    results += [validate_crisis_event(event, now=now) for event in crisis_events or ()]
    for result in results:
        if result.is_valid:
            valid += 1
        else:
            errors += 1
        if result.warnings:
            warned += 1

    patterns = detect_suspicious_patterns(logs, now=now)
    total = len(results)
    score = quality_score(total, errors, warned, patterns)
    logger.debug(
        "Quality report: total=%d valid=%d errors=%d warnings=%d patterns=%d score=%d",
        total,
        valid,
        errors,
        warned,
        len(patterns),
        score,
    )
    return DataQualityReport(
        total_entries=total,
        valid_entries=valid,
        error_entries=errors,
        warning_entries=warned,
        suspicious_patterns=tuple(patterns),
        quality_score=score,
        summary=summarize_quality(score),
    )


def quality_score(total: int, errors: int, warned: int, patterns: Sequence[SuspiciousPattern]) -> int:
    score = 100.0
    if total > 0:
        score -= min(MAX_ERROR_PENALTY, errors / total * 100)
        score -= min(MAX_WARNING_PENALTY, warned / total * 50)
        pattern_penalty = sum(SEVERITY_PENALTY.get(pattern.severity, 0) for pattern in patterns)
        score -= min(MAX_PATTERN_PENALTY, pattern_penalty)
    return max(0, int(math.floor(score + 0.5)))


def summarize_quality(score: int) -> str:
    for floor, sentence in QUALITY_TIERS:
        if score >= floor:
            return sentence
    return QUALITY_TIERS[-1][1]
