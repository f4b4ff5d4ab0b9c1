# ABOUTME: Renders mined patterns into a short ranked Norwegian digest for caregivers.
# ABOUTME: Falls back to a fixed "not enough data" message when nothing was found.

from __future__ import annotations

import math
from typing import List, Sequence

from src.common.schemas import Pattern

from .multi_factor import OUTCOME_HIGH_AROUSAL, OUTCOME_PHRASES

NOT_ENOUGH_DATA_MESSAGE = (
    "Ikke nok data til å finne mønstre ennå. Fortsett å registrere for å få mer presise innsikter."
)
CONFIDENCE_LABELS = {"high": "høy sikkerhet", "medium": "middels sikkerhet", "low": "lav sikkerhet"}
SUMMARY_HEADER = "Viktigste mønstre:"
SUMMARY_LIMIT = 3


def get_pattern_summary(patterns: Sequence[Pattern], limit: int = SUMMARY_LIMIT) -> str:
    """
    Rank patterns by probability and describe the strongest ones.

    Example line: "1. Energi: lav + Sensorisk trigger: auditory: 67% sjanse for høy aktivering (middels sikkerhet)"
    """

    if not patterns:
        return NOT_ENOUGH_DATA_MESSAGE

    ranked = sorted(patterns, key=lambda p: -p.probability)
    lines: List[str] = [SUMMARY_HEADER]
    for rank, pattern in enumerate(ranked[:limit], start=1):
        conditions = " + ".join(factor.label for factor in pattern.factors)
        confidence = CONFIDENCE_LABELS.get(pattern.confidence, pattern.confidence)
        phrase = OUTCOME_PHRASES.get(pattern.outcome, OUTCOME_PHRASES[OUTCOME_HIGH_AROUSAL])
        lines.append(f"{rank}. {conditions}: {_percent(pattern.probability)} {phrase} ({confidence})")
    return "\n".join(lines)


def _percent(probability: float) -> str:
    return f"{int(math.floor(probability * 100 + 0.5))}%"
