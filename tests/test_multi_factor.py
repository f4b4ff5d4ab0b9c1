# ABOUTME: Tests multi-factor pattern mining over synthetic observation logs.
# ABOUTME: Plants trigger/arousal associations and checks detection, correction, and edge cases.

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from src.common.config import DEFAULT_CONFIG
from src.common.schemas import CrisisEvent, LogEntry
from src.patterns.multi_factor import analyze_multi_factor_patterns, confidence_tier

NOW = datetime(2024, 6, 12, 12, 0, tzinfo=timezone.utc)


def _log(i, arousal, sensory=(), context_triggers=(), context="home", energy=5):
    return LogEntry(
        id=f"log-{i}",
        timestamp=NOW - timedelta(hours=2 * i),
        arousal=arousal,
        valence=5,
        energy=energy,
        context=context,
        sensory_triggers=tuple(sensory),
        context_triggers=tuple(context_triggers),
        day_of_week="monday",
        time_of_day="morning",
    )


def _planted_logs(count=40):
    """Half the logs carry an auditory trigger and high arousal; the rest are calm."""
    return [
        _log(i, 9, sensory=["auditory"]) if i % 2 == 0 else _log(i, 3)
        for i in range(count)
    ]


def test_single_log_yields_no_patterns():
    assert analyze_multi_factor_patterns([_log(0, 9, sensory=["auditory"])]) == []


def test_too_few_logs_yields_no_patterns():
    assert analyze_multi_factor_patterns(_planted_logs(8)) == []


def test_uniform_moderate_arousal_yields_no_patterns():
    logs = [_log(i, 5, sensory=["auditory"] if i % 3 == 0 else ()) for i in range(30)]
    assert analyze_multi_factor_patterns(logs) == []


@pytest.mark.parametrize("correction", [True, False])
def test_all_high_arousal_patterns_have_probability_one(correction):
    config = replace(DEFAULT_CONFIG, enable_multiple_comparison_correction=correction)
    logs = [_log(i, 10, sensory=["auditory"] if i % 2 else ()) for i in range(30)]

    patterns = analyze_multi_factor_patterns(logs, config=config)

    assert all(pattern.probability == 1.0 for pattern in patterns)
    if not correction:
        assert patterns


def test_planted_trigger_is_top_pattern():
    patterns = analyze_multi_factor_patterns(_planted_logs())

    top = patterns[0]
    assert top.id == "sensory_trigger=auditory"
    assert top.outcome == "high_arousal"
    assert top.occurrence_count == 20
    assert top.total_occasions == 20
    assert top.sample_size == 20
    assert top.probability == 1.0
    assert top.confidence == "high"
    assert top.significant_after_correction is True
    assert top.adjusted_p_value is not None and top.adjusted_p_value < 0.01
    assert top.probability_ci.upper == 1.0
    assert top.probability_ci.lower > 0.8
    assert "20 av 20" in top.description
    assert top.context_breakdown is None


def test_patterns_are_sorted_and_capped():
    config = replace(DEFAULT_CONFIG, max_patterns=2)
    patterns = analyze_multi_factor_patterns(_planted_logs(), config=config)
    assert len(patterns) <= 2

    full = analyze_multi_factor_patterns(_planted_logs())
    keys = [(-p.probability, p.adjusted_p_value, -p.occurrence_count) for p in full]
    assert keys == sorted(keys)


def test_disabling_correction_leaves_adjusted_values_empty():
    config = replace(DEFAULT_CONFIG, enable_multiple_comparison_correction=False)
    patterns = analyze_multi_factor_patterns(_planted_logs(), config=config)
    assert patterns
    assert all(p.adjusted_p_value is None and p.significant_after_correction is None for p in patterns)


def test_min_occurrences_and_confidence_filters():
    assert analyze_multi_factor_patterns(_planted_logs(), config=replace(DEFAULT_CONFIG, min_occurrences_for_pattern=25)) == []
    assert analyze_multi_factor_patterns(_planted_logs(), config=replace(DEFAULT_CONFIG, min_confidence_threshold=1.01)) == []


def _crisis_after(logs, minutes=30):
    return [
        CrisisEvent(
            id=f"crisis-{log.id}",
            timestamp=log.timestamp + timedelta(minutes=minutes),
            type="meltdown",
            duration_seconds=600,
            peak_intensity=8,
        )
        for log in logs
        if log.context_triggers
    ]


@pytest.mark.parametrize("arousal", [2, 5])
def test_crisis_proximity_never_counts_as_high_arousal(arousal):
    logs = [_log(i, arousal, context_triggers=["transition"] if i % 2 == 0 else ()) for i in range(40)]
    crises = _crisis_after(logs)

    assert analyze_multi_factor_patterns(logs) == []
    assert analyze_multi_factor_patterns(logs, crises) == []


def test_crisis_outcome_is_reported_under_its_own_label():
    logs = [_log(i, 5, context_triggers=["transition"] if i % 2 == 0 else ()) for i in range(40)]
    config = replace(DEFAULT_CONFIG, enable_crisis_outcome=True)

    patterns = analyze_multi_factor_patterns(logs, _crisis_after(logs), config)

    assert [p.id for p in patterns] == ["context_trigger=transition->precedes_crisis"]
    assert patterns[0].outcome == "precedes_crisis"
    assert patterns[0].probability == 1.0
    assert "sjanse for krise" in patterns[0].description
    assert all(p.outcome != "high_arousal" for p in patterns)


def test_factors_shared_by_every_log_are_not_paired():
    patterns = analyze_multi_factor_patterns(_planted_logs())

    assert [p.id for p in patterns] == ["sensory_trigger=auditory"]
    ids = {p.id for p in analyze_multi_factor_patterns(_planted_logs(), config=replace(DEFAULT_CONFIG, fdr_level=1.0))}
    assert not any("+" in pattern_id and "auditory" in pattern_id for pattern_id in ids)


def test_stratified_analysis_attaches_context_breakdown():
    logs = [
        _log(i, 9 if i % 2 == 0 else 3, sensory=["auditory"] if i % 2 == 0 else (), context="home" if i % 4 < 2 else "school")
        for i in range(40)
    ]
    config = replace(DEFAULT_CONFIG, enable_stratified_analysis=True)

    patterns = {p.id: p for p in analyze_multi_factor_patterns(logs, config=config)}
    breakdown = patterns["sensory_trigger=auditory"].context_breakdown

    assert set(breakdown) == {"home", "school"}
    assert breakdown["home"].count == 10
    assert breakdown["school"].probability == 1.0


@pytest.mark.parametrize(
    "p_value, size, tier",
    [(0.001, 20, "high"), (0.001, 6, "medium"), (0.03, 12, "medium"), (0.03, 4, "low"), (0.2, 50, "low")],
)
def test_confidence_tier(p_value, size, tier):
    assert confidence_tier(p_value, size) == tier
