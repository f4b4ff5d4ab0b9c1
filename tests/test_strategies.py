# ABOUTME: Tests strategy combination outcomes and factor interaction effects.
# ABOUTME: Plants a synergistic trigger pair and strategy sets with known success rates.

from dataclasses import replace
from datetime import datetime, timedelta, timezone

from src.common.config import DEFAULT_CONFIG
from src.common.schemas import LogEntry
from src.patterns.strategies import analyze_interaction_effects, analyze_strategy_combinations

NOW = datetime(2024, 6, 12, 12, 0, tzinfo=timezone.utc)


def _log(i, arousal=5, sensory=(), context_triggers=(), strategies=(), outcome=None):
    return LogEntry(
        id=f"log-{i}",
        timestamp=NOW - timedelta(hours=i),
        arousal=arousal,
        valence=5,
        energy=5,
        sensory_triggers=tuple(sensory),
        context_triggers=tuple(context_triggers),
        strategies=tuple(strategies),
        strategy_effectiveness=outcome,
        day_of_week="tuesday",
        time_of_day="afternoon",
    )


def test_strategy_combinations_group_order_independent_sets():
    logs = [_log(i, strategies=["deep_breathing"], outcome="no_change") for i in range(20)]
    logs += [
        _log(100 + i, strategies=["headphones", "breathing"] if i % 2 else ["breathing", "headphones"], outcome="helped")
        for i in range(10)
    ]

    results = analyze_strategy_combinations(logs)

    assert len(results) == 2
    best = results[0]
    assert best.strategies == ("breathing", "headphones")
    assert best.occurrence_count == 10
    assert best.success_rate == 100.0
    assert best.escalation_rate == 0.0

    single = results[1]
    assert single.strategies == ("deep_breathing",)
    assert single.success_rate == 0.0


def test_strategy_rates_and_minimum_uses():
    outcomes = ["helped", "helped", "escalated", "no_change", None, "helped"]
    logs = [_log(i, strategies=["Pusting"], outcome=outcome) for i, outcome in enumerate(outcomes)]
    logs += [_log(50 + i, strategies=["music"], outcome="helped") for i in range(2)]
    logs += [_log(80, outcome="helped")]

    results = analyze_strategy_combinations(logs)

    assert [r.strategies for r in results] == [("breathing",)]
    assert results[0].success_rate == 50.0
    assert results[0].escalation_rate == 16.7


def test_strategy_combinations_empty():
    assert analyze_strategy_combinations([]) == []


def _synergy_logs():
    logs = []
    for i in range(40):
        group = i % 4
        sensory = ["auditory"] if group in (0, 1) else []
        context = ["transition"] if group in (0, 2) else []
        arousal = 9 if group == 0 else 3
        logs.append(_log(i, arousal=arousal, sensory=sensory, context_triggers=context))
    return logs


def test_interaction_effects_find_synergy():
    effects = analyze_interaction_effects(_synergy_logs())

    assert len(effects) == 1
    effect = effects[0]
    assert {factor.key for factor in effect.factors} == {"sensory_trigger=auditory", "context_trigger=transition"}
    assert effect.observed_probability == 1.0
    assert abs(effect.expected_probability - 0.75) < 1e-9
    assert abs(effect.interaction_strength - 0.25) < 1e-9
    assert effect.sample_size == 10


def test_interaction_effects_disabled_or_sparse():
    disabled = replace(DEFAULT_CONFIG, enable_interaction_testing=False)
    assert analyze_interaction_effects(_synergy_logs(), disabled) == []
    assert analyze_interaction_effects(_synergy_logs()[:5]) == []


def test_interaction_effects_capped():
    config = replace(DEFAULT_CONFIG, max_interactions=0)
    assert analyze_interaction_effects(_synergy_logs(), config) == []


def test_interaction_effects_keep_five_strongest_by_default():
    pairs = [
        ("auditory", "demands"),
        ("visual", "transition"),
        ("tactile", "social"),
        ("vestibular", "unexpected_event"),
        ("smell", "tired"),
        ("taste", "hungry"),
    ]
    logs = []
    for sensory, context in pairs:
        for group in range(3):
            for _ in range(4):
                logs.append(
                    _log(
                        len(logs),
                        arousal=9 if group == 0 else 3,
                        sensory=[sensory] if group in (0, 1) else [],
                        context_triggers=[context] if group in (0, 2) else [],
                    )
                )

    effects = analyze_interaction_effects(logs)

    assert len(effects) == DEFAULT_CONFIG.max_interactions == 5
    for effect in effects:
        assert effect.observed_probability == 1.0
        assert abs(effect.interaction_strength - 1 / 3) < 1e-9
