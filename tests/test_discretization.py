# ABOUTME: Tests adaptive discretization of energy and arousal scales.
# ABOUTME: Ensures quantile cuts follow the data and fall back to fixed thresholds when needed.

from dataclasses import replace
from datetime import datetime, timedelta, timezone

from src.common.config import DEFAULT_CONFIG
from src.common.schemas import LogEntry
from src.patterns.discretization import bin_label, calculate_adaptive_thresholds, is_top_bin, scale_thresholds

NOW = datetime(2024, 6, 12, 12, 0, tzinfo=timezone.utc)


def _logs(energies, arousals):
    return [
        LogEntry(id=f"log-{i}", timestamp=NOW - timedelta(hours=i), arousal=a, valence=5, energy=e)
        for i, (e, a) in enumerate(zip(energies, arousals))
    ]


def test_dense_low_block_stays_in_low_bin():
    logs = _logs([2] * 15 + [5] * 10 + [9] * 5, list(range(1, 11)) * 3)
    thresholds = calculate_adaptive_thresholds(logs, DEFAULT_CONFIG)

    assert thresholds.energy_method == "quantile"
    assert thresholds.energy_thresholds == (5.0, 9.0)
    assert thresholds.arousal_thresholds == (4.0, 8.0)
    assert bin_label(2, thresholds.energy_thresholds) == "low"
    assert bin_label(5, thresholds.energy_thresholds) == "mid"


def test_mostly_low_energy_is_labelled_low():
    logs = _logs([2] * 25 + [9] * 5, list(range(1, 11)) * 3)
    thresholds = calculate_adaptive_thresholds(logs, DEFAULT_CONFIG)

    assert bin_label(2, thresholds.energy_thresholds) == "low"
    assert is_top_bin(9, thresholds.energy_thresholds)


def test_small_samples_use_fixed_thresholds():
    logs = _logs([2, 3, 4], [5, 6, 7])
    thresholds = calculate_adaptive_thresholds(logs, DEFAULT_CONFIG)
    assert thresholds.energy_method == "fixed"
    assert thresholds.energy_thresholds == (4.0, 8.0)


def test_disabled_adaptive_mode_uses_fixed_thresholds():
    config = replace(DEFAULT_CONFIG, enable_adaptive_discretization=False, fixed_thresholds=(3.0, 7.0))
    values, method = scale_thresholds(list(range(1, 11)) * 3, config)
    assert method == "fixed"
    assert values == (3.0, 7.0)


def test_flat_sample_falls_back_to_fixed_thresholds():
    values, method = scale_thresholds([5] * 30, DEFAULT_CONFIG)
    assert method == "fixed"
    assert values == (4.0, 8.0)


def test_bin_labels_and_top_bin():
    thresholds = (4.0, 8.0)
    assert bin_label(3, thresholds) == "low"
    assert bin_label(4, thresholds) == "mid"
    assert bin_label(7, thresholds) == "mid"
    assert bin_label(8, thresholds) == "high"
    assert is_top_bin(9, thresholds)
    assert not is_top_bin(7, thresholds)
    assert bin_label(5, (3.0, 5.0, 7.0)) == "bin_2"
