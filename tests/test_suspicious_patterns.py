# ABOUTME: Tests collection-level detection of suspicious logging patterns.
# ABOUTME: Uses synthetic log sequences to trigger duplicates, monotony, and bad timestamps.

from datetime import datetime, timedelta, timezone

from src.quality.suspicious_patterns import detect_suspicious_patterns

NOW = datetime(2024, 6, 12, 12, 0, tzinfo=timezone.utc)


def _log(log_id, minutes_ago, arousal=5, valence=5, energy=5):
    return {
        "id": log_id,
        "timestamp": (NOW - timedelta(minutes=minutes_ago)).isoformat(),
        "arousal": arousal,
        "valence": valence,
        "energy": energy,
    }


def _by_type(patterns):
    return {pattern.type: pattern for pattern in patterns}


def test_empty_or_single_input_has_no_patterns():
    assert detect_suspicious_patterns([], now=NOW) == []
    assert detect_suspicious_patterns([_log("a", 10)], now=NOW) == []


def test_identical_logs_a_minute_apart_are_duplicates():
    patterns = _by_type(detect_suspicious_patterns([_log("a", 10), _log("b", 9)], now=NOW))
    duplicate = patterns["duplicate"]
    assert duplicate.affected_ids == ("a", "b")
    assert duplicate.severity == "medium"


def test_duplicates_far_apart_or_different_are_ignored():
    logs = [_log("a", 100), _log("b", 90), _log("c", 89, arousal=6)]
    assert "duplicate" not in _by_type(detect_suspicious_patterns(logs, now=NOW))


def test_long_identical_run_is_monotonous_and_high_severity():
    logs = [_log(f"log-{i}", 60 * (12 - i), arousal=4, valence=6, energy=5) for i in range(12)]
    patterns = _by_type(detect_suspicious_patterns(logs, now=NOW))

    monotonous = patterns["monotonous"]
    assert monotonous.severity == "high"
    assert len(monotonous.affected_ids) == 12
    assert "duplicate" not in patterns


def test_future_and_pre_2020_timestamps_are_impossible():
    logs = [
        _log("future", -60, arousal=3),
        {"id": "ancient", "timestamp": "2015-01-01T00:00:00Z", "arousal": 4, "valence": 4, "energy": 4},
        _log("fine", 30, arousal=6),
    ]
    impossible = _by_type(detect_suspicious_patterns(logs, now=NOW))["impossible_timestamp"]
    assert set(impossible.affected_ids) == {"future", "ancient"}
    assert impossible.severity == "high"


def test_extreme_values_within_an_hour_form_a_cluster():
    logs = [
        _log("x1", 50, arousal=10, valence=2),
        _log("x2", 35, arousal=10, valence=3),
        _log("x3", 20, arousal=9, energy=1),
        _log("calm", 300, arousal=4, valence=7),
    ]
    cluster = _by_type(detect_suspicious_patterns(logs, now=NOW))["outlier_cluster"]
    assert cluster.affected_ids == ("x1", "x2", "x3")
    assert cluster.severity == "medium"


def test_unparsable_timestamps_are_skipped():
    logs = [_log("a", 10), {"id": "b", "timestamp": "??", "arousal": 5, "valence": 5, "energy": 5}]
    assert detect_suspicious_patterns(logs, now=NOW) == []
