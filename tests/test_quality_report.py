# ABOUTME: Tests the aggregated data quality report and its scoring tiers.
# ABOUTME: Verifies penalties for errors, warnings, and suspicious patterns.

from datetime import datetime, timedelta, timezone

from src.common.schemas import SuspiciousPattern
from src.quality.report import QUALITY_TIERS, generate_data_quality_report, quality_score, summarize_quality

NOW = datetime(2024, 6, 12, 12, 0, tzinfo=timezone.utc)


def _log(log_id, hours_ago, arousal):
    return {
        "id": log_id,
        "timestamp": (NOW - timedelta(hours=hours_ago)).isoformat(),
        "arousal": arousal,
        "valence": 5,
        "energy": 5,
    }


def test_empty_report_scores_perfect():
    report = generate_data_quality_report([], now=NOW)
    assert report.total_entries == 0
    assert report.quality_score == 100
    assert report.summary == QUALITY_TIERS[0][1]


def test_clean_logs_score_perfect():
    logs = [_log(f"log-{i}", hours_ago=i * 3, arousal=3 + i % 5) for i in range(8)]
    report = generate_data_quality_report(logs, now=NOW)
    assert report.valid_entries == 8
    assert report.error_entries == 0
    assert report.quality_score == 100


def test_errors_and_warnings_reduce_score():
    logs = [
        _log("ok-1", 1, 4),
        _log("ok-2", 5, 6),
        _log("bad", 9, 0),
        _log("warn", 13, 10),
    ]
    report = generate_data_quality_report(logs, now=NOW)

    assert report.total_entries == 4
    assert report.valid_entries == 3
    assert report.error_entries == 1
    assert report.warning_entries == 1
    # 100 - 25 (error ratio) - 12.5 (warning ratio) = 62.5 -> 63
    assert report.quality_score == 63
    assert report.summary == QUALITY_TIERS[2][1]


def test_crisis_events_count_towards_totals():
    crisis = {
        "id": "crisis-1",
        "timestamp": (NOW - timedelta(hours=2)).isoformat(),
        "type": "shutdown",
        "durationSeconds": 300,
        "peakIntensity": 7,
    }
    report = generate_data_quality_report([_log("ok", 1, 4)], [crisis], now=NOW)
    assert report.total_entries == 2
    assert report.valid_entries == 2


def test_pattern_penalty_is_capped():
    patterns = [SuspiciousPattern("duplicate", "", "high", ("a",), "")] * 3
    assert quality_score(10, 0, 0, patterns) == 70


def test_summary_tiers():
    assert summarize_quality(95) == QUALITY_TIERS[0][1]
    assert summarize_quality(70) == QUALITY_TIERS[1][1]
    assert summarize_quality(50) == QUALITY_TIERS[2][1]
    assert summarize_quality(10) == QUALITY_TIERS[3][1]
