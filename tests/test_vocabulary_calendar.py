# ABOUTME: Tests controlled vocabulary resolution and calendar feature derivation.
# ABOUTME: Ensures legacy labels map to keys and unknown text stays tagged as legacy.

from datetime import datetime, timezone

import pytest

from src.common.calendar import derive_calendar_features, parse_timestamp, time_of_day_bucket
from src.common.vocabulary import (
    SENSORY_TRIGGERS,
    STRATEGIES,
    ControlledKey,
    LegacyText,
    normalize_values,
)


def test_resolve_prefers_exact_key_then_legacy_label():
    assert SENSORY_TRIGGERS.resolve("auditory") == ControlledKey("auditory")
    assert SENSORY_TRIGGERS.resolve("Auditiv") == ControlledKey("auditory")
    assert STRATEGIES.resolve("Dypt Trykk") == ControlledKey("deep_pressure")


def test_resolve_is_case_insensitive_for_keys_and_labels():
    assert SENSORY_TRIGGERS.resolve("  AUDITORY ") == ControlledKey("auditory")
    assert STRATEGIES.resolve("mørkt rom") == ControlledKey("dark_room")


def test_unknown_values_stay_legacy_text():
    term = STRATEGIES.resolve("Gå en tur")
    assert isinstance(term, LegacyText)
    assert term.value == "Gå en tur"


def test_normalize_values_deduplicates_and_skips_blanks():
    values = ["Auditiv", "auditory", "", "Lys", "Ukjent lyd"]
    assert normalize_values(values, SENSORY_TRIGGERS) == ("auditory", "light", "Ukjent lyd")


@pytest.mark.parametrize(
    "hour, bucket",
    [(6, "morning"), (10, "morning"), (11, "midday"), (14, "afternoon"), (18, "evening"), (22, "night"), (3, "night")],
)
def test_time_of_day_bucket(hour, bucket):
    assert time_of_day_bucket(hour) == bucket


def test_derive_calendar_features():
    features = derive_calendar_features(datetime(2024, 6, 12, 15, 30, tzinfo=timezone.utc))
    assert features.day_of_week == "wednesday"
    assert features.time_of_day == "afternoon"
    assert features.hour_of_day == 15


def test_parse_timestamp_handles_naive_invalid_and_missing_values():
    parsed = parse_timestamp("2024-06-12T08:00:00")
    assert parsed is not None
    assert str(parsed.tzinfo) == "UTC"
    assert parse_timestamp("2024-06-12T08:00:00+02:00").hour == 8
    assert parse_timestamp("yesterday-ish") is None
    assert parse_timestamp(None) is None
    assert parse_timestamp(12345) is None
