# ABOUTME: Groups the validation and data quality layer.
# ABOUTME: Re-exports record validators, suspicious-pattern detection, and the quality report.

from .report import generate_data_quality_report
from .suspicious_patterns import detect_suspicious_patterns
from .validation import (
    filter_valid_entries,
    get_entries_needing_attention,
    is_valid_entry,
    validate_crisis_event,
    validate_log_entry,
)

__all__ = [
    "generate_data_quality_report",
    "detect_suspicious_patterns",
    "filter_valid_entries",
    "get_entries_needing_attention",
    "is_valid_entry",
    "validate_crisis_event",
    "validate_log_entry",
]
