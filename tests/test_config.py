# ABOUTME: Tests loading analysis configuration from YAML and override mappings.
# ABOUTME: Ensures unknown keys are rejected and defaults stay intact.

import tempfile
import unittest
from pathlib import Path

import pytest

from src.common.config import DEFAULT_CONFIG, config_from_mapping, load_analysis_config


class AnalysisConfigTest(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name)

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    def test_loads_analysis_section(self) -> None:
        path = self.root / "analysis.yaml"
        path.write_text(
            "analysis:\n  min_occurrences_for_pattern: 5\n  fixed_thresholds: [3, 7]\n  enable_stratified_analysis: true\n",
            encoding="utf-8",
        )
        config = load_analysis_config(path)
        self.assertEqual(config.min_occurrences_for_pattern, 5)
        self.assertEqual(config.fixed_thresholds, (3.0, 7.0))
        self.assertTrue(config.enable_stratified_analysis)
        self.assertEqual(config.fdr_level, DEFAULT_CONFIG.fdr_level)

    def test_empty_file_uses_defaults(self) -> None:
        path = self.root / "empty.yaml"
        path.write_text("", encoding="utf-8")
        self.assertEqual(load_analysis_config(path), DEFAULT_CONFIG)

    def test_non_mapping_file_is_rejected(self) -> None:
        path = self.root / "list.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        with self.assertRaises(ValueError):
            load_analysis_config(path)

    def test_repository_config_matches_defaults(self) -> None:
        path = Path(__file__).resolve().parents[1] / "configs" / "analysis.yaml"
        self.assertEqual(load_analysis_config(path), DEFAULT_CONFIG)


def test_config_from_mapping_rejects_unknown_keys():
    with pytest.raises(ValueError, match="min_support"):
        config_from_mapping({"min_support": 2})


def test_config_from_mapping_keeps_base_when_empty():
    assert config_from_mapping(None) is DEFAULT_CONFIG
    assert config_from_mapping({"max_patterns": 3}).max_patterns == 3
