import json
import tempfile
import unittest
from pathlib import Path

from cte_reconciler.config import config_from_dict, config_to_dict, load_config, load_overrides
from cte_reconciler.models import DEFAULT_CONFIG


class LoadConfigTests(unittest.TestCase):
    def test_no_path_gives_defaults(self):
        self.assertIs(load_config(None), DEFAULT_CONFIG)

    def test_partial_json_keeps_defaults_for_missing_keys(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.json"
            path.write_text(json.dumps({"fixed_route_value": 1400}), encoding="utf-8")
            config = load_config(path)
        self.assertEqual(config.fixed_route_value, 1400.0)
        self.assertEqual(config.haul_max_threshold, DEFAULT_CONFIG.haul_max_threshold)
        self.assertEqual(config.common_haul_values, DEFAULT_CONFIG.common_haul_values)

    def test_yaml_is_rejected_honestly(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.yml"
            path.write_text("fixed_route_value: 1400\n", encoding="utf-8")
            with self.assertRaisesRegex(ValueError, "YAML"):
                load_config(path)

    def test_invalid_json_and_bad_types(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            broken = Path(tmpdir) / "broken.json"
            broken.write_text("{not json", encoding="utf-8")
            with self.assertRaisesRegex(ValueError, "Invalid JSON"):
                load_config(broken)

            wrong = Path(tmpdir) / "wrong.json"
            wrong.write_text(json.dumps({"haul_max_threshold": "lots"}), encoding="utf-8")
            with self.assertRaisesRegex(ValueError, "haul_max_threshold"):
                load_config(wrong)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_config("/nonexistent/config.json")

    def test_dict_round_trip_matches_defaults(self):
        self.assertEqual(config_from_dict(config_to_dict(DEFAULT_CONFIG)), DEFAULT_CONFIG)

    def test_haul_values_must_be_numbers(self):
        with self.assertRaises(ValueError):
            config_from_dict({"common_haul_values": ["3150"]})


class LoadOverridesTests(unittest.TestCase):
    def test_reads_string_map(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "links.json"
            path.write_text(json.dumps({"i1": "e1"}), encoding="utf-8")
            self.assertEqual(load_overrides(path), {"i1": "e1"})

    def test_no_path_gives_empty_map(self):
        self.assertEqual(load_overrides(None), {})

    def test_rejects_non_string_values(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "links.json"
            path.write_text(json.dumps({"i1": 5}), encoding="utf-8")
            with self.assertRaises(ValueError):
                load_overrides(path)


if __name__ == "__main__":
    unittest.main()
