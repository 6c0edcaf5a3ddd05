"""Tests for configuration loading and validation."""

from __future__ import annotations

import tempfile
from pathlib import Path
import unittest

from kazari.config import DEFAULT_CONFIG, MINUTE_MS, load_config, validate_config


class ConfigTests(unittest.TestCase):
    """Validate config merge and fallback behavior."""

    def _load(self, text: str | None) -> dict:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.toml"
            if text is not None:
                config_path.write_text(text.strip(), encoding="utf-8")
            return load_config(config_path=config_path)

    def test_missing_config_uses_defaults(self) -> None:
        config = self._load(None)
        self.assertEqual(config, DEFAULT_CONFIG)
        self.assertEqual(config["timer"]["tick_duration_ms"], 1000)
        self.assertEqual(
            [phase["type"] for phase in config["timer"]["phases"]],
            ["planning", "focus", "break"],
        )
        self.assertTrue(config["timer"]["phases"][0]["can_overrun"])
        self.assertEqual(config["timer"]["phases"][1]["allocated_time"], 25 * MINUTE_MS)
        self.assertEqual(config["schedule"]["availability"], [])

    def test_partial_config_overrides_selected_values(self) -> None:
        config = self._load(
            """
[timer]
tick_duration_ms = 250

[logging]
level = "debug"
            """
        )
        self.assertEqual(config["timer"]["tick_duration_ms"], 250)
        self.assertEqual(config["timer"]["phases"], DEFAULT_CONFIG["timer"]["phases"])
        self.assertEqual(config["logging"]["level"], "DEBUG")
        self.assertEqual(config["app"]["title"], DEFAULT_CONFIG["app"]["title"])

    def test_phases_accept_camel_case_keys(self) -> None:
        config = self._load(
            """
[[timer.phases]]
type = "focus"
allocatedTime = 60000
canOverrun = true

[[timer.phases]]
type = "break"
allocated_time = 30000
            """
        )
        self.assertEqual(
            config["timer"]["phases"],
            [
                {"type": "focus", "allocated_time": 60000, "can_overrun": True},
                {"type": "break", "allocated_time": 30000, "can_overrun": False},
            ],
        )

    def test_invalid_values_fallback_to_defaults(self) -> None:
        config = self._load(
            """
[timer]
tick_duration_ms = 0

[[timer.phases]]
type = "nap"
allocated_time = -5
            """
        )
        self.assertEqual(config["timer"], DEFAULT_CONFIG["timer"])

    def test_empty_phase_list_is_rejected(self) -> None:
        config = self._load(
            """
[timer]
phases = []
            """
        )
        self.assertEqual(config["timer"]["phases"], DEFAULT_CONFIG["timer"]["phases"])

    def test_broken_toml_falls_back_to_defaults(self) -> None:
        with self.assertLogs("kazari.config", level="WARNING"):
            config = self._load("[timer\ntick_duration_ms = ")
        self.assertEqual(config, DEFAULT_CONFIG)

    def test_schedule_availability_is_validated(self) -> None:
        config = self._load(
            """
[schedule]
planning_minutes = 10

[[schedule.availability]]
day = "monday"

[[schedule.availability.time_blocks]]
start_time = "09:00"
end_time = "12:30"
            """
        )
        day = config["schedule"]["availability"][0]
        self.assertEqual(day["day"], "Monday")
        self.assertEqual(day["time_blocks"], [{"start_time": "09:00", "end_time": "12:30"}])
        self.assertEqual(config["schedule"]["planning_minutes"], 10)

    def test_reversed_time_block_is_rejected(self) -> None:
        raw = {
            "schedule": {
                "availability": [
                    {"day": "Friday", "time_blocks": [{"start_time": "17:00", "end_time": "09:00"}]}
                ]
            }
        }
        with self.assertLogs("kazari.config", level="WARNING"):
            config = validate_config(raw)
        self.assertEqual(config["schedule"], DEFAULT_CONFIG["schedule"])

    def test_unknown_weekday_is_rejected(self) -> None:
        raw = {"schedule": {"availability": [{"day": "Someday"}]}}
        with self.assertLogs("kazari.config", level="WARNING"):
            config = validate_config(raw)
        self.assertEqual(config["schedule"]["availability"], [])

    def test_defaults_are_not_shared(self) -> None:
        config = self._load(None)
        config["timer"]["phases"].clear()
        self.assertEqual(len(DEFAULT_CONFIG["timer"]["phases"]), 3)


if __name__ == "__main__":
    unittest.main()
