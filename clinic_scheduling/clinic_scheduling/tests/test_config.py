"""
Tests for config.py
"""

import os
import unittest
from dataclasses import fields
from unittest.mock import patch

from clinic_scheduling.config import ENV_SETTINGS, SchedulingSettings, get_settings
from clinic_scheduling.exceptions import ConfigurationError, FormatError


class TestSchedulingSettings(unittest.TestCase):
	"""Tests for settings loading and validation."""

	def test_window_properties(self):
		settings = SchedulingSettings(
			working_day_start="09:00",
			working_day_end="20:00",
			calendar_start_hour=7,
			calendar_end_hour=22,
			hour_height_px=60,
		)
		self.assertEqual(settings.window_start_minutes, 540)
		self.assertEqual(settings.window_end_minutes, 1200)
		self.assertEqual(settings.calendar_start_minutes, 420)
		self.assertEqual(settings.total_grid_height, 900)

	def test_from_env(self):
		"""Test environment variables override the defaults."""
		env = {
			"WORKING_DAY_START": "08:00",
			"WORKING_DAY_END": "18:00",
			"BUSY_SLOT_INTERVAL_MINUTES": "20",
			"CLINIC_TIMEZONE": "Europe/Madrid",
			"LABEL_DAY_OFF": "Day off",
		}
		with patch.dict(os.environ, env):
			settings = SchedulingSettings.from_env()

		self.assertEqual(settings.window_start_minutes, 480)
		self.assertEqual(settings.busy_slot_interval, 20)
		self.assertEqual(settings.clinic_timezone, "Europe/Madrid")
		self.assertEqual(settings.label_day_off, "Day off")

	def test_every_field_has_one_env_entry(self):
		"""Test from_env and the field defaults share a single table."""
		self.assertEqual({f.name for f in fields(SchedulingSettings)}, set(ENV_SETTINGS))

	def test_from_env_defaults(self):
		"""Test unset variables fall back to the table defaults."""
		names = [env_name for env_name, _ in ENV_SETTINGS.values()]
		cleared = {name: os.environ.pop(name) for name in names if name in os.environ}
		try:
			settings = SchedulingSettings.from_env()
		finally:
			os.environ.update(cleared)

		self.assertEqual(settings.working_day_start, "09:00")
		self.assertEqual(settings.busy_slot_interval, 30)
		self.assertEqual(settings.default_external_event_minutes, 60)
		self.assertEqual(settings.label_outside_hours, "Outside working hours")

	def test_from_env_bad_number(self):
		with patch.dict(os.environ, {"BUSY_SLOT_INTERVAL_MINUTES": "thirty"}):
			with self.assertRaises(ConfigurationError):
				SchedulingSettings.from_env()

	def test_inverted_window(self):
		with self.assertRaises(ConfigurationError):
			SchedulingSettings(working_day_start="18:00", working_day_end="09:00")

	def test_non_positive_interval(self):
		with self.assertRaises(ConfigurationError):
			SchedulingSettings(busy_slot_interval=0)
		with self.assertRaises(ConfigurationError):
			SchedulingSettings(snap_grid=-15)

	def test_invalid_calendar_range(self):
		with self.assertRaises(ConfigurationError):
			SchedulingSettings(calendar_start_hour=22, calendar_end_hour=7)
		with self.assertRaises(ConfigurationError):
			SchedulingSettings(hour_height_px=0)

	def test_malformed_window(self):
		with self.assertRaises(FormatError):
			SchedulingSettings(working_day_start="nine", working_day_end="20:00")

	def test_with_overrides_validates(self):
		settings = SchedulingSettings(working_day_start="09:00", working_day_end="20:00")
		self.assertEqual(settings.with_overrides(working_day_end="12:00").window_end_minutes, 720)
		with self.assertRaises(ConfigurationError):
			settings.with_overrides(working_day_end="08:00")

	def test_get_settings_is_cached(self):
		get_settings.cache_clear()
		try:
			self.assertIs(get_settings(), get_settings())
		finally:
			get_settings.cache_clear()


def run_tests():
	"""Run all tests in this module."""
	unittest.main()
