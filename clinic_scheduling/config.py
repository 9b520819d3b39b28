import os
from dataclasses import dataclass, replace
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv

from .exceptions import ConfigurationError, FormatError

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# field -> (environment variable, default); the default also fixes the type
ENV_SETTINGS = {
	# Working window used for busy buckets (booking time picker)
	"working_day_start": ("WORKING_DAY_START", "09:00"),
	"working_day_end": ("WORKING_DAY_END", "20:00"),
	"busy_slot_interval": ("BUSY_SLOT_INTERVAL_MINUTES", 30),
	# Drag & drop grid
	"snap_grid": ("SNAP_GRID_MINUTES", 15),
	"drag_threshold_px": ("DRAG_THRESHOLD_PX", 5),
	# Calendar grid geometry (week/day/provider views)
	"calendar_start_hour": ("CALENDAR_START_HOUR", 7),
	"calendar_end_hour": ("CALENDAR_END_HOUR", 22),
	"hour_height_px": ("HOUR_HEIGHT_PX", 60),
	"min_block_height_px": ("MIN_BLOCK_HEIGHT_PX", 20),
	"min_render_height_px": ("MIN_RENDER_HEIGHT_PX", 28),
	# Defaults applied when upstream data has no end time
	"default_appointment_minutes": ("DEFAULT_APPOINTMENT_MINUTES", 30),
	"default_external_event_minutes": ("DEFAULT_EXTERNAL_EVENT_MINUTES", 60),
	# External calendar instants are converted to this zone before bucketing
	"clinic_timezone": ("CLINIC_TIMEZONE", "Asia/Bangkok"),
	# Busy reasons shown in the time picker
	"label_external_busy": ("LABEL_EXTERNAL_BUSY", "Busy (external calendar)"),
	"label_already_booked": ("LABEL_ALREADY_BOOKED", "Already booked"),
	"label_outside_hours": ("LABEL_OUTSIDE_HOURS", "Outside working hours"),
	"label_day_off": ("LABEL_DAY_OFF", "Not working this day"),
}


def _read_env() -> Dict[str, Any]:
	"""Lee ENV_SETTINGS del entorno actual."""
	values = {}
	for field_name, (env_name, default) in ENV_SETTINGS.items():
		raw = os.getenv(env_name)
		try:
			values[field_name] = default if raw is None else type(default)(raw)
		except ValueError:
			raise ConfigurationError(f"{env_name} must be {type(default).__name__}, got {raw!r}")
	return values


_ENV = _read_env()


def _clock_to_minutes(value: str, name: str) -> int:
	parts = str(value).strip().split(":")
	try:
		hours, minutes = int(parts[0]), int(parts[1])
	except (ValueError, IndexError):
		raise FormatError(f"{name} must be HH:MM, got {value!r}")
	return hours * 60 + minutes


@dataclass(frozen=True)
class SchedulingSettings:
	"""
	Parámetros de agendamiento agrupados.

	Los valores por defecto vienen de variables de entorno (.env).
	Usar replace() para variantes en tests o vistas puntuales.
	"""

	working_day_start: str = _ENV["working_day_start"]
	working_day_end: str = _ENV["working_day_end"]
	busy_slot_interval: int = _ENV["busy_slot_interval"]
	snap_grid: int = _ENV["snap_grid"]
	drag_threshold_px: int = _ENV["drag_threshold_px"]
	calendar_start_hour: int = _ENV["calendar_start_hour"]
	calendar_end_hour: int = _ENV["calendar_end_hour"]
	hour_height_px: int = _ENV["hour_height_px"]
	min_block_height_px: int = _ENV["min_block_height_px"]
	min_render_height_px: int = _ENV["min_render_height_px"]
	default_appointment_minutes: int = _ENV["default_appointment_minutes"]
	default_external_event_minutes: int = _ENV["default_external_event_minutes"]
	clinic_timezone: str = _ENV["clinic_timezone"]
	label_external_busy: str = _ENV["label_external_busy"]
	label_already_booked: str = _ENV["label_already_booked"]
	label_outside_hours: str = _ENV["label_outside_hours"]
	label_day_off: str = _ENV["label_day_off"]

	def __post_init__(self):
		if self.window_end_minutes <= self.window_start_minutes:
			raise ConfigurationError(
				f"WORKING_DAY_END ({self.working_day_end}) must be after "
				f"WORKING_DAY_START ({self.working_day_start})"
			)
		if self.busy_slot_interval <= 0 or self.snap_grid <= 0:
			raise ConfigurationError("Slot interval and snap grid must be positive")
		if self.calendar_end_hour <= self.calendar_start_hour:
			raise ConfigurationError("CALENDAR_END_HOUR must be after CALENDAR_START_HOUR")
		if self.hour_height_px <= 0:
			raise ConfigurationError("HOUR_HEIGHT_PX must be positive")

	@property
	def window_start_minutes(self) -> int:
		return _clock_to_minutes(self.working_day_start, "WORKING_DAY_START")

	@property
	def window_end_minutes(self) -> int:
		return _clock_to_minutes(self.working_day_end, "WORKING_DAY_END")

	@property
	def calendar_start_minutes(self) -> int:
		return self.calendar_start_hour * 60

	@property
	def total_grid_height(self) -> float:
		"""Alto total en px de la grilla del calendario."""
		return (self.calendar_end_hour - self.calendar_start_hour) * self.hour_height_px

	@classmethod
	def from_env(cls) -> "SchedulingSettings":
		"""Construye la configuración leyendo el entorno actual."""
		return cls(**_read_env())

	def with_overrides(self, **changes) -> "SchedulingSettings":
		return replace(self, **changes)


@lru_cache(maxsize=1)
def get_settings() -> SchedulingSettings:
	"""Configuración del proceso (cacheada)."""
	return SchedulingSettings.from_env()
