"""
Calendar Grid Helpers

Geometry and column bookkeeping for the day / week / provider views:
- Days displayed for a view mode
- Appointment block placement
- Column descriptors for the drag & drop controller
"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from clinic_scheduling.config import SchedulingSettings, get_settings
from clinic_scheduling.exceptions import ValidationError
from .models import Appointment, parse_date
from .reschedule import GridColumn
from .time_grid import pixels_for_interval, resolve_interval

VIEW_DAY = "day"
VIEW_WEEK = "week"
VIEW_PROVIDER = "provider"
VIEW_MONTH = "month"

VIEW_MODES = (VIEW_DAY, VIEW_WEEK, VIEW_PROVIDER, VIEW_MONTH)


@dataclass(frozen=True)
class BlockPlacement:
	appointment_id: str
	top: float
	height: float


def get_display_days(
	view_mode: str,
	current_date: Union[date, str],
	date_range: Optional[Tuple[Union[date, str], Union[date, str]]] = None
) -> List[date]:
	"""
	Días que muestra el calendario.

	Args:
		view_mode: "day", "week", "provider" o "month"
		current_date: fecha de referencia
		date_range: (desde, hasta) personalizado; tiene prioridad

	Returns:
		list[date]: días consecutivos

	Reglas:
		- Semana: lunes a domingo de la semana de current_date
		- Día y por profesional: solo current_date
		- Mes: del primer al último día del mes
	"""
	if view_mode not in VIEW_MODES:
		raise ValidationError(f"Unknown view mode {view_mode!r}")

	current_date = parse_date(current_date)

	if date_range and date_range[0] and date_range[1]:
		start, end = parse_date(date_range[0]), parse_date(date_range[1])
	elif view_mode == VIEW_MONTH:
		start = current_date.replace(day=1)
		end = current_date.replace(day=calendar.monthrange(current_date.year, current_date.month)[1])
	elif view_mode in (VIEW_DAY, VIEW_PROVIDER):
		start = end = current_date
	else:
		start = current_date - timedelta(days=current_date.weekday())
		end = start + timedelta(days=6)

	if end < start:
		raise ValidationError(f"Date range ends ({end}) before it starts ({start})")

	return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def shift_current_date(view_mode: str, current_date: Union[date, str], direction: int) -> date:
	"""
	Navegación anterior / siguiente.

	Día y por profesional avanzan un día, semana siete, mes un mes calendario.
	"""
	current_date = parse_date(current_date)
	step = 1 if direction >= 0 else -1

	if view_mode == VIEW_MONTH:
		month_index = current_date.year * 12 + current_date.month - 1 + step
		year, month = divmod(month_index, 12)
		day = min(current_date.day, calendar.monthrange(year, month + 1)[1])
		return date(year, month + 1, day)
	if view_mode in (VIEW_DAY, VIEW_PROVIDER):
		return current_date + timedelta(days=step)
	return current_date + timedelta(days=7 * step)


def layout_appointment_block(
	appointment: Appointment,
	settings: Optional[SchedulingSettings] = None
) -> Optional[BlockPlacement]:
	"""
	Posición vertical del bloque de una cita en la grilla.

	Returns:
		BlockPlacement, o None si la cita cae fuera de la ventana visible
	"""
	settings = settings or get_settings()
	start, end = resolve_interval(
		appointment.start_minutes, appointment.end_minutes, settings.default_appointment_minutes
	)
	top, height = pixels_for_interval(
		start, end, settings.calendar_start_minutes, settings.hour_height_px, settings.min_block_height_px
	)
	if top + height < 0 or top > settings.total_grid_height:
		return None
	return BlockPlacement(appointment.id, top, max(height, settings.min_render_height_px))


def build_date_columns(
	days: Sequence[date],
	left: float = 0,
	column_width: float = 180
) -> List[GridColumn]:
	"""Columnas de vista día/semana, de izquierda a derecha."""
	return [
		GridColumn(left=left + i * column_width, right=left + (i + 1) * column_width, date=day)
		for i, day in enumerate(days)
	]


def build_provider_columns(
	provider_ids: Sequence[str],
	day: Union[date, str],
	left: float = 0,
	column_width: float = 180
) -> List[GridColumn]:
	"""Columnas del modo por profesional (un solo día)."""
	day = parse_date(day)
	return [
		GridColumn(
			left=left + i * column_width,
			right=left + (i + 1) * column_width,
			date=day,
			provider_id=provider_id,
		)
		for i, provider_id in enumerate(provider_ids)
	]


def get_appointments_for_date(
	appointments: Iterable[Appointment],
	target_date: Union[date, str]
) -> List[Appointment]:
	"""Citas del día, ordenadas por hora de inicio."""
	target_date = parse_date(target_date)
	day_appointments = [apt for apt in appointments if apt.date == target_date]
	day_appointments.sort(key=lambda apt: apt.start_time)
	return day_appointments


def get_column_appointments(
	appointments: Iterable[Appointment],
	provider_ids: Sequence[str],
	column_index: int
) -> List[Appointment]:
	"""
	Citas de una columna en modo por profesional.

	La primera columna también muestra las citas sin profesional asignado.
	"""
	if not 0 <= column_index < len(provider_ids):
		return []
	provider_id = provider_ids[column_index]
	return [
		apt for apt in appointments
		if apt.provider_id == provider_id or (column_index == 0 and not apt.provider_id)
	]
