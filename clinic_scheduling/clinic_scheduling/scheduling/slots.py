"""
Slot Generation Service

Generates discrete time slots for the booking time picker, considering:
- Provider weekly schedule
- Busy buckets (conflicts and schedule shaping)
"""

from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Union

from clinic_scheduling.config import SchedulingSettings, get_settings
from .availability import (
	compute_busy_buckets,
	get_rules_for_day,
	has_active_schedule,
	weekday_index,
)
from .models import Appointment, ExternalBusyEvent, WeeklyScheduleRule, parse_date
from .time_grid import to_clock_string, window_buckets


def generate_time_slots(
	provider_id: Optional[str],
	target_date: Union[date, str, None],
	schedule_rules: Iterable[WeeklyScheduleRule] = (),
	interval: Optional[int] = None,
	settings: Optional[SchedulingSettings] = None
) -> List[str]:
	"""
	Genera las horas candidatas ("HH:MM") que muestra el selector.

	Args:
		provider_id: profesional seleccionado
		target_date: fecha
		schedule_rules: horarios semanales
		interval: minutos entre slots (por defecto el intervalo de buckets)
		settings: configuración

	Returns:
		list[str]: horas ordenadas y sin repetidos

	Algoritmo:
		1. Si el profesional tiene horario y trabaja ese día: slots dentro
		   de cada regla del día
		2. Si no: todos los slots de la ventana de trabajo
	"""
	if not target_date:
		return []

	settings = settings or get_settings()
	interval = interval or settings.busy_slot_interval
	target_date = parse_date(target_date)
	schedule_rules = list(schedule_rules)

	day_rules = []
	if has_active_schedule(provider_id, schedule_rules):
		day_rules = get_rules_for_day(provider_id, weekday_index(target_date), schedule_rules)

	minutes = set()
	if day_rules:
		for rule in day_rules:
			minutes.update(range(rule.start_minutes, rule.end_minutes, interval))
	else:
		minutes.update(window_buckets(
			settings.window_start_minutes, settings.window_end_minutes, interval
		))

	return [to_clock_string(m) for m in sorted(minutes)]


def generate_picker_slots(
	provider_id: Optional[str],
	target_date: Union[date, str, None],
	appointments: Iterable[Appointment] = (),
	external_events: Iterable[ExternalBusyEvent] = (),
	schedule_rules: Iterable[WeeklyScheduleRule] = (),
	exclude_appointment_id: Optional[str] = None,
	settings: Optional[SchedulingSettings] = None
) -> List[Dict[str, Any]]:
	"""
	Slots del selector anotados con disponibilidad.

	Returns:
		list[dict]: [
			{"time": "09:00", "is_available": True, "reason": None},
			{"time": "09:30", "is_available": False, "reason": "Jane Doe"},
			...
		]
	"""
	settings = settings or get_settings()
	schedule_rules = list(schedule_rules)

	busy = {
		bucket.time: bucket.reason
		for bucket in compute_busy_buckets(
			provider_id,
			target_date,
			appointments,
			external_events,
			schedule_rules,
			exclude_appointment_id=exclude_appointment_id,
			settings=settings,
		)
	}

	return [
		{"time": slot, "is_available": slot not in busy, "reason": busy.get(slot)}
		for slot in generate_time_slots(provider_id, target_date, schedule_rules, settings=settings)
	]
