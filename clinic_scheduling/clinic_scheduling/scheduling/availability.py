"""
Availability Service

Computes the busy half-hour buckets of a provider's working day,
merging three sources in priority order:
- External calendar conflicts
- Local appointment conflicts
- Weekly schedule rules (outside working hours / day off)

Also exposes the weekly schedule helpers used by the booking calendar.
"""

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Set, Union

from clinic_scheduling.config import SchedulingSettings, get_settings
from clinic_scheduling.exceptions import FormatError
from .models import (
	Appointment,
	BusyBucket,
	BusyKind,
	ExternalBusyEvent,
	WeeklyScheduleRule,
	parse_date,
)
from .overlap import appointment_conflict_buckets, external_conflict_buckets
from .time_grid import window_buckets

logger = logging.getLogger(__name__)

SUNDAY = 0


def weekday_index(target_date: date) -> int:
	"""Día de la semana con 0 = domingo ... 6 = sábado."""
	return target_date.isoweekday() % 7


def _usable(rule: WeeklyScheduleRule) -> bool:
	"""Descarta reglas con horas mal formadas (se registran, no se lanzan)."""
	try:
		if rule.end_minutes <= rule.start_minutes:
			logger.warning(
				f"Schedule rule for {rule.provider_id} on day {rule.day_of_week} "
				f"has no duration ({rule.start_time} - {rule.end_time})"
			)
		return True
	except FormatError as e:
		logger.error(f"Skipping schedule rule for {rule.provider_id}: {str(e)}")
		return False


def get_active_rules(
	provider_id: Optional[str],
	rules: Iterable[WeeklyScheduleRule]
) -> List[WeeklyScheduleRule]:
	"""Reglas activas del profesional (cualquier día)."""
	if not provider_id:
		return []
	return [rule for rule in rules if rule.provider_id == provider_id and rule.is_active]


def has_active_schedule(
	provider_id: Optional[str],
	rules: Iterable[WeeklyScheduleRule]
) -> bool:
	"""True si el profesional declaró al menos un horario activo."""
	return bool(get_active_rules(provider_id, rules))


def get_rules_for_day(
	provider_id: Optional[str],
	day_of_week: int,
	rules: Iterable[WeeklyScheduleRule]
) -> List[WeeklyScheduleRule]:
	"""
	Reglas activas del profesional para un día de la semana.

	Returns:
		list: ordenadas por hora de inicio
	"""
	day_rules = [
		rule for rule in get_active_rules(provider_id, rules)
		if rule.day_of_week == day_of_week and _usable(rule)
	]
	day_rules.sort(key=lambda rule: rule.start_minutes)
	return day_rules


def get_working_days(
	provider_id: Optional[str],
	rules: Iterable[WeeklyScheduleRule]
) -> Set[int]:
	"""Días de la semana (0-6) en que el profesional trabaja."""
	return {rule.day_of_week for rule in get_active_rules(provider_id, rules)}


def is_working_day(
	provider_id: Optional[str],
	target_date: Union[date, str],
	rules: Iterable[WeeklyScheduleRule]
) -> bool:
	"""
	Indica si se puede agendar con el profesional ese día.

	Con horario declarado: solo los días con reglas activas.
	Sin horario: todos los días excepto domingo.
	"""
	target_date = parse_date(target_date)
	rules = list(rules)
	if has_active_schedule(provider_id, rules):
		return weekday_index(target_date) in get_working_days(provider_id, rules)
	return weekday_index(target_date) != SUNDAY


def get_working_hours_text(
	provider_id: Optional[str],
	target_date: Union[date, str],
	rules: Iterable[WeeklyScheduleRule]
) -> Optional[str]:
	"""
	Texto del horario del día, p. ej. "09:00-12:00, 13:00-17:00".

	Returns:
		None si el profesional no tiene horario o no trabaja ese día
	"""
	target_date = parse_date(target_date)
	day_rules = get_rules_for_day(provider_id, weekday_index(target_date), rules)
	if not day_rules:
		return None
	return ", ".join(f"{rule.start_time[:5]}-{rule.end_time[:5]}" for rule in day_rules)


def _mark(
	busy: Dict[int, BusyBucket],
	minutes: int,
	reason: str,
	kind: BusyKind
) -> None:
	# Insertar solo si el bucket sigue libre: el primer motivo gana
	if minutes not in busy:
		busy[minutes] = BusyBucket(minutes=minutes, reason=reason, kind=kind)


def compute_busy_buckets(
	provider_id: Optional[str],
	target_date: Union[date, str, None],
	appointments: Iterable[Appointment] = (),
	external_events: Iterable[ExternalBusyEvent] = (),
	schedule_rules: Iterable[WeeklyScheduleRule] = (),
	exclude_appointment_id: Optional[str] = None,
	settings: Optional[SchedulingSettings] = None
) -> List[BusyBucket]:
	"""
	Calcula los buckets ocupados de un profesional en una fecha.

	Args:
		provider_id: profesional (None = sin seleccionar)
		target_date: fecha (date o YYYY-MM-DD)
		appointments: snapshot de citas locales
		external_events: snapshot del calendario externo
		schedule_rules: horarios semanales (todos los profesionales)
		exclude_appointment_id: cita en edición, no bloquea su propio horario
		settings: configuración; por defecto la del entorno

	Returns:
		list[BusyBucket]: ordenada por hora, sin horas repetidas

	Algoritmo:
		1. Conflictos externos (no cancelados, del profesional o sin
		   profesional, que no sean espejo de una cita local)
		2. Conflictos locales (citas no canceladas, excepto la excluida)
		3. Horario semanal, solo si el profesional tiene alguna regla activa:
			a. Con reglas para este día: buckets libres fuera de toda regla
			   quedan "fuera de horario"
			b. Sin reglas para este día: todos los buckets libres quedan
			   "no trabaja este día"
		4. Ordenar por hora

	Cada paso solo llena buckets libres, así los conflictos explícitos
	siempre conservan su motivo.
	"""
	if not provider_id or not target_date:
		return []

	settings = settings or get_settings()
	target_date = parse_date(target_date)
	appointments = list(appointments)
	schedule_rules = list(schedule_rules)

	busy: Dict[int, BusyBucket] = {}

	# 1. Conflictos del calendario externo
	for minutes, reason in external_conflict_buckets(
		external_events, provider_id, target_date, appointments, settings
	):
		_mark(busy, minutes, reason, BusyKind.EXTERNAL)

	# 2. Citas locales
	for minutes, reason in appointment_conflict_buckets(
		appointments, provider_id, target_date, settings,
		exclude_appointment=exclude_appointment_id
	):
		_mark(busy, minutes, reason, BusyKind.APPOINTMENT)

	conflicts = len(busy)

	# 3. Horario semanal
	if has_active_schedule(provider_id, schedule_rules):
		todays_rules = get_rules_for_day(provider_id, weekday_index(target_date), schedule_rules)
		all_buckets = window_buckets(
			settings.window_start_minutes,
			settings.window_end_minutes,
			settings.busy_slot_interval
		)

		if todays_rules:
			for minutes in all_buckets:
				if not any(rule.contains(minutes) for rule in todays_rules):
					_mark(busy, minutes, settings.label_outside_hours, BusyKind.OUTSIDE_HOURS)
		else:
			for minutes in all_buckets:
				_mark(busy, minutes, settings.label_day_off, BusyKind.DAY_OFF)

	logger.debug(
		f"Busy buckets for {provider_id} on {target_date}: "
		f"{conflicts} conflicts, {len(busy) - conflicts} from schedule"
	)

	# 4. Ordenar por hora
	return [busy[minutes] for minutes in sorted(busy)]


def merge_busy_buckets(*bucket_lists: Sequence[BusyBucket]) -> List[BusyBucket]:
	"""
	Une varias listas de buckets; ante horas repetidas gana la primera lista.

	Returns:
		list: ordenada por hora
	"""
	merged: Dict[int, BusyBucket] = {}
	for buckets in bucket_lists:
		for bucket in buckets:
			_mark(merged, bucket.minutes, bucket.reason, bucket.kind)
	return [merged[minutes] for minutes in sorted(merged)]
