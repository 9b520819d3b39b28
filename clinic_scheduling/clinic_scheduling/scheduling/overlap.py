"""
Conflict Sources

Normalizes the two explicit conflict sources of a provider's day into
half-hour buckets:
- External calendar events (synced feed, may mirror local appointments)
- Local appointments (excluding cancelled and the one being edited)

Also provides overlap detection between local appointments.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import pytz
from dateutil import parser as date_parser

from clinic_scheduling.config import SchedulingSettings
from clinic_scheduling.exceptions import FormatError
from .models import Appointment, ExternalBusyEvent
from .time_grid import MINUTES_PER_DAY, iter_buckets, resolve_interval

logger = logging.getLogger(__name__)


def get_clinic_timezone(settings: SchedulingSettings) -> pytz.tzinfo.BaseTzInfo:
	"""Zona horaria de la clínica; UTC si el nombre configurado es inválido."""
	try:
		return pytz.timezone(settings.clinic_timezone)
	except pytz.UnknownTimeZoneError:
		logger.error(f"Invalid timezone '{settings.clinic_timezone}', usando UTC")
		return pytz.UTC


def _is_date_only(value: str) -> bool:
	return len(value.strip()) <= 10


def _to_local(value: str, tz: pytz.tzinfo.BaseTzInfo) -> datetime:
	"""
	Parsea un instante ISO y lo lleva a hora local naive de la clínica.

	Valores con offset se convierten a tz; valores naive se toman como
	hora local.
	"""
	try:
		parsed = date_parser.isoparse(value.strip())
	except (ValueError, OverflowError):
		raise FormatError(f"Invalid ISO instant {value!r}")

	if parsed.tzinfo is not None:
		parsed = parsed.astimezone(tz).replace(tzinfo=None)
	return parsed


def event_interval_on_date(
	event: ExternalBusyEvent,
	target_date: date,
	tz: pytz.tzinfo.BaseTzInfo,
	default_minutes: int = 60
) -> Optional[Tuple[int, int]]:
	"""
	Calcula la porción [start, end) de un evento externo dentro de target_date.

	Args:
		event: evento del calendario externo
		target_date: día consultado
		tz: zona horaria de la clínica
		default_minutes: duración cuando falta el fin

	Returns:
		tuple: (start_minutes, end_minutes) recortado al día, end puede ser 1440
		None: si el evento no toca target_date

	Raises:
		FormatError: si start o end no son instantes ISO válidos

	Reglas:
		- Evento de día completo (solo fecha) empieza a las 00:00
		- Fin solo-fecha o en un día posterior extiende hasta el fin del día
		- Sin fin: start + default_minutes
		- Fin <= inicio: se recorta a la duración por defecto
	"""
	start = _to_local(event.start, tz)
	all_day = _is_date_only(event.start)

	if event.end:
		end = _to_local(event.end, tz)
	elif all_day:
		end = start + timedelta(days=1)
	else:
		end = start + timedelta(minutes=default_minutes)

	if end <= start:
		logger.warning(
			f"External event {event.id} ends before it starts ({event.start} - {event.end}), "
			f"usando {default_minutes} minutos"
		)
		end = start + (timedelta(days=1) if all_day else timedelta(minutes=default_minutes))

	day_start = datetime.combine(target_date, datetime.min.time())
	day_end = day_start + timedelta(days=1)

	# Sin solapamiento con el día consultado
	if end <= day_start or start >= day_end:
		return None

	start = max(start, day_start)
	end = min(end, day_end)

	start_minutes = int((start - day_start).total_seconds() // 60)
	end_minutes = int((end - day_start).total_seconds() // 60)
	return start_minutes, min(end_minutes, MINUTES_PER_DAY)


def linked_event_ids(appointments: Iterable[Appointment]) -> Set[str]:
	"""Ids de eventos externos que ya son espejo de una cita local."""
	return {apt.external_event_id for apt in appointments if apt.external_event_id}


def find_dangling_event_links(
	appointments: Iterable[Appointment],
	events: Iterable[ExternalBusyEvent]
) -> List[str]:
	"""
	Citas cuyo evento externo enlazado no está en el feed.

	El feed debe cubrir el rango de fechas de las citas; si no, todas las
	citas fuera del rango aparecerán como colgantes.

	Returns:
		list: ids de cita, en el orden recibido
	"""
	event_ids = {event.id for event in events}
	return [
		apt.id for apt in appointments
		if apt.external_event_id and apt.external_event_id not in event_ids
	]


def flatten_provider_events(
	events_by_provider: Dict[str, Iterable[Any]]
) -> List[ExternalBusyEvent]:
	"""
	Aplana eventos traídos por profesional, sellando el provider_id.

	Args:
		events_by_provider: {provider_id: [ExternalBusyEvent | dict, ...]}

	Returns:
		list: eventos con provider_id asignado
	"""
	flattened = []
	for provider_id, events in events_by_provider.items():
		for event in events or []:
			if isinstance(event, dict):
				event = ExternalBusyEvent.from_dict(event)
			flattened.append(event.with_provider(str(provider_id)))
	return flattened


def get_external_events_for_date(
	events: Iterable[ExternalBusyEvent],
	target_date: date,
	appointments: Iterable[Appointment],
	settings: SchedulingSettings,
	provider_id: Optional[str] = None
) -> List[ExternalBusyEvent]:
	"""
	Eventos externos visibles en el calendario para un día.

	Filtros:
		1. No cancelados
		2. Que toquen target_date
		3. Que no sean espejo de una cita local (external_event_id)
		4. Si hay provider_id: solo eventos de ese profesional
	"""
	tz = get_clinic_timezone(settings)
	mirrored = linked_event_ids(appointments)

	result = []
	for event in events:
		if event.is_cancelled or event.id in mirrored:
			continue
		if provider_id is not None and event.provider_id != provider_id:
			continue
		try:
			interval = event_interval_on_date(
				event, target_date, tz, settings.default_external_event_minutes
			)
		except FormatError as e:
			logger.error(f"Skipping external event {event.id}: {str(e)}")
			continue
		if interval is not None:
			result.append(event)
	return result


def external_conflict_buckets(
	events: Iterable[ExternalBusyEvent],
	provider_id: str,
	target_date: date,
	appointments: Iterable[Appointment],
	settings: SchedulingSettings
) -> List[Tuple[int, str]]:
	"""
	Buckets ocupados por eventos externos del profesional.

	Eventos sin provider_id aplican a cualquier profesional. Eventos que ya
	son espejo de una cita local se omiten para no contar la cita dos veces;
	un enlace colgante (cita enlazada a un evento que ya no existe) no genera
	conflicto externo.

	Returns:
		list: [(bucket_minutes, reason), ...] en orden de eventos
	"""
	tz = get_clinic_timezone(settings)
	appointments = list(appointments)
	mirrored = linked_event_ids(appointments)
	events = list(events)

	dangling = find_dangling_event_links(
		[apt for apt in appointments if apt.date == target_date], events
	)
	# Sin feed conectado no hay nada contra qué comparar
	if dangling and events:
		logger.warning(
			f"Appointments linked to missing external events on {target_date}: {', '.join(dangling)}"
		)

	window_start = settings.window_start_minutes
	window_end = settings.window_end_minutes
	interval = settings.busy_slot_interval

	buckets = []
	for event in events:
		if event.is_cancelled:
			continue
		if event.provider_id and event.provider_id != provider_id:
			continue
		if event.id in mirrored:
			continue

		try:
			span = event_interval_on_date(
				event, target_date, tz, settings.default_external_event_minutes
			)
		except FormatError as e:
			logger.error(f"Skipping external event {event.id}: {str(e)}")
			continue
		if span is None:
			continue

		reason = event.title or settings.label_external_busy
		for bucket in iter_buckets(span[0], span[1], interval, window_start, window_end):
			buckets.append((bucket, reason))

	return buckets


def appointment_conflict_buckets(
	appointments: Iterable[Appointment],
	provider_id: str,
	target_date: date,
	settings: SchedulingSettings,
	exclude_appointment: Optional[str] = None
) -> List[Tuple[int, str]]:
	"""
	Buckets ocupados por citas locales del profesional en target_date.

	La cita que se está editando (exclude_appointment) no bloquea su
	propio horario. Sin hora de fin se asume la duración por defecto.

	Returns:
		list: [(bucket_minutes, reason), ...] en orden de citas
	"""
	window_start = settings.window_start_minutes
	window_end = settings.window_end_minutes
	interval = settings.busy_slot_interval

	buckets = []
	for apt in appointments:
		if apt.provider_id != provider_id or apt.date != target_date:
			continue
		if apt.is_cancelled or apt.id == exclude_appointment:
			continue

		try:
			start, end = _appointment_span(apt, settings.default_appointment_minutes)
		except FormatError as e:
			logger.error(f"Skipping appointment {apt.id}: {str(e)}")
			continue

		reason = apt.patient_name or settings.label_already_booked
		for bucket in iter_buckets(start, end, interval, window_start, window_end):
			buckets.append((bucket, reason))

	return buckets


def _appointment_span(apt: Appointment, default_minutes: int) -> Tuple[int, int]:
	start = apt.start_minutes
	end = apt.end_minutes
	if end is not None and end <= start:
		logger.warning(
			f"Appointment {apt.id} ends before it starts ({apt.start_time} - {apt.end_time}), "
			f"usando {default_minutes} minutos"
		)
	return resolve_interval(start, end, default_minutes)


def check_overlap(
	appointments: Iterable[Appointment],
	provider_id: Optional[str],
	target_date: date,
	start_minutes: int,
	end_minutes: int,
	exclude_appointment: Optional[str] = None,
	default_minutes: int = 30
) -> Dict[str, Any]:
	"""
	Detecta citas locales que se solapan con [start, end).

	Args:
		appointments: snapshot de citas
		provider_id: profesional (None = citas sin asignar)
		target_date: día
		start_minutes: inicio del rango a validar
		end_minutes: fin del rango a validar
		exclude_appointment: id de cita a excluir (para ediciones)

	Returns:
		dict: {
			"has_overlap": bool,
			"overlapping_appointments": [ids]
		}
	"""
	overlapping = []
	for apt in appointments:
		if apt.provider_id != provider_id or apt.date != target_date:
			continue
		if apt.is_cancelled or apt.id == exclude_appointment:
			continue

		try:
			apt_start, apt_end = _appointment_span(apt, default_minutes)
		except FormatError as e:
			logger.error(f"Skipping appointment {apt.id}: {str(e)}")
			continue

		# Condición de overlap: start < end AND end > start
		if apt_start < end_minutes and apt_end > start_minutes:
			overlapping.append(apt.id)

	return {
		"has_overlap": bool(overlapping),
		"overlapping_appointments": overlapping,
	}
