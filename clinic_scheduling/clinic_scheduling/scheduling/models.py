# Copyright (c) 2026, Sebastian Ortiz Valencia and contributors
# For license information, please see license.txt

"""
Scheduling Records

Immutable snapshots read by the scheduling services:
- Appointment: cita local (tabla de citas)
- ExternalBusyEvent: evento del calendario externo sincronizado
- WeeklyScheduleRule: horario semanal de un profesional
- BusyBucket: bucket de 30 minutos ocupado, con motivo
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from dateutil import parser as date_parser

from clinic_scheduling.exceptions import FormatError, ValidationError
from .time_grid import to_clock_string, to_minutes

STATUS_SCHEDULED = "scheduled"
STATUS_CONFIRMED = "confirmed"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUS_NO_SHOW = "no_show"

APPOINTMENT_STATUSES = (
	STATUS_SCHEDULED,
	STATUS_CONFIRMED,
	STATUS_COMPLETED,
	STATUS_CANCELLED,
	STATUS_NO_SHOW,
)


def parse_date(value: Union[date, str]) -> date:
	"""
	Convierte "YYYY-MM-DD" (o un ISO datetime) a date.

	Raises:
		FormatError: si no es una fecha válida
	"""
	if isinstance(value, datetime):
		return value.date()
	if isinstance(value, date):
		return value
	if not value:
		raise FormatError("Date is required")
	try:
		return date_parser.isoparse(str(value).strip()).date()
	except (ValueError, OverflowError):
		raise FormatError(f"Invalid date {value!r}, expected YYYY-MM-DD")


def _clean_id(value: Any) -> Optional[str]:
	if value is None or value == "":
		return None
	return str(value)


@dataclass(frozen=True)
class Appointment:
	"""
	Snapshot de una cita local.

	end_time None significa duración por defecto (30 minutos).
	external_event_id enlaza la cita con su espejo en el calendario externo.
	"""

	id: str
	provider_id: Optional[str]
	date: date
	start_time: str
	end_time: Optional[str] = None
	status: str = STATUS_SCHEDULED
	patient_name: Optional[str] = None
	external_event_id: Optional[str] = None

	@property
	def start_minutes(self) -> int:
		return to_minutes(self.start_time)

	@property
	def end_minutes(self) -> Optional[int]:
		if not self.end_time:
			return None
		return to_minutes(self.end_time)

	@property
	def is_cancelled(self) -> bool:
		return self.status == STATUS_CANCELLED

	@property
	def duration_minutes(self) -> Optional[int]:
		"""Duración explícita, o None si la cita no tiene hora de fin."""
		end = self.end_minutes
		if end is None:
			return None
		return end - self.start_minutes

	def validate(self) -> None:
		"""Valida formatos y estado."""
		to_minutes(self.start_time)
		if self.end_time:
			to_minutes(self.end_time)
		if self.status not in APPOINTMENT_STATUSES:
			raise ValidationError(f"Unknown appointment status {self.status!r}")

	@classmethod
	def from_dict(cls, row: Dict[str, Any]) -> "Appointment":
		"""
		Construye desde una fila de la base de datos.

		Acepta tanto patient_name como el bloque anidado
		patients: {first_name, last_name}.
		"""
		patient_name = row.get("patient_name")
		if not patient_name and row.get("patients"):
			patient = row["patients"]
			patient_name = f"{patient.get('first_name') or ''} {patient.get('last_name') or ''}".strip()

		start_time = row.get("start_time")
		end_time = row.get("end_time")
		appointment = cls(
			id=str(row["id"]),
			provider_id=_clean_id(row.get("provider_id")),
			date=parse_date(row.get("appointment_date") or row.get("date")),
			start_time=to_clock_string(to_minutes(start_time)) if start_time else start_time,
			end_time=to_clock_string(to_minutes(end_time)) if end_time else None,
			status=row.get("status") or STATUS_SCHEDULED,
			patient_name=patient_name or None,
			external_event_id=_clean_id(row.get("external_event_id") or row.get("google_event_id")),
		)
		appointment.validate()
		return appointment


@dataclass(frozen=True)
class ExternalBusyEvent:
	"""
	Evento ocupado del calendario externo.

	start / end son instantes ISO-8601 tal como los entrega el feed;
	un valor solo-fecha ("2024-01-10") es un evento de día completo.
	"""

	id: str
	start: str
	end: Optional[str] = None
	provider_id: Optional[str] = None
	status: str = "confirmed"
	title: Optional[str] = None

	@property
	def is_cancelled(self) -> bool:
		return self.status == STATUS_CANCELLED

	@classmethod
	def from_dict(cls, row: Dict[str, Any]) -> "ExternalBusyEvent":
		start = row.get("start") or row.get("start_iso")
		if not start:
			raise ValidationError(f"External event {row.get('id')!r} has no start")
		return cls(
			id=str(row["id"]),
			start=str(start),
			end=row.get("end") or row.get("end_iso") or None,
			provider_id=_clean_id(row.get("provider_id")),
			status=row.get("status") or "confirmed",
			title=row.get("title") or row.get("summary") or None,
		)

	def with_provider(self, provider_id: str) -> "ExternalBusyEvent":
		return ExternalBusyEvent(
			id=self.id,
			start=self.start,
			end=self.end,
			provider_id=provider_id,
			status=self.status,
			title=self.title,
		)


@dataclass(frozen=True)
class WeeklyScheduleRule:
	"""
	Bloque de horario semanal de un profesional.

	day_of_week: 0 = domingo ... 6 = sábado.
	Un profesional puede tener varios bloques el mismo día (mañana y tarde).
	"""

	provider_id: str
	day_of_week: int
	start_time: str
	end_time: str
	is_active: bool = True

	@property
	def start_minutes(self) -> int:
		return to_minutes(self.start_time)

	@property
	def end_minutes(self) -> int:
		return to_minutes(self.end_time)

	def contains(self, minute: int) -> bool:
		"""True si minute cae en [start, end)."""
		return self.start_minutes <= minute < self.end_minutes

	def validate(self) -> None:
		if not 0 <= self.day_of_week <= 6:
			raise ValidationError(f"day_of_week must be 0-6, got {self.day_of_week}")
		if self.end_minutes <= self.start_minutes:
			raise ValidationError(
				f"Schedule end ({self.end_time}) must be after start ({self.start_time})"
			)

	@classmethod
	def from_dict(cls, row: Dict[str, Any]) -> "WeeklyScheduleRule":
		rule = cls(
			provider_id=str(row["provider_id"]),
			day_of_week=int(row["day_of_week"]),
			start_time=to_clock_string(to_minutes(row["start_time"])),
			end_time=to_clock_string(to_minutes(row["end_time"])),
			is_active=bool(row.get("is_active", True)),
		)
		rule.validate()
		return rule


class BusyKind(Enum):
	"""Origen del bloqueo; el orden refleja la prioridad del merge."""

	EXTERNAL = "external"
	APPOINTMENT = "appointment"
	OUTSIDE_HOURS = "outside_hours"
	DAY_OFF = "day_off"

	@property
	def is_conflict(self) -> bool:
		return self in (BusyKind.EXTERNAL, BusyKind.APPOINTMENT)


@dataclass(frozen=True)
class BusyBucket:
	minutes: int
	reason: str
	kind: BusyKind

	@property
	def time(self) -> str:
		return to_clock_string(self.minutes)

	def as_dict(self) -> Dict[str, str]:
		return {"time": self.time, "reason": self.reason}
