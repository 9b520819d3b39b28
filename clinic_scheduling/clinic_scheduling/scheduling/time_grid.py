"""
Time Geometry Utilities

Pure conversions used by the scheduling services and the calendar grid:
- Clock strings <-> minutes since midnight
- Snap grid rounding for drag & drop
- Minutes <-> vertical pixel offsets
- Half-hour bucket expansion
"""

import math
import re
from datetime import datetime, time, timedelta
from typing import Iterator, Optional, Tuple, Union

from clinic_scheduling.exceptions import FormatError

MINUTES_PER_DAY = 24 * 60

_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?$")


def to_minutes(clock_value: Union[str, time, timedelta]) -> int:
	"""
	Convierte una hora "HH:MM" (o "HH:MM:SS") a minutos desde medianoche.

	Los segundos se ignoran: las horas guardadas en base de datos vienen
	como "HH:MM:SS" y el calendario trabaja a resolución de minuto.

	Args:
		clock_value: string, time, o timedelta (desde medianoche)

	Returns:
		int: minutos en [0, 1440)

	Raises:
		FormatError: si el valor no es una hora válida
	"""
	if isinstance(clock_value, time):
		return clock_value.hour * 60 + clock_value.minute
	if isinstance(clock_value, timedelta):
		# timedelta representa tiempo desde medianoche
		return to_minutes((datetime.min + clock_value).time())
	if not isinstance(clock_value, str):
		raise FormatError(f"Cannot convert {type(clock_value).__name__} to clock time")

	match = _CLOCK_RE.match(clock_value.strip())
	if not match:
		raise FormatError(f"Invalid clock time {clock_value!r}, expected HH:MM")

	hours, minutes = int(match.group(1)), int(match.group(2))
	if hours > 23 or minutes > 59:
		raise FormatError(f"Clock time out of range: {clock_value!r}")

	return hours * 60 + minutes


def to_clock_string(minutes: Union[int, float]) -> str:
	"""
	Inversa de to_minutes: siempre "HH:MM" con ceros a la izquierda.

	Los minutos se toman módulo 1440 (pasada la medianoche da la vuelta).
	"""
	total = int(minutes) % MINUTES_PER_DAY
	return f"{total // 60:02d}:{total % 60:02d}"


def snap_to_grid(minutes: Union[int, float], grid_size: int = 15) -> int:
	"""
	Redondea al múltiplo más cercano de grid_size (mitad hacia arriba).

	Solo se usa al soltar un bloque arrastrado; nunca para leer horas guardadas.
	"""
	return int(math.floor(minutes / grid_size + 0.5)) * grid_size


def pixels_for_interval(
	start_minutes: int,
	end_minutes: int,
	window_start_minutes: int,
	pixels_per_hour: float,
	min_height_floor: float
) -> Tuple[float, float]:
	"""
	Mapea un intervalo de tiempo a (top, height) en la grilla.

	Args:
		start_minutes: inicio del intervalo
		end_minutes: fin del intervalo
		window_start_minutes: minuto que corresponde a top = 0
		pixels_per_hour: alto de una hora en px
		min_height_floor: alto mínimo para que citas cortas sigan siendo clickeables

	Returns:
		tuple: (top, height)
	"""
	top = (start_minutes - window_start_minutes) / 60 * pixels_per_hour
	height = max((end_minutes - start_minutes) / 60 * pixels_per_hour, min_height_floor)
	return top, height


def pixels_to_minutes(top: float, window_start_minutes: int, pixels_per_hour: float) -> float:
	"""Inversa lineal de pixels_for_interval para el borde superior."""
	return window_start_minutes + top / pixels_per_hour * 60


def resolve_interval(
	start_minutes: int,
	end_minutes: Optional[int],
	default_minutes: int
) -> Tuple[int, int]:
	"""
	Aplica la duración por defecto cuando falta el fin o el intervalo es degenerado.

	Returns:
		tuple: (start, end) con end > start
	"""
	if end_minutes is None or end_minutes <= start_minutes:
		return start_minutes, start_minutes + default_minutes
	return start_minutes, end_minutes


def iter_buckets(
	start_minutes: int,
	end_minutes: int,
	interval: int,
	window_start: int,
	window_end: int
) -> Iterator[int]:
	"""
	Itera los buckets alineados a la grilla que se solapan con [start, end).

	Solo devuelve buckets dentro de la ventana [window_start, window_end).
	Un intervalo que empieza a mitad de bucket (p. ej. 10:15) ocupa el
	bucket que lo contiene (10:00).
	"""
	first = max(start_minutes - (start_minutes - window_start) % interval, window_start)
	bucket = first
	while bucket < end_minutes and bucket < window_end:
		yield bucket
		bucket += interval


def window_buckets(window_start: int, window_end: int, interval: int) -> Iterator[int]:
	"""Todos los buckets de la ventana de trabajo."""
	bucket = window_start
	while bucket < window_end:
		yield bucket
		bucket += interval
