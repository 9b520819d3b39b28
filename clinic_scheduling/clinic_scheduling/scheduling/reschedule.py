"""
Drag & Drop Rescheduling

Pointer gesture state machine for the calendar grid:
	IDLE -> ARMED (pointer down on an appointment block)
	ARMED -> DRAGGING (vertical movement reaches the threshold)
	DRAGGING -> DRAGGING (live preview: target column + clamped top)
	DRAGGING -> IDLE (pointer up: emit a reschedule intent if it changed)
	ARMED -> IDLE (pointer up without movement: it was a click)

transition() is pure: (state, event, layout) -> (state, intent).
RescheduleController wraps it for a single interactive surface.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence, Tuple, Union

from clinic_scheduling.config import SchedulingSettings, get_settings
from clinic_scheduling.exceptions import FormatError
from .models import Appointment
from .time_grid import pixels_for_interval, pixels_to_minutes, resolve_interval, snap_to_grid, to_clock_string

logger = logging.getLogger(__name__)

PRIMARY_BUTTON = 0


class DragState(Enum):
	IDLE = "idle"
	ARMED = "armed"
	DRAGGING = "dragging"


@dataclass(frozen=True)
class GridColumn:
	"""
	Columna de la grilla con su caja horizontal actual (left <= x < right).

	En vista día/semana la columna representa una fecha; en modo por
	profesional representa un provider_id.
	"""

	left: float
	right: float
	date: Optional[date] = None
	provider_id: Optional[str] = None

	def contains_x(self, x: float) -> bool:
		return self.left <= x < self.right


@dataclass(frozen=True)
class GridLayout:
	columns: Tuple[GridColumn, ...]
	window_start_minutes: int
	pixels_per_hour: float
	total_height: float
	min_block_height: float = 20
	drag_threshold: float = 5
	snap_grid: int = 15
	default_duration: int = 30
	provider_columns: bool = False
	can_reschedule: bool = True

	@classmethod
	def from_settings(
		cls,
		columns: Sequence[GridColumn],
		provider_columns: bool = False,
		can_reschedule: bool = True,
		settings: Optional[SchedulingSettings] = None
	) -> "GridLayout":
		settings = settings or get_settings()
		return cls(
			columns=tuple(columns),
			window_start_minutes=settings.calendar_start_minutes,
			pixels_per_hour=settings.hour_height_px,
			total_height=settings.total_grid_height,
			min_block_height=settings.min_block_height_px,
			drag_threshold=settings.drag_threshold_px,
			snap_grid=settings.snap_grid,
			default_duration=settings.default_appointment_minutes,
			provider_columns=provider_columns,
			can_reschedule=can_reschedule,
		)

	def with_columns(self, columns: Sequence[GridColumn]) -> "GridLayout":
		return replace(self, columns=tuple(columns))

	def column_at(self, x: float, fallback: int) -> int:
		"""Primera columna que contiene x; fallback si ninguna."""
		for index, column in enumerate(self.columns):
			if column.contains_x(x):
				return index
		return fallback

	def block_geometry(self, appointment: Appointment) -> Tuple[float, float]:
		"""(top, height) del bloque de la cita."""
		start, end = resolve_interval(
			appointment.start_minutes, appointment.end_minutes, self.default_duration
		)
		return pixels_for_interval(
			start, end, self.window_start_minutes, self.pixels_per_hour, self.min_block_height
		)


@dataclass(frozen=True)
class DragSession:
	appointment: Appointment
	origin_y: float
	origin_top: float
	block_height: float
	origin_column: int
	current_top: float
	target_column: int
	exceeded_threshold: bool = False


@dataclass(frozen=True)
class ControllerState:
	phase: DragState = DragState.IDLE
	session: Optional[DragSession] = None
	# Un drag real suprime el click que el navegador dispara tras soltar
	suppress_click: bool = False


@dataclass(frozen=True)
class PointerDown:
	appointment: Appointment
	x: float
	y: float
	column_index: int
	button: int = PRIMARY_BUTTON


@dataclass(frozen=True)
class PointerMove:
	x: float
	y: float


@dataclass(frozen=True)
class PointerUp:
	x: Optional[float] = None
	y: Optional[float] = None


@dataclass(frozen=True)
class Discard:
	"""La vista se desmonta a mitad de un gesto."""


GestureEvent = Union[PointerDown, PointerMove, PointerUp, Discard]


@dataclass(frozen=True)
class RescheduleIntent:
	appointment_id: str
	new_date: date
	new_start: str
	new_end: Optional[str] = None
	new_provider_id: Optional[str] = None

	def as_dict(self) -> Dict[str, Any]:
		return {
			"appointment_id": self.appointment_id,
			"new_date": self.new_date.isoformat(),
			"new_start": self.new_start,
			"new_end": self.new_end,
			"new_provider_id": self.new_provider_id,
		}

	def as_update(self) -> Dict[str, Any]:
		"""Campos a actualizar en la cita (colaborador de persistencia)."""
		update = {
			"appointment_date": self.new_date.isoformat(),
			"start_time": self.new_start,
			"end_time": self.new_end,
		}
		if self.new_provider_id is not None:
			update["provider_id"] = self.new_provider_id
		return update


IDLE = ControllerState()


def _clamp_top(top: float, layout: GridLayout, block_height: float) -> float:
	return max(0.0, min(top, layout.total_height - block_height))


def _on_pointer_down(state: ControllerState, event: PointerDown, layout: GridLayout) -> ControllerState:
	# Solo una sesión por superficie; grillas de solo lectura nunca se arman
	if state.phase is not DragState.IDLE:
		return state
	if event.button != PRIMARY_BUTTON or not layout.can_reschedule:
		return state

	try:
		top, height = layout.block_geometry(event.appointment)
	except FormatError as e:
		logger.error(f"Cannot drag appointment {event.appointment.id}: {str(e)}")
		return state

	session = DragSession(
		appointment=event.appointment,
		origin_y=event.y,
		origin_top=top,
		block_height=height,
		origin_column=event.column_index,
		current_top=top,
		target_column=event.column_index,
	)
	return ControllerState(phase=DragState.ARMED, session=session)


def _on_pointer_move(state: ControllerState, event: PointerMove, layout: GridLayout) -> ControllerState:
	session = state.session
	if session is None:
		return state

	delta_y = event.y - session.origin_y
	if state.phase is DragState.ARMED and abs(delta_y) < layout.drag_threshold:
		return state

	session = replace(
		session,
		exceeded_threshold=True,
		target_column=layout.column_at(event.x, session.origin_column),
		current_top=_clamp_top(session.origin_top + delta_y, layout, session.block_height),
	)
	return ControllerState(phase=DragState.DRAGGING, session=session, suppress_click=True)


def resolve_drop(session: DragSession, layout: GridLayout) -> Optional[RescheduleIntent]:
	"""
	Convierte la vista previa de un drag en una intención de reagendar.

	Algoritmo:
		1. Inicio nuevo = snap(inicio de la grilla + top en minutos)
		2. Duración = fin - inicio si la cita tenía fin (fin <= inicio usa la
		   duración por defecto); si no, sin fin
		3. Columna destino -> fecha (día/semana) o profesional (modo por profesional)
		4. Sin cambios de fecha, hora (ni profesional) -> None
	"""
	appointment = session.appointment
	new_start = snap_to_grid(
		pixels_to_minutes(session.current_top, layout.window_start_minutes, layout.pixels_per_hour),
		layout.snap_grid,
	)

	new_end = None
	if appointment.end_time:
		start, end = resolve_interval(
			appointment.start_minutes, appointment.end_minutes, layout.default_duration
		)
		new_end = to_clock_string(new_start + end - start)

	column_index = session.target_column
	if not 0 <= column_index < len(layout.columns):
		column_index = session.origin_column
	column = layout.columns[column_index] if 0 <= column_index < len(layout.columns) else None

	new_date = appointment.date
	new_provider_id = None
	if layout.provider_columns:
		if column is not None and column.provider_id != appointment.provider_id:
			new_provider_id = column.provider_id
	elif column is not None and column.date is not None:
		new_date = column.date

	changed = (
		new_date != appointment.date
		or new_start != appointment.start_minutes
		or new_provider_id is not None
	)
	if not changed:
		return None

	return RescheduleIntent(
		appointment_id=appointment.id,
		new_date=new_date,
		new_start=to_clock_string(new_start),
		new_end=new_end,
		new_provider_id=new_provider_id,
	)


def _on_pointer_up(
	state: ControllerState,
	event: PointerUp,
	layout: GridLayout
) -> Tuple[ControllerState, Optional[RescheduleIntent]]:
	if state.session is None:
		return state, None

	if event.x is not None and event.y is not None:
		state = _on_pointer_move(state, PointerMove(event.x, event.y), layout)

	# Nunca pasó el umbral: es un click, lo maneja el handler de click
	if state.phase is not DragState.DRAGGING:
		return IDLE, None

	intent = resolve_drop(state.session, layout)
	return ControllerState(suppress_click=True), intent


def transition(
	state: ControllerState,
	event: GestureEvent,
	layout: GridLayout
) -> Tuple[ControllerState, Optional[RescheduleIntent]]:
	"""
	Aplica un evento de puntero al estado.

	Returns:
		tuple: (nuevo estado, intención emitida o None)
	"""
	if isinstance(event, PointerDown):
		return _on_pointer_down(replace(state, suppress_click=False), event, layout), None
	if isinstance(event, PointerMove):
		return _on_pointer_move(state, event, layout), None
	if isinstance(event, PointerUp):
		return _on_pointer_up(state, event, layout)
	if isinstance(event, Discard):
		return IDLE, None
	raise TypeError(f"Unsupported gesture event: {type(event).__name__}")


def consume_click(state: ControllerState) -> Tuple[ControllerState, bool]:
	"""
	Decide si un click sobre el bloque debe abrir el detalle.

	Returns:
		tuple: (nuevo estado, True si se debe abrir el detalle)
	"""
	if state.suppress_click:
		return replace(state, suppress_click=False), False
	return state, state.phase is DragState.IDLE


class RescheduleController:
	"""
	Controlador de drag & drop para una superficie del calendario.

	on_reschedule_intent se invoca como máximo una vez por drag completado;
	on_open_detail recibe la cita cuando el gesto fue un click.
	"""

	def __init__(
		self,
		layout: GridLayout,
		on_reschedule_intent: Optional[Callable[[RescheduleIntent], Any]] = None,
		on_open_detail: Optional[Callable[[Appointment], Any]] = None
	):
		if on_reschedule_intent is None:
			layout = replace(layout, can_reschedule=False)
		self.layout = layout
		self.state = IDLE
		self._on_reschedule_intent = on_reschedule_intent
		self._on_open_detail = on_open_detail

	@property
	def phase(self) -> DragState:
		return self.state.phase

	@property
	def preview(self) -> Optional[Dict[str, float]]:
		"""Vista previa en vivo: {"column": i, "top": px, "height": px}."""
		session = self.state.session
		if self.state.phase is not DragState.DRAGGING or session is None:
			return None
		return {
			"column": session.target_column,
			"top": session.current_top,
			"height": session.block_height,
		}

	@property
	def dragging_appointment_id(self) -> Optional[str]:
		if self.state.phase is DragState.DRAGGING and self.state.session:
			return self.state.session.appointment.id
		return None

	def update_columns(self, columns: Sequence[GridColumn]) -> None:
		"""Refresca las cajas de columna (scroll, resize)."""
		self.layout = self.layout.with_columns(columns)

	def dispatch(self, event: GestureEvent) -> Optional[RescheduleIntent]:
		self.state, intent = transition(self.state, event, self.layout)
		if intent is not None:
			logger.info(
				f"Reschedule {intent.appointment_id} -> {intent.new_date} "
				f"{intent.new_start}-{intent.new_end or ''}"
			)
			self._on_reschedule_intent(intent)
		return intent

	def pointer_down(
		self,
		appointment: Appointment,
		x: float,
		y: float,
		column_index: int,
		button: int = PRIMARY_BUTTON
	) -> None:
		self.dispatch(PointerDown(appointment, x, y, column_index, button))

	def pointer_move(self, x: float, y: float) -> None:
		self.dispatch(PointerMove(x, y))

	def pointer_up(self, x: Optional[float] = None, y: Optional[float] = None) -> Optional[RescheduleIntent]:
		return self.dispatch(PointerUp(x, y))

	def click(self, appointment: Appointment) -> bool:
		self.state, should_open = consume_click(self.state)
		if should_open and self._on_open_detail is not None:
			self._on_open_detail(appointment)
		return should_open

	def discard(self) -> None:
		"""Libera la sesión sin emitir nada (la vista se desmonta)."""
		self.dispatch(Discard())
