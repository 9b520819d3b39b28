"""
Calendar API

Entry points used by the front-desk views:
- Busy slots for the booking time picker
- Annotated picker slots
- Reschedule controller wired to the persistence collaborator

CalendarSnapshot holds immutable copies of the rows fetched for a date
range and memoizes busy slots per (provider, date, excluded appointment).
"""

import logging
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from clinic_scheduling.config import SchedulingSettings, get_settings
from clinic_scheduling.exceptions import ValidationError
from clinic_scheduling.clinic_scheduling.scheduling.availability import (
    compute_busy_buckets,
    get_working_hours_text,
    is_working_day,
)
from clinic_scheduling.clinic_scheduling.scheduling.models import (
    Appointment,
    ExternalBusyEvent,
    WeeklyScheduleRule,
    parse_date,
)
from clinic_scheduling.clinic_scheduling.scheduling.overlap import (
    check_overlap,
    find_dangling_event_links,
    get_external_events_for_date,
)
from clinic_scheduling.clinic_scheduling.scheduling.palette import ProviderPalette
from clinic_scheduling.clinic_scheduling.scheduling.reschedule import (
    GridColumn,
    GridLayout,
    RescheduleController,
    RescheduleIntent,
)
from clinic_scheduling.clinic_scheduling.scheduling.slots import generate_picker_slots
from clinic_scheduling.clinic_scheduling.scheduling.time_grid import to_minutes

from .shared import validate_date_string, validate_record_id, validate_time_string

logger = logging.getLogger(__name__)

Row = Union[Dict[str, Any], Appointment, ExternalBusyEvent, WeeklyScheduleRule]


def _coerce(rows: Iterable[Row], model) -> Tuple[Any, ...]:
    """Convert rows to records; malformed rows are logged and dropped."""
    records = []
    for row in rows or ():
        if isinstance(row, model):
            records.append(row)
            continue
        try:
            records.append(model.from_dict(row))
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            row_id = row.get("id") if isinstance(row, dict) else None
            logger.error(f"Skipping malformed {model.__name__} row {row_id!r}: {str(e)}")
    return tuple(records)


class CalendarSnapshot:
    """
    Snapshot inmutable de citas, eventos externos, horarios y roster.

    Example:
        snapshot = CalendarSnapshot(
            appointments=rows_from_db,
            external_events=flatten_provider_events(feed),
            schedule_rules=schedule_rows,
            roster=[p["user_id"] for p in providers],
        )
        snapshot.busy_slots("prov-1", "2024-01-10")
    """

    def __init__(
        self,
        appointments: Iterable[Row] = (),
        external_events: Iterable[Row] = (),
        schedule_rules: Iterable[Row] = (),
        roster: Sequence[str] = (),
        settings: Optional[SchedulingSettings] = None,
    ):
        self.settings = settings or get_settings()
        self.appointments: Tuple[Appointment, ...] = _coerce(appointments, Appointment)
        self.external_events: Tuple[ExternalBusyEvent, ...] = _coerce(external_events, ExternalBusyEvent)
        self.schedule_rules: Tuple[WeeklyScheduleRule, ...] = _coerce(schedule_rules, WeeklyScheduleRule)
        self.roster: Tuple[str, ...] = tuple(roster)
        self.palette = ProviderPalette.from_roster(self.roster)
        self._busy_cache: Dict[Tuple[str, date, Optional[str]], Tuple[Dict[str, str], ...]] = {}

    def busy_slots(
        self,
        provider_id: Optional[str],
        target_date: Union[date, str, None],
        exclude_appointment_id: Optional[str] = None,
    ) -> List[Dict[str, str]]:
        """
        Busy slots for the time picker.

        Returns:
            list[dict]: [{"time": "HH:MM", "reason": str}, ...] sorted by time
        """
        if not provider_id or not target_date:
            return []

        provider_id = validate_record_id(provider_id, "provider_id")
        if isinstance(target_date, str):
            target_date = validate_date_string(target_date, "date")
        target_date = parse_date(target_date)

        key = (provider_id, target_date, exclude_appointment_id)
        if key not in self._busy_cache:
            buckets = compute_busy_buckets(
                provider_id,
                target_date,
                self.appointments,
                self.external_events,
                self.schedule_rules,
                exclude_appointment_id=exclude_appointment_id,
                settings=self.settings,
            )
            self._busy_cache[key] = tuple(bucket.as_dict() for bucket in buckets)
            logger.debug(f"Busy slots cached for {key}: {len(buckets)} buckets")

        return [dict(slot) for slot in self._busy_cache[key]]

    def picker_slots(
        self,
        provider_id: Optional[str],
        target_date: Union[date, str, None],
        exclude_appointment_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        return generate_picker_slots(
            provider_id,
            target_date,
            self.appointments,
            self.external_events,
            self.schedule_rules,
            exclude_appointment_id=exclude_appointment_id,
            settings=self.settings,
        )

    def day_summary(self, provider_id: Optional[str], target_date: Union[date, str]) -> Dict[str, Any]:
        """Working-day flag and hours text for the booking calendar header."""
        return {
            "is_working_day": is_working_day(provider_id, target_date, self.schedule_rules),
            "working_hours": get_working_hours_text(provider_id, target_date, self.schedule_rules),
        }

    def external_events_for_date(
        self,
        target_date: Union[date, str],
        provider_id: Optional[str] = None,
    ) -> List[ExternalBusyEvent]:
        return get_external_events_for_date(
            self.external_events,
            parse_date(target_date),
            self.appointments,
            self.settings,
            provider_id=provider_id,
        )

    def dangling_links(self) -> List[str]:
        """Appointment ids linked to an external event missing from the feed."""
        return find_dangling_event_links(self.appointments, self.external_events)

    def check_overlap(
        self,
        provider_id: Optional[str],
        target_date: Union[date, str],
        start_time: str,
        end_time: Optional[str] = None,
        exclude_appointment_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Local appointments overlapping a proposed time range."""
        start = to_minutes(validate_time_string(start_time, "start_time"))
        end = (
            to_minutes(validate_time_string(end_time, "end_time"))
            if end_time
            else start + self.settings.default_appointment_minutes
        )
        return check_overlap(
            self.appointments,
            provider_id,
            parse_date(target_date),
            start,
            end,
            exclude_appointment=exclude_appointment_id,
            default_minutes=self.settings.default_appointment_minutes,
        )


def get_busy_slots(
    provider_id: Optional[str],
    target_date: Union[date, str, None],
    appointments: Iterable[Row] = (),
    external_events: Iterable[Row] = (),
    schedule_rules: Iterable[Row] = (),
    exclude_appointment_id: Optional[str] = None,
    settings: Optional[SchedulingSettings] = None,
) -> List[Dict[str, str]]:
    """
    One-shot busy slots computation.

    Args:
        provider_id: Selected provider (None returns [])
        target_date: Date (YYYY-MM-DD)
        appointments: Appointment rows or records
        external_events: External calendar events
        schedule_rules: Weekly schedule rows
        exclude_appointment_id: Appointment being edited

    Returns:
        list[dict]: [{"time": "HH:MM", "reason": str}, ...]
    """
    snapshot = CalendarSnapshot(
        appointments=appointments,
        external_events=external_events,
        schedule_rules=schedule_rules,
        settings=settings,
    )
    return snapshot.busy_slots(provider_id, target_date, exclude_appointment_id)


def make_reschedule_controller(
    columns: Sequence[GridColumn],
    on_update: Optional[Callable[[str, Dict[str, Any]], Any]] = None,
    provider_columns: bool = False,
    on_open_detail: Optional[Callable[[Appointment], Any]] = None,
    settings: Optional[SchedulingSettings] = None,
) -> RescheduleController:
    """
    Build a drag & drop controller whose intents become appointment updates.

    Args:
        columns: Grid columns (dates, or providers in provider-column mode)
        on_update: Persistence callback receiving (appointment_id, fields);
            None makes the grid read-only
        provider_columns: Columns represent providers for a single date
        on_open_detail: Called with the appointment when a gesture is a click

    Returns:
        RescheduleController
    """
    layout = GridLayout.from_settings(columns, provider_columns=provider_columns, settings=settings)

    on_intent = None
    if on_update is not None:
        def on_intent(intent: RescheduleIntent) -> None:
            on_update(intent.appointment_id, intent.as_update())

    return RescheduleController(layout, on_reschedule_intent=on_intent, on_open_detail=on_open_detail)
