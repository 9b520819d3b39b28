"""
Tests for scheduling/reschedule.py

Tests the drag & drop gesture state machine and the controller wrapper.
"""

import unittest
from datetime import date

from clinic_scheduling.config import SchedulingSettings
from clinic_scheduling.clinic_scheduling.scheduling.models import Appointment
from clinic_scheduling.clinic_scheduling.scheduling.reschedule import (
	IDLE,
	ControllerState,
	Discard,
	DragState,
	GridColumn,
	GridLayout,
	PointerDown,
	PointerMove,
	PointerUp,
	RescheduleController,
	RescheduleIntent,
	consume_click,
	transition,
)

SETTINGS = SchedulingSettings(
	calendar_start_hour=7,
	calendar_end_hour=22,
	hour_height_px=60,
	min_block_height_px=20,
	drag_threshold_px=5,
	snap_grid=15,
	default_appointment_minutes=30,
)

JAN_10 = date(2024, 1, 10)
JAN_11 = date(2024, 1, 11)

DATE_COLUMNS = [
	GridColumn(left=0, right=100, date=JAN_10),
	GridColumn(left=100, right=200, date=JAN_11),
]

PROVIDER_COLUMNS = [
	GridColumn(left=0, right=100, date=JAN_10, provider_id="prov-1"),
	GridColumn(left=100, right=200, date=JAN_10, provider_id="prov-2"),
]


def _appointment(start="10:00", end="10:30", provider_id="prov-1", apt_id="a1"):
	return Appointment(id=apt_id, provider_id=provider_id, date=JAN_10, start_time=start, end_time=end)


class TestTransition(unittest.TestCase):
	"""Tests for the pure transition function."""

	def setUp(self):
		self.layout = GridLayout.from_settings(DATE_COLUMNS, settings=SETTINGS)
		self.appointment = _appointment()

	def _run(self, events, state=IDLE):
		intents = []
		for event in events:
			state, intent = transition(state, event, self.layout)
			if intent is not None:
				intents.append(intent)
		return state, intents

	def test_drag_to_next_day(self):
		"""Test dragging one column right and four hours down."""
		state, intents = self._run([
			PointerDown(self.appointment, x=50, y=200, column_index=0),
			PointerMove(x=150, y=440),
			PointerUp(),
		])

		self.assertEqual(intents, [RescheduleIntent("a1", JAN_11, "14:00", "14:30")])
		self.assertEqual(state.phase, DragState.IDLE)
		self.assertTrue(state.suppress_click)

	def test_pointer_down_arms(self):
		state, _ = self._run([PointerDown(self.appointment, x=50, y=200, column_index=0)])

		self.assertEqual(state.phase, DragState.ARMED)
		self.assertEqual(state.session.origin_top, 180)
		self.assertEqual(state.session.block_height, 30)

	def test_below_threshold_is_click(self):
		"""Test movement under the threshold never starts a drag."""
		state, intents = self._run([
			PointerDown(self.appointment, x=50, y=200, column_index=0),
			PointerMove(x=52, y=204),
		])
		self.assertEqual(state.phase, DragState.ARMED)

		state, up_intents = self._run([PointerUp()], state)

		self.assertEqual(intents + up_intents, [])
		self.assertEqual(state, IDLE)
		self.assertEqual(consume_click(state), (state, True))

	def test_threshold_starts_drag(self):
		state, _ = self._run([
			PointerDown(self.appointment, x=50, y=200, column_index=0),
			PointerMove(x=50, y=205),
		])
		self.assertEqual(state.phase, DragState.DRAGGING)

	def test_click_suppressed_after_drag(self):
		"""Test the click fired after a real drag does not open the detail."""
		state, _ = self._run([
			PointerDown(self.appointment, x=50, y=200, column_index=0),
			PointerMove(x=50, y=260),
			PointerUp(),
		])

		state, should_open = consume_click(state)
		self.assertFalse(should_open)

		_, should_open = consume_click(state)
		self.assertTrue(should_open)

	def test_preview_is_clamped(self):
		"""Test the live top stays inside the grid."""
		state, _ = self._run([
			PointerDown(self.appointment, x=50, y=200, column_index=0),
			PointerMove(x=50, y=-5000),
		])
		self.assertEqual(state.session.current_top, 0)

		state, _ = self._run([PointerMove(x=50, y=5000)], state)
		self.assertEqual(state.session.current_top, 900 - 30)

	def test_clamp_holds_for_any_move(self):
		state, _ = self._run([PointerDown(self.appointment, x=50, y=200, column_index=0)])
		for y in range(-1200, 1300, 37):
			moved, _ = transition(state, PointerMove(x=50, y=y), self.layout)
			if moved.phase is DragState.DRAGGING:
				self.assertGreaterEqual(moved.session.current_top, 0)
				self.assertLessEqual(moved.session.current_top, self.layout.total_height - 30)

	def test_drag_to_grid_start(self):
		state, intents = self._run([
			PointerDown(self.appointment, x=50, y=200, column_index=0),
			PointerMove(x=50, y=-5000),
			PointerUp(),
		])
		self.assertEqual(intents[0].new_start, "07:00")
		self.assertEqual(intents[0].new_end, "07:30")

	def test_snap_to_quarter_hour(self):
		"""Test a drop 22 px lower snaps to the nearest 15 minutes."""
		_, intents = self._run([
			PointerDown(self.appointment, x=50, y=200, column_index=0),
			PointerMove(x=50, y=222),
			PointerUp(),
		])
		self.assertEqual(intents[0].new_start, "10:15")
		self.assertEqual(intents[0].new_date, JAN_10)

	def test_drop_without_change(self):
		"""Test dropping back in place emits nothing."""
		_, intents = self._run([
			PointerDown(self.appointment, x=50, y=200, column_index=0),
			PointerMove(x=50, y=260),
			PointerMove(x=50, y=203),
			PointerUp(),
		])
		self.assertEqual(intents, [])

	def test_drop_outside_columns_keeps_origin(self):
		_, intents = self._run([
			PointerDown(self.appointment, x=50, y=200, column_index=0),
			PointerMove(x=900, y=260),
			PointerUp(),
		])
		self.assertEqual(intents[0].new_date, JAN_10)
		self.assertEqual(intents[0].new_start, "11:00")

	def test_no_end_time_stays_open(self):
		"""Test an appointment without end time keeps no end after the drop."""
		_, intents = self._run([
			PointerDown(_appointment(end=None), x=50, y=200, column_index=0),
			PointerMove(x=50, y=260),
			PointerUp(),
		])
		self.assertEqual(intents[0].new_start, "11:00")
		self.assertIsNone(intents[0].new_end)

	def test_degenerate_end_uses_default_duration(self):
		"""Test an appointment ending before it starts drops with the default duration."""
		_, intents = self._run([
			PointerDown(_appointment(start="10:00", end="09:00"), x=50, y=200, column_index=0),
			PointerMove(x=50, y=320),
			PointerUp(),
		])
		self.assertEqual(intents[0].new_start, "12:00")
		self.assertEqual(intents[0].new_end, "12:30")

	def test_pointer_up_coordinates(self):
		"""Test coordinates on pointer up are applied as a last move."""
		_, intents = self._run([
			PointerDown(self.appointment, x=50, y=200, column_index=0),
			PointerUp(x=150, y=260),
		])
		self.assertEqual(intents, [RescheduleIntent("a1", JAN_11, "11:00", "11:30")])

	def test_secondary_button_ignored(self):
		state, _ = self._run([PointerDown(self.appointment, x=50, y=200, column_index=0, button=2)])
		self.assertEqual(state, IDLE)

	def test_second_pointer_down_ignored(self):
		"""Test only one session per surface."""
		state, _ = self._run([
			PointerDown(self.appointment, x=50, y=200, column_index=0),
			PointerDown(_appointment(apt_id="a2", start="12:00"), x=150, y=400, column_index=1),
		])
		self.assertEqual(state.session.appointment.id, "a1")

	def test_discard_releases_session(self):
		state, intents = self._run([
			PointerDown(self.appointment, x=50, y=200, column_index=0),
			PointerMove(x=150, y=440),
			Discard(),
			PointerUp(),
		])
		self.assertEqual(state, IDLE)
		self.assertEqual(intents, [])

	def test_stray_events_when_idle(self):
		state, intents = self._run([PointerMove(x=10, y=10), PointerUp()])
		self.assertEqual(state, IDLE)
		self.assertEqual(intents, [])

	def test_unknown_event(self):
		with self.assertRaises(TypeError):
			transition(IDLE, "click", self.layout)


class TestProviderColumns(unittest.TestCase):
	"""Tests for provider-column mode."""

	def setUp(self):
		self.layout = GridLayout.from_settings(PROVIDER_COLUMNS, provider_columns=True, settings=SETTINGS)

	def test_move_to_other_provider(self):
		"""Test dropping on another column reassigns the provider, same date."""
		state = IDLE
		for event in (
			PointerDown(_appointment(), x=50, y=200, column_index=0),
			PointerMove(x=150, y=200 + 5),
		):
			state, _ = transition(state, event, self.layout)
		state, intent = transition(state, PointerMove(x=150, y=200), self.layout)
		state, intent = transition(state, PointerUp(), self.layout)

		self.assertEqual(intent.new_provider_id, "prov-2")
		self.assertEqual(intent.new_date, JAN_10)
		self.assertEqual(intent.new_start, "10:00")
		self.assertEqual(intent.as_update(), {
			"appointment_date": "2024-01-10",
			"start_time": "10:00",
			"end_time": "10:30",
			"provider_id": "prov-2",
		})

	def test_same_provider_time_change(self):
		state = IDLE
		for event in (
			PointerDown(_appointment(), x=50, y=200, column_index=0),
			PointerMove(x=60, y=320),
		):
			state, _ = transition(state, event, self.layout)
		_, intent = transition(state, PointerUp(), self.layout)

		self.assertIsNone(intent.new_provider_id)
		self.assertEqual(intent.new_start, "12:00")
		self.assertNotIn("provider_id", intent.as_update())


class TestRescheduleController(unittest.TestCase):
	"""Tests for the controller wrapper."""

	def setUp(self):
		self.intents = []
		self.opened = []
		self.layout = GridLayout.from_settings(DATE_COLUMNS, settings=SETTINGS)
		self.controller = RescheduleController(
			self.layout,
			on_reschedule_intent=self.intents.append,
			on_open_detail=self.opened.append,
		)
		self.appointment = _appointment()

	def test_drag_invokes_callback_once(self):
		self.controller.pointer_down(self.appointment, 50, 200, 0)
		self.controller.pointer_move(150, 440)

		self.assertEqual(self.controller.phase, DragState.DRAGGING)
		self.assertEqual(self.controller.dragging_appointment_id, "a1")
		self.assertEqual(self.controller.preview, {"column": 1, "top": 420, "height": 30})

		intent = self.controller.pointer_up()
		self.controller.pointer_up()

		self.assertEqual(self.intents, [intent])
		self.assertEqual(intent.new_date, JAN_11)
		self.assertIsNone(self.controller.preview)

		self.assertFalse(self.controller.click(self.appointment))
		self.assertEqual(self.opened, [])

	def test_click_opens_detail(self):
		self.controller.pointer_down(self.appointment, 50, 200, 0)
		self.controller.pointer_up()

		self.assertTrue(self.controller.click(self.appointment))
		self.assertEqual(self.opened, [self.appointment])
		self.assertEqual(self.intents, [])

	def test_read_only_grid(self):
		"""Test a grid without a reschedule callback never arms."""
		controller = RescheduleController(self.layout, on_open_detail=self.opened.append)

		controller.pointer_down(self.appointment, 50, 200, 0)
		controller.pointer_move(150, 440)

		self.assertEqual(controller.phase, DragState.IDLE)
		self.assertIsNone(controller.pointer_up())
		self.assertTrue(controller.click(self.appointment))

	def test_discard(self):
		self.controller.pointer_down(self.appointment, 50, 200, 0)
		self.controller.pointer_move(150, 440)
		self.controller.discard()

		self.assertEqual(self.controller.state, IDLE)
		self.assertIsNone(self.controller.pointer_up())
		self.assertEqual(self.intents, [])

	def test_update_columns(self):
		"""Test refreshed column boxes are used for the drop target."""
		self.controller.update_columns([
			GridColumn(left=0, right=300, date=JAN_10),
			GridColumn(left=300, right=600, date=JAN_11),
		])
		self.controller.pointer_down(self.appointment, 50, 200, 0)
		self.controller.pointer_move(150, 440)
		intent = self.controller.pointer_up()

		self.assertEqual(intent.new_date, JAN_10)
		self.assertEqual(intent.new_start, "14:00")

	def test_intent_as_dict(self):
		intent = RescheduleIntent("a1", JAN_11, "14:00", "14:30")
		self.assertEqual(intent.as_dict(), {
			"appointment_id": "a1",
			"new_date": "2024-01-11",
			"new_start": "14:00",
			"new_end": "14:30",
			"new_provider_id": None,
		})

	def test_initial_state(self):
		self.assertEqual(RescheduleController(self.layout).state, ControllerState())


def run_tests():
	"""Run all tests in this module."""
	unittest.main()
