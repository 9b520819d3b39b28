"""
Scheduling Services Module

This module provides core business logic for the clinic calendar:
- Time geometry and snap grid (time_grid.py)
- Conflict sources: external calendar and appointments (overlap.py)
- Busy bucket aggregation and weekly schedules (availability.py)
- Slot generation for the booking time picker (slots.py)
- Provider colors (palette.py)
- Drag & drop rescheduling (reschedule.py)
- Calendar grid helpers (views.py)
"""
