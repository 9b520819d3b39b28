"""
Clinic Scheduling API

Callback surface consumed by the front-desk application.

Structure:
    api/
    ├── __init__.py              # This file
    ├── calendar_api.py          # Busy slots, picker slots, reschedule payloads
    └── shared/                  # Shared utilities
        ├── __init__.py
        └── validators.py        # Input validators
"""

from . import calendar_api
from . import shared

__all__ = [
    "calendar_api",
    "shared",
]
