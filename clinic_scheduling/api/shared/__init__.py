"""
Shared utilities for the Clinic Scheduling API.
"""

from .validators import (
    validate_date_string,
    validate_time_string,
    validate_record_id,
)

__all__ = [
    "validate_date_string",
    "validate_time_string",
    "validate_record_id",
]
