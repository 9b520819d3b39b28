"""
Scheduling Input Validators

Validation utilities for values handed to the calendar API by the
surrounding application (form fields, query params, stored rows).
"""

import re

from clinic_scheduling.exceptions import FormatError, ValidationError


def validate_date_string(date_str: str, field_name: str = "date") -> str:
    """
    Validate date string format (YYYY-MM-DD).

    Args:
        date_str: Date string to validate
        field_name: Name of field for error messages

    Returns:
        str: Validated date string

    Raises:
        ValidationError: If the date is missing
        FormatError: If date format is invalid
    """
    if not date_str:
        raise ValidationError(f"{field_name} is required")

    date_str = str(date_str).strip()

    # Basic format check
    if not re.match(r"^\d{4}-\d{2}-\d{2}$", date_str):
        raise FormatError(f"Invalid {field_name} format. Use YYYY-MM-DD")

    return date_str


def validate_time_string(time_str: str, field_name: str = "time") -> str:
    """
    Validate clock time format (HH:MM, seconds tolerated).

    Args:
        time_str: Time string to validate
        field_name: Name of field for error messages

    Returns:
        str: Normalized "HH:MM" string

    Raises:
        ValidationError: If the time is missing
        FormatError: If time format is invalid
    """
    if not time_str:
        raise ValidationError(f"{field_name} is required")

    time_str = str(time_str).strip()

    match = re.match(r"^(\d{2}):(\d{2})(:\d{2})?$", time_str)
    if not match or int(match.group(1)) > 23 or int(match.group(2)) > 59:
        raise FormatError(f"Invalid {field_name} format. Use HH:MM")

    return f"{match.group(1)}:{match.group(2)}"


def validate_record_id(record_id: str, field_name: str = "id") -> str:
    """
    Validate a record identifier (appointment, provider, event).

    Ensures the id is not too long and doesn't contain injection patterns.

    Args:
        record_id: Identifier to validate
        field_name: Name of field for error messages

    Returns:
        str: Validated identifier

    Raises:
        ValidationError: If identifier is invalid
    """
    if not record_id:
        raise ValidationError(f"{field_name} is required")

    record_id = str(record_id).strip()

    # Length check
    if len(record_id) > 140:
        raise ValidationError(f"{field_name} is too long")

    # Block obvious injection attempts
    dangerous_patterns = [
        r"<script",
        r"javascript:",
        r"SELECT\s+",
        r"DROP\s+",
        r"UNION\s+",
        r"--",
        r";",
    ]

    for pattern in dangerous_patterns:
        if re.search(pattern, record_id, re.IGNORECASE):
            raise ValidationError(f"Invalid {field_name}")

    return record_id
