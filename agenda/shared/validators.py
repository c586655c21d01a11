"""Shared validation utilities"""

import re
from datetime import datetime, time
from typing import Optional


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a client phone number to digits with an optional leading +.

    Args:
        phone: Phone number string in various formats

    Returns:
        Normalized phone number, or None for blank input

    Raises:
        ValueError: If the number has fewer than 8 or more than 15 digits
    """
    if not phone or not phone.strip():
        return None

    has_plus = phone.strip().startswith("+")
    digits = re.sub(r"\D", "", phone)

    # E.164 allows at most 15 digits; anything under 8 is not a reachable number
    if len(digits) < 8 or len(digits) > 15:
        raise ValueError("Phone number must have between 8 and 15 digits")

    return f"+{digits}" if has_plus else digits


def parse_time_of_day(value) -> time:
    """
    Parse a time-of-day given as datetime.time or an "HH:MM" / "HH:MM:SS" string.

    Raises:
        ValueError: If the string is not a valid 24h time
    """
    if isinstance(value, time):
        return value.replace(tzinfo=None)

    text = str(value).strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time of day '{value}'. Expected HH:MM")


def minutes_of_day(value: time) -> int:
    """Minutes elapsed since midnight, ignoring seconds"""
    return value.hour * 60 + value.minute


def format_time_of_day(value: Optional[time]) -> Optional[str]:
    if value is None:
        return None
    return value.strftime("%H:%M")


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email
