"""
field_validators.py

Checks applied to raw console input before it reaches the catalog.
"""

from __future__ import annotations
import datetime
import re
from typing import Optional

_NAME_RE = re.compile(r"[A-Za-z\s\-']+")
_EMAIL_RE = re.compile(r"^[A-Za-z0-9+_.-]+@[A-Za-z0-9.-]+$")
_PHONE_RE = re.compile(r"\d{7,15}")


def validate_required(value: Optional[str]) -> bool:
    return value is not None and value.strip() != ""


def validate_name(value: Optional[str]) -> bool:
    """Letters, spaces, hyphens and apostrophes only; must not be blank."""
    if not validate_required(value):
        return False
    return _NAME_RE.fullmatch(value.strip()) is not None


def validate_email(value: Optional[str]) -> bool:
    if not validate_required(value):
        return False
    value = value.strip()
    return "@" in value and "." in value and _EMAIL_RE.match(value) is not None


def validate_phone(value: Optional[str]) -> bool:
    """Between 7 and 15 digits, nothing else."""
    return value is not None and _PHONE_RE.fullmatch(value.strip()) is not None


def validate_gender(value: Optional[str]) -> bool:
    return value is not None and value.strip().upper() in ("M", "F")


def validate_year(value: Optional[str]) -> bool:
    return value is not None and value.strip().isdigit() and len(value.strip()) == 4


def validate_count(value: Optional[str]) -> bool:
    return value is not None and value.strip().isdigit()


def parse_date(value: Optional[str]) -> Optional[datetime.date]:
    """
    Parse a YYYY-MM-DD string.

    Returns the date, or None when the value is blank or not a valid date.
    """
    if not validate_required(value):
        return None
    try:
        return datetime.date.fromisoformat(value.strip())
    except ValueError:
        return None
