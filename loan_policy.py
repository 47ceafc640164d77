"""
loan_policy.py

Material categories and the number of days each category may be borrowed for.
Adding a category means adding a member and a row in ``LOAN_DAYS``.
"""

from __future__ import annotations
import datetime
import logging
from enum import Enum
from typing import Dict, Union

from library_errors import ErrorKind, LibraryError

# Fallback for a category missing from the table
DEFAULT_LOAN_DAYS = 7

logger = logging.getLogger("LibrarySystem.policy")


class MaterialCategory(Enum):
    BOOK = "BOOK"
    JOURNAL = "JOURNAL"
    MAGAZINE = "MAGAZINE"
    THESIS = "THESIS"

    @property
    def label(self) -> str:
        return self.value.capitalize()


LOAN_DAYS: Dict[MaterialCategory, int] = {
    MaterialCategory.BOOK: 7,
    MaterialCategory.JOURNAL: 3,
    MaterialCategory.MAGAZINE: 0,  # same-day return
    MaterialCategory.THESIS: 2,
}

_ALIASES = {"THESISBOOK": MaterialCategory.THESIS}


def parse_category(tag: Union[str, MaterialCategory]) -> MaterialCategory:
    """
    Convert a persisted or user-supplied category tag to a ``MaterialCategory``.

    Matching is case-insensitive and ignores surrounding whitespace.

    Raises:
        LibraryError: with kind INVALID_VALUE if the tag is not a known category.
    """
    if isinstance(tag, MaterialCategory):
        return tag
    key = str(tag).strip().upper()
    if key in _ALIASES:
        return _ALIASES[key]
    try:
        return MaterialCategory(key)
    except ValueError:
        raise LibraryError(ErrorKind.INVALID_VALUE, f"Unknown material category: {tag!r}") from None


def loan_days(category: MaterialCategory) -> int:
    """Return the loan duration in days for `category`."""
    days = LOAN_DAYS.get(category)
    if days is None:
        logger.warning("No loan policy for %s; using default of %d days", category, DEFAULT_LOAN_DAYS)
        return DEFAULT_LOAN_DAYS
    return days


def due_date_for(category: MaterialCategory, borrow_date: datetime.date) -> datetime.date:
    """
    Return the due date for a loan of `category` starting on `borrow_date`.

    A zero-day category (magazines) is due the same day.
    """
    return borrow_date + datetime.timedelta(days=loan_days(category))
