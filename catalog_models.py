"""
catalog_models.py

Records kept by the catalog: borrowers, circulating materials and
borrow/return transactions. Transactions refer to borrowers and materials by ID only.
"""

from __future__ import annotations
import datetime
from dataclasses import dataclass
from typing import Optional

from loan_policy import MaterialCategory


@dataclass
class Borrower:
    borrower_id: str
    first_name: str
    middle_name: str
    last_name: str
    gender: str
    birthday: datetime.date
    contact_number: str
    email: str
    address: str
    violations: int = 0

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(p for p in parts if p)

    @property
    def contact_key(self) -> str:
        """Normalized email used to detect duplicate registrations."""
        return self.email.strip().lower()

    def add_violation(self) -> None:
        self.violations += 1


@dataclass
class Material:
    category: MaterialCategory
    material_id: str
    title: str
    author: str
    year_published: int
    total_copies: int
    borrowed_copies: int = 0
    publisher: str = ""

    @property
    def available_copies(self) -> int:
        return self.total_copies - self.borrowed_copies

    @property
    def display_title(self) -> str:
        return f"{self.title} by {self.author}" if self.author else self.title

    def adjust_borrowed(self, delta: int) -> None:
        """
        Shift the borrowed-copy count by `delta`.

        The result is clamped into ``[0, total_copies]`` so a double return or a
        stale count can never push availability out of range.
        """
        self.borrowed_copies = min(max(self.borrowed_copies + delta, 0), self.total_copies)


@dataclass
class Transaction:
    transaction_id: str
    borrower_id: str
    material_id: str
    borrow_date: datetime.date
    due_date: datetime.date
    returned: bool = False
    return_date: Optional[datetime.date] = None

    @property
    def active(self) -> bool:
        return not self.returned

    def is_overdue(self, today: datetime.date) -> bool:
        return not self.returned and today > self.due_date

    def mark_returned(self, when: datetime.date) -> None:
        self.returned = True
        self.return_date = when
