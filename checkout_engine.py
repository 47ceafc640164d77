"""
checkout_engine.py

Borrow/return lifecycle: eligibility checks, due dates, copy accounting and strikes.
"""

from __future__ import annotations
import datetime
import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional

from catalog_models import Borrower, Transaction
from catalog_store import CatalogStore
from library_errors import Err, ErrorKind, Ok, Result, fail
from loan_policy import due_date_for

# Strikes at which a borrower can no longer borrow
SUSPENSION_THRESHOLD = 3
# Concurrent unreturned loans allowed per borrower
MAX_ACTIVE_LOANS = 1

logger = logging.getLogger("LibrarySystem.checkout")


@dataclass(frozen=True)
class ReturnOutcome:
    transaction: Transaction
    late: bool


@dataclass(frozen=True)
class HistoryEntry:
    """A transaction paired with the display name of its counterpart record."""
    transaction: Transaction
    counterpart: str


def _new_transaction_id() -> str:
    return str(uuid.uuid4())


class CheckoutEngine:
    """
    CheckoutEngine drives borrow -> active loan -> return against a CatalogStore.

    Every transition checks all of its preconditions before touching the store, so
    a failed call leaves borrowers, materials and transactions exactly as they were.
    The engine never saves; the caller persists the affected collections afterwards.
    """

    def __init__(self, store: CatalogStore,
                 suspension_threshold: int = SUSPENSION_THRESHOLD,
                 max_active_loans: int = MAX_ACTIVE_LOANS):
        """
        Args:
            store: catalog whose collections are read and mutated.
            suspension_threshold: violation count at which borrowing is refused.
            max_active_loans: unreturned loans a borrower may hold at once. The
                default of 1 means a borrower must return before borrowing again.
        """
        self.store = store
        self.suspension_threshold = int(suspension_threshold)
        self.max_active_loans = max(1, int(max_active_loans))

    def is_suspended(self, borrower: Borrower) -> bool:
        """True once the borrower's strikes reach the suspension threshold."""
        return borrower.violations >= self.suspension_threshold

    # ---------------- Transitions ----------------
    def borrow(self, borrower_id: str, material_id: str, today: datetime.date) -> Result[Transaction]:
        """
        Lend one copy of a material to a borrower.

        Preconditions are checked in a fixed order and the first failure is
        returned: borrower exists, borrower not suspended, borrower under the
        active-loan limit, material exists, a copy is available.

        Returns:
            Ok(transaction) with the due date taken from the loan policy of the
            material's category, or Err with the failing precondition's kind.
        """
        borrower = self.store.get_borrower(borrower_id)
        if borrower is None:
            return fail(ErrorKind.BORROWER_NOT_FOUND, f"Borrower not registered: {borrower_id}")
        if self.is_suspended(borrower):
            logger.warning("Borrow refused: %s has %d strikes", borrower_id, borrower.violations)
            return fail(ErrorKind.BORROWER_SUSPENDED,
                        f"Borrower has {borrower.violations} strikes and cannot borrow.")
        if len(self.store.active_transactions_for_borrower(borrower_id)) >= self.max_active_loans:
            if self.max_active_loans == 1:
                message = "Borrower already has a borrowed material. Return it first to borrow another."
            else:
                message = f"Borrower already has {self.max_active_loans} borrowed materials."
            return fail(ErrorKind.ALREADY_HAS_ACTIVE_LOAN, message)
        material = self.store.get_material(material_id)
        if material is None:
            return fail(ErrorKind.MATERIAL_NOT_FOUND, f"Material not found: {material_id}")
        if material.available_copies <= 0:
            return fail(ErrorKind.NO_COPIES_AVAILABLE,
                        f"No available copies of '{material.display_title}' to borrow.")

        transaction = Transaction(
            transaction_id=_new_transaction_id(),
            borrower_id=borrower_id,
            material_id=material_id,
            borrow_date=today,
            due_date=due_date_for(material.category, today),
        )
        self.store.transactions.append(transaction)
        material.adjust_borrowed(1)
        logger.info("Borrowed %s to %s until %s", material_id, borrower_id, transaction.due_date.isoformat())
        return Ok(transaction)

    def return_material(self, borrower_id: str, today: datetime.date,
                        material_id: Optional[str] = None) -> Result[ReturnOutcome]:
        """
        Close the borrower's outstanding loan.

        The first unreturned transaction in insertion order is chosen; `material_id`
        narrows the choice when a borrower may hold several loans. A return dated
        after the due date adds one strike to the borrower.

        Returns:
            Ok(ReturnOutcome) with the closed transaction and the late flag,
            Err(NO_ACTIVE_LOAN) when nothing is outstanding, or Err(DATA_INTEGRITY)
            when the loan points at a material that no longer exists.
        """
        borrower = self.store.get_borrower(borrower_id)
        if borrower is None:
            return fail(ErrorKind.BORROWER_NOT_FOUND, f"Borrower not registered: {borrower_id}")
        active = self.store.active_transactions_for_borrower(borrower_id)
        if material_id is not None:
            active = [t for t in active if t.material_id == material_id]
        if not active:
            return fail(ErrorKind.NO_ACTIVE_LOAN, "This borrower has no active borrowed materials.")
        transaction = active[0]
        material = self.store.get_material(transaction.material_id)
        if material is None:
            logger.warning("Transaction %s references missing material %s",
                           transaction.transaction_id, transaction.material_id)
            return fail(ErrorKind.DATA_INTEGRITY,
                        f"Material record {transaction.material_id} not found (data inconsistency).")

        late = today > transaction.due_date
        transaction.mark_returned(today)
        material.adjust_borrowed(-1)
        if late:
            borrower.add_violation()
            logger.info("Late return of %s by %s; strikes now %d",
                        transaction.material_id, borrower_id, borrower.violations)
        else:
            logger.info("Returned %s by %s on time", transaction.material_id, borrower_id)
        return Ok(ReturnOutcome(transaction=transaction, late=late))

    # ---------------- Queries ----------------
    def borrower_history(self, borrower_id: str) -> Result[List[HistoryEntry]]:
        """Transactions of a borrower, each labelled with the material's display title."""
        found = self.store.find_borrower(borrower_id)
        if isinstance(found, Err):
            return found
        entries = []
        for t in self.store.transactions_for_borrower(borrower_id):
            material = self.store.get_material(t.material_id)
            entries.append(HistoryEntry(t, material.display_title if material else t.material_id))
        return Ok(entries)

    def material_history(self, material_id: str) -> Result[List[HistoryEntry]]:
        """
        Transactions of a material, each labelled with the borrower's full name.

        Returns Ok(entries) in insertion order, or Err(MATERIAL_NOT_FOUND).
        """
        found = self.store.find_material(material_id)
        if isinstance(found, Err):
            return found
        entries = []
        for t in self.store.transactions_for_material(material_id):
            borrower = self.store.get_borrower(t.borrower_id)
            entries.append(HistoryEntry(t, borrower.full_name if borrower else t.borrower_id))
        return Ok(entries)

    def overdue_transactions(self, today: datetime.date) -> List[Transaction]:
        """
        Return unreturned transactions whose due date is before `today`.

        Args:
            today: date to compare due dates against.
        """
        return [t for t in self.store.transactions if t.is_overdue(today)]
