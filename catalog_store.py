"""
catalog_store.py

In-memory owner of the borrower, material and transaction collections.
"""

from __future__ import annotations
import datetime
import logging
from typing import Iterable, List, Optional, Union

from catalog_models import Borrower, Material, Transaction
from library_errors import Err, ErrorKind, LibraryError, Ok, Result, fail
from loan_policy import MaterialCategory, parse_category

# Sequential ID bases
BORROWER_ID_BASE = 2025000
MATERIAL_ID_BASE = 1

logger = logging.getLogger("LibrarySystem.store")

_BORROWER_FIELDS = {"first_name", "middle_name", "last_name", "gender", "birthday",
                    "contact_number", "email", "address", "violations"}
_MATERIAL_FIELDS = {"category", "title", "author", "publisher", "year_published", "total_copies"}


def _next_numeric_id(existing: Iterable[str], base: int) -> str:
    numbers = [int(i) for i in existing if i.isdigit()]
    return str(max([base] + [n + 1 for n in numbers]))


def _as_int(value, label: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise LibraryError(ErrorKind.INVALID_VALUE, f"{label} must be a whole number, got {value!r}.") from None


class CatalogStore:
    """
    CatalogStore keeps borrowers, materials and transactions in insertion order.

    It owns identity (unique IDs, sequential assignment) and the rules for adding,
    editing and removing borrowers and materials. Transactions are appended by the
    checkout engine; the store only answers questions about them.
    """

    def __init__(self, borrower_id_base: int = BORROWER_ID_BASE,
                 material_id_base: int = MATERIAL_ID_BASE):
        self.borrower_id_base = int(borrower_id_base)
        self.material_id_base = int(material_id_base)
        self.borrowers: List[Borrower] = []
        self.materials: List[Material] = []
        self.transactions: List[Transaction] = []

    # ---------------- Lookup ----------------
    def get_borrower(self, borrower_id: str) -> Optional[Borrower]:
        """Return the borrower with this ID, or None."""
        return next((b for b in self.borrowers if b.borrower_id == borrower_id), None)

    def get_material(self, material_id: str) -> Optional[Material]:
        """Return the material with this ID, or None."""
        return next((m for m in self.materials if m.material_id == material_id), None)

    def find_borrower(self, borrower_id: str) -> Result[Borrower]:
        """
        Look up a borrower by ID.

        Returns Ok(borrower) or Err(BORROWER_NOT_FOUND).
        """
        borrower = self.get_borrower(borrower_id)
        if borrower is None:
            return fail(ErrorKind.BORROWER_NOT_FOUND, f"Borrower not found: {borrower_id}")
        return Ok(borrower)

    def find_material(self, material_id: str) -> Result[Material]:
        """
        Look up a material by ID.

        Returns Ok(material) or Err(MATERIAL_NOT_FOUND).
        """
        material = self.get_material(material_id)
        if material is None:
            return fail(ErrorKind.MATERIAL_NOT_FOUND, f"Material not found: {material_id}")
        return Ok(material)

    def find_transaction(self, transaction_id: str) -> Result[Transaction]:
        """Returns Ok(transaction) or Err(TRANSACTION_NOT_FOUND)."""
        for t in self.transactions:
            if t.transaction_id == transaction_id:
                return Ok(t)
        return fail(ErrorKind.TRANSACTION_NOT_FOUND, f"Transaction not found: {transaction_id}")

    def active_transactions_for_borrower(self, borrower_id: str) -> List[Transaction]:
        """Unreturned loans of a borrower, oldest first."""
        return [t for t in self.transactions if t.borrower_id == borrower_id and t.active]

    def active_transactions_for_material(self, material_id: str) -> List[Transaction]:
        """Unreturned loans of a material, oldest first."""
        return [t for t in self.transactions if t.material_id == material_id and t.active]

    def transactions_for_borrower(self, borrower_id: str) -> List[Transaction]:
        """Every transaction of a borrower, returned or not, in insertion order."""
        return [t for t in self.transactions if t.borrower_id == borrower_id]

    def transactions_for_material(self, material_id: str) -> List[Transaction]:
        return [t for t in self.transactions if t.material_id == material_id]

    # ---------------- Borrowers ----------------
    def _email_taken(self, email: str, exclude_id: Optional[str] = None) -> bool:
        key = email.strip().lower()
        return any(b.contact_key == key for b in self.borrowers if b.borrower_id != exclude_id)

    def add_borrower(self, first_name: str, middle_name: str, last_name: str, gender: str,
                     birthday: datetime.date, contact_number: str, email: str, address: str,
                     borrower_id: Optional[str] = None) -> Result[Borrower]:
        """
        Register a new borrower with zero violations.

        The ID is assigned sequentially from the borrower ID base unless one is supplied.
        Returns Ok(borrower), or Err(DUPLICATE_BORROWER) when the ID or email is taken.
        """
        if borrower_id is not None and self.get_borrower(borrower_id) is not None:
            logger.debug("Attempt to add existing borrower ID: %s", borrower_id)
            return fail(ErrorKind.DUPLICATE_BORROWER, f"Borrower ID already exists: {borrower_id}")
        if self._email_taken(email):
            logger.debug("Attempt to register duplicate email: %s", email)
            return fail(ErrorKind.DUPLICATE_BORROWER, f"A borrower with email {email} is already registered.")
        if borrower_id is None:
            borrower_id = _next_numeric_id((b.borrower_id for b in self.borrowers), self.borrower_id_base)
        borrower = Borrower(
            borrower_id=borrower_id,
            first_name=first_name,
            middle_name=middle_name or "",
            last_name=last_name,
            gender=gender.upper(),
            birthday=birthday,
            contact_number=contact_number,
            email=email,
            address=address,
        )
        self.borrowers.append(borrower)
        logger.info("Registered borrower %s (%s)", borrower_id, borrower.full_name)
        return Ok(borrower)

    def edit_borrower(self, borrower_id: str, **changes) -> Result[Borrower]:
        """
        Apply an explicit edit to a borrower.

        Setting ``violations`` is the administrative way to lower a strike count.
        All changes are checked before any is applied.
        """
        found = self.find_borrower(borrower_id)
        if isinstance(found, Err):
            return found
        borrower = found.value
        unknown = set(changes) - _BORROWER_FIELDS
        if unknown:
            return fail(ErrorKind.INVALID_VALUE, f"Unknown borrower field(s): {', '.join(sorted(unknown))}")
        if "violations" in changes:
            try:
                changes["violations"] = _as_int(changes["violations"], "Violations")
            except LibraryError as e:
                return Err(e)
            if changes["violations"] < 0:
                return fail(ErrorKind.INVALID_VALUE, "Violations cannot be negative.")
        if "email" in changes and self._email_taken(changes["email"], exclude_id=borrower_id):
            return fail(ErrorKind.DUPLICATE_BORROWER,
                        f"A borrower with email {changes['email']} is already registered.")
        for name, value in changes.items():
            if name == "gender":
                value = value.upper()
            setattr(borrower, name, value)
        logger.info("Updated borrower %s: %s", borrower_id, ", ".join(sorted(changes)) or "no changes")
        return Ok(borrower)

    def reset_violations(self, borrower_id: str) -> Result[Borrower]:
        """Clear a borrower's strikes. Returns Ok(borrower) or Err(BORROWER_NOT_FOUND)."""
        return self.edit_borrower(borrower_id, violations=0)

    def remove_borrower(self, borrower_id: str) -> Result[Borrower]:
        """Delete a borrower; refused while any of their loans is unreturned."""
        found = self.find_borrower(borrower_id)
        if isinstance(found, Err):
            return found
        if self.active_transactions_for_borrower(borrower_id):
            logger.warning("Refusing to delete borrower %s with active loans", borrower_id)
            return fail(ErrorKind.HAS_ACTIVE_LOANS,
                        f"Borrower {borrower_id} has active borrowed materials and cannot be deleted.")
        self.borrowers.remove(found.value)
        logger.info("Deleted borrower %s", borrower_id)
        return found

    # ---------------- Materials ----------------
    def _title_taken(self, title: str, author: str, exclude_id: Optional[str] = None) -> bool:
        key = (title.strip().lower(), (author or "").strip().lower())
        return any((m.title.strip().lower(), m.author.strip().lower()) == key
                   for m in self.materials if m.material_id != exclude_id)

    def add_material(self, category: Union[str, MaterialCategory], title: str, author: str,
                     year_published: int, total_copies: int, publisher: str = "",
                     material_id: Optional[str] = None) -> Result[Material]:
        """
        Add a material to the catalog with no copies on loan.

        Returns Ok(material), Err(DUPLICATE_MATERIAL) when the ID or the
        title/author pair already exists, or Err(INVALID_VALUE) for a bad category
        or a non-numeric year or copy count, or a negative copy count.
        """
        try:
            category = parse_category(category)
            year_published = _as_int(year_published, "Year published")
            total_copies = _as_int(total_copies, "Total copies")
        except LibraryError as e:
            return Err(e)
        if total_copies < 0:
            return fail(ErrorKind.INVALID_VALUE, "Total copies cannot be negative.")
        if material_id is not None and self.get_material(material_id) is not None:
            logger.debug("Attempt to add existing material ID: %s", material_id)
            return fail(ErrorKind.DUPLICATE_MATERIAL, f"Material ID already exists: {material_id}")
        if self._title_taken(title, author):
            logger.debug("Attempt to add duplicate material: %s / %s", title, author)
            return fail(ErrorKind.DUPLICATE_MATERIAL, f"'{title}' is already in the catalog.")
        if material_id is None:
            material_id = _next_numeric_id((m.material_id for m in self.materials), self.material_id_base)
        material = Material(
            category=category,
            material_id=material_id,
            title=title,
            author=author or "",
            year_published=year_published,
            total_copies=total_copies,
            publisher=publisher or "",
        )
        self.materials.append(material)
        logger.info("Added %s %s (%s)", category.label, material_id, material.display_title)
        return Ok(material)

    def edit_material(self, material_id: str, **changes) -> Result[Material]:
        """
        Apply an explicit edit to a material.

        All changes are checked before any is applied. Returns Ok(material),
        Err(MATERIAL_NOT_FOUND), Err(DUPLICATE_MATERIAL) for a title/author clash,
        or Err(INVALID_VALUE) for an unknown field, a bad category or number, or a
        total below the copies currently on loan.
        """
        found = self.find_material(material_id)
        if isinstance(found, Err):
            return found
        material = found.value
        unknown = set(changes) - _MATERIAL_FIELDS
        if unknown:
            return fail(ErrorKind.INVALID_VALUE, f"Unknown material field(s): {', '.join(sorted(unknown))}")
        try:
            if "category" in changes:
                changes["category"] = parse_category(changes["category"])
            if "total_copies" in changes:
                changes["total_copies"] = _as_int(changes["total_copies"], "Total copies")
            if "year_published" in changes:
                changes["year_published"] = _as_int(changes["year_published"], "Year published")
        except LibraryError as e:
            return Err(e)
        if "total_copies" in changes and changes["total_copies"] < material.borrowed_copies:
            return fail(ErrorKind.INVALID_VALUE,
                        f"Total copies cannot be below the {material.borrowed_copies} copies on loan.")
        title = changes.get("title", material.title)
        author = changes.get("author", material.author)
        if ("title" in changes or "author" in changes) and self._title_taken(title, author, exclude_id=material_id):
            return fail(ErrorKind.DUPLICATE_MATERIAL, f"'{title}' is already in the catalog.")
        for name, value in changes.items():
            setattr(material, name, value)
        logger.info("Updated material %s: %s", material_id, ", ".join(sorted(changes)) or "no changes")
        return Ok(material)

    def remove_material(self, material_id: str) -> Result[Material]:
        """Delete a material; refused while any copy of it is on loan."""
        found = self.find_material(material_id)
        if isinstance(found, Err):
            return found
        if self.active_transactions_for_material(material_id):
            logger.warning("Refusing to delete material %s with active loans", material_id)
            return fail(ErrorKind.HAS_ACTIVE_LOANS,
                        f"Material {material_id} has active borrowings and cannot be deleted.")
        self.materials.remove(found.value)
        logger.info("Deleted material %s", material_id)
        return found

    # ---------------- Bulk replacement (loading) ----------------
    def replace_borrowers(self, items: Iterable[Borrower]) -> None:
        """Swap in a freshly loaded borrower list, keeping its order."""
        self.borrowers = list(items)

    def replace_materials(self, items: Iterable[Material]) -> None:
        self.materials = list(items)

    def replace_transactions(self, items: Iterable[Transaction]) -> None:
        self.transactions = list(items)
