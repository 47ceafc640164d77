#!/usr/bin/env python3
"""
library_system.py

Command-line library catalog: borrowers, materials and borrow/return transactions
kept in memory and flushed to delimited text files after every change.
"""

from __future__ import annotations
import argparse
import datetime
import logging
import pathlib
import sys
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Sequence

import pandas as pd

from catalog_models import Borrower, Material, Transaction
from catalog_persistence import (BORROWERS_FILE, DEFAULT_DELIMITER, MATERIALS_FILE,
                                 TRANSACTIONS_FILE, PersistenceAdapter)
from catalog_store import BORROWER_ID_BASE, MATERIAL_ID_BASE, CatalogStore
from checkout_engine import MAX_ACTIVE_LOANS, SUSPENSION_THRESHOLD, CheckoutEngine, HistoryEntry, ReturnOutcome
from field_validators import (parse_date, validate_count, validate_email, validate_gender,
                              validate_name, validate_phone, validate_required, validate_year)
from library_errors import Err, Ok, Result, describe_error
from loan_policy import MaterialCategory, loan_days

logger = logging.getLogger("LibrarySystem")


def _default_data_dir() -> pathlib.Path:
    # Resolve relative to this module so the CLI works from any CWD
    return pathlib.Path(__file__).resolve().parent / "data"


@dataclass(frozen=True)
class LibraryConfig:
    data_dir: pathlib.Path = field(default_factory=_default_data_dir)
    borrowers_file: str = BORROWERS_FILE
    materials_file: str = MATERIALS_FILE
    transactions_file: str = TRANSACTIONS_FILE
    delimiter: str = DEFAULT_DELIMITER
    borrower_id_base: int = BORROWER_ID_BASE
    material_id_base: int = MATERIAL_ID_BASE
    suspension_threshold: int = SUSPENSION_THRESHOLD
    max_active_loans: int = MAX_ACTIVE_LOANS


class LibrarySystem:
    """
    LibrarySystem wires the catalog store, checkout engine and backing files together.

    Every successful mutating call is followed by a save of the collection(s) it
    touched, so the files on disk always match memory after a command completes.
    Failed calls change nothing and save nothing.
    """

    def __init__(self, data_dir: Optional[pathlib.Path] = None,
                 config: Optional[LibraryConfig] = None,
                 today_fn: Callable[[], datetime.date] = datetime.date.today):
        """
        Initialize the LibrarySystem and load existing data.

        Args:
            data_dir: directory for the backing files; overrides `config.data_dir`.
            config: tunables; defaults to LibraryConfig().
            today_fn: clock used when an operation is not given an explicit date.
        """
        config = config or LibraryConfig()
        if data_dir is not None:
            config = replace(config, data_dir=pathlib.Path(data_dir))
        self.config = config
        self.today_fn = today_fn

        self.store = CatalogStore(borrower_id_base=config.borrower_id_base,
                                  material_id_base=config.material_id_base)
        self.engine = CheckoutEngine(self.store,
                                     suspension_threshold=config.suspension_threshold,
                                     max_active_loans=config.max_active_loans)
        self.storage = PersistenceAdapter(config.data_dir,
                                          borrowers_file=config.borrowers_file,
                                          materials_file=config.materials_file,
                                          transactions_file=config.transactions_file,
                                          delimiter=config.delimiter)
        self.storage.ensure_files()
        self.load_state()

    # ---------------- Loading / Persisting ----------------
    def load_state(self) -> None:
        self.store.replace_borrowers(self.storage.load_borrowers())
        self.store.replace_materials(self.storage.load_materials())
        self.store.replace_transactions(self.storage.load_transactions())
        logger.info("Catalog loaded: %d borrowers, %d materials, %d transactions",
                    len(self.store.borrowers), len(self.store.materials), len(self.store.transactions))

    def save_state(self) -> None:
        self.storage.save_borrowers(self.store.borrowers)
        self.storage.save_materials(self.store.materials)
        self.storage.save_transactions(self.store.transactions)

    def _save_borrowers(self, result: Result) -> Result:
        if isinstance(result, Ok):
            self.storage.save_borrowers(self.store.borrowers)
        return result

    def _save_materials(self, result: Result) -> Result:
        if isinstance(result, Ok):
            self.storage.save_materials(self.store.materials)
        return result

    # ---------------- Borrowers ----------------
    def register_borrower(self, first_name: str, middle_name: str, last_name: str, gender: str,
                          birthday: datetime.date, contact_number: str, email: str, address: str,
                          borrower_id: Optional[str] = None) -> Result[Borrower]:
        return self._save_borrowers(self.store.add_borrower(
            first_name, middle_name, last_name, gender, birthday, contact_number, email, address,
            borrower_id=borrower_id))

    def edit_borrower(self, borrower_id: str, **changes) -> Result[Borrower]:
        return self._save_borrowers(self.store.edit_borrower(borrower_id, **changes))

    def reset_violations(self, borrower_id: str) -> Result[Borrower]:
        return self._save_borrowers(self.store.reset_violations(borrower_id))

    def delete_borrower(self, borrower_id: str) -> Result[Borrower]:
        return self._save_borrowers(self.store.remove_borrower(borrower_id))

    # ---------------- Materials ----------------
    def add_material(self, category, title: str, author: str, year_published: int,
                     total_copies: int, publisher: str = "",
                     material_id: Optional[str] = None) -> Result[Material]:
        return self._save_materials(self.store.add_material(
            category, title, author, year_published, total_copies,
            publisher=publisher, material_id=material_id))

    def edit_material(self, material_id: str, **changes) -> Result[Material]:
        return self._save_materials(self.store.edit_material(material_id, **changes))

    def delete_material(self, material_id: str) -> Result[Material]:
        return self._save_materials(self.store.remove_material(material_id))

    # ---------------- Circulation ----------------
    def borrow(self, borrower_id: str, material_id: str,
               today: Optional[datetime.date] = None) -> Result[Transaction]:
        result = self.engine.borrow(borrower_id, material_id, today or self.today_fn())
        if isinstance(result, Ok):
            self.storage.save_materials(self.store.materials)
            self.storage.save_transactions(self.store.transactions)
        return result

    def return_material(self, borrower_id: str, today: Optional[datetime.date] = None,
                        material_id: Optional[str] = None) -> Result[ReturnOutcome]:
        result = self.engine.return_material(borrower_id, today or self.today_fn(), material_id)
        if isinstance(result, Ok):
            self.save_state()
        return result

    # ---------------- Reports / Queries ----------------
    def borrower_history(self, borrower_id: str) -> Result[List[HistoryEntry]]:
        return self.engine.borrower_history(borrower_id)

    def material_history(self, material_id: str) -> Result[List[HistoryEntry]]:
        return self.engine.material_history(material_id)

    def overdue(self, today: Optional[datetime.date] = None) -> List[Transaction]:
        return self.engine.overdue_transactions(today or self.today_fn())

    def export_report_materials(self) -> pd.DataFrame:
        """
        Build a DataFrame of the materials inventory.

        Columns: Material ID, Category, Title, Year, Total Copies, Available Copies, Loan Days.
        """
        rows = [{
            "Material ID": m.material_id,
            "Category": m.category.label,
            "Title": m.display_title,
            "Year": m.year_published,
            "Total Copies": m.total_copies,
            "Available Copies": m.available_copies,
            "Loan Days": loan_days(m.category),
        } for m in self.store.materials]
        return pd.DataFrame(rows, columns=["Material ID", "Category", "Title", "Year",
                                           "Total Copies", "Available Copies", "Loan Days"])

    def export_report_borrowers(self) -> pd.DataFrame:
        """
        Build a DataFrame summarizing borrowers, their strikes and current loans.

        Columns: Borrower ID, Name, Email, Strikes, Suspended, Active Loans.
        """
        rows = [{
            "Borrower ID": b.borrower_id,
            "Name": b.full_name,
            "Email": b.email,
            "Strikes": b.violations,
            "Suspended": self.engine.is_suspended(b),
            "Active Loans": len(self.store.active_transactions_for_borrower(b.borrower_id)),
        } for b in self.store.borrowers]
        return pd.DataFrame(rows, columns=["Borrower ID", "Name", "Email", "Strikes",
                                           "Suspended", "Active Loans"])

    def export_report_transactions(self) -> pd.DataFrame:
        """Transactions with borrower and material names; missing records show their raw ID."""
        rows = []
        for t in self.store.transactions:
            borrower = self.store.get_borrower(t.borrower_id)
            material = self.store.get_material(t.material_id)
            rows.append({
                "Transaction ID": t.transaction_id,
                "Borrower": borrower.full_name if borrower else t.borrower_id,
                "Material": material.display_title if material else t.material_id,
                "Borrowed": t.borrow_date.isoformat(),
                "Due": t.due_date.isoformat(),
                "Returned": t.returned,
                "Returned On": t.return_date.isoformat() if t.return_date else "",
            })
        return pd.DataFrame(rows, columns=["Transaction ID", "Borrower", "Material", "Borrowed",
                                           "Due", "Returned", "Returned On"])


# ---------------- CLI ----------------
def input_prompt(prompt: str) -> str:
    """
    Wrapper around built-in input() that returns a stripped string and handles interrupts.

    Returns an empty string on EOF/KeyboardInterrupt.
    """
    try:
        return input(prompt).strip()
    except (EOFError, KeyboardInterrupt):
        print()
        return ""


def prompt_validated(prompt: str, check: Callable[[str], bool], error: str) -> Optional[str]:
    """Re-prompt until `check` passes; a blank answer cancels and returns None."""
    while True:
        value = input_prompt(prompt)
        if value == "":
            return None
        if check(value):
            return value
        print(error)


def prompt_optional(prompt: str, check: Callable[[str], bool], error: str) -> Optional[str]:
    """Return "" for a blank answer, the value if valid, or None if invalid."""
    value = input_prompt(prompt)
    if value == "" or check(value):
        return value
    print(error)
    return None


def print_result(result: Result, success: Callable[[object], str]) -> None:
    if isinstance(result, Err):
        print(describe_error(result))
    else:
        print(success(result.value))


def print_menu():
    print("\n--- Library Catalog ---")
    print("1. Register borrower")
    print("2. Edit borrower")
    print("3. Delete borrower")
    print("4. List borrowers")
    print("5. Add material")
    print("6. Edit material")
    print("7. Delete material")
    print("8. List materials")
    print("9. Borrow")
    print("10. Return")
    print("11. Borrower history")
    print("12. Material history")
    print("13. Overdue loans")
    print("14. Reset borrower strikes")
    print("0. Exit")


def _register_borrower(lib: LibrarySystem) -> None:
    first = prompt_validated("First name: ", validate_name, "Name must only contain letters, spaces, hyphen or apostrophe.")
    if first is None:
        return
    middle = prompt_optional("Middle name (or leave blank): ", validate_name, "Invalid name.")
    if middle is None:
        return
    last = prompt_validated("Last name: ", validate_name, "Name must only contain letters, spaces, hyphen or apostrophe.")
    if last is None:
        return
    gender = prompt_validated("Gender (M/F): ", validate_gender, "Enter M or F.")
    if gender is None:
        return
    birthday = prompt_validated("Birthday (YYYY-MM-DD): ", lambda s: parse_date(s) is not None, "Invalid date.")
    if birthday is None:
        return
    contact = prompt_validated("Contact number (digits only): ", validate_phone, "Phone must contain 7-15 digits.")
    if contact is None:
        return
    email = prompt_validated("Email: ", validate_email, "Invalid email format.")
    if email is None:
        return
    address = prompt_validated("Address: ", validate_required, "Address is required.")
    if address is None:
        return
    result = lib.register_borrower(first, middle, last, gender, parse_date(birthday), contact, email, address)
    print_result(result, lambda b: f"Borrower registered with ID {b.borrower_id}.")


def _edit_borrower(lib: LibrarySystem) -> None:
    bid = input_prompt("Borrower ID to edit: ")
    borrower = lib.store.get_borrower(bid)
    if borrower is None:
        print(f"Borrower not found: {bid}")
        return
    print(f"Editing {borrower.full_name} (leave blank to keep current)")
    checks = [
        ("first_name", "First name", validate_name),
        ("middle_name", "Middle name", validate_name),
        ("last_name", "Last name", validate_name),
        ("gender", "Gender (M/F)", validate_gender),
        ("birthday", "Birthday", lambda s: parse_date(s) is not None),
        ("contact_number", "Contact", validate_phone),
        ("email", "Email", validate_email),
        ("address", "Address", validate_required),
    ]
    changes = {}
    for name, label, check in checks:
        current = getattr(borrower, name)
        value = prompt_optional(f"{label} [{current}]: ", check, f"Invalid {label.lower()}. Edit aborted.")
        if value is None:
            return
        if value:
            changes[name] = parse_date(value) if name == "birthday" else value
    print_result(lib.edit_borrower(bid, **changes), lambda b: "Borrower updated.")


def _add_material(lib: LibrarySystem) -> None:
    names = ", ".join(f"{i}.{c.label}" for i, c in enumerate(MaterialCategory, start=1))
    choice = prompt_validated(f"Type ({names}): ",
                              lambda s: s.isdigit() and 1 <= int(s) <= len(MaterialCategory),
                              "Invalid type.")
    if choice is None:
        return
    category = list(MaterialCategory)[int(choice) - 1]
    title = prompt_validated("Title: ", validate_required, "Title is required.")
    if title is None:
        return
    author = input_prompt("Author (or leave blank): ")
    publisher = input_prompt("Publisher (or leave blank): ")
    year = prompt_validated("Year published (YYYY): ", validate_year, "Enter a four-digit year.")
    if year is None:
        return
    copies = prompt_validated("Number of copies: ", validate_count, "Enter a whole number.")
    if copies is None:
        return
    result = lib.add_material(category, title, author, int(year), int(copies), publisher=publisher)
    print_result(result, lambda m: f"Material added with ID {m.material_id}.")


def _edit_material(lib: LibrarySystem) -> None:
    mid = input_prompt("Material ID to edit: ")
    material = lib.store.get_material(mid)
    if material is None:
        print(f"Material not found: {mid}")
        return
    print(f"Editing {material.display_title} (leave blank to keep current)")
    checks = [
        ("title", "Title", validate_required),
        ("author", "Author", validate_required),
        ("publisher", "Publisher", validate_required),
        ("year_published", "Year", validate_year),
        ("total_copies", "Total copies", validate_count),
    ]
    changes = {}
    for name, label, check in checks:
        value = prompt_optional(f"{label} [{getattr(material, name)}]: ", check, f"Invalid {label.lower()}. Edit aborted.")
        if value is None:
            return
        if value:
            changes[name] = value
    print_result(lib.edit_material(mid, **changes), lambda m: "Material updated.")


def _print_history(result: Result[List[HistoryEntry]], label: str) -> None:
    if isinstance(result, Err):
        print(describe_error(result))
        return
    if not result.value:
        print("No transactions.")
    for entry in result.value:
        t = entry.transaction
        print(f"{label}: {entry.counterpart} | Borrowed: {t.borrow_date} | Due: {t.due_date} | "
              f"Returned: {'Yes' if t.returned else 'No'} | ReturnedDate: {t.return_date or '-'}")


def _describe_return(outcome: ReturnOutcome) -> str:
    if outcome.late:
        return "Material returned late. Borrower receives 1 strike."
    return "Material returned on time. No strike."


def cli_loop(lib: LibrarySystem):
    """
    Interactive command-loop for the library catalog.

    Presents a text menu, collects validated input and invokes `LibrarySystem` methods.
    """
    while True:
        print_menu()
        choice = input_prompt("Choose (0-14): ")
        if choice == "0":
            break
        elif choice == "1":
            _register_borrower(lib)
        elif choice == "2":
            _edit_borrower(lib)
        elif choice == "3":
            bid = input_prompt("Borrower ID to delete: ")
            print_result(lib.delete_borrower(bid), lambda b: "Borrower deleted.")
        elif choice == "4":
            report = lib.export_report_borrowers()
            print("No borrowers registered." if report.empty else report.to_string(index=False))
        elif choice == "5":
            _add_material(lib)
        elif choice == "6":
            _edit_material(lib)
        elif choice == "7":
            mid = input_prompt("Material ID to delete: ")
            print_result(lib.delete_material(mid), lambda m: "Material deleted.")
        elif choice == "8":
            report = lib.export_report_materials()
            print("No materials." if report.empty else report.to_string(index=False))
        elif choice == "9":
            bid = input_prompt("Borrower ID: ")
            mid = input_prompt("Material ID to borrow: ")
            print_result(lib.borrow(bid, mid), lambda t: f"Borrow successful. Due date: {t.due_date.isoformat()}")
        elif choice == "10":
            bid = input_prompt("Borrower ID: ")
            print_result(lib.return_material(bid), _describe_return)
        elif choice == "11":
            _print_history(lib.borrower_history(input_prompt("Borrower ID: ")), "Material")
        elif choice == "12":
            _print_history(lib.material_history(input_prompt("Material ID: ")), "Borrower")
        elif choice == "13":
            overdue = lib.overdue()
            print(f"Overdue loans: {len(overdue)}")
            for t in overdue:
                print(f"{t.borrower_id} -> {t.material_id} (due {t.due_date.isoformat()})")
        elif choice == "14":
            bid = input_prompt("Borrower ID: ")
            print_result(lib.reset_violations(bid), lambda b: f"Strikes reset for {b.full_name}.")
        else:
            print("Unknown choice. Try again.")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Library catalog checkout manager")
    parser.add_argument("--data-dir", default=None, help="Folder holding borrowers/materials/transactions files")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO),
                        format="%(levelname)s: %(message)s")
    try:
        lib = LibrarySystem(data_dir=pathlib.Path(args.data_dir) if args.data_dir else None)
    except OSError as e:
        print(f"Cannot open library data files: {e}", file=sys.stderr)
        return 1
    cli_loop(lib)
    lib.save_state()
    print("Goodbye.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
