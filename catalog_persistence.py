"""
catalog_persistence.py

Flat-file backing stores for the catalog, one delimited text file per collection.
"""

from __future__ import annotations
import datetime
import io
import logging
import pathlib
from typing import Callable, Dict, List, Optional, TypeVar

import pandas as pd

from catalog_models import Borrower, Material, Transaction
from library_errors import ErrorKind, LibraryError
from loan_policy import parse_category

# Configuration
DEFAULT_DELIMITER = "|"
BORROWERS_FILE = "borrowers.txt"
MATERIALS_FILE = "materials.txt"
TRANSACTIONS_FILE = "transactions.txt"

BORROWER_COLUMNS = ["id", "first_name", "middle_name", "last_name", "gender", "birthday",
                    "contact_number", "email", "address", "violations"]
MATERIAL_COLUMNS = ["category", "id", "title", "author", "year_published", "total_copies",
                    "borrowed_copies", "publisher"]
# Headerless files from older versions put publisher before the copy counts.
LEGACY_MATERIAL_COLUMNS = ["category", "id", "title", "author", "year_published", "publisher",
                           "total_copies", "borrowed_copies"]
TRANSACTION_COLUMNS = ["id", "borrower_id", "material_id", "borrow_date", "due_date",
                       "returned", "return_date"]

logger = logging.getLogger("LibrarySystem.persistence")

R = TypeVar("R")


# ---------------- Field codecs ----------------
def _text(row: Dict[str, object], column: str) -> str:
    value = row.get(column)
    if value is None or pd.isna(value):
        raise LibraryError(ErrorKind.DATA_INTEGRITY, f"missing field '{column}'")
    return str(value)


def _integer(row: Dict[str, object], column: str) -> int:
    value = _text(row, column).strip()
    try:
        return int(value)
    except ValueError:
        raise LibraryError(ErrorKind.DATA_INTEGRITY, f"'{column}' is not an integer: {value!r}") from None


def _date(row: Dict[str, object], column: str) -> datetime.date:
    value = _text(row, column).strip()
    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        raise LibraryError(ErrorKind.DATA_INTEGRITY, f"'{column}' is not a YYYY-MM-DD date: {value!r}") from None


def _optional_date(row: Dict[str, object], column: str) -> Optional[datetime.date]:
    if _text(row, column).strip() == "":
        return None
    return _date(row, column)


def _boolean(row: Dict[str, object], column: str) -> bool:
    value = _text(row, column).strip().lower()
    if value in ("true", "false"):
        return value == "true"
    raise LibraryError(ErrorKind.DATA_INTEGRITY, f"'{column}' is not true/false: {value!r}")


def _format_date(value: Optional[datetime.date]) -> str:
    return value.isoformat() if value is not None else ""


# ---------------- Row mappers ----------------
def borrower_to_row(b: Borrower) -> Dict[str, str]:
    return {
        "id": b.borrower_id,
        "first_name": b.first_name,
        "middle_name": b.middle_name,
        "last_name": b.last_name,
        "gender": b.gender,
        "birthday": _format_date(b.birthday),
        "contact_number": b.contact_number,
        "email": b.email,
        "address": b.address,
        "violations": str(b.violations),
    }


def borrower_from_row(row: Dict[str, object]) -> Borrower:
    violations = _integer(row, "violations")
    if violations < 0:
        raise LibraryError(ErrorKind.DATA_INTEGRITY, f"negative violations: {violations}")
    return Borrower(
        borrower_id=_text(row, "id"),
        first_name=_text(row, "first_name"),
        middle_name=_text(row, "middle_name"),
        last_name=_text(row, "last_name"),
        gender=_text(row, "gender"),
        birthday=_date(row, "birthday"),
        contact_number=_text(row, "contact_number"),
        email=_text(row, "email"),
        address=_text(row, "address"),
        violations=violations,
    )


def material_to_row(m: Material) -> Dict[str, str]:
    return {
        "category": m.category.value,
        "id": m.material_id,
        "title": m.title,
        "author": m.author,
        "year_published": str(m.year_published),
        "total_copies": str(m.total_copies),
        "borrowed_copies": str(m.borrowed_copies),
        "publisher": m.publisher,
    }


def material_from_row(row: Dict[str, object]) -> Material:
    try:
        category = parse_category(_text(row, "category"))
    except LibraryError as e:
        raise LibraryError(ErrorKind.DATA_INTEGRITY, e.message) from None
    total = _integer(row, "total_copies")
    if total < 0:
        raise LibraryError(ErrorKind.DATA_INTEGRITY, f"negative total copies: {total}")
    material = Material(
        category=category,
        material_id=_text(row, "id"),
        title=_text(row, "title"),
        author=_text(row, "author"),
        year_published=_integer(row, "year_published"),
        total_copies=total,
        publisher=_text(row, "publisher"),
    )
    # clamp a stale count into [0, total_copies]
    material.adjust_borrowed(_integer(row, "borrowed_copies"))
    return material


def transaction_to_row(t: Transaction) -> Dict[str, str]:
    return {
        "id": t.transaction_id,
        "borrower_id": t.borrower_id,
        "material_id": t.material_id,
        "borrow_date": _format_date(t.borrow_date),
        "due_date": _format_date(t.due_date),
        "returned": "true" if t.returned else "false",
        "return_date": _format_date(t.return_date),
    }


def transaction_from_row(row: Dict[str, object]) -> Transaction:
    return Transaction(
        transaction_id=_text(row, "id"),
        borrower_id=_text(row, "borrower_id"),
        material_id=_text(row, "material_id"),
        borrow_date=_date(row, "borrow_date"),
        due_date=_date(row, "due_date"),
        returned=_boolean(row, "returned"),
        return_date=_optional_date(row, "return_date"),
    )


class PersistenceAdapter:
    """
    PersistenceAdapter reads and writes the catalog's backing files.

    Each save overwrites the whole file with a header row and one record per line;
    pandas' csv quoting protects values that contain the delimiter, a quote or a
    newline. Each load replaces a collection wholesale: a missing or empty file is
    an empty collection, and a malformed line is logged and skipped.
    """

    def __init__(self,
                 data_dir: pathlib.Path,
                 borrowers_file: str = BORROWERS_FILE,
                 materials_file: str = MATERIALS_FILE,
                 transactions_file: str = TRANSACTIONS_FILE,
                 delimiter: str = DEFAULT_DELIMITER):
        """
        Args:
            data_dir: directory holding the backing files.
            borrowers_file: file name of the borrowers store.
            materials_file: file name of the materials store.
            transactions_file: file name of the transactions store.
            delimiter: single-character field separator.
        """
        self.data_dir = pathlib.Path(data_dir)
        self.borrowers_path = self.data_dir / borrowers_file
        self.materials_path = self.data_dir / materials_file
        self.transactions_path = self.data_dir / transactions_file
        self.delimiter = delimiter

    def ensure_files(self) -> None:
        """
        Create the data directory and any missing backing file.

        An OSError here is not caught: without writable backing files the
        application cannot run.
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)
        for path in (self.borrowers_path, self.materials_path, self.transactions_path):
            if not path.exists():
                path.touch()
                logger.info("Created empty backing file %s", path)

    # ---------------- Persisting ----------------
    def _write(self, path: pathlib.Path, columns: List[str], rows: List[Dict[str, str]]) -> None:
        out_df = pd.DataFrame(rows, columns=columns)
        out_df.to_csv(path, sep=self.delimiter, index=False, columns=columns, encoding="utf-8")
        logger.info("Saved %d records to %s", len(out_df), path)

    def save_borrowers(self, borrowers: List[Borrower]) -> None:
        self._write(self.borrowers_path, BORROWER_COLUMNS, [borrower_to_row(b) for b in borrowers])

    def save_materials(self, materials: List[Material]) -> None:
        self._write(self.materials_path, MATERIAL_COLUMNS, [material_to_row(m) for m in materials])

    def save_transactions(self, transactions: List[Transaction]) -> None:
        self._write(self.transactions_path, TRANSACTION_COLUMNS,
                    [transaction_to_row(t) for t in transactions])

    # ---------------- Loading ----------------
    def _balanced_text(self, path: pathlib.Path) -> str:
        """
        Return the file's text with any line that opens an unterminated quote removed.

        Undecodable bytes are replaced with U+FFFD so the affected field fails its
        codec and only that record is dropped. A stray quote would otherwise turn
        the rest of the file into a single field.
        """
        with path.open(encoding="utf-8", errors="replace", newline="") as fh:
            lines = fh.readlines()
        kept: List[str] = []
        start = 0
        while start < len(lines):
            end = start
            quotes = lines[start].count('"')
            while quotes % 2 and end + 1 < len(lines):
                end += 1
                quotes += lines[end].count('"')
            if quotes % 2:
                logger.warning("Skipping malformed line %d in %s: unterminated quote", start + 1, path.name)
                start += 1
                continue
            kept.extend(lines[start:end + 1])
            start = end + 1
        return "".join(kept)

    def _read_frame(self, path: pathlib.Path, columns: List[str],
                    legacy_columns: Optional[List[str]] = None) -> pd.DataFrame:
        """
        Read a backing file into a DataFrame of strings.

        A file without the expected header row (as written by older versions)
        is re-read positionally using `legacy_columns`, which defaults to `columns`.
        """
        if not path.exists():
            logger.warning("Backing file not found: %s (starting empty)", path)
            return pd.DataFrame(columns=columns)

        def skip_bad_line(fields: List[str]) -> None:
            logger.warning("Skipping malformed line in %s: expected %d fields, got %d",
                           path.name, len(columns), len(fields))
            return None

        text = self._balanced_text(path)
        read_opts = dict(sep=self.delimiter, dtype=str, keep_default_na=False,
                         engine="python", on_bad_lines=skip_bad_line)
        try:
            df = pd.read_csv(io.StringIO(text), **read_opts)
        except pd.errors.EmptyDataError:
            logger.info("Backing file %s is empty", path)
            return pd.DataFrame(columns=columns)
        if list(df.columns) != columns:
            logger.warning("%s has no recognised header; reading it positionally", path.name)
            df = pd.read_csv(io.StringIO(text), header=None, names=legacy_columns or columns, **read_opts)
        return df

    def _load(self, path: pathlib.Path, columns: List[str],
              from_row: Callable[[Dict[str, object]], R],
              legacy_columns: Optional[List[str]] = None) -> List[R]:
        df = self._read_frame(path, columns, legacy_columns)
        records: List[R] = []
        for index, row in df.iterrows():
            try:
                records.append(from_row(row.to_dict()))
            except LibraryError as e:
                logger.warning("Skipping malformed record %d in %s: %s", index + 1, path.name, e.message)
        logger.info("Loaded %d records from %s", len(records), path)
        return records

    def load_borrowers(self) -> List[Borrower]:
        return self._load(self.borrowers_path, BORROWER_COLUMNS, borrower_from_row)

    def load_materials(self) -> List[Material]:
        return self._load(self.materials_path, MATERIAL_COLUMNS, material_from_row,
                          legacy_columns=LEGACY_MATERIAL_COLUMNS)

    def load_transactions(self) -> List[Transaction]:
        return self._load(self.transactions_path, TRANSACTION_COLUMNS, transaction_from_row)
