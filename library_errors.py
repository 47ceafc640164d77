"""
library_errors.py

Error kinds and result types shared by the catalog store and checkout engine.

Store and engine operations never raise for an expected domain failure; they
return either ``Ok(value)`` or ``Err(LibraryError)``. The interactive layer maps
the error to a one-line message with ``describe_error``.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(Enum):
    BORROWER_NOT_FOUND = "BorrowerNotFound"
    MATERIAL_NOT_FOUND = "MaterialNotFound"
    TRANSACTION_NOT_FOUND = "TransactionNotFound"
    DUPLICATE_BORROWER = "DuplicateBorrower"
    DUPLICATE_MATERIAL = "DuplicateMaterial"
    HAS_ACTIVE_LOANS = "HasActiveLoans"
    BORROWER_SUSPENDED = "BorrowerSuspended"
    ALREADY_HAS_ACTIVE_LOAN = "AlreadyHasActiveLoan"
    NO_COPIES_AVAILABLE = "NoCopiesAvailable"
    NO_ACTIVE_LOAN = "NoActiveLoan"
    DATA_INTEGRITY = "DataIntegrityError"
    INVALID_VALUE = "InvalidValue"

    @property
    def family(self) -> str:
        """Coarse error family, e.g. ``NotFound`` for every lookup miss."""
        return _FAMILIES.get(self, self.value)


_FAMILIES = {
    ErrorKind.BORROWER_NOT_FOUND: "NotFound",
    ErrorKind.MATERIAL_NOT_FOUND: "NotFound",
    ErrorKind.TRANSACTION_NOT_FOUND: "NotFound",
    ErrorKind.DUPLICATE_BORROWER: "DuplicateEntity",
    ErrorKind.DUPLICATE_MATERIAL: "DuplicateEntity",
}


class LibraryError(Exception):
    """A domain failure with a kind and a human-readable one-line message."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __repr__(self) -> str:
        return f"LibraryError({self.kind.value}, {self.message!r})"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: LibraryError

    @property
    def ok(self) -> bool:
        return False

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind


Result = Union[Ok[T], Err]


def fail(kind: ErrorKind, message: str) -> Err:
    return Err(LibraryError(kind, message))


def describe_error(result: Union[Err, LibraryError]) -> str:
    """
    Render a failure as a single line suitable for the console.

    Accepts either an ``Err`` result or a bare ``LibraryError``.
    """
    error = result.error if isinstance(result, Err) else result
    return f"{error.kind.value}: {error.message}"
