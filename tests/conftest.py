import datetime
import pathlib
import sys

import pytest

# Add project root to sys.path so imports from repo root work when running the tests
sys.path.insert(0, str(pathlib.Path(__file__).resolve().parent.parent))

from catalog_store import CatalogStore
from checkout_engine import CheckoutEngine

DAY0 = datetime.date(2025, 3, 1)


@pytest.fixture
def day0():
    return DAY0


@pytest.fixture
def store():
    return CatalogStore()


@pytest.fixture
def engine(store):
    return CheckoutEngine(store)


@pytest.fixture
def make_borrower(store):
    counter = {"n": 0}

    def _make(first="Alice", last="Reader", email=None, **kwargs):
        counter["n"] += 1
        email = email or f"reader{counter['n']}@example.com"
        result = store.add_borrower(first, kwargs.pop("middle", ""), last, kwargs.pop("gender", "F"),
                                    datetime.date(1990, 5, 17), "5551234567", email,
                                    kwargs.pop("address", "1 Library Lane"), **kwargs)
        assert result.ok, result
        return result.value

    return _make


@pytest.fixture
def make_material(store):
    counter = {"n": 0}

    def _make(category="BOOK", title=None, author="Frank Herbert", copies=1, **kwargs):
        counter["n"] += 1
        title = title or f"Title {counter['n']}"
        result = store.add_material(category, title, author, 1965, copies, **kwargs)
        assert result.ok, result
        return result.value

    return _make
