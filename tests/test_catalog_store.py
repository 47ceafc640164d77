import datetime

from catalog_models import Transaction
from library_errors import Err, ErrorKind, Ok
from loan_policy import MaterialCategory


def test_borrower_ids_are_sequential_from_base(make_borrower):
    first = make_borrower()
    second = make_borrower()
    assert first.borrower_id == "2025000"
    assert second.borrower_id == "2025001"
    assert first.violations == 0


def test_sequential_id_continues_after_supplied_id(make_borrower):
    make_borrower(borrower_id="2025010")
    assert make_borrower().borrower_id == "2025011"


def test_duplicate_email_is_rejected_case_insensitively(store, make_borrower):
    make_borrower(email="Alice@Example.com")
    result = store.add_borrower("Alicia", "", "Other", "F", datetime.date(1991, 1, 1),
                                "5550000000", " alice@example.COM", "Elsewhere")
    assert isinstance(result, Err)
    assert result.kind is ErrorKind.DUPLICATE_BORROWER
    assert result.kind.family == "DuplicateEntity"
    assert len(store.borrowers) == 1


def test_duplicate_borrower_id_is_rejected(make_borrower, store):
    make_borrower(borrower_id="B1")
    result = store.add_borrower("Bob", "", "Smith", "M", datetime.date(1980, 1, 1),
                                "5550000000", "bob@example.com", "Addr", borrower_id="B1")
    assert result.kind is ErrorKind.DUPLICATE_BORROWER


def test_find_borrower_not_found(store):
    result = store.find_borrower("nobody")
    assert result.kind is ErrorKind.BORROWER_NOT_FOUND
    assert result.kind.family == "NotFound"


def test_add_material_normalizes_category_and_assigns_id(store):
    result = store.add_material("journal", "Nature", "", 2020, 2)
    assert isinstance(result, Ok)
    material = result.value
    assert material.category is MaterialCategory.JOURNAL
    assert material.material_id == "1"
    assert material.available_copies == 2
    assert material.display_title == "Nature"


def test_duplicate_title_and_author_rejected(make_material, store):
    make_material(title="Dune", author="Frank Herbert")
    result = store.add_material("BOOK", "dune", "FRANK HERBERT", 1965, 1)
    assert result.kind is ErrorKind.DUPLICATE_MATERIAL
    # same title by a different author is a different work
    assert store.add_material("BOOK", "Dune", "Someone Else", 2001, 1).ok


def test_add_material_rejects_unknown_category_and_negative_copies(store):
    assert store.add_material("DVD", "Film", "", 2000, 1).kind is ErrorKind.INVALID_VALUE
    assert store.add_material("BOOK", "Film", "", 2000, -1).kind is ErrorKind.INVALID_VALUE
    assert store.materials == []


def test_remove_borrower_with_active_loan_is_blocked(store, make_borrower, make_material, day0):
    borrower = make_borrower()
    material = make_material()
    store.transactions.append(Transaction("t1", borrower.borrower_id, material.material_id, day0, day0))
    result = store.remove_borrower(borrower.borrower_id)
    assert result.kind is ErrorKind.HAS_ACTIVE_LOANS
    assert store.get_borrower(borrower.borrower_id) is borrower


def test_remove_borrower_after_return(store, make_borrower, make_material, day0):
    borrower = make_borrower()
    material = make_material()
    store.transactions.append(Transaction("t1", borrower.borrower_id, material.material_id, day0, day0,
                                          returned=True, return_date=day0))
    assert store.remove_borrower(borrower.borrower_id).ok
    assert store.get_borrower(borrower.borrower_id) is None


def test_remove_material_with_active_loan_is_blocked(store, make_borrower, make_material, day0):
    borrower = make_borrower()
    material = make_material()
    store.transactions.append(Transaction("t1", borrower.borrower_id, material.material_id, day0, day0))
    assert store.remove_material(material.material_id).kind is ErrorKind.HAS_ACTIVE_LOANS
    assert store.get_material(material.material_id) is material


def test_remove_missing_material(store):
    assert store.remove_material("42").kind is ErrorKind.MATERIAL_NOT_FOUND


def test_edit_borrower_and_reset_violations(store, make_borrower):
    borrower = make_borrower()
    borrower.violations = 3
    assert store.edit_borrower(borrower.borrower_id, address="2 New Road", gender="m").ok
    assert borrower.address == "2 New Road"
    assert borrower.gender == "M"
    assert store.reset_violations(borrower.borrower_id).ok
    assert borrower.violations == 0


def test_edit_borrower_rejects_taken_email_without_applying_anything(store, make_borrower):
    make_borrower(email="taken@example.com")
    borrower = make_borrower()
    result = store.edit_borrower(borrower.borrower_id, address="Changed", email="TAKEN@example.com")
    assert result.kind is ErrorKind.DUPLICATE_BORROWER
    assert borrower.address == "1 Library Lane"


def test_edit_borrower_rejects_unknown_field_and_negative_violations(store, make_borrower):
    borrower = make_borrower()
    assert store.edit_borrower(borrower.borrower_id, shoe_size=9).kind is ErrorKind.INVALID_VALUE
    assert store.edit_borrower(borrower.borrower_id, violations=-1).kind is ErrorKind.INVALID_VALUE


def test_edit_material_cannot_drop_below_borrowed_copies(store, make_material):
    material = make_material(copies=3)
    material.borrowed_copies = 2
    assert store.edit_material(material.material_id, total_copies=1).kind is ErrorKind.INVALID_VALUE
    assert material.total_copies == 3
    assert store.edit_material(material.material_id, total_copies="2", year_published="1966").ok
    assert material.total_copies == 2
    assert material.year_published == 1966


def test_adjust_borrowed_is_clamped(make_material):
    material = make_material(copies=2)
    material.adjust_borrowed(5)
    assert material.borrowed_copies == 2
    material.adjust_borrowed(-9)
    assert material.borrowed_copies == 0


def test_non_numeric_values_are_invalid_not_raised(store, make_borrower, make_material):
    result = store.add_material("BOOK", "Dune", "Frank Herbert", "19x5", 1)
    assert result.kind is ErrorKind.INVALID_VALUE
    assert store.add_material("BOOK", "Dune", "Frank Herbert", 1965, "two").kind is ErrorKind.INVALID_VALUE
    assert store.materials == []

    borrower = make_borrower()
    borrower.violations = 1
    assert store.edit_borrower(borrower.borrower_id, violations="many", last_name="Other").kind \
        is ErrorKind.INVALID_VALUE
    assert borrower.violations == 1
    assert borrower.last_name == "Reader"

    material = make_material(copies=2)
    assert store.edit_material(material.material_id, total_copies="lots").kind is ErrorKind.INVALID_VALUE
    assert store.edit_material(material.material_id, year_published=None, title="New").kind \
        is ErrorKind.INVALID_VALUE
    assert material.total_copies == 2
    assert material.year_published == 1965
    assert material.title != "New"
