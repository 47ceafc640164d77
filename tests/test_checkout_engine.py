import datetime

import pytest

from checkout_engine import CheckoutEngine
from library_errors import Err, ErrorKind, Ok


def days(n):
    return datetime.timedelta(days=n)


def test_book_late_return_scenario(engine, make_borrower, make_material, day0):
    borrower = make_borrower()
    book = make_material("BOOK", copies=1)

    borrowed = engine.borrow(borrower.borrower_id, book.material_id, day0)
    assert isinstance(borrowed, Ok)
    assert borrowed.value.due_date == day0 + days(7)
    assert book.borrowed_copies == 1

    returned = engine.return_material(borrower.borrower_id, day0 + days(10))
    assert isinstance(returned, Ok)
    assert returned.value.late is True
    assert returned.value.transaction.returned is True
    assert returned.value.transaction.return_date == day0 + days(10)
    assert borrower.violations == 1
    assert book.borrowed_copies == 0


def test_magazine_same_day_return_is_not_late(engine, make_borrower, make_material, day0):
    borrower = make_borrower()
    magazine = make_material("MAGAZINE", author="")
    transaction = engine.borrow(borrower.borrower_id, magazine.material_id, day0).value
    assert transaction.due_date == day0

    outcome = engine.return_material(borrower.borrower_id, day0).value
    assert outcome.late is False
    assert borrower.violations == 0


@pytest.mark.parametrize("category, loan", [("BOOK", 7), ("JOURNAL", 3), ("THESIS", 2)])
def test_return_on_due_date_is_on_time_and_day_after_is_late(store, make_borrower, make_material, day0,
                                                             category, loan):
    engine = CheckoutEngine(store)
    on_time = make_borrower()
    late = make_borrower()
    material = make_material(category, copies=2)
    engine.borrow(on_time.borrower_id, material.material_id, day0)
    engine.borrow(late.borrower_id, material.material_id, day0)

    assert engine.return_material(on_time.borrower_id, day0 + days(loan)).value.late is False
    assert engine.return_material(late.borrower_id, day0 + days(loan + 1)).value.late is True
    assert (on_time.violations, late.violations) == (0, 1)


def test_borrow_unknown_borrower_wins_over_unknown_material(engine, day0):
    result = engine.borrow("nobody", "nothing", day0)
    assert isinstance(result, Err)
    assert result.kind is ErrorKind.BORROWER_NOT_FOUND


def test_suspension_checked_before_active_loan(engine, make_borrower, make_material, day0):
    borrower = make_borrower()
    first, second = make_material(), make_material()
    engine.borrow(borrower.borrower_id, first.material_id, day0)
    borrower.violations = 3
    assert engine.borrow(borrower.borrower_id, second.material_id, day0).kind is ErrorKind.BORROWER_SUSPENDED


def test_active_loan_checked_before_material_lookup(engine, make_borrower, make_material, day0):
    borrower = make_borrower()
    material = make_material()
    engine.borrow(borrower.borrower_id, material.material_id, day0)
    result = engine.borrow(borrower.borrower_id, "missing", day0)
    assert result.kind is ErrorKind.ALREADY_HAS_ACTIVE_LOAN


def test_borrow_unknown_material(engine, make_borrower, day0):
    borrower = make_borrower()
    assert engine.borrow(borrower.borrower_id, "missing", day0).kind is ErrorKind.MATERIAL_NOT_FOUND


def test_last_copy_then_no_copies_available_until_returned(engine, make_borrower, make_material, day0):
    alice, bob = make_borrower(), make_borrower()
    book = make_material(copies=1)
    assert engine.borrow(alice.borrower_id, book.material_id, day0).ok

    refused = engine.borrow(bob.borrower_id, book.material_id, day0)
    assert refused.kind is ErrorKind.NO_COPIES_AVAILABLE

    engine.return_material(alice.borrower_id, day0 + days(1))
    assert book.available_copies == 1
    assert engine.borrow(bob.borrower_id, book.material_id, day0 + days(1)).ok


def test_zero_copy_material_cannot_be_borrowed(engine, make_borrower, make_material, day0):
    borrower = make_borrower()
    material = make_material(copies=0)
    assert engine.borrow(borrower.borrower_id, material.material_id, day0).kind is ErrorKind.NO_COPIES_AVAILABLE


def test_failed_borrow_changes_nothing(engine, store, make_borrower, make_material, day0):
    borrower = make_borrower()
    borrower.violations = 5
    material = make_material(copies=2)
    engine.borrow(borrower.borrower_id, material.material_id, day0)
    assert store.transactions == []
    assert material.borrowed_copies == 0
    assert borrower.violations == 5


def test_three_late_returns_suspend_the_borrower(engine, make_borrower, make_material, day0):
    borrower = make_borrower()
    book = make_material(copies=1)
    today = day0
    for _ in range(3):
        assert engine.borrow(borrower.borrower_id, book.material_id, today).ok
        today = today + days(8)
        assert engine.return_material(borrower.borrower_id, today).value.late
    assert borrower.violations == 3
    assert engine.is_suspended(borrower)
    assert engine.borrow(borrower.borrower_id, book.material_id, today).kind is ErrorKind.BORROWER_SUSPENDED


def test_return_without_active_loan(engine, make_borrower, day0):
    borrower = make_borrower()
    assert engine.return_material(borrower.borrower_id, day0).kind is ErrorKind.NO_ACTIVE_LOAN


def test_return_unknown_borrower(engine, day0):
    assert engine.return_material("ghost", day0).kind is ErrorKind.BORROWER_NOT_FOUND


def test_second_return_is_refused(engine, make_borrower, make_material, day0):
    borrower = make_borrower()
    book = make_material(copies=1)
    engine.borrow(borrower.borrower_id, book.material_id, day0)
    assert engine.return_material(borrower.borrower_id, day0 + days(30)).ok
    assert engine.return_material(borrower.borrower_id, day0 + days(31)).kind is ErrorKind.NO_ACTIVE_LOAN
    assert borrower.violations == 1
    assert book.borrowed_copies == 0


def test_return_with_dangling_material_is_data_integrity_error(engine, store, make_borrower, make_material, day0):
    borrower = make_borrower()
    book = make_material()
    transaction = engine.borrow(borrower.borrower_id, book.material_id, day0).value
    store.materials.remove(book)

    result = engine.return_material(borrower.borrower_id, day0 + days(20))
    assert result.kind is ErrorKind.DATA_INTEGRITY
    assert transaction.returned is False
    assert borrower.violations == 0


def test_multiple_loans_policy_returns_first_in_insertion_order(store, make_borrower, make_material, day0):
    engine = CheckoutEngine(store, max_active_loans=2)
    borrower = make_borrower()
    first, second, third = make_material(), make_material(), make_material()
    assert engine.borrow(borrower.borrower_id, first.material_id, day0).ok
    assert engine.borrow(borrower.borrower_id, second.material_id, day0).ok
    assert engine.borrow(borrower.borrower_id, third.material_id, day0).kind is ErrorKind.ALREADY_HAS_ACTIVE_LOAN

    outcome = engine.return_material(borrower.borrower_id, day0).value
    assert outcome.transaction.material_id == first.material_id

    assert engine.return_material(borrower.borrower_id, day0, material_id=first.material_id).kind \
        is ErrorKind.NO_ACTIVE_LOAN
    assert engine.return_material(borrower.borrower_id, day0, material_id=second.material_id).ok


def test_histories_fall_back_to_raw_ids(engine, store, make_borrower, make_material, day0):
    borrower = make_borrower(first="Ada", last="Lovelace")
    book = make_material(title="Notes", author="Menabrea")
    engine.borrow(borrower.borrower_id, book.material_id, day0)
    engine.return_material(borrower.borrower_id, day0)

    [entry] = engine.borrower_history(borrower.borrower_id).value
    assert entry.counterpart == "Notes by Menabrea"
    [entry] = engine.material_history(book.material_id).value
    assert entry.counterpart == "Ada Lovelace"

    store.remove_borrower(borrower.borrower_id)
    [entry] = engine.material_history(book.material_id).value
    assert entry.counterpart == borrower.borrower_id

    assert engine.borrower_history("ghost").kind is ErrorKind.BORROWER_NOT_FOUND


def test_overdue_transactions(engine, make_borrower, make_material, day0):
    borrower = make_borrower()
    journal = make_material("JOURNAL")
    transaction = engine.borrow(borrower.borrower_id, journal.material_id, day0).value
    assert engine.overdue_transactions(day0 + days(3)) == []
    assert engine.overdue_transactions(day0 + days(4)) == [transaction]


def test_copy_counts_stay_in_range_across_operations(engine, store, make_borrower, make_material, day0):
    borrowers = [make_borrower() for _ in range(4)]
    materials = [make_material(copies=n) for n in (1, 2)]
    today = day0
    for step in range(12):
        borrower = borrowers[step % len(borrowers)]
        material = materials[step % len(materials)]
        if step % 3 == 2:
            engine.return_material(borrower.borrower_id, today)
        else:
            engine.borrow(borrower.borrower_id, material.material_id, today)
        today = today + days(2)
        for m in store.materials:
            assert 0 <= m.borrowed_copies <= m.total_copies
            assert m.borrowed_copies == len(store.active_transactions_for_material(m.material_id))
