import datetime
import logging
from decimal import Decimal

import pytest

from borrowing_service import BorrowingConfig, BorrowingService, BorrowStatus, RejectReason
from library_models import (Book, BorrowError, BorrowRecord, DVD, ItemNotAvailableError, LoanPolicy, Magazine,
                            Member, MemberLimitExceededError, ReferenceBook)


def test_borrow_sets_item_unavailable_and_due_date_from_policy(service, book, member, clock):
    result = service.borrow_item(book, member)
    assert result.success
    assert result.status is BorrowStatus.SUCCESS
    record = result.record
    assert book.available is False
    assert record.borrow_date == clock.today
    assert record.due_date == clock.today + datetime.timedelta(days=14)
    assert record.item_id == book.id
    assert record.member_id == member.id
    assert service.active_borrows() == [record]
    assert service.history() == [record]


def test_custom_days_override_policy(service, book, member, clock):
    record = service.borrow_item(book, member, custom_days=30).record
    assert record.due_date == clock.today + datetime.timedelta(days=30)


@pytest.mark.parametrize("days, message", [
    (0, "Borrow days must be positive"),
    (-3, "Borrow days must be positive"),
    (31, "Maximum borrow period is 30 days"),
])
def test_custom_days_out_of_range_rejected(service, book, member, days, message):
    result = service.borrow_item(book, member, custom_days=days)
    assert not result.success
    assert result.status is BorrowStatus.REJECTED
    assert result.message == message
    assert book.available
    assert service.active_borrows() == []


def test_validation_order_first_failure_wins(service, book, member):
    assert service.borrow_item(None, None).message == "Item is null"
    assert service.borrow_item(book, None).message == "Member is null"
    book.available = False
    # unavailable item is reported before the invalid day count
    result = service.borrow_item(book, member, custom_days=99)
    assert "cannot be borrowed" in result.message


def test_borrowing_unavailable_item_fails_without_mutation(service, book, member):
    service.borrow_item(book, member)
    second = service.borrow_item(book, Member(2, "Bob", "bob@example.com"))
    assert not second.success
    assert second.record is None
    assert len(service.active_borrows()) == 1
    assert len(service.history()) == 1


def test_reference_book_and_policyless_items_cannot_be_borrowed(service, member):
    ref = ReferenceBook("OED", "Oxford English Dictionary", "Language")
    dvd = DVD("X", "Inception", "Nolan")
    assert not service.borrow_item(ref, member).success
    assert not service.borrow_item(dvd, member).success
    assert ref.available and dvd.available


def test_member_limit_enforced_when_multiple_borrows_disallowed(clock, member):
    service = BorrowingService(BorrowingConfig(allow_multiple_borrows=False, max_borrows_per_member=2), clock=clock)
    books = [Book(str(i), f"Book {i}", "A") for i in range(3)]
    assert service.borrow_item(books[0], member).success
    assert service.borrow_item(books[1], member).success
    third = service.borrow_item(books[2], member)
    assert not third.success
    assert third.message == "Member has reached maximum borrow limit"
    assert third.reason is RejectReason.LIMIT_REACHED
    assert books[2].available
    # another member is unaffected
    assert service.borrow_item(books[2], Member(2, "Bob", "bob@example.com")).success


def test_member_limit_ignored_when_multiple_borrows_allowed(clock, member):
    service = BorrowingService(BorrowingConfig(allow_multiple_borrows=True, max_borrows_per_member=1), clock=clock)
    assert service.borrow_item(Book("1", "A", "A"), member).success
    assert service.borrow_item(Book("2", "B", "B"), member).success


def test_return_closes_record_and_keeps_history(service, book, member, clock):
    record = service.borrow_item(book, member).record
    clock.advance(3)
    returned = service.return_item(book)
    assert returned is record
    assert record.return_date == clock.today
    assert book.available
    assert service.active_borrows() == []
    assert service.history() == [record]


def test_return_without_active_record_is_noop(service, book):
    assert service.return_item(book) is None
    assert book.available


def test_double_return_second_attempt_fails(service, book, member, clock):
    record = service.borrow_item(book, member).record
    clock.advance(2)
    service.return_item(book)
    first_return = record.return_date
    clock.advance(5)
    assert service.return_item(book) is None
    assert record.return_date == first_return


def test_item_can_be_borrowed_again_after_return(service, book, member):
    first = service.borrow_item(book, member).record
    service.return_item(book)
    second = service.borrow_item(book, member).record
    assert second is not first
    assert len(service.history()) == 2
    assert service.active_borrows() == [second]


def test_renew_extends_due_date(service, book, member):
    record = service.borrow_item(book, member).record
    original_due = record.due_date
    assert service.renew_borrow(record, 7)
    assert record.due_date == original_due + datetime.timedelta(days=7)
    assert record.renewal_count == 1


def test_renew_does_not_enforce_max_renewals(service, book, member):
    record = service.borrow_item(book, member).record
    assert book.loan_policy.max_renewals == 1
    assert service.renew_borrow(record, 7)
    assert service.renew_borrow(record, 7)
    assert record.renewal_count == 2


def test_renew_non_renewable_never_changes_due_date(service, member):
    magazine = Magazine("National Geographic", "2024-01")
    record = service.borrow_item(magazine, member).record
    due = record.due_date
    assert service.renew_borrow(record, 7) is False
    assert record.due_date == due
    assert record.renewal_count == 0


def test_renew_returned_record_fails(service, book, member):
    record = service.borrow_item(book, member).record
    service.return_item(book)
    due = record.due_date
    assert service.renew_borrow(record, 7) is False
    assert record.due_date == due


def test_renew_negative_days_is_contract_violation(service, book, member):
    record = service.borrow_item(book, member).record
    with pytest.raises(ValueError):
        service.renew_borrow(record, -1)


def test_fine_for_returned_overdue_record(clock, member, book):
    clock.today = datetime.date(2023, 12, 18)
    service = BorrowingService(clock=clock)
    record = service.borrow_item(book, member).record
    assert record.due_date == datetime.date(2024, 1, 1)
    clock.today = datetime.date(2024, 1, 5)
    service.return_item(book)
    assert service.calculate_fine(record) == Decimal("2000")
    # returned records are measured at their return date, whatever the query date
    assert service.calculate_fine(record, as_of=datetime.date(2024, 6, 1)) == Decimal("2000")


def test_fine_scenario_active_record_queried_on_day_20(service, book, member, clock):
    record = service.borrow_item(book, member).record
    clock.advance(20)
    assert record.is_overdue(clock.today)
    assert record.days_overdue(clock.today) == 6
    assert service.calculate_fine(record) == Decimal("3000")
    assert service.overdue_borrows() == [record]
    assert service.total_outstanding_fines() == Decimal("3000")


def test_fine_is_zero_when_not_overdue(service, book, member, clock):
    record = service.borrow_item(book, member).record
    clock.advance(14)
    assert service.calculate_fine(record) == Decimal("0")
    service.return_item(book)
    assert service.calculate_fine(record) == Decimal("0")


def test_fine_falls_back_to_default_daily_fine(clock):
    service = BorrowingService(BorrowingConfig(default_daily_fine=Decimal("250")), clock=clock)
    record = BorrowRecord("DVD-X", 1, datetime.date(2024, 1, 1), datetime.date(2024, 1, 2))
    record.mark_returned(datetime.date(2024, 1, 4))
    assert service.calculate_fine(record) == Decimal("500")


def test_policy_snapshot_drives_fine(service, member, clock):
    dvd = DVD("X", "Heat", "Mann", loan_policy=LoanPolicy(max_loan_days=2, daily_fine=1000))
    record = service.borrow_item(dvd, member).record
    dvd.loan_policy = None
    clock.advance(5)
    assert service.calculate_fine(record) == Decimal("3000")


def test_member_and_overdue_queries(service, member, clock):
    bob = Member(2, "Bob", "bob@example.com")
    b1, b2, b3 = Book("1", "A", "A"), Book("2", "B", "B"), Magazine("M", "7")
    r1 = service.borrow_item(b1, member).record
    service.borrow_item(b2, bob)
    r3 = service.borrow_item(b3, member).record
    assert service.member_active_borrows(member) == [r1, r3]
    clock.advance(10)
    assert service.overdue_borrows() == [r3]


def test_borrow_or_raise(service, book, member, clock):
    record = service.borrow_item_or_raise(book, member)
    assert record.item_id == book.id
    with pytest.raises(ItemNotAvailableError) as exc:
        service.borrow_item_or_raise(book, member)
    assert exc.value.item_id == book.id
    assert exc.value.member_id == member.id
    with pytest.raises(BorrowError, match="Borrow days must be positive"):
        service.borrow_item_or_raise(Book("2", "B", "B"), member, custom_days=0)


def test_borrow_or_raise_member_limit(clock, member):
    service = BorrowingService(BorrowingConfig(allow_multiple_borrows=False, max_borrows_per_member=1), clock=clock)
    service.borrow_item_or_raise(Book("1", "A", "A"), member)
    with pytest.raises(MemberLimitExceededError) as exc:
        service.borrow_item_or_raise(Book("2", "B", "B"), member)
    assert exc.value.current_count == 1
    assert exc.value.max_limit == 1
    assert "current: 1, limit: 1" in str(exc.value)


def test_borrow_or_raise_checks_period_before_member_limit(clock, member):
    service = BorrowingService(BorrowingConfig(allow_multiple_borrows=False, max_borrows_per_member=1), clock=clock)
    service.borrow_item(Book("1", "A", "A"), member)
    extra = Book("2", "B", "B")

    result = service.borrow_item(extra, member, custom_days=0)
    assert result.message == "Borrow days must be positive"
    assert result.reason is RejectReason.INVALID_PERIOD

    with pytest.raises(BorrowError) as exc:
        service.borrow_item_or_raise(extra, member, custom_days=0)
    assert type(exc.value) is BorrowError
    assert "Borrow days must be positive" in str(exc.value)
    assert extra.available


def test_rejections_carry_the_failing_check(service, book, member):
    assert service.borrow_item(None, member).reason is RejectReason.MISSING_INPUT
    assert service.borrow_item(book, member, custom_days=31).reason is RejectReason.INVALID_PERIOD
    service.borrow_item(book, member)
    assert service.borrow_item(book, member).reason is RejectReason.NOT_BORROWABLE


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("LIBRARY_LOAN_DAYS", "10")
    monkeypatch.setenv("LIBRARY_DAILY_FINE", "125.5")
    monkeypatch.setenv("LIBRARY_ALLOW_MULTIPLE", "no")
    monkeypatch.setenv("LIBRARY_MAX_BORROWS", "3")
    config = BorrowingConfig.from_env()
    assert config.default_loan_days == 10
    assert config.default_daily_fine == Decimal("125.5")
    assert config.allow_multiple_borrows is False
    assert config.max_borrows_per_member == 3


def test_config_defaults_and_validation():
    config = BorrowingConfig()
    assert config.default_loan_days == 14
    assert config.default_daily_fine == Decimal("500")
    assert config.allow_multiple_borrows is True
    assert config.max_borrows_per_member == 5
    with pytest.raises(ValueError):
        BorrowingConfig(default_loan_days=0)


def test_borrow_is_logged(service, book, member, caplog):
    with caplog.at_level(logging.INFO, logger="LibrarySystem"):
        service.borrow_item(book, member)
    assert any("Borrowed BOOK-978-0134685991 to member 1" in r.getMessage() for r in caplog.records)
