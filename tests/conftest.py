import datetime

import pytest

from borrowing_service import BorrowingConfig, BorrowingService
from library_models import Book, Member
from library_system import Library


class FakeClock:
    """Callable clock whose date the test moves by hand."""

    def __init__(self, start: datetime.date):
        self.today = start

    def __call__(self) -> datetime.date:
        return self.today

    def advance(self, days: int) -> None:
        self.today += datetime.timedelta(days=days)


@pytest.fixture
def clock():
    return FakeClock(datetime.date(2024, 3, 1))


@pytest.fixture
def service(clock):
    return BorrowingService(clock=clock)


@pytest.fixture
def book():
    return Book("978-0134685991", "Effective Java", "Joshua Bloch")


@pytest.fixture
def member():
    return Member(1, "Alice Johnson", "alice@example.com")


@pytest.fixture
def library(clock):
    lib = Library(service=BorrowingService(BorrowingConfig(), clock=clock))
    lib.add_item(Book("978-0134685991", "Effective Java", "Joshua Bloch"))
    lib.add_item(Book("978-1491946008", "Fluent Python", "Luciano Ramalho"))
    lib.add_member(Member(1, "Alice Johnson", "alice@example.com"))
    lib.add_member(Member(2, "Bob Smith", "bob@example.com"))
    return lib
