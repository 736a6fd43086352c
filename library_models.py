"""
library_models.py

Domain entities for the lending library: catalog items, members and borrow records.
"""

from __future__ import annotations
import datetime
import uuid
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional


# ---------------- Errors ----------------
class LibraryError(Exception):
    """Base class for every error raised by the library core."""


class InvalidStateError(LibraryError):
    """A caller broke an entity contract (e.g. returning a record twice)."""


class ItemNotFoundError(LibraryError):
    def __init__(self, item_id: str):
        super().__init__(f"Item with ID {item_id} not found")
        self.item_id = item_id


class MemberNotFoundError(LibraryError):
    def __init__(self, member_id: int):
        super().__init__(f"Member with ID {member_id} not found")
        self.member_id = member_id


class BorrowError(LibraryError):
    """
    Raised by the strict borrow path when a borrow request is rejected.

    The message is prefixed with the item and member involved.
    """

    def __init__(self, message: str, item_id: Optional[str] = None, member_id: Optional[int] = None):
        self.reason = message
        self.item_id = item_id
        self.member_id = member_id
        super().__init__(f"Borrow failed for item {item_id} by member {member_id}: {message}")


class ItemNotAvailableError(BorrowError):
    def __init__(self, item_id: Optional[str], member_id: Optional[int]):
        super().__init__("Item is not available for borrowing", item_id, member_id)


class MemberLimitExceededError(BorrowError):
    def __init__(self, item_id: Optional[str], member_id: Optional[int], current_count: int, max_limit: int):
        self.current_count = current_count
        self.max_limit = max_limit
        super().__init__(f"Member has exceeded borrow limit (current: {current_count}, limit: {max_limit})",
                         item_id, member_id)


# ---------------- Enums ----------------
class ItemType(Enum):
    BOOK = "Book"
    MAGAZINE = "Magazine"
    DVD = "DVD"
    REFERENCE_BOOK = "Reference Book"
    AUDIO_BOOK = "Audio Book"

    @property
    def display_name(self) -> str:
        return self.value


class MovieGenre(Enum):
    ACTION = ("Action", 18)
    COMEDY = ("Comedy", 12)
    DRAMA = ("Drama", 15)
    SCIENCE_FICTION = ("Science Fiction", 12)
    HORROR = ("Horror", 18)
    DOCUMENTARY = ("Documentary", 0)
    EDUCATIONAL = ("Educational", 0)
    ANIMATION = ("Animation", 6)
    FANTASY = ("Fantasy", 12)
    MYSTERY = ("Mystery", 15)
    THRILLER = ("Thriller", 18)
    FAMILY = ("Family", 6)
    HISTORY = ("History", 12)

    def __init__(self, display_name: str, minimum_age: int):
        self.display_name = display_name
        self.minimum_age = minimum_age

    @classmethod
    def from_name(cls, name: Optional[str]) -> Optional["MovieGenre"]:
        """
        Look up a genre by display name or enum name, case-insensitively.

        Returns None for blank or unknown names.
        """
        if name is None or not name.strip():
            return None
        wanted = name.strip().lower()
        for genre in cls:
            if genre.display_name.lower() == wanted or genre.name.lower() == wanted:
                return genre
        return None

    @property
    def age_rating(self) -> str:
        if self.minimum_age == 0:
            return "All Ages"
        if self.minimum_age < 13:
            return "PG"
        if self.minimum_age < 18:
            return "PG-13"
        return "R (18+)"

    def is_age_appropriate(self, age: int) -> bool:
        return age >= self.minimum_age


class MemberStatus(Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    EXPIRED = "EXPIRED"


class RecordStatus(Enum):
    ACTIVE = "ACTIVE"
    OVERDUE = "OVERDUE"
    RETURNED = "RETURNED"
    RETURNED_LATE = "RETURNED_LATE"


# ---------------- Loan policy ----------------
@dataclass(frozen=True)
class LoanPolicy:
    """
    How long an item may be held, what a late day costs and whether it renews.

    Attributes:
        max_loan_days: default loan length in days (> 0).
        daily_fine: fine charged per overdue day (>= 0).
        renewable: whether an active loan can be extended.
        max_renewals: advertised renewal cap (>= 0); informational only.
    """

    max_loan_days: int
    daily_fine: Decimal
    renewable: bool = True
    max_renewals: int = 1

    def __post_init__(self):
        if self.max_loan_days <= 0:
            raise ValueError("max_loan_days must be > 0")
        # Normalise ints/floats/strings so fine arithmetic stays in Decimal
        object.__setattr__(self, "daily_fine", Decimal(str(self.daily_fine)))
        if self.daily_fine < 0:
            raise ValueError("daily_fine must be >= 0")
        if self.max_renewals < 0:
            raise ValueError("max_renewals must be >= 0")

    def loan_info(self) -> str:
        return (f"Max loan: {self.max_loan_days} days, Daily fine: {self.daily_fine:.2f}, "
                f"Renewable: {'yes' if self.renewable else 'no'}")


BOOK_POLICY = LoanPolicy(max_loan_days=14, daily_fine=Decimal("500"), renewable=True, max_renewals=1)
MAGAZINE_POLICY = LoanPolicy(max_loan_days=7, daily_fine=Decimal("300"), renewable=False, max_renewals=0)
AUDIO_BOOK_POLICY = LoanPolicy(max_loan_days=21, daily_fine=Decimal("400"), renewable=True, max_renewals=2)


# ---------------- Items ----------------
class LibraryItem:
    """
    Base for every catalog entry.

    An item has an immutable id, a title and an availability flag that only the
    borrow/return transitions change. The optional `loan_policy` is the
    capability that makes an item lendable; items without one stay in the
    catalog but can never be borrowed.
    """

    item_type: ItemType

    def __init__(self, key: str, title: str, loan_policy: Optional[LoanPolicy] = None):
        self._id = self.generate_id(self.item_type, key)
        self.title = title
        self._available = True
        self.loan_policy = loan_policy

    @staticmethod
    def generate_id(item_type: ItemType, key: str) -> str:
        return f"{item_type.name}-{key}"

    @property
    def id(self) -> str:
        return self._id

    @property
    def available(self) -> bool:
        return self._available

    @available.setter
    def available(self, value: bool) -> None:
        self._available = bool(value)

    def can_be_borrowed(self) -> bool:
        return self.available and self.loan_policy is not None

    def borrow(self) -> None:
        """Flip the item to borrowed; borrowing an unavailable item is a contract violation."""
        if not self.available:
            raise InvalidStateError(f"Item {self.id} is already borrowed")
        self.available = False

    def return_item(self) -> None:
        self.available = True

    def __eq__(self, other) -> bool:
        if not isinstance(other, LibraryItem):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, title={self.title!r}, available={self.available})"


class Book(LibraryItem):
    item_type = ItemType.BOOK

    def __init__(self, isbn: str, title: str, author: str, publication_year: Optional[int] = None,
                 page_count: int = 0, loan_policy: Optional[LoanPolicy] = BOOK_POLICY):
        super().__init__(isbn, title, loan_policy)
        self.isbn = isbn
        self.author = author
        self.publication_year = publication_year
        self.page_count = page_count


class Magazine(LibraryItem):
    item_type = ItemType.MAGAZINE

    def __init__(self, title: str, issue_number: str, publication_date: Optional[datetime.date] = None,
                 publisher: str = "", loan_policy: Optional[LoanPolicy] = MAGAZINE_POLICY):
        super().__init__(issue_number, title, loan_policy)
        self.issue_number = issue_number
        self.publication_date = publication_date
        self.publisher = publisher


class DVD(LibraryItem):
    item_type = ItemType.DVD

    # DVDs are catalogued without a loan policy unless one is given explicitly
    def __init__(self, key: str, title: str, director: str, genre: Optional[MovieGenre] = None,
                 duration_minutes: int = 0, loan_policy: Optional[LoanPolicy] = None):
        super().__init__(key, title, loan_policy)
        self.director = director
        self.genre = genre
        self.duration_minutes = duration_minutes


class ReferenceBook(LibraryItem):
    """Reading-room material: always on the shelf, never lent."""

    item_type = ItemType.REFERENCE_BOOK

    def __init__(self, key: str, title: str, subject: str, edition: str = "", reading_room_only: bool = True):
        super().__init__(key, title, None)
        self.subject = subject
        self.edition = edition
        self.reading_room_only = reading_room_only

    @property
    def available(self) -> bool:
        return True

    @available.setter
    def available(self, value: bool) -> None:
        pass

    def can_be_borrowed(self) -> bool:
        return False

    def borrow(self) -> None:
        raise InvalidStateError(f"Reference book {self.id} cannot leave the reading room")


class AudioBook(LibraryItem):
    item_type = ItemType.AUDIO_BOOK

    def __init__(self, key: str, title: str, narrator: str = "", duration_minutes: int = 0,
                 loan_policy: Optional[LoanPolicy] = AUDIO_BOOK_POLICY):
        super().__init__(key, title, loan_policy)
        self.narrator = narrator
        self.duration_minutes = duration_minutes


# ---------------- Members ----------------
@dataclass(eq=False)
class Member:
    """
    A registered library member.

    Attributes:
        id: unique integer identifier.
        name: display name.
        email: contact email.
        status: ACTIVE, SUSPENDED or EXPIRED; changed by the caller.
        membership_date: date the member joined.
        phone_number: optional phone number.
    """

    id: int
    name: str
    email: str
    status: MemberStatus = MemberStatus.ACTIVE
    membership_date: Optional[datetime.date] = None
    phone_number: Optional[str] = None

    def __post_init__(self):
        if self.membership_date is None:
            self.membership_date = datetime.date.today()

    def __eq__(self, other) -> bool:
        if not isinstance(other, Member):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


# ---------------- Borrow records ----------------
class BorrowRecord:
    """
    One lending transaction between an item and a member.

    The record refers to the item and member by id only; the catalog owns their
    state. The item's loan policy is copied at borrow time so fines keep
    following the terms the loan was made under.
    """

    def __init__(self, item_id: str, member_id: int, borrow_date: datetime.date, due_date: datetime.date,
                 loan_policy: Optional[LoanPolicy] = None, record_id: Optional[str] = None):
        if due_date < borrow_date:
            raise ValueError("Due date cannot be before borrow date")
        self.record_id = record_id or uuid.uuid4().hex
        self.item_id = item_id
        self.member_id = member_id
        self.loan_policy = loan_policy
        self.borrow_date = borrow_date
        self._due_date = due_date
        self._return_date: Optional[datetime.date] = None
        self.renewal_count = 0

    @property
    def due_date(self) -> datetime.date:
        return self._due_date

    @due_date.setter
    def due_date(self, value: datetime.date) -> None:
        if value < self.borrow_date:
            raise ValueError("Due date cannot be before borrow date")
        self._due_date = value

    @property
    def return_date(self) -> Optional[datetime.date]:
        return self._return_date

    @property
    def is_active(self) -> bool:
        return self._return_date is None

    def mark_returned(self, return_date: datetime.date) -> None:
        """
        Stamp the return date. A record can be returned only once.

        Raises:
            InvalidStateError: the record already has a return date.
            ValueError: `return_date` precedes the borrow date.
        """
        if self._return_date is not None:
            raise InvalidStateError(f"Record {self.record_id} was already returned on {self._return_date}")
        if return_date < self.borrow_date:
            raise ValueError("Return date cannot be before borrow date")
        self._return_date = return_date

    def _end_date(self, as_of: Optional[datetime.date]) -> datetime.date:
        if self._return_date is not None:
            return self._return_date
        return as_of or datetime.date.today()

    def is_overdue(self, as_of: Optional[datetime.date] = None) -> bool:
        return self._end_date(as_of) > self._due_date

    def days_overdue(self, as_of: Optional[datetime.date] = None) -> int:
        if not self.is_overdue(as_of):
            return 0
        return (self._end_date(as_of) - self._due_date).days

    def borrow_duration_days(self, as_of: Optional[datetime.date] = None) -> int:
        return (self._end_date(as_of) - self.borrow_date).days

    def status(self, as_of: Optional[datetime.date] = None) -> RecordStatus:
        overdue = self.is_overdue(as_of)
        if self._return_date is not None:
            return RecordStatus.RETURNED_LATE if overdue else RecordStatus.RETURNED
        return RecordStatus.OVERDUE if overdue else RecordStatus.ACTIVE

    def generate_report(self, title: str, member_name: str, as_of: Optional[datetime.date] = None) -> str:
        """
        Render a plain-text report for this record.

        Args:
            title: title of the borrowed item (looked up by the caller).
            member_name: name of the borrowing member.
            as_of: reference date for overdue/due-in computations.
        """
        today = as_of or datetime.date.today()
        lines = [
            "=" * 50,
            "BORROW RECORD REPORT",
            "=" * 50,
            f"Item: {title} ({self.item_id})",
            f"Member: {member_name}",
            f"Borrowed: {self.borrow_date.isoformat()}",
            f"Due: {self._due_date.isoformat()}",
            f"Returned: {self._return_date.isoformat() if self._return_date else 'Not yet returned'}",
        ]
        status = self.status(today)
        if status is RecordStatus.RETURNED_LATE:
            lines.append(f"Status: RETURNED LATE (Overdue by {self.days_overdue(today)} days)")
        elif status is RecordStatus.RETURNED:
            lines.append("Status: RETURNED ON TIME")
        elif status is RecordStatus.OVERDUE:
            lines.append(f"Status: OVERDUE (Currently {self.days_overdue(today)} days late)")
        else:
            lines.append(f"Status: ACTIVE (Due in {(self._due_date - today).days} days)")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (f"BorrowRecord(item={self.item_id!r}, member={self.member_id!r}, borrow_date={self.borrow_date}, "
                f"due_date={self._due_date}, return_date={self._return_date})")
