"""
borrowing_service.py

Borrow/return/renew rules and fine computation for the lending library.
"""

from __future__ import annotations
import datetime
import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Callable, List, Optional

from library_models import (BorrowError, BorrowRecord, ItemNotAvailableError, LibraryItem, Member,
                            MemberLimitExceededError)

# Configuration
DEFAULT_LOAN_DAYS = 14
DEFAULT_DAILY_FINE = Decimal("500")
DEFAULT_MAX_BORROWS = 5
MAX_CUSTOM_DAYS = 30

logger = logging.getLogger("LibrarySystem.borrowing")


@dataclass(frozen=True)
class BorrowingConfig:
    """
    Static lending rules for a BorrowingService.

    Attributes:
        default_loan_days: loan length when neither the caller nor the item policy sets one.
        default_daily_fine: fine per overdue day for records without a loan policy.
        allow_multiple_borrows: when False, members are capped at `max_borrows_per_member` active loans.
        max_borrows_per_member: active-loan cap used when multiple borrows are disallowed.
        max_custom_days: upper bound for a caller-supplied loan length.
    """

    default_loan_days: int = DEFAULT_LOAN_DAYS
    default_daily_fine: Decimal = DEFAULT_DAILY_FINE
    allow_multiple_borrows: bool = True
    max_borrows_per_member: int = DEFAULT_MAX_BORROWS
    max_custom_days: int = MAX_CUSTOM_DAYS

    def __post_init__(self):
        object.__setattr__(self, "default_daily_fine", Decimal(str(self.default_daily_fine)))
        if self.default_loan_days <= 0:
            raise ValueError("default_loan_days must be > 0")
        if self.default_daily_fine < 0:
            raise ValueError("default_daily_fine must be >= 0")
        if self.max_borrows_per_member < 0:
            raise ValueError("max_borrows_per_member must be >= 0")

    @classmethod
    def from_env(cls) -> "BorrowingConfig":
        """
        Build a config from LIBRARY_* environment variables, falling back to the module defaults.

        Recognised variables: LIBRARY_LOAN_DAYS, LIBRARY_DAILY_FINE, LIBRARY_ALLOW_MULTIPLE,
        LIBRARY_MAX_BORROWS.
        """
        allow_raw = os.getenv("LIBRARY_ALLOW_MULTIPLE", "true")
        return cls(
            default_loan_days=int(os.getenv("LIBRARY_LOAN_DAYS", DEFAULT_LOAN_DAYS)),
            default_daily_fine=Decimal(os.getenv("LIBRARY_DAILY_FINE", str(DEFAULT_DAILY_FINE))),
            allow_multiple_borrows=allow_raw.strip().lower() in ("true", "1", "yes", "y"),
            max_borrows_per_member=int(os.getenv("LIBRARY_MAX_BORROWS", DEFAULT_MAX_BORROWS)),
        )


class BorrowStatus(Enum):
    SUCCESS = "SUCCESS"
    REJECTED = "REJECTED"
    NOT_FOUND = "NOT_FOUND"


class RejectReason(Enum):
    """Which validation check turned a borrow request down."""
    MISSING_INPUT = "MISSING_INPUT"
    NOT_BORROWABLE = "NOT_BORROWABLE"
    INVALID_PERIOD = "INVALID_PERIOD"
    LIMIT_REACHED = "LIMIT_REACHED"


@dataclass(frozen=True)
class BorrowResult:
    """Outcome of a borrow request; callers must check `success`."""

    status: BorrowStatus
    message: str
    record: Optional[BorrowRecord] = None
    reason: Optional[RejectReason] = None

    @property
    def success(self) -> bool:
        return self.status is BorrowStatus.SUCCESS

    @classmethod
    def ok(cls, record: BorrowRecord) -> "BorrowResult":
        return cls(BorrowStatus.SUCCESS, "Borrow successful", record)

    @classmethod
    def failure(cls, message: str, reason: Optional[RejectReason] = None) -> "BorrowResult":
        return cls(BorrowStatus.REJECTED, message, reason=reason)

    @classmethod
    def not_found(cls, message: str) -> "BorrowResult":
        return cls(BorrowStatus.NOT_FOUND, message)


class BorrowingService:
    """
    BorrowingService validates and records loans.

    It keeps the working set of active records plus the full history, computes
    due dates from the item's loan policy and derives fines. The service does
    no locking of its own: the owning Library serialises writers.
    """

    def __init__(self, config: Optional[BorrowingConfig] = None,
                 clock: Callable[[], datetime.date] = datetime.date.today):
        """
        Args:
            config: lending rules; defaults to BorrowingConfig().
            clock: callable returning "today"; injected so tests can move time.
        """
        self.config = config or BorrowingConfig()
        self.clock = clock
        self._active: List[BorrowRecord] = []
        self._history: List[BorrowRecord] = []

    # ---------------- Borrowing ----------------
    def _validate(self, item: Optional[LibraryItem], member: Optional[Member],
                  custom_days: Optional[int]) -> Optional[BorrowResult]:
        if item is None:
            return BorrowResult.failure("Item is null", RejectReason.MISSING_INPUT)
        if member is None:
            return BorrowResult.failure("Member is null", RejectReason.MISSING_INPUT)
        if not item.can_be_borrowed():
            return BorrowResult.failure(f"Item '{item.title}' ({item.id}) cannot be borrowed",
                                        RejectReason.NOT_BORROWABLE)
        if custom_days is not None:
            if custom_days <= 0:
                return BorrowResult.failure("Borrow days must be positive", RejectReason.INVALID_PERIOD)
            if custom_days > self.config.max_custom_days:
                return BorrowResult.failure(f"Maximum borrow period is {self.config.max_custom_days} days",
                                            RejectReason.INVALID_PERIOD)
        if not self.config.allow_multiple_borrows:
            active_count = len(self.member_active_borrows(member))
            if active_count >= self.config.max_borrows_per_member:
                return BorrowResult.failure("Member has reached maximum borrow limit", RejectReason.LIMIT_REACHED)
        return None

    def borrow_item(self, item: Optional[LibraryItem], member: Optional[Member],
                    custom_days: Optional[int] = None) -> BorrowResult:
        """
        Lend `item` to `member`.

        Validation runs in a fixed order and the first failing check is returned
        without touching any state. On success the item is marked unavailable and
        a new record joins both the active set and the history.

        Args:
            item: catalog item to lend.
            member: borrowing member.
            custom_days: optional loan length overriding the item policy, in (0, max_custom_days].

        Returns:
            BorrowResult with the new record on success, or a reason on failure.
        """
        rejected = self._validate(item, member, custom_days)
        if rejected is not None:
            logger.debug("Borrow rejected: %s", rejected.message)
            return rejected

        item.borrow()
        record = self._create_record(item, member, custom_days)
        self._active.append(record)
        self._history.append(record)
        logger.info("Borrowed %s to member %s until %s", item.id, member.id, record.due_date.isoformat())
        return BorrowResult.ok(record)

    def borrow_item_or_raise(self, item: Optional[LibraryItem], member: Optional[Member],
                             custom_days: Optional[int] = None) -> BorrowRecord:
        """
        Same rules as `borrow_item`, but rejections raise a BorrowError subclass.

        Raises:
            ItemNotAvailableError: the item is unavailable or has no loan policy.
            MemberLimitExceededError: the member is at the active-loan cap.
            BorrowError: any other validation failure.
        """
        item_id = item.id if item is not None else None
        member_id = member.id if member is not None else None
        rejected = self._validate(item, member, custom_days)
        if rejected is not None:
            logger.debug("Borrow rejected: %s", rejected.message)
            if rejected.reason is RejectReason.NOT_BORROWABLE:
                raise ItemNotAvailableError(item_id, member_id)
            if rejected.reason is RejectReason.LIMIT_REACHED:
                raise MemberLimitExceededError(item_id, member_id, len(self.member_active_borrows(member)),
                                               self.config.max_borrows_per_member)
            raise BorrowError(rejected.message, item_id, member_id)
        return self.borrow_item(item, member, custom_days).record

    def _create_record(self, item: LibraryItem, member: Member, custom_days: Optional[int]) -> BorrowRecord:
        borrow_date = self.clock()
        policy = item.loan_policy
        if custom_days is not None:
            loan_days = custom_days
        elif policy is not None:
            loan_days = policy.max_loan_days
        else:
            loan_days = self.config.default_loan_days
        return BorrowRecord(
            item_id=item.id,
            member_id=member.id,
            borrow_date=borrow_date,
            due_date=borrow_date + datetime.timedelta(days=loan_days),
            loan_policy=policy,
        )

    # ---------------- Returning / renewing ----------------
    def find_active_record(self, item: LibraryItem) -> Optional[BorrowRecord]:
        for record in self._active:
            if record.item_id == item.id and record.is_active:
                return record
        return None

    def return_item(self, item: LibraryItem) -> Optional[BorrowRecord]:
        """
        Close the active loan on `item`.

        Returns the closed record, or None when the item has no active loan.
        """
        record = self.find_active_record(item)
        if record is None:
            logger.debug("Return ignored: no active record for %s", item.id)
            return None
        record.mark_returned(self.clock())
        item.return_item()
        self._active.remove(record)
        logger.info("Item %s returned by member %s", item.id, record.member_id)
        return record

    def renew_borrow(self, record: BorrowRecord, additional_days: int) -> bool:
        """
        Extend the due date of an active, renewable loan.

        `max_renewals` is not consumed here; `renewal_count` only tracks how often
        a record was extended.

        Returns:
            True if the due date moved, False if the record is returned or its
            policy forbids renewal.

        Raises:
            ValueError: `additional_days` is negative.
        """
        if additional_days < 0:
            raise ValueError("additional_days must not be negative")
        if not record.is_active:
            return False
        policy = record.loan_policy
        if policy is None or not policy.renewable:
            return False
        record.due_date = record.due_date + datetime.timedelta(days=additional_days)
        record.renewal_count += 1
        logger.info("Renewed %s for member %s until %s", record.item_id, record.member_id,
                    record.due_date.isoformat())
        return True

    # ---------------- Fines ----------------
    def daily_fine_for(self, record: BorrowRecord) -> Decimal:
        if record.loan_policy is not None:
            return record.loan_policy.daily_fine
        return self.config.default_daily_fine

    def calculate_fine(self, record: BorrowRecord, as_of: Optional[datetime.date] = None) -> Decimal:
        """
        Fine owed on `record`: overdue days times the daily fine, or zero.

        Active records are measured against `as_of` (default: the service clock),
        returned ones against their return date.
        """
        today = as_of or self.clock()
        if not record.is_overdue(today):
            return Decimal("0")
        return record.days_overdue(today) * self.daily_fine_for(record)

    def total_outstanding_fines(self, as_of: Optional[datetime.date] = None) -> Decimal:
        today = as_of or self.clock()
        return sum((self.calculate_fine(r, today) for r in self._active), Decimal("0"))

    # ---------------- Queries ----------------
    def active_borrows(self) -> List[BorrowRecord]:
        return list(self._active)

    def member_active_borrows(self, member: Member) -> List[BorrowRecord]:
        return [r for r in self._active if r.member_id == member.id and r.is_active]

    def overdue_borrows(self, as_of: Optional[datetime.date] = None) -> List[BorrowRecord]:
        today = as_of or self.clock()
        return [r for r in self._active if r.is_overdue(today)]

    def history(self) -> List[BorrowRecord]:
        """Every record ever created, active and returned, in borrow order."""
        return list(self._history)
