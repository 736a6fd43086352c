#!/usr/bin/env python3
"""
library_system.py
"""

from __future__ import annotations
import datetime
import logging
import pathlib
import threading
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

import pandas as pd

from borrowing_service import BorrowingConfig, BorrowingService, BorrowResult
from library_models import (AudioBook, Book, BorrowRecord, DVD, ItemNotFoundError, ItemType, LibraryItem, LoanPolicy,
                            Magazine, Member, MemberNotFoundError, MovieGenre, ReferenceBook)
from report_generators import LocalizationService, TextReportGenerator

# Configuration
MAX_REPORT_ITEMS = 5
ITEM_COLUMNS = ["Item ID", "Type", "Title", "Available", "Loanable", "Max Loan Days", "Daily Fine"]
MEMBER_COLUMNS = ["Member ID", "Name", "Email", "Status", "Membership Date", "Phone", "Active Borrows"]
RECORD_COLUMNS = ["Record ID", "Item ID", "Member ID", "Borrow Date", "Due Date", "Return Date",
                  "Renewals", "Status", "Days Overdue", "Fine"]

# Logging
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger("LibrarySystem")


@dataclass(frozen=True)
class LibraryStatistics:
    total_items: int
    available_items: int
    borrowed_items: int
    loanable_items: int
    total_members: int
    active_borrowings: int
    recent_titles: Tuple[str, ...]
    count_by_type: Dict[ItemType, int] = field(default_factory=dict)


class Library:
    """
    Library holds the catalog, the members and the borrowing service in memory.

    It is the single owner of item and member state: borrow records only carry
    ids, and every mutating call (add, borrow, return, renew, remove) runs under
    one re-entrant lock so a library instance has a single writer at a time.
    Reads return copies and can run alongside writers.
    """

    def __init__(self,
                 config: Optional[BorrowingConfig] = None,
                 report_generator: Optional[TextReportGenerator] = None,
                 service: Optional[BorrowingService] = None):
        """
        Initialize the Library.

        Args:
            config: lending rules used when no service is supplied.
            report_generator: formatter for `generate_report`; defaults to English text.
            service: pre-built BorrowingService (e.g. with an injected clock).
        """
        self.service = service or BorrowingService(config)
        self.report_generator = report_generator or TextReportGenerator(LocalizationService("en"))
        self._items: Dict[str, LibraryItem] = {}
        self._members: Dict[int, Member] = {}
        self._lock = threading.RLock()

    # ---------------- Read-only views ----------------
    @property
    def items(self) -> Tuple[LibraryItem, ...]:
        return tuple(self._items.values())

    @property
    def members(self) -> Tuple[Member, ...]:
        return tuple(self._members.values())

    @property
    def records(self) -> Tuple[BorrowRecord, ...]:
        """All borrow records, active and returned, in borrow order."""
        return tuple(self.service.history())

    def today(self) -> datetime.date:
        return self.service.clock()

    # ---------------- Catalog management ----------------
    def add_item(self, item: Optional[LibraryItem]) -> bool:
        """
        Add an item to the catalog.

        Returns True on success, False for None or an id that is already catalogued.
        """
        if item is None:
            return False
        with self._lock:
            if item.id in self._items:
                logger.debug("Attempt to add existing item: %s", item.id)
                return False
            self._items[item.id] = item
        logger.info("Added %s %s", item.item_type.display_name, item.id)
        return True

    def add_items(self, *items: LibraryItem) -> int:
        """Add several items; returns how many were actually added."""
        return sum(1 for item in items if self.add_item(item))

    def add_member(self, member: Optional[Member]) -> bool:
        """
        Register a new library member.

        Returns True on success, False for None or a duplicate member id.
        """
        if member is None:
            return False
        with self._lock:
            if member.id in self._members:
                logger.debug("Attempt to register existing member: %s", member.id)
                return False
            self._members[member.id] = member
        logger.info("Registered member %s", member.id)
        return True

    def remove_item(self, item_id: str) -> bool:
        """
        Remove an item from the catalog.

        Items referenced by an active borrow record are kept; returns False then,
        and also when the id is unknown.
        """
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return False
            if self.service.find_active_record(item) is not None:
                logger.warning("Refusing to remove %s: it is currently borrowed", item_id)
                return False
            del self._items[item_id]
        logger.info("Removed item %s", item_id)
        return True

    # ---------------- Lookups ----------------
    def find_item(self, item_id: str) -> Optional[LibraryItem]:
        if not item_id:
            return None
        return self._items.get(item_id)

    def find_member(self, member_id: int) -> Optional[Member]:
        return self._members.get(member_id)

    def get_item_or_raise(self, item_id: str) -> LibraryItem:
        item = self.find_item(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    def get_member_or_raise(self, member_id: int) -> Member:
        member = self.find_member(member_id)
        if member is None:
            raise MemberNotFoundError(member_id)
        return member

    def find_active_record(self, item_id: str) -> Optional[BorrowRecord]:
        item = self.find_item(item_id)
        if item is None:
            return None
        return self.service.find_active_record(item)

    # ---------------- Core operations ----------------
    def borrow_item(self, item_id: str, member_id: int, custom_days: Optional[int] = None) -> BorrowResult:
        """
        Borrow an item for a member, both given by id.

        Unknown ids produce a NOT_FOUND result; everything else is decided by
        the borrowing service.
        """
        with self._lock:
            item = self.find_item(item_id)
            if item is None:
                return BorrowResult.not_found(f"Item not found: {item_id}")
            member = self.find_member(member_id)
            if member is None:
                return BorrowResult.not_found(f"Member not found: {member_id}")
            return self.service.borrow_item(item, member, custom_days)

    def borrow_item_or_raise(self, item_id: str, member_id: int, custom_days: Optional[int] = None) -> BorrowRecord:
        """Strict variant of `borrow_item`: not-found and rejections raise LibraryError subclasses."""
        with self._lock:
            item = self.get_item_or_raise(item_id)
            member = self.get_member_or_raise(member_id)
            return self.service.borrow_item_or_raise(item, member, custom_days)

    def borrow_multiple_items(self, member_id: int, *item_ids: str) -> int:
        """Borrow each id in turn for one member; returns the number of successful borrows."""
        return sum(1 for item_id in item_ids if self.borrow_item(item_id, member_id).success)

    def return_item(self, item_id: str) -> bool:
        """
        Return an item by id.

        Returns True if an active loan was closed, False for unknown ids or items
        that are not on loan.
        """
        with self._lock:
            item = self.find_item(item_id)
            if item is None:
                return False
            return self.service.return_item(item) is not None

    def return_multiple_items(self, *item_ids: str) -> int:
        return sum(1 for item_id in item_ids if self.return_item(item_id))

    def renew_borrow(self, item_id: str, additional_days: int) -> bool:
        """Extend the active loan on an item; False when there is none or the policy forbids it."""
        with self._lock:
            record = self.find_active_record(item_id)
            if record is None:
                return False
            return self.service.renew_borrow(record, additional_days)

    def calculate_fine(self, item_id: str, as_of: Optional[datetime.date] = None) -> Decimal:
        """Fine currently owed on the active loan of an item (zero if none)."""
        record = self.find_active_record(item_id)
        if record is None:
            return Decimal("0")
        return self.service.calculate_fine(record, as_of)

    def overdue_records(self, as_of: Optional[datetime.date] = None) -> List[BorrowRecord]:
        return self.service.overdue_borrows(as_of)

    def member_active_records(self, member_id: int) -> List[BorrowRecord]:
        member = self.find_member(member_id)
        if member is None:
            return []
        return self.service.member_active_borrows(member)

    def member_fines(self, member_id: int, as_of: Optional[datetime.date] = None) -> Decimal:
        """Total fines across a member's records, returned ones included."""
        return sum((self.service.calculate_fine(r, as_of) for r in self.records if r.member_id == member_id),
                   Decimal("0"))

    # ---------------- Search / filter ----------------
    def search_items(self, keyword: str) -> List[LibraryItem]:
        """
        Case-insensitive title substring search.

        Returns an empty list for a blank keyword.
        """
        q = (keyword or "").strip().lower()
        if q == "":
            return []
        return [item for item in self.items if q in item.title.lower()]

    def search_books(self, keyword: str) -> List[Book]:
        """Books whose title, author or ISBN contains `keyword` (case-insensitive)."""
        q = (keyword or "").strip().lower()
        if q == "":
            return []
        return [b for b in self.items_by_type(ItemType.BOOK)
                if q in b.title.lower() or q in b.author.lower() or q in b.isbn.lower()]

    def items_by_type(self, item_type: ItemType) -> List[LibraryItem]:
        return [item for item in self.items if item.item_type is item_type]

    def available_items(self) -> List[LibraryItem]:
        return [item for item in self.items if item.available]

    def loanable_items(self) -> List[LibraryItem]:
        return [item for item in self.items if item.can_be_borrowed()]

    def group_items_by_type(self) -> Dict[ItemType, List[LibraryItem]]:
        groups: Dict[ItemType, List[LibraryItem]] = {}
        for item in self.items:
            groups.setdefault(item.item_type, []).append(item)
        return groups

    def partition_by_availability(self) -> Dict[bool, List[LibraryItem]]:
        parts: Dict[bool, List[LibraryItem]] = {True: [], False: []}
        for item in self.items:
            parts[item.available].append(item)
        return parts

    def items_sorted_by_title(self, available_only: bool = False) -> List[LibraryItem]:
        items = self.available_items() if available_only else list(self.items)
        return sorted(items, key=lambda i: i.title.lower())

    # ---------------- Reports / Queries ----------------
    def statistics(self) -> LibraryStatistics:
        items = self.items
        available = sum(1 for item in items if item.available)
        return LibraryStatistics(
            total_items=len(items),
            available_items=available,
            borrowed_items=len(items) - available,
            loanable_items=sum(1 for item in items if item.can_be_borrowed()),
            total_members=len(self._members),
            active_borrowings=len(self.service.active_borrows()),
            recent_titles=tuple(item.title for item in items[:MAX_REPORT_ITEMS]),
            count_by_type={item_type: len(group) for item_type, group in self.group_items_by_type().items()},
        )

    def generate_report(self, as_of: Optional[datetime.date] = None) -> str:
        """Summary report rendered by the injected report generator."""
        today = as_of or self.today()
        overdue = []
        for record in self.overdue_records(today):
            item = self.find_item(record.item_id)
            title = item.title if item is not None else record.item_id
            overdue.append((title, record.due_date, record.days_overdue(today),
                            self.service.calculate_fine(record, today)))
        return self.report_generator.generate(self.statistics(), overdue)

    def record_report(self, record: BorrowRecord, as_of: Optional[datetime.date] = None) -> str:
        item = self.find_item(record.item_id)
        member = self.find_member(record.member_id)
        return record.generate_report(item.title if item else record.item_id,
                                      member.name if member else str(record.member_id),
                                      as_of or self.today())

    def items_frame(self) -> pd.DataFrame:
        """
        Produce a DataFrame of the catalog, one row per item.

        Loan-policy columns are empty for items that cannot be lent.
        """
        rows = []
        for item in self.items:
            policy = item.loan_policy
            rows.append({
                "Item ID": item.id,
                "Type": item.item_type.display_name,
                "Title": item.title,
                "Available": item.available,
                "Loanable": item.can_be_borrowed(),
                "Max Loan Days": policy.max_loan_days if policy else None,
                "Daily Fine": float(policy.daily_fine) if policy else None,
            })
        return pd.DataFrame(rows, columns=ITEM_COLUMNS)

    def members_frame(self) -> pd.DataFrame:
        """
        Build a DataFrame summarizing members and their current active borrow count.
        """
        rows = []
        for m in self.members:
            rows.append({
                "Member ID": m.id,
                "Name": m.name,
                "Email": m.email,
                "Status": m.status.value,
                "Membership Date": m.membership_date.isoformat() if m.membership_date else "",
                "Phone": m.phone_number or "",
                "Active Borrows": len(self.service.member_active_borrows(m)),
            })
        return pd.DataFrame(rows, columns=MEMBER_COLUMNS)

    def records_frame(self, as_of: Optional[datetime.date] = None) -> pd.DataFrame:
        """
        Produce a DataFrame of every borrow record with derived status and fine.
        """
        today = as_of or self.today()
        rows = []
        for r in self.records:
            rows.append({
                "Record ID": r.record_id,
                "Item ID": r.item_id,
                "Member ID": r.member_id,
                "Borrow Date": r.borrow_date.isoformat(),
                "Due Date": r.due_date.isoformat(),
                "Return Date": r.return_date.isoformat() if r.return_date else "",
                "Renewals": r.renewal_count,
                "Status": r.status(today).value,
                "Days Overdue": r.days_overdue(today),
                "Fine": float(self.service.calculate_fine(r, today)),
            })
        return pd.DataFrame(rows, columns=RECORD_COLUMNS)

    # ---------------- Persisting ----------------
    def save_state(self, directory, as_of: Optional[datetime.date] = None) -> List[pathlib.Path]:
        """
        Write a CSV snapshot of items, members and borrow records.

        Args:
            directory: target folder; created if missing.
            as_of: reference date for derived record columns.

        Returns:
            Paths of the written files.
        """
        out_dir = pathlib.Path(directory)
        out_dir.mkdir(parents=True, exist_ok=True)
        written = []
        for name, frame in (("items.csv", self.items_frame()),
                            ("members.csv", self.members_frame()),
                            ("borrow_records.csv", self.records_frame(as_of))):
            path = out_dir / name
            frame.to_csv(path, index=False)
            logger.info("Saved %d rows to %s", len(frame), path)
            written.append(path)
        return written


# ---------------- Demo data ----------------
def build_demo_library(service: Optional[BorrowingService] = None) -> Library:
    """Small catalog covering every item type, with two members."""
    lib = Library(service=service)
    lib.add_items(
        Book("978-0134685991", "Effective Java", "Joshua Bloch", publication_year=2018, page_count=412),
        Book("978-1491946008", "Fluent Python", "Luciano Ramalho", publication_year=2015, page_count=792),
        Magazine("National Geographic", "2024-01", datetime.date(2024, 1, 1), publisher="NatGeo"),
        DVD("INCEPTION", "Inception", "Christopher Nolan", genre=MovieGenre.SCIENCE_FICTION, duration_minutes=148,
            loan_policy=LoanPolicy(max_loan_days=21, daily_fine=Decimal("1000"), renewable=True, max_renewals=1)),
        ReferenceBook("OED", "Oxford English Dictionary", "Language", edition="2nd"),
        AudioBook("DUNE", "Dune", narrator="Scott Brick", duration_minutes=1263),
    )
    lib.add_member(Member(1, "Alice Johnson", "alice@example.com", phone_number="555-0101"))
    lib.add_member(Member(2, "Bob Smith", "bob@example.com"))
    return lib


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


def print_menu():
    print("\n--- Library Lending (CLI) ---")
    print("1. List all items")
    print("2. Search items by title")
    print("3. Show loanable items")
    print("4. Register member")
    print("5. Add book")
    print("6. Borrow item")
    print("7. Return item")
    print("8. Renew loan")
    print("9. Show overdue loans")
    print("10. Show library report")
    print("11. Save snapshot")
    print("0. Exit")


def _format_item(item: LibraryItem) -> str:
    return f"{item.id}: {item.title} | {item.item_type.display_name} | {'Available' if item.available else 'Borrowed'}"


def _parse_int(raw: str) -> Optional[int]:
    try:
        return int(raw.strip())
    except ValueError:
        return None


def cli_loop(lib: Library):
    """
    Interactive command-loop for the library.

    Presents a text menu, accepts user input and invokes `Library` methods.
    """
    while True:
        print_menu()
        choice = input_prompt("Choose (0-11): ")
        if choice in ("0", ""):
            print("Exiting.")
            break
        elif choice == "1":
            print(f"\nTotal items: {len(lib.items)}")
            for item in lib.items_sorted_by_title():
                print(_format_item(item))
        elif choice == "2":
            res = lib.search_items(input_prompt("Search query: "))
            print(f"Found {len(res)} result(s):")
            for item in res:
                print(_format_item(item))
        elif choice == "3":
            res = lib.loanable_items()
            print(f"Loanable items ({len(res)}):")
            for item in res:
                print(f"{item.id}: {item.title} ({item.loan_policy.loan_info()})")
        elif choice == "4":
            mid = _parse_int(input_prompt("Member ID: "))
            name = input_prompt("Name: ")
            email = input_prompt("Email: ")
            ok = mid is not None and lib.add_member(Member(mid, name, email))
            print("Registered." if ok else "Failed (ID may exist).")
        elif choice == "5":
            isbn = input_prompt("ISBN: ")
            title = input_prompt("Title: ")
            author = input_prompt("Author: ")
            ok = bool(isbn) and lib.add_item(Book(isbn, title, author))
            print("Added." if ok else "Failed (ID may exist).")
        elif choice == "6":
            item_id = input_prompt("Item ID: ")
            mid = _parse_int(input_prompt("Member ID: "))
            days = _parse_int(input_prompt("Loan days (Enter for policy default): "))
            result = lib.borrow_item(item_id, mid, days)
            if result.success:
                print(f"Borrowed {item_id}. Due on {result.record.due_date.isoformat()}.")
            else:
                print(result.message)
        elif choice == "7":
            item_id = input_prompt("Item ID: ")
            print("Returned." if lib.return_item(item_id) else f"No active loan for {item_id}.")
        elif choice == "8":
            item_id = input_prompt("Item ID: ")
            days = _parse_int(input_prompt("Additional days: "))
            ok = days is not None and days > 0 and lib.renew_borrow(item_id, days)
            print("Renewed." if ok else "Renewal not possible.")
        elif choice == "9":
            overdue = lib.overdue_records()
            print(f"Overdue loans: {len(overdue)}")
            for r in overdue:
                print(f"{r.item_id} -> member {r.member_id}: {r.days_overdue(lib.today())} days, "
                      f"fine {lib.service.calculate_fine(r):.2f}")
        elif choice == "10":
            print(lib.generate_report())
        elif choice == "11":
            target = input_prompt("Directory (default: library_snapshot): ") or "library_snapshot"
            lib.save_state(target)
            print(f"Saved snapshot to {target}.")
        else:
            print("Unknown choice. Try again.")


def demo_run():
    """
    Start a demo interactive session on the seeded demo library.
    """
    lib = build_demo_library()
    print("Welcome - demo library loaded.")
    cli_loop(lib)
    print("Goodbye.")


if __name__ == "__main__":
    demo_run()
