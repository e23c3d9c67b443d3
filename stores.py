"""
Project: Sitly Bookings
Description:
Persistence collaborators for tables and bookings.

The booking core talks to a BookingStore only. Two implementations are
provided and picked by the app factory from STORE_BACKEND:

    InMemoryStore  lock-protected dicts, used by tests and the "memory" backend
    SqlStore       Flask-SQLAlchemy rows; needs an application context

Both give the two guarantees the booking core relies on: inserting a
booking claims its (table, date, slot) key atomically, and status writes
are compare-and-swap on the previous status.
"""

import threading
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from domain import ACTIVE_STATUSES, Booking, BookingStatus, Table
from models import BookingRow, SlotClaim, TableRow, db


class StoreUnavailable(Exception):
    """The backing store could not be reached or refused a write."""


def _sort_key(booking: Booking):
    return (booking.date, booking.time_slot, booking.created_at, booking.id)


def _matches(booking, restaurant_id, client_id, table_id, statuses, on_date):
    if restaurant_id is not None and booking.restaurant_id != restaurant_id:
        return False
    if client_id is not None and booking.client_id != client_id:
        return False
    if table_id is not None and booking.table_id != table_id:
        return False
    if statuses is not None and booking.status not in statuses:
        return False
    if on_date is not None and booking.date != on_date:
        return False
    return True


class BookingStore(ABC):
    """Abstract persistence interface for tables and bookings."""

    # ----- tables -----

    @abstractmethod
    def get_table(self, table_id: str) -> Optional[Table]:
        ...

    @abstractmethod
    def list_tables(self, restaurant_id: str, include_archived: bool = False) -> list[Table]:
        ...

    @abstractmethod
    def add_table(self, table: Table) -> Table:
        ...

    @abstractmethod
    def save_table(self, table: Table) -> Table:
        ...

    # ----- bookings -----

    @abstractmethod
    def get_booking(self, booking_id: str) -> Optional[Booking]:
        ...

    @abstractmethod
    def list_bookings(
        self,
        restaurant_id: Optional[str] = None,
        client_id: Optional[str] = None,
        table_id: Optional[str] = None,
        statuses: Optional[Iterable[BookingStatus]] = None,
        on_date=None,
    ) -> list[Booking]:
        """Bookings matching every given filter, ordered by date then slot."""
        ...

    @abstractmethod
    def insert_booking(self, booking: Booking) -> bool:
        """
        Persist a new booking and claim its slot key in one step.

        Returns:
            False, with nothing written, if the key is already claimed
            by another active booking.

        Raises:
            StoreUnavailable: If the write fails for any other reason,
                including a duplicate booking id
        """
        ...

    @abstractmethod
    def compare_and_set(self, booking: Booking, expected_status: BookingStatus) -> bool:
        """
        Overwrite the stored booking if its status still equals expected_status.

        Moving out of the active set drops the slot claim in the same write.

        Returns:
            False, with nothing written, if the stored status differs or
            the booking does not exist.
        """
        ...

    def active_bookings(self, table_id: Optional[str] = None) -> list[Booking]:
        return self.list_bookings(table_id=table_id, statuses=ACTIVE_STATUSES)


class InMemoryStore(BookingStore):

    def __init__(self):
        self._lock = threading.RLock()
        self._tables: dict[str, Table] = {}
        self._bookings: dict[str, Booking] = {}
        self._claims: dict[tuple, str] = {}

    def get_table(self, table_id):
        with self._lock:
            return self._tables.get(table_id)

    def list_tables(self, restaurant_id, include_archived=False):
        with self._lock:
            tables = [t for t in self._tables.values() if t.restaurant_id == restaurant_id]
        if not include_archived:
            tables = [t for t in tables if not t.archived]
        return sorted(tables, key=lambda t: (t.name, t.id))

    def add_table(self, table):
        with self._lock:
            self._tables[table.id] = table
        return table

    def save_table(self, table):
        return self.add_table(table)

    def get_booking(self, booking_id):
        with self._lock:
            return self._bookings.get(booking_id)

    def list_bookings(self, restaurant_id=None, client_id=None, table_id=None, statuses=None, on_date=None):
        statuses = frozenset(statuses) if statuses is not None else None
        with self._lock:
            found = [b for b in self._bookings.values()
                     if _matches(b, restaurant_id, client_id, table_id, statuses, on_date)]
        return sorted(found, key=_sort_key)

    def insert_booking(self, booking):
        with self._lock:
            if booking.id in self._bookings:
                raise StoreUnavailable(f"booking {booking.id} already exists")
            if booking.status.is_active:
                if booking.slot_key in self._claims:
                    return False
                self._claims[booking.slot_key] = booking.id
            self._bookings[booking.id] = booking
            return True

    def compare_and_set(self, booking, expected_status):
        with self._lock:
            current = self._bookings.get(booking.id)
            if current is None or current.status != expected_status:
                return False
            if not booking.status.is_active and self._claims.get(current.slot_key) == booking.id:
                del self._claims[current.slot_key]
            self._bookings[booking.id] = booking
            return True


class SqlStore(BookingStore):
    """Store backed by the Flask-SQLAlchemy session of the current app context."""

    def _commit(self):
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreUnavailable(str(exc)) from exc

    def _read(self, fn):
        try:
            return fn()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreUnavailable(str(exc)) from exc

    # ----- tables -----

    def get_table(self, table_id):
        row = self._read(lambda: db.session.get(TableRow, table_id))
        return row.to_record() if row else None

    def list_tables(self, restaurant_id, include_archived=False):
        def query():
            q = TableRow.query.filter_by(restaurant_id=restaurant_id)
            if not include_archived:
                q = q.filter_by(archived=False)
            return q.order_by(TableRow.name, TableRow.id).all()
        return [row.to_record() for row in self._read(query)]

    def add_table(self, table):
        db.session.add(TableRow(id=table.id).apply(table))
        self._commit()
        return table

    def save_table(self, table):
        row = self._read(lambda: db.session.get(TableRow, table.id))
        if row is None:
            return self.add_table(table)
        row.apply(table)
        self._commit()
        return table

    # ----- bookings -----

    def get_booking(self, booking_id):
        row = self._read(lambda: db.session.get(BookingRow, booking_id))
        return row.to_record() if row else None

    def list_bookings(self, restaurant_id=None, client_id=None, table_id=None, statuses=None, on_date=None):
        def query():
            q = BookingRow.query
            if restaurant_id is not None:
                q = q.filter(BookingRow.restaurant_id == restaurant_id)
            if client_id is not None:
                q = q.filter(BookingRow.client_id == client_id)
            if table_id is not None:
                q = q.filter(BookingRow.table_id == table_id)
            if statuses is not None:
                q = q.filter(BookingRow.status.in_([s.value for s in statuses]))
            if on_date is not None:
                q = q.filter(BookingRow.date == on_date)
            return q.all()
        return sorted((row.to_record() for row in self._read(query)), key=_sort_key)

    def insert_booking(self, booking):
        db.session.add(BookingRow.from_record(booking))
        if booking.status.is_active:
            db.session.add(SlotClaim(
                booking_id=booking.id,
                table_id=booking.table_id,
                date=booking.date,
                time_slot=booking.time_slot,
            ))
        try:
            self._commit()
        except IntegrityError as exc:
            if self._claimed_by_other(booking):
                return False
            raise StoreUnavailable(str(exc)) from exc
        return True

    def _claimed_by_other(self, booking):
        claim = self._read(lambda: SlotClaim.query.filter_by(
            table_id=booking.table_id, date=booking.date, time_slot=booking.time_slot).first())
        return claim is not None and claim.booking_id != booking.id

    def compare_and_set(self, booking, expected_status):
        stmt = (
            update(BookingRow)
            .where(BookingRow.id == booking.id, BookingRow.status == expected_status.value)
            .values(
                status=booking.status.value,
                payment_status=booking.payment_status.value,
                total_price=booking.total_price,
                special_requests=booking.special_requests,
                updated_at=booking.updated_at,
            )
        )
        try:
            updated = db.session.execute(stmt).rowcount
            if updated and not booking.status.is_active:
                db.session.execute(delete(SlotClaim).where(SlotClaim.booking_id == booking.id))
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreUnavailable(str(exc)) from exc
        if not updated:
            db.session.rollback()
            return False
        self._commit()
        return True


def create_store(backend: str) -> BookingStore:
    """
    Create the store named by the STORE_BACKEND setting.

    Raises:
        ValueError: If the backend name is unknown
    """
    if backend == "sql":
        return SqlStore()
    elif backend == "memory":
        return InMemoryStore()
    else:
        raise ValueError(f"Unknown store backend: {backend}")
