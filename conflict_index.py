"""
Project: Sitly Bookings
Description:
In-memory index of active bookings keyed by (table_id, date, time_slot).

Slots are fixed labels published by the restaurant, so two bookings
collide only when their keys are equal; there is no interval arithmetic.
Writers serialize on a striped lock chosen by (table_id, date); readers
take no lock. A second striped lock per table_id serializes work that
depends on the table record itself (new bookings against capacity edits
and retirement).
"""

import logging
import threading
from datetime import date
from typing import Callable, Iterable, Optional

from domain import Booking, Conflict, Result, ReserveTimeout

logger = logging.getLogger(__name__)

LOCK_STRIPES = 64


class ConflictIndex:

    def __init__(self, reserve_timeout: Optional[float] = None, stripes: int = LOCK_STRIPES):
        self.reserve_timeout = reserve_timeout
        self._active: dict[tuple, str] = {}
        self._keys: dict[str, tuple] = {}
        self._slot_locks = [threading.Lock() for _ in range(stripes)]
        self._table_locks = [threading.Lock() for _ in range(stripes)]
        self._registry = threading.Lock()

    def __len__(self):
        return len(self._active)

    def _lock_for(self, table_id: str, on_date: date) -> threading.Lock:
        return self._slot_locks[hash((table_id, on_date)) % len(self._slot_locks)]

    def _table_lock(self, table_id: str) -> threading.Lock:
        return self._table_locks[hash(table_id) % len(self._table_locks)]

    def _acquire(self, lock: threading.Lock) -> bool:
        if self.reserve_timeout is None:
            return lock.acquire()
        return lock.acquire(timeout=self.reserve_timeout)

    def with_table(self, table_id: str, action: Callable[[], Result]) -> Result:
        """Run action while holding the table's lock; ReserveTimeout if it stays busy."""
        lock = self._table_lock(table_id)
        if not self._acquire(lock):
            logger.warning("Timed out waiting for table %s", table_id)
            return Result.failure(ReserveTimeout(f"table {table_id} is busy, try again"))
        try:
            return action()
        finally:
            lock.release()

    def is_occupied(self, table_id: str, on_date: date, time_slot: str) -> bool:
        return (table_id, on_date, time_slot) in self._active

    def holder(self, table_id: str, on_date: date, time_slot: str) -> Optional[str]:
        """Id of the active booking holding the key, if any."""
        return self._active.get((table_id, on_date, time_slot))

    def reserve(self, booking: Booking) -> Result:
        """Insert the booking as active unless its key is already taken."""
        key = booking.slot_key
        lock = self._lock_for(booking.table_id, booking.date)
        if not self._acquire(lock):
            logger.warning("Timed out waiting to reserve %s for booking %s", key, booking.id)
            return Result.failure(ReserveTimeout(
                f"table {booking.table_id} on {booking.date} is busy, try again"))
        try:
            holder = self._active.get(key)
            if holder is not None and holder != booking.id:
                return Result.failure(Conflict(
                    f"table {booking.table_id} is already booked for "
                    f"{booking.date.isoformat()} {booking.time_slot}"))
            self._active[key] = booking.id
            self._keys[booking.id] = key
            return Result.success()
        finally:
            lock.release()

    def release(self, booking_id: str) -> None:
        key = self._keys.get(booking_id)
        if key is None:
            return
        lock = self._lock_for(key[0], key[1])
        with lock:
            key = self._keys.pop(booking_id, None)
            if key is not None and self._active.get(key) == booking_id:
                del self._active[key]

    def reindex(self, bookings: Iterable[Booking]) -> None:
        """Replace the whole index with the active bookings in a canonical list."""
        active: dict[tuple, str] = {}
        for booking in bookings:
            if not booking.status.is_active:
                continue
            if booking.slot_key in active:
                logger.error("Double booking found while reindexing: %s held by %s and %s",
                             booking.slot_key, active[booking.slot_key], booking.id)
                continue
            active[booking.slot_key] = booking.id
        with self._registry:
            self._active = active
            self._keys = {booking_id: key for key, booking_id in active.items()}
        logger.info("Conflict index rebuilt with %d active bookings", len(active))
