"""
Project: Sitly Bookings
Description:
Availability queries: can this party sit at this table for this slot, and
which of a restaurant's tables are free for a slot.
"""

from datetime import date

from conflict_index import ConflictIndex
from domain import CapacityExceeded, Result, SlotOccupied, Table, TableNotFound
from stores import BookingStore


class AvailabilityChecker:

    def __init__(self, store: BookingStore, index: ConflictIndex):
        self.store = store
        self.index = index

    def check_availability(self, restaurant_id: str, table_id: str, on_date: date,
                           time_slot: str, guests: int) -> Result:
        """Succeeds with the Table when the request can be booked."""
        table = self.store.get_table(table_id)
        if table is None or table.restaurant_id != restaurant_id or table.archived:
            return Result.failure(TableNotFound(
                f"table {table_id} not found in restaurant {restaurant_id}"))
        if guests > table.capacity:
            return Result.failure(CapacityExceeded(
                f"table {table.name} seats {table.capacity}, requested {guests}"))
        if self.index.is_occupied(table_id, on_date, time_slot):
            return Result.failure(SlotOccupied(
                f"table {table.name} is taken on {on_date.isoformat()} {time_slot}"))
        return Result.success(table)

    def list_available_tables(self, restaurant_id: str, on_date: date,
                              time_slot: str, guests: int) -> list[Table]:
        # smallest sufficient table first
        tables = [
            t for t in self.store.list_tables(restaurant_id)
            if t.capacity >= guests and not self.index.is_occupied(t.id, on_date, time_slot)
        ]
        return sorted(tables, key=lambda t: (t.capacity, t.name, t.id))
