"""
Project: Sitly Bookings
Description:
Table registry for restaurant staff: create, edit and soft-delete tables.
Tables are never removed, so the bookings that reference them stay intact.
Edits that could strand an active booking run under the same table lock
as booking creation.
"""

import logging
import uuid
from dataclasses import replace

from conflict_index import ConflictIndex
from domain import (
    Conflict,
    Result,
    Table,
    TableNotFound,
    TableStatus,
    TableType,
    ValidationError,
    parse_enum,
)
from stores import BookingStore

logger = logging.getLogger(__name__)


def _table_name(value) -> Result:
    if not isinstance(value, str) or not value.strip():
        return Result.failure(ValidationError("name must be a non-empty string"))
    return Result.success(value.strip())


class TableRegistry:

    def __init__(self, store: BookingStore, index: ConflictIndex, max_capacity: int = 20):
        self.store = store
        self.index = index
        self.max_capacity = max_capacity

    def list_tables(self, restaurant_id, include_archived=False):
        return self.store.list_tables(restaurant_id, include_archived=include_archived)

    def get_table(self, table_id) -> Result:
        table = self.store.get_table(table_id)
        if table is None:
            return Result.failure(TableNotFound(f"table {table_id} not found"))
        return Result.success(table)

    def _capacity(self, value) -> Result:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            return Result.failure(ValidationError("capacity must be a positive integer"))
        if value > self.max_capacity:
            return Result.failure(ValidationError(f"capacity must not exceed {self.max_capacity}"))
        return Result.success(value)

    def create_table(self, restaurant_id: str, data: dict) -> Result:
        name = _table_name(data.get("name"))
        if not name.ok:
            return name
        capacity = self._capacity(data.get("capacity"))
        if not capacity.ok:
            return capacity
        table_type = parse_enum(TableType, data.get("type", TableType.INDOOR.value), "table type")
        if not table_type.ok:
            return table_type
        status = parse_enum(TableStatus, data.get("status", TableStatus.AVAILABLE.value), "table status")
        if not status.ok:
            return status

        table = Table(
            id=uuid.uuid4().hex,
            restaurant_id=restaurant_id,
            name=name.value,
            capacity=capacity.value,
            type=table_type.value,
            status=status.value,
        )
        self.store.add_table(table)
        logger.info("Table %s (%s, seats %d) added to restaurant %s",
                    table.id, table.name, table.capacity, restaurant_id)
        return Result.success(table)

    def update_table(self, table_id: str, data: dict) -> Result:
        changes = {}
        if "name" in data:
            name = _table_name(data["name"])
            if not name.ok:
                return name
            changes["name"] = name.value
        if "capacity" in data:
            capacity = self._capacity(data["capacity"])
            if not capacity.ok:
                return capacity
            changes["capacity"] = capacity.value
        if "type" in data:
            table_type = parse_enum(TableType, data["type"], "table type")
            if not table_type.ok:
                return table_type
            changes["type"] = table_type.value
        if "status" in data:
            status = parse_enum(TableStatus, data["status"], "table status")
            if not status.ok:
                return status
            changes["status"] = status.value
        return self.index.with_table(table_id, lambda: self._apply_changes(table_id, changes))

    def _apply_changes(self, table_id, changes) -> Result:
        found = self.get_table(table_id)
        if not found.ok:
            return found
        if "capacity" in changes:
            largest = max((b.guests for b in self.store.active_bookings(table_id=table_id)), default=0)
            if changes["capacity"] < largest:
                return Result.failure(ValidationError(
                    f"capacity {changes['capacity']} is below an active booking of {largest} guests"))
        updated = replace(found.value, **changes)
        self.store.save_table(updated)
        return Result.success(updated)

    def retire_table(self, table_id: str) -> Result:
        """Soft delete: the table stays for history but takes no new bookings."""
        return self.index.with_table(table_id, lambda: self._retire(table_id))

    def _retire(self, table_id) -> Result:
        found = self.get_table(table_id)
        if not found.ok:
            return found
        table = found.value
        if table.archived:
            return Result.success(table)
        active = self.store.active_bookings(table_id=table_id)
        if active:
            return Result.failure(Conflict(
                f"table {table.name} still has {len(active)} active booking(s)"))
        retired = replace(table, archived=True, status=TableStatus.MAINTENANCE)
        self.store.save_table(retired)
        logger.info("Table %s retired", table_id)
        return Result.success(retired)
