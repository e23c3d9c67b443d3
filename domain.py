"""
Project: Sitly Bookings
Description:
Core records shared by every layer: status enums, the Table and Booking
records, the Result wrapper returned by booking operations, and the typed
business errors those results carry.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Optional


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"


class TableType(str, Enum):
    INDOOR = "indoor"
    OUTDOOR = "outdoor"
    BAR = "bar"
    VIP = "vip"


class TableStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    RESERVED = "reserved"
    CLEANING = "cleaning"
    MAINTENANCE = "maintenance"


ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW}
    ),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}

# Entering these requires the slot to be over
AFTER_SLOT_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.NO_SHOW})


# ---------- errors ----------

class BookingError:
    """A business failure. Returned inside a Result, never raised."""

    code = "booking_error"
    http_status = 400

    def __init__(self, message: str = ""):
        self.message = message or self.code.replace("_", " ")

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}

    def __eq__(self, other):
        return type(self) is type(other) and self.message == other.message

    def __repr__(self):
        return f"{type(self).__name__}({self.message!r})"


class ValidationError(BookingError):
    code = "validation_error"
    http_status = 422


class CapacityExceeded(BookingError):
    code = "capacity_exceeded"
    http_status = 422


class TableNotFound(BookingError):
    code = "table_not_found"
    http_status = 404


class BookingNotFound(BookingError):
    code = "booking_not_found"
    http_status = 404


class SlotOccupied(BookingError):
    code = "slot_occupied"
    http_status = 409


class Conflict(BookingError):
    code = "conflict"
    http_status = 409


class InvalidTransition(BookingError):
    code = "invalid_transition"
    http_status = 409


class ReserveTimeout(BookingError):
    code = "reserve_timeout"
    http_status = 503


@dataclass(frozen=True)
class Result:
    value: Any = None
    error: Optional[BookingError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value=None) -> "Result":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BookingError) -> "Result":
        return cls(error=error)


# ---------- records ----------

@dataclass(frozen=True)
class Table:
    id: str
    restaurant_id: str
    name: str
    capacity: int
    type: TableType = TableType.INDOOR
    status: TableStatus = TableStatus.AVAILABLE
    archived: bool = False

    def to_dict(self):
        return {
            "id": self.id,
            "restaurantId": self.restaurant_id,
            "name": self.name,
            "capacity": self.capacity,
            "type": self.type.value,
            "status": self.status.value,
            "archived": self.archived,
        }


@dataclass(frozen=True)
class Booking:
    id: str
    restaurant_id: str
    table_id: str
    client_id: str
    date: date
    time_slot: str
    guests: int
    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    total_price: float = 0.0
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    special_requests: Optional[str] = None

    @property
    def slot_key(self):
        return (self.table_id, self.date, self.time_slot)

    def with_status(self, status: BookingStatus, at: datetime) -> "Booking":
        return replace(self, status=status, updated_at=at)

    def to_dict(self):
        return {
            "id": self.id,
            "restaurantId": self.restaurant_id,
            "tableId": self.table_id,
            "clientId": self.client_id,
            "date": self.date.isoformat(),
            "timeSlot": self.time_slot,
            "guests": self.guests,
            "status": self.status.value,
            "paymentStatus": self.payment_status.value,
            "totalPrice": self.total_price,
            "specialRequests": self.special_requests,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class BookingRequest:
    restaurant_id: str
    table_id: str
    client_id: str
    date: date
    time_slot: str
    guests: int
    special_requests: Optional[str] = None
    total_price: float = 0.0

    @classmethod
    def from_payload(cls, data: dict) -> Result:
        """Build a request from a JSON body (camelCase keys)."""
        missing = [k for k in ("restaurantId", "tableId", "clientId", "date", "timeSlot", "guests")
                   if data.get(k) in (None, "")]
        if missing:
            return Result.failure(ValidationError(f"missing fields: {', '.join(missing)}"))

        parsed_date = parse_date(data["date"])
        if not parsed_date.ok:
            return parsed_date
        guests = data["guests"]
        if isinstance(guests, bool) or not isinstance(guests, int):
            return Result.failure(ValidationError("guests must be an integer"))
        total_price = _parse_price(data.get("totalPrice"))
        if not total_price.ok:
            return total_price
        special_requests = data.get("specialRequests")
        if special_requests is not None and not isinstance(special_requests, str):
            return Result.failure(ValidationError("specialRequests must be a string"))

        return Result.success(cls(
            restaurant_id=str(data["restaurantId"]),
            table_id=str(data["tableId"]),
            client_id=str(data["clientId"]),
            date=parsed_date.value,
            time_slot=str(data["timeSlot"]),
            guests=guests,
            special_requests=special_requests or None,
            total_price=total_price.value,
        ))


# ---------- parsing helpers ----------

def _parse_price(value) -> Result:
    if value is None or value == "":
        return Result.success(0.0)
    if isinstance(value, bool):
        return Result.failure(ValidationError("totalPrice must be a number"))
    try:
        price = float(value)
    except (TypeError, ValueError):
        return Result.failure(ValidationError("totalPrice must be a number"))
    if not math.isfinite(price):
        return Result.failure(ValidationError("totalPrice must be a finite number"))
    return Result.success(price)


def parse_date(value) -> Result:
    if isinstance(value, date) and not isinstance(value, datetime):
        return Result.success(value)
    try:
        return Result.success(date.fromisoformat(str(value)))
    except ValueError:
        return Result.failure(ValidationError(f"malformed date {value!r}, expected YYYY-MM-DD"))


def parse_enum(enum_cls, value, label) -> Result:
    try:
        return Result.success(enum_cls(value))
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        return Result.failure(ValidationError(f"unknown {label} {value!r}; expected one of: {allowed}"))


def slot_bounds(on_date: date, time_slot: str):
    """Start and end datetimes of a slot label such as "18:00-20:00".

    A slot whose end is not after its start (e.g. "22:00-00:00") ends on the
    following day.
    """
    start_label, _, end_label = time_slot.partition("-")
    start = datetime.combine(on_date, time.fromisoformat(start_label.strip()))
    end = datetime.combine(on_date, time.fromisoformat(end_label.strip()))
    if end <= start:
        end += timedelta(days=1)
    return start, end


def slot_has_ended(booking: Booking, now: datetime) -> bool:
    return slot_bounds(booking.date, booking.time_slot)[1] <= now


def is_valid_slot_label(time_slot: str) -> bool:
    try:
        slot_bounds(date.today(), time_slot)
    except ValueError:
        return False
    return "-" in time_slot
