"""
Project: Sitly Bookings
Description:
Booking lifecycle: creating bookings and moving them through the status
state machine. This is the only place that decides whether a transition
is legal.

    pending   -> confirmed | cancelled
    confirmed -> cancelled | completed | no_show
    cancelled, completed, no_show are terminal

Every operation returns a Result. A failed call leaves the store and the
conflict index exactly as they were.
"""

import logging
import math
import uuid
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, Iterable, Optional

from availability import AvailabilityChecker
from conflict_index import ConflictIndex
from domain import (
    ACTIVE_STATUSES,
    AFTER_SLOT_STATUSES,
    ALLOWED_TRANSITIONS,
    Booking,
    BookingNotFound,
    BookingRequest,
    BookingStatus,
    Conflict,
    InvalidTransition,
    PaymentStatus,
    Result,
    ValidationError,
    slot_has_ended,
)
from notifications import BookingEvent, EventBus
from stores import BookingStore

logger = logging.getLogger(__name__)

CLIENT_SCOPES = ("all", "upcoming", "past")

# Attempts for writes that only touch non-status fields
_PAYMENT_WRITE_ATTEMPTS = 3


class BookingLifecycle:

    def __init__(
        self,
        store: BookingStore,
        index: ConflictIndex,
        checker: Optional[AvailabilityChecker] = None,
        bus: Optional[EventBus] = None,
        time_slots: Iterable[str] = (),
        reject_past_dates: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.index = index
        self.checker = checker or AvailabilityChecker(store, index)
        self.bus = bus
        self.time_slots = tuple(time_slots)
        self.reject_past_dates = reject_past_dates
        self.clock = clock

    # ---------- creation ----------

    def validate(self, request: BookingRequest) -> Optional[ValidationError]:
        if isinstance(request.guests, bool) or not isinstance(request.guests, int):
            return ValidationError("guests must be an integer")
        if request.guests <= 0:
            return ValidationError("guests must be at least 1")
        if request.time_slot not in self.time_slots:
            return ValidationError(
                f"unknown time slot {request.time_slot!r}; expected one of: {', '.join(self.time_slots)}")
        if self.reject_past_dates and request.date < self.clock().date():
            return ValidationError(f"date {request.date.isoformat()} is in the past")
        if not math.isfinite(request.total_price) or request.total_price < 0:
            return ValidationError("totalPrice must be a finite, non-negative number")
        return None

    def create_booking(self, request: BookingRequest) -> Result:
        error = self.validate(request)
        if error is not None:
            return Result.failure(error)
        return self.index.with_table(request.table_id, lambda: self._book(request))

    def _book(self, request: BookingRequest) -> Result:
        # caller holds the table lock
        availability = self.checker.check_availability(
            request.restaurant_id, request.table_id, request.date, request.time_slot, request.guests)
        if not availability.ok:
            logger.info("Booking refused for table %s on %s %s: %s",
                        request.table_id, request.date, request.time_slot, availability.error.code)
            return availability

        now = self.clock()
        booking = Booking(
            id=uuid.uuid4().hex,
            restaurant_id=request.restaurant_id,
            table_id=request.table_id,
            client_id=request.client_id,
            date=request.date,
            time_slot=request.time_slot,
            guests=request.guests,
            status=BookingStatus.PENDING,
            payment_status=PaymentStatus.UNPAID,
            total_price=request.total_price,
            created_at=now,
            updated_at=now,
            special_requests=request.special_requests,
        )

        reserved = self.index.reserve(booking)
        if not reserved.ok:
            logger.info("Lost reservation race for %s: %s", booking.slot_key, reserved.error.code)
            return reserved

        try:
            stored = self.store.insert_booking(booking)
        except Exception:
            self.index.release(booking.id)
            raise
        if not stored:
            # another process claimed the key in the store first
            self.index.release(booking.id)
            logger.info("Store refused slot claim for %s", booking.slot_key)
            return Result.failure(Conflict(
                f"table {booking.table_id} is already booked for "
                f"{booking.date.isoformat()} {booking.time_slot}"))

        logger.info("Booking %s created for table %s on %s %s (%d guests)",
                    booking.id, booking.table_id, booking.date, booking.time_slot, booking.guests)
        self._publish(BookingEvent.created(booking, now))
        return Result.success(booking)

    # ---------- transitions ----------

    def transition(self, booking_id: str, target: BookingStatus, now: Optional[datetime] = None) -> Result:
        booking = self.store.get_booking(booking_id)
        if booking is None:
            return Result.failure(BookingNotFound(f"booking {booking_id} not found"))

        if target not in ALLOWED_TRANSITIONS[booking.status]:
            return Result.failure(InvalidTransition(
                f"cannot move booking from {booking.status.value} to {target.value}"))

        now = now or self.clock()
        if target in AFTER_SLOT_STATUSES and not slot_has_ended(booking, now):
            return Result.failure(InvalidTransition(
                f"cannot mark booking {target.value} before its slot {booking.time_slot} has ended"))

        updated = booking.with_status(target, now)
        if not self.store.compare_and_set(updated, expected_status=booking.status):
            current = self.store.get_booking(booking_id)
            current_status = current.status.value if current else "gone"
            return Result.failure(InvalidTransition(
                f"booking changed concurrently, it is now {current_status}"))

        if not target.is_active:
            self.index.release(booking.id)

        logger.info("Booking %s moved %s -> %s", booking.id, booking.status.value, target.value)
        self._publish(BookingEvent.status_changed(updated, booking.status, now))
        return Result.success(updated)

    def confirm(self, booking_id: str) -> Result:
        return self.transition(booking_id, BookingStatus.CONFIRMED)

    def cancel(self, booking_id: str) -> Result:
        return self.transition(booking_id, BookingStatus.CANCELLED)

    def settle_elapsed(self, now: Optional[datetime] = None) -> list[Booking]:
        """Complete every confirmed booking whose slot has ended."""
        now = now or self.clock()
        settled = []
        for booking in self.store.list_bookings(statuses=[BookingStatus.CONFIRMED]):
            if not slot_has_ended(booking, now):
                continue
            result = self.transition(booking.id, BookingStatus.COMPLETED, now=now)
            if result.ok:
                settled.append(result.value)
            else:
                logger.warning("Could not settle booking %s: %s", booking.id, result.error.message)
        return settled

    # ---------- payment ----------

    def update_payment(self, booking_id: str, payment_status: PaymentStatus) -> Result:
        for _ in range(_PAYMENT_WRITE_ATTEMPTS):
            booking = self.store.get_booking(booking_id)
            if booking is None:
                return Result.failure(BookingNotFound(f"booking {booking_id} not found"))
            updated = replace(booking, payment_status=payment_status, updated_at=self.clock())
            if self.store.compare_and_set(updated, expected_status=booking.status):
                logger.info("Booking %s payment is now %s", booking_id, payment_status.value)
                return Result.success(updated)
        return Result.failure(Conflict(f"booking {booking_id} kept changing, payment not updated"))

    # ---------- reads ----------

    def get_booking(self, booking_id: str) -> Result:
        booking = self.store.get_booking(booking_id)
        if booking is None:
            return Result.failure(BookingNotFound(f"booking {booking_id} not found"))
        return Result.success(booking)

    def list_bookings(self, restaurant_id: str, status: Optional[BookingStatus] = None,
                      on_date: Optional[date] = None) -> list[Booking]:
        statuses = [status] if status is not None else None
        return self.store.list_bookings(restaurant_id=restaurant_id, statuses=statuses, on_date=on_date)

    def client_bookings(self, client_id: str, scope: str = "all") -> Result:
        if scope not in CLIENT_SCOPES:
            return Result.failure(ValidationError(
                f"unknown scope {scope!r}; expected one of: {', '.join(CLIENT_SCOPES)}"))
        bookings = self.store.list_bookings(client_id=client_id)
        today = self.clock().date()
        if scope == "upcoming":
            bookings = [b for b in bookings if b.status in ACTIVE_STATUSES and b.date >= today]
        elif scope == "past":
            bookings = [b for b in bookings if b.status not in ACTIVE_STATUSES or b.date < today]
            bookings.reverse()
        return Result.success(bookings)

    def _publish(self, event: BookingEvent):
        if self.bus is not None:
            self.bus.publish(event)
