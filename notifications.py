"""
Project: Sitly Bookings
Description:
Booking domain events and their fan-out. The lifecycle publishes events to
an EventBus; a worker thread hands them to subscribers so the booking call
never waits on delivery. The Socket.IO forwarder is one such subscriber.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Optional

from domain import Booking, BookingStatus

logger = logging.getLogger(__name__)

BOOKING_CREATED = "BookingCreated"
BOOKING_STATUS_CHANGED = "BookingStatusChanged"

SOCKET_EVENT_NAMES = {
    BOOKING_CREATED: "booking.created",
    BOOKING_STATUS_CHANGED: "booking.status_changed",
}

_STOP = object()


@dataclass(frozen=True)
class BookingEvent:
    type: str
    booking_id: str
    restaurant_id: str
    table_id: str
    date: date
    time_slot: str
    old_status: Optional[BookingStatus]
    new_status: BookingStatus
    occurred_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def created(cls, booking: Booking, at: Optional[datetime] = None):
        return cls._from_booking(BOOKING_CREATED, booking, None, at)

    @classmethod
    def status_changed(cls, booking: Booking, old_status: BookingStatus, at: Optional[datetime] = None):
        return cls._from_booking(BOOKING_STATUS_CHANGED, booking, old_status, at)

    @classmethod
    def _from_booking(cls, kind, booking, old_status, at):
        return cls(
            type=kind,
            booking_id=booking.id,
            restaurant_id=booking.restaurant_id,
            table_id=booking.table_id,
            date=booking.date,
            time_slot=booking.time_slot,
            old_status=old_status,
            new_status=booking.status,
            occurred_at=at or datetime.now(),
        )

    def to_dict(self):
        return {
            "type": self.type,
            "bookingId": self.booking_id,
            "restaurantId": self.restaurant_id,
            "tableId": self.table_id,
            "date": self.date.isoformat(),
            "timeSlot": self.time_slot,
            "oldStatus": self.old_status.value if self.old_status else None,
            "newStatus": self.new_status.value,
            "occurredAt": self.occurred_at.isoformat(),
        }


@dataclass
class _Subscription:
    callback: Callable[[BookingEvent], None]
    restaurant_id: Optional[str] = None

    def wants(self, event: BookingEvent) -> bool:
        return self.restaurant_id is None or self.restaurant_id == event.restaurant_id


class EventBus:
    """
    Asynchronous, ordered, at-least-once delivery of booking events.

    A subscriber that raises gets the same event again, up to max_attempts
    times. After the last failure the event is logged and skipped for that
    subscriber only.
    """

    def __init__(self, max_attempts: int = 3, retry_delay: float = 0.5):
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self._queue: queue.Queue = queue.Queue()
        self._subscriptions: list[_Subscription] = []
        self._lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None
        self._closed = False

    def subscribe(self, callback, restaurant_id=None):
        """Register a callback; returns a function that unregisters it."""
        sub = _Subscription(callback, restaurant_id)
        with self._lock:
            self._subscriptions.append(sub)

        def unsubscribe():
            with self._lock:
                if sub in self._subscriptions:
                    self._subscriptions.remove(sub)

        return unsubscribe

    def publish(self, event: BookingEvent) -> None:
        with self._lock:
            if self._closed:
                logger.warning("Event bus closed, dropping %s for booking %s", event.type, event.booking_id)
                return
            if self._worker is None:
                self._worker = threading.Thread(target=self._run, name="booking-events", daemon=True)
                self._worker.start()
        self._queue.put(event)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait until every published event has been handled. False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    def close(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            worker = self._worker
        if worker is not None:
            self._queue.put(_STOP)
            worker.join(timeout)

    def _run(self):
        while True:
            event = self._queue.get()
            try:
                if event is _STOP:
                    return
                with self._lock:
                    subscriptions = [s for s in self._subscriptions if s.wants(event)]
                for sub in subscriptions:
                    self._deliver(sub, event)
            finally:
                self._queue.task_done()

    def _deliver(self, sub: _Subscription, event: BookingEvent):
        for attempt in range(1, self.max_attempts + 1):
            try:
                sub.callback(event)
                return
            except Exception:
                logger.exception("Delivery of %s for booking %s failed (attempt %d/%d)",
                                 event.type, event.booking_id, attempt, self.max_attempts)
                if attempt < self.max_attempts:
                    time.sleep(self.retry_delay)
        logger.error("Giving up on %s for booking %s", event.type, event.booking_id)


def restaurant_room(restaurant_id: str) -> str:
    return f"restaurant:{restaurant_id}"


def socketio_forwarder(socketio):
    """Subscriber that pushes events to the Socket.IO room of their restaurant."""

    def forward(event: BookingEvent):
        socketio.emit(
            SOCKET_EVENT_NAMES[event.type],
            event.to_dict(),
            to=restaurant_room(event.restaurant_id),
        )

    return forward
