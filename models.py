"""
Project: Sitly Bookings
Description:
Flask-SQLAlchemy rows backing the SQL store. SlotClaim carries the
unique (table_id, date, time_slot) key that makes a second active booking
for the same slot impossible at the database level.
"""

from flask_sqlalchemy import SQLAlchemy
from datetime import datetime

from domain import Booking, BookingStatus, PaymentStatus, Table, TableStatus, TableType

db = SQLAlchemy()


class TableRow(db.Model):
    __tablename__ = "dining_table"

    id = db.Column(db.String(32), primary_key=True)
    restaurant_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(80), nullable=False)
    capacity = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(20), default=TableType.INDOOR.value)
    status = db.Column(db.String(20), default=TableStatus.AVAILABLE.value)
    archived = db.Column(db.Boolean, default=False, nullable=False)

    def to_record(self):
        return Table(
            id=self.id,
            restaurant_id=self.restaurant_id,
            name=self.name,
            capacity=self.capacity,
            type=TableType(self.type),
            status=TableStatus(self.status),
            archived=bool(self.archived),
        )

    def apply(self, table):
        self.restaurant_id = table.restaurant_id
        self.name = table.name
        self.capacity = table.capacity
        self.type = table.type.value
        self.status = table.status.value
        self.archived = table.archived
        return self


class BookingRow(db.Model):
    __tablename__ = "booking"

    id = db.Column(db.String(32), primary_key=True)
    restaurant_id = db.Column(db.String(64), nullable=False, index=True)
    table_id = db.Column(db.String(32), db.ForeignKey("dining_table.id"), nullable=False)
    client_id = db.Column(db.String(64), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)
    time_slot = db.Column(db.String(20), nullable=False)
    guests = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=BookingStatus.PENDING.value)
    payment_status = db.Column(db.String(20), nullable=False, default=PaymentStatus.UNPAID.value)
    total_price = db.Column(db.Float, nullable=False, default=0.0)
    special_requests = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now)

    def to_record(self):
        return Booking(
            id=self.id,
            restaurant_id=self.restaurant_id,
            table_id=self.table_id,
            client_id=self.client_id,
            date=self.date,
            time_slot=self.time_slot,
            guests=self.guests,
            status=BookingStatus(self.status),
            payment_status=PaymentStatus(self.payment_status),
            total_price=self.total_price,
            special_requests=self.special_requests,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_record(cls, booking):
        return cls(
            id=booking.id,
            restaurant_id=booking.restaurant_id,
            table_id=booking.table_id,
            client_id=booking.client_id,
            date=booking.date,
            time_slot=booking.time_slot,
            guests=booking.guests,
            status=booking.status.value,
            payment_status=booking.payment_status.value,
            total_price=booking.total_price,
            special_requests=booking.special_requests,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )


class SlotClaim(db.Model):
    """One row per active booking. Deleted when the booking leaves the active set."""

    __tablename__ = "slot_claim"
    __table_args__ = (
        db.UniqueConstraint("table_id", "date", "time_slot", name="uq_slot_claim_key"),
    )

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.String(32), db.ForeignKey("booking.id"), unique=True, nullable=False)
    table_id = db.Column(db.String(32), nullable=False)
    date = db.Column(db.Date, nullable=False)
    time_slot = db.Column(db.String(20), nullable=False)
