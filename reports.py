"""
Project: Sitly Bookings
Description:
Booking summary for a restaurant's reports screen.
"""

from collections import Counter

from domain import BookingStatus, PaymentStatus


def booking_summary(bookings, tables=None):
    """
    Aggregate a list of bookings.

    Args:
        bookings: Booking records, typically one restaurant's
        tables: Optional {table_id: Table} used to report tables by name

    Returns:
        dict with per-status counts, average party size, paid revenue and
        booking counts per time slot and per table
    """
    tables = tables or {}
    by_status = Counter(b.status for b in bookings)
    total = len(bookings)
    per_table = Counter(
        tables[b.table_id].name if b.table_id in tables else b.table_id for b in bookings
    )
    return {
        "totalBookings": total,
        "byStatus": {s.value: by_status.get(s, 0) for s in BookingStatus},
        "averagePartySize": round(sum(b.guests for b in bookings) / total, 2) if total else 0.0,
        "totalRevenue": round(sum(b.total_price for b in bookings
                                  if b.payment_status == PaymentStatus.PAID), 2),
        "popularTimeSlots": dict(Counter(b.time_slot for b in bookings).most_common()),
        "popularTables": dict(per_table.most_common()),
    }
