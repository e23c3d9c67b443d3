"""
Project: Sitly Bookings
Description:
Shared fixtures: a fixed clock, in-memory booking core, and a Flask app
running on in-memory SQLite with its test client.
"""

import os, sys
from datetime import date, datetime, timedelta

import pytest

# --- Make sure project root is importable ---
TESTS_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(TESTS_DIR, os.pardir, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from app import create_app  # noqa: E402
from config import Config  # noqa: E402
from conflict_index import ConflictIndex  # noqa: E402
from domain import BookingRequest, Table, TableType  # noqa: E402
from lifecycle import BookingLifecycle  # noqa: E402
from notifications import EventBus  # noqa: E402
from stores import InMemoryStore  # noqa: E402

RESTAURANT = "r1"
OTHER_RESTAURANT = "r2"
SLOT = "18:00-20:00"
DAY = date(2024, 5, 1)


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 4, 1, 9, 0))


@pytest.fixture
def store():
    s = InMemoryStore()
    s.add_table(Table(id="T1", restaurant_id=RESTAURANT, name="Table 1", capacity=4))
    s.add_table(Table(id="T2", restaurant_id=RESTAURANT, name="Table 2", capacity=2))
    s.add_table(Table(id="T3", restaurant_id=RESTAURANT, name="VIP", capacity=6, type=TableType.VIP))
    s.add_table(Table(id="T9", restaurant_id=OTHER_RESTAURANT, name="Elsewhere", capacity=4))
    return s


@pytest.fixture
def index():
    return ConflictIndex(reserve_timeout=1.0)


@pytest.fixture
def bus():
    b = EventBus(max_attempts=3, retry_delay=0.01)
    yield b
    b.close(timeout=2)


@pytest.fixture
def lifecycle(store, index, bus, clock):
    return BookingLifecycle(store, index, bus=bus, time_slots=Config.TIME_SLOTS, clock=clock)


def make_request(table_id="T1", guests=4, on_date=DAY, time_slot=SLOT, **overrides):
    fields = dict(
        restaurant_id=RESTAURANT,
        table_id=table_id,
        client_id="client-1",
        date=on_date,
        time_slot=time_slot,
        guests=guests,
    )
    fields.update(overrides)
    return BookingRequest(**fields)


@pytest.fixture
def app(clock):
    app = create_app(testing=True, clock=clock)
    yield app
    app.extensions["booking_lifecycle"].bus.close(timeout=2)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def tables(client):
    """Create T1 (4 seats), T2 (2 seats) and VIP (6 seats) over HTTP; returns name -> id."""
    ids = {}
    for name, capacity, kind in (("T1", 4, "indoor"), ("T2", 2, "indoor"), ("VIP", 6, "vip")):
        r = client.post(f"/restaurants/{RESTAURANT}/tables", json={"name": name, "capacity": capacity, "type": kind})
        assert r.status_code == 201
        ids[name] = r.get_json()["id"]
    return ids
