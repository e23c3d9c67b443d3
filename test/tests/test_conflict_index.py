import threading
from datetime import date

from conflict_index import ConflictIndex
from domain import Booking, BookingStatus, Conflict, ReserveTimeout

DAY = date(2024, 5, 1)


def _booking(booking_id, table_id="T1", on_date=DAY, time_slot="18:00-20:00", status=BookingStatus.PENDING):
    return Booking(id=booking_id, restaurant_id="r1", table_id=table_id, client_id="c",
                   date=on_date, time_slot=time_slot, guests=2, status=status)


def test_second_reserve_for_same_key_conflicts():
    index = ConflictIndex()
    assert index.reserve(_booking("b1")).ok
    result = index.reserve(_booking("b2"))
    assert not result.ok
    assert isinstance(result.error, Conflict)
    assert index.holder("T1", DAY, "18:00-20:00") == "b1"


def test_other_slot_date_or_table_is_independent():
    index = ConflictIndex()
    assert index.reserve(_booking("b1")).ok
    assert index.reserve(_booking("b2", time_slot="20:00-22:00")).ok
    assert index.reserve(_booking("b3", on_date=date(2024, 5, 2))).ok
    assert index.reserve(_booking("b4", table_id="T2")).ok
    assert len(index) == 4


def test_release_then_reserve_succeeds():
    index = ConflictIndex()
    index.reserve(_booking("b1"))
    index.release("b1")
    assert not index.is_occupied("T1", DAY, "18:00-20:00")
    assert index.reserve(_booking("b2")).ok


def test_release_is_idempotent_and_ignores_unknown_ids():
    index = ConflictIndex()
    index.reserve(_booking("b1"))
    index.release("nope")
    index.release("b1")
    index.release("b1")
    assert len(index) == 0


def test_stale_release_does_not_free_new_holder():
    index = ConflictIndex()
    index.reserve(_booking("b1"))
    index.release("b1")
    index.reserve(_booking("b2"))
    index.release("b1")
    assert index.holder("T1", DAY, "18:00-20:00") == "b2"


def test_concurrent_reserves_have_exactly_one_winner():
    index = ConflictIndex(reserve_timeout=5)
    attempts = 16
    barrier = threading.Barrier(attempts)
    results = []
    results_lock = threading.Lock()

    def attempt(n):
        barrier.wait()
        r = index.reserve(_booking(f"b{n}"))
        with results_lock:
            results.append(r)

    threads = [threading.Thread(target=attempt, args=(n,)) for n in range(attempts)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(r.ok for r in results) == 1
    assert all(isinstance(r.error, Conflict) for r in results if not r.ok)
    assert len(index) == 1


def test_reserve_times_out_when_table_day_is_locked():
    index = ConflictIndex(reserve_timeout=0.05)
    lock = index._lock_for("T1", DAY)
    lock.acquire()
    try:
        result = index.reserve(_booking("b1"))
    finally:
        lock.release()
    assert isinstance(result.error, ReserveTimeout)
    assert not index.is_occupied("T1", DAY, "18:00-20:00")


def test_reindex_keeps_only_active_bookings():
    index = ConflictIndex()
    index.reserve(_booking("old", table_id="T7"))
    index.reindex([
        _booking("b1"),
        _booking("b2", time_slot="20:00-22:00", status=BookingStatus.CONFIRMED),
        _booking("b3", time_slot="12:00-14:00", status=BookingStatus.CANCELLED),
        _booking("b4", time_slot="14:00-16:00", status=BookingStatus.COMPLETED),
    ])
    assert len(index) == 2
    assert not index.is_occupied("T7", DAY, "18:00-20:00")
    assert index.holder("T1", DAY, "20:00-22:00") == "b2"
    assert not index.is_occupied("T1", DAY, "12:00-14:00")
    index.release("b1")
    assert not index.is_occupied("T1", DAY, "18:00-20:00")


def test_lock_table_stays_bounded_over_many_days():
    index = ConflictIndex(stripes=8)
    for day in range(1, 29):
        assert index.reserve(_booking(f"b{day}", on_date=date(2024, 2, day))).ok
    assert len(index._slot_locks) == 8
    assert len(index) == 28


def test_with_table_returns_action_result_and_times_out_when_busy():
    index = ConflictIndex(reserve_timeout=0.05)
    assert index.with_table("T1", lambda: index.reserve(_booking("b1"))).ok
    lock = index._table_lock("T1")
    lock.acquire()
    try:
        result = index.with_table("T1", lambda: index.reserve(_booking("b2", time_slot="20:00-22:00")))
    finally:
        lock.release()
    assert isinstance(result.error, ReserveTimeout)
    assert not index.is_occupied("T1", DAY, "20:00-22:00")
