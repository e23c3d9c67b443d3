from app import socketio
from conftest import RESTAURANT, SLOT


def _events(sio, name):
    return [e["args"][0] for e in sio.get_received() if e["name"] == name]


def test_watchers_receive_booking_events(app, client, tables):
    sio = socketio.test_client(app, flask_test_client=client)
    other = socketio.test_client(app, flask_test_client=client)
    sio.emit("watch", {"restaurantId": RESTAURANT})
    other.emit("watch", {"restaurantId": "somewhere-else"})
    assert _events(sio, "watching") == [{"restaurantId": RESTAURANT}]
    other.get_received()

    booking = client.post("/bookings", json={
        "restaurantId": RESTAURANT, "tableId": tables["T1"], "clientId": "c",
        "date": "2024-05-01", "timeSlot": SLOT, "guests": 2,
    }).get_json()
    client.patch(f"/bookings/{booking['id']}/status", json={"status": "confirmed"})
    assert app.extensions["booking_lifecycle"].bus.drain(timeout=2)

    received = sio.get_received()
    names = [e["name"] for e in received]
    assert names == ["booking.created", "booking.status_changed"]
    changed = received[1]["args"][0]
    assert changed["bookingId"] == booking["id"]
    assert (changed["oldStatus"], changed["newStatus"]) == ("pending", "confirmed")
    assert other.get_received() == []

    sio.disconnect()
    other.disconnect()


def test_watch_requires_restaurant(app, client):
    sio = socketio.test_client(app, flask_test_client=client)
    sio.emit("watch", {})
    errors = _events(sio, "error")
    assert errors and errors[0]["error"] == "validation_error"
    sio.disconnect()
