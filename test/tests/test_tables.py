from conftest import RESTAURANT, SLOT


def test_tables_list_and_create(client):
    r = client.get(f"/restaurants/{RESTAURANT}/tables")
    assert r.status_code == 200
    assert r.get_json() == []

    r = client.post(f"/restaurants/{RESTAURANT}/tables",
                    json={"name": "Terrace 1", "capacity": 4, "type": "outdoor"})
    assert r.status_code == 201
    table = r.get_json()
    assert table["restaurantId"] == RESTAURANT
    assert table["status"] == "available"
    assert table["archived"] is False

    listed = client.get(f"/restaurants/{RESTAURANT}/tables").get_json()
    assert [t["id"] for t in listed] == [table["id"]]
    assert client.get("/restaurants/elsewhere/tables").get_json() == []


def test_table_validation(client):
    for payload in ({"capacity": 2},
                    {"name": "T", "capacity": 0},
                    {"name": "T", "capacity": "4"},
                    {"name": "T", "capacity": 2, "type": "rooftop"},
                    {"name": "T", "capacity": 2, "status": "broken"},
                    {"name": 5, "capacity": 2},
                    {"name": "T", "capacity": 21}):
        r = client.post(f"/restaurants/{RESTAURANT}/tables", json=payload)
        assert r.status_code == 422, payload


def test_update_table(client, tables):
    r = client.put(f"/tables/{tables['T1']}", json={"name": "Window", "status": "cleaning", "capacity": 5})
    assert r.status_code == 200
    body = r.get_json()
    assert (body["name"], body["status"], body["capacity"]) == ("Window", "cleaning", 5)
    assert client.put("/tables/missing", json={"name": "x"}).status_code == 404
    assert client.put(f"/tables/{tables['T1']}", json={"type": "attic"}).status_code == 422


def test_capacity_cannot_drop_below_active_booking(client, tables):
    client.post("/bookings", json={
        "restaurantId": RESTAURANT, "tableId": tables["VIP"], "clientId": "c",
        "date": "2024-05-01", "timeSlot": SLOT, "guests": 5,
    })
    r = client.put(f"/tables/{tables['VIP']}", json={"capacity": 4})
    assert r.status_code == 422
    assert client.put(f"/tables/{tables['VIP']}", json={"capacity": 5}).status_code == 200


def test_soft_delete_keeps_history(client, tables):
    booking = client.post("/bookings", json={
        "restaurantId": RESTAURANT, "tableId": tables["T2"], "clientId": "c",
        "date": "2024-05-01", "timeSlot": SLOT, "guests": 2,
    }).get_json()

    r = client.delete(f"/tables/{tables['T2']}")
    assert r.status_code == 409

    client.patch(f"/bookings/{booking['id']}/status", json={"status": "cancelled"})
    r = client.delete(f"/tables/{tables['T2']}")
    assert r.status_code == 200
    assert r.get_json()["archived"] is True

    names = [t["name"] for t in client.get(f"/restaurants/{RESTAURANT}/tables").get_json()]
    assert "T2" not in names
    everything = client.get(f"/restaurants/{RESTAURANT}/tables?includeArchived=true").get_json()
    assert "T2" in [t["name"] for t in everything]

    assert client.get(f"/bookings/{booking['id']}").status_code == 200
    r = client.post("/bookings", json={
        "restaurantId": RESTAURANT, "tableId": tables["T2"], "clientId": "c",
        "date": "2024-05-01", "timeSlot": SLOT, "guests": 2,
    })
    assert r.status_code == 404
    assert client.delete("/tables/missing").status_code == 404
