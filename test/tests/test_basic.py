import pytest

from app import create_app
from config import Config


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.get_json() == {"status": "ok"}


def test_time_slots_listed(client):
    assert client.get("/time-slots").get_json() == list(Config.TIME_SLOTS)


def test_malformed_time_slot_config_is_rejected(monkeypatch):
    monkeypatch.setattr(Config, "TIME_SLOTS", ("18:00-20:00", "dinner"))
    with pytest.raises(ValueError):
        create_app(testing=True)
