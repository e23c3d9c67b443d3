"""
Project: Sitly Bookings
Description:
Application configuration. Loaded by the app factory with
app.config.from_object(Config); every value can be overridden from the
environment.
"""

import os

DEFAULT_TIME_SLOTS = "12:00-14:00,14:00-16:00,18:00-20:00,20:00-22:00"


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///sitly.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # "sql" persists through Flask-SQLAlchemy, "memory" keeps everything in process
    STORE_BACKEND = os.environ.get("STORE_BACKEND", "sql")

    # Service slots a restaurant publishes; bookings must use one of these labels
    TIME_SLOTS = tuple(
        s.strip() for s in os.environ.get("TIME_SLOTS", DEFAULT_TIME_SLOTS).split(",") if s.strip()
    )
    # largest party a single table may seat
    MAX_TABLE_CAPACITY = int(os.environ.get("MAX_TABLE_CAPACITY", 20))
    REJECT_PAST_DATES = _env_bool("REJECT_PAST_DATES", True)

    # Seconds a reservation waits for the per-table lock before giving up
    RESERVE_TIMEOUT = float(os.environ.get("RESERVE_TIMEOUT", 2.0))

    NOTIFY_MAX_ATTEMPTS = int(os.environ.get("NOTIFY_MAX_ATTEMPTS", 3))
    NOTIFY_RETRY_DELAY = float(os.environ.get("NOTIFY_RETRY_DELAY", 0.5))

    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "threading")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
