"""
Project: Sitly Bookings
Description:
Main application entry point. Initializes Flask, the database, Socket.IO
and the booking core (store, conflict index, lifecycle, event bus), then
registers the HTTP routes.
"""

from datetime import datetime

from flask import Flask, jsonify, request
from flask_socketio import SocketIO, emit, join_room, leave_room

from config import Config
from conflict_index import ConflictIndex
from domain import (
    BookingRequest,
    BookingStatus,
    PaymentStatus,
    Result,
    ValidationError,
    is_valid_slot_label,
    parse_date,
    parse_enum,
)
from lifecycle import BookingLifecycle
from models import db
from notifications import EventBus, restaurant_room, socketio_forwarder
from reports import booking_summary
from stores import StoreUnavailable, create_store
from tables import TableRegistry

# Create SocketIO once (no app yet), then bind inside factory
socketio = SocketIO(cors_allowed_origins="*")

# Spellings of statuses accepted from clients besides the canonical values
STATUS_ALIASES = {"noShow": BookingStatus.NO_SHOW.value, "no-show": BookingStatus.NO_SHOW.value}


def _status_value(raw):
    return STATUS_ALIASES.get(raw, raw) if isinstance(raw, str) else raw


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _respond(result: Result, status: int = 200):
    if not result.ok:
        return jsonify(result.error.to_dict()), result.error.http_status
    return jsonify(result.value.to_dict()), status


def _fail(error):
    return jsonify(error.to_dict()), error.http_status


def create_app(testing: bool = False, store=None, clock=None):
    app = Flask(__name__)
    app.config.from_object(Config)

    if testing:
        app.config["TESTING"] = True
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite:///:memory:"
        app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
        app.config["NOTIFY_RETRY_DELAY"] = 0.01

    app.logger.setLevel(app.config["LOG_LEVEL"])

    time_slots = tuple(app.config["TIME_SLOTS"])
    bad_slots = [s for s in time_slots if not is_valid_slot_label(s)]
    if bad_slots:
        raise ValueError(f"TIME_SLOTS contains malformed labels: {bad_slots}")

    db.init_app(app)
    socketio.init_app(app, async_mode=app.config["SOCKETIO_ASYNC_MODE"])  # <-- bind socketio to this app

    # --------- booking core ---------
    if store is None:
        store = create_store(app.config["STORE_BACKEND"])
    index = ConflictIndex(reserve_timeout=app.config["RESERVE_TIMEOUT"])
    bus = EventBus(
        max_attempts=app.config["NOTIFY_MAX_ATTEMPTS"],
        retry_delay=app.config["NOTIFY_RETRY_DELAY"],
    )
    bus.subscribe(socketio_forwarder(socketio))
    lifecycle = BookingLifecycle(
        store,
        index,
        bus=bus,
        time_slots=time_slots,
        reject_past_dates=app.config["REJECT_PAST_DATES"],
        clock=clock or datetime.now,
    )
    registry = TableRegistry(store, index, max_capacity=app.config["MAX_TABLE_CAPACITY"])
    app.extensions["booking_lifecycle"] = lifecycle
    app.extensions["table_registry"] = registry

    with app.app_context():
        db.create_all()
        index.reindex(store.active_bookings())

    # --------- helpers ---------
    def slot_query():
        """Parse ?date=&timeSlot=&guests= shared by availability lookups."""
        args = request.args
        parsed_date = parse_date(args.get("date", ""))
        if not parsed_date.ok:
            return parsed_date
        time_slot = args.get("timeSlot", "")
        if time_slot not in time_slots:
            return Result.failure(ValidationError(f"unknown time slot {time_slot!r}"))
        try:
            guests = int(args.get("guests", ""))
        except ValueError:
            return Result.failure(ValidationError("guests must be an integer"))
        if guests <= 0:
            return Result.failure(ValidationError("guests must be at least 1"))
        return Result.success((parsed_date.value, time_slot, guests))

    @app.errorhandler(StoreUnavailable)
    def store_unavailable(exc):
        app.logger.error("Store unavailable: %s", exc)
        return jsonify({"error": "store_unavailable", "message": "storage is unavailable, retry later"}), 503

    # ---------- BOOKINGS ----------
    @app.post("/bookings")
    def create_booking():
        parsed = BookingRequest.from_payload(_json_body())
        if not parsed.ok:
            return _fail(parsed.error)
        return _respond(lifecycle.create_booking(parsed.value), 201)

    @app.get("/bookings/<booking_id>")
    def get_booking(booking_id):
        return _respond(lifecycle.get_booking(booking_id))

    @app.patch("/bookings/<booking_id>/status")
    def update_booking_status(booking_id):
        raw = _json_body().get("status")
        target = parse_enum(BookingStatus, _status_value(raw), "status")
        if not target.ok:
            return _fail(target.error)
        return _respond(lifecycle.transition(booking_id, target.value))

    @app.patch("/bookings/<booking_id>/payment")
    def update_booking_payment(booking_id):
        payment = parse_enum(PaymentStatus, _json_body().get("paymentStatus"), "payment status")
        if not payment.ok:
            return _fail(payment.error)
        return _respond(lifecycle.update_payment(booking_id, payment.value))

    @app.post("/bookings/settle")
    def settle_bookings():
        settled = lifecycle.settle_elapsed()
        return jsonify({"settled": [b.to_dict() for b in settled]})

    @app.get("/restaurants/<restaurant_id>/bookings")
    def list_restaurant_bookings(restaurant_id):
        status = on_date = None
        if request.args.get("status"):
            raw = request.args["status"]
            parsed = parse_enum(BookingStatus, _status_value(raw), "status")
            if not parsed.ok:
                return _fail(parsed.error)
            status = parsed.value
        if request.args.get("date"):
            parsed = parse_date(request.args["date"])
            if not parsed.ok:
                return _fail(parsed.error)
            on_date = parsed.value
        bookings = lifecycle.list_bookings(restaurant_id, status=status, on_date=on_date)
        return jsonify([b.to_dict() for b in bookings])

    @app.get("/clients/<client_id>/bookings")
    def list_client_bookings(client_id):
        result = lifecycle.client_bookings(client_id, request.args.get("scope", "all"))
        if not result.ok:
            return _fail(result.error)
        return jsonify([b.to_dict() for b in result.value])

    # ---------- TABLES ----------
    @app.get("/restaurants/<restaurant_id>/tables")
    def list_tables(restaurant_id):
        include_archived = request.args.get("includeArchived", "").lower() in ("1", "true", "yes")
        tables = registry.list_tables(restaurant_id, include_archived=include_archived)
        return jsonify([t.to_dict() for t in tables])

    @app.get("/restaurants/<restaurant_id>/tables/available")
    def list_available_tables(restaurant_id):
        query = slot_query()
        if not query.ok:
            return _fail(query.error)
        on_date, time_slot, guests = query.value
        tables = lifecycle.checker.list_available_tables(restaurant_id, on_date, time_slot, guests)
        return jsonify([t.to_dict() for t in tables])

    @app.post("/restaurants/<restaurant_id>/tables")
    def create_table(restaurant_id):
        return _respond(registry.create_table(restaurant_id, _json_body()), 201)

    @app.put("/tables/<table_id>")
    def update_table(table_id):
        return _respond(registry.update_table(table_id, _json_body()))

    @app.delete("/tables/<table_id>")
    def delete_table(table_id):
        return _respond(registry.retire_table(table_id))

    # ---------- REPORTS ----------
    @app.get("/restaurants/<restaurant_id>/reports/bookings")
    def bookings_report(restaurant_id):
        tables = {t.id: t for t in registry.list_tables(restaurant_id, include_archived=True)}
        return jsonify(booking_summary(lifecycle.list_bookings(restaurant_id), tables))

    # ---------- REFERENCE ----------
    @app.get("/time-slots")
    def list_time_slots():
        return jsonify(list(time_slots))

    # ---------- HEALTH ----------
    @app.get("/health")
    def health():
        return jsonify({"status": "ok"})

    return app


# ---------- REAL-TIME ----------
@socketio.on("watch")
def watch_restaurant(data):
    restaurant_id = (data or {}).get("restaurantId")
    if not restaurant_id:
        emit("error", {"error": "validation_error", "message": "restaurantId is required"})
        return
    join_room(restaurant_room(restaurant_id))
    emit("watching", {"restaurantId": restaurant_id})


@socketio.on("unwatch")
def unwatch_restaurant(data):
    restaurant_id = (data or {}).get("restaurantId")
    if restaurant_id:
        leave_room(restaurant_room(restaurant_id))


if __name__ == "__main__":
    import logging

    logging.basicConfig(level=Config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = create_app()
    socketio.run(app, host="0.0.0.0", port=5013, debug=True)
