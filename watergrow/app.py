import logging
from datetime import datetime, timezone

from flask import Flask, jsonify, request
from flask_socketio import SocketIO, emit, join_room, leave_room

from .config import Config, cors_origins
from .errors import RoomStoreError, StaleWriteError
from .feed import channel_for, feed
from .models import db
from .records import Role, normalize_room_id
from .store import find_plant, record_water, resolve_plant

logger = logging.getLogger(__name__)

CONNECTION_FAILED = "Connection failed. Please retry."

socketio = SocketIO()


# ----------------------------
# Flask + DB + SocketIO Setup
# ----------------------------
def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    db.init_app(app)
    socketio.init_app(app, cors_allowed_origins=cors_origins(app.config["CORS_ALLOWED_ORIGINS"]))
    feed.init_app(socketio)
    register_routes(app)

    with app.app_context():
        db.create_all()

    return app


def fail(message):
    return {"ok": False, "error": message}


def as_dict(data):
    return data if isinstance(data, dict) else {}


def parse_timestamp(value):
    """ISO-8601 from the client -> naive UTC datetime, or None if unusable."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


# ----------------------------
# HTTP routes
# ----------------------------
def register_routes(app):
    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    @app.route("/rooms/join", methods=["POST"])
    def join_room_http():
        payload = as_dict(request.get_json(silent=True))
        room_id = normalize_room_id(request.args.get("room_id") or payload.get("room_id"))
        if not room_id:
            return jsonify({"error": "room_id is required"}), 400

        try:
            plant = resolve_plant(room_id)
        except RoomStoreError as e:
            logger.error(f"Error joining room {room_id}: {e}")
            return jsonify({"error": CONNECTION_FAILED}), 503

        return jsonify(plant.to_dict())

    @app.route("/rooms/<room_id>")
    def get_room(room_id):
        room_id = normalize_room_id(room_id)
        try:
            plant = find_plant(room_id)
        except RoomStoreError as e:
            logger.error(f"Error reading room {room_id}: {e}")
            return jsonify({"error": CONNECTION_FAILED}), 503

        if plant is None:
            return jsonify({"error": "not_found"}), 404
        return jsonify(plant.to_dict())


# ----------------------------
# Socket: connect
# ----------------------------
@socketio.on("connect")
def handle_connect():
    emit("server_msg", {"message": "Welcome!"})


@socketio.on("disconnect")
def handle_disconnect(*args):
    # Socket.IO drops the client from every channel on its own
    logger.debug(f"Client disconnected {request.sid}")


# ----------------------------
# Socket: rooms
# ----------------------------
@socketio.on("resolve_room")
def handle_resolve_room(data):
    """
    Client emits: { "room_id": "  Love-123 " }
    Ack: { "ok": true, "plant": {...} } or { "ok": false, "error": "..." }
    """
    room_id = normalize_room_id(as_dict(data).get("room_id"))
    if not room_id:
        return fail("room_id is required")

    try:
        plant = resolve_plant(room_id)
    except RoomStoreError as e:
        logger.error(f"Error joining room {room_id}: {e}")
        return fail(CONNECTION_FAILED)

    logger.info(f"{request.sid} resolved room {room_id}")
    return {"ok": True, "plant": plant.to_dict()}


@socketio.on("fetch_room")
def handle_fetch_room(data):
    room_id = normalize_room_id(as_dict(data).get("room_id"))
    try:
        plant = find_plant(room_id) if room_id else None
    except RoomStoreError as e:
        logger.error(f"Error reading room {room_id}: {e}")
        return fail(CONNECTION_FAILED)

    if plant is None:
        return fail("not_found")
    return {"ok": True, "plant": plant.to_dict()}


# ----------------------------
# Socket: water events
# ----------------------------
@socketio.on("water")
def handle_water(data):
    """
    Client emits: { "room_id": "love-123", "role": "p1", "count": 4, "last_watered": "<iso>" }
    Only the role's own counter and the shared timestamp are written.
    """
    if not isinstance(data, dict):
        return fail("invalid water event")

    room_id = normalize_room_id(data.get("room_id"))
    count = data.get("count")
    try:
        role = Role(data.get("role"))
    except (TypeError, ValueError):
        return fail("role and count are required")
    # whole numbers only; bool is an int subclass
    if not isinstance(count, int) or isinstance(count, bool):
        return fail("role and count are required")

    if not room_id or count < 0:
        return fail("invalid water event")

    try:
        record_water(room_id, role, count, parse_timestamp(data.get("last_watered")))
    except StaleWriteError as e:
        logger.warning(str(e))
        return fail("stale_write")
    except RoomStoreError as e:
        logger.error(f"Error watering room {room_id}: {e}")
        return fail(CONNECTION_FAILED)

    return {"ok": True}


# ----------------------------
# Socket: change feed subscription
# ----------------------------
@socketio.on("subscribe")
def handle_subscribe(data):
    """Join the room's channel; the ack carries the current record."""
    room_id = normalize_room_id(as_dict(data).get("room_id"))
    try:
        plant = find_plant(room_id) if room_id else None
    except RoomStoreError as e:
        logger.error(f"Error subscribing to room {room_id}: {e}")
        return fail(CONNECTION_FAILED)

    if plant is None:
        return fail("not_found")

    join_room(channel_for(room_id))
    logger.info(f"{request.sid} subscribed to {room_id}")
    return {"ok": True, "plant": plant.to_dict()}


@socketio.on("unsubscribe")
def handle_unsubscribe(data):
    room_id = normalize_room_id(as_dict(data).get("room_id"))
    if room_id:
        leave_room(channel_for(room_id))
        logger.info(f"{request.sid} unsubscribed from {room_id}")
    return {"ok": True}


# ----------------------------
# Run server
# ----------------------------
def main():
    logging.basicConfig(
        level=Config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app()
    socketio.run(app, host=Config.HOST, port=Config.PORT, allow_unsafe_werkzeug=True)


if __name__ == "__main__":
    main()
