import watergrow.app as server
from watergrow.errors import RoomStoreError


def test_health(http):
    assert http.get("/health").get_json() == {"status": "ok"}


def test_http_join_normalizes_and_creates(http):
    res = http.post("/rooms/join", query_string={"room_id": "  Love-123 "})
    assert res.status_code == 200
    assert res.get_json() == {"room_id": "love-123", "p1_water": 0, "p2_water": 0, "last_watered": None}

    res = http.get("/rooms/LOVE-123")
    assert res.status_code == 200
    assert res.get_json()["room_id"] == "love-123"


def test_http_join_accepts_json_body(http):
    res = http.post("/rooms/join", json={"room_id": "Garden"})
    assert res.get_json()["room_id"] == "garden"


def test_http_join_requires_room_id(http):
    assert http.post("/rooms/join", query_string={"room_id": "   "}).status_code == 400


def test_http_missing_room_is_404(http):
    assert http.get("/rooms/nope").status_code == 404


def test_http_join_store_failure_is_503(http, monkeypatch):
    def broken(room_id):
        raise RoomStoreError("down")

    monkeypatch.setattr(server, "resolve_plant", broken)
    res = http.post("/rooms/join", query_string={"room_id": "x"})
    assert res.status_code == 503
    assert res.get_json()["error"] == server.CONNECTION_FAILED


def test_connect_says_welcome(app):
    client = server.socketio.test_client(app)
    received = client.get_received()
    assert received[0]["name"] == "server_msg"
    client.disconnect()


def test_resolve_room_event(socket_client):
    client = socket_client()
    ack = client.emit("resolve_room", {"room_id": " Love-123"}, callback=True)
    assert ack["ok"] is True
    assert ack["plant"]["room_id"] == "love-123"


def test_resolve_room_rejects_blank(socket_client):
    client = socket_client()
    ack = client.emit("resolve_room", {"room_id": "  "}, callback=True)
    assert ack == {"ok": False, "error": "room_id is required"}


def test_resolve_room_failure_is_an_error_ack(socket_client, monkeypatch):
    def broken(room_id):
        raise RoomStoreError("down")

    monkeypatch.setattr(server, "resolve_plant", broken)
    ack = socket_client().emit("resolve_room", {"room_id": "x"}, callback=True)
    assert ack == {"ok": False, "error": server.CONNECTION_FAILED}


def test_fetch_room_event(socket_client):
    client = socket_client()
    assert client.emit("fetch_room", {"room_id": "x"}, callback=True)["error"] == "not_found"
    client.emit("resolve_room", {"room_id": "x"}, callback=True)
    assert client.emit("fetch_room", {"room_id": "X"}, callback=True)["ok"] is True


def test_water_is_broadcast_to_subscribers(socket_client):
    writer, partner, outsider = socket_client(), socket_client(), socket_client()
    writer.emit("resolve_room", {"room_id": "love-123"}, callback=True)
    assert partner.emit("subscribe", {"room_id": "love-123"}, callback=True)["ok"] is True

    ack = writer.emit("water", {
        "room_id": "love-123",
        "role": "p1",
        "count": 1,
        "last_watered": "2026-05-01T08:30:00+02:00",
    }, callback=True)
    assert ack == {"ok": True}

    updates = [m for m in partner.get_received() if m["name"] == "plant_update"]
    assert len(updates) == 1
    assert updates[0]["args"][0] == {
        "room_id": "love-123",
        "p1_water": 1,
        "p2_water": 0,
        "last_watered": "2026-05-01T06:30:00",
    }
    # not subscribed: nothing arrives
    assert [m for m in writer.get_received() if m["name"] == "plant_update"] == []
    assert outsider.get_received() == []


def test_updates_arrive_in_commit_order(socket_client):
    writer, partner = socket_client(), socket_client()
    writer.emit("resolve_room", {"room_id": "r"}, callback=True)
    partner.emit("subscribe", {"room_id": "r"}, callback=True)
    for count in (1, 2, 3):
        writer.emit("water", {"room_id": "r", "role": "p2", "count": count}, callback=True)

    counts = [m["args"][0]["p2_water"] for m in partner.get_received() if m["name"] == "plant_update"]
    assert counts == [1, 2, 3]


def test_unsubscribe_stops_delivery(socket_client):
    writer, partner = socket_client(), socket_client()
    writer.emit("resolve_room", {"room_id": "r"}, callback=True)
    partner.emit("subscribe", {"room_id": "r"}, callback=True)
    partner.emit("unsubscribe", {"room_id": "r"}, callback=True)

    writer.emit("water", {"room_id": "r", "role": "p1", "count": 1}, callback=True)
    assert partner.get_received() == []


def test_subscribe_to_unknown_room_fails(socket_client):
    ack = socket_client().emit("subscribe", {"room_id": "ghost"}, callback=True)
    assert ack == {"ok": False, "error": "not_found"}


def test_water_validation(socket_client):
    client = socket_client()
    client.emit("resolve_room", {"room_id": "r"}, callback=True)
    assert client.emit("water", {"room_id": "r", "role": "p3", "count": 1}, callback=True)["ok"] is False
    assert client.emit("water", {"room_id": "r", "role": "p1", "count": -1}, callback=True)["ok"] is False
    assert client.emit("water", {"room_id": "r", "role": "p1"}, callback=True)["ok"] is False


def test_stale_water_write_is_refused(socket_client):
    client = socket_client()
    client.emit("resolve_room", {"room_id": "r"}, callback=True)
    client.emit("water", {"room_id": "r", "role": "p1", "count": 2}, callback=True)
    ack = client.emit("water", {"room_id": "r", "role": "p1", "count": 1}, callback=True)
    assert ack == {"ok": False, "error": "stale_write"}


def test_parse_timestamp():
    assert server.parse_timestamp(None) is None
    assert server.parse_timestamp("not a date") is None
    assert server.parse_timestamp("2026-05-01T08:30:00+02:00").isoformat() == "2026-05-01T06:30:00"


def test_water_rejects_non_integer_counts(socket_client):
    client = socket_client()
    client.emit("resolve_room", {"room_id": "r"}, callback=True)
    for count in (1.9, True, "3", None):
        ack = client.emit("water", {"room_id": "r", "role": "p1", "count": count}, callback=True)
        assert ack["ok"] is False
    assert client.emit("fetch_room", {"room_id": "r"}, callback=True)["plant"]["p1_water"] == 0


def test_malformed_payloads_still_get_an_ack(socket_client):
    client = socket_client()
    for payload in (["r", 1], "r", 7):
        assert client.emit("water", payload, callback=True) == {"ok": False, "error": "invalid water event"}
        assert client.emit("resolve_room", payload, callback=True) == {"ok": False, "error": "room_id is required"}
    assert client.emit("water", {"room_id": 5, "role": "p1", "count": 1}, callback=True)["ok"] is False


def test_http_join_ignores_non_object_body(http):
    assert http.post("/rooms/join", json=["garden"]).status_code == 400
