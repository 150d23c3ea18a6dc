import logging
import threading

import socketio
from socketio.exceptions import SocketIOError

from .errors import ConnectionFailed, StaleSnapshot, SyncFailed
from .records import PLANT_UPDATE, PlantRecord

logger = logging.getLogger(__name__)

CALL_TIMEOUT = 10


class Subscription:
    """Handle for one live change-feed subscription. ``cancel`` is idempotent."""

    def __init__(self, backend, room_id, handler):
        self.backend = backend
        self.room_id = room_id
        self.handler = handler
        self.active = True

    def deliver(self, record):
        if self.active:
            self.handler(record)

    def cancel(self):
        if not self.active:
            return
        self.active = False
        self.backend._release(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.cancel()


class SocketIOBackend:
    """
    Room store and change feed as seen from a participant, over Socket.IO.

    ``sio`` needs ``call(event, data, timeout=...)`` and ``on(event, handler)``,
    which is what ``socketio.Client`` offers. Only one subscription is live at
    a time; subscribing again cancels the previous one.
    """

    def __init__(self, sio):
        self.sio = sio
        self._lock = threading.Lock()
        self._subscription = None
        self._connected_once = False
        sio.on(PLANT_UPDATE, self._on_plant_update)
        sio.on("connect", self._on_connect)

    @classmethod
    def connect(cls, url, **kwargs):
        sio = socketio.Client(reconnection=True)
        backend = cls(sio)
        sio.connect(url, **kwargs)
        return backend

    def disconnect(self):
        self.unsubscribe()
        self.sio.disconnect()

    def _call(self, event, data):
        try:
            return self.sio.call(event, data, timeout=CALL_TIMEOUT)
        except SocketIOError as e:
            logger.error(f"{event} failed: {e}")
            return {"ok": False, "error": str(e)}

    # ----------------------------
    # Room store operations
    # ----------------------------
    def resolve_room(self, room_id):
        """Find or create the room. Raises ConnectionFailed."""
        ack = self._call("resolve_room", {"room_id": room_id}) or {}
        if not ack.get("ok"):
            raise ConnectionFailed(ack.get("error") or "no answer from server")
        return PlantRecord.from_dict(ack["plant"])

    def fetch_room(self, room_id):
        """Point read. Returns None when the room does not exist."""
        ack = self._call("fetch_room", {"room_id": room_id}) or {}
        if ack.get("ok"):
            return PlantRecord.from_dict(ack["plant"])
        if ack.get("error") == "not_found":
            return None
        raise ConnectionFailed(ack.get("error") or "no answer from server")

    def update_water(self, room_id, role, count, last_watered):
        """Field-scoped write of one role's counter. Raises SyncFailed."""
        ack = self._call("water", {
            "room_id": room_id,
            "role": role.value,
            "count": count,
            "last_watered": last_watered,
        }) or {}
        if not ack.get("ok"):
            if ack.get("error") == "stale_write":
                raise StaleSnapshot(f"{role.field} for {room_id} is ahead of {count}")
            raise SyncFailed(ack.get("error") or "no answer from server")

    # ----------------------------
    # Change feed
    # ----------------------------
    def subscribe(self, room_id, handler):
        self.unsubscribe()
        subscription = Subscription(self, room_id, handler)
        with self._lock:
            self._subscription = subscription

        ack = self._call("subscribe", {"room_id": room_id}) or {}
        if ack.get("ok"):
            subscription.deliver(PlantRecord.from_dict(ack["plant"]))
        else:
            # left in place: partner updates stay stale until the next join or reconnect
            logger.warning(f"Could not subscribe to {room_id}: {ack.get('error')}")
        return subscription

    def unsubscribe(self):
        with self._lock:
            subscription = self._subscription
        if subscription is not None:
            subscription.cancel()

    def _release(self, subscription):
        with self._lock:
            if self._subscription is subscription:
                self._subscription = None
        self._call("unsubscribe", {"room_id": subscription.room_id})

    def _current(self, room_id):
        with self._lock:
            subscription = self._subscription
        if subscription is None or subscription.room_id != room_id:
            return None
        return subscription

    def _on_plant_update(self, payload):
        record = PlantRecord.from_dict(payload)
        subscription = self._current(record.room_id)
        if subscription is None:
            logger.debug(f"Ignoring update for {record.room_id}, not subscribed")
            return
        subscription.deliver(record)

    def _on_connect(self):
        if not self._connected_once:
            self._connected_once = True
            return

        # reconnected: the server forgot our channels
        with self._lock:
            subscription = self._subscription
        if subscription is None or not subscription.active:
            return
        logger.info(f"Reconnected, subscribing to {subscription.room_id} again")
        self.sio.start_background_task(self._resubscribe, subscription)

    def _resubscribe(self, subscription):
        ack = self._call("subscribe", {"room_id": subscription.room_id}) or {}
        if ack.get("ok"):
            subscription.deliver(PlantRecord.from_dict(ack["plant"]))
        else:
            logger.warning(f"Could not resubscribe to {subscription.room_id}: {ack.get('error')}")
