"""Change feed: every committed plant update is pushed to the room's channel.

Rows are captured while the session flushes and only published once the
transaction commits, in flush order. A rollback drops whatever was captured.
Inserts are not published; subscribers only hear about updates.
"""

import logging

from sqlalchemy import event
from sqlalchemy.orm import Session, object_session

from .models import Plant
from .records import PLANT_UPDATE

logger = logging.getLogger(__name__)
_PENDING_KEY = "watergrow_plant_changes"


def channel_for(room_id):
    return f"plant_{room_id}"


class ChangeFeed:
    def __init__(self, socketio=None):
        self.socketio = socketio
        self._installed = False

    def init_app(self, socketio):
        self.socketio = socketio
        if not self._installed:
            event.listen(Plant, "after_update", self._capture)
            event.listen(Session, "after_commit", self._publish)
            event.listen(Session, "after_rollback", self._discard)
            self._installed = True

    def _capture(self, mapper, connection, target):
        session = object_session(target)
        if session is None:
            return
        session.info.setdefault(_PENDING_KEY, []).append(target.to_dict())

    def _publish(self, session):
        changes = session.info.pop(_PENDING_KEY, None)
        if not changes:
            return
        if self.socketio is None:
            logger.warning(f"Dropping {len(changes)} plant update(s), no socket server attached")
            return
        for payload in changes:
            room = channel_for(payload["room_id"])
            logger.debug(f"Publishing {PLANT_UPDATE} to {room}: {payload}")
            self.socketio.emit(PLANT_UPDATE, payload, room=room)

    def _discard(self, session):
        session.info.pop(_PENDING_KEY, None)


feed = ChangeFeed()
