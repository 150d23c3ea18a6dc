import logging
import threading
from datetime import datetime, timezone

from .client import SocketIOBackend
from .config import prefs_path
from .errors import ConnectionFailed, StaleSnapshot, SyncFailed
from .notify import LoggingNotifier, NotificationPermission
from .prefs import LocalPrefs
from .records import normalize_room_id
from . import session as transitions
from .session import SessionState, View

logger = logging.getLogger(__name__)

JOIN_FAILED = "Connection failed. Please retry."
SYNC_FAILED = "Sync failed. Checking connection..."
PARTNER_HYDRATED = "Partner just hydrated! \N{SEEDLING}"


class HydrationSession:
    """
    Owns one participant's session: the state machine, the live change-feed
    subscription and the optimistic water writes.

    ``backend`` is a SocketIOBackend (or anything with the same methods),
    ``prefs`` a LocalPrefs, ``notifier`` a Notifier.

    Feed updates may arrive on another thread, so state is only read and
    replaced under ``_lock``; network calls happen outside it.
    """

    def __init__(self, backend, prefs, notifier=None):
        self.backend = backend
        self.prefs = prefs
        self.notifier = notifier or LoggingNotifier()
        self.state = SessionState()
        self._subscription = None
        self._lock = threading.RLock()

    @classmethod
    def connect(cls, url, prefs_file=None, notifier=None, **kwargs):
        """Connect to a room server; prefs default to WATERGROW_PREFS_PATH."""
        backend = SocketIOBackend.connect(url, **kwargs)
        return cls(backend, LocalPrefs(prefs_file or prefs_path()), notifier)

    # ----------------------------
    # View flow
    # ----------------------------
    def start(self):
        with self._lock:
            self.state = transitions.start(self.state, self.prefs.onboarding_completed)
            return self.state

    def complete_onboarding(self):
        self.prefs.mark_onboarding_completed()
        with self._lock:
            self.state = transitions.complete_onboarding(self.state)
            return self.state

    def join(self, raw_room_id):
        """Resolve the room; True when the session moved on to role selection."""
        room_id = normalize_room_id(raw_room_id)
        if not room_id or self.state.view is not View.JOIN:
            return False

        try:
            record = self.backend.resolve_room(room_id)
        except ConnectionFailed as e:
            logger.error(f"Error joining room {room_id}: {e}")
            with self._lock:
                self.state = transitions.join_failed(self.state, JOIN_FAILED)
            return False

        with self._lock:
            self.state = transitions.joined(self.state, record)
        logger.info(f"Joined room {room_id}")
        return True

    def pick_role(self, role):
        with self._lock:
            if self.state.view is not View.ROLE_SELECT:
                return False
            self.state = transitions.pick_role(self.state, role)
            room_id = self.state.room_id

        self._close_subscription()
        self._subscription = self.backend.subscribe(room_id, self._on_feed)
        return True

    def leave(self):
        self._close_subscription()
        with self._lock:
            self.state = transitions.leave(self.state)

    def close(self):
        self._close_subscription()
        self.backend.disconnect()

    def _close_subscription(self):
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.cancel()

    # ----------------------------
    # Drink
    # ----------------------------
    def drink(self):
        """
        Log one glass for the local role: apply it locally, then write it.
        A failed write puts the local counter back, unless the session has
        moved on to another room or role meanwhile. When the store turns out
        to be ahead of us, the snapshot is read again instead.
        """
        with self._lock:
            state = self.state
            if state.view is not View.ACTIVE or state.role is None or state.snapshot is None:
                return False

            previous = state.snapshot
            role, room_id = state.role, state.room_id
            count = role.count(previous) + 1
            watered_at = datetime.now(timezone.utc).isoformat()
            self._set_snapshot(role.with_count(previous, count, watered_at))

        try:
            self.backend.update_water(room_id, role, count, watered_at)
        except SyncFailed as e:
            logger.error(f"Water write for {room_id} failed: {e}")
            fresh = self._refetch(room_id) if isinstance(e, StaleSnapshot) else None
            with self._lock:
                if self.state.room_id == room_id and self.state.role is role:
                    if fresh is not None:
                        self._set_snapshot(fresh)
                    else:
                        self.state = transitions.rollback(self.state, previous)
            self.notifier.toast(SYNC_FAILED, "error")
            return False
        return True

    def _refetch(self, room_id):
        try:
            return self.backend.fetch_room(room_id)
        except ConnectionFailed as e:
            logger.error(f"Could not reread room {room_id}: {e}")
            return None

    # ----------------------------
    # Snapshots
    # ----------------------------
    def _on_feed(self, record):
        with self._lock:
            if self.state.view is not View.ACTIVE:
                return
            self._set_snapshot(record)

    def _set_snapshot(self, record):
        self.state, hydrated = transitions.apply_snapshot(self.state, record)
        if hydrated:
            self._partner_hydrated()

    def _partner_hydrated(self):
        self.notifier.toast(PARTNER_HYDRATED, "success")
        if self.notifier.permission is not NotificationPermission.GRANTED:
            return
        try:
            self.notifier.system_notify("Partner Activity", "Your partner just hydrated.")
        except Exception as e:
            # platform notifications are best effort
            logger.warning(f"System notification failed: {e}")
