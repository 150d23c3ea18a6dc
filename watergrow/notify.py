import logging
from enum import Enum

logger = logging.getLogger(__name__)


class NotificationPermission(Enum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


class Notifier:
    """
    Where the session sends user-facing signals.

    ``toast`` is the in-app channel and is always available. ``system_notify``
    goes through the platform and is only called when ``permission`` is
    GRANTED. Subclasses override what they can deliver.
    """

    permission = NotificationPermission.DEFAULT

    def toast(self, message, kind="info"):
        raise NotImplementedError

    def system_notify(self, title, body):
        raise NotImplementedError


class LoggingNotifier(Notifier):
    def __init__(self, permission=NotificationPermission.DEFAULT):
        self.permission = permission

    def toast(self, message, kind="info"):
        log = logger.warning if kind == "error" else logger.info
        log(f"[{kind}] {message}")

    def system_notify(self, title, body):
        logger.info(f"{title}: {body}")
