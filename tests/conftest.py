import pytest

from watergrow.app import create_app, socketio
from watergrow.client import SocketIOBackend
from watergrow.controller import HydrationSession
from watergrow.models import db
from watergrow.notify import NotificationPermission, Notifier
from watergrow.prefs import LocalPrefs


class TestClientTransport:
    """Lets SocketIOBackend talk to a Flask-SocketIO test client.

    Server pushes are only handed to handlers when ``pump`` runs; every
    ``call`` pumps once after its ack arrives.
    """

    __test__ = False

    def __init__(self, client):
        self.client = client
        self.handlers = {}
        self.hold = False  # keep pushes queued until pump() is called by hand

    def on(self, event, handler):
        self.handlers[event] = handler

    def call(self, event, data=None, timeout=None):
        ack = self.client.emit(event, data, callback=True)
        if not self.hold:
            self.pump()
        return ack

    def disconnect(self):
        self.client.disconnect()

    def start_background_task(self, target, *args, **kwargs):
        target(*args, **kwargs)

    def pump(self):
        for message in self.client.get_received():
            handler = self.handlers.get(message["name"])
            if handler is not None:
                handler(*message["args"])


class RecordingNotifier(Notifier):
    def __init__(self, permission=NotificationPermission.DEFAULT):
        self.permission = permission
        self.toasts = []
        self.system = []

    def toast(self, message, kind="info"):
        self.toasts.append((message, kind))

    def system_notify(self, title, body):
        self.system.append((title, body))


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def http(app):
    return app.test_client()


@pytest.fixture
def socket_client(app):
    clients = []

    def make():
        client = socketio.test_client(app)
        client.get_received()  # drop the welcome message
        clients.append(client)
        return client

    yield make
    for client in clients:
        if client.is_connected():
            client.disconnect()


@pytest.fixture
def participant(app, socket_client, tmp_path):
    """Factory for a HydrationSession wired to the test server."""
    count = [0]

    def make(onboarded=True, permission=NotificationPermission.DEFAULT):
        count[0] += 1
        transport = TestClientTransport(socket_client())
        prefs = LocalPrefs(tmp_path / f"prefs-{count[0]}.json")
        if onboarded:
            prefs.mark_onboarding_completed()
        notifier = RecordingNotifier(permission)
        session = HydrationSession(SocketIOBackend(transport), prefs, notifier)
        session.transport = transport
        return session

    return make
