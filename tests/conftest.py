from datetime import datetime, timedelta

import pytest
from ladder.app import create_app, db, get_ladder_service
from ladder.errors import NotificationDeliveryError


class FakeClock:
    """Controllable ``now()`` source."""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **delta):
        self.now = self.now + timedelta(**delta)
        return self.now

    def set(self, value):
        self.now = value
        return self.now


class RecordingSink:
    """Notification sink that keeps delivered events and can be told to fail."""

    def __init__(self):
        self.events = []
        self.failing_types = set()

    def deliver(self, event):
        if event.type in self.failing_types:
            raise NotificationDeliveryError(f'{event.type} delivery failed')
        self.events.append(event)

    def types(self):
        return [event.type for event in self.events]


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 3, 12, 0, 0))


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def app(clock, sink):
    app = create_app('testing', clock=clock, notification_sink=sink)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def service(app):
    return get_ladder_service(app)


@pytest.fixture
def trio(service):
    """P1, P2, P3 joined in order (positions 1, 2, 3)."""
    return [
        service.join('Player One', email='one@example.com'),
        service.join('Player Two', email='two@example.com'),
        service.join('Player Three', email='three@example.com'),
    ]
