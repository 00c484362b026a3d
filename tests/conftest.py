import os

# Must be set before the application modules read their configuration
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENABLE_EVENT_LOGGING", "false")

import pytest
from fastapi.testclient import TestClient

from auth import ROLE_ADMIN, ROLE_USER, CredentialStore, Principal, get_password_hash
from config import Settings
from database import build_engine, build_session_factory, init_db
from main import create_app
from schemas import BookCreateRequest
from services.books import BookService
from services.notifications import BookEventListener, NotificationPublisher

ADMIN_AUTH = ("admin", "adminpass")
USER_AUTH = ("user", "userpass")


class RecordingListener(BookEventListener):
    def __init__(self):
        self.events = []

    def notify(self, event):
        self.events.append(event)

    def of_type(self, event_type):
        return [e for e in self.events if isinstance(e, event_type)]


def book_data(**overrides) -> BookCreateRequest:
    fields = {
        "title": "Kotlin in Action",
        "author": "Dmitry Jemerov",
        "genre": "Programming",
        "isbn": "9781617293290",
        "price": 40.0,
        "quantity": 10,
    }
    fields.update(overrides)
    return BookCreateRequest(**fields)


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def publisher(listener):
    return NotificationPublisher([listener])


@pytest.fixture
def db():
    engine = build_engine("sqlite://")
    init_db(engine)
    session = build_session_factory(engine)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def service(db, publisher):
    return BookService(db, publisher)


@pytest.fixture(scope="session")
def credentials():
    return CredentialStore(
        [
            Principal(ADMIN_AUTH[0], get_password_hash(ADMIN_AUTH[1]), [ROLE_ADMIN, ROLE_USER]),
            Principal(USER_AUTH[0], get_password_hash(USER_AUTH[1]), [ROLE_USER]),
        ]
    )


@pytest.fixture
def app(credentials, publisher):
    settings = Settings(database_url="sqlite://", enable_event_logging=False, jwt_secret_key="test-secret")
    return create_app(settings=settings, credentials=credentials, publisher=publisher)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
