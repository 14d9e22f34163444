"""
Shared fixtures: a fresh SQLite database per test and an API client wired to it.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from crowdqr.core.security import create_user_token, get_password_hash
from crowdqr.db.session import build_engine, get_db, init_db
from crowdqr.db.store import Store
from crowdqr.main import app
from crowdqr.models.user import UserRole
from crowdqr.services.broadcast_service import EventBroadcaster


class RecordingViewer:
    """Viewer stand-in that keeps every frame it is sent."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages = []

    async def send_text(self, message: str) -> None:
        if self.fail:
            raise ConnectionError("viewer went away")
        self.messages.append(message)


@pytest.fixture
def engine(tmp_path):
    test_engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def broadcaster():
    hub = EventBroadcaster(send_timeout=1.0)
    yield hub
    hub.close()


@pytest.fixture
def client(session_factory, broadcaster):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.broadcaster = broadcaster
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make_user(username: str, role: UserRole = UserRole.AUDIENCE, password: str = None):
        email = f"{username}@example.com" if role == UserRole.DJ else None
        hashed = get_password_hash(password) if password else None
        return Store(db).insert_user(username, role=role, email=email, hashed_password=hashed)
    return _make_user


@pytest.fixture
def dj(make_user):
    return make_user("dj_mike", role=UserRole.DJ, password="turntables123")


@pytest.fixture
def event(db, dj):
    return Store(db).insert_event(dj_user_id=dj.id, name="Friday Night", slug="friday-night")


@pytest.fixture
def auth_headers():
    def _auth_headers(user) -> dict:
        return {"Authorization": f"Bearer {create_user_token(user)}"}
    return _auth_headers
