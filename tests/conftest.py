import os
import tempfile

# Settings are read at import time by config.py
_TMP_DIR = tempfile.mkdtemp(prefix="classroom-tasks-")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DATA_DIR", _TMP_DIR)
os.environ.setdefault("STORAGE_DIR", os.path.join(_TMP_DIR, "storage"))
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("APP_TIMEZONE", "UTC")

import pytest
from sqlalchemy.orm import sessionmaker

from core.database import build_engine, init_db
from core.realtime import EventFeed
from utils.storage_manager import StorageManager
from utils.user_manager import UserManager


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def storage(tmp_path):
    return StorageManager(
        root=tmp_path / "storage",
        public_base_url="http://testserver/api/storage",
    )


@pytest.fixture
def feed():
    return EventFeed()


@pytest.fixture
def user_manager(db):
    # Lowest bcrypt cost keeps the suite fast
    return UserManager(db, bcrypt_rounds=4)


@pytest.fixture
def teacher(user_manager):
    return user_manager.create_user(
        email="teacher@example.com",
        password="secret123",
        role="teacher",
        full_name="Tina Teacher",
    )


@pytest.fixture
def student(user_manager):
    return user_manager.create_user(
        email="student@example.com",
        password="secret123",
        role="student",
        full_name="Sam Student",
    )


@pytest.fixture
def other_student(user_manager):
    return user_manager.create_user(
        email="other@example.com",
        password="secret123",
        role="student",
        full_name="Olive Other",
    )


@pytest.fixture
def client(session_factory, storage, feed):
    from fastapi.testclient import TestClient

    from app import app
    from core.database import get_db
    from core.dependencies import get_storage_manager
    from core.realtime import get_event_feed

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage_manager] = lambda: storage
    app.dependency_overrides[get_event_feed] = lambda: feed
    yield TestClient(app)
    app.dependency_overrides.clear()
