"""
Shared fixtures: an in-memory SQLite database built from the model metadata,
a cast of users covering every permission role, and an API client whose
database and file storage dependencies point at the test doubles.
"""
from typing import BinaryIO

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import Base, get_db
from core.storage import StoredFile, get_file_storage
from apps.auth.models import UserModel, Role
from apps.auth.services import build_session, create_access_token, get_password_hash
from apps.job_orders.services import JobOrderService
from apps.notifications.services import NotificationService
from apps.cars.services import CarService

import apps.notifications.models  # noqa: F401
import apps.cars.models  # noqa: F401

PASSWORD = "secret123"
PASSWORD_HASH = get_password_hash(PASSWORD)

USERS = {
    "requester": {"name": "Jane Dela Cruz", "dept": "Program", "position": "Encoder", "role": "user"},
    "other_requester": {"name": "Mark Reyes", "dept": "Laboratory", "position": "Medical Technologist", "role": "user"},
    "approver": {"name": "Paula Santos", "dept": "Program", "position": "Program Manager", "role": "user"},
    "lab_approver": {"name": "Leo Manalo", "dept": "Laboratory", "position": "Laboratory Manager", "role": "user"},
    "tech": {"name": "Ian Torres", "dept": "IT", "position": "Mis Officer", "role": "user"},
    "tech2": {"name": "Carla Lim", "dept": "IT", "position": "Computer Programmer", "role": "user"},
    "admin": {"name": "System Admin", "dept": "Administrator", "position": None, "role": "admin"},
}


class MemoryStorage:
    def __init__(self):
        self.files = {}

    def save(self, filename: str, fileobj: BinaryIO) -> StoredFile:
        data = fileobj.read()
        self.files[filename] = data
        return StoredFile(path=filename, url=f"http://testserver/uploads/{filename}", size=len(data))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


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
def users(db):
    roles = {}
    for name in ("admin", "super-user", "user"):
        roles[name] = Role(name=name, description=name)
        db.add(roles[name])
    db.flush()

    created = {}
    for key, info in USERS.items():
        user = UserModel(
            username=key,
            name=info["name"],
            email=f"{key}@example.org",
            dept=info["dept"],
            position=info["position"],
            hashed_password=PASSWORD_HASH,
            role=roles[info["role"]],
        )
        db.add(user)
        created[key] = user
    db.commit()
    for user in created.values():
        db.refresh(user)
    return created


@pytest.fixture
def sessions(users):
    return {key: build_session(user) for key, user in users.items()}


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def service(db, storage):
    return JobOrderService(db, NotificationService(db), storage)


@pytest.fixture
def notification_service(db):
    return NotificationService(db)


@pytest.fixture
def car_service(db, storage):
    return CarService(db, storage)


@pytest.fixture
def client(session_factory, storage, users):
    from main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_file_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(users):
    def _headers(key: str):
        token = create_access_token(data={"sub": users[key].username})
        return {"Authorization": f"Bearer {token}"}
    return _headers

