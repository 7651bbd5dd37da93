"""Shared test fixtures for account-core."""

import os
import sqlite3
import tempfile

import pytest

from account_core.accounts import notifications
from account_core.accounts.passwords import hash_password
from account_core.config import settings
from account_core.db import Core, init_db
from account_core.main import app
from account_core.schema import SCHEMA_PATH
from account_core.schema.types import Role

SERVICE_TOKEN = "test-service-token"
STUDENT_PASSWORD = "StudentPass123"


class RecordingNotifier:
    """Notifier that keeps every notification in memory."""

    def __init__(self):
        self.sent = []

    def notify(self, account_id, purpose, payload):
        self.sent.append((account_id, purpose, payload))

    def purposes(self):
        return [purpose for _, purpose, _ in self.sent]


@pytest.fixture(autouse=True)
def fast_bcrypt():
    """Use the minimum bcrypt work factor so tests stay fast."""
    original = settings.bcrypt_work_factor
    settings.bcrypt_work_factor = 4
    yield
    settings.bcrypt_work_factor = original


@pytest.fixture(autouse=True)
def recording_notifier():
    """Install a recording notifier for the duration of a test."""
    notifier = RecordingNotifier()
    notifications.set_notifier(notifier)
    yield notifier
    notifications.set_notifier(None)


@pytest.fixture
def test_db():
    """Create in-memory test database with schema."""
    db = sqlite3.connect(":memory:")
    db.row_factory = sqlite3.Row

    # Enable foreign key constraints (required for SQLite)
    db.execute("PRAGMA foreign_keys = ON")

    db.executescript(SCHEMA_PATH.read_text())
    db.commit()

    yield db

    db.close()


@pytest.fixture
def core(test_db):
    """Non-atomic Core over the in-memory test database."""
    return Core(test_db, atomic=False)


@pytest.fixture
def db_file():
    """Temporary database file with settings.database_path pointed at it.

    Needed wherever several connections must see the same data
    (atomic Cores, threads, the Flask app).
    """
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    original_db_path = settings.database_path
    settings.database_path = db_path
    try:
        init_db()
        yield db_path
    finally:
        settings.database_path = original_db_path
        try:
            os.unlink(db_path)
        except OSError:
            pass


@pytest.fixture
def client(db_file):
    """Flask test client that sends the service token on every request."""
    original_token = settings.internal_service_token
    settings.internal_service_token = SERVICE_TOKEN

    app.config['TESTING'] = True
    try:
        with app.test_client() as client:
            client.environ_base["HTTP_X_SERVICE_TOKEN"] = SERVICE_TOKEN
            yield client
    finally:
        settings.internal_service_token = original_token


def create_student(core, email="student@example.com", nic="200012345678",
                   code_number="560001", is_verified=False, password=STUDENT_PASSWORD):
    """Insert a student directly through the account store."""
    return core.account.create(
        full_name="Test Student",
        email=email,
        role=Role.STUDENT,
        password_hash=hash_password(password),
        is_verified=is_verified,
        code_number=code_number,
        whatsapp_number="+94771234567",
        school="Royal College",
        nic=nic,
    )


def create_admin(core, email="admin@example.com", role=Role.ADMIN, password="AdminPass123"):
    """Insert a verified admin directly through the account store."""
    return core.account.create(
        full_name="Test Admin",
        email=email,
        role=role,
        password_hash=hash_password(password),
        is_verified=True,
    )


@pytest.fixture
def make_student(core):
    """Factory inserting students into the in-memory database."""
    return lambda **kwargs: create_student(core, **kwargs)


@pytest.fixture
def make_admin(core):
    """Factory inserting admins into the in-memory database."""
    return lambda **kwargs: create_admin(core, **kwargs)


@pytest.fixture
def student(core):
    """An unverified student with code number 560001."""
    return create_student(core)


@pytest.fixture
def register_student(client):
    """Factory registering students through the API; returns the user view."""
    def register(email="ann@example.com", nic="200112345678", **overrides):
        body = {
            "full_name": "Ann Perera",
            "email": email,
            "whatsapp_number": "+94771234567",
            "school": "Visakha Vidyalaya",
            "password": STUDENT_PASSWORD,
            "nic": nic,
        }
        body.update(overrides)
        response = client.post("/api/v1/students/registrations", json=body)
        assert response.status_code == 201, response.get_json()
        return response.get_json()["user"]

    return register


@pytest.fixture
def verified_student(client, register_student):
    """A student registered and verified through the API."""
    user = register_student()
    response = client.post(
        "/api/v1/students/verify-code",
        json={"email": user["email"], "code": user["code_number"]}
    )
    assert response.status_code == 200, response.get_json()
    return response.get_json()
