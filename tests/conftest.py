import os
import uuid

# Settings are read at import time, so the test database must be configured first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ALLOW_ADMIN_RATINGS"] = "false"

import pytest
from fastapi.testclient import TestClient

from database.connection import SessionLocal, create_tables, drop_tables
from main import app
from models.user import UserRole
from schemas.store import StoreCreate
from schemas.user import Principal
from services import store as store_service
from services import user as user_service
from services.auth import create_token_for_user


DEFAULT_PASSWORD = "Secret@123"


@pytest.fixture(autouse=True)
def reset_database():
    """
    Recreate every table before each test so tests never share rows.
    """
    drop_tables()
    create_tables()
    yield


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    """
    TestClient bound to the app; startup hooks are not run.
    """
    return TestClient(app)


@pytest.fixture
def create_user(db_session):
    """
    Factory fixture to create users directly through the service layer.
    """

    def _create_user(role: UserRole = UserRole.USER, password: str = DEFAULT_PASSWORD, **fields):
        suffix = uuid.uuid4().hex[:8]
        return user_service.create_user(
            db_session,
            name=fields.get("name", f"Test User {suffix}"),
            email=fields.get("email", f"{role.value}_{suffix}@example.com"),
            password=password,
            role=role,
            address=fields.get("address", "12 Market Street"),
        )

    return _create_user


@pytest.fixture
def create_store(db_session):
    """
    Factory fixture to create stores, optionally owned by a store_owner user.
    """
    creator = Principal(id="fixture-admin", role=UserRole.ADMIN, name="Fixture Admin", email="fixture@example.com")

    def _create_store(owner=None, **fields):
        suffix = uuid.uuid4().hex[:8]
        store_data = StoreCreate(
            name=fields.get("name", f"Store {suffix}"),
            email=fields.get("email", f"store_{suffix}@example.com"),
            address=fields.get("address", "1 High Street"),
            owner_id=owner.id if owner is not None else None,
        )
        return store_service.create_store(db_session, store_data, creator)

    return _create_store


@pytest.fixture
def auth_headers():
    """
    Helper fixture building Authorization headers for a user.
    """

    def _headers(user) -> dict:
        return {"Authorization": f"Bearer {create_token_for_user(user)}"}

    return _headers
