"""
Shared fixtures.

The app runs against an in-memory mongomock-motor database and the
authenticated user is replaced by a fixture dict, so no MongoDB server or
token is needed.
"""
import asyncio
import uuid
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from config import Settings
from database import get_db
from models import permissions_for_role, to_document, utc_now
from server import create_app
from services import get_current_user


def run(coro):
    return asyncio.run(coro)


def user_with_role(role: str, **overrides) -> dict:
    user = {
        "id": f"user-{role}",
        "email": f"{role}@bloodbank.test",
        "name": f"{role.title()} User",
        "role": role,
        "status": "active",
        "permissions": permissions_for_role(role),
    }
    user.update(overrides)
    return user


def unit_document(now=None, **overrides) -> dict:
    """A stored blood unit with sensible defaults."""
    now = now or utc_now()
    collected = overrides.pop("collection_date", now - timedelta(days=10))
    expires = overrides.pop("expiration_date", collected + timedelta(days=42))
    status = overrides.pop("status", "Available")
    doc = {
        "id": str(uuid.uuid4()),
        "unit_id": f"BU-{uuid.uuid4().hex[:6].upper()}",
        "donor_id": None,
        "blood_type": "O+",
        "component_type": "Whole Blood",
        "collection_date": collected,
        "expiration_date": expires,
        "original_expiration_date": None,
        "quantity": 450,
        "status": status,
        "location": None,
        "status_history": [
            {"status": status, "timestamp": collected, "updated_by": "seed", "notes": ""}
        ],
        "temperature_history": [],
        "transfusion_record": None,
        "notes": None,
        "created_at": collected,
        "created_by": "seed",
        "updated_at": collected,
    }
    doc.update(overrides)
    return to_document(doc)


@pytest.fixture
def db():
    return AsyncMongoMockClient()["blood_bank_test"]


@pytest.fixture
def current_user():
    return user_with_role("admin")


@pytest.fixture
def app(db, current_user):
    app = create_app(Settings(db_name="blood_bank_test"))
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_current_user] = lambda: current_user
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def insert_unit(db):
    """Insert a unit document and return it without the Mongo ``_id``."""
    def _insert(**overrides):
        doc = unit_document(**overrides)
        run(db.blood_units.insert_one(doc))
        doc.pop("_id", None)
        return doc
    return _insert


def as_role(user: dict, role: str):
    """Switch the fixture user to another role in place."""
    user.update(user_with_role(role))
